"""
Data models for the live CCTV streaming server.

Defines camera records, their status and the health snapshot.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


VIEWER_PATH_PREFIX = '/live'


class CameraStatus(Enum):
    """Whether a camera currently has a running FFmpeg process."""

    OFFLINE = "offline"   # No active stream
    LIVE = "live"         # FFmpeg process running, frames flowing to viewers


def viewer_path(camera_id: str) -> str:
    """Path of the viewing page for a camera."""
    return f"{VIEWER_PATH_PREFIX}/{camera_id}"


def new_camera_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Camera:
    """
    A registered RTSP camera.

    ``id`` and ``rtsp_url`` never change after creation; ``status`` is
    managed by the streaming service.
    """

    name: str
    rtsp_url: str
    id: str = field(default_factory=new_camera_id)
    status: CameraStatus = CameraStatus.OFFLINE
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if isinstance(self.status, str):
            self.status = CameraStatus(self.status)

    @property
    def stream_url(self) -> str:
        return viewer_path(self.id)

    @property
    def is_live(self) -> bool:
        return self.status == CameraStatus.LIVE

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        return {
            'id': self.id,
            'name': self.name,
            'rtsp_url': self.rtsp_url,
            'status': self.status.value,
            'stream_url': self.stream_url,
            'created_at': self.created_at.isoformat(),
        }


@dataclass
class HealthStatus:
    """Snapshot of the server for the health endpoint."""

    cameras: int = 0
    active_streams: int = 0
    subscribers: int = 0
    server_running: bool = True

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        return {
            'status': 'ok' if self.is_healthy else 'stopping',
            'cameras': self.cameras,
            'active_streams': self.active_streams,
            'subscribers': self.subscribers,
        }

    @property
    def is_healthy(self) -> bool:
        return self.server_running
