"""
Camera service: the operations behind the HTTP API.

Wires the camera registry, the FFmpeg frame sources and the viewer
fan-out together, and owns the one teardown procedure run whenever a
camera's FFmpeg process exits.
"""

from typing import Optional

from .capture.process_manager import FrameSourceManager, SpawnFunction
from .state.models import Camera, CameraStatus, HealthStatus, viewer_path
from .state.registry import CameraRegistry
from .streaming.broadcast import DEFAULT_SEND_TIMEOUT, BroadcastRouter, SubscriberRegistry
from .streaming.gateway import ConnectionGateway
from .utils.config import Config
from .utils.exceptions import CameraNotFoundError
from .utils.logger import get_logger


logger = get_logger(__name__)


class CameraService:
    """
    Camera lifecycle orchestrator.

    Status is only set OFFLINE by ``_reconcile``, which the frame source
    manager calls after a process has exited and its entry is gone. That
    keeps ``status == LIVE`` equivalent to "has a running FFmpeg process"
    no matter whether the exit was requested or a crash.
    """

    def __init__(self, config: Config, spawn: Optional[SpawnFunction] = None):
        """
        Initialize the service.

        Args:
            config: Server configuration
            spawn: Process factory override (tests substitute fake FFmpeg)
        """
        self.config = config

        self.registry = CameraRegistry()
        self.subscribers = SubscriberRegistry(camera_exists=self.registry.__contains__)
        self.router = BroadcastRouter(
            self.subscribers,
            send_timeout=config.get('server.send_timeout', DEFAULT_SEND_TIMEOUT)
        )
        self.gateway = ConnectionGateway(self.registry, self.subscribers)
        self.frame_sources = FrameSourceManager(
            config,
            on_chunk=self.router.broadcast,
            on_terminate=self._reconcile,
            spawn=spawn
        )

        self._accepting = True

    def create_camera(self, name: str, rtsp_url: str) -> Camera:
        return self.registry.create(name, rtsp_url)

    def list_cameras(self) -> list[Camera]:
        return self.registry.list()

    def get_camera(self, camera_id: str) -> Camera:
        return self.registry.get(camera_id)

    def viewer_path(self, camera_id: str) -> str:
        return viewer_path(self.registry.get(camera_id).id)

    async def delete_camera(self, camera_id: str) -> Camera:
        """
        Stop a camera's stream, forget the camera and close its viewers.

        Raises:
            CameraNotFoundError: If the camera id is unknown
        """
        self.registry.get(camera_id)

        if self.frame_sources.is_running(camera_id):
            await self.frame_sources.stop(camera_id)

        camera = self.registry.delete(camera_id)

        # Idle viewers (camera never started) are not covered by _reconcile
        await self.router.disconnect_all(camera_id)
        return camera

    async def start_stream(self, camera_id: str) -> Camera:
        """
        Start FFmpeg for a camera and mark it LIVE.

        Raises:
            CameraNotFoundError: If the camera id is unknown
            AlreadyRunningError: If the camera is already streaming
            StartFailureError: If FFmpeg could not be spawned
        """
        camera = self.registry.get(camera_id)

        await self.frame_sources.start(camera_id, camera.rtsp_url)

        # Deleted while FFmpeg was spawning; delete already asked it to stop
        if camera_id not in self.registry:
            raise CameraNotFoundError(camera_id)

        return self.registry.set_status(camera_id, CameraStatus.LIVE)

    async def stop_stream(self, camera_id: str) -> Camera:
        """
        Request a camera's FFmpeg process to terminate.

        The returned camera may still be LIVE; it turns OFFLINE once the
        process has exited.

        Raises:
            CameraNotFoundError: If the camera id is unknown
            NotRunningError: If the camera is not streaming
        """
        camera = self.registry.get(camera_id)
        await self.frame_sources.stop(camera_id)
        return camera

    def health(self) -> HealthStatus:
        return HealthStatus(
            cameras=len(self.registry),
            active_streams=len(self.frame_sources),
            subscribers=self.subscribers.total(),
            server_running=self._accepting,
        )

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop every stream and wait up to ``timeout`` seconds for teardown."""
        self._accepting = False

        active = len(self.frame_sources)
        if active:
            logger.info(f"Stopping {active} active stream(s)...")
        await self.frame_sources.stop_all(timeout=timeout)

    async def _reconcile(self, camera_id: str, exit_code: Optional[int]) -> None:
        """Teardown after a camera's FFmpeg process has exited, for any reason."""
        if camera_id in self.registry:
            self.registry.set_status(camera_id, CameraStatus.OFFLINE)

        await self.router.disconnect_all(camera_id)
