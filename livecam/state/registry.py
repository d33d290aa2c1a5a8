"""
In-memory camera registry.

Records live only as long as the server process.
"""

from typing import Optional

from ..utils.exceptions import CameraNotFoundError, InvalidInputError
from ..utils.logger import get_logger
from .models import Camera, CameraStatus


logger = get_logger(__name__)


class CameraRegistry:
    """
    Mapping of camera id to ``Camera`` record.

    Listing returns cameras in the order they were created.
    """

    def __init__(self):
        self._cameras: dict[str, Camera] = {}

    def __contains__(self, camera_id: object) -> bool:
        return camera_id in self._cameras

    def __len__(self) -> int:
        return len(self._cameras)

    def create(self, name: str, rtsp_url: str) -> Camera:
        """
        Register a new camera with status OFFLINE.

        Args:
            name: Display name
            rtsp_url: Source address passed to FFmpeg

        Returns:
            The created Camera

        Raises:
            InvalidInputError: If name or rtsp_url is empty
        """
        name = name.strip() if isinstance(name, str) else ''
        rtsp_url = rtsp_url.strip() if isinstance(rtsp_url, str) else ''

        if not name or not rtsp_url:
            raise InvalidInputError("Name and RTSP URL are required")

        camera = Camera(name=name, rtsp_url=rtsp_url)
        self._cameras[camera.id] = camera

        logger.info(f"Registered camera {camera.id} ({camera.name})")
        return camera

    def list(self) -> list[Camera]:
        return list(self._cameras.values())

    def find(self, camera_id: str) -> Optional[Camera]:
        return self._cameras.get(camera_id)

    def get(self, camera_id: str) -> Camera:
        """
        Get camera by id.

        Raises:
            CameraNotFoundError: If the id is unknown
        """
        camera = self._cameras.get(camera_id)
        if camera is None:
            raise CameraNotFoundError(camera_id)
        return camera

    def set_status(self, camera_id: str, status: CameraStatus) -> Camera:
        camera = self.get(camera_id)
        if camera.status != status:
            logger.debug(f"Camera {camera_id}: {camera.status.value} -> {status.value}")
        camera.status = status
        return camera

    def delete(self, camera_id: str) -> Camera:
        """
        Remove a camera record.

        The caller is responsible for stopping the camera's stream first.

        Raises:
            CameraNotFoundError: If the id is unknown
        """
        camera = self._cameras.pop(camera_id, None)
        if camera is None:
            raise CameraNotFoundError(camera_id)

        logger.info(f"Removed camera {camera_id} ({camera.name})")
        return camera
