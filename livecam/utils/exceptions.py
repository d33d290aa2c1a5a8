"""
Custom exceptions for the live CCTV streaming server.
"""


class LiveCamError(Exception):
    """Base exception for all streaming server errors."""
    pass


class ConfigurationError(LiveCamError):
    """Raised when configuration is invalid or missing."""
    pass


class InvalidInputError(LiveCamError):
    """Raised when a camera is created without its required fields."""
    pass


class CameraNotFoundError(LiveCamError):
    """Raised when a camera identifier is not in the registry."""

    def __init__(self, camera_id: str):
        super().__init__(f"Camera not found: {camera_id}")
        self.camera_id = camera_id


class StreamStateError(LiveCamError):
    """Raised when start/stop is called against a stream already in that state."""

    def __init__(self, message: str, camera_id: str):
        super().__init__(message)
        self.camera_id = camera_id


class AlreadyRunningError(StreamStateError):
    """Raised when starting a camera whose stream is already active."""

    def __init__(self, camera_id: str):
        super().__init__(f"Stream already active for camera {camera_id}", camera_id)


class NotRunningError(StreamStateError):
    """Raised when stopping a camera that has no active stream."""

    def __init__(self, camera_id: str):
        super().__init__(f"Stream not active for camera {camera_id}", camera_id)


class StartFailureError(LiveCamError):
    """Raised when the FFmpeg process cannot be spawned."""
    pass
