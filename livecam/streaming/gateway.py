"""
Entry point for viewer WebSocket connections.
"""

from typing import Optional

from aiohttp import WSCloseCode, WSMsgType, web

from ..state.registry import CameraRegistry
from ..utils.logger import get_logger
from .broadcast import Connection, SubscriberRegistry


logger = get_logger(__name__)

CAMERA_NOT_FOUND_MESSAGE = b'Camera not found'


class ConnectionGateway:
    """
    Admits viewers for registered cameras.

    Viewers of an OFFLINE camera are accepted; they receive frames once
    the camera's stream starts.
    """

    def __init__(self, registry: CameraRegistry, subscribers: SubscriberRegistry):
        self.registry = registry
        self.subscribers = subscribers

    async def connect(self, camera_id: Optional[str], connection: Connection) -> bool:
        """
        Subscribe a viewer to a camera, or close it if the camera is unknown.

        Returns:
            True if the viewer was subscribed
        """
        if not camera_id or camera_id not in self.registry:
            logger.info(f"Rejected viewer for unknown camera {camera_id!r}")
            await connection.close(
                code=WSCloseCode.POLICY_VIOLATION,
                message=CAMERA_NOT_FOUND_MESSAGE
            )
            return False

        self.subscribers.subscribe(camera_id, connection)
        logger.info(
            f"Viewer connected to camera {camera_id} "
            f"({self.subscribers.count(camera_id)} watching)"
        )
        return True

    def disconnect(self, camera_id: str, connection: Connection) -> None:
        if self.subscribers.unsubscribe(camera_id, connection):
            logger.info(f"Viewer disconnected from camera {camera_id}")

    async def serve(self, camera_id: Optional[str], ws: web.WebSocketResponse) -> None:
        """
        Run a prepared WebSocket until either side closes it.

        Viewers are receive-only; anything they send is ignored.
        """
        if not await self.connect(camera_id, ws):
            return

        try:
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    logger.warning(f"WebSocket error for camera {camera_id}: {ws.exception()}")
        finally:
            self.disconnect(camera_id, ws)
