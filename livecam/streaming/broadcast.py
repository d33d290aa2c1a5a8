"""
Viewer subscriptions and frame fan-out.

A viewer connection is anything exposing the part of aiohttp's
``WebSocketResponse`` used here: ``closed``, ``send_bytes()`` and
``close()``.
"""

import asyncio
from typing import Callable, Protocol

from aiohttp import WSCloseCode

from ..utils.exceptions import CameraNotFoundError
from ..utils.logger import get_logger


logger = get_logger(__name__)

STREAM_ENDED_MESSAGE = b'Stream ended'
DEFAULT_SEND_TIMEOUT = 5.0


class Connection(Protocol):
    @property
    def closed(self) -> bool: ...

    async def send_bytes(self, data: bytes, *args, **kwargs) -> None: ...

    async def close(self, *, code: int = ..., message: bytes = ...) -> bool: ...


class SubscriberRegistry:
    """
    Per-camera sets of connected viewers.

    A connection is subscribed to at most one camera at a time.
    """

    def __init__(self, camera_exists: Callable[[str], bool]):
        """
        Args:
            camera_exists: Returns True if the camera id is registered
        """
        self._camera_exists = camera_exists
        self._subscribers: dict[str, set[Connection]] = {}
        self._camera_of: dict[Connection, str] = {}

    def __contains__(self, connection: object) -> bool:
        return connection in self._camera_of

    def subscribe(self, camera_id: str, connection: Connection) -> None:
        """
        Add a viewer to a camera's set.

        Raises:
            CameraNotFoundError: If the camera id is unknown
        """
        if not self._camera_exists(camera_id):
            raise CameraNotFoundError(camera_id)

        previous = self._camera_of.get(connection)
        if previous is not None and previous != camera_id:
            self.unsubscribe(previous, connection)

        self._subscribers.setdefault(camera_id, set()).add(connection)
        self._camera_of[connection] = camera_id

    def unsubscribe(self, camera_id: str, connection: Connection) -> bool:
        """Remove a viewer; returns False if it was not subscribed."""
        members = self._subscribers.get(camera_id)
        if not members or connection not in members:
            return False

        members.discard(connection)
        if not members:
            del self._subscribers[camera_id]

        if self._camera_of.get(connection) == camera_id:
            del self._camera_of[connection]
        return True

    def subscribers(self, camera_id: str) -> list[Connection]:
        return list(self._subscribers.get(camera_id, ()))

    def count(self, camera_id: str) -> int:
        return len(self._subscribers.get(camera_id, ()))

    def total(self) -> int:
        return len(self._camera_of)

    def pop_all(self, camera_id: str) -> list[Connection]:
        """Remove and return every viewer of a camera."""
        members = self._subscribers.pop(camera_id, set())
        for connection in members:
            self._camera_of.pop(connection, None)
        return list(members)


class BroadcastRouter:
    """
    Pushes FFmpeg output to the viewers of a camera.

    ``broadcast`` finishes all sends of one chunk before returning, and
    the FFmpeg pump awaits it before reading the next chunk, so every
    viewer sees chunks in emission order. Each send is bounded by
    ``send_timeout``; a viewer that cannot take a chunk in time is
    dropped and closed in the background.
    """

    def __init__(self, subscribers: SubscriberRegistry, send_timeout: float = DEFAULT_SEND_TIMEOUT):
        self.subscribers = subscribers
        self.send_timeout = send_timeout
        self._close_tasks: set[asyncio.Task] = set()

    async def broadcast(self, camera_id: str, chunk: bytes) -> int:
        """
        Send a chunk to every open viewer of a camera.

        Viewers that are closing, whose send fails, or whose send does
        not complete within ``send_timeout`` are skipped and dropped
        from the set.

        Returns:
            Number of viewers the chunk was delivered to
        """
        targets = []
        for connection in self.subscribers.subscribers(camera_id):
            if connection.closed:
                self.subscribers.unsubscribe(camera_id, connection)
            else:
                targets.append(connection)

        if not targets:
            return 0

        results = await asyncio.gather(
            *(
                asyncio.wait_for(connection.send_bytes(chunk), self.send_timeout)
                for connection in targets
            ),
            return_exceptions=True
        )

        delivered = 0
        for connection, result in zip(targets, results):
            if isinstance(result, asyncio.TimeoutError):
                logger.warning(
                    f"Dropping viewer of camera {camera_id}: send timed out after {self.send_timeout}s"
                )
                self.subscribers.unsubscribe(camera_id, connection)
                self._close_in_background(connection)
            elif isinstance(result, Exception):
                logger.debug(f"Dropping viewer of camera {camera_id}: {result!r}")
                self.subscribers.unsubscribe(camera_id, connection)
            else:
                delivered += 1

        return delivered

    def _close_in_background(self, connection: Connection) -> None:
        task = asyncio.create_task(self._close_quietly(connection))
        self._close_tasks.add(task)
        task.add_done_callback(self._close_tasks.discard)

    async def _close_quietly(self, connection: Connection) -> None:
        try:
            await asyncio.wait_for(
                connection.close(code=WSCloseCode.GOING_AWAY, message=b'Viewer too slow'),
                self.send_timeout
            )
        except (asyncio.TimeoutError, ConnectionError, RuntimeError) as e:
            logger.debug(f"Error closing stalled viewer: {e!r}")

    async def disconnect_all(self, camera_id: str) -> int:
        """
        Close and remove every viewer of a camera.

        Returns:
            Number of viewers disconnected
        """
        connections = self.subscribers.pop_all(camera_id)
        if not connections:
            return 0

        results = await asyncio.gather(
            *(
                asyncio.wait_for(
                    connection.close(code=WSCloseCode.OK, message=STREAM_ENDED_MESSAGE),
                    self.send_timeout
                )
                for connection in connections
            ),
            return_exceptions=True
        )
        for result in results:
            if isinstance(result, Exception):
                logger.debug(f"Error closing viewer of camera {camera_id}: {result!r}")

        logger.info(f"Disconnected {len(connections)} viewer(s) from camera {camera_id}")
        return len(connections)
