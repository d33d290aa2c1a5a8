"""
Shared fixtures: fake FFmpeg processes and fake viewer connections.
"""

import asyncio
import signal

import pytest

from livecam.service import CameraService
from livecam.utils.config import Config


class FakeProcess:
    """Stands in for ``asyncio.subprocess.Process`` running FFmpeg."""

    def __init__(self, pid: int, exit_on_terminate: bool = True):
        self.pid = pid
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.returncode = None
        self.signals = []
        self.exit_on_terminate = exit_on_terminate
        self._exited = asyncio.Event()

    def emit(self, chunk: bytes) -> None:
        self.stdout.feed_data(chunk)

    def diagnose(self, line: str) -> None:
        self.stderr.feed_data(line.encode() + b'\n')

    def exit(self, code: int = 0) -> None:
        if self.returncode is not None:
            return
        self.returncode = code
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self._exited.set()

    def terminate(self) -> None:
        self.signals.append(signal.SIGTERM)
        if self.exit_on_terminate:
            self.exit(255)

    def kill(self) -> None:
        self.signals.append(signal.SIGKILL)
        self.exit(-9)

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode


class FakeSpawner:
    """Process factory recording every command it is asked to run."""

    def __init__(self):
        self.commands = []
        self.processes = []
        self.fail = None
        self.gate = None
        self.exit_on_terminate = True

    async def __call__(self, cmd):
        self.commands.append(cmd)

        # Yield like a real spawn does
        await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()

        if self.fail is not None:
            raise self.fail

        process = FakeProcess(
            pid=1000 + len(self.processes),
            exit_on_terminate=self.exit_on_terminate
        )
        self.processes.append(process)
        return process

    @property
    def last(self) -> FakeProcess:
        return self.processes[-1]


class FakeConnection:
    """Viewer connection with the WebSocketResponse surface the server uses."""

    def __init__(self, fail_sends: bool = False, stall: bool = False):
        self.received = []
        self.closed = False
        self.close_code = None
        self.close_message = None
        self.fail_sends = fail_sends
        self.stall = stall
        self._unblocked = asyncio.Event()

    async def send_bytes(self, data: bytes, compress=None) -> None:
        if self.fail_sends:
            raise ConnectionResetError("Cannot write to closing transport")
        if self.stall:
            # Peer stopped reading; the write never drains
            await self._unblocked.wait()
        self.received.append(data)

    async def close(self, *, code: int = 1000, message: bytes = b'') -> bool:
        if self.closed:
            return False
        self.closed = True
        self.close_code = code
        self.close_message = message
        return True


async def _wait_until(predicate, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def wait_until():
    """Poll a predicate while letting the event loop run."""
    return _wait_until


@pytest.fixture
def spawner():
    return FakeSpawner()


@pytest.fixture
def make_connection():
    return FakeConnection


@pytest.fixture
def config():
    return Config({})


@pytest.fixture
async def service(config, spawner):
    """Camera service wired to fake FFmpeg processes."""
    camera_service = CameraService(config, spawn=spawner)
    yield camera_service
    await camera_service.shutdown(timeout=1)
