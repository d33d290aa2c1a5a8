"""
FFmpeg frame source management.

Runs one FFmpeg process per live camera, converting its RTSP feed into an
MJPEG byte stream on stdout. Each stdout read is handed to the chunk
callback as-is; process exit (requested or not) is reported once through
the terminate callback.
"""

import asyncio
import shutil
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from ..utils.config import Config
from ..utils.exceptions import AlreadyRunningError, NotRunningError, StartFailureError
from ..utils.logger import get_logger


logger = get_logger(__name__)

ChunkCallback = Callable[[str, bytes], Awaitable[object]]
TerminateCallback = Callable[[str, Optional[int]], Awaitable[object]]
SpawnFunction = Callable[[list[str]], Awaitable[asyncio.subprocess.Process]]

DIAGNOSTIC_TAIL_LINES = 20


async def spawn_process(cmd: list[str]) -> asyncio.subprocess.Process:
    """Start ``cmd`` with stdout and stderr piped back to us."""
    return await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )


@dataclass
class ActiveStream:
    """A camera's FFmpeg process and its bookkeeping."""

    camera_id: str
    process: Optional[asyncio.subprocess.Process] = None
    pump_task: Optional[asyncio.Task] = None
    kill_task: Optional[asyncio.Task] = None
    started_at: float = field(default_factory=time.time)
    stop_requested: bool = False
    chunks: int = 0
    bytes_out: int = 0
    diagnostics: deque = field(default_factory=lambda: deque(maxlen=DIAGNOSTIC_TAIL_LINES))

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self.started_at


class FrameSourceManager:
    """
    Owns the FFmpeg process of every streaming camera.

    At most one process exists per camera id. The entry for a camera is
    reserved before the spawn is awaited, so two overlapping ``start``
    calls cannot both launch FFmpeg.
    """

    def __init__(
        self,
        config: Config,
        on_chunk: ChunkCallback,
        on_terminate: TerminateCallback,
        spawn: Optional[SpawnFunction] = None
    ):
        """
        Initialize the manager.

        Args:
            config: Server configuration
            on_chunk: Awaited with (camera_id, chunk) for every stdout read
            on_terminate: Awaited with (camera_id, exit_code) after the
                process has exited and its entry has been removed
            spawn: Process factory, defaults to ``spawn_process``
        """
        self.config = config
        self.on_chunk = on_chunk
        self.on_terminate = on_terminate
        self._spawn = spawn or spawn_process

        self._streams: dict[str, ActiveStream] = {}

        capture = config.get_capture_config()
        self.ffmpeg_path = capture.get('ffmpeg_path', 'ffmpeg')
        self.rtsp_transport = capture.get('rtsp_transport', 'tcp')
        self.resolution = capture.get('resolution', '1280x720')
        self.framerate = capture.get('framerate', 15)
        self.quality = capture.get('quality', 5)
        self.loglevel = capture.get('loglevel', 'error')
        self.chunk_size = capture.get('chunk_size', 65536)
        self.kill_timeout: Optional[float] = capture.get('kill_timeout')

    def __len__(self) -> int:
        return len(self._streams)

    def is_running(self, camera_id: str) -> bool:
        return camera_id in self._streams

    def get(self, camera_id: str) -> Optional[ActiveStream]:
        return self._streams.get(camera_id)

    def active_ids(self) -> list[str]:
        return list(self._streams)

    def build_command(self, rtsp_url: str) -> list[str]:
        """Build the FFmpeg command converting ``rtsp_url`` to MJPEG on stdout."""
        width, height = self.resolution.split('x')

        cmd = [self.ffmpeg_path, '-hide_banner', '-nostats', '-loglevel', self.loglevel]

        # Transport option only applies to RTSP inputs
        if rtsp_url.startswith(('rtsp://', 'rtsps://')):
            cmd.extend(['-rtsp_transport', self.rtsp_transport])

        cmd.extend([
            '-i', rtsp_url,
            '-an',
            '-f', 'mjpeg',
            '-q:v', str(self.quality),
            '-r', str(self.framerate),
            '-vf', f'scale={width}:{height}',
            '-',
        ])
        return cmd

    async def start(self, camera_id: str, rtsp_url: str) -> ActiveStream:
        """
        Launch FFmpeg for a camera and begin pumping its output.

        Raises:
            AlreadyRunningError: If the camera already has a process
            StartFailureError: If FFmpeg could not be spawned
        """
        if camera_id in self._streams:
            raise AlreadyRunningError(camera_id)

        stream = ActiveStream(camera_id=camera_id)
        self._streams[camera_id] = stream

        cmd = self.build_command(rtsp_url)
        logger.info(f"Starting FFmpeg for camera {camera_id}")
        logger.debug(f"FFmpeg command: {' '.join(cmd)}")

        try:
            process = await self._spawn(cmd)
        except (OSError, ValueError) as e:
            del self._streams[camera_id]
            raise StartFailureError(f"Failed to start FFmpeg for camera {camera_id}: {e}") from e

        stream.process = process
        stream.pump_task = asyncio.create_task(
            self._pump(stream),
            name=f"ffmpeg-pump-{camera_id}"
        )
        logger.info(f"FFmpeg started for camera {camera_id} (PID: {stream.pid})")

        # stop() arrived while we were spawning
        if stream.stop_requested:
            self._signal(stream)

        return stream

    async def stop(self, camera_id: str) -> None:
        """
        Ask a camera's FFmpeg process to terminate.

        Returns as soon as the signal is sent; cleanup happens when the
        process actually exits.

        Raises:
            NotRunningError: If the camera has no process
        """
        stream = self._streams.get(camera_id)
        if stream is None:
            raise NotRunningError(camera_id)

        if stream.stop_requested:
            logger.debug(f"Stop already requested for camera {camera_id}")
            return

        stream.stop_requested = True
        logger.info(f"Stopping FFmpeg for camera {camera_id}")

        if stream.process is not None:
            self._signal(stream)

    async def stop_all(self, timeout: Optional[float] = None) -> None:
        """
        Stop every stream and wait for their teardown.

        Args:
            timeout: Seconds to wait for the processes to exit
        """
        for camera_id in self.active_ids():
            await self.stop(camera_id)

        tasks = [s.pump_task for s in self._streams.values() if s.pump_task]
        if not tasks:
            return

        _, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} FFmpeg process(es) still running after {timeout}s")

    def _signal(self, stream: ActiveStream) -> None:
        process = stream.process
        if process is None or process.returncode is not None:
            return

        try:
            process.terminate()
        except ProcessLookupError:
            # Already gone; the pump will observe the exit
            return

        if self.kill_timeout:
            stream.kill_task = asyncio.create_task(
                self._kill_after(stream, self.kill_timeout),
                name=f"ffmpeg-kill-{stream.camera_id}"
            )

    async def _kill_after(self, stream: ActiveStream, timeout: float) -> None:
        """Force kill a process that ignored SIGTERM for ``timeout`` seconds."""
        try:
            await asyncio.wait_for(asyncio.shield(stream.pump_task), timeout=timeout)
        except asyncio.TimeoutError:
            if stream.process and stream.process.returncode is None:
                logger.warning(
                    f"FFmpeg for camera {stream.camera_id} not responding, force killing..."
                )
                try:
                    stream.process.kill()
                except ProcessLookupError:
                    pass

    async def _pump(self, stream: ActiveStream) -> None:
        """Forward stdout chunks until EOF, then reconcile the exit."""
        process = stream.process
        camera_id = stream.camera_id
        stderr_task = asyncio.create_task(self._drain_diagnostics(stream))
        exit_code: Optional[int] = None

        try:
            while True:
                chunk = await process.stdout.read(self.chunk_size)
                if not chunk:
                    break

                stream.chunks += 1
                stream.bytes_out += len(chunk)

                try:
                    await self.on_chunk(camera_id, chunk)
                except Exception:
                    logger.exception(f"Chunk delivery failed for camera {camera_id}")

            await stderr_task
            exit_code = await process.wait()
        finally:
            if not stderr_task.done():
                stderr_task.cancel()

            if stream.kill_task and not stream.kill_task.done():
                stream.kill_task.cancel()

            if self._streams.get(camera_id) is stream:
                del self._streams[camera_id]

            if exit_code is None:
                exit_code = process.returncode

            # Also reached when the pump is cancelled
            self._log_exit(stream, exit_code)
            await self.on_terminate(camera_id, exit_code)

    async def _drain_diagnostics(self, stream: ActiveStream) -> None:
        """Log FFmpeg stderr; never forwarded to viewers."""
        reader = stream.process.stderr

        while True:
            try:
                raw = await reader.readline()
            except ValueError:
                # Line longer than the reader limit; skip the rest of it
                raw = await reader.read(self.chunk_size)

            if not raw:
                break

            line = raw.decode('utf-8', errors='replace').rstrip()
            if line:
                stream.diagnostics.append(line)
                logger.debug(f"FFmpeg [{stream.camera_id}]: {line}")

    def _log_exit(self, stream: ActiveStream, exit_code: Optional[int]) -> None:
        summary = (
            f"FFmpeg for camera {stream.camera_id} exited with code {exit_code} "
            f"after {stream.uptime_seconds:.1f}s ({stream.chunks} chunks, {stream.bytes_out} bytes)"
        )

        if stream.stop_requested or exit_code == 0:
            logger.info(summary)
        else:
            last_line = stream.diagnostics[-1] if stream.diagnostics else 'no diagnostic output'
            logger.warning(f"{summary}: {last_line}")


def ffmpeg_available(config: Config) -> bool:
    """Check the configured FFmpeg binary can be found."""
    ffmpeg_path = config.get('capture.ffmpeg_path', 'ffmpeg')
    return shutil.which(ffmpeg_path) is not None
