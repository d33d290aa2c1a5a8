"""
Main entry point for the live CCTV streaming server.

Runs the camera service behind the HTTP/WebSocket server until a
shutdown signal arrives.
"""

import asyncio
import signal
import sys
from typing import Optional

import click

from .capture.process_manager import SpawnFunction, ffmpeg_available
from .server.http_server import StreamServer
from .service import CameraService
from .utils.config import Config, load_config
from .utils.exceptions import ConfigurationError
from .utils.logger import setup_from_config, get_logger


logger = get_logger(__name__)


class LiveServer:
    """
    Server lifecycle.

    Shutdown order: stop all FFmpeg processes and wait for their teardown,
    then close the HTTP listener and any remaining WebSockets.
    """

    def __init__(self, config: Config, spawn: Optional[SpawnFunction] = None):
        """
        Initialize server with configuration.

        Args:
            config: Server configuration
            spawn: Process factory override for FFmpeg
        """
        self.config = config

        self.service = CameraService(config, spawn=spawn)
        self.http_server = StreamServer(config, self.service)

        self._stop_event: Optional[asyncio.Event] = None

    def _setup_signals(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self.request_shutdown, signum)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                signal.signal(signum, lambda s, f: self.request_shutdown(s))

    def request_shutdown(self, signum: Optional[int] = None) -> None:
        if signum is not None:
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
        if self._stop_event is not None:
            self._stop_event.set()

    async def start(self) -> None:
        logger.info("=" * 50)
        logger.info("Starting live CCTV server")
        logger.info("=" * 50)

        try:
            await self.http_server.start()
        except OSError as e:
            logger.error(
                f"Could not bind to {self.http_server.host}:{self.http_server.port}: {e}"
            )
            raise

    async def stop(self) -> None:
        logger.info("Shutting down...")

        await self.service.shutdown(timeout=self.config.get_shutdown_timeout())
        await self.http_server.stop()

        logger.info("Server stopped")

    async def run(self) -> None:
        """Main run loop."""
        self._stop_event = asyncio.Event()
        self._setup_signals()

        await self.start()

        try:
            await self._stop_event.wait()
        finally:
            await self.stop()


@click.command()
@click.option(
    '--config', '-c',
    default='config.yaml',
    help='Path to configuration file'
)
@click.option('--host', default=None, help='Override server.host')
@click.option('--port', '-p', type=int, default=None, help='Override server.port')
@click.option(
    '--check',
    is_flag=True,
    help='Check that FFmpeg is available and exit'
)
def main(config: str, host: Optional[str], port: Optional[int], check: bool):
    """
    Live CCTV Streaming Server

    Converts RTSP camera feeds to MJPEG and streams them to browsers
    over WebSockets.
    """
    try:
        cfg = load_config(config)

        if host is not None:
            cfg.set('server.host', host)
        if port is not None:
            cfg.set('server.port', port)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    setup_from_config(cfg.get_logging_config())

    if check:
        if ffmpeg_available(cfg):
            click.echo("FFmpeg found")
            sys.exit(0)
        click.echo("FFmpeg not found in PATH", err=True)
        sys.exit(1)

    if not ffmpeg_available(cfg):
        logger.warning("FFmpeg not found in PATH - streams will fail to start")

    server = LiveServer(cfg)

    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except OSError as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Server error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
