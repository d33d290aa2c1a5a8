"""
HTTP server for camera management and live viewing.

REST endpoints for the camera registry, a WebSocket endpoint that
streams MJPEG bytes to viewers, and the viewer page.
"""

from pathlib import Path
from typing import Optional

from aiohttp import web

from ..service import CameraService
from ..utils.config import Config
from ..utils.exceptions import (
    CameraNotFoundError,
    InvalidInputError,
    LiveCamError,
    StartFailureError,
    StreamStateError,
)
from ..utils.logger import get_logger


logger = get_logger(__name__)

VIEWER_PAGE = 'live.html'
INDEX_PAGE = 'index.html'

# Most specific class first
ERROR_STATUS = (
    (InvalidInputError, 400),
    (CameraNotFoundError, 404),
    (StreamStateError, 400),
    (StartFailureError, 500),
)


class StreamServer:
    """
    Async HTTP/WebSocket server in front of the camera service.
    """

    def __init__(self, config: Config, service: CameraService):
        """
        Initialize the server.

        Args:
            config: Server configuration
            service: Camera service the routes operate on
        """
        self.config = config
        self.service = service

        server_config = config.get_server_config()
        self.host = server_config.get('host', '0.0.0.0')
        self.port = server_config.get('port', 3000)
        self.cors_enabled = server_config.get('cors_enabled', False)
        self.cors_origins = server_config.get('cors_origins', '*')
        self.ws_heartbeat = server_config.get('ws_heartbeat', 30)
        self.static_dir: Optional[Path] = config.get_static_dir()

        self._app: Optional[web.Application] = None
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        middlewares = []
        if self.cors_enabled:
            middlewares.append(self._cors_middleware)
        middlewares.append(self._error_middleware)

        app = web.Application(middlewares=middlewares)

        app.router.add_get('/', self._handle_index)
        app.router.add_get('/health', self._handle_health)
        app.router.add_get('/ws', self._handle_websocket)
        app.router.add_get('/live/{camera_id}', self._handle_viewer_page)

        app.router.add_post('/api/cameras', self._handle_create)
        app.router.add_get('/api/cameras', self._handle_list)
        app.router.add_get('/api/cameras/{camera_id}', self._handle_get)
        app.router.add_delete('/api/cameras/{camera_id}', self._handle_delete)
        app.router.add_post('/api/cameras/{camera_id}/start', self._handle_start)
        app.router.add_post('/api/cameras/{camera_id}/stop', self._handle_stop)

        # Registered last so API routes take precedence
        if self.static_dir and self.static_dir.is_dir():
            app.router.add_static('/', self.static_dir)

        app.on_shutdown.append(self._on_shutdown)

        return app

    @web.middleware
    async def _cors_middleware(self, request: web.Request, handler):
        """Add CORS headers to responses."""
        response = await handler(request)

        response.headers['Access-Control-Allow-Origin'] = self.cors_origins
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST, DELETE, OPTIONS'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type'

        return response

    @web.middleware
    async def _error_middleware(self, request: web.Request, handler):
        """Turn service errors into JSON error responses."""
        try:
            return await handler(request)
        except LiveCamError as e:
            for error_type, status in ERROR_STATUS:
                if isinstance(e, error_type):
                    break
            else:
                status = 500

            if status >= 500:
                logger.error(f"{request.method} {request.path} failed: {e}")

            return web.json_response({'error': str(e)}, status=status)

    async def _read_json(self, request: web.Request) -> dict:
        try:
            body = await request.json()
        except ValueError:
            raise InvalidInputError("Request body must be valid JSON")

        if not isinstance(body, dict):
            raise InvalidInputError("Request body must be a JSON object")
        return body

    async def _handle_index(self, request: web.Request) -> web.StreamResponse:
        """Serve the admin page, or a short JSON summary without one."""
        if self.static_dir and (self.static_dir / INDEX_PAGE).is_file():
            return web.FileResponse(self.static_dir / INDEX_PAGE)

        return web.json_response({
            'service': 'livecam',
            'cameras': '/api/cameras',
            'health': '/health',
        })

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response(self.service.health().to_dict())

    async def _handle_create(self, request: web.Request) -> web.Response:
        body = await self._read_json(request)

        rtsp_url = body.get('rtsp_url', body.get('rtspUrl'))
        camera = self.service.create_camera(body.get('name'), rtsp_url)

        return web.json_response(camera.to_dict(), status=201)

    async def _handle_list(self, request: web.Request) -> web.Response:
        return web.json_response([c.to_dict() for c in self.service.list_cameras()])

    async def _handle_get(self, request: web.Request) -> web.Response:
        camera = self.service.get_camera(request.match_info['camera_id'])
        return web.json_response(camera.to_dict())

    async def _handle_delete(self, request: web.Request) -> web.Response:
        await self.service.delete_camera(request.match_info['camera_id'])
        return web.json_response({'message': 'Camera deleted successfully'})

    async def _handle_start(self, request: web.Request) -> web.Response:
        camera = await self.service.start_stream(request.match_info['camera_id'])
        return web.json_response({
            'message': 'Stream started successfully',
            'camera': camera.to_dict(),
        })

    async def _handle_stop(self, request: web.Request) -> web.Response:
        camera = await self.service.stop_stream(request.match_info['camera_id'])
        return web.json_response({
            'message': 'Stream stop requested',
            'camera': camera.to_dict(),
        })

    async def _handle_viewer_page(self, request: web.Request) -> web.StreamResponse:
        """Serve the viewer page for a registered camera."""
        self.service.get_camera(request.match_info['camera_id'])

        page = self.static_dir / VIEWER_PAGE if self.static_dir else None
        if page is None or not page.is_file():
            logger.warning(f"Viewer page not found: {page}")
            return web.Response(text="Viewer page not found", status=404)

        return web.FileResponse(page)

    async def _handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Hand a viewer WebSocket to the connection gateway."""
        ws = web.WebSocketResponse(heartbeat=self.ws_heartbeat)
        await ws.prepare(request)

        await self.service.gateway.serve(request.query.get('cameraId'), ws)
        return ws

    async def _on_shutdown(self, app: web.Application) -> None:
        """Close viewers still attached when the server goes down."""
        for camera in self.service.list_cameras():
            await self.service.router.disconnect_all(camera.id)

    async def start(self) -> None:
        """Start the HTTP server."""
        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()

        logger.info(f"Live CCTV server running on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            self._app = None
            logger.info("HTTP server stopped")
