"""
Tests for the HTTP API and WebSocket endpoint.
"""

import pytest
from aiohttp import WSMsgType

from livecam.server.http_server import StreamServer
from livecam.utils.config import Config


@pytest.fixture
def static_dir(tmp_path):
    (tmp_path / 'live.html').write_text('<html><body>viewer</body></html>')
    return tmp_path


@pytest.fixture
def config(static_dir):
    return Config({'server': {'static_dir': str(static_dir), 'cors_enabled': True}})


@pytest.fixture
async def client(aiohttp_client, config, service):
    server = StreamServer(config, service)
    return await aiohttp_client(server.create_app())


async def create_camera(client, name="Door", rtsp_url="rtsp://x"):
    resp = await client.post('/api/cameras', json={'name': name, 'rtsp_url': rtsp_url})
    assert resp.status == 201
    return await resp.json()


class TestCameraApi:
    """Test the camera management endpoints."""

    async def test_create(self, client):
        camera = await create_camera(client)

        assert camera['name'] == 'Door'
        assert camera['status'] == 'offline'
        assert camera['stream_url'] == f"/live/{camera['id']}"

    async def test_create_accepts_camel_case_url(self, client):
        resp = await client.post('/api/cameras', json={'name': 'Door', 'rtspUrl': 'rtsp://x'})

        assert resp.status == 201
        assert (await resp.json())['rtsp_url'] == 'rtsp://x'

    async def test_create_missing_fields(self, client):
        resp = await client.post('/api/cameras', json={'name': 'Door'})

        assert resp.status == 400
        assert 'required' in (await resp.json())['error']

    async def test_create_invalid_json(self, client):
        resp = await client.post(
            '/api/cameras',
            data='not json',
            headers={'Content-Type': 'application/json'}
        )

        assert resp.status == 400

    async def test_create_non_object(self, client):
        resp = await client.post('/api/cameras', json=['Door', 'rtsp://x'])

        assert resp.status == 400

    async def test_list(self, client):
        await create_camera(client, "Door")
        await create_camera(client, "Yard")

        resp = await client.get('/api/cameras')

        assert resp.status == 200
        assert [c['name'] for c in await resp.json()] == ['Door', 'Yard']

    async def test_get_unknown(self, client):
        resp = await client.get('/api/cameras/missing')

        assert resp.status == 404
        assert 'error' in await resp.json()

    async def test_delete(self, client):
        camera = await create_camera(client)

        resp = await client.delete(f"/api/cameras/{camera['id']}")
        assert resp.status == 200

        resp = await client.delete(f"/api/cameras/{camera['id']}")
        assert resp.status == 404

    async def test_cors_headers(self, client):
        resp = await client.get('/api/cameras')

        assert resp.headers['Access-Control-Allow-Origin'] == '*'


class TestStreamApi:
    """Test start/stop endpoints."""

    async def test_start_and_stop(self, client, spawner, wait_until, service):
        camera = await create_camera(client)

        resp = await client.post(f"/api/cameras/{camera['id']}/start")
        assert resp.status == 200
        assert (await resp.json())['camera']['status'] == 'live'

        resp = await client.post(f"/api/cameras/{camera['id']}/start")
        assert resp.status == 400

        resp = await client.post(f"/api/cameras/{camera['id']}/stop")
        assert resp.status == 200

        await wait_until(lambda: len(service.frame_sources) == 0)
        resp = await client.get(f"/api/cameras/{camera['id']}")
        assert (await resp.json())['status'] == 'offline'

        resp = await client.post(f"/api/cameras/{camera['id']}/stop")
        assert resp.status == 400

    async def test_start_unknown(self, client):
        resp = await client.post('/api/cameras/missing/start')

        assert resp.status == 404

    async def test_stop_unknown(self, client):
        resp = await client.post('/api/cameras/missing/stop')

        assert resp.status == 404

    async def test_start_failure(self, client, spawner):
        camera = await create_camera(client)
        spawner.fail = FileNotFoundError("ffmpeg")

        resp = await client.post(f"/api/cameras/{camera['id']}/start")

        assert resp.status == 500
        resp = await client.get(f"/api/cameras/{camera['id']}")
        assert (await resp.json())['status'] == 'offline'

    async def test_health(self, client):
        camera = await create_camera(client)
        await create_camera(client, "Yard")
        await client.post(f"/api/cameras/{camera['id']}/start")

        resp = await client.get('/health')

        assert resp.status == 200
        data = await resp.json()
        assert data['status'] == 'ok'
        assert data['cameras'] == 2
        assert data['active_streams'] == 1


class TestViewerPage:
    """Test the viewer page route."""

    async def test_viewer_page(self, client):
        camera = await create_camera(client)

        resp = await client.get(camera['stream_url'])

        assert resp.status == 200
        assert 'viewer' in await resp.text()

    async def test_viewer_page_unknown_camera(self, client):
        resp = await client.get('/live/missing')

        assert resp.status == 404

    async def test_index_without_admin_page(self, client):
        resp = await client.get('/')

        assert resp.status == 200
        assert (await resp.json())['cameras'] == '/api/cameras'


class TestWebSocket:
    """Test viewer WebSocket connections."""

    async def test_unknown_camera_closed(self, client, service):
        ws = await client.ws_connect('/ws?cameraId=missing')

        msg = await ws.receive(timeout=1)

        assert msg.type == WSMsgType.CLOSE
        assert msg.data == 1008
        assert service.subscribers.total() == 0
        await ws.close()

    async def test_missing_camera_id_closed(self, client):
        ws = await client.ws_connect('/ws')

        msg = await ws.receive(timeout=1)

        assert msg.type == WSMsgType.CLOSE
        assert msg.data == 1008
        await ws.close()

    async def test_receive_frames_until_stream_ends(self, client, service, spawner, wait_until):
        camera = await create_camera(client)
        await client.post(f"/api/cameras/{camera['id']}/start")

        ws = await client.ws_connect(f"/ws?cameraId={camera['id']}")
        await wait_until(lambda: service.subscribers.count(camera['id']) == 1)

        spawner.last.emit(b'\xff\xd8frame-1\xff\xd9')
        assert await ws.receive_bytes(timeout=1) == b'\xff\xd8frame-1\xff\xd9'

        spawner.last.exit(1)
        msg = await ws.receive(timeout=1)

        assert msg.type == WSMsgType.CLOSE
        assert msg.data == 1000
        resp = await client.get(f"/api/cameras/{camera['id']}")
        assert (await resp.json())['status'] == 'offline'
        await ws.close()

    async def test_client_disconnect_unsubscribes(self, client, service, wait_until):
        camera = await create_camera(client)

        ws = await client.ws_connect(f"/ws?cameraId={camera['id']}")
        await wait_until(lambda: service.subscribers.count(camera['id']) == 1)

        await ws.close()

        await wait_until(lambda: service.subscribers.count(camera['id']) == 0)

    async def test_heartbeat_configured(self, service):
        assert StreamServer(Config({}), service).ws_heartbeat == 30

        server = StreamServer(Config({'server': {'ws_heartbeat': 5}}), service)

        assert server.ws_heartbeat == 5
