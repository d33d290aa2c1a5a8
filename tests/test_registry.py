"""
Tests for the in-memory camera registry.
"""

import pytest

from livecam.state.models import CameraStatus
from livecam.state.registry import CameraRegistry
from livecam.utils.exceptions import CameraNotFoundError, InvalidInputError


class TestCameraRegistry:
    """Test camera record operations."""

    @pytest.fixture
    def registry(self):
        return CameraRegistry()

    def test_create(self, registry):
        camera = registry.create("Door", "rtsp://x")

        assert camera.name == "Door"
        assert camera.rtsp_url == "rtsp://x"
        assert camera.status == CameraStatus.OFFLINE
        assert camera.stream_url == f"/live/{camera.id}"
        assert camera.id in registry
        assert len(registry) == 1

    def test_create_strips_whitespace(self, registry):
        camera = registry.create("  Door  ", " rtsp://x ")

        assert camera.name == "Door"
        assert camera.rtsp_url == "rtsp://x"

    @pytest.mark.parametrize("name,rtsp_url", [
        ("", "rtsp://x"),
        ("Door", ""),
        ("   ", "rtsp://x"),
        (None, "rtsp://x"),
        ("Door", None),
        (42, "rtsp://x"),
    ])
    def test_create_invalid(self, registry, name, rtsp_url):
        with pytest.raises(InvalidInputError):
            registry.create(name, rtsp_url)

        assert len(registry) == 0

    def test_ids_are_unique(self, registry):
        ids = {registry.create(f"cam{i}", "rtsp://x").id for i in range(20)}

        assert len(ids) == 20

    def test_list_in_creation_order(self, registry):
        names = ["Door", "Garage", "Yard"]
        for name in names:
            registry.create(name, f"rtsp://{name.lower()}")

        assert [c.name for c in registry.list()] == names

    def test_get(self, registry):
        camera = registry.create("Door", "rtsp://x")

        assert registry.get(camera.id) is camera
        assert registry.find(camera.id) is camera

    def test_get_unknown(self, registry):
        with pytest.raises(CameraNotFoundError) as exc_info:
            registry.get("missing")

        assert exc_info.value.camera_id == "missing"
        assert registry.find("missing") is None

    def test_set_status(self, registry):
        camera = registry.create("Door", "rtsp://x")

        registry.set_status(camera.id, CameraStatus.LIVE)

        assert registry.get(camera.id).status == CameraStatus.LIVE

    def test_set_status_unknown(self, registry):
        with pytest.raises(CameraNotFoundError):
            registry.set_status("missing", CameraStatus.LIVE)

    def test_delete(self, registry):
        camera = registry.create("Door", "rtsp://x")

        deleted = registry.delete(camera.id)

        assert deleted is camera
        assert camera.id not in registry
        assert registry.list() == []

    def test_delete_unknown(self, registry):
        with pytest.raises(CameraNotFoundError):
            registry.delete("missing")
