"""Tests for the tile server."""

from __future__ import annotations

import io
from typing import Any

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from roadoverlay.cache import TileCache
from roadoverlay.config import OverlayConfig
from roadoverlay.geo import OSMFetchError
from roadoverlay.server import create_app

from conftest import RENDER_TILE, way_element


TILE_URL = "/overlays/roads/{}/{}/{}.png"


def make_client(fetch: Any, config: OverlayConfig | None = None) -> TestClient:
    return TestClient(create_app(config or OverlayConfig(), TileCache(fetch)))


class TestRoadTileEndpoint:
    """Tests for the road overlay tile route."""

    def test_renders_png(self, street_elements: list[Any]) -> None:
        """Test that a valid tile is served as a transparent PNG with roads."""
        calls = []

        async def fetch(bbox: Any) -> list[Any]:
            calls.append(bbox)
            return street_elements

        with make_client(fetch) as client:
            response = client.get(TILE_URL.format(*RENDER_TILE))

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        image = Image.open(io.BytesIO(response.content))
        assert image.size == (256, 256)
        assert image.mode == "RGBA"
        assert len(calls) == 1

    def test_neighbouring_tiles_share_base_tile(self, street_elements: list[Any]) -> None:
        """Test that tiles under one base tile trigger a single fetch."""
        calls = []

        async def fetch(bbox: Any) -> list[Any]:
            calls.append(bbox)
            return street_elements

        zoom, x, y = RENDER_TILE
        with make_client(fetch) as client:
            for dx in range(3):
                assert client.get(TILE_URL.format(zoom, x + dx, y)).status_code == 200
            health = client.get("/health").json()

        assert len(calls) == 1
        assert health["cache"]["hits"] == 2
        assert health["cache"]["size"] == 1

    @pytest.mark.parametrize("zoom", [0, 14, 17])
    def test_zoom_below_minimum(self, zoom: int) -> None:
        """Test that zoom levels below the minimum are a bad request."""

        async def fetch(bbox: Any) -> list[Any]:
            raise AssertionError("no fetch expected")

        with make_client(fetch) as client:
            response = client.get(TILE_URL.format(zoom, 0, 0))

        assert response.status_code == 400
        assert "minimum" in response.json()["detail"]

    @pytest.mark.parametrize("zoom", [25, 64, 1100])
    def test_zoom_above_maximum(self, zoom: int) -> None:
        """Test that zoom levels past the deepest supported level are a bad request."""

        async def fetch(bbox: Any) -> list[Any]:
            raise AssertionError("no fetch expected")

        with make_client(fetch) as client:
            response = client.get(TILE_URL.format(zoom, 0, 0))

        assert response.status_code == 400
        assert "maximum" in response.json()["detail"]

    @pytest.mark.parametrize(("x", "y"), [(262144, 0), (0, 262144), (-1, 5)])
    def test_tile_outside_map(self, x: int, y: int) -> None:
        """Test that indices outside the tile pyramid are a bad request."""

        async def fetch(bbox: Any) -> list[Any]:
            raise AssertionError("no fetch expected")

        with make_client(fetch) as client:
            response = client.get(TILE_URL.format(18, x, y))

        assert response.status_code == 400

    def test_custom_minimum_zoom(self, street_elements: list[Any]) -> None:
        """Test that the minimum zoom comes from the config."""

        async def fetch(bbox: Any) -> list[Any]:
            return street_elements

        config = OverlayConfig(min_zoom=16)
        zoom, x, y = RENDER_TILE
        with make_client(fetch, config) as client:
            response = client.get(TILE_URL.format(16, x // 4, y // 4))

        assert response.status_code == 200

    def test_upstream_failure(self) -> None:
        """Test that a failed Overpass request is a bad gateway."""

        async def fetch(bbox: Any) -> list[Any]:
            raise OSMFetchError("Rate limited by Overpass API")

        with make_client(fetch) as client:
            response = client.get(TILE_URL.format(*RENDER_TILE))

        assert response.status_code == 502
        assert response.json()["detail"] == "Rate limited by Overpass API"

    def test_inconsistent_data(self) -> None:
        """Test that malformed upstream data is a bad gateway."""

        async def fetch(bbox: Any) -> list[Any]:
            return [way_element(1, [1, 2], {"highway": "primary"})]

        with make_client(fetch) as client:
            response = client.get(TILE_URL.format(*RENDER_TILE))

        assert response.status_code == 502
        assert "missing" in response.json()["detail"]


class TestHealth:
    """Tests for the health route."""

    def test_health(self) -> None:
        """Test that health reports an empty cache before any request."""

        async def fetch(bbox: Any) -> list[Any]:
            return []

        with make_client(fetch) as client:
            response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["cache"]["size"] == 0
        assert body["cache"]["capacity"] == 16

    def test_app_state(self) -> None:
        """Test that the app exposes its config and cache."""

        async def fetch(bbox: Any) -> list[Any]:
            return []

        config = OverlayConfig()
        cache = TileCache(fetch)
        app = create_app(config, cache)
        assert app.state.config is config
        assert app.state.tile_cache is cache
