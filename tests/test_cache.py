"""Tests for the cache module."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from roadoverlay.cache import TileCache
from roadoverlay.classify import DataInconsistencyError
from roadoverlay.config import OverlayConfig
from roadoverlay.geo import OSMFetchError
from roadoverlay.geometry import PreconditionError, Tile, TileKey

from conftest import BASE_TILE, RENDER_TILE, node_element, way_element


class FakeSource:
    """Map-data source that counts calls and can be held back or made to fail."""

    def __init__(
        self,
        elements: list[dict[str, Any]] | None = None,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.elements = elements if elements is not None else []
        self.error = error
        self.gate = gate
        self.calls: list[Any] = []

    async def __call__(self, bbox: Any) -> list[dict[str, Any]]:
        self.calls.append(bbox)
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return list(self.elements)


def one_road() -> list[dict[str, Any]]:
    return [
        way_element(1, [1, 2], {"highway": "residential"}),
        node_element(1, 49.0, 8.0),
        node_element(2, 49.0, 8.1),
    ]


class TestTileCacheInit:
    """Tests for TileCache construction."""

    def test_defaults(self) -> None:
        """Test the default base zoom and capacity."""
        cache = TileCache(FakeSource())
        assert cache.base_zoom == 14
        assert cache.capacity == 16
        assert len(cache) == 0

    def test_invalid_capacity(self) -> None:
        """Test that a cache must hold at least one tile."""
        with pytest.raises(ValueError, match="capacity"):
            TileCache(FakeSource(), capacity=0)


class TestResolve:
    """Tests for TileCache.resolve."""

    def test_returns_view_of_requested_tile(self) -> None:
        """Test that the resolved tile has the requested coordinates and base data."""
        source = FakeSource(one_road())
        cache = TileCache(source)

        tile = asyncio.run(cache.resolve(*RENDER_TILE))

        assert tile.key == TileKey(*RENDER_TILE)
        assert len(tile.roads) == 1
        assert TileKey(*BASE_TILE) in cache

    def test_queries_oversized_base_box(self) -> None:
        """Test that the source is asked for the base tile box grown by oversize."""
        source = FakeSource()
        cache = TileCache(source, oversize=0.25)

        asyncio.run(cache.resolve(*RENDER_TILE))

        assert source.calls == [Tile(*BASE_TILE).bounding_box(0.25)]

    def test_concurrent_requests_build_once(self) -> None:
        """Test that simultaneous requests under one base tile share a single build."""
        source = FakeSource(one_road())
        cache = TileCache(source)
        zoom, x, y = RENDER_TILE

        async def run() -> list[Tile]:
            return await asyncio.gather(
                *(cache.resolve(zoom, x + dx, y + dy) for dx in range(4) for dy in range(2))
            )

        tiles = asyncio.run(run())

        assert len(source.calls) == 1
        assert len({tile.key for tile in tiles}) == 8
        assert all(tile.graph is tiles[0].graph for tile in tiles)
        assert cache.stats()["builds"] == 1

    def test_sequential_requests_hit_cache(self) -> None:
        """Test that a second request reuses the finished build."""
        source = FakeSource(one_road())
        cache = TileCache(source)

        async def run() -> tuple[Tile, Tile]:
            first = await cache.resolve(*RENDER_TILE)
            second = await cache.resolve(*BASE_TILE)
            return first, second

        first, second = asyncio.run(run())

        assert len(source.calls) == 1
        assert first.roads[0] is second.roads[0]
        stats = cache.stats()
        assert stats["misses"] == 1
        assert stats["hits"] == 1
        assert stats["size"] == 1
        assert stats["capacity"] == 16

    def test_zoom_below_base_raises(self) -> None:
        """Test that tiles above the base zoom cannot be served."""
        source = FakeSource()
        cache = TileCache(source)
        with pytest.raises(PreconditionError, match="zoom 13 < 14"):
            asyncio.run(cache.resolve(13, 0, 0))
        assert source.calls == []
        assert len(cache) == 0


class TestEviction:
    """Tests for least-recently-used eviction."""

    def test_capacity_bound(self) -> None:
        """Test that the 17th base tile evicts the first one."""
        source = FakeSource()
        cache = TileCache(source)

        async def run() -> None:
            for x in range(17):
                await cache.resolve(14, x, 0)

        asyncio.run(run())

        assert len(cache) == 16
        assert TileKey(14, 0, 0) not in cache
        assert cache.keys()[0] == TileKey(14, 1, 0)
        assert cache.stats()["evictions"] == 1

    def test_access_refreshes_entry(self) -> None:
        """Test that reading a tile moves it to the most recently used end."""
        source = FakeSource()
        cache = TileCache(source, capacity=3)

        async def run() -> None:
            for x in range(3):
                await cache.resolve(14, x, 0)
            await cache.resolve(15, 0, 0)
            await cache.resolve(14, 3, 0)

        asyncio.run(run())

        assert cache.keys() == [TileKey(14, 2, 0), TileKey(14, 0, 0), TileKey(14, 3, 0)]
        assert len(source.calls) == 4

    def test_evicted_tile_is_rebuilt(self) -> None:
        """Test that requesting an evicted tile fetches it again."""
        source = FakeSource()
        cache = TileCache(source, capacity=1)

        async def run() -> None:
            await cache.resolve(14, 0, 0)
            await cache.resolve(14, 1, 0)
            await cache.resolve(14, 0, 0)

        asyncio.run(run())

        assert len(source.calls) == 3
        assert cache.keys() == [TileKey(14, 0, 0)]

    def test_evicted_build_still_completes(self) -> None:
        """Test that callers waiting on an evicted in-flight build get its result."""
        gate = asyncio.Event()
        source = FakeSource(one_road(), gate=gate)
        cache = TileCache(source, capacity=1)

        async def run() -> tuple[Tile, Tile]:
            first = asyncio.create_task(cache.resolve(14, 0, 0))
            await asyncio.sleep(0)
            second = asyncio.create_task(cache.resolve(14, 1, 0))
            await asyncio.sleep(0)
            gate.set()
            return await first, await second

        first, second = asyncio.run(run())

        assert first.key == TileKey(14, 0, 0)
        assert len(first.roads) == 1
        assert second.key == TileKey(14, 1, 0)
        assert cache.keys() == [TileKey(14, 1, 0)]


class TestFailures:
    """Tests for failed base tile builds."""

    def test_failure_reaches_every_waiter(self) -> None:
        """Test that all concurrent requests see the single upstream failure."""
        source = FakeSource(error=OSMFetchError("Rate limited by Overpass API"))
        cache = TileCache(source)
        zoom, x, y = RENDER_TILE

        async def run() -> list[Any]:
            return await asyncio.gather(
                *(cache.resolve(zoom, x + dx, y) for dx in range(3)),
                return_exceptions=True,
            )

        results = asyncio.run(run())

        assert len(source.calls) == 1
        assert all(isinstance(result, OSMFetchError) for result in results)
        assert cache.stats()["failures"] == 1

    def test_failure_is_cached_until_evicted(self) -> None:
        """Test that a failed build is re-raised without refetching, until evicted."""
        source = FakeSource(error=OSMFetchError("HTTP error from Overpass API: 504"))
        cache = TileCache(source, capacity=1)

        async def run() -> None:
            for _ in range(2):
                with pytest.raises(OSMFetchError):
                    await cache.resolve(14, 0, 0)
            assert len(source.calls) == 1

            source.error = None
            await cache.resolve(14, 1, 0)
            await cache.resolve(14, 0, 0)

        asyncio.run(run())

        assert len(source.calls) == 3

    def test_inconsistent_data_fails_build(self) -> None:
        """Test that malformed map data surfaces as a data inconsistency."""
        source = FakeSource([way_element(1, [1, 2], {"highway": "primary"})])
        cache = TileCache(source)
        with pytest.raises(DataInconsistencyError):
            asyncio.run(cache.resolve(*RENDER_TILE))


class TestFromConfig:
    """Tests for TileCache.from_config."""

    def test_uses_config_values(self) -> None:
        """Test that the config drives zoom, capacity and the Overpass request."""
        config = OverlayConfig(
            base_zoom=13,
            cache_size=4,
            min_zoom=17,
            overpass_url="http://overpass.test/api/interpreter",
            overpass_timeout=5.0,
            bbox_oversize=0.25,
        )
        fetch = AsyncMock(return_value=[])

        with patch("roadoverlay.cache.fetch_road_data", fetch):
            cache = TileCache.from_config(config)
            asyncio.run(cache.resolve(17, 10, 20))

        assert cache.base_zoom == 13
        assert cache.capacity == 4
        fetch.assert_awaited_once()
        bbox = fetch.call_args.args[0]
        assert bbox == Tile(13, 0, 1).bounding_box(0.25)
        assert fetch.call_args.kwargs == {
            "url": "http://overpass.test/api/interpreter",
            "timeout": 5.0,
        }

    def test_default_oversize_covers_half_a_tile(self) -> None:
        """Test that the default query box reaches half a base tile past each edge."""
        fetch = AsyncMock(return_value=[])

        with patch("roadoverlay.cache.fetch_road_data", fetch):
            cache = TileCache.from_config(OverlayConfig())
            asyncio.run(cache.resolve(*RENDER_TILE))

        bbox = fetch.call_args.args[0]
        base = Tile(*BASE_TILE)
        assert bbox == base.bounding_box(0.5)
        assert bbox.north - base.nw.lat == pytest.approx((base.nw.lat - base.se.lat) / 2)
        assert base.nw.lon - bbox.west == pytest.approx((base.se.lon - base.nw.lon) / 2)
