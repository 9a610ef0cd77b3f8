"""In-memory cache of road graphs built at a fixed base zoom level.

Each base tile is built at most once while it stays in the cache: concurrent
requests for the same base tile share a single asyncio task. Eviction only
drops the index entry; tiles and tasks already handed out stay valid.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import OrderedDict
from typing import TYPE_CHECKING, Any

from .classify import build_road_graph
from .geo import fetch_road_data
from .geometry import PreconditionError, Tile, TileKey


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from .config import OverlayConfig
    from .projection import BoundingBox

    MapDataSource = Callable[[BoundingBox], Awaitable[Sequence[Any]]]


__all__ = [
    "DEFAULT_BASE_ZOOM",
    "DEFAULT_CAPACITY",
    "TileCache",
]

logger = logging.getLogger(__name__)

DEFAULT_BASE_ZOOM = 14
DEFAULT_CAPACITY = 16


class TileCache:
    """LRU cache of base-zoom tiles keyed by tile coordinates.

    Args:
        fetch: Map-data source returning Overpass elements for a bounding box.
        base_zoom: Zoom level at which road graphs are built.
        capacity: Maximum number of base tiles kept in the index.
        oversize: Fraction of a tile's extent added around its query box.
    """

    def __init__(
        self,
        fetch: MapDataSource,
        base_zoom: int = DEFAULT_BASE_ZOOM,
        capacity: int = DEFAULT_CAPACITY,
        oversize: float = 0.0,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._fetch = fetch
        self.base_zoom = base_zoom
        self.capacity = capacity
        self.oversize = oversize
        self._builds: OrderedDict[TileKey, asyncio.Task[Tile]] = OrderedDict()
        self._lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "evictions": 0, "builds": 0, "failures": 0}

    @classmethod
    def from_config(cls, config: OverlayConfig) -> TileCache:
        """Create a cache backed by the Overpass API settings in ``config``."""

        async def fetch(bbox: BoundingBox) -> Sequence[Any]:
            return await fetch_road_data(
                bbox,
                url=config.overpass_url,
                timeout=config.overpass_timeout,
            )

        return cls(
            fetch,
            base_zoom=config.base_zoom,
            capacity=config.cache_size,
            oversize=config.bbox_oversize,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._builds)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._builds

    def keys(self) -> list[TileKey]:
        """Cached base tile keys, least recently used first."""
        with self._lock:
            return list(self._builds)

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {**self._stats, "size": len(self._builds), "capacity": self.capacity}

    async def resolve(self, zoom: int, x: int, y: int) -> Tile:
        """Return a tile at (zoom, x, y) sharing its base tile's road graph.

        Raises:
            PreconditionError: If ``zoom`` is below the base zoom.
            OSMFetchError: If the shared base tile build failed upstream.
            DataInconsistencyError: If the upstream data was malformed.
        """
        if zoom < self.base_zoom:
            raise PreconditionError(
                f"Cannot load tile with zoom {zoom} < {self.base_zoom}"
            )
        key = TileKey(zoom, x, y).ancestor(self.base_zoom)
        build = self._get_build(key)
        # shield: a cancelled request must not cancel a build other requests share
        base = await asyncio.shield(build)
        return Tile.view(zoom, x, y, base)

    def _get_build(self, key: TileKey) -> asyncio.Task[Tile]:
        with self._lock:
            build = self._builds.get(key)
            if build is not None:
                self._builds.move_to_end(key)
                self._stats["hits"] += 1
                logger.debug("Cache hit", extra={"key": str(key)})
                return build

            self._stats["misses"] += 1
            tile = Tile(key.zoom, key.x, key.y)
            build = asyncio.ensure_future(self._build(tile))
            self._builds[key] = build

            while len(self._builds) > self.capacity:
                evicted, _ = self._builds.popitem(last=False)
                self._stats["evictions"] += 1
                logger.info("Evicted %s from tile cache", evicted, extra={"key": str(evicted)})

            logger.info("Caching %s (%d / %d)", tile, len(self._builds), self.capacity)
            return build

    async def _build(self, tile: Tile) -> Tile:
        if tile.zoom != self.base_zoom:
            raise PreconditionError(f"Trying to load geometry for incorrect zoom level {tile.zoom}")
        with self._lock:
            self._stats["builds"] += 1
        try:
            elements = await self._fetch(tile.bounding_box(self.oversize))
            tile.set_graph(build_road_graph(tile, elements))
        except Exception as e:
            with self._lock:
                self._stats["failures"] += 1
            logger.error("Failed to build %s: %s", tile, e)
            raise
        logger.info(
            "Built %s: %d roads, %d junctions",
            tile,
            len(tile.roads),
            len(tile.junctions),
        )
        return tile
