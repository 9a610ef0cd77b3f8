"""HTTP endpoint serving road overlay tiles."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Response

from .cache import TileCache
from .classify import DataInconsistencyError
from .config import MAX_ZOOM, OverlayConfig
from .geo import OSMFetchError
from .geometry import TileKey
from .render import RoadRenderer, render_road_tile


__all__ = ["create_app"]

logger = logging.getLogger(__name__)


def create_app(config: OverlayConfig | None = None, cache: TileCache | None = None) -> FastAPI:
    """Create the tile server.

    Args:
        config: Server settings; read from the environment when omitted.
        cache: Tile cache to serve from; built from ``config`` when omitted.

    Returns:
        A FastAPI application exposing ``/overlays/roads/{zoom}/{x}/{y}.png``.
    """
    from . import __version__

    if config is None:
        config = OverlayConfig.from_env()
    if cache is None:
        cache = TileCache.from_config(config)
    renderer = RoadRenderer()

    app = FastAPI(title="Road Overlay Tiles", version=__version__)
    app.state.config = config
    app.state.tile_cache = cache

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "ok", "cache": cache.stats()}

    @app.get("/overlays/roads/{zoom}/{x}/{y}.png")
    async def road_tile(zoom: int, x: int, y: int) -> Response:
        key = TileKey(zoom, x, y)
        if zoom < config.min_zoom:
            raise HTTPException(
                status_code=400,
                detail=f"Zoom {zoom} is below the minimum of {config.min_zoom}",
            )
        if zoom > MAX_ZOOM:
            raise HTTPException(
                status_code=400,
                detail=f"Zoom {zoom} is above the maximum of {MAX_ZOOM}",
            )
        if not key.in_pyramid:
            raise HTTPException(status_code=400, detail=f"Tile {key} is outside the map")

        try:
            png = await render_road_tile(cache, zoom, x, y, renderer=renderer)
        except (OSMFetchError, DataInconsistencyError) as e:
            logger.error("Failed to render %s: %s", key, e)
            raise HTTPException(status_code=502, detail=str(e)) from e
        return Response(content=png, media_type="image/png")

    return app
