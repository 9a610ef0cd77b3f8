"""Command-line interface for road overlay tiles."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import NoReturn

from .cache import TileCache
from .config import MAX_ZOOM, ConfigError, OverlayConfig, generate_output_filename
from .geo import get_coordinates
from .geometry import OverlayError, TileKey
from .projection import geo_to_tile
from .render import render_road_tile


__all__ = ["cli", "main"]

logger = logging.getLogger(__name__)


def _print_examples() -> None:
    """Print usage examples."""
    print(
        """
Road Overlay Tile Renderer
==========================

Usage:
  roadoverlay --tile <zoom>/<x>/<y> [options]
  roadoverlay --lat <lat> --lon <lon> [--zoom 18] [options]
  roadoverlay --place <name> [--zoom 18] [options]
  roadoverlay --serve [--host 127.0.0.1] [--port 8000]

Examples:
  roadoverlay --tile 18/134745/87637 -o karlsruhe.png
  roadoverlay --lat 49.0094 --lon 8.4044 --zoom 19
  roadoverlay --place "Marktplatz, Karlsruhe"
  roadoverlay --serve --port 8080

Environment:
  ROADOVERLAY_BASE_ZOOM         Zoom at which road data is fetched (default: 14)
  ROADOVERLAY_CACHE_SIZE        Base tiles kept in memory (default: 16)
  ROADOVERLAY_MIN_ZOOM          Lowest zoom that may be rendered (default: 18)
  ROADOVERLAY_OVERPASS_URL      Overpass API interpreter endpoint
  ROADOVERLAY_OVERPASS_TIMEOUT  Overpass request timeout in seconds (default: 90)
  ROADOVERLAY_BBOX_OVERSIZE     Extra margin fetched around a base tile (default: 0.5)

Rendered tiles are saved to the 'tiles/' directory unless --output is given.
"""
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="roadoverlay",
        description="Render lane-level road overlay map tiles from OpenStreetMap data",
    )
    parser.add_argument("--tile", "-t", type=str, help="Tile as zoom/x/y")
    parser.add_argument("--lat", type=float, help="Latitude of a point inside the tile")
    parser.add_argument("--lon", type=float, help="Longitude of a point inside the tile")
    parser.add_argument("--place", "-p", type=str, help="Place name to geocode")
    parser.add_argument(
        "--zoom",
        "-z",
        type=int,
        default=18,
        help="Zoom level used with --lat/--lon or --place (default: 18)",
    )
    parser.add_argument("--output", "-o", type=str, help="Output PNG path")
    parser.add_argument("--serve", action="store_true", help="Run the tile server")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Server host")
    parser.add_argument("--port", type=int, default=8000, help="Server port")
    parser.add_argument("--version", "-v", action="store_true", help="Show version")
    return parser


def parse_tile(value: str) -> TileKey:
    """Parse a ``zoom/x/y`` string.

    Raises:
        ValueError: If the value is not three slash-separated integers.
    """
    parts = value.strip().removesuffix(".png").split("/")
    if len(parts) != 3:
        raise ValueError(f"Expected zoom/x/y, got '{value}'")
    zoom, x, y = (int(part) for part in parts)
    return TileKey(zoom, x, y)


def _resolve_key(parsed: argparse.Namespace) -> TileKey | None:
    """Work out the requested tile, printing an error and returning None on failure."""
    if parsed.tile:
        try:
            return parse_tile(parsed.tile)
        except ValueError as e:
            print(f"Error: {e}")
            return None

    if parsed.lat is not None and parsed.lon is not None:
        lat, lon = parsed.lat, parsed.lon
    elif parsed.place:
        try:
            lat, lon = get_coordinates(parsed.place)
        except OverlayError as e:
            print(f"Error: {e}")
            return None
    else:
        print("Error: one of --tile, --lat/--lon or --place is required.\n")
        _print_examples()
        return None

    if not 0 <= parsed.zoom <= MAX_ZOOM:
        print(f"Error: zoom must be between 0 and {MAX_ZOOM}, got {parsed.zoom}.")
        return None
    x, y = geo_to_tile(lat, lon, parsed.zoom)
    return TileKey(parsed.zoom, x, y)


async def _render(config: OverlayConfig, key: TileKey) -> bytes:
    cache = TileCache.from_config(config)
    return await render_road_tile(cache, key.zoom, key.x, key.y)


def _serve(config: OverlayConfig, host: str, port: int) -> int:
    import uvicorn

    from .server import create_app

    logger.info("Serving road overlay tiles on http://%s:%s", host, port)
    uvicorn.run(create_app(config), host=host, port=port)
    return 0


def cli(args: list[str] | None = None) -> int:
    """Run the CLI with the given arguments.

    Args:
        args: Command line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    parser = create_parser()
    parsed = parser.parse_args(args)

    if (len(sys.argv) == 1 and args is None) or args == []:
        _print_examples()
        return 0

    if parsed.version:
        from . import __version__

        print(f"roadoverlay {__version__}")
        return 0

    try:
        config = OverlayConfig.from_env()
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    if parsed.serve:
        return _serve(config, parsed.host, parsed.port)

    key = _resolve_key(parsed)
    if key is None:
        return 1
    if key.zoom > MAX_ZOOM:
        print(f"Error: zoom {key.zoom} is above the maximum of {MAX_ZOOM}.")
        return 1
    if not key.in_pyramid:
        print(f"Error: tile {key} is outside the map.")
        return 1
    if key.zoom < config.min_zoom:
        print(f"Error: zoom {key.zoom} is below the minimum of {config.min_zoom}.")
        return 1

    if parsed.output:
        output = Path(parsed.output).expanduser()
    else:
        output = generate_output_filename(key.zoom, key.x, key.y)

    try:
        png = asyncio.run(_render(config, key))
    except OverlayError as e:
        print(f"\n✗ Error: {e}")
        return 1

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(png)
    print(f"✓ Tile {key} saved as {output}")
    return 0


def main() -> NoReturn:
    """Main entry point."""
    sys.exit(cli())


if __name__ == "__main__":
    main()
