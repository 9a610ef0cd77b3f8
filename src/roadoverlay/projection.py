"""Conversions between slippy-tile indices, geographic and tile-pixel coordinates."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, NamedTuple

from .render_constants import EARTH_CIRCUMFERENCE, TILE_SIZE


__all__ = [
    "BoundingBox",
    "Point",
    "geo_to_pixel",
    "geo_to_tile",
    "image_scale",
    "lonlat_to_pixel",
    "tile_bounding_box",
    "tile_to_geo",
]


@dataclass(frozen=True)
class Point:
    """A geographic position in degrees."""

    lat: float
    lon: float


class BoundingBox(NamedTuple):
    """Geographic box in degrees, ordered the way Overpass QL expects it."""

    south: float
    west: float
    north: float
    east: float

    def to_overpass(self) -> str:
        return f"{self.south},{self.west},{self.north},{self.east}"


def tile_to_geo(zoom: int, x: int, y: int) -> Point:
    """Return the north-west corner of a tile.

    Passing ``x + 1, y + 1`` yields the south-east corner of the same tile.
    """
    n = 2.0**zoom
    lat = math.degrees(math.atan(math.sinh(math.pi - 2 * math.pi * y / n)))
    lon = x / n * 360.0 - 180.0
    return Point(lat, lon)


def geo_to_tile(lat: float, lon: float, zoom: int) -> tuple[int, int]:
    """Return the (x, y) index of the tile containing a geographic point."""
    n = 2**zoom
    lat_rad = math.radians(lat)
    x = int((lon + 180.0) / 360.0 * n)
    y = int((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n)
    # lon=180 and latitudes beyond the Mercator limit fall just outside the pyramid
    return min(max(x, 0), n - 1), min(max(y, 0), n - 1)


def image_scale(nw_lat: float, zoom: int) -> float:
    """Pixels per meter at the given latitude and zoom.

    Args:
        nw_lat: Latitude of the tile's north-west corner in degrees.
        zoom: Tile zoom level.

    Returns:
        The factor converting ground distance in meters into tile pixels.
    """
    meters_per_pixel = EARTH_CIRCUMFERENCE * math.cos(math.radians(nw_lat)) / 2.0 ** (zoom + 8)
    return 1.0 / meters_per_pixel


def lonlat_to_pixel(lon: Any, lat: Any, nw: Point, se: Point) -> tuple[Any, Any]:
    """Project longitudes and latitudes into the 256x256 pixel square of a tile.

    Works on plain floats and elementwise on numpy arrays alike. No clamping is
    applied; points outside the tile map outside ``[0, 256]``.
    """
    px = TILE_SIZE * (lon - nw.lon) / (se.lon - nw.lon)
    py = TILE_SIZE * (lat - nw.lat) / (se.lat - nw.lat)
    return px, py


def geo_to_pixel(point: Point, nw: Point, se: Point) -> tuple[float, float]:
    """Project a geographic point into the pixel square of a tile."""
    return lonlat_to_pixel(point.lon, point.lat, nw, se)


def tile_bounding_box(nw: Point, se: Point, oversize: float = 0.0) -> BoundingBox:
    """Bounding box of a tile grown by ``oversize`` times its extent on every side."""
    lat_extra = oversize * (nw.lat - se.lat)
    lon_extra = oversize * (se.lon - nw.lon)
    return BoundingBox(
        south=se.lat - lat_extra,
        west=nw.lon - lon_extra,
        north=nw.lat + lat_extra,
        east=se.lon + lon_extra,
    )
