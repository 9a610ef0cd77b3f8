"""Road graph model: tiles, ways, junctions and their pixel projection."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

import numpy as np

from .projection import (
    BoundingBox,
    Point,
    geo_to_pixel,
    image_scale,
    lonlat_to_pixel,
    tile_bounding_box,
    tile_to_geo,
)


if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


__all__ = [
    "Junction",
    "OverlayError",
    "Point",
    "PreconditionError",
    "RoadGraph",
    "Tile",
    "TileKey",
    "Way",
    "WayPoint",
    "parse_osm_int",
]


class OverlayError(Exception):
    """Base exception for road overlay errors."""


class PreconditionError(OverlayError):
    """Raised when a caller or internal invariant is violated."""


_INT_RE = re.compile(r"^\s*[+-]?\d+\s*$")


def parse_osm_int(value: str | None) -> int | None:
    """Parse an integer OSM tag value, returning None when it is not one."""
    if value is None or not _INT_RE.match(value):
        return None
    return int(value)


@dataclass(frozen=True)
class TileKey:
    """A tile in the slippy-map pyramid."""

    zoom: int
    x: int
    y: int

    def __str__(self) -> str:
        return f"{self.zoom}/{self.x}/{self.y}"

    @property
    def in_pyramid(self) -> bool:
        n = 2**self.zoom
        return self.zoom >= 0 and 0 <= self.x < n and 0 <= self.y < n

    def ancestor(self, zoom: int) -> TileKey:
        """Return the tile at a shallower ``zoom`` that contains this one."""
        if zoom > self.zoom:
            raise PreconditionError(f"Cannot take ancestor at zoom {zoom} of tile {self}")
        factor = 2 ** (self.zoom - zoom)
        return TileKey(zoom, self.x // factor, self.y // factor)


@dataclass(frozen=True, eq=False)
class Way:
    """A road alignment with its source tags.

    Ways compare by identity; two roads with equal tags and points are still
    distinct roads.
    """

    tile: Tile
    tags: Mapping[str, str]
    points: tuple[Point, ...] = field(repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))
        object.__setattr__(self, "points", tuple(self.points))

    def tag(self, key: str, default: str = "no") -> str:
        return self.tags.get(key, default)

    @property
    def layer(self) -> int:
        """OSM ``layer`` of the way; missing or malformed values mean ground level."""
        value = parse_osm_int(self.tags.get("layer"))
        return 0 if value is None else value

    def pixels(self, tile: Tile) -> np.ndarray:
        """Project the way's points into ``tile``'s pixel space as an (n, 2) array."""
        if not self.points:
            return np.empty((0, 2))
        coords = np.array([(p.lon, p.lat) for p in self.points], dtype=float)
        px, py = lonlat_to_pixel(coords[:, 0], coords[:, 1], tile.nw, tile.se)
        return np.column_stack((px, py))


@dataclass(frozen=True)
class WayPoint:
    """A road and the point where it passes through a junction."""

    way: Way
    point: Point


@dataclass(frozen=True)
class Junction:
    """A location shared by two or more roads."""

    members: tuple[WayPoint, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "members", tuple(self.members))
        if len(self.members) < 2:
            raise PreconditionError(f"Junction needs at least 2 roads, got {len(self.members)}")

    @property
    def point(self) -> Point:
        return self.members[0].point

    @property
    def ways(self) -> tuple[Way, ...]:
        return tuple(member.way for member in self.members)


@dataclass(frozen=True)
class RoadGraph:
    """Classified road data of a base tile, shared read-only by its views."""

    layers: tuple[int, ...] = ()
    roads: tuple[Way, ...] = ()
    junctions: tuple[Junction, ...] = ()


class Tile:
    """A 256x256 pixel map tile and, once built, its road graph.

    Base tiles get their graph from a single build step. Tiles at deeper zooms
    are views created with :meth:`view`: they carry their own corners and scale
    but share the base tile's graph by reference.
    """

    def __init__(self, zoom: int, x: int, y: int) -> None:
        self.key = TileKey(zoom, x, y)
        self.nw = tile_to_geo(zoom, x, y)
        self.se = tile_to_geo(zoom, x + 1, y + 1)
        self.image_scale = image_scale(self.nw.lat, zoom)
        self._graph: RoadGraph | None = None

    @classmethod
    def view(cls, zoom: int, x: int, y: int, base: Tile) -> Tile:
        """Create a tile sharing the road graph of an already built ``base`` tile."""
        if base.graph is None:
            raise PreconditionError(f"Cannot copy data from {base} without any data")
        tile = cls(zoom, x, y)
        tile._graph = base.graph
        return tile

    def __repr__(self) -> str:
        return f"Tile({self.zoom}, {self.x}, {self.y})"

    @property
    def zoom(self) -> int:
        return self.key.zoom

    @property
    def x(self) -> int:
        return self.key.x

    @property
    def y(self) -> int:
        return self.key.y

    @property
    def graph(self) -> RoadGraph | None:
        return self._graph

    def set_graph(self, graph: RoadGraph) -> None:
        """Publish the road graph. Allowed exactly once per tile."""
        if self._graph is not None:
            raise PreconditionError(f"Cannot load data for {self} more than once")
        self._graph = graph

    @property
    def layers(self) -> tuple[int, ...]:
        return self._require_graph().layers

    @property
    def roads(self) -> tuple[Way, ...]:
        return self._require_graph().roads

    @property
    def junctions(self) -> tuple[Junction, ...]:
        return self._require_graph().junctions

    def _require_graph(self) -> RoadGraph:
        if self._graph is None:
            raise PreconditionError(f"{self} has no road data yet")
        return self._graph

    def to_pixel(self, point: Point) -> tuple[float, float]:
        return geo_to_pixel(point, self.nw, self.se)

    def bounding_box(self, oversize: float = 0.0) -> BoundingBox:
        return tile_bounding_box(self.nw, self.se, oversize)

    def make_way(self, tags: Mapping[str, str], points: Iterable[Point]) -> Way:
        return Way(self, tags, tuple(points))
