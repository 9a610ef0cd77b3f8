"""Road overlay rendering: sidewalks, kerbs, road surfaces and lane dividers."""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import numpy as np
from PIL import Image, ImageDraw

from .lanes import compute_lanes
from .render_constants import (
    DIVIDER_DASH,
    DIVIDER_WIDTH,
    KERB_COLOR,
    KERB_PADDING,
    LANE_COLOR,
    LANE_WIDTH_METERS,
    ROAD_COLOR,
    SIDEWALK_COLOR,
    SURFACE_PADDING,
    TILE_SIZE,
    TRANSPARENT,
)


if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from .cache import TileCache
    from .geometry import Tile, Way

Color = tuple[int, int, int, int]
Vertex = tuple[float, float]

__all__ = [
    "PillowSurface",
    "RasterSurface",
    "RoadRenderer",
    "dash_runs",
    "render_road_tile",
]

logger = logging.getLogger(__name__)


class RasterSurface(Protocol):
    """Drawable tile-pixel surface; (0, 0) is the tile's north-west corner."""

    def fill_polygon(self, vertices: Sequence[Vertex], color: Color) -> None:
        """Fill a polygon given its vertices in order."""
        ...

    def draw_line(
        self,
        start: Vertex,
        end: Vertex,
        color: Color,
        width: int = 1,
        dash: Sequence[float] | None = None,
    ) -> None:
        """Stroke a straight line, optionally with an on/off dash pattern."""
        ...


def dash_runs(
    start: Vertex,
    end: Vertex,
    pattern: Sequence[float],
) -> Iterator[tuple[Vertex, Vertex]]:
    """Yield the visible runs of a dashed line from ``start`` to ``end``.

    ``pattern`` alternates drawn and skipped lengths in pixels, starting with a
    drawn run at ``start``.
    """
    a = np.asarray(start, dtype=float)
    b = np.asarray(end, dtype=float)
    length = float(np.hypot(*(b - a)))
    if length == 0 or not pattern or sum(pattern) <= 0:
        return
    unit = (b - a) / length
    position = 0.0
    index = 0
    while position < length:
        run = pattern[index % len(pattern)]
        if index % 2 == 0:
            stop = min(position + run, length)
            p, q = a + unit * position, a + unit * stop
            yield (float(p[0]), float(p[1])), (float(q[0]), float(q[1]))
        position += run
        index += 1


class PillowSurface:
    """RasterSurface drawing into a transparent RGBA Pillow image."""

    def __init__(self, size: int = TILE_SIZE, background: Color = TRANSPARENT) -> None:
        self.image = Image.new("RGBA", (size, size), background)
        self._draw = ImageDraw.Draw(self.image)

    def fill_polygon(self, vertices: Sequence[Vertex], color: Color) -> None:
        self._draw.polygon([(float(x), float(y)) for x, y in vertices], fill=color)

    def draw_line(
        self,
        start: Vertex,
        end: Vertex,
        color: Color,
        width: int = 1,
        dash: Sequence[float] | None = None,
    ) -> None:
        if not dash:
            self._draw.line([start, end], fill=color, width=width)
            return
        for run_start, run_end in dash_runs(start, end, dash):
            self._draw.line([run_start, run_end], fill=color, width=width)

    def to_png(self) -> bytes:
        buffer = io.BytesIO()
        self.image.save(buffer, format="PNG")
        return buffer.getvalue()


@dataclass(frozen=True, eq=False)
class Segment:
    """One straight piece of a road in tile pixels."""

    start: np.ndarray
    end: np.ndarray
    direction: np.ndarray
    offset: np.ndarray

    def shift(self, point: np.ndarray, along: float, across: float) -> Vertex:
        moved = point + self.direction * along + self.offset * across
        return float(moved[0]), float(moved[1])


@dataclass(frozen=True)
class PreparedRoad:
    """A road with its lanes and pixel segments for one tile."""

    way: Way
    lanes: tuple[float, ...]
    segments: tuple[Segment, ...]

    @property
    def total_width(self) -> float:
        return sum(self.lanes)


def _segments(pixels: np.ndarray) -> Iterator[Segment]:
    for start, end in zip(pixels[:-1], pixels[1:]):
        delta = end - start
        length = float(np.hypot(*delta))
        if length == 0:
            continue
        direction = delta / length
        offset = np.array([-direction[1], direction[0]])
        yield Segment(start, end, direction, offset)


def _hexagon(segment: Segment, left: float, right: float, cap: float) -> list[Vertex]:
    """Band around a segment reaching ``left``/``right`` across it and ``cap`` past its ends."""
    return [
        segment.shift(segment.start, 0, -left),
        segment.shift(segment.start, -cap, 0),
        segment.shift(segment.start, 0, right),
        segment.shift(segment.end, 0, right),
        segment.shift(segment.end, cap, 0),
        segment.shift(segment.end, 0, -left),
    ]


class RoadRenderer:
    """Renders the roads of a tile as layered lane-accurate polygons."""

    def prepare(self, tile: Tile) -> list[PreparedRoad]:
        """Compute lanes and pixel segments of every drivable road in ``tile``."""
        prepared = []
        for way in tile.roads:
            lanes = compute_lanes(way.tags)
            if not lanes:
                continue
            segments = tuple(_segments(way.pixels(tile)))
            prepared.append(PreparedRoad(way, tuple(lanes), segments))
        return prepared

    def render(self, tile: Tile, surface: RasterSurface | None = None) -> RasterSurface:
        """Draw ``tile``'s roads onto ``surface`` (a new PillowSurface by default).

        Roads are drawn grouped by OSM layer, lowest first. Within a group every
        road's sidewalks are drawn before any kerb, kerbs before surfaces and
        surfaces before lane dividers.
        """
        if surface is None:
            surface = PillowSurface()
        lane_width = LANE_WIDTH_METERS * tile.image_scale
        roads = self.prepare(tile)

        levels = sorted(set(tile.layers) | {road.way.layer for road in roads})
        for level in levels:
            group = [road for road in roads if road.way.layer == level]
            if not group:
                continue
            self._draw_sidewalks(surface, group, lane_width)
            self._draw_kerbs(surface, group, lane_width)
            self._draw_surfaces(surface, group, lane_width)
            self._draw_lane_dividers(surface, group, lane_width)
        return surface

    def render_png(self, tile: Tile) -> bytes:
        surface = PillowSurface()
        self.render(tile, surface)
        return surface.to_png()

    def _draw_sidewalks(
        self, surface: RasterSurface, roads: Sequence[PreparedRoad], lane_width: float
    ) -> None:
        for road in roads:
            sidewalk = road.way.tag("sidewalk")
            has_left = sidewalk in ("both", "left")
            has_right = sidewalk in ("both", "right")
            if not (has_left or has_right):
                continue
            half_width = lane_width * road.total_width / 2 + KERB_PADDING
            left = half_width + (lane_width / 2 if has_left else 0)
            right = half_width + (lane_width / 2 if has_right else 0)
            for segment in road.segments:
                surface.fill_polygon(_hexagon(segment, left, right, half_width), SIDEWALK_COLOR)

    def _draw_kerbs(
        self, surface: RasterSurface, roads: Sequence[PreparedRoad], lane_width: float
    ) -> None:
        for road in roads:
            half_width = lane_width * road.total_width / 2 + KERB_PADDING
            for segment in road.segments:
                surface.fill_polygon(
                    _hexagon(segment, half_width, half_width, half_width), KERB_COLOR
                )

    def _draw_surfaces(
        self, surface: RasterSurface, roads: Sequence[PreparedRoad], lane_width: float
    ) -> None:
        for road in roads:
            half_width = lane_width * road.total_width / 2 + SURFACE_PADDING
            for segment in road.segments:
                surface.fill_polygon(
                    _hexagon(segment, half_width, half_width, half_width), ROAD_COLOR
                )

    def _draw_lane_dividers(
        self, surface: RasterSurface, roads: Sequence[PreparedRoad], lane_width: float
    ) -> None:
        for road in roads:
            if len(road.lanes) < 2:
                continue
            for segment in road.segments:
                lane_offset = -road.total_width / 2
                for lane in road.lanes[:-1]:
                    lane_offset += lane
                    across = lane_width * lane_offset
                    surface.draw_line(
                        segment.shift(segment.start, 0, across),
                        segment.shift(segment.end, 0, across),
                        LANE_COLOR,
                        width=DIVIDER_WIDTH,
                        dash=DIVIDER_DASH,
                    )


async def render_road_tile(
    cache: TileCache,
    zoom: int,
    x: int,
    y: int,
    renderer: RoadRenderer | None = None,
) -> bytes:
    """Resolve a tile through ``cache`` and render it to PNG bytes.

    Raises:
        PreconditionError: If ``zoom`` is below the cache's base zoom.
        OSMFetchError: If the road data could not be fetched.
        DataInconsistencyError: If the road data was malformed.
    """
    tile = await cache.resolve(zoom, x, y)
    renderer = renderer or RoadRenderer()
    png = await asyncio.to_thread(renderer.render_png, tile)
    logger.info("Tile generated: %s.png", tile.key)
    return png
