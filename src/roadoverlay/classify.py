"""Classification of raw OpenStreetMap elements into a tile's road graph."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .geometry import Junction, OverlayError, Point, RoadGraph, WayPoint, parse_osm_int


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .geometry import Tile, Way


__all__ = [
    "ROAD_CLASSES",
    "DataInconsistencyError",
    "build_road_graph",
    "is_road",
    "parse_layers",
]

logger = logging.getLogger(__name__)

Element = Mapping[str, Any]

ROAD_CLASSES = frozenset(
    {
        "motorway",
        "trunk",
        "primary",
        "secondary",
        "tertiary",
        "unclassified",
        "residential",
        "service",
        "motorway_link",
        "trunk_link",
        "primary_link",
        "secondary_link",
        "tertiary_link",
    }
)


class DataInconsistencyError(OverlayError):
    """Raised when map data references nodes it does not contain."""


def _tags(element: Element) -> Mapping[str, str]:
    return element.get("tags") or {}


def is_road(tags: Mapping[str, str]) -> bool:
    """Return True for non-area ways of a drivable highway class."""
    if tags.get("area", "no") == "yes":
        return False
    return tags.get("highway", "no") in ROAD_CLASSES


def parse_layers(ways: Iterable[Element]) -> tuple[int, ...]:
    """Return the distinct integer ``layer`` values of ``ways`` in ascending order.

    Ways without a layer tag are on layer 0. Non-integer values are dropped.
    """
    layers: set[int] = set()
    for way in ways:
        value = parse_osm_int(_tags(way).get("layer", "0"))
        if value is not None:
            layers.add(value)
    return tuple(sorted(layers))


def _node_index(nodes: Iterable[Element]) -> dict[int, Point]:
    index: dict[int, Point] = {}
    for node in nodes:
        try:
            index[node["id"]] = Point(float(node["lat"]), float(node["lon"]))
        except (KeyError, TypeError, ValueError) as e:
            raise DataInconsistencyError(f"Malformed node element: {node!r}") from e
    return index


def _resolve_points(way: Element, nodes_by_id: Mapping[int, Point]) -> list[Point]:
    points = []
    for node_id in way.get("nodes") or ():
        point = nodes_by_id.get(node_id)
        if point is None:
            raise DataInconsistencyError(
                f"Way {way.get('id')} references node {node_id} missing from the map data"
            )
        points.append(point)
    return points


def _find_junctions(
    nodes: Sequence[Element],
    road_elements: Sequence[Element],
    roads: Sequence[Way],
) -> list[Junction]:
    # node id -> [(road index, position of the node in that road)], first visit only
    touching: dict[int, list[tuple[int, int]]] = {}
    for road_index, element in enumerate(road_elements):
        seen: set[int] = set()
        for position, node_id in enumerate(element.get("nodes") or ()):
            if node_id in seen:
                continue
            seen.add(node_id)
            touching.setdefault(node_id, []).append((road_index, position))

    junctions = []
    emitted: set[int] = set()
    for node in nodes:
        members = touching.get(node["id"], ())
        if len(members) < 2 or node["id"] in emitted:
            continue
        emitted.add(node["id"])
        junctions.append(
            Junction(
                tuple(
                    WayPoint(roads[road_index], roads[road_index].points[position])
                    for road_index, position in members
                )
            )
        )
    return junctions


def build_road_graph(tile: Tile, elements: Iterable[Element]) -> RoadGraph:
    """Classify Overpass elements into the road graph of ``tile``.

    Args:
        tile: The tile that will own the resulting ways.
        elements: Overpass JSON elements (``way`` and ``node`` entries).

    Returns:
        A RoadGraph with layers, roads and junctions in source order.

    Raises:
        DataInconsistencyError: If a road references a node that is not present.
    """
    elements = list(elements)
    ways = [element for element in elements if element.get("type") == "way"]
    nodes = [element for element in elements if element.get("type") == "node"]
    nodes_by_id = _node_index(nodes)

    road_elements = [way for way in ways if is_road(_tags(way))]
    roads = [
        tile.make_way(_tags(way), _resolve_points(way, nodes_by_id)) for way in road_elements
    ]
    junctions = _find_junctions(nodes, road_elements, roads)
    layers = parse_layers(ways)

    logger.debug(
        "Classified %s: %d ways, %d roads, %d junctions, layers %s",
        tile,
        len(ways),
        len(roads),
        len(junctions),
        layers,
    )
    return RoadGraph(layers=layers, roads=tuple(roads), junctions=tuple(junctions))
