"""Lane model: the sequence of lane widths across a road, left to right."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .classify import ROAD_CLASSES
from .geometry import parse_osm_int
from .render_constants import LANE_WIDTH_CYCLE, MAX_DRIVING_LANES, PARKING_LANE_WIDTHS


if TYPE_CHECKING:
    from collections.abc import Mapping


__all__ = [
    "compute_lanes",
    "driving_lanes",
    "parking_lane_width",
]


def driving_lanes(tags: Mapping[str, str]) -> int:
    """Number of driving lanes, or 0 for ways that are not drivable roads.

    A missing, malformed, negative or implausibly large (above
    ``MAX_DRIVING_LANES``) ``lanes`` tag falls back to 2, or to 1 on
    ``oneway=yes`` roads.
    """
    if tags.get("highway", "no") not in ROAD_CLASSES:
        return 0
    default = 1 if tags.get("oneway", "no") == "yes" else 2
    lanes = parse_osm_int(tags.get("lanes"))
    if lanes is None or not 0 <= lanes <= MAX_DRIVING_LANES:
        return default
    return lanes


def parking_lane_width(tags: Mapping[str, str], side: str) -> float:
    """Width of the ``parking:lane:<side>`` lane, 0 when there is none."""
    return PARKING_LANE_WIDTHS.get(tags.get(f"parking:lane:{side}", "no"), 0.0)


def compute_lanes(tags: Mapping[str, str]) -> list[float]:
    """Compute lane widths across a road in units of one driving lane.

    Parking lanes are added before cycle lanes and left-hand additions always
    go to the front, so asymmetric tags give asymmetric results.

    Args:
        tags: The OSM tags of the way.

    Returns:
        Lane widths from the left edge to the right edge; empty for non-roads.
    """
    count = driving_lanes(tags)
    if count == 0:
        return []
    lanes = [1.0] * count

    left = parking_lane_width(tags, "left")
    if left > 0:
        lanes.insert(0, left)
    right = parking_lane_width(tags, "right")
    if right > 0:
        lanes.append(right)
    both = parking_lane_width(tags, "both")
    if both > 0:
        lanes.insert(0, both)
        lanes.append(both)

    cycleway = tags.get("cycleway", "no")
    if cycleway == "lane":
        lanes.insert(0, LANE_WIDTH_CYCLE)
        lanes.append(LANE_WIDTH_CYCLE)
    elif cycleway == "opposite":
        lanes.append(LANE_WIDTH_CYCLE)
    else:
        if tags.get("cycleway:left", "no") == "lane":
            lanes.insert(0, LANE_WIDTH_CYCLE)
        if tags.get("cycleway:right", "no") == "lane":
            lanes.append(LANE_WIDTH_CYCLE)
    return lanes
