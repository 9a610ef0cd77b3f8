"""Shared fixtures for road overlay tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from roadoverlay.geometry import Tile


Element = dict[str, Any]

# A zoom-18 tile in Karlsruhe and its zoom-14 ancestor
RENDER_TILE = (18, 134745, 87637)
BASE_TILE = (14, 134745 // 16, 87637 // 16)


def way_element(way_id: int, nodes: list[int], tags: dict[str, str] | None = None) -> Element:
    element: Element = {"type": "way", "id": way_id, "nodes": nodes}
    if tags is not None:
        element["tags"] = tags
    return element


def node_element(node_id: int, lat: float, lon: float) -> Element:
    return {"type": "node", "id": node_id, "lat": lat, "lon": lon}


@pytest.fixture
def make_way() -> Callable[..., Element]:
    return way_element


@pytest.fixture
def make_node() -> Callable[..., Element]:
    return node_element


@pytest.fixture
def render_tile() -> Tile:
    return Tile(*RENDER_TILE)


@pytest.fixture
def street_elements(render_tile: Tile) -> list[Element]:
    """A oneway street crossing the middle of the render tile from west to east,
    a two-lane street running north to south and a footway."""
    nw, se = render_tile.nw, render_tile.se
    mid_lat = (nw.lat + se.lat) / 2
    mid_lon = (nw.lon + se.lon) / 2
    width = se.lon - nw.lon
    height = nw.lat - se.lat
    return [
        way_element(100, [1, 2, 3], {"highway": "residential", "oneway": "yes"}),
        way_element(101, [4, 2, 5], {"highway": "residential", "sidewalk": "both"}),
        way_element(102, [6, 7], {"highway": "footway"}),
        node_element(1, mid_lat, nw.lon - width),
        node_element(2, mid_lat, mid_lon),
        node_element(3, mid_lat, se.lon + width),
        node_element(4, nw.lat + height, mid_lon),
        node_element(5, se.lat - height, mid_lon),
        node_element(6, nw.lat, nw.lon),
        node_element(7, se.lat, se.lon),
    ]
