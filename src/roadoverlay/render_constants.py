"""Shared render constants."""

from __future__ import annotations


__all__ = [
    "DIVIDER_DASH",
    "DIVIDER_WIDTH",
    "EARTH_CIRCUMFERENCE",
    "KERB_COLOR",
    "KERB_PADDING",
    "LANE_COLOR",
    "LANE_WIDTH_CYCLE",
    "LANE_WIDTH_METERS",
    "MAX_DRIVING_LANES",
    "PARKING_LANE_WIDTHS",
    "ROAD_COLOR",
    "SIDEWALK_COLOR",
    "SURFACE_PADDING",
    "TILE_SIZE",
    "TRANSPARENT",
]

# Tile geometry
TILE_SIZE = 256
EARTH_CIRCUMFERENCE = 40075016.686  # meters at the equator

# Lane widths, in units of one driving lane
LANE_WIDTH_METERS = 2.0
LANE_WIDTH_CYCLE = 0.333
# Largest lanes tag value taken at face value
MAX_DRIVING_LANES = 16
PARKING_LANE_WIDTHS: dict[str, float] = {
    "parallel": 1.0,
    "diagonal": 1.5,
    "perpendicular": 2.0,
}

# Extra pixels added to the half width of each band
KERB_PADDING = 2.0
SURFACE_PADDING = 1.0

# Palette (RGBA)
TRANSPARENT = (0, 0, 0, 0)
SIDEWALK_COLOR = (128, 128, 128, 255)
KERB_COLOR = (64, 64, 64, 255)
ROAD_COLOR = (192, 192, 192, 255)
LANE_COLOR = (255, 255, 255, 255)

# Lane divider stroke: 10px on, 5px off
DIVIDER_WIDTH = 1
DIVIDER_DASH = (10.0, 5.0)
