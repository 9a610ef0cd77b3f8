"""RoadOverlay - Render lane-level road overlay map tiles.

This package builds road graphs from OpenStreetMap data at a fixed base zoom,
caches them in memory and renders sidewalks, kerbs, road surfaces and lane
markings into transparent 256x256 PNG tiles.
"""

from importlib.metadata import PackageNotFoundError, version


try:
    __version__ = version("roadoverlay")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = ["__version__"]
