"""Configuration and path management."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path

from .geo import OVERPASS_URL


__all__ = [
    "MAX_ZOOM",
    "ConfigError",
    "OverlayConfig",
    "generate_output_filename",
    "get_tiles_dir",
]

ENV_PREFIX = "ROADOVERLAY_"
MAX_ZOOM = 24


class ConfigError(ValueError):
    """Raised when configuration values are invalid."""


def get_tiles_dir() -> Path:
    """Get the tile output directory, creating it if necessary."""
    tiles_dir = Path(os.environ.get(f"{ENV_PREFIX}OUTPUT_DIR", "tiles"))
    tiles_dir.mkdir(parents=True, exist_ok=True)
    return tiles_dir


def generate_output_filename(zoom: int, x: int, y: int) -> Path:
    """Default output path for a rendered tile."""
    return get_tiles_dir() / f"roads_{zoom}_{x}_{y}.png"


@dataclass(frozen=True)
class OverlayConfig:
    """Settings for the tile cache, the map-data source and the tile endpoint."""

    base_zoom: int = 14
    cache_size: int = 16
    min_zoom: int = 18
    overpass_url: str = OVERPASS_URL
    overpass_timeout: float = 90.0
    bbox_oversize: float = 0.5

    def __post_init__(self) -> None:
        if not 0 <= self.base_zoom <= MAX_ZOOM:
            raise ConfigError(f"base_zoom must be between 0 and {MAX_ZOOM}, got {self.base_zoom}")
        if self.min_zoom < self.base_zoom:
            raise ConfigError(
                f"min_zoom ({self.min_zoom}) cannot be below base_zoom ({self.base_zoom})"
            )
        if self.min_zoom > MAX_ZOOM:
            raise ConfigError(f"min_zoom cannot be above {MAX_ZOOM}, got {self.min_zoom}")
        if self.cache_size < 1:
            raise ConfigError(f"cache_size must be at least 1, got {self.cache_size}")
        if self.overpass_timeout <= 0:
            raise ConfigError("overpass_timeout must be positive")
        if self.bbox_oversize < 0:
            raise ConfigError("bbox_oversize cannot be negative")

    @classmethod
    def from_env(cls) -> OverlayConfig:
        """Build a config from ``ROADOVERLAY_*`` environment variables.

        Unset variables keep their defaults.

        Raises:
            ConfigError: If a variable cannot be converted or is out of range.
        """
        values: dict[str, object] = {}
        for config_field in fields(cls):
            raw = os.environ.get(f"{ENV_PREFIX}{config_field.name.upper()}")
            if raw is None or raw == "":
                continue
            converter = type(config_field.default)
            try:
                values[config_field.name] = converter(raw)
            except ValueError as e:
                raise ConfigError(
                    f"Invalid value for {ENV_PREFIX}{config_field.name.upper()}: {raw!r}"
                ) from e
        return cls(**values)  # type: ignore[arg-type]
