"""Core data models for orthotiler."""

from .geometry import (
    BoundingBox,
    PixelWindow,
    Point,
    Space,
    WindowPair,
    geographic,
    pixel,
    projected,
    tile_index,
)
from .models import LoggingConfig, TileInfo, TilingConfig, ZoomRange

__all__ = [
    "BoundingBox",
    "LoggingConfig",
    "PixelWindow",
    "Point",
    "Space",
    "TileInfo",
    "TilingConfig",
    "WindowPair",
    "ZoomRange",
    "geographic",
    "pixel",
    "projected",
    "tile_index",
]
