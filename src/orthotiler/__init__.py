"""Orthotiler: cut georeferenced rasters into Web Mercator tile pyramids."""

from __future__ import annotations

import importlib
from typing import Any

__all__ = [
    "BoundingBox",
    "GlobalMercator",
    "LoggingConfig",
    "PipelineConfig",
    "Point",
    "RasterContext",
    "TileInfo",
    "Tiler",
    "TilerError",
    "TilingConfig",
    "ZoomRange",
    "load_config",
    "run_tiler",
    "tile_raster",
]

_MODULE_MAP = {
    "BoundingBox": ("orthotiler.core", "BoundingBox"),
    "GlobalMercator": ("orthotiler.tiling", "GlobalMercator"),
    "LoggingConfig": ("orthotiler.core", "LoggingConfig"),
    "PipelineConfig": ("orthotiler.config", "PipelineConfig"),
    "Point": ("orthotiler.core", "Point"),
    "RasterContext": ("orthotiler.tiling", "RasterContext"),
    "TileInfo": ("orthotiler.core", "TileInfo"),
    "Tiler": ("orthotiler.tiling", "Tiler"),
    "TilerError": ("orthotiler.tiling", "TilerError"),
    "TilingConfig": ("orthotiler.core", "TilingConfig"),
    "ZoomRange": ("orthotiler.core", "ZoomRange"),
    "load_config": ("orthotiler.config", "load_config"),
    "run_tiler": ("orthotiler.tiling", "run_tiler"),
    "tile_raster": ("orthotiler.tiling", "tile_raster"),
}


def __getattr__(name: str) -> Any:
    if name not in _MODULE_MAP:
        raise AttributeError(f"module 'orthotiler' has no attribute '{name}'")
    module_name, attr = _MODULE_MAP[name]
    module = importlib.import_module(module_name)
    return getattr(module, attr)
