"""Web Mercator tile pyramid generation."""

from .errors import (
    InvalidArgumentsError,
    RasterSourceError,
    ReprojectionError,
    TilerError,
    TileWriteError,
)
from .manager import Tiler
from .mercator import GlobalMercator, tms_to_xyz, xyz_to_tms
from .pyramid import TileSource, parse_tile_index, parse_zoom_range, run_tiler, tile_raster
from .raster import RasterContext

__all__ = [
    "GlobalMercator",
    "InvalidArgumentsError",
    "RasterContext",
    "RasterSourceError",
    "ReprojectionError",
    "TileSource",
    "TileWriteError",
    "Tiler",
    "TilerError",
    "parse_tile_index",
    "parse_zoom_range",
    "run_tiler",
    "tile_raster",
    "tms_to_xyz",
    "xyz_to_tms",
]
