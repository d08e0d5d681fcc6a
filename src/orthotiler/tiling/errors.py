"""Exceptions raised while building a tile pyramid."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from orthotiler.core.models import TileInfo


class TilerError(RuntimeError):
    """Base class for tiling failures."""


class InvalidArgumentsError(TilerError, ValueError):
    """Raised when a zoom, tile index or listing format string is malformed."""


class RasterSourceError(TilerError):
    """Raised when the source raster cannot be opened or is not georeferenced."""


class ReprojectionError(TilerError):
    """Raised when the Web Mercator view of the source cannot be built."""


class TileWriteError(TilerError):
    """Raised when a tile image cannot be written."""

    def __init__(self, message: str, *, tile: TileInfo, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.tile = tile
        self.path = path
