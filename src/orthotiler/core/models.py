"""Dataclasses describing tiles, zoom ranges and tiling options."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

TILE_FORMATS = {"png": "png", "webp": "webp", "jpeg": "jpg", "jpg": "jpg"}
ERROR_POLICIES = ("abort", "skip")
LISTING_FORMATS = ("text", "json")
QUERY_RESAMPLING = ("nearest", "bilinear", "bicubic", "lanczos", "average", "box")


@dataclass(frozen=True, order=True)
class TileInfo:
    """Address of a single tile in the pyramid."""

    tz: int
    tx: int
    ty: int


@dataclass(frozen=True)
class ZoomRange:
    """Inclusive range of zoom levels."""

    min_zoom: int
    max_zoom: int

    def __post_init__(self) -> None:
        if self.min_zoom < 0:
            raise ValueError(f"zoom levels must be non-negative: {self.min_zoom}")
        if self.min_zoom > self.max_zoom:
            raise ValueError(f"min zoom {self.min_zoom} is greater than max zoom {self.max_zoom}")

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.min_zoom, self.max_zoom + 1))

    def __len__(self) -> int:
        return self.max_zoom - self.min_zoom + 1


@dataclass
class TilingConfig:
    """Configuration options that control tile rendering."""

    tile_size: int = 256
    query_size: Optional[int] = None
    tile_format: str = "png"
    resampling: str = "nearest"
    query_resampling: str = "average"
    tms: bool = False
    on_error: str = "abort"
    listing_format: str = "text"
    gdal_num_threads: str = "ALL_CPUS"
    gdal_cachemax: int = 512

    @property
    def effective_query_size(self) -> int:
        return self.query_size or self.tile_size

    @property
    def tile_extension(self) -> str:
        return TILE_FORMATS[self.tile_format.lower()]

    def validate(self) -> None:
        """Raise ``ValueError`` for option values the tiler cannot honour."""

        # Imported here so the dataclass stays importable without rasterio.
        from rasterio.enums import Resampling

        if self.tile_size <= 0:
            raise ValueError(f"tile_size must be positive, got {self.tile_size}")
        if self.query_size is not None and self.query_size <= 0:
            raise ValueError(f"query_size must be positive, got {self.query_size}")
        if self.gdal_cachemax <= 0:
            raise ValueError(f"gdal_cachemax must be a positive number of megabytes, got {self.gdal_cachemax}")
        if self.tile_format.lower() not in TILE_FORMATS:
            raise ValueError(f"Unsupported tile format: {self.tile_format}")
        if self.resampling not in Resampling.__members__:
            raise ValueError(f"Unsupported resampling kernel: {self.resampling}")
        if self.query_resampling.lower() not in QUERY_RESAMPLING:
            raise ValueError(f"Unsupported query resampling: {self.query_resampling}")
        if self.on_error not in ERROR_POLICIES:
            raise ValueError(f"Unsupported error policy: {self.on_error}")
        if self.listing_format not in LISTING_FORMATS:
            raise ValueError(f"Unsupported listing format: {self.listing_format}")


@dataclass
class LoggingConfig:
    """Logging options applied by the command-line bootstrap."""

    level: str = "INFO"
    json_logs: bool = False
    log_file: Optional[str] = None
