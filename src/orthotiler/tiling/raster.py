"""Raster library environment shared by every tiler in a process."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import rasterio
from rasterio.crs import CRS
from rasterio.enums import Resampling
from rasterio.io import DatasetReader
from rasterio.vrt import WarpedVRT

from orthotiler.core.models import TilingConfig
from orthotiler.logging import get_logger

LOGGER = get_logger(__name__)


class RasterContext:
    """Scoped GDAL environment used to open rasters and build warped views.

    Enter it once at process start-up and hand it to every
    :class:`~orthotiler.tiling.manager.Tiler`.
    """

    def __init__(
        self,
        *,
        gdal_num_threads: str = "ALL_CPUS",
        gdal_cachemax: int = 512,
        **options: Any,
    ) -> None:
        self._options = {
            "GDAL_NUM_THREADS": gdal_num_threads,
            "GDAL_CACHEMAX": gdal_cachemax,
            **options,
        }
        self._env: Optional[rasterio.Env] = None

    @classmethod
    def from_config(cls, config: TilingConfig) -> "RasterContext":
        return cls(gdal_num_threads=config.gdal_num_threads, gdal_cachemax=config.gdal_cachemax)

    @property
    def active(self) -> bool:
        return self._env is not None

    def __enter__(self) -> "RasterContext":
        if self._env is None:
            self._env = rasterio.Env(**self._options)
            self._env.__enter__()
            LOGGER.debug("raster environment initialised", extra={"options": self._options})
        return self

    def __exit__(self, *exc_info: Any) -> None:
        if self._env is not None:
            env, self._env = self._env, None
            env.__exit__(*exc_info)

    def open(self, path: Path | str) -> DatasetReader:
        return rasterio.open(path)

    def warp(
        self,
        dataset: DatasetReader,
        crs: CRS,
        *,
        resampling: Resampling = Resampling.nearest,
        add_alpha: bool = False,
    ) -> WarpedVRT:
        """Return a virtual view of ``dataset`` reprojected into ``crs``."""

        return WarpedVRT(dataset, crs=crs, resampling=resampling, add_alpha=add_alpha)
