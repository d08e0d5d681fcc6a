"""Render Web Mercator tiles from a single georeferenced raster."""

from __future__ import annotations

import math
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np
from rasterio.crs import CRS
from rasterio.enums import ColorInterp, MaskFlags, Resampling
from rasterio.errors import RasterioError
from rasterio.windows import Window

from orthotiler.core.geometry import BoundingBox, Point, Space, WindowPair, projected
from orthotiler.core.models import TileInfo, TilingConfig, ZoomRange
from orthotiler.logging import get_logger

from .errors import (
    InvalidArgumentsError,
    RasterSourceError,
    ReprojectionError,
    TilerError,
    TileWriteError,
)
from .extent import geo_query
from .image import encode_tile
from .mercator import GlobalMercator, tms_to_xyz, xyz_to_tms
from .raster import RasterContext
from .rescale import PixelRule, rescale_band, rule_for

LOGGER = get_logger(__name__)

WEB_MERCATOR = CRS.from_epsg(3857)
STATISTICS_SAMPLE_SIZE = 1024


def has_georeference(dataset) -> bool:
    """True when the dataset carries both a CRS and a non-identity geotransform."""
    return dataset.crs is not None and not dataset.transform.is_identity


def is_north_up(dataset) -> bool:
    """True when the geotransform has no rotation or skew terms."""
    gt = dataset.transform.to_gdal()
    return gt[2] == 0 and gt[4] == 0


def data_bands_count(dataset) -> int:
    """Return the number of data (non-alpha) bands of a dataset."""

    if dataset.count == 0:
        return 0
    if (
        MaskFlags.alpha in dataset.mask_flag_enums[0]
        or ColorInterp.alpha in dataset.colorinterp
        or dataset.count == 4
        or dataset.count == 2
    ):
        return dataset.count - 1
    return dataset.count


class Tiler:
    """Cut one raster into ``{z}/{x}/{y}`` tiles.

    The source raster is opened on construction and stays open until
    :meth:`close` (or the end of a ``with`` block). Sources that are not in
    EPSG:3857 are read through a reprojecting warped view.

    Row indices passed to and returned from the public methods follow the
    instance's convention: XYZ by default, TMS when ``tms`` is set.
    """

    def __init__(
        self,
        input_path: Path | str,
        output_folder: Path | str,
        tms: Optional[bool] = None,
        *,
        config: Optional[TilingConfig] = None,
        context: Optional[RasterContext] = None,
    ) -> None:
        self._config = config or TilingConfig()
        self._config.validate()
        self._input_path = Path(input_path)
        self._output_folder = Path(output_folder)
        self._tms = self._config.tms if tms is None else tms
        self._tile_size = self._config.tile_size
        self._query_size = self._config.effective_query_size
        self._extension = self._config.tile_extension
        self._mercator = GlobalMercator(self._tile_size)

        self._owned_context: Optional[RasterContext] = None
        if context is None:
            context = RasterContext.from_config(self._config).__enter__()
            self._owned_context = context
        self._context = context

        self._source = None
        self._warped = None
        self._statistics: Dict[int, Optional[Tuple[float, float]]] = {}
        try:
            self._open()
        except BaseException:
            self.close()
            raise

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def _open(self) -> None:
        try:
            source = self._context.open(self._input_path)
        except RasterioError as exc:
            raise RasterSourceError(f"Cannot open raster {self._input_path}: {exc}") from exc
        self._source = source

        if not has_georeference(source):
            raise RasterSourceError(f"Raster has no georeference: {self._input_path}")

        if source.crs == WEB_MERCATOR and is_north_up(source):
            dataset = source
        else:
            add_alpha = source.nodata is None and data_bands_count(source) == source.count
            try:
                self._warped = self._context.warp(
                    source,
                    WEB_MERCATOR,
                    resampling=Resampling[self._config.resampling],
                    add_alpha=add_alpha,
                )
            except (RasterioError, ValueError) as exc:
                raise ReprojectionError(
                    f"Cannot reproject {self._input_path} from {source.crs} to EPSG:3857: {exc}"
                ) from exc
            dataset = self._warped
            LOGGER.info(
                "reprojecting source through warped view",
                extra={
                    "path": str(self._input_path),
                    "src_crs": str(source.crs),
                    "north_up": is_north_up(source),
                    "add_alpha": add_alpha,
                },
            )
        self._dataset = dataset

        self._data_bands = data_bands_count(dataset)
        if self._data_bands < 1:
            raise RasterSourceError(f"Raster has no data bands: {self._input_path}")
        try:
            self._rules: List[PixelRule] = [rule_for(dtype) for dtype in dataset.dtypes[: self._data_bands]]
        except TilerError as exc:
            raise RasterSourceError(f"{exc} in {self._input_path}") from exc
        self._nodata = list(dataset.nodatavals[: self._data_bands])

        gt = dataset.transform.to_gdal()
        self._geotransform = gt
        self._raster_size = (dataset.width, dataset.height)
        min_x = gt[0]
        max_x = gt[0] + dataset.width * gt[1]
        max_y = gt[3]
        min_y = gt[3] + dataset.height * gt[5]
        self._extent = BoundingBox.from_corners(projected(min_x, max_y), projected(max_x, min_y))

        pixel_size = abs(gt[1])
        if pixel_size <= 0 or gt[5] == 0 or gt[2] != 0 or gt[4] != 0:
            raise RasterSourceError(f"Raster grid is not north-up: {self._input_path} {gt}")
        max_zoom = self._mercator.zoom_for_pixel_size(pixel_size)
        min_zoom = self._mercator.zoom_for_extent(max(self._extent.width, self._extent.height))
        self._zoom_range = ZoomRange(min(min_zoom, max_zoom), max_zoom)

        LOGGER.info(
            "opened source raster",
            extra={
                "path": str(self._input_path),
                "size": self._raster_size,
                "data_bands": self._data_bands,
                "dtype": self._rules[0].pixel_type.value,
                "extent": self._extent.as_tuple(),
                "min_zoom": self._zoom_range.min_zoom,
                "max_zoom": self._zoom_range.max_zoom,
            },
        )

    def close(self) -> None:
        """Release the warped view, the source raster and any owned environment."""

        if self._warped is not None:
            warped, self._warped = self._warped, None
            warped.close()
        if self._source is not None:
            source, self._source = self._source, None
            source.close()
        if self._owned_context is not None:
            context, self._owned_context = self._owned_context, None
            context.__exit__(None, None, None)

    def __enter__(self) -> "Tiler":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def tms(self) -> bool:
        return self._tms

    @property
    def is_warped(self) -> bool:
        return self._warped is not None

    @property
    def data_bands_count(self) -> int:
        return self._data_bands

    @property
    def extent(self) -> BoundingBox:
        """Raster extent in EPSG:3857 meters."""
        return self._extent

    @property
    def mercator(self) -> GlobalMercator:
        return self._mercator

    @property
    def output_folder(self) -> Path:
        return self._output_folder

    def get_min_max_z(self) -> ZoomRange:
        return self._zoom_range

    def get_min_max_coords_for_z(self, tz: int) -> BoundingBox:
        """Tile index bounds covering the raster extent at ``tz``."""

        upper_left = self._mercator.meters_to_tile(self._extent.min.x, self._extent.max.y, tz)
        lower_right = self._mercator.meters_to_tile(self._extent.max.x, self._extent.min.y, tz)
        last = self._mercator.tile_count(tz) - 1
        min_x = max(0, int(upper_left.x))
        min_y = max(0, int(upper_left.y))
        max_x = min(last, int(lower_right.x))
        max_y = min(last, int(lower_right.y))
        if self._tms:
            min_y, max_y = xyz_to_tms(max_y, tz), xyz_to_tms(min_y, tz)
        return BoundingBox(Point(min_x, min_y, Space.TILE), Point(max_x, max_y, Space.TILE))

    def get_tiles_for_zoom_level(self, tz: int) -> List[TileInfo]:
        bounds = self.get_min_max_coords_for_z(tz)
        return [
            TileInfo(tz, tx, ty)
            for ty in range(int(bounds.min.y), int(bounds.max.y) + 1)
            for tx in range(int(bounds.min.x), int(bounds.max.x) + 1)
        ]

    def tile_path(self, tile: TileInfo) -> Path:
        return self._output_folder / str(tile.tz) / str(tile.tx) / f"{tile.ty}.{self._extension}"

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def tile(self, tz: int | TileInfo, tx: Optional[int] = None, ty: Optional[int] = None) -> Optional[Path]:
        """Render one tile and return its path, or ``None`` when it has no data.

        Accepts either ``tile(z, x, y)`` or ``tile(TileInfo(...))``.
        """

        if isinstance(tz, TileInfo):
            info = tz
        else:
            if tx is None or ty is None:
                raise InvalidArgumentsError("tile() needs a TileInfo or zoom, column and row")
            info = TileInfo(tz, tx, ty)
        self._check_tile(info)

        row = tms_to_xyz(info.ty, info.tz) if self._tms else info.ty
        bounds = self._mercator.tile_bounds(info.tx, row, info.tz)
        windows = geo_query(
            self._geotransform,
            self._raster_size,
            bounds.min.x,
            bounds.max.y,
            bounds.max.x,
            bounds.min.y,
            self._query_size,
        )
        if windows.is_empty:
            LOGGER.debug("tile outside raster", extra={"tile": _label(info)})
            return None

        canvas = self._render(info, windows)
        if canvas is None:
            LOGGER.debug("tile has no valid pixels", extra={"tile": _label(info)})
            return None

        path = self.tile_path(info)
        self._write(info, canvas, path)
        LOGGER.debug(
            "wrote tile",
            extra={"tile": _label(info), "path": str(path), "read": windows.read, "write": windows.write},
        )
        return path

    def _check_tile(self, info: TileInfo) -> None:
        if not 0 <= info.tz <= self._mercator.max_zoom_level:
            raise InvalidArgumentsError(f"zoom {info.tz} outside 0-{self._mercator.max_zoom_level}")
        count = self._mercator.tile_count(info.tz)
        if not (0 <= info.tx < count and 0 <= info.ty < count):
            raise InvalidArgumentsError(f"tile {_label(info)} outside the {count}x{count} grid")

    def _render(self, info: TileInfo, windows: WindowPair) -> Optional[np.ndarray]:
        read, write = windows.read, windows.write
        window = Window(read.x, read.y, read.width, read.height)
        indexes = list(range(1, self._data_bands + 1))
        try:
            data = self._dataset.read(
                indexes,
                window=window,
                out_shape=(len(indexes), write.height, write.width),
                resampling=Resampling.nearest,
            )
            mask = self._dataset.dataset_mask(window=window, out_shape=(write.height, write.width))
        except RasterioError as exc:
            raise TilerError(
                f"Failed to read window {read} of {self._input_path} for tile {_label(info)}: {exc}"
            ) from exc

        bands = np.zeros((self._data_bands, write.height, write.width), dtype=np.uint8)
        any_band_valid = np.zeros((write.height, write.width), dtype=bool)
        for index, (samples, rule) in enumerate(zip(data, self._rules)):
            bounds = rule.bounds(self._band_statistics(index + 1, rule))
            scaled, valid = rescale_band(samples, rule, bounds, self._nodata[index])
            bands[index] = scaled
            any_band_valid |= valid

        valid = (mask > 0) & any_band_valid
        if not valid.any():
            return None

        bands[:, ~valid] = 0
        canvas = np.zeros((self._data_bands + 1, self._query_size, self._query_size), dtype=np.uint8)
        rows = slice(write.y, write.y + write.height)
        cols = slice(write.x, write.x + write.width)
        canvas[: self._data_bands, rows, cols] = bands
        canvas[self._data_bands, rows, cols] = np.where(valid, 255, 0).astype(np.uint8)
        return canvas

    def _band_statistics(self, bidx: int, rule: PixelRule) -> Optional[Tuple[float, float]]:
        """Approximate min/max of a source band, sampled from a decimated read."""

        if not rule.stretch:
            return None
        if bidx not in self._statistics:
            source = self._source
            scale = max(1, math.ceil(max(source.width, source.height) / STATISTICS_SAMPLE_SIZE))
            out_shape = (max(1, source.height // scale), max(1, source.width // scale))
            sample = source.read(bidx, masked=True, out_shape=out_shape)
            values = sample.compressed()
            if rule.is_float:
                values = values[np.isfinite(values)]
            if values.size == 0:
                LOGGER.warning(
                    "band has no valid samples; using type range",
                    extra={"path": str(self._input_path), "band": bidx},
                )
                self._statistics[bidx] = None
            else:
                self._statistics[bidx] = (float(values.min()), float(values.max()))
        return self._statistics[bidx]

    def _write(self, info: TileInfo, canvas: np.ndarray, path: Path) -> None:
        partial = path.with_name(f".{path.name}.part")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            encode_tile(
                canvas,
                partial,
                extension=self._extension,
                tile_size=self._tile_size,
                resampling=self._config.query_resampling,
            )
            os.replace(partial, path)
        except (OSError, ValueError) as exc:
            if partial.exists():
                partial.unlink()
            raise TileWriteError(f"Cannot write tile {_label(info)} to {path}: {exc}", tile=info, path=path) from exc


def _label(info: TileInfo) -> str:
    return f"{info.tz}/{info.tx}/{info.ty}"
