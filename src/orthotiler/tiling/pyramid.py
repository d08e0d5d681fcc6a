"""Drive a :class:`Tiler` over a zoom range and report the tiles written."""

from __future__ import annotations

import json
import re
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, TextIO

from orthotiler.core.models import ERROR_POLICIES, LISTING_FORMATS, TileInfo, TilingConfig, ZoomRange
from orthotiler.logging import get_logger

from .errors import InvalidArgumentsError, TileWriteError
from .manager import Tiler
from .mercator import MAX_ZOOM_LEVEL
from .raster import RasterContext

LOGGER = get_logger(__name__)

_SINGLE_ZOOM = re.compile(r"^\s*(\d+)\s*$")
_ZOOM_RANGE = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")


class TileSource(Protocol):
    """The parts of a tiler the orchestrator relies on."""

    def get_min_max_z(self) -> ZoomRange:
        """Return the zoom range implied by the raster."""

    def get_tiles_for_zoom_level(self, tz: int) -> List[TileInfo]:
        """Return every tile intersecting the raster at ``tz``."""

    def tile(self, tz: int | TileInfo, tx: Optional[int] = None, ty: Optional[int] = None) -> Optional[Path]:
        """Render one tile, returning ``None`` when it has no data."""


def parse_zoom_range(value: str) -> Optional[ZoomRange]:
    """Parse ``"auto"``, ``"N"`` or ``"min-max"``; ``auto`` yields ``None``."""

    if value is None or value.strip().lower() == "auto":
        return None
    match = _SINGLE_ZOOM.match(value)
    if match:
        zoom = int(match.group(1))
        bounds = (zoom, zoom)
    else:
        match = _ZOOM_RANGE.match(value)
        if not match:
            raise InvalidArgumentsError(f"Invalid zoom range: {value!r} (expected auto, N or min-max)")
        bounds = (int(match.group(1)), int(match.group(2)))
    if bounds[0] > bounds[1]:
        raise InvalidArgumentsError(f"Invalid zoom range: {value!r} (min is greater than max)")
    if bounds[1] > MAX_ZOOM_LEVEL:
        raise InvalidArgumentsError(f"Invalid zoom range: {value!r} (max zoom is {MAX_ZOOM_LEVEL})")
    return ZoomRange(*bounds)


def parse_tile_index(value: str, axis: str = "x") -> Optional[int]:
    """Parse an ``"auto"`` or non-negative integer tile column/row."""

    if value is None or value.strip().lower() == "auto":
        return None
    match = _SINGLE_ZOOM.match(value)
    if not match:
        raise InvalidArgumentsError(f"Invalid {axis} value: {value!r} (expected auto or an integer)")
    return int(match.group(1))


def validate_listing_format(fmt: str) -> str:
    if fmt not in LISTING_FORMATS:
        raise InvalidArgumentsError(f"Unsupported format '{fmt}' (expected one of {', '.join(LISTING_FORMATS)})")
    return fmt


def write_listing(paths: Iterable[str], output: TextIO, fmt: str) -> None:
    """Write tile paths as one path per line (``text``) or a JSON array (``json``)."""

    validate_listing_format(fmt)
    if fmt == "text":
        for path in paths:
            output.write(f"{path}\n")
    else:
        output.write(json.dumps(list(paths)))
        output.write("\n")
    output.flush()


def _tiles_for_zoom(tiler: TileSource, tz: int, x: Optional[int], y: Optional[int]) -> List[TileInfo]:
    if x is not None and y is not None:
        return [TileInfo(tz, x, y)]
    tiles = tiler.get_tiles_for_zoom_level(tz)
    if x is not None:
        tiles = [tile for tile in tiles if tile.tx == x]
    if y is not None:
        tiles = [tile for tile in tiles if tile.ty == y]
    return tiles


def run_tiler(
    tiler: TileSource,
    output: TextIO = sys.stdout,
    *,
    format: str = "text",
    zoom: str = "auto",
    x: str = "auto",
    y: str = "auto",
    on_error: str = "abort",
) -> List[str]:
    """Generate the requested tiles and write the listing of written paths.

    With explicit ``x`` and ``y`` exactly one tile per zoom level is
    attempted. With only one of them, the tiles intersecting the raster are
    filtered on that column or row. Tiles without data are left out of the
    listing. ``on_error="skip"`` logs write failures and continues instead of
    aborting the run.
    """

    validate_listing_format(format)
    if on_error not in ERROR_POLICIES:
        raise InvalidArgumentsError(f"Unsupported error policy: {on_error}")
    zoom_range = parse_zoom_range(zoom) or tiler.get_min_max_z()
    column = parse_tile_index(x, "x")
    row = parse_tile_index(y, "y")

    written: List[str] = []
    for tz in zoom_range:
        tiles = _tiles_for_zoom(tiler, tz, column, row)
        count = 0
        for info in tiles:
            try:
                path = tiler.tile(info)
            except TileWriteError as exc:
                if on_error == "abort":
                    raise
                LOGGER.warning("skipping tile after write failure", extra={"tile": info, "error": str(exc)})
                continue
            if path is not None:
                written.append(str(path))
                count += 1
        LOGGER.info("zoom level complete", extra={"zoom": tz, "requested": len(tiles), "written": count})

    write_listing(written, output, format)
    return written


def tile_raster(
    input_path: Path | str,
    output_folder: Path | str,
    *,
    tms: Optional[bool] = None,
    zoom: str = "auto",
    x: str = "auto",
    y: str = "auto",
    format: Optional[str] = None,
    output: TextIO = sys.stdout,
    config: Optional[TilingConfig] = None,
    context: Optional[RasterContext] = None,
) -> List[str]:
    """Open ``input_path``, tile it into ``output_folder`` and write the listing.

    Argument strings are validated before the raster is opened.
    """

    config = config or TilingConfig()
    fmt = validate_listing_format(format or config.listing_format)
    parse_zoom_range(zoom)
    parse_tile_index(x, "x")
    parse_tile_index(y, "y")

    with Tiler(input_path, output_folder, tms, config=config, context=context) as tiler:
        return run_tiler(tiler, output, format=fmt, zoom=zoom, x=x, y=y, on_error=config.on_error)

