"""Map a georeferenced query window onto raster read/write windows."""

from __future__ import annotations

import math
from typing import Sequence, Tuple

from orthotiler.core.geometry import EMPTY_WINDOW, PixelWindow, WindowPair


def geo_query(
    geotransform: Sequence[float],
    raster_size: Tuple[int, int],
    ulx: float,
    uly: float,
    lrx: float,
    lry: float,
    query_size: int = 0,
) -> WindowPair:
    """Return the raster read window and tile write window for a query.

    ``geotransform`` is in GDAL order ``(ulx, xres, xskew, uly, yskew, yres)``
    and ``raster_size`` is ``(width, height)``. Without ``query_size`` the
    write window keeps the native resolution of the raster; otherwise it is
    ``query_size`` square. Read offsets are floored, so negative offsets
    round away from the raster. Portions of the query falling outside the
    raster are clipped from both windows proportionally. A query that misses
    the raster yields an empty pair.
    """

    raster_width, raster_height = raster_size
    rx = math.floor((ulx - geotransform[0]) / geotransform[1] + 0.001)
    ry = math.floor((uly - geotransform[3]) / geotransform[5] + 0.001)
    rxsize = int((lrx - ulx) / geotransform[1] + 0.5)
    rysize = int((lry - uly) / geotransform[5] + 0.5)

    if query_size:
        wxsize, wysize = query_size, query_size
    else:
        wxsize, wysize = rxsize, rysize

    rx, rxsize, wx, wxsize = _clip_axis(rx, rxsize, wxsize, raster_width)
    ry, rysize, wy, wysize = _clip_axis(ry, rysize, wysize, raster_height)

    if min(rxsize, rysize, wxsize, wysize) <= 0:
        return WindowPair(EMPTY_WINDOW, EMPTY_WINDOW)
    return WindowPair(
        PixelWindow(rx, ry, rxsize, rysize),
        PixelWindow(wx, wy, wxsize, wysize),
    )


def _clip_axis(r: int, rsize: int, wsize: int, limit: int) -> Tuple[int, int, int, int]:
    """Clip one axis of the read window to ``[0, limit)`` and shrink the write window to match."""

    if rsize <= 0:
        return 0, 0, 0, 0
    w = 0
    if r < 0:
        rshift = abs(r)
        if rshift >= rsize:
            return 0, 0, 0, 0
        w = int(wsize * (float(rshift) / rsize))
        wsize = wsize - w
        rsize = rsize - int(rsize * (float(rshift) / rsize))
        r = 0
    if r >= limit:
        return 0, 0, 0, 0
    if r + rsize > limit:
        wsize = int(wsize * (float(limit - r) / rsize))
        rsize = limit - r
    return r, rsize, w, wsize
