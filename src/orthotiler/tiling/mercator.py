"""Spherical Mercator (EPSG:3857) pyramid coordinate conversions.

Four coordinate spaces are involved:

* geographic -- WGS84 longitude/latitude in degrees
* projected  -- EPSG:3857 meters, y grows northward
* pixel      -- pyramid pixels at a zoom level, origin at the top-left
                corner of the world, y grows southward
* tile       -- ``pixel // tile_size``; row 0 is the northern edge (XYZ)

TMS rows are the complement of XYZ rows and are converted with
:func:`xyz_to_tms` / :func:`tms_to_xyz`.
"""

from __future__ import annotations

import math

from orthotiler.core.geometry import (
    BoundingBox,
    Point,
    geographic,
    pixel,
    projected,
    tile_index,
)

EARTH_RADIUS = 6378137.0
MAX_ZOOM_LEVEL = 32


def xyz_to_tms(ty: int, tz: int) -> int:
    """Convert an XYZ row to its TMS row."""
    return (2**tz - 1) - ty


def tms_to_xyz(ty: int, tz: int) -> int:
    """Convert a TMS row to its XYZ row."""
    return (2**tz - 1) - ty


class GlobalMercator:
    """Conversions between lat/lon, meters, pyramid pixels and tiles."""

    def __init__(self, tile_size: int = 256, max_zoom_level: int = MAX_ZOOM_LEVEL) -> None:
        self.tile_size = tile_size
        self.max_zoom_level = max_zoom_level
        # 20037508.342789244
        self.origin_shift = math.pi * EARTH_RADIUS
        # 156543.03392804062 for 256 pixel tiles
        self.initial_resolution = 2 * self.origin_shift / tile_size

    def lat_lon_to_meters(self, lat: float, lon: float) -> Point:
        """Project a WGS84 lat/lon onto EPSG:3857."""

        mx = lon * self.origin_shift / 180.0
        my = math.log(math.tan((90 + lat) * math.pi / 360.0)) / (math.pi / 180.0)
        my = my * self.origin_shift / 180.0
        return projected(mx, my)

    def meters_to_lat_lon(self, mx: float, my: float) -> Point:
        """Inverse spherical Mercator: EPSG:3857 meters to WGS84 lon/lat."""

        lon = (mx / self.origin_shift) * 180.0
        lat = (my / self.origin_shift) * 180.0
        lat = 180 / math.pi * (2 * math.atan(math.exp(lat * math.pi / 180.0)) - math.pi / 2.0)
        return geographic(lon, lat)

    def pixels_to_meters(self, px: float, py: float, zoom: int) -> Point:
        res = self.resolution(zoom)
        return projected(px * res - self.origin_shift, self.origin_shift - py * res)

    def meters_to_pixels(self, mx: float, my: float, zoom: int) -> Point:
        res = self.resolution(zoom)
        return pixel((mx + self.origin_shift) / res, (self.origin_shift - my) / res)

    def pixels_to_tile(self, px: float, py: float) -> Point:
        """Tile covering the given pixel; a pixel on a tile edge belongs to the lower index."""

        tx = int(math.ceil(px / float(self.tile_size)) - 1)
        ty = int(math.ceil(py / float(self.tile_size)) - 1)
        return tile_index(tx, ty)

    def meters_to_tile(self, mx: float, my: float, zoom: int) -> Point:
        p = self.meters_to_pixels(mx, my, zoom)
        return self.pixels_to_tile(p.x, p.y)

    def tile_bounds(self, tx: int, ty: int, zoom: int) -> BoundingBox:
        """Bounds of an XYZ tile in EPSG:3857 meters."""

        top_left = self.pixels_to_meters(tx * self.tile_size, ty * self.tile_size, zoom)
        bottom_right = self.pixels_to_meters(
            (tx + 1) * self.tile_size, (ty + 1) * self.tile_size, zoom
        )
        return BoundingBox.from_corners(top_left, bottom_right)

    def tile_lat_lon_bounds(self, tx: int, ty: int, zoom: int) -> BoundingBox:
        bounds = self.tile_bounds(tx, ty, zoom)
        return BoundingBox(
            self.meters_to_lat_lon(bounds.min.x, bounds.min.y),
            self.meters_to_lat_lon(bounds.max.x, bounds.max.y),
        )

    def resolution(self, zoom: int) -> float:
        """Resolution (meters/pixel) for given zoom level (measured at Equator)."""
        return self.initial_resolution / (2**zoom)

    def zoom_for_pixel_size(self, pixel_size: float) -> int:
        """Smallest zoom whose resolution is not coarser than ``pixel_size``."""

        if pixel_size <= 0:
            raise ValueError(f"pixel size must be positive, got {pixel_size}")
        for zoom in range(self.max_zoom_level + 1):
            if self.resolution(zoom) <= pixel_size:
                return zoom
        return self.max_zoom_level

    def zoom_for_extent(self, span: float) -> int:
        """Largest zoom at which one tile still spans ``span`` meters."""

        pixel_size = span / self.tile_size
        zoom = self.zoom_for_pixel_size(pixel_size)
        if zoom > 0 and self.resolution(zoom) < pixel_size:
            zoom -= 1
        return zoom

    def tile_count(self, zoom: int) -> int:
        """Number of tiles along one axis at ``zoom``."""
        return 2**zoom
