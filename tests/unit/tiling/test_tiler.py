from pathlib import Path

import numpy as np
import pytest
import rasterio
from PIL import Image
from rasterio.transform import from_origin
from rasterio.vrt import WarpedVRT

from orthotiler.core.geometry import Space
from orthotiler.core.models import TileInfo, TilingConfig
from orthotiler.tiling import InvalidArgumentsError, RasterContext, RasterSourceError, Tiler
from orthotiler.tiling.mercator import GlobalMercator

ORIGIN_SHIFT = 20037508.342789244


def _write_raster(path: Path, data: np.ndarray, *, crs: str | None, transform, nodata=None) -> Path:
    profile = {
        "driver": "GTiff",
        "width": data.shape[2],
        "height": data.shape[1],
        "count": data.shape[0],
        "dtype": data.dtype.name,
        "transform": transform,
        "nodata": nodata,
    }
    if crs is not None:
        profile["crs"] = crs
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(data)
    return path


@pytest.fixture()
def global_raster(tmp_path: Path) -> Path:
    """256x256 EPSG:3857 raster covering the world; north half 200, south half 50."""

    data = np.full((1, 256, 256), 50, dtype=np.uint8)
    data[0, :128, :] = 200
    transform = from_origin(-ORIGIN_SHIFT, ORIGIN_SHIFT, 2 * ORIGIN_SHIFT / 256, 2 * ORIGIN_SHIFT / 256)
    return _write_raster(tmp_path / "global.tif", data, crs="EPSG:3857", transform=transform)


@pytest.fixture()
def geographic_raster(tmp_path: Path) -> Path:
    """200x200 EPSG:4326 raster spanning -1 to 1 degree on both axes."""

    data = np.arange(200 * 200, dtype=np.uint16).reshape(1, 200, 200)
    transform = from_origin(-1.0, 1.0, 0.01, 0.01)
    return _write_raster(tmp_path / "geographic.tif", data, crs="EPSG:4326", transform=transform)


@pytest.fixture()
def small_mercator_raster(tmp_path: Path) -> Path:
    """64x64 RGB raster of 100 m pixels anchored at the projection origin."""

    data = np.full((3, 64, 64), 120, dtype=np.uint8)
    transform = from_origin(0.0, 6400.0, 100.0, 100.0)
    return _write_raster(tmp_path / "small.tif", data, crs="EPSG:3857", transform=transform)


def test_global_raster_zoom_range_and_full_grid(global_raster: Path, tmp_path: Path) -> None:
    with Tiler(global_raster, tmp_path / "tiles") as tiler:
        assert not tiler.is_warped
        assert tiler.data_bands_count == 1
        zooms = tiler.get_min_max_z()
        assert (zooms.min_zoom, zooms.max_zoom) == (0, 0)

        tiles = tiler.get_tiles_for_zoom_level(3)
        assert len(tiles) == 64
        assert tiles[0] == TileInfo(3, 0, 0)
        assert tiles[-1] == TileInfo(3, 7, 7)


def test_tile_writes_png_with_expected_values(global_raster: Path, tmp_path: Path) -> None:
    out = tmp_path / "tiles"
    with Tiler(global_raster, out) as tiler:
        north = tiler.tile(1, 0, 0)
        south = tiler.tile(TileInfo(1, 1, 1))

    assert north == out / "1" / "0" / "0.png"
    assert south == out / "1" / "1" / "1.png"
    with Image.open(north) as image:
        assert image.size == (256, 256)
        assert image.mode == "LA"
        assert image.getpixel((10, 10)) == (200, 255)
    with Image.open(south) as image:
        assert image.getpixel((10, 10)) == (50, 255)
    assert not list(out.rglob("*.part"))


def test_tms_rows_are_flipped(global_raster: Path, tmp_path: Path) -> None:
    out = tmp_path / "tms"
    with Tiler(global_raster, out, tms=True) as tiler:
        assert tiler.tms
        bounds = tiler.get_min_max_coords_for_z(1)
        assert bounds.space is Space.TILE
        assert bounds.as_tuple() == (0, 0, 1, 1)
        path = tiler.tile(1, 0, 1)

    assert path == out / "1" / "0" / "1.png"
    with Image.open(path) as image:
        assert image.getpixel((10, 10)) == (200, 255)


def test_geographic_source_is_warped(geographic_raster: Path, tmp_path: Path) -> None:
    out = tmp_path / "tiles"
    with Tiler(geographic_raster, out) as tiler:
        assert tiler.is_warped
        assert tiler.data_bands_count == 1
        zooms = tiler.get_min_max_z()
        mercator = tiler.mercator
        extent = tiler.extent
        with rasterio.open(geographic_raster) as src, WarpedVRT(src, crs="EPSG:3857") as vrt:
            pixel_size = vrt.res[0]

        assert mercator.resolution(zooms.max_zoom) <= pixel_size
        assert mercator.resolution(zooms.max_zoom - 1) > pixel_size
        span = max(extent.width, extent.height)
        assert mercator.resolution(zooms.min_zoom) * mercator.tile_size >= span
        assert zooms.min_zoom <= zooms.max_zoom

        tiles = tiler.get_tiles_for_zoom_level(zooms.max_zoom)
        assert tiles
        written = [tiler.tile(info) for info in tiles]

    written = [path for path in written if path is not None]
    assert written
    for path in written:
        assert path.exists()
        with Image.open(path) as image:
            assert image.mode == "LA"
            alpha = np.asarray(image)[:, :, 1]
            assert alpha.any()


def test_tile_outside_extent_is_not_written(small_mercator_raster: Path, tmp_path: Path) -> None:
    out = tmp_path / "tiles"
    with Tiler(small_mercator_raster, out) as tiler:
        assert tiler.data_bands_count == 3
        assert tiler.tile(10, 5, 9) is None

    assert not out.exists() or not any(out.rglob("*.png"))


def test_enumeration_matches_coordinate_bounds(small_mercator_raster: Path, tmp_path: Path) -> None:
    with Tiler(small_mercator_raster, tmp_path / "tiles") as tiler:
        for tz in range(10, 14):
            bounds = tiler.get_min_max_coords_for_z(tz)
            expected = (bounds.max.x - bounds.min.x + 1) * (bounds.max.y - bounds.min.y + 1)
            tiles = tiler.get_tiles_for_zoom_level(tz)
            assert len(tiles) == expected
            assert len(set(tiles)) == len(tiles)


def test_rgb_tile_renders_rgba(small_mercator_raster: Path, tmp_path: Path) -> None:
    with Tiler(small_mercator_raster, tmp_path / "tiles") as tiler:
        zoom = tiler.get_min_max_z().max_zoom
        paths = [tiler.tile(info) for info in tiler.get_tiles_for_zoom_level(zoom)]

    written = [path for path in paths if path is not None]
    assert written
    path = written[0]
    with Image.open(path) as image:
        assert image.mode == "RGBA"


def test_all_nodata_raster_writes_nothing(tmp_path: Path) -> None:
    data = np.zeros((1, 32, 32), dtype=np.uint8)
    source = _write_raster(
        tmp_path / "empty.tif",
        data,
        crs="EPSG:3857",
        transform=from_origin(0.0, 3200.0, 100.0, 100.0),
        nodata=0,
    )
    out = tmp_path / "tiles"

    with Tiler(source, out) as tiler:
        zoom = tiler.get_min_max_z().max_zoom
        results = [tiler.tile(info) for info in tiler.get_tiles_for_zoom_level(zoom)]

    assert results
    assert all(result is None for result in results)
    assert not out.exists() or not any(out.rglob("*.png"))


def test_tile_format_and_size_come_from_config(global_raster: Path, tmp_path: Path) -> None:
    config = TilingConfig(tile_size=128, query_size=256, tile_format="jpeg")
    with Tiler(global_raster, tmp_path / "tiles", config=config) as tiler:
        assert isinstance(tiler.mercator, GlobalMercator)
        path = tiler.tile(2, 1, 1)

    assert path.suffix == ".jpg"
    with Image.open(path) as image:
        assert image.size == (128, 128)
        assert image.mode == "L"


def test_tile_outside_grid_is_rejected(global_raster: Path, tmp_path: Path) -> None:
    with Tiler(global_raster, tmp_path / "tiles") as tiler:
        with pytest.raises(InvalidArgumentsError):
            tiler.tile(1, 2, 0)


def test_missing_file_raises_source_error(tmp_path: Path) -> None:
    with pytest.raises(RasterSourceError):
        Tiler(tmp_path / "missing.tif", tmp_path / "tiles")


def test_raster_without_georeference_is_rejected(tmp_path: Path) -> None:
    data = np.ones((1, 8, 8), dtype=np.uint8)
    source = _write_raster(tmp_path / "plain.tif", data, crs=None, transform=rasterio.Affine.identity())

    with pytest.raises(RasterSourceError):
        Tiler(source, tmp_path / "tiles")


def test_rotated_mercator_raster_is_read_through_warped_view(tmp_path: Path) -> None:
    data = np.full((1, 100, 100), 80, dtype=np.uint8)
    source = _write_raster(
        tmp_path / "rotated.tif",
        data,
        crs="EPSG:3857",
        transform=rasterio.Affine(0.0, -100.0, 0.0, -100.0, 0.0, 0.0),
    )
    out = tmp_path / "tiles"

    with Tiler(source, out) as tiler:
        assert tiler.is_warped
        extent = tiler.extent
        assert extent.min.x == pytest.approx(-10000.0, abs=200.0)
        assert extent.max.y == pytest.approx(0.0, abs=200.0)
        zooms = tiler.get_min_max_z()
        assert zooms.min_zoom <= zooms.max_zoom
        paths = [tiler.tile(info) for info in tiler.get_tiles_for_zoom_level(zooms.max_zoom)]

    assert any(path is not None and path.exists() for path in paths)


def test_tiler_without_context_owns_raster_environment(global_raster: Path, tmp_path: Path) -> None:
    config = TilingConfig(gdal_cachemax=256)

    with Tiler(global_raster, tmp_path / "tiles", config=config) as tiler:
        path = tiler.tile(0, 0, 0)

    assert path is not None and path.exists()


def test_shared_context_stays_active_after_tiler_closes(global_raster: Path, tmp_path: Path) -> None:
    with RasterContext.from_config(TilingConfig()) as context:
        with Tiler(global_raster, tmp_path / "tiles", context=context) as tiler:
            assert tiler.tile(0, 0, 0) is not None
        assert context.active
    assert not context.active
