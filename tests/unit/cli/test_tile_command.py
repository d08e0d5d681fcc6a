import importlib
import json
from pathlib import Path

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin

from orthotiler.tiling import InvalidArgumentsError, RasterSourceError

cli_main = importlib.import_module("orthotiler.cli.main")


@pytest.fixture()
def captured(monkeypatch: pytest.MonkeyPatch) -> dict:
    called: dict[str, object] = {}

    def stub_tile_raster(input_path, output_folder, **kwargs):  # type: ignore[no-untyped-def]
        called["input"] = input_path
        called["output_folder"] = output_folder
        called.update(kwargs)
        kwargs["output"].write("listing\n")
        return ["a.png"]

    monkeypatch.setattr(cli_main, "tile_raster", stub_tile_raster)
    return called


def test_tile_command_passes_options(captured: dict, tmp_path: Path) -> None:
    exit_code = cli_main.main(
        [
            "tile",
            str(tmp_path / "in.tif"),
            str(tmp_path / "tiles"),
            "--zoom",
            "3-4",
            "-x",
            "1",
            "-y",
            "2",
            "--format",
            "json",
            "--tms",
            "--tile-size",
            "512",
            "--tile-format",
            "webp",
            "--on-error",
            "skip",
            "--output",
            str(tmp_path / "listing.json"),
        ]
    )

    assert exit_code == 0
    assert captured["input"] == tmp_path / "in.tif"
    assert captured["zoom"] == "3-4"
    assert (captured["x"], captured["y"]) == ("1", "2")
    assert captured["format"] == "json"
    assert captured["tms"] is True
    config = captured["config"]
    assert config.tile_size == 512
    assert config.tile_extension == "webp"
    assert config.on_error == "skip"
    assert (tmp_path / "listing.json").read_text(encoding="utf-8") == "listing\n"


def test_defaults_come_from_config_file(captured: dict, tmp_path: Path) -> None:
    config_path = tmp_path / "tiling.yaml"
    config_path.write_text("tiling:\n  listing_format: json\n  tms: true\n", encoding="utf-8")

    exit_code = cli_main.main(
        ["tile", str(tmp_path / "in.tif"), str(tmp_path / "tiles"), "--config", str(config_path)]
    )

    assert exit_code == 0
    assert captured["format"] == "json"
    assert captured["tms"] is True
    assert captured["zoom"] == "auto"


def test_invalid_arguments_exit_with_2(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def stub_tile_raster(*args, **kwargs):  # type: ignore[no-untyped-def]
        raise InvalidArgumentsError("Invalid zoom range: 'x'")

    monkeypatch.setattr(cli_main, "tile_raster", stub_tile_raster)

    exit_code = cli_main.main(["tile", str(tmp_path / "in.tif"), str(tmp_path / "tiles"), "--zoom", "x"])

    assert exit_code == 2


def test_missing_config_exits_with_2(captured: dict, tmp_path: Path) -> None:
    exit_code = cli_main.main(
        ["tile", str(tmp_path / "in.tif"), str(tmp_path / "tiles"), "--config", str(tmp_path / "nope.yaml")]
    )

    assert exit_code == 2
    assert captured == {}


def test_raster_failure_exits_with_1(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def stub_tile_raster(*args, **kwargs):  # type: ignore[no-untyped-def]
        raise RasterSourceError("Cannot open raster in.tif")

    monkeypatch.setattr(cli_main, "tile_raster", stub_tile_raster)

    exit_code = cli_main.main(["tile", str(tmp_path / "in.tif"), str(tmp_path / "tiles")])

    assert exit_code == 1


def test_tile_command_end_to_end(tmp_path: Path) -> None:
    source = tmp_path / "world.tif"
    shift = 20037508.342789244
    data = np.full((3, 64, 64), 90, dtype=np.uint8)
    profile = {
        "driver": "GTiff",
        "width": 64,
        "height": 64,
        "count": 3,
        "dtype": "uint8",
        "crs": "EPSG:3857",
        "transform": from_origin(-shift, shift, 2 * shift / 64, 2 * shift / 64),
    }
    with rasterio.open(source, "w", **profile) as dst:
        dst.write(data)
    listing = tmp_path / "listing.json"

    exit_code = cli_main.main(
        [
            "tile",
            str(source),
            str(tmp_path / "tiles"),
            "--zoom",
            "0-1",
            "--format",
            "json",
            "--output",
            str(listing),
        ]
    )

    assert exit_code == 0
    paths = json.loads(listing.read_text(encoding="utf-8"))
    assert len(paths) == 5
    assert all(Path(path).exists() for path in paths)
    assert (tmp_path / "tiles" / "1" / "1" / "0.png").exists()


@pytest.mark.parametrize("flag,value", [("--zoom", "9-3"), ("-x", "west"), ("-y", "-1")])
def test_invalid_arguments_leave_existing_listing_untouched(
    captured: dict, tmp_path: Path, flag: str, value: str
) -> None:
    listing = tmp_path / "listing.txt"
    listing.write_text("previous run\n", encoding="utf-8")

    exit_code = cli_main.main(
        ["tile", str(tmp_path / "in.tif"), str(tmp_path / "tiles"), flag, value, "--output", str(listing)]
    )

    assert exit_code == 2
    assert captured == {}
    assert listing.read_text(encoding="utf-8") == "previous run\n"
