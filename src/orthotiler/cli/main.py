"""CLI entry point for orthotiler."""

from __future__ import annotations

import argparse
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Iterable

from orthotiler.config import PipelineConfig, load_config
from orthotiler.core.models import ERROR_POLICIES, LISTING_FORMATS, QUERY_RESAMPLING, TILE_FORMATS
from orthotiler.logging import configure_logging, get_logger
from orthotiler.tiling import (
    InvalidArgumentsError,
    RasterContext,
    TilerError,
    parse_tile_index,
    parse_zoom_range,
    tile_raster,
)

LOGGER = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_ARGUMENTS = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Cut georeferenced rasters into Web Mercator tiles")
    parser.add_argument("--log-json", action="store_true", help="Emit logs in JSON format")
    parser.add_argument("--log-level", default=None, help="Logging level (default: config value or INFO)")
    subcommands = parser.add_subparsers(dest="command", required=True)

    tile = subcommands.add_parser("tile", help="Generate {z}/{x}/{y} tiles from a raster")
    tile.add_argument("input", type=Path, help="Source raster path")
    tile.add_argument("output_folder", type=Path, help="Destination directory for the tile tree")
    tile.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to tiling configuration file (YAML or JSON)",
    )
    tile.add_argument(
        "--zoom",
        default="auto",
        help="Zoom level N, range min-max, or auto (default: auto)",
    )
    tile.add_argument("-x", dest="x", default="auto", help="Tile column or auto (default: auto)")
    tile.add_argument("-y", dest="y", default="auto", help="Tile row or auto (default: auto)")
    tile.add_argument(
        "--format",
        choices=list(LISTING_FORMATS),
        default=None,
        help="Listing format written to the output (default: config value or text)",
    )
    tile.add_argument(
        "--tms",
        action="store_true",
        default=None,
        help="Use TMS row numbering (origin at the bottom) instead of XYZ",
    )
    tile.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the tile listing to this file instead of stdout",
    )
    tile.add_argument("--tile-size", type=int, default=None, help="Tile edge length in pixels")
    tile.add_argument(
        "--query-size",
        type=int,
        default=None,
        help="Read tiles at this size and scale them down to the tile size",
    )
    tile.add_argument(
        "--tile-format",
        choices=sorted(TILE_FORMATS),
        default=None,
        help="Tile image format",
    )
    tile.add_argument(
        "--resampling",
        default=None,
        help="Resampling kernel for the reprojected view (default: config value or nearest)",
    )
    tile.add_argument(
        "--query-resampling",
        choices=list(QUERY_RESAMPLING),
        default=None,
        help="Kernel used when scaling from the query size to the tile size",
    )
    tile.add_argument(
        "--on-error",
        choices=list(ERROR_POLICIES),
        default=None,
        help="Abort the run or skip tiles that fail to write (default: abort)",
    )
    return parser


def main(argv: Iterable[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    configure_logging(level=args.log_level or "INFO", json_logs=args.log_json)

    if args.command == "tile":
        return _handle_tile(args)
    parser.error("Unknown command")
    return EXIT_INVALID_ARGUMENTS


def run() -> None:
    """Console script entry point."""

    sys.exit(main())


def _load_pipeline_config(path: Path | None) -> PipelineConfig:
    if path is None:
        return PipelineConfig()
    resolved = path.resolve()
    if not resolved.exists():
        raise InvalidArgumentsError(f"Configuration file not found: {resolved}")
    return load_config(resolved)


def _apply_overrides(cfg: PipelineConfig, args: argparse.Namespace) -> None:
    tiling = cfg.tiling
    if args.tile_size is not None:
        tiling.tile_size = args.tile_size
    if args.query_size is not None:
        tiling.query_size = args.query_size
    if args.tile_format is not None:
        tiling.tile_format = args.tile_format
    if args.resampling is not None:
        tiling.resampling = args.resampling
    if args.query_resampling is not None:
        tiling.query_resampling = args.query_resampling
    if args.on_error is not None:
        tiling.on_error = args.on_error
    if args.format is not None:
        tiling.listing_format = args.format
    if args.tms:
        tiling.tms = True
    tiling.validate()


def _handle_tile(args: argparse.Namespace) -> int:
    try:
        cfg = _load_pipeline_config(args.config)
        _apply_overrides(cfg, args)
    except (InvalidArgumentsError, ValueError, OSError) as exc:
        LOGGER.error("invalid configuration: %s", exc)
        return EXIT_INVALID_ARGUMENTS

    # Checked before the listing file is opened, which truncates it.
    try:
        parse_zoom_range(args.zoom)
        parse_tile_index(args.x, "x")
        parse_tile_index(args.y, "y")
    except InvalidArgumentsError as exc:
        LOGGER.error("invalid arguments: %s", exc)
        return EXIT_INVALID_ARGUMENTS

    if args.config is not None:
        configure_logging(
            level=args.log_level or cfg.logging.level,
            json_logs=args.log_json or cfg.logging.json_logs,
            log_file=cfg.logging.log_file,
        )

    try:
        with ExitStack() as stack:
            context = stack.enter_context(RasterContext.from_config(cfg.tiling))
            if args.output is not None:
                args.output.parent.mkdir(parents=True, exist_ok=True)
                output = stack.enter_context(args.output.open("w", encoding="utf-8"))
            else:
                output = sys.stdout
            written = tile_raster(
                args.input,
                args.output_folder,
                tms=cfg.tiling.tms,
                zoom=args.zoom,
                x=args.x,
                y=args.y,
                format=cfg.tiling.listing_format,
                output=output,
                config=cfg.tiling,
                context=context,
            )
    except InvalidArgumentsError as exc:
        LOGGER.error("invalid arguments: %s", exc)
        return EXIT_INVALID_ARGUMENTS
    except TilerError as exc:
        LOGGER.error("tiling failed: %s", exc)
        return EXIT_FAILURE
    except OSError as exc:
        LOGGER.error("cannot write listing: %s", exc)
        return EXIT_FAILURE

    LOGGER.info(
        "tiling complete",
        extra={
            "input": str(args.input),
            "output_folder": str(args.output_folder),
            "tiles": len(written),
        },
    )
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
