"""Encode rendered tile buffers as image files."""

from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image

PIL_FORMATS = {"png": "PNG", "webp": "WEBP", "jpg": "JPEG"}
PIL_RESAMPLING = {
    "nearest": Image.Resampling.NEAREST,
    "bilinear": Image.Resampling.BILINEAR,
    "bicubic": Image.Resampling.BICUBIC,
    "lanczos": Image.Resampling.LANCZOS,
    "average": Image.Resampling.BOX,
    "box": Image.Resampling.BOX,
}


def to_image(canvas: np.ndarray) -> Image.Image:
    """Build a grey+alpha or RGBA image from a ``(bands + 1, h, w)`` canvas.

    The last band of ``canvas`` is alpha. One or two data bands render as
    grey (first band); three or more render the first three as RGB.
    """

    if canvas.ndim != 3 or canvas.shape[0] < 2:
        raise ValueError(f"canvas must hold at least one data band and alpha, got {canvas.shape}")
    alpha = canvas[-1]
    data = canvas[:-1]
    if data.shape[0] >= 3:
        stacked = np.dstack([data[0], data[1], data[2], alpha])
        return Image.fromarray(np.ascontiguousarray(stacked))
    stacked = np.dstack([data[0], alpha])
    return Image.fromarray(np.ascontiguousarray(stacked))


def encode_tile(
    canvas: np.ndarray,
    path: Path,
    *,
    extension: str,
    tile_size: int,
    resampling: str = "average",
) -> None:
    """Write ``canvas`` to ``path``, scaling it to ``tile_size`` if needed."""

    image = to_image(canvas)
    if image.size != (tile_size, tile_size):
        image = image.resize((tile_size, tile_size), PIL_RESAMPLING[resampling.lower()])
    if extension == "jpg":
        image = image.convert("RGB" if image.mode == "RGBA" else "L")
    elif extension == "webp" and image.mode == "LA":
        image = image.convert("RGBA")
    image.save(path, format=PIL_FORMATS[extension])
