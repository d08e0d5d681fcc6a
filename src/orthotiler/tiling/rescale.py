"""Type-aware conversion of raster band samples into 8-bit tile values.

Each supported band data type has one :class:`PixelRule` in
:data:`PIXEL_RULES`. A rule is looked up once per band and then applied to
every sample of that band.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from .errors import TilerError


class PixelType(str, Enum):
    """Band data types the tiler can render."""

    UINT8 = "uint8"
    INT8 = "int8"
    UINT16 = "uint16"
    INT16 = "int16"
    UINT32 = "uint32"
    INT32 = "int32"
    FLOAT32 = "float32"
    FLOAT64 = "float64"


@dataclass(frozen=True)
class PixelRule:
    """How samples of one pixel type map onto ``[0, 255]``.

    ``lower``/``upper`` is the representable range of the type. When
    ``stretch`` is set the band's own min/max is used instead, if known.
    """

    pixel_type: PixelType
    dtype: np.dtype
    lower: float
    upper: float
    stretch: bool

    @property
    def is_float(self) -> bool:
        return np.issubdtype(self.dtype, np.floating)

    def bounds(self, statistics: Optional[Tuple[float, float]] = None) -> Tuple[float, float]:
        """Return the ``(low, high)`` input range mapped onto ``[0, 255]``."""

        if self.stretch and statistics is not None:
            low, high = statistics
            if np.isfinite(low) and np.isfinite(high) and low <= high:
                return float(low), float(high)
        return self.lower, self.upper


def _integer_rule(pixel_type: PixelType, stretch: bool) -> PixelRule:
    info = np.iinfo(pixel_type.value)
    return PixelRule(pixel_type, np.dtype(pixel_type.value), float(info.min), float(info.max), stretch)


def _float_rule(pixel_type: PixelType) -> PixelRule:
    info = np.finfo(pixel_type.value)
    return PixelRule(pixel_type, np.dtype(pixel_type.value), float(info.min), float(info.max), True)


PIXEL_RULES = {
    PixelType.UINT8: _integer_rule(PixelType.UINT8, stretch=False),
    PixelType.INT8: _integer_rule(PixelType.INT8, stretch=False),
    PixelType.UINT16: _integer_rule(PixelType.UINT16, stretch=True),
    PixelType.INT16: _integer_rule(PixelType.INT16, stretch=True),
    PixelType.UINT32: _integer_rule(PixelType.UINT32, stretch=True),
    PixelType.INT32: _integer_rule(PixelType.INT32, stretch=True),
    PixelType.FLOAT32: _float_rule(PixelType.FLOAT32),
    PixelType.FLOAT64: _float_rule(PixelType.FLOAT64),
}


def rule_for(dtype: str | np.dtype) -> PixelRule:
    """Return the rule for a band dtype name such as ``"uint16"``."""

    name = np.dtype(dtype).name
    try:
        return PIXEL_RULES[PixelType(name)]
    except ValueError:
        raise TilerError(f"Unsupported band data type: {name}") from None


def rescale_band(
    samples: np.ndarray,
    rule: PixelRule,
    bounds: Tuple[float, float],
    nodata: Optional[float] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Map ``samples`` linearly from ``bounds`` onto ``[0, 255]``.

    Returns the ``uint8`` values and a boolean validity mask. Samples equal to
    ``nodata`` (and NaN for float types) are invalid and come back as 0.
    """

    values = samples.astype(np.float64, copy=False)
    valid = np.ones(samples.shape, dtype=bool)
    if rule.is_float:
        valid &= np.isfinite(values)
    if nodata is not None and not np.isnan(nodata):
        valid &= values != nodata

    if rule.pixel_type is PixelType.UINT8:
        out = samples.astype(np.uint8, copy=True)
    else:
        low, high = bounds
        span = high - low
        if span > 0:
            scaled = (values - low) * (255.0 / span)
        else:
            scaled = np.zeros(samples.shape, dtype=np.float64)
        scaled = np.where(valid, scaled, 0.0)
        out = np.clip(np.rint(scaled), 0, 255).astype(np.uint8)

    out[~valid] = 0
    return out, valid
