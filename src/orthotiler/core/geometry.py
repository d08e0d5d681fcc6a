"""Space-tagged coordinate value types shared by the tiling modules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Tuple


class Space(str, Enum):
    """Coordinate space a point belongs to."""

    GEOGRAPHIC = "geographic"
    PROJECTED = "projected"
    PIXEL = "pixel"
    TILE = "tile"


@dataclass(frozen=True)
class Point:
    """A 2D point tagged with its coordinate space.

    Geographic points store longitude in ``x`` and latitude in ``y``.
    """

    x: float
    y: float
    space: Space

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle whose corners share one coordinate space."""

    min: Point
    max: Point

    def __post_init__(self) -> None:
        if self.min.space is not self.max.space:
            raise ValueError(
                f"bounding box corners must share a space: {self.min.space.value} != {self.max.space.value}"
            )

    @classmethod
    def from_corners(cls, a: Point, b: Point) -> "BoundingBox":
        """Build a normalized box (min <= max on both axes) from any two corners."""

        if a.space is not b.space:
            raise ValueError(f"cannot mix {a.space.value} and {b.space.value} corners")
        return cls(
            Point(min(a.x, b.x), min(a.y, b.y), a.space),
            Point(max(a.x, b.x), max(a.y, b.y), a.space),
        )

    @property
    def space(self) -> Space:
        return self.min.space

    @property
    def width(self) -> float:
        return self.max.x - self.min.x

    @property
    def height(self) -> float:
        return self.max.y - self.min.y

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.min.x, self.min.y, self.max.x, self.max.y)


def geographic(lon: float, lat: float) -> Point:
    return Point(lon, lat, Space.GEOGRAPHIC)


def projected(x: float, y: float) -> Point:
    return Point(x, y, Space.PROJECTED)


def pixel(px: float, py: float) -> Point:
    return Point(px, py, Space.PIXEL)


def tile_index(tx: int, ty: int) -> Point:
    return Point(tx, ty, Space.TILE)


@dataclass(frozen=True)
class PixelWindow:
    """Rectangle of whole pixels: ``x``/``y`` offset plus ``width``/``height``."""

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(f"window sizes must be non-negative: {self}")

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0


EMPTY_WINDOW = PixelWindow(0, 0, 0, 0)


@dataclass(frozen=True)
class WindowPair:
    """Source-raster read window paired with the tile-buffer write window."""

    read: PixelWindow
    write: PixelWindow

    @property
    def is_empty(self) -> bool:
        return self.read.is_empty or self.write.is_empty
