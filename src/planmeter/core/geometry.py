"""Geometry over normalized page coordinates.

Points are fractions (0 to 1) of the page width and height. Lengths
and areas are computed in that normalized space, which is the same
space the calibration ratio is measured in, so dividing by the ratio
yields real-world units. Pixel helpers are provided for the rendering
layer, which knows the actual page size.
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from planmeter.core.errors import InvalidGeometry, OutOfBounds


@dataclass(frozen=True)
class Point:
    """A normalized page coordinate."""

    x: float
    y: float

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Point":
        return cls(x=float(data["x"]), y=float(data["y"]))

    @classmethod
    def coerce(cls, value: Any) -> "Point":
        """Build a Point from a Point, an {x, y} mapping or an (x, y) pair."""
        if isinstance(value, cls):
            return value
        try:
            if isinstance(value, Mapping):
                return cls.from_dict(value)
            if isinstance(value, Sequence) and not isinstance(value, str) and len(value) == 2:
                return cls(x=float(value[0]), y=float(value[1]))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidGeometry(f"Malformed point {value!r}: {e}") from None
        raise InvalidGeometry(f"Malformed point: {value!r}")


def coerce_points(values) -> list[Point]:
    """Convert a sequence of point-like values into Points."""
    if values is None or isinstance(values, (str, bytes, Mapping)):
        raise InvalidGeometry("Points must be a sequence")
    return [Point.coerce(v) for v in values]


def validate_normalized(points: Sequence[Point]):
    """Raise OutOfBounds if any coordinate is non-finite or outside [0, 1]."""
    for index, p in enumerate(points):
        for axis, value in (("x", p.x), ("y", p.y)):
            if not math.isfinite(value) or value < 0.0 or value > 1.0:
                raise OutOfBounds(
                    f"Point {index} has {axis}={value}, expected a value in [0, 1]"
                )


def _as_arrays(points: Sequence[Point]) -> tuple[np.ndarray, np.ndarray]:
    xs = np.array([p.x for p in points], dtype=float)
    ys = np.array([p.y for p in points], dtype=float)
    return xs, ys


# -------------------------------------------------------------------
# Normalized-space metrics
# -------------------------------------------------------------------

def normalized_length(p1: Point, p2: Point) -> float:
    """Euclidean length of a segment in normalized space."""
    return math.hypot(p2.x - p1.x, p2.y - p1.y)


def polyline_length(points: Sequence[Point]) -> float:
    """Sum of consecutive segment lengths; 0 for fewer than 2 points."""
    if len(points) < 2:
        return 0.0
    xs, ys = _as_arrays(points)
    return float(np.hypot(np.diff(xs), np.diff(ys)).sum())


def closed_perimeter(points: Sequence[Point]) -> float:
    """Length of the closed loop through the points (last wraps to first)."""
    if len(points) < 2:
        return 0.0
    return polyline_length(list(points) + [points[0]])


def shoelace_area(points: Sequence[Point]) -> float:
    """Polygon area by the shoelace formula; 0 for fewer than 3 points.

    Vertex order is taken as given. Degenerate (collinear) polygons
    yield 0 rather than an error.
    """
    if len(points) < 3:
        return 0.0
    xs, ys = _as_arrays(points)
    cross = np.dot(xs, np.roll(ys, -1)) - np.dot(ys, np.roll(xs, -1))
    return float(abs(cross) / 2.0)


def centroid(points: Sequence[Point]) -> Point:
    """Mean of the vertices, used to anchor labels."""
    if not points:
        return Point(0.0, 0.0)
    xs, ys = _as_arrays(points)
    return Point(float(xs.mean()), float(ys.mean()))


# -------------------------------------------------------------------
# Pixel-space helpers (rendering layer supplies the page size)
# -------------------------------------------------------------------

def _check_page_size(page_width_px: float, page_height_px: float):
    if not (page_width_px > 0 and page_height_px > 0):
        raise InvalidGeometry(
            f"Page size must be positive, got {page_width_px}x{page_height_px}"
        )


def to_pixels(point: Point, page_width_px: float, page_height_px: float) -> tuple[float, float]:
    """Absolute pixel position of a normalized point."""
    _check_page_size(page_width_px, page_height_px)
    return point.x * page_width_px, point.y * page_height_px


def pixel_distance(p1: Point, p2: Point, page_width_px: float, page_height_px: float) -> float:
    """Segment length in pixels on a page of the given size."""
    x1, y1 = to_pixels(p1, page_width_px, page_height_px)
    x2, y2 = to_pixels(p2, page_width_px, page_height_px)
    return math.hypot(x2 - x1, y2 - y1)


def pixel_polyline_length(points: Sequence[Point], page_width_px: float, page_height_px: float) -> float:
    _check_page_size(page_width_px, page_height_px)
    scaled = [Point(p.x * page_width_px, p.y * page_height_px) for p in points]
    return polyline_length(scaled)


def pixel_area(points: Sequence[Point], page_width_px: float, page_height_px: float) -> float:
    _check_page_size(page_width_px, page_height_px)
    scaled = [Point(p.x * page_width_px, p.y * page_height_px) for p in points]
    return shoelace_area(scaled)


# -------------------------------------------------------------------
# Real-world conversion
# -------------------------------------------------------------------

def real_length(length: float, ratio: float) -> float:
    """Convert a normalized length to real units using a calibration ratio."""
    return length / ratio


def real_area(area: float, ratio: float) -> float:
    """Convert a normalized area to square real units."""
    return area / ratio / ratio


def measure(measurement_type: str, points: Sequence[Point], ratio: float | None) -> float | None:
    """Real-world value of an annotation.

    Counts need no calibration and return the number of markers. Other
    types return None when no ratio is available.
    """
    kind = getattr(measurement_type, "value", measurement_type)
    if kind == "count":
        return float(len(points))
    if ratio is None:
        return None
    if kind == "distance":
        return real_length(polyline_length(points), ratio)
    if kind == "perimeter":
        return real_length(closed_perimeter(points), ratio)
    if kind == "area":
        return real_area(shoelace_area(points), ratio)
    raise InvalidGeometry(f"Unknown measurement type: {kind!r}")
