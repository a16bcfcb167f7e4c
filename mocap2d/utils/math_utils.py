"""
Mathematical utilities for motion retargeting.

Provides functions for:
- Scalar clamping, rounding and angle normalization
- Dominant-axis selection on {x, y, z} points
- 2D rotation
- Robust medians
"""

import math
from typing import Iterable, Mapping, Optional, Sequence

import numpy as np

AXES = ("x", "y", "z")
EPSILON = 1e-5


def clamp(value: float, minimum: float, maximum: float) -> float:
    """Clamp a value into ``[minimum, maximum]``."""
    return max(minimum, min(maximum, value))


def to_finite(value, fallback: float = 0.0) -> float:
    """
    Coerce a value to a finite float.

    Args:
        value: Anything convertible with ``float()``
        fallback: Returned for None, NaN, infinities and unconvertible input

    Returns:
        A finite float
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if math.isfinite(number) else fallback


def round_to(value: float, digits: int = 4) -> float:
    """Round half up to ``digits`` decimals, never returning negative zero."""
    factor = 10 ** digits
    scaled = value * factor
    rounded = math.floor(scaled + 0.5) / factor
    return rounded + 0.0


def normalize_angle_degrees(angle: float) -> float:
    """Wrap an angle into (-180, 180]."""
    value = to_finite(angle, 0.0)
    while value > 180.0:
        value -= 360.0
    while value <= -180.0:
        value += 360.0
    return value


def rotate_2d(x: float, y: float, radians: float):
    """Rotate the point ``(x, y)`` counter-clockwise about the origin."""
    cos = math.cos(radians)
    sin = math.sin(radians)
    return x * cos - y * sin, x * sin + y * cos


def pick_dominant_axis(vector: Mapping[str, float], excluded: Iterable[str] = ()) -> str:
    """
    Pick the axis with the largest absolute component.

    Ties resolve to the first axis in x, y, z order.

    Args:
        vector: ``{x, y, z}`` mapping
        excluded: Axes that may not be chosen

    Returns:
        Axis name
    """
    excluded = set(excluded)
    best_axis = None
    best_value = -math.inf
    for axis in AXES:
        if axis in excluded:
            continue
        value = abs(to_finite(vector.get(axis), 0.0))
        if value > best_value:
            best_value = value
            best_axis = axis
    if best_axis is not None:
        return best_axis
    return next((axis for axis in AXES if axis not in excluded), "x")


def remaining_axis(first: str, second: str) -> str:
    """Return the axis that is neither ``first`` nor ``second``."""
    return next((axis for axis in AXES if axis not in (first, second)), "z")


def median(values: Sequence[float]) -> Optional[float]:
    """Median of the finite entries, or None if there are none."""
    finite = np.array([to_finite(v, math.nan) for v in values], dtype=float)
    finite = finite[np.isfinite(finite)]
    if finite.size == 0:
        return None
    return float(np.median(finite))
