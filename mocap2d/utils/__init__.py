"""Utility modules for mocap2d."""

from mocap2d.utils.math_utils import (
    clamp,
    median,
    normalize_angle_degrees,
    pick_dominant_axis,
    round_to,
    to_finite,
)

__all__ = [
    "clamp",
    "median",
    "normalize_angle_degrees",
    "pick_dominant_axis",
    "round_to",
    "to_finite",
]
