"""Sequence filtering modules."""

from mocap2d.filters.angles import apply_deadband, clamp_angle_deltas, unwrap_angles
from mocap2d.filters.keyframes import reduce_keys
from mocap2d.filters.smoothing import (
    ConditioningSettings,
    condition_angle_track,
    condition_scalar_track,
    median_filter_sequence,
    remove_trend,
    smooth_bidirectional,
    smooth_sequence,
)

__all__ = [
    "apply_deadband",
    "clamp_angle_deltas",
    "unwrap_angles",
    "reduce_keys",
    "ConditioningSettings",
    "condition_angle_track",
    "condition_scalar_track",
    "median_filter_sequence",
    "remove_trend",
    "smooth_bidirectional",
    "smooth_sequence",
]
