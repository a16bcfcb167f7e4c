"""
Temporal smoothing for joint angle and translation sequences.

The conditioning chain applied to every projected track is:

    unwrap -> median -> delta clamp -> bidirectional EMA -> deadband -> unwrap

Scalar (translation) tracks skip the unwrap and delta-clamp stages.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from scipy.ndimage import median_filter
from scipy.signal import lfilter

from mocap2d.filters.angles import apply_deadband, clamp_angle_deltas, unwrap_angles
from mocap2d.utils.math_utils import clamp, to_finite


@dataclass(frozen=True)
class ConditioningSettings:
    """Parameters for one conditioning chain."""

    median_window: int = 5
    smoothing_alpha: float = 0.5
    smoothing_passes: int = 2
    deadband: float = 0.0

    # Only used for angle tracks
    max_delta_deg: Optional[float] = None


def odd_window_size(value, fallback: int = 1) -> int:
    """Coerce a window length to an odd integer; anything below 3 disables filtering."""
    parsed = int(np.floor(to_finite(value, fallback)))
    if parsed < 3:
        return 1
    return parsed + 1 if parsed % 2 == 0 else parsed


def median_filter_sequence(values: Sequence[float], window: int) -> np.ndarray:
    """
    Sliding median with edge samples replicated past the sequence bounds.

    Args:
        values: Input samples
        window: Window length (coerced to an odd size)

    Returns:
        Filtered samples
    """
    array = np.nan_to_num(np.asarray(values, dtype=float), nan=0.0, posinf=0.0, neginf=0.0)
    size = odd_window_size(window)
    if array.size < 3 or size <= 1:
        return array.copy()
    return median_filter(array, size=size, mode="nearest")


def smooth_sequence(values: Sequence[float], alpha: float = 1.0) -> np.ndarray:
    """One-pole exponential smoothing seeded with the first sample."""
    array = np.asarray(values, dtype=float)
    if array.size == 0 or alpha >= 1:
        return array.copy()

    factor = clamp(to_finite(alpha, 1.0), 0.0, 1.0)
    smoothed, _ = lfilter([factor], [1.0, factor - 1.0], array, zi=[(1.0 - factor) * array[0]])
    return smoothed


def smooth_bidirectional(values: Sequence[float], alpha: float, passes: int = 1) -> np.ndarray:
    """
    Zero-phase exponential smoothing.

    Each pass smooths forward, then smooths the reversed result and reverses it
    back, which cancels the lag a single forward pass introduces.
    """
    array = np.asarray(values, dtype=float)
    if array.size < 2:
        return array.copy()

    output = array.copy()
    for _ in range(max(1, int(to_finite(passes, 1)))):
        forward = smooth_sequence(output, alpha)
        output = smooth_sequence(forward[::-1], alpha)[::-1]
    return np.ascontiguousarray(output)


def remove_trend(values: Sequence[float], alpha: float) -> np.ndarray:
    """
    Subtract a leaky-integrator trend, keeping only the oscillating part.

    ``trend += (raw - trend) * alpha`` is updated before each subtraction, and
    starts at the first sample.
    """
    array = np.asarray(values, dtype=float)
    if array.size == 0:
        return array.copy()

    output = np.empty_like(array)
    trend = array[0]
    for index, raw in enumerate(array):
        trend += (raw - trend) * alpha
        output[index] = raw - trend
    return output


def condition_scalar_track(values: Sequence[float], settings: ConditioningSettings) -> np.ndarray:
    """Median, bidirectional smoothing and deadband for a scalar track."""
    array = np.asarray(values, dtype=float)
    if array.size == 0:
        return array.copy()

    filtered = median_filter_sequence(array, settings.median_window)
    smoothed = smooth_bidirectional(
        filtered, to_finite(settings.smoothing_alpha, 1.0), settings.smoothing_passes
    )
    return apply_deadband(smoothed, max(0.0, to_finite(settings.deadband, 0.0)))


def condition_angle_track(values: Sequence[float], settings: ConditioningSettings) -> np.ndarray:
    """Full angle conditioning chain, ending with a second unwrap."""
    unwrapped = unwrap_angles(values)
    if unwrapped.size == 0:
        return unwrapped

    filtered = median_filter_sequence(unwrapped, settings.median_window)
    max_delta = 70.0 if settings.max_delta_deg is None else settings.max_delta_deg
    clamped = clamp_angle_deltas(filtered, max_delta)
    smoothed = smooth_bidirectional(clamped, settings.smoothing_alpha, settings.smoothing_passes)
    deadbanded = apply_deadband(smoothed, settings.deadband)
    return unwrap_angles(deadbanded)
