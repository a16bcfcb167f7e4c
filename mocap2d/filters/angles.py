"""
Angle-sequence operators.

All functions are pure: they take a sequence of angles in degrees and return a
new ``float64`` array, never modifying their input.
"""

from typing import Sequence

import numpy as np

from mocap2d.utils.math_utils import to_finite


def unwrap_angles(values: Sequence[float]) -> np.ndarray:
    """Remove +/-360 degree jumps so consecutive samples differ by at most 180."""
    array = np.asarray(values, dtype=float)
    if array.size == 0:
        return array.copy()
    return np.unwrap(array, period=360.0)


def clamp_angle_deltas(values: Sequence[float], max_delta_deg: float = 40.0) -> np.ndarray:
    """
    Limit the frame-to-frame change of a sequence.

    Each output sample moves towards its input by at most ``max_delta_deg``
    from the previous output sample.
    """
    array = np.asarray(values, dtype=float)
    if array.size == 0:
        return array.copy()

    max_delta = max(0.0, to_finite(max_delta_deg, 0.0))
    output = np.empty_like(array)
    output[0] = array[0]
    for index in range(1, array.size):
        delta = np.clip(array[index] - output[index - 1], -max_delta, max_delta)
        output[index] = output[index - 1] + delta
    return output


def apply_deadband(values: Sequence[float], deadband: float = 0.0) -> np.ndarray:
    """Hold the previous output while the input stays within ``deadband`` of it."""
    array = np.asarray(values, dtype=float)
    if array.size == 0 or deadband <= 0:
        return array.copy()

    output = np.empty_like(array)
    output[0] = array[0]
    for index in range(1, array.size):
        previous = output[index - 1]
        output[index] = previous if abs(array[index] - previous) < deadband else array[index]
    return output
