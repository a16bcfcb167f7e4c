"""Keyframe reduction for generated timelines."""

from typing import Dict, List, Sequence

from mocap2d.utils.math_utils import to_finite


def reduce_keys(keys: List[Dict[str, float]], fields: Sequence[str], epsilon: float) -> List[Dict[str, float]]:
    """
    Drop interior keys that do not move away from the last kept key.

    A key is kept when any of ``fields`` differs from the last kept key by
    more than ``epsilon``. The first and last keys are always kept.

    Args:
        keys: Time-ordered keys
        fields: Value fields compared between keys
        epsilon: Change threshold

    Returns:
        New list of (shared) key dicts
    """
    if len(keys) <= 2:
        return list(keys)

    threshold = max(0.0, to_finite(epsilon, 0.0))
    reduced = [keys[0]]
    for current in keys[1:-1]:
        previous = reduced[-1]
        if any(
            abs(to_finite(current.get(name), 0.0) - to_finite(previous.get(name), 0.0)) > threshold
            for name in fields
        ):
            reduced.append(current)
    reduced.append(keys[-1])
    return reduced
