"""
Non-destructive animation merge into a skeleton document.
"""

import copy
import logging
import re
import time
from typing import Any, Dict, Mapping

from mocap2d.core.types import MergeResult

logger = logging.getLogger(__name__)

DEFAULT_ANIMATION_NAME = "fbx_animation"


def sanitize_animation_name(name) -> str:
    """Keep ASCII letters, digits, ``_`` and ``-``; everything else becomes ``_``."""
    cleaned = re.sub(r"\s+", "_", str(name or "").strip())
    cleaned = re.sub(r"[^A-Za-z0-9_\-]", "_", cleaned)
    cleaned = re.sub(r"_+", "_", cleaned).strip("_")
    return cleaned or DEFAULT_ANIMATION_NAME


def resolve_animation_name_collision(name, existing: Mapping[str, Any]) -> str:
    """
    First free name among ``name``, ``name_fbx``, ``name_fbx_2``, ...

    Args:
        name: Desired (unsanitized) name
        existing: Existing animation map

    Returns:
        A sanitized name not present in ``existing``
    """
    base = sanitize_animation_name(name)
    if base not in existing:
        return base

    for suffix in range(1, 100000):
        candidate = f"{base}_fbx" if suffix == 1 else f"{base}_fbx_{suffix}"
        if candidate not in existing:
            return candidate
    return f"{base}_{int(time.time() * 1000)}"


def merge_animation_non_destructive(
    skeleton: Mapping[str, Any],
    animation_name: str,
    animation: Dict[str, Any],
) -> MergeResult:
    """
    Insert ``animation`` into a copy of ``skeleton`` under a free name.

    Existing animations are carried over unchanged; the input is not modified.
    """
    merged = copy.deepcopy(dict(skeleton))
    if not isinstance(merged.get("animations"), dict):
        merged["animations"] = {}

    resolved = resolve_animation_name_collision(animation_name, merged["animations"])
    if resolved != sanitize_animation_name(animation_name):
        logger.info("Animation name '%s' is taken; using '%s'", animation_name, resolved)
    merged["animations"][resolved] = copy.deepcopy(animation)
    return MergeResult(skeleton=merged, animation_name=resolved)
