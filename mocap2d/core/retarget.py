"""
Retargeter: turns projected canonical angle timelines into bone timelines of
a target skeleton.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Set

import numpy as np
from numpy.typing import NDArray

from mocap2d.core.errors import MotionInputError, RetargetError
from mocap2d.core.humanoid import CANONICAL_FALLBACKS, mirrored_joint
from mocap2d.core.profile import JointAdjustment, Limits, RetargetProfile
from mocap2d.core.types import BoneTimeline, GeneratedAnimation, ProjectedMotion, RetargetResult
from mocap2d.filters.keyframes import reduce_keys
from mocap2d.skeleton.graph import Transform2D, build_world_map
from mocap2d.utils.math_utils import EPSILON, clamp, round_to, to_finite

logger = logging.getLogger(__name__)

DEFAULT_ANIMATION_NAME = "fbx_animation"
IN_PLACE_MODES = ("in_place", "none")


@dataclass(frozen=True)
class TimelineConfig:
    """Key generation options."""

    uniform_keyframes: bool = True
    reduce_rotation_keys: bool = False
    reduce_translation_keys: bool = False
    fill_missing_with_zero: bool = True
    reference_frame_count: int = 3

    @classmethod
    def resolve(
        cls,
        profile_timeline: Optional[Mapping[str, Any]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> "TimelineConfig":
        """
        Merge caller overrides over the profile's timeline block over defaults.

        Reduction defaults to the opposite of ``uniformKeyframes``.
        """
        layers = [overrides or {}, profile_timeline or {}]

        def pick(key, default):
            for layer in layers:
                if key in layer:
                    return layer[key]
            return default

        uniform = bool(pick("uniformKeyframes", True))
        return cls(
            uniform_keyframes=uniform,
            reduce_rotation_keys=bool(pick("reduceRotationKeys", not uniform)),
            reduce_translation_keys=bool(pick("reduceTranslationKeys", not uniform)),
            fill_missing_with_zero=bool(pick("fillMissingWithZero", True)),
            reference_frame_count=max(1, int(math.floor(to_finite(pick("referenceFrameCount", 3), 3)))),
        )


def reference_angle(angles: NDArray[np.float64], sample_count: int = 3) -> float:
    """Mean of the finite samples among the first ``sample_count`` angles."""
    if len(angles) == 0:
        return 0.0
    leading = np.asarray(angles[: min(max(1, sample_count), len(angles))], dtype=float)
    finite = leading[np.isfinite(leading)]
    if finite.size == 0:
        return to_finite(angles[0], 0.0)
    return float(finite.mean())


def build_rotation_keys(
    frame_times: NDArray[np.float64],
    angles: NDArray[np.float64],
    adjustment: JointAdjustment,
    limits: Limits,
    timeline: TimelineConfig,
) -> List[Dict[str, float]]:
    """Rotation keys relative to the reference angle, adjusted and clamped."""
    if len(frame_times) == 0 or len(angles) == 0:
        return []

    reference = reference_angle(angles, timeline.reference_frame_count)
    keys = []
    for index, time in enumerate(frame_times):
        sample = to_finite(angles[index], reference) if index < len(angles) else reference
        value = (sample - reference) * adjustment.multiplier + adjustment.offset
        keys.append({
            "time": round_to(to_finite(time, 0.0), 4),
            "angle": round_to(clamp(value, limits.min_angle, limits.max_angle), 4),
        })

    if timeline.uniform_keyframes or not timeline.reduce_rotation_keys:
        return keys
    return reduce_keys(keys, ("angle",), limits.rotation_epsilon_deg)


def build_translation_keys(
    frame_times: NDArray[np.float64],
    translation: NDArray[np.float64],
    scale: float,
    limits: Limits,
    timeline: TimelineConfig,
) -> List[Dict[str, float]]:
    if len(frame_times) == 0 or len(translation) == 0:
        return []

    keys = []
    for index, time in enumerate(frame_times):
        x, y = translation[index] if index < len(translation) else (0.0, 0.0)
        keys.append({
            "time": round_to(to_finite(time, 0.0), 4),
            "x": round_to(to_finite(x, 0.0) * scale, 4),
            "y": round_to(to_finite(y, 0.0) * scale, 4),
        })

    if timeline.uniform_keyframes or not timeline.reduce_translation_keys:
        return keys
    return reduce_keys(keys, ("x", "y"), limits.translation_epsilon)


def _warn(warnings: List[str], message: str) -> None:
    logger.warning(message)
    warnings.append(message)



def should_swap_sides(
    projected: ProjectedMotion,
    profile: RetargetProfile,
    world: Mapping[str, Transform2D],
    warnings: List[str],
) -> bool:
    """
    True when source and target handedness disagree.

    Compares the sign of the source left-minus-right horizontal spread with
    the target's left-minus-right bone world x.
    """
    side = profile.side_calibration
    source = projected.source_side
    if not source.available:
        _warn(
            warnings,
            f"Side auto-calibration skipped: source {side.source_left_joint}/"
            f"{side.source_right_joint} first-frame X is unavailable."
        )
        return False

    target_left = world.get(side.target_left_bone)
    target_right = world.get(side.target_right_bone)
    if target_left is None or target_right is None:
        _warn(
            warnings,
            f"Side auto-calibration skipped: target bones {side.target_left_bone}/"
            f"{side.target_right_bone} were not found in skeleton."
        )
        return False

    source_delta = source.left_arm_x - source.right_arm_x
    target_delta = target_left.x - target_right.x
    if abs(source_delta) <= EPSILON or abs(target_delta) <= EPSILON:
        _warn(warnings, "Side auto-calibration skipped: arm side spread is too small to infer handedness.")
        return False
    return source_delta * target_delta < 0


def resolve_source_angles(
    projected: ProjectedMotion,
    joint: str,
    swap_sides: bool,
    warnings: List[str],
    reported: Set[str],
):
    """
    Angle series for ``joint``, walking its fallback chain.

    Returns:
        ``(source joint, angles or None)``
    """
    def source_for(candidate):
        return mirrored_joint(candidate) if swap_sides else candidate

    chain = [joint] + list(CANONICAL_FALLBACKS.get(joint, ()))
    for position, candidate in enumerate(chain):
        source_joint = source_for(candidate)
        angles = projected.joint_angles.get(source_joint)
        if angles is None or len(angles) == 0:
            continue
        if position > 0:
            key = f"{joint}|{candidate}|{source_joint}"
            if key not in reported:
                reported.add(key)
                _warn(
                    warnings,
                    f'Source joint "{source_for(joint)}" missing; using fallback '
                    f'"{source_joint}" for "{joint}".'
                )
        return source_joint, angles
    return source_for(joint), None


def resolve_root_motion(root_motion: Optional[str], profile: RetargetProfile) -> str:
    return str(root_motion or profile.root_motion or "in_place").strip().lower()


def retarget_to_animation(
    skeleton: Dict[str, Any],
    projected: ProjectedMotion,
    profile: RetargetProfile,
    animation_name: Optional[str] = None,
    root_motion: Optional[str] = None,
    timeline_overrides: Optional[Mapping[str, Any]] = None,
) -> RetargetResult:
    """
    Build a bone animation for ``skeleton`` from projected canonical angles.

    Args:
        skeleton: Target skeleton document (read only)
        projected: Projected motion
        profile: Retarget profile
        animation_name: Desired animation name
        root_motion: ``in_place``/``none`` suppress hip translation keys
        timeline_overrides: camelCase timeline options taking precedence over the profile

    Returns:
        Retarget result with the generated animation

    Raises:
        MotionInputError: If the skeleton is not a document or there are no frames
        RetargetError: If no bone timeline could be produced
    """
    if not isinstance(skeleton, dict):
        raise MotionInputError("A valid skeleton document is required for retargeting.")
    frame_times = np.asarray(projected.frame_times, dtype=float)
    if frame_times.size == 0:
        raise MotionInputError("No projected frame data is available for retargeting.")

    warnings: List[str] = list(projected.warnings)
    world = build_world_map(skeleton.get("bones") or [])
    swap_sides = should_swap_sides(projected, profile, world, warnings)
    if swap_sides:
        logger.info("Source and target handedness disagree; swapping left/right joints")

    timeline = TimelineConfig.resolve(profile.timeline, timeline_overrides)
    translation_allowed = resolve_root_motion(root_motion, profile) not in IN_PLACE_MODES
    zero_angles = np.zeros(frame_times.size, dtype=float)
    reported: Set[str] = set()

    bones: Dict[str, BoneTimeline] = {}
    mapped_bones: List[str] = []
    for joint, target in profile.target_bones.items():
        if target.bone not in world:
            _warn(warnings, f'Target bone "{target.bone}" is missing in skeleton.')
            continue

        source_joint, angles = resolve_source_angles(projected, joint, swap_sides, warnings, reported)
        if angles is None:
            if not timeline.fill_missing_with_zero:
                _warn(warnings, f'Source joint "{source_joint}" has no projected angle data.')
                continue
            _warn(
                warnings,
                f'Source joint "{source_joint}" has no projected angle data; '
                f'writing static keys for "{target.bone}".'
            )
            angles = zero_angles

        rotation_keys = build_rotation_keys(
            frame_times, angles, profile.adjustment_for(joint, target.bone), profile.limits, timeline
        )
        if not rotation_keys:
            continue

        bone_timeline = bones.setdefault(target.bone, BoneTimeline())
        bone_timeline.rotate = rotation_keys
        if target.bone not in mapped_bones:
            mapped_bones.append(target.bone)

        if target.translate and translation_allowed and joint == "hips":
            translation_keys = build_translation_keys(
                frame_times, projected.hips_translation, profile.translation_scale, profile.limits, timeline
            )
            if translation_keys:
                bone_timeline.translate = translation_keys

    if not bones:
        raise RetargetError("Retargeting produced no bone timelines.")

    logger.info("Retargeted %d bones over %d frames", len(mapped_bones), frame_times.size)

    return RetargetResult(
        animation_name=str(animation_name or DEFAULT_ANIMATION_NAME).strip() or DEFAULT_ANIMATION_NAME,
        animation=GeneratedAnimation(bones=bones),
        mapped_bones=mapped_bones,
        duration=float(frame_times[-1]),
        fps=projected.fps,
        side_swap_applied=swap_sides,
        missing_canonical_joints=list(projected.missing_canonical_joints),
        warnings=warnings,
    )
