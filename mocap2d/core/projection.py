"""
Axis inference and 3D to 2D angle projection.

Every canonical joint becomes a world-angle timeline (direction to its child,
or from its parent) in the inferred horizontal/vertical plane, plus a local
timeline relative to its canonical parent. The hips additionally produce an
in-place translation track.
"""

import logging
import math
from typing import Dict, List, Mapping, Optional

import numpy as np
from numpy.typing import NDArray

from mocap2d.core.config import ProjectionConfig
from mocap2d.core.errors import MotionInputError
from mocap2d.core.humanoid import CANONICAL_JOINTS, CHILD_BY_JOINT, PARENT_BY_JOINT
from mocap2d.core.profile import SideCalibration
from mocap2d.core.types import (
    AXIS_INDEX,
    AxisMapping,
    CanonicalMotion,
    ProjectedMotion,
    SourceSide,
    fit_to_frames,
)
from mocap2d.filters.smoothing import (
    ConditioningSettings,
    condition_angle_track,
    condition_scalar_track,
    remove_trend,
)
from mocap2d.utils.math_utils import AXES, clamp, pick_dominant_axis, remaining_axis, to_finite

logger = logging.getLogger(__name__)

DEGENERATE_PLANAR_LENGTH = 1e-5


def _as_vector(point: Optional[NDArray[np.float64]]) -> Optional[Dict[str, float]]:
    if point is None or not np.all(np.isfinite(point)):
        return None
    return {axis: float(point[AXIS_INDEX[axis]]) for axis in AXES}


def spread_vector(points: NDArray[np.float64]) -> Dict[str, float]:
    """Bounding-box extent of the finite rows of an ``(M, 3)`` array."""
    points = np.asarray(points, dtype=float).reshape(-1, 3)
    finite = points[np.all(np.isfinite(points), axis=1)]
    if finite.size == 0:
        return {axis: 0.0 for axis in AXES}
    extent = finite.max(axis=0) - finite.min(axis=0)
    return {axis: float(extent[AXIS_INDEX[axis]]) for axis in AXES}


def infer_axes(
    anchors: Mapping[str, Optional[NDArray[np.float64]]],
    cloud: NDArray[np.float64],
) -> AxisMapping:
    """
    Infer the projection basis from canonical anchor positions.

    Vertical is the dominant axis of head (or neck) minus hips. Horizontal is
    the dominant remaining axis of leftArm minus rightArm, then leftUpLeg minus
    rightUpLeg. Either falls back to the bounding-box spread of ``cloud``.

    Args:
        anchors: Canonical joint name -> representative 3D position (or None)
        cloud: ``(M, 3)`` positions used for the spread fallback

    Returns:
        Axis mapping
    """
    def anchor(name):
        return _as_vector(anchors.get(name))

    spread = None

    def fallback_spread():
        nonlocal spread
        if spread is None:
            spread = spread_vector(cloud)
        return spread

    def difference(first, second):
        a, b = anchor(first), anchor(second)
        if a is None or b is None:
            return None
        return {axis: a[axis] - b[axis] for axis in AXES}

    vertical_vector = difference("head", "hips") or difference("neck", "hips") or fallback_spread()
    vertical = pick_dominant_axis(vertical_vector)

    horizontal_vector = (
        difference("leftArm", "rightArm")
        or difference("leftUpLeg", "rightUpLeg")
        or fallback_spread()
    )
    horizontal = pick_dominant_axis(horizontal_vector, excluded=(vertical,))

    return AxisMapping(horizontal=horizontal, vertical=vertical, depth=remaining_axis(horizontal, vertical))


def average_leading_position(positions: NDArray[np.float64], frames: int) -> Optional[NDArray[np.float64]]:
    """Mean of the finite samples among the first ``frames`` rows, or None."""
    if positions is None or len(positions) == 0:
        return None
    count = int(clamp(math.floor(to_finite(frames, 1)), 1, len(positions)))
    leading = positions[:count]
    finite = leading[np.all(np.isfinite(leading), axis=1)]
    if finite.size == 0:
        return None
    return finite.mean(axis=0)


def infer_motion_axes(canonical: CanonicalMotion, frames: int) -> AxisMapping:
    """Axis inference over the first ``frames`` samples of the canonical tracks."""
    anchors = {
        joint: average_leading_position(track.positions, frames)
        for joint, track in canonical.tracks.items()
    }
    cloud_parts = [track.positions[: max(1, int(frames))] for track in canonical.tracks.values()]
    cloud = np.vstack(cloud_parts) if cloud_parts else np.zeros((0, 3))
    return infer_axes(anchors, cloud)


def compute_world_angles(
    positions: NDArray[np.float64],
    child_positions: Optional[NDArray[np.float64]],
    parent_positions: Optional[NDArray[np.float64]],
    yaw_influence: float,
    out_of_plane_suppression: float,
) -> NDArray[np.float64]:
    """
    Raw per-frame world angle (degrees) of one joint.

    All positions are already projected to (horizontal, vertical, depth).
    Frames whose bone vector is missing or has a degenerate planar length
    hold the previous angle (0 on the first frame).
    """
    frame_count = len(positions)
    vectors = np.full((frame_count, 3), np.nan)

    if parent_positions is not None:
        from_parent = positions - parent_positions
        vectors = np.where(np.all(np.isfinite(from_parent), axis=1, keepdims=True), from_parent, vectors)
    if child_positions is not None:
        to_child = child_positions - positions
        vectors = np.where(np.all(np.isfinite(to_child), axis=1, keepdims=True), to_child, vectors)

    angles = np.zeros(frame_count, dtype=float)
    for index in range(frame_count):
        horizontal, vertical, depth = vectors[index]
        planar = math.hypot(horizontal, vertical) if np.isfinite(vectors[index]).all() else math.nan
        if not planar > DEGENERATE_PLANAR_LENGTH:
            angles[index] = angles[index - 1] if index > 0 else 0.0
            continue

        base = math.degrees(math.atan2(vertical, horizontal))
        planar = max(1e-6, planar)
        ratio = abs(depth) / (planar + abs(depth) + 1e-6)
        suppression = 1.0 - clamp(ratio * out_of_plane_suppression, 0.0, 0.95)
        yaw = math.degrees(math.atan2(depth, planar))
        angles[index] = base + yaw * yaw_influence * suppression

    return angles


def build_hips_translation(
    hips_positions: Optional[NDArray[np.float64]],
    frame_count: int,
    config: ProjectionConfig,
) -> NDArray[np.float64]:
    """
    In-place hip displacement, shape ``(N, 2)``.

    The displacement from the first frame has a slow trend removed and is then
    conditioned per axis.
    """
    output = np.zeros((frame_count, 2), dtype=float)
    if hips_positions is None or len(hips_positions) == 0:
        return output

    planar = np.asarray(hips_positions[:frame_count, :2], dtype=float)
    base = planar[0] if np.all(np.isfinite(planar[0])) else np.zeros(2)
    planar = np.where(np.isfinite(planar), planar, base)
    raw = planar - base

    settings = ConditioningSettings(
        median_window=config.translation_median_window,
        smoothing_alpha=config.translation_smoothing_alpha,
        smoothing_passes=config.translation_smoothing_passes,
        deadband=config.translation_deadband,
    )
    for column in range(2):
        in_place = remove_trend(raw[:, column], config.in_place_trend_alpha)
        output[: len(in_place), column] = condition_scalar_track(in_place, settings)
    return output


def project_3d_to_2d(
    canonical: CanonicalMotion,
    config: Optional[ProjectionConfig] = None,
    side_calibration: Optional[SideCalibration] = None,
) -> ProjectedMotion:
    """
    Project canonical 3D tracks to conditioned 2D angle timelines.

    Args:
        canonical: Canonical motion
        config: Projection parameters (defaults when None)
        side_calibration: Names of the left/right calibration joints

    Returns:
        Projected motion

    Raises:
        MotionInputError: If the motion has no frames
    """
    config = config or ProjectionConfig()
    side_calibration = side_calibration or SideCalibration()
    warnings: List[str] = list(canonical.warnings)
    frame_count = len(canonical.frame_times)
    if not frame_count:
        raise MotionInputError("No animation frames available for 3D to 2D projection.")

    calibration_frames = int(to_finite(config.source_side_calibration_frames, 5))
    explicit = config.explicit_axes
    if explicit is not None:
        axes = AxisMapping(**explicit)
    else:
        axes = infer_motion_axes(canonical, calibration_frames)
        message = (
            f"Projection axes inferred as horizontal={axes.horizontal}, "
            f"vertical={axes.vertical}, depth={axes.depth}."
        )
        logger.info(message)
        warnings.append(message)

    projected = {
        joint: axes.project(fit_to_frames(track.positions, frame_count))
        for joint, track in canonical.tracks.items()
    }

    angle_settings = ConditioningSettings(
        median_window=config.angle_median_window,
        smoothing_alpha=config.angle_smoothing_alpha,
        smoothing_passes=config.angle_smoothing_passes,
        deadband=config.angle_deadband_deg,
        max_delta_deg=config.max_delta_deg,
    )

    world_angles: Dict[str, NDArray[np.float64]] = {}
    for joint in CANONICAL_JOINTS:
        if joint not in projected:
            continue
        child = CHILD_BY_JOINT.get(joint)
        parent = PARENT_BY_JOINT.get(joint)
        raw = compute_world_angles(
            projected[joint],
            projected.get(child) if child else None,
            projected.get(parent) if parent else None,
            to_finite(config.yaw_influence, 0.0),
            to_finite(config.out_of_plane_suppression, 0.0),
        )
        world_angles[joint] = condition_angle_track(raw, angle_settings)

    local_angles: Dict[str, NDArray[np.float64]] = {}
    for joint, world in world_angles.items():
        parent = PARENT_BY_JOINT.get(joint)
        if parent is None or parent not in world_angles:
            local_angles[joint] = world.copy()
            continue
        local_angles[joint] = condition_angle_track(world - world_angles[parent], angle_settings)

    hips_translation = build_hips_translation(projected.get("hips"), frame_count, config)

    def side_average(joint):
        track = projected.get(joint)
        average = average_leading_position(track, calibration_frames) if track is not None else None
        return None if average is None else float(average[0])

    source_side = SourceSide(
        left_arm_x=side_average(side_calibration.source_left_joint),
        right_arm_x=side_average(side_calibration.source_right_joint),
    )
    if not source_side.available:
        message = "Unable to derive source side calibration from left/right arm first-frame positions."
        logger.warning(message)
        warnings.append(message)

    logger.debug("Projected %d joints over %d frames", len(world_angles), frame_count)

    return ProjectedMotion(
        frame_times=np.asarray(canonical.frame_times, dtype=float),
        joint_angles=local_angles,
        world_joint_angles=world_angles,
        hips_translation=hips_translation,
        axis_mapping=axes,
        source_side=source_side,
        missing_canonical_joints=list(canonical.missing_canonical_joints),
        fps=canonical.fps,
        duration=canonical.duration,
        warnings=warnings,
    )
