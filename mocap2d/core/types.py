"""
Core data types for the retargeting pipeline.

Positions are stored as ``float64`` arrays of shape ``(num_frames, 3)``;
samples the decoder could not provide are NaN rows.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
from numpy.typing import NDArray

from mocap2d.core.errors import MotionInputError
from mocap2d.utils.math_utils import to_finite

AXIS_INDEX = {"x": 0, "y": 1, "z": 2}


def parse_point(value) -> NDArray[np.float64]:
    """Parse an ``{x, y, z}`` mapping or ``[x, y, z]`` list; missing -> NaN."""
    if isinstance(value, dict):
        return np.array(
            [to_finite(value.get(axis), np.nan) for axis in ("x", "y", "z")], dtype=float
        )
    if isinstance(value, (list, tuple)) and len(value) >= 3:
        return np.array([to_finite(v, np.nan) for v in value[:3]], dtype=float)
    return np.full(3, np.nan)


def parse_points(values) -> NDArray[np.float64]:
    """
    Parse a per-frame list of points into an ``(N, 3)`` array.

    Raises:
        MotionInputError: If ``values`` is not a list of points
    """
    if not values:
        return np.zeros((0, 3), dtype=float)
    if not isinstance(values, (list, tuple)):
        raise MotionInputError(f"Expected a list of positions, got {type(values).__name__}.")
    return np.vstack([parse_point(value) for value in values])


def fit_to_frames(points: NDArray[np.float64], frame_count: int) -> NDArray[np.float64]:
    """Truncate or NaN-pad ``points`` to ``frame_count`` rows."""
    points = np.asarray(points, dtype=float)
    if len(points) >= frame_count:
        return points[:frame_count]
    padding = np.full((frame_count - len(points), points.shape[1]), np.nan)
    if len(points) == 0:
        return padding
    return np.vstack([points, padding])


def _parse_quaternion(value) -> NDArray[np.float64]:
    if isinstance(value, dict):
        return np.array([to_finite(value.get(k), np.nan) for k in ("x", "y", "z", "w")], dtype=float)
    if isinstance(value, (list, tuple)) and len(value) >= 4:
        return np.array([to_finite(v, np.nan) for v in value[:4]], dtype=float)
    return np.full(4, np.nan)


@dataclass
class JointTrack:
    """Per-frame world-space samples of one decoded source joint."""

    name: str
    positions: NDArray[np.float64]  # Shape: (N, 3)
    parent_name: Optional[str] = None
    rotations: Optional[NDArray[np.float64]] = None  # Shape: (N, 4) quaternions (x, y, z, w)

    @property
    def num_frames(self) -> int:
        return len(self.positions)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], fallback_name: str = "") -> "JointTrack":
        rotations = None
        if data.get("rotations"):
            if not isinstance(data["rotations"], (list, tuple)):
                raise MotionInputError("Expected a list of rotations.")
            rotations = np.vstack([_parse_quaternion(r) for r in data["rotations"]])
        return cls(
            name=str(data.get("name") or data.get("sourceName") or fallback_name),
            parent_name=data.get("parentName") or None,
            positions=parse_points(data.get("positions") or []),
            rotations=rotations,
        )


@dataclass
class SourceSkeletonNode:
    """A node of the decoded source hierarchy (rest pose snapshot)."""

    name: str
    parent_name: Optional[str] = None
    depth: int = 0
    is_bone: bool = True
    rest_world_position: Optional[NDArray[np.float64]] = None
    rest_local_position: Optional[NDArray[np.float64]] = None
    frame0_world_position: Optional[NDArray[np.float64]] = None

    @property
    def world_position(self) -> Optional[NDArray[np.float64]]:
        """Rest position, falling back to the first sampled frame."""
        for candidate in (self.rest_world_position, self.frame0_world_position):
            if candidate is not None and np.all(np.isfinite(candidate)):
                return candidate
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceSkeletonNode":
        def optional_point(key):
            value = data.get(key)
            return parse_point(value) if value is not None else None

        return cls(
            name=str(data.get("name") or ""),
            parent_name=data.get("parentName") or None,
            depth=int(max(0, to_finite(data.get("depth"), 0))),
            is_bone=bool(data.get("isBone", True)),
            rest_world_position=optional_point("restWorldPosition"),
            rest_local_position=optional_point("restLocalPosition"),
            frame0_world_position=optional_point("frame0WorldPosition"),
        )


@dataclass
class DecodedMotion:
    """
    Output of the external motion decoder.

    All joint tracks share ``frame_times``.
    """

    frame_times: NDArray[np.float64]
    joint_tracks: Dict[str, JointTrack]
    source_file: Optional[str] = None
    clip_name: Optional[str] = None
    fps: float = 30.0
    duration: float = 0.0
    skeleton_nodes: Optional[List[SourceSkeletonNode]] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def num_frames(self) -> int:
        return len(self.frame_times)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DecodedMotion":
        """
        Build a motion from its JSON shape.

        Tracks shorter than ``frameTimes`` are padded with NaN samples and
        longer ones truncated.

        Raises:
            MotionInputError: If a field has the wrong shape
        """
        raw_times = data.get("frameTimes") or []
        if not isinstance(raw_times, (list, tuple)):
            raise MotionInputError("frameTimes must be a list of numbers.")
        frame_times = np.array([to_finite(t, 0.0) for t in raw_times], dtype=float)

        raw_tracks = data.get("jointTracks") or {}
        if isinstance(raw_tracks, list):
            raw_tracks = {
                str(t.get("name") if isinstance(t, dict) and t.get("name") else index): t
                for index, t in enumerate(raw_tracks)
            }
        if not isinstance(raw_tracks, dict):
            raise MotionInputError("jointTracks must be a list or an object of tracks.")

        tracks: Dict[str, JointTrack] = {}
        for key, raw in raw_tracks.items():
            if raw is not None and not isinstance(raw, dict):
                raise MotionInputError(f'Joint track "{key}" must be an object.')
            track = JointTrack.from_dict(raw or {}, fallback_name=str(key))
            track.positions = fit_to_frames(track.positions, frame_times.size)
            if track.rotations is not None:
                track.rotations = fit_to_frames(track.rotations, frame_times.size)
            tracks[track.name] = track

        skeleton = data.get("skeleton") or {}
        raw_nodes = skeleton.get("nodes") if isinstance(skeleton, dict) else None
        if raw_nodes is not None and not isinstance(raw_nodes, list):
            raise MotionInputError("skeleton.nodes must be a list.")
        nodes = [SourceSkeletonNode.from_dict(n) for n in raw_nodes or [] if isinstance(n, dict)]
        raw_warnings = data.get("warnings") or []

        return cls(
            frame_times=frame_times,
            joint_tracks=tracks,
            source_file=data.get("sourceFile"),
            clip_name=data.get("clipName"),
            fps=to_finite(data.get("fps"), 30.0),
            duration=to_finite(data.get("duration"), float(frame_times[-1]) if frame_times.size else 0.0),
            skeleton_nodes=nodes or None,
            warnings=[str(w) for w in raw_warnings] if isinstance(raw_warnings, list) else [],
        )


@dataclass
class CanonicalTrack:
    """A source track bound to a canonical joint role."""

    name: str
    source_name: str
    positions: NDArray[np.float64]
    parent_name: Optional[str] = None
    rotations: Optional[NDArray[np.float64]] = None
    derived_from: Optional[str] = None


@dataclass
class CanonicalMotion:
    """Motion re-expressed on the canonical humanoid."""

    frame_times: NDArray[np.float64]
    tracks: Dict[str, CanonicalTrack]
    mapping: Dict[str, str]
    missing_canonical_joints: List[str]
    fps: float = 30.0
    duration: float = 0.0
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AxisMapping:
    """Which source axis plays the horizontal, vertical and depth role."""

    horizontal: str = "x"
    vertical: str = "y"
    depth: str = "z"

    def __post_init__(self):
        assert {self.horizontal, self.vertical, self.depth} == {"x", "y", "z"}, \
            "Axis mapping must use x, y and z exactly once"

    def project(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        """Reorder ``(..., 3)`` points into (horizontal, vertical, depth)."""
        order = [AXIS_INDEX[self.horizontal], AXIS_INDEX[self.vertical], AXIS_INDEX[self.depth]]
        return points[..., order]

    def to_dict(self) -> Dict[str, str]:
        return {"horizontal": self.horizontal, "vertical": self.vertical, "depth": self.depth}


@dataclass(frozen=True)
class SourceSide:
    """Average horizontal position of the left/right calibration joints."""

    left_arm_x: Optional[float] = None
    right_arm_x: Optional[float] = None

    @property
    def available(self) -> bool:
        return self.left_arm_x is not None and self.right_arm_x is not None

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {"leftArmX": self.left_arm_x, "rightArmX": self.right_arm_x}


@dataclass
class ProjectedMotion:
    """Conditioned 2D angle timelines for the canonical joints."""

    frame_times: NDArray[np.float64]
    joint_angles: Dict[str, NDArray[np.float64]]  # local (parent-relative), degrees
    world_joint_angles: Dict[str, NDArray[np.float64]]
    hips_translation: NDArray[np.float64]  # Shape: (N, 2) - (horizontal, vertical)
    axis_mapping: AxisMapping
    source_side: SourceSide
    missing_canonical_joints: List[str] = field(default_factory=list)
    fps: float = 30.0
    duration: float = 0.0
    warnings: List[str] = field(default_factory=list)


@dataclass
class BoneTimeline:
    """Rotation and/or translation keys of one bone."""

    rotate: Optional[List[Dict[str, float]]] = None
    translate: Optional[List[Dict[str, float]]] = None

    def to_dict(self) -> Dict[str, List[Dict[str, float]]]:
        result = {}
        if self.rotate is not None:
            result["rotate"] = [dict(key) for key in self.rotate]
        if self.translate is not None:
            result["translate"] = [dict(key) for key in self.translate]
        return result


@dataclass
class GeneratedAnimation:
    """A skeletal animation ready to be merged into a skeleton document."""

    bones: Dict[str, BoneTimeline] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"bones": {name: timeline.to_dict() for name, timeline in self.bones.items()}}


@dataclass
class RetargetResult:
    animation_name: str
    animation: GeneratedAnimation
    mapped_bones: List[str]
    duration: float
    fps: float
    side_swap_applied: bool
    missing_canonical_joints: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class SkeletonConversionReport:
    """Summary of one skeleton conversion call."""

    mode: str = "disabled"
    added_bones: List[str] = field(default_factory=list)
    remapped_references: int = 0
    compatibility_bones_added: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "addedBones": list(self.added_bones),
            "remappedReferences": int(self.remapped_references),
            "compatibilityBonesAdded": list(self.compatibility_bones_added),
            "warnings": list(self.warnings),
        }


@dataclass
class SkeletonConversionResult:
    skeleton: Dict[str, Any]
    report: SkeletonConversionReport


@dataclass
class MergeResult:
    skeleton: Dict[str, Any]
    animation_name: str


@dataclass
class ConversionResult:
    """Everything a single ``convert()`` call produces."""

    animation_name: str
    merged_skeleton: Dict[str, Any]
    skeleton_report: SkeletonConversionReport
    mapped_bones: List[str]
    duration: float
    fps: float
    side_swap_applied: bool
    missing_canonical_joints: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def all_warnings(self) -> List[str]:
        return list(self.warnings) + list(self.skeleton_report.warnings)
