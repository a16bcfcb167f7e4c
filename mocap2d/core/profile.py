"""
Retarget profile.

A profile is supplied by the caller (usually a JSON or YAML file) and is only
ever read. It names the target bone for each canonical joint and carries the
per-joint numeric adjustments, angle limits and timeline options.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from mocap2d.utils.math_utils import to_finite


@dataclass(frozen=True)
class TargetBone:
    bone: str
    translate: bool = False


@dataclass(frozen=True)
class JointAdjustment:
    multiplier: float = 1.0
    offset: float = 0.0


@dataclass(frozen=True)
class Limits:
    min_angle: float = -360.0
    max_angle: float = 360.0
    rotation_epsilon_deg: float = 0.2
    translation_epsilon: float = 0.12


@dataclass(frozen=True)
class SideCalibration:
    source_left_joint: str = "leftArm"
    source_right_joint: str = "rightArm"
    target_left_bone: str = "ARM_L"
    target_right_bone: str = "ARM_R"


@dataclass(frozen=True)
class RetargetProfile:
    """Read-only retargeting profile."""

    id: str = "unknown-profile"
    target_bones: Dict[str, TargetBone] = field(default_factory=dict)
    joint_adjustments: Dict[str, JointAdjustment] = field(default_factory=dict)
    limits: Limits = field(default_factory=Limits)
    side_calibration: SideCalibration = field(default_factory=SideCalibration)
    translation_scale: float = 1.0
    timeline: Dict[str, Any] = field(default_factory=dict)
    projection: Dict[str, Any] = field(default_factory=dict)
    aliases: Optional[Dict[str, List[str]]] = None
    root_motion: Optional[str] = None

    def adjustment_for(self, canonical_joint: str, target_bone: str) -> JointAdjustment:
        """Adjustment keyed by canonical joint, else by target bone, else identity."""
        return (
            self.joint_adjustments.get(canonical_joint)
            or self.joint_adjustments.get(target_bone)
            or JointAdjustment()
        )

    def target_bone_names(self) -> Dict[str, str]:
        return {joint: mapping.bone for joint, mapping in self.target_bones.items()}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "RetargetProfile":
        """Build a profile from its JSON shape (camelCase keys)."""
        data = data or {}

        target_bones: Dict[str, TargetBone] = {}
        for joint, entry in (data.get("targetBones") or {}).items():
            if isinstance(entry, str) and entry:
                target_bones[joint] = TargetBone(bone=entry)
            elif isinstance(entry, Mapping) and entry.get("bone"):
                target_bones[joint] = TargetBone(
                    bone=str(entry["bone"]), translate=bool(entry.get("translate", False))
                )

        adjustments: Dict[str, JointAdjustment] = {}
        for key, entry in (data.get("jointAdjustments") or {}).items():
            if isinstance(entry, Mapping):
                adjustments[key] = JointAdjustment(
                    multiplier=to_finite(entry.get("multiplier"), 1.0),
                    offset=to_finite(entry.get("offset"), 0.0),
                )

        raw_limits = data.get("limits") or {}
        limits = Limits(
            min_angle=to_finite(raw_limits.get("minAngle"), -360.0),
            max_angle=to_finite(raw_limits.get("maxAngle"), 360.0),
            rotation_epsilon_deg=to_finite(raw_limits.get("rotationEpsilonDeg"), 0.2),
            translation_epsilon=to_finite(raw_limits.get("translationEpsilon"), 0.12),
        )

        raw_side = data.get("sideCalibration") or {}
        side = SideCalibration(
            source_left_joint=raw_side.get("sourceLeftJoint") or "leftArm",
            source_right_joint=raw_side.get("sourceRightJoint") or "rightArm",
            target_left_bone=raw_side.get("targetLeftBone") or "ARM_L",
            target_right_bone=raw_side.get("targetRightBone") or "ARM_R",
        )

        aliases = data.get("aliases")
        return cls(
            id=str(data.get("id") or "unknown-profile"),
            target_bones=target_bones,
            joint_adjustments=adjustments,
            limits=limits,
            side_calibration=side,
            translation_scale=to_finite(data.get("translationScale"), 1.0),
            timeline=dict(data.get("timeline") or {}),
            projection=dict(data.get("projection") or {}),
            aliases={k: list(v) for k, v in aliases.items()} if isinstance(aliases, Mapping) else None,
            root_motion=data.get("rootMotion"),
        )
