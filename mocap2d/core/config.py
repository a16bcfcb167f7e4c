"""
Configuration system for the retargeting pipeline.
"""

import re
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional

import yaml

SKELETON_MODES = ("spine-first", "fbx-first")
MISMATCH_POLICIES = ("auto-add-bones", "skip-missing", "strict-fail")
SKELETON_SCOPES = ("full-hierarchy",)
AXIS_NAMES = ("x", "y", "z")


def snake_case(name: str) -> str:
    """Convert ``camelCase`` keys (as used in profile files) to ``snake_case``."""
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", name).lower()


@dataclass
class ProjectionConfig:
    """3D to 2D projection and signal conditioning parameters."""

    max_delta_deg: float = 70.0

    # Angle conditioning
    angle_median_window: int = 5
    angle_smoothing_alpha: float = 0.55
    angle_smoothing_passes: int = 2
    angle_deadband_deg: float = 0.02

    # Hip translation conditioning
    translation_median_window: int = 5
    translation_smoothing_alpha: float = 0.5
    translation_smoothing_passes: int = 2
    translation_deadband: float = 0.01
    in_place_trend_alpha: float = 0.03

    # Out-of-plane correction
    yaw_influence: float = 0.05
    out_of_plane_suppression: float = 0.85

    # Frames averaged for axis inference and side calibration
    source_side_calibration_frames: int = 5

    # Explicit axes skip inference when all three are given
    horizontal_axis: Optional[str] = None
    vertical_axis: Optional[str] = None
    depth_axis: Optional[str] = None

    def merged(self, overrides: Optional[Mapping[str, Any]]) -> "ProjectionConfig":
        """
        Return a copy with ``overrides`` applied.

        Keys may be camelCase or snake_case; unknown keys and None values are ignored.
        """
        if not overrides:
            return replace(self)
        known = {f.name for f in fields(self)}
        changes = {}
        for key, value in overrides.items():
            name = snake_case(str(key))
            if name in known and value is not None:
                changes[name] = value
        return replace(self, **changes)

    @property
    def explicit_axes(self) -> Optional[Dict[str, str]]:
        axes = (self.horizontal_axis, self.vertical_axis, self.depth_axis)
        if any(axis is None for axis in axes):
            return None
        normalized = tuple(str(axis).strip().lower() for axis in axes)
        if sorted(normalized) != sorted(AXIS_NAMES):
            return None
        return dict(zip(("horizontal", "vertical", "depth"), normalized))


@dataclass
class SkeletonConversionConfig:
    """Skeleton conversion configuration."""

    enabled: bool = False
    mode: Literal["spine-first", "fbx-first"] = "spine-first"
    scope: Literal["full-hierarchy"] = "full-hierarchy"
    mismatch_policy: Literal["auto-add-bones", "skip-missing", "strict-fail"] = "auto-add-bones"

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SkeletonConversionConfig":
        config = cls()
        for key, value in (data or {}).items():
            name = snake_case(str(key))
            if hasattr(config, name) and value is not None:
                setattr(config, name, value)
        return config

    def normalized(self, warnings: List[str]) -> "SkeletonConversionConfig":
        """Lower-case every option and replace unsupported values by defaults."""
        defaults = SkeletonConversionConfig()
        result = replace(self)
        for name, valid in (
            ("mode", SKELETON_MODES),
            ("mismatch_policy", MISMATCH_POLICIES),
            ("scope", SKELETON_SCOPES),
        ):
            requested = str(getattr(self, name) or getattr(defaults, name)).strip().lower()
            if requested in valid:
                setattr(result, name, requested)
                continue
            fallback = getattr(defaults, name)
            setattr(result, name, fallback)
            label = name.replace("_", " ")
            warnings.append(f'Unsupported skeleton {label} "{requested}" requested; defaulted to "{fallback}".')
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": bool(self.enabled),
            "mode": self.mode,
            "scope": self.scope,
            "mismatchPolicy": self.mismatch_policy,
        }


@dataclass
class OutputConfig:
    """Output configuration."""

    indent: int = 2
    round_digits: int = 4


@dataclass
class ConverterConfig:
    """Main converter configuration."""

    fps: float = 30.0
    root_motion: str = "in_place"
    log_level: str = "INFO"

    # Component configs
    projection: ProjectionConfig = field(default_factory=ProjectionConfig)
    skeleton_conversion: SkeletonConversionConfig = field(default_factory=SkeletonConversionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "ConverterConfig":
        """Load configuration from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        config = cls()

        if "projection" in data:
            config.projection = ProjectionConfig().merged(data["projection"])
        if "skeleton_conversion" in data:
            config.skeleton_conversion = SkeletonConversionConfig.from_dict(data["skeleton_conversion"])
        if "output" in data:
            config.output = OutputConfig(**data["output"])

        # Top-level configs
        if "fps" in data:
            config.fps = float(data["fps"])
        if "root_motion" in data:
            config.root_motion = str(data["root_motion"])
        if "log_level" in data:
            config.log_level = str(data["log_level"])

        return config

    def to_dict(self) -> Dict[str, Any]:
        """
        YAML-ready layout read back by :meth:`from_yaml`.

        Unset projection axes are left out so that inference stays enabled.
        """
        projection = {k: v for k, v in asdict(self.projection).items() if v is not None}
        return {
            "fps": float(self.fps),
            "root_motion": self.root_motion,
            "log_level": self.log_level,
            "projection": projection,
            "skeleton_conversion": self.skeleton_conversion.to_dict(),
            "output": asdict(self.output),
        }

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def validate(self) -> List[str]:
        """Validate configuration and return list of warnings."""
        issues = []

        if self.fps <= 0:
            issues.append(f"fps must be positive, got {self.fps}")

        projection = self.projection
        if not 0 < projection.angle_smoothing_alpha <= 1:
            issues.append("projection.angle_smoothing_alpha should be in (0, 1]")
        if not 0 < projection.translation_smoothing_alpha <= 1:
            issues.append("projection.translation_smoothing_alpha should be in (0, 1]")
        if not 0 <= projection.in_place_trend_alpha <= 1:
            issues.append("projection.in_place_trend_alpha should be in [0, 1]")
        if projection.max_delta_deg <= 0:
            issues.append("projection.max_delta_deg should be positive")
        if any(axis is not None for axis in (
            projection.horizontal_axis, projection.vertical_axis, projection.depth_axis
        )) and projection.explicit_axes is None:
            issues.append("projection axes must name x, y and z exactly once; they will be inferred")

        conversion = self.skeleton_conversion
        if conversion.mode not in SKELETON_MODES:
            issues.append(f"Unknown skeleton conversion mode: {conversion.mode}")
        if conversion.mismatch_policy not in MISMATCH_POLICIES:
            issues.append(f"Unknown mismatch policy: {conversion.mismatch_policy}")
        if conversion.scope not in SKELETON_SCOPES:
            issues.append(f"Unknown skeleton conversion scope: {conversion.scope}")

        return issues
