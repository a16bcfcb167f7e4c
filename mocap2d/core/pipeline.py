"""
End-to-end conversion: decoded motion -> canonical -> (skeleton conversion)
-> projection -> retarget -> merge, plus the sequential batch driver.
"""

import logging
import re
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path, PurePath
from typing import Any, Dict, List, Optional, Sequence, Union

import yaml
from rich.console import Console
from rich.progress import track

from mocap2d.core.canonical import to_canonical_humanoid
from mocap2d.core.config import ConverterConfig, SkeletonConversionConfig
from mocap2d.core.errors import Mocap2DError, MotionInputError
from mocap2d.core.merge import merge_animation_non_destructive
from mocap2d.core.profile import RetargetProfile
from mocap2d.core.projection import project_3d_to_2d
from mocap2d.core.retarget import retarget_to_animation
from mocap2d.core.types import ConversionResult, DecodedMotion, SkeletonConversionReport
from mocap2d.data.loaders import load_motion
from mocap2d.skeleton.convert import convert_skeleton

logger = logging.getLogger(__name__)
console = Console()


def derive_animation_name(source_file: Optional[str], override: Optional[str] = None) -> str:
    """
    Animation name for a clip.

    An override is used as-is when it already starts with ``FBX_`` (any case),
    else prefixed. Without one, the file stem is reduced to ``[A-Za-z0-9_]``.
    """
    override = str(override or "").strip()
    if override:
        return override if override.upper().startswith("FBX_") else f"FBX_{override}"

    name = str(source_file or "fbx_animation").replace("\\", "/").split("/")[-1]
    stem = PurePath(name).stem
    normalized = re.sub(r"[^A-Za-z0-9_]+", "_", stem or "fbx_animation")
    normalized = re.sub(r"_+", "_", normalized).strip("_")
    return f"FBX_{normalized or 'animation'}"


@dataclass
class ConvertOptions:
    """Per-call options; each set field overrides the profile and the config."""

    animation_name: Optional[str] = None
    root_motion: Optional[str] = None
    fps: Optional[float] = None
    skeleton_conversion: Optional[SkeletonConversionConfig] = None
    projection: Dict[str, Any] = field(default_factory=dict)
    timeline: Dict[str, Any] = field(default_factory=dict)
    aliases: Optional[Dict[str, List[str]]] = None


def convert(
    motion: Union[DecodedMotion, Dict[str, Any]],
    skeleton: Dict[str, Any],
    profile: Union[RetargetProfile, Dict[str, Any]],
    options: Optional[ConvertOptions] = None,
    config: Optional[ConverterConfig] = None,
) -> ConversionResult:
    """
    Convert one decoded motion into an animation merged into ``skeleton``.

    ``skeleton`` is not modified; the merged copy is returned.

    Args:
        motion: Decoded motion (or its JSON dictionary)
        skeleton: Target skeleton document
        profile: Retarget profile (or its JSON dictionary)
        options: Per-call options
        config: Application configuration

    Returns:
        Conversion result

    Raises:
        Mocap2DError: On any fatal input, retarget or skeleton error
    """
    options = options or ConvertOptions()
    config = config or ConverterConfig()
    if isinstance(motion, dict):
        motion = DecodedMotion.from_dict(motion)
    if not isinstance(motion, DecodedMotion):
        raise MotionInputError("A decoded motion is required for conversion.")
    if not isinstance(skeleton, dict):
        raise MotionInputError("A valid skeleton document is required for conversion.")
    if not isinstance(profile, RetargetProfile):
        profile = RetargetProfile.from_dict(profile)

    canonical = to_canonical_humanoid(motion, options.aliases or profile.aliases)

    working = skeleton
    skeleton_report = SkeletonConversionReport()
    conversion = options.skeleton_conversion or config.skeleton_conversion
    if conversion.enabled:
        converted = convert_skeleton(working, motion, canonical, profile, conversion)
        working = converted.skeleton
        skeleton_report = converted.report

    projection = config.projection.merged(profile.projection).merged(options.projection)
    projected = project_3d_to_2d(canonical, projection, profile.side_calibration)

    retargeted = retarget_to_animation(
        working,
        projected,
        profile,
        animation_name=derive_animation_name(motion.source_file, options.animation_name),
        root_motion=options.root_motion or profile.root_motion or config.root_motion,
        timeline_overrides=options.timeline,
    )
    merged = merge_animation_non_destructive(
        working, retargeted.animation_name, retargeted.animation.to_dict()
    )

    logger.info(
        "Converted %s -> %s (%d bones)",
        motion.source_file or "<motion>", merged.animation_name, len(retargeted.mapped_bones),
    )

    return ConversionResult(
        animation_name=merged.animation_name,
        merged_skeleton=merged.skeleton,
        skeleton_report=skeleton_report,
        mapped_bones=retargeted.mapped_bones,
        duration=retargeted.duration,
        fps=retargeted.fps,
        side_swap_applied=retargeted.side_swap_applied,
        missing_canonical_joints=retargeted.missing_canonical_joints,
        warnings=retargeted.warnings,
    )


@dataclass
class BatchItem:
    """Outcome of one file in a batch."""

    file: str
    status: str = "failed"
    animation_name: Optional[str] = None
    duration: float = 0.0
    mapped_bones: List[str] = field(default_factory=list)
    missing_canonical_joints: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    skeleton_report: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    elapsed_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "status": self.status,
            "animationName": self.animation_name,
            "duration": self.duration,
            "mappedBones": list(self.mapped_bones),
            "missingCanonicalJoints": list(self.missing_canonical_joints),
            "warnings": list(self.warnings),
            "skeletonReport": self.skeleton_report,
            "error": self.error,
            "elapsedMs": self.elapsed_ms,
        }


@dataclass
class BatchReport:
    target_skeleton: str
    profile_id: str
    fps: float
    skeleton_conversion: Dict[str, Any]
    output_path: Optional[str] = None
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    items: List[BatchItem] = field(default_factory=list)

    @property
    def files_succeeded(self) -> int:
        return sum(1 for item in self.items if item.status == "ok")

    @property
    def files_failed(self) -> int:
        return len(self.items) - self.files_succeeded

    def to_dict(self) -> Dict[str, Any]:
        return {
            "targetSkeleton": self.target_skeleton,
            "profileId": self.profile_id,
            "generatedAt": self.generated_at,
            "fps": self.fps,
            "skeletonConversion": dict(self.skeleton_conversion),
            "filesProcessed": len(self.items),
            "filesSucceeded": self.files_succeeded,
            "filesFailed": self.files_failed,
            "outputPath": self.output_path,
            "items": [item.to_dict() for item in self.items],
        }


class BatchConverter:
    """
    Converts several motions against one skeleton, in order.

    Each successful conversion's merged skeleton becomes the input of the next
    one. A failing file is recorded and leaves the working skeleton untouched.
    """

    def __init__(
        self,
        skeleton: Dict[str, Any],
        profile: RetargetProfile,
        config: Optional[ConverterConfig] = None,
        options: Optional[ConvertOptions] = None,
    ):
        """
        Args:
            skeleton: Initial target skeleton document
            profile: Retarget profile
            config: Application configuration
            options: Options shared by every file (animation name excluded)
        """
        self.skeleton = skeleton
        self.profile = profile
        self.config = config or ConverterConfig()
        self.options = options or ConvertOptions()

    def convert_file(self, path: Path, animation_name: Optional[str] = None) -> BatchItem:
        """Convert one motion file, advancing ``self.skeleton`` on success."""
        start = time.perf_counter()
        item = BatchItem(file=str(path))
        try:
            motion = load_motion(path)
            options = replace(self.options, animation_name=animation_name)
            result = convert(motion, self.skeleton, self.profile, options, self.config)
        except (
            Mocap2DError, OSError, ValueError, TypeError, KeyError, AttributeError, yaml.YAMLError
        ) as e:
            item.error = str(e)
            logger.error(f"Failed to convert {path}: {e}")
        else:
            self.skeleton = result.merged_skeleton
            item.status = "ok"
            item.animation_name = result.animation_name
            item.duration = result.duration
            item.mapped_bones = result.mapped_bones
            item.missing_canonical_joints = result.missing_canonical_joints
            item.warnings = result.all_warnings()
            item.skeleton_report = result.skeleton_report.to_dict()
        item.elapsed_ms = int((time.perf_counter() - start) * 1000)
        return item

    def run(
        self,
        paths: Sequence[Path],
        target_skeleton: str = "",
        animation_name: Optional[str] = None,
        show_progress: bool = False,
    ) -> BatchReport:
        """
        Convert ``paths`` sequentially.

        Args:
            paths: Motion files, in processing order
            target_skeleton: Skeleton path recorded in the report
            animation_name: Name override, only honoured for a single file
            show_progress: Whether to show a progress bar

        Returns:
            Batch report (``self.skeleton`` holds the accumulated skeleton)
        """
        conversion = self.options.skeleton_conversion or self.config.skeleton_conversion
        report = BatchReport(
            target_skeleton=target_skeleton,
            profile_id=self.profile.id,
            fps=self.options.fps or self.config.fps,
            skeleton_conversion=conversion.to_dict(),
        )
        override = animation_name if len(paths) == 1 else None

        iterator = track(paths, description="Converting motions...") if show_progress else paths
        for path in iterator:
            item = self.convert_file(Path(path), override)
            report.items.append(item)
            if item.status == "ok":
                console.print(f"[green]OK[/green] {Path(path).name} -> {item.animation_name}")
            else:
                console.print(f"[red]FAIL[/red] {Path(path).name}: {item.error}")

        return report
