"""
Skeleton conversion: grow (spine-first) or rebuild (fbx-first) the target
bone hierarchy from the source hierarchy.
"""

import copy
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from mocap2d.core.canonical import to_canonical_humanoid
from mocap2d.core.config import SkeletonConversionConfig
from mocap2d.core.errors import MotionInputError, StrictMismatchError
from mocap2d.core.profile import RetargetProfile
from mocap2d.core.types import (
    CanonicalMotion,
    DecodedMotion,
    SkeletonConversionReport,
    SkeletonConversionResult,
    SourceSkeletonNode,
)
from mocap2d.skeleton.alignment import (
    Point2D,
    build_alignment,
    children_by_parent,
    collect_source_nodes,
    estimate_scale,
    infer_node_axes,
    project_node_points,
    sort_by_hierarchy,
)
from mocap2d.skeleton.graph import (
    Bone,
    Transform2D,
    bones_by_name,
    build_world_map,
    compose_world,
    find_root_bone,
    generate_unique_bone_name,
    sanitize_bone_name,
)
from mocap2d.skeleton.repair import ReferenceRepairer, normalized_index, resolve_normalized
from mocap2d.utils.math_utils import EPSILON, normalize_angle_degrees

logger = logging.getLogger(__name__)


def canonical_source_to_target(canonical: CanonicalMotion, profile: RetargetProfile) -> Dict[str, str]:
    """
    Source node name -> target bone name for every profile-mapped canonical joint.

    Joints that borrowed a fallback track are skipped, since their source node
    already belongs to another joint.
    """
    result: Dict[str, str] = {}
    for joint, bone_name in profile.target_bone_names().items():
        track = canonical.tracks.get(joint)
        source_name = canonical.mapping.get(joint)
        if not source_name or not bone_name or (track is not None and track.derived_from):
            continue
        result.setdefault(source_name, bone_name)
    return result


@dataclass
class SourceLayout:
    """Source hierarchy aligned into target world space."""

    nodes: List[SourceSkeletonNode]  # parents first
    nodes_by_name: Dict[str, SourceSkeletonNode]
    children: Dict[str, List[str]]
    points: Dict[str, Point2D]

    def orientation(self, name: str) -> float:
        """World angle (degrees) towards the first child, else away from the parent."""
        point = self.points.get(name)
        if point is None:
            return 0.0

        vector = None
        children = self.children.get(name) or []
        if children and children[0] in self.points:
            child = self.points[children[0]]
            vector = (child[0] - point[0], child[1] - point[1])
        if vector is None:
            node = self.nodes_by_name.get(name)
            parent = self.points.get(node.parent_name) if node and node.parent_name else None
            if parent is not None:
                vector = (point[0] - parent[0], point[1] - parent[1])

        if vector is None or math.hypot(*vector) <= EPSILON:
            return 0.0
        return math.degrees(math.atan2(vector[1], vector[0]))

    def length(self, name: str) -> float:
        point = self.points.get(name)
        children = self.children.get(name) or []
        if point is None or not children or children[0] not in self.points:
            return 0.0
        child = self.points[children[0]]
        return math.hypot(child[0] - point[0], child[1] - point[1])

    def place(self, name: str, bone_name: str, parent_bone: str, parent_world: Transform2D) -> Bone:
        """New bone for source node ``name`` expressed in ``parent_world``'s frame."""
        point = self.points.get(name, (parent_world.x, parent_world.y))
        x, y = parent_world.to_local(*point)
        return Bone(
            name=bone_name,
            parent=parent_bone,
            x=x,
            y=y,
            rotation=normalize_angle_degrees(self.orientation(name) - parent_world.rotation),
            length=self.length(name),
        )


def build_source_layout(
    source_nodes: List[SourceSkeletonNode],
    canonical: CanonicalMotion,
    profile: RetargetProfile,
    target_bones: List[Mapping[str, Any]],
    warnings: List[str],
) -> SourceLayout:
    """Infer axes, estimate scale and align the source rest pose to ``target_bones``."""
    ordered = sort_by_hierarchy(source_nodes)
    nodes_by_name = {node.name: node for node in ordered}

    axes = infer_node_axes(nodes_by_name, canonical)
    message = (
        f"Skeleton conversion projection axes inferred as horizontal={axes.horizontal}, "
        f"vertical={axes.vertical}, depth={axes.depth}."
    )
    logger.info(message)
    warnings.append(message)

    source_points = project_node_points(nodes_by_name, axes)
    parsed = bones_by_name(target_bones)
    world = build_world_map(target_bones)
    scale = estimate_scale(canonical, profile.target_bone_names(), source_points, parsed, world)
    alignment = build_alignment(
        canonical, canonical_source_to_target(canonical, profile), source_points, world, scale, warnings
    )
    logger.debug("Source alignment: scale=%.4f rotation=%.4f rad", alignment.scale, alignment.rotation)

    return SourceLayout(
        nodes=ordered,
        nodes_by_name=nodes_by_name,
        children=children_by_parent(ordered),
        points={name: alignment.apply(point) for name, point in source_points.items()},
    )


def _convert_spine_first(
    skeleton: Dict[str, Any],
    source_nodes: List[SourceSkeletonNode],
    canonical: CanonicalMotion,
    profile: RetargetProfile,
    policy: str,
    report: SkeletonConversionReport,
) -> Dict[str, Any]:
    converted = copy.deepcopy(skeleton)
    bones = converted.setdefault("bones", [])
    if not isinstance(bones, list):
        raise MotionInputError("Skeleton document 'bones' must be a list.")

    existing = [b["name"] for b in bones if isinstance(b, Mapping) and b.get("name")]
    existing_set = set(existing)
    existing_index = normalized_index(existing)

    source_to_bone: Dict[str, str] = {
        source: bone
        for source, bone in canonical_source_to_target(canonical, profile).items()
        if bone in existing_set
    }
    ordered = sort_by_hierarchy(source_nodes)
    for node in ordered:
        if node.name in source_to_bone:
            continue
        if node.name in existing_set:
            source_to_bone[node.name] = node.name
            continue
        match = resolve_normalized(node.name, existing_index)
        if match:
            source_to_bone[node.name] = match

    unmapped = [node for node in ordered if node.name not in source_to_bone]
    if policy == "strict-fail" and unmapped:
        names = [node.name for node in unmapped]
        raise StrictMismatchError(
            "Spine-first skeleton conversion failed with strict mismatch policy. "
            f"Missing mappings: {', '.join(names)}",
            unresolved=names,
        )

    layout = build_source_layout(source_nodes, canonical, profile, bones, report.warnings)

    if not bones:
        bones.append({"name": "root"})
        report.added_bones.append("root")
    root_name = find_root_bone(bones)["name"]

    if policy == "skip-missing":
        for node in unmapped:
            message = f'Skipped unmapped FBX source node "{node.name}" due to skeleton mismatch policy.'
            logger.warning(message)
            report.warnings.append(message)
        return converted

    used = set(existing_set) | {root_name}
    world = build_world_map(bones)

    for node in unmapped:
        bone_name = generate_unique_bone_name(sanitize_bone_name(node.name), used)
        parent_bone = source_to_bone.get(node.parent_name) if node.parent_name else None
        parent_bone = parent_bone or root_name
        parent_world = world.get(parent_bone, Transform2D())

        bone = layout.place(node.name, bone_name, parent_bone, parent_world)
        bones.append(bone.to_dict())
        report.added_bones.append(bone_name)
        source_to_bone[node.name] = bone_name
        world[bone_name] = parent_world.compose(Bone.from_dict(bones[-1]))

    return converted


def _convert_fbx_first(
    skeleton: Dict[str, Any],
    source_nodes: List[SourceSkeletonNode],
    canonical: CanonicalMotion,
    profile: RetargetProfile,
    policy: str,
    report: SkeletonConversionReport,
) -> Dict[str, Any]:
    original_bones = [b for b in skeleton.get("bones") or [] if isinstance(b, Mapping)]
    layout = build_source_layout(source_nodes, canonical, profile, original_bones, report.warnings)

    root_source = next((b for b in original_bones if not b.get("parent")), None)
    root_source = root_source or next((b for b in original_bones if b.get("name") == "root"), None)
    root = copy.deepcopy(dict(root_source)) if root_source else {"name": "root"}
    root.pop("parent", None)
    root_name = root["name"] = str(root.get("name") or "root")

    preferred = canonical_source_to_target(canonical, profile)
    used = {root_name}
    names: Dict[str, str] = {}
    for node in layout.nodes:
        name = preferred.get(node.name) or sanitize_bone_name(node.name)
        names[node.name] = generate_unique_bone_name(f"{name}_fbx" if name == root_name else name, used)

    converted = copy.deepcopy(skeleton)
    bones: List[Dict[str, Any]] = [root]
    world: Dict[str, Transform2D] = {root_name: compose_world(Bone.from_dict(root))}

    for node in layout.nodes:
        bone_name = names[node.name]
        parent_bone = names.get(node.parent_name) if node.parent_name else None
        parent_bone = parent_bone or root_name
        parent_world = world.get(parent_bone, Transform2D())

        bone = layout.place(node.name, bone_name, parent_bone, parent_world)
        bones.append(bone.to_dict())
        report.added_bones.append(bone_name)
        world[bone_name] = parent_world.compose(Bone.from_dict(bones[-1]))

    converted["bones"] = bones
    ReferenceRepairer(converted, original_bones, root_name, policy, report).run()
    return converted


def convert_skeleton(
    skeleton: Dict[str, Any],
    motion: DecodedMotion,
    canonical: Optional[CanonicalMotion] = None,
    profile: Optional[RetargetProfile] = None,
    config: Optional[SkeletonConversionConfig] = None,
) -> SkeletonConversionResult:
    """
    Grow or rebuild the bone hierarchy of ``skeleton`` from the source motion.

    The input document is never modified; the converted copy is returned.

    Args:
        skeleton: Target skeleton document
        motion: Decoded source motion (hierarchy and rest pose)
        canonical: Canonical mapping (computed from ``motion`` when None)
        profile: Retarget profile providing canonical target bone names
        config: Mode and mismatch policy

    Returns:
        Converted skeleton and report

    Raises:
        MotionInputError: If the skeleton is not a document or the source has no nodes
        StrictMismatchError: Under ``strict-fail`` when anything is unresolved
        SkeletonInvariantError: If a rebuilt skeleton still has dangling references
    """
    if not isinstance(skeleton, dict):
        raise MotionInputError("A valid skeleton document is required for skeleton conversion.")

    warnings: List[str] = []
    options = (config or SkeletonConversionConfig()).normalized(warnings)
    profile = profile or RetargetProfile()
    source_nodes = collect_source_nodes(motion, warnings)
    canonical = canonical or to_canonical_humanoid(motion, profile.aliases)

    report = SkeletonConversionReport(mode=options.mode, warnings=warnings)
    logger.info(
        "Converting skeleton (%s, %s) from %d source nodes",
        options.mode, options.mismatch_policy, len(source_nodes),
    )

    if options.mode == "spine-first":
        converted = _convert_spine_first(
            skeleton, source_nodes, canonical, profile, options.mismatch_policy, report
        )
    else:
        converted = _convert_fbx_first(
            skeleton, source_nodes, canonical, profile, options.mismatch_policy, report
        )

    logger.info(
        "Skeleton conversion added %d bones (%d compatibility), remapped %d references",
        len(report.added_bones), len(report.compatibility_bones_added), report.remapped_references,
    )
    return SkeletonConversionResult(skeleton=converted, report=report)
