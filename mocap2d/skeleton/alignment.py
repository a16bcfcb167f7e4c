"""
Source hierarchy collection and source-to-target alignment.

Source node rest positions are projected onto the inferred 2D plane, scaled by
the median target/source bone length ratio and rigidly aligned to the target
skeleton using matched canonical anchors.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Set, Tuple

import numpy as np

from mocap2d.core.errors import MotionInputError
from mocap2d.core.humanoid import PARENT_BY_JOINT
from mocap2d.core.projection import infer_axes
from mocap2d.core.types import AxisMapping, CanonicalMotion, DecodedMotion, SourceSkeletonNode
from mocap2d.skeleton.graph import Bone, Transform2D
from mocap2d.utils.math_utils import EPSILON, median, rotate_2d

logger = logging.getLogger(__name__)

Point2D = Tuple[float, float]

# Anchor pairs tried in order when fitting the alignment rotation
ROTATION_ANCHORS = (("hips", "head"), ("leftArm", "rightArm"), ("leftUpLeg", "rightUpLeg"))


def collect_source_nodes(motion: DecodedMotion, warnings: List[str]) -> List[SourceSkeletonNode]:
    """
    Source hierarchy with recomputed depths.

    Uses the decoder's skeleton metadata when present, otherwise the sampled
    tracks and their parent names.

    Raises:
        MotionInputError: If no named node is available
    """
    nodes = [
        SourceSkeletonNode(
            name=node.name,
            parent_name=node.parent_name,
            is_bone=node.is_bone,
            rest_world_position=node.rest_world_position,
            rest_local_position=node.rest_local_position,
            frame0_world_position=node.frame0_world_position,
        )
        for node in motion.skeleton_nodes or []
        if node.name
    ]

    if not nodes:
        message = (
            "Source skeleton metadata was unavailable; source hierarchy fell back "
            "to sampled track parent names."
        )
        logger.warning(message)
        warnings.append(message)
        for track in motion.joint_tracks.values():
            if not track.name:
                continue
            first = track.positions[0] if len(track.positions) else None
            nodes.append(SourceSkeletonNode(
                name=track.name,
                parent_name=track.parent_name,
                rest_world_position=first,
                frame0_world_position=first,
            ))

    if not nodes:
        raise MotionInputError("No source skeleton nodes were found for skeleton conversion.")

    known = {node.name for node in nodes}
    for node in nodes:
        if node.parent_name and node.parent_name not in known:
            node.parent_name = None

    apply_depth(nodes)
    return nodes


def apply_depth(nodes: List[SourceSkeletonNode]) -> None:
    """Set ``depth`` to the parent-chain length; a cycle counts as a root."""
    by_name = {node.name: node for node in nodes}
    depths: Dict[str, int] = {}

    def resolve(name: str, stack: Set[str]) -> int:
        if name in depths:
            return depths[name]
        if name in stack:
            return 0
        stack.add(name)
        node = by_name.get(name)
        parent = node.parent_name if node else None
        depth = resolve(parent, stack) + 1 if parent else 0
        stack.discard(name)
        depths[name] = depth
        return depth

    for node in nodes:
        node.depth = resolve(node.name, set())


def sort_by_hierarchy(nodes: List[SourceSkeletonNode]) -> List[SourceSkeletonNode]:
    """Parents before children; ties broken by name."""
    return sorted(nodes, key=lambda node: (node.depth, node.name))


def children_by_parent(nodes: List[SourceSkeletonNode]) -> Dict[str, List[str]]:
    children: Dict[str, List[str]] = {}
    for node in nodes:
        if node.parent_name:
            children.setdefault(node.parent_name, []).append(node.name)
    for names in children.values():
        names.sort()
    return children


def infer_node_axes(
    nodes_by_name: Mapping[str, SourceSkeletonNode],
    canonical: CanonicalMotion,
) -> AxisMapping:
    """Axis inference over the rest positions of the whole source hierarchy."""
    anchors = {}
    for joint, source_name in canonical.mapping.items():
        node = nodes_by_name.get(source_name)
        anchors[joint] = node.world_position if node is not None else None

    positions = [node.world_position for node in nodes_by_name.values() if node.world_position is not None]
    cloud = np.vstack(positions) if positions else np.zeros((0, 3))
    return infer_axes(anchors, cloud)


def project_node_points(
    nodes_by_name: Mapping[str, SourceSkeletonNode],
    axes: AxisMapping,
) -> Dict[str, Point2D]:
    """(horizontal, vertical) rest point of every node that has one."""
    points: Dict[str, Point2D] = {}
    for name, node in nodes_by_name.items():
        position = node.world_position
        if position is None:
            continue
        projected = axes.project(np.asarray(position, dtype=float))
        points[name] = (float(projected[0]), float(projected[1]))
    return points


def estimate_scale(
    canonical: CanonicalMotion,
    target_bones: Mapping[str, str],
    source_points: Mapping[str, Point2D],
    bones: Mapping[str, Bone],
    world: Mapping[str, Transform2D],
) -> float:
    """
    Median ratio of target bone length to source segment length.

    Only canonical joints with a mapped canonical parent contribute. Target
    length is the bone's ``length``, else its distance to its parent.
    Defaults to 1.
    """
    ratios = []
    for joint, bone_name in target_bones.items():
        parent_joint = PARENT_BY_JOINT.get(joint)
        source_name = canonical.mapping.get(joint)
        source_parent = canonical.mapping.get(parent_joint) if parent_joint else None
        if not source_name or not source_parent:
            continue
        point = source_points.get(source_name)
        parent_point = source_points.get(source_parent)
        bone = bones.get(bone_name)
        if point is None or parent_point is None or bone is None:
            continue

        source_length = math.hypot(point[0] - parent_point[0], point[1] - parent_point[1])
        if source_length <= EPSILON:
            continue

        target_length = abs(bone.length)
        if target_length <= EPSILON and bone.parent:
            own, parent = world.get(bone_name), world.get(bone.parent)
            if own is not None and parent is not None:
                target_length = math.hypot(own.x - parent.x, own.y - parent.y)
        if target_length <= EPSILON:
            continue
        ratios.append(target_length / source_length)

    ratio = median(ratios)
    return ratio if ratio is not None and ratio > EPSILON else 1.0


@dataclass(frozen=True)
class AlignmentTransform:
    """Similarity transform from projected source space into target world space."""

    source_origin: Point2D = (0.0, 0.0)
    target_origin: Point2D = (0.0, 0.0)
    rotation: float = 0.0  # radians
    scale: float = 1.0

    def apply(self, point: Point2D) -> Point2D:
        x, y = rotate_2d(point[0] - self.source_origin[0], point[1] - self.source_origin[1], self.rotation)
        return x * self.scale + self.target_origin[0], y * self.scale + self.target_origin[1]


def build_alignment(
    canonical: CanonicalMotion,
    source_to_target: Mapping[str, str],
    source_points: Mapping[str, Point2D],
    world: Mapping[str, Transform2D],
    scale: float,
    warnings: List[str],
) -> AlignmentTransform:
    """
    Fit the alignment from matched (source node, target bone) anchors.

    The origin prefers the hips pair. Rotation comes from the first usable
    anchor pair in ``ROTATION_ANCHORS``, else from the first two matched pairs.
    """
    pairs: Dict[str, Tuple[Point2D, Point2D]] = {}
    for source_name, bone_name in source_to_target.items():
        source_point = source_points.get(source_name)
        target = world.get(bone_name)
        if source_point is not None and target is not None:
            pairs[source_name] = (source_point, (target.x, target.y))

    if not pairs:
        message = (
            "Skeleton conversion alignment fell back to identity transform "
            "(no canonical source/target anchor pairs)."
        )
        logger.warning(message)
        warnings.append(message)
        return AlignmentTransform(scale=scale)

    ordered = list(pairs)
    origin = pairs.get(canonical.mapping.get("hips")) or pairs[ordered[0]]

    def pair_rotation(first: Optional[str], second: Optional[str]) -> Optional[float]:
        if first not in pairs or second not in pairs:
            return None
        (sa, ta), (sb, tb) = pairs[first], pairs[second]
        source_vector = (sb[0] - sa[0], sb[1] - sa[1])
        target_vector = (tb[0] - ta[0], tb[1] - ta[1])
        if math.hypot(*source_vector) <= EPSILON or math.hypot(*target_vector) <= EPSILON:
            return None
        return math.atan2(target_vector[1], target_vector[0]) - math.atan2(source_vector[1], source_vector[0])

    rotation = None
    for first, second in ROTATION_ANCHORS:
        rotation = pair_rotation(canonical.mapping.get(first), canonical.mapping.get(second))
        if rotation is not None:
            break
    if rotation is None and len(ordered) >= 2:
        rotation = pair_rotation(ordered[0], ordered[1])

    return AlignmentTransform(
        source_origin=origin[0],
        target_origin=origin[1],
        rotation=rotation or 0.0,
        scale=scale,
    )
