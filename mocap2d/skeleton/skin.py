"""
Skin attachment traversal and weighted-vertex remapping.

Weighted mesh vertices are stored packed as
``[count, (boneIndex, x, y, weight) * count, count, ...]``. They are unpacked
into per-vertex binding lists for remapping and packed again on write.
"""

import logging
import math
from typing import Any, Dict, Iterator, List, Mapping, NamedTuple, Optional, Tuple

from mocap2d.utils.math_utils import to_finite

logger = logging.getLogger(__name__)


class WeightedBinding(NamedTuple):
    bone_index: int
    x: Any
    y: Any
    weight: Any


def unpack_weighted_vertices(values: List[Any]) -> Optional[List[List[WeightedBinding]]]:
    """
    Split a packed weighted-vertex array into per-vertex bindings.

    Returns None when the array is malformed (non-positive count or truncated).
    """
    if not values:
        return None

    vertices: List[List[WeightedBinding]] = []
    cursor = 0
    while cursor < len(values):
        count = to_finite(values[cursor], math.nan)
        if not math.isfinite(count) or math.floor(count) <= 0:
            return None
        count = int(math.floor(count))
        end = cursor + 1 + count * 4
        if end > len(values):
            return None

        bindings = []
        for offset in range(cursor + 1, end, 4):
            index, x, y, weight = values[offset:offset + 4]
            bindings.append(WeightedBinding(int(math.floor(to_finite(index, 0))), x, y, weight))
        vertices.append(bindings)
        cursor = end
    return vertices


def pack_weighted_vertices(vertices: List[List[WeightedBinding]]) -> List[Any]:
    packed: List[Any] = []
    for bindings in vertices:
        packed.append(len(bindings))
        for binding in bindings:
            packed.extend((binding.bone_index, binding.x, binding.y, binding.weight))
    return packed


def attachment_vertex_count(attachment: Mapping[str, Any]) -> Optional[int]:
    """Declared vertex count, else half the UV count."""
    declared = attachment.get("vertexCount")
    if isinstance(declared, (int, float)) and math.isfinite(declared):
        return int(math.floor(declared))
    uvs = attachment.get("uvs")
    if isinstance(uvs, list):
        return len(uvs) // 2
    return None


def is_weighted(attachment: Mapping[str, Any]) -> bool:
    vertices = attachment.get("vertices")
    count = attachment_vertex_count(attachment)
    if not isinstance(vertices, list) or not count or count <= 0:
        return False
    return len(vertices) > count * 2


def iterate_skin_attachments(skeleton: Mapping[str, Any]) -> Iterator[Tuple[str, str, str, Dict[str, Any]]]:
    """
    Yield ``(skin, slot, attachment name, attachment)`` for every attachment.

    Supports both the list-of-skins layout (``[{name, attachments}]``) and the
    name-keyed layout (``{skin: {slot: {attachment: ...}}}``).
    """
    skins = skeleton.get("skins")
    if isinstance(skins, list):
        groups = [
            (str(skin.get("name") or ""), skin.get("attachments"))
            for skin in skins if isinstance(skin, Mapping)
        ]
    elif isinstance(skins, Mapping):
        groups = list(skins.items())
    else:
        return

    for skin_name, slots in groups:
        if not isinstance(slots, Mapping):
            continue
        for slot_name, attachments in slots.items():
            if not isinstance(attachments, Mapping):
                continue
            for attachment_name, attachment in attachments.items():
                if isinstance(attachment, dict):
                    yield skin_name, slot_name, attachment_name, attachment


def collect_weighted_bone_indices(skeleton: Mapping[str, Any]) -> List[int]:
    """Sorted bone indices referenced by well-formed weighted attachments."""
    indices = set()
    for _, _, _, attachment in iterate_skin_attachments(skeleton):
        if not is_weighted(attachment):
            continue
        for bindings in unpack_weighted_vertices(attachment["vertices"]) or []:
            indices.update(binding.bone_index for binding in bindings)
    return sorted(indices)


def remap_weighted_attachments(
    skeleton: Dict[str, Any],
    index_map: Mapping[int, int],
    fallback_index: int,
) -> int:
    """
    Rewrite bone indices of every weighted attachment in place.

    Indices absent from ``index_map`` go to ``fallback_index``. Malformed
    vertex arrays are left untouched.

    Returns:
        Number of attachments rewritten
    """
    remapped = 0
    for skin_name, slot_name, attachment_name, attachment in iterate_skin_attachments(skeleton):
        if not is_weighted(attachment):
            continue
        vertices = unpack_weighted_vertices(attachment["vertices"])
        if vertices is None:
            logger.debug("Skipping malformed weighted vertices in %s/%s/%s", skin_name, slot_name, attachment_name)
            continue
        attachment["vertices"] = pack_weighted_vertices([
            [binding._replace(bone_index=index_map.get(binding.bone_index, fallback_index)) for binding in bindings]
            for bindings in vertices
        ])
        remapped += 1
    return remapped
