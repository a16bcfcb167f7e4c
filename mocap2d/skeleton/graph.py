"""
2D bone graph: local bone values and accumulated world transforms.

Skeleton documents stay plain JSON dictionaries; ``Bone`` is only built for
reading transforms and for emitting newly created bones.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from mocap2d.utils.math_utils import EPSILON, round_to, to_finite

_BONE_KEYS = ("name", "parent", "x", "y", "rotation", "scaleX", "scaleY", "length")


@dataclass
class Bone:
    """Local (parent-relative) values of one bone."""

    name: str
    parent: Optional[str] = None
    x: float = 0.0
    y: float = 0.0
    rotation: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    length: float = 0.0
    extras: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Bone":
        return cls(
            name=str(data.get("name") or ""),
            parent=data.get("parent") or None,
            x=to_finite(data.get("x"), 0.0),
            y=to_finite(data.get("y"), 0.0),
            rotation=to_finite(data.get("rotation"), 0.0),
            scale_x=to_finite(data.get("scaleX"), 1.0),
            scale_y=to_finite(data.get("scaleY"), 1.0),
            length=to_finite(data.get("length"), 0.0),
            extras={k: v for k, v in data.items() if k not in _BONE_KEYS},
        )

    def to_dict(self, digits: int = 4) -> Dict[str, Any]:
        """Serialize, omitting values that equal their defaults."""
        result: Dict[str, Any] = {"name": self.name}
        if self.parent:
            result["parent"] = self.parent
        for key, value in (("x", self.x), ("y", self.y), ("rotation", self.rotation), ("length", self.length)):
            if abs(value) > EPSILON:
                result[key] = round_to(value, digits)
        for key, value in (("scaleX", self.scale_x), ("scaleY", self.scale_y)):
            if abs(value - 1.0) > EPSILON:
                result[key] = round_to(value, digits)
        result.update(self.extras)
        return result


@dataclass(frozen=True)
class Transform2D:
    """Accumulated world transform of a bone."""

    x: float = 0.0
    y: float = 0.0
    rotation: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0

    def compose(self, local: Bone) -> "Transform2D":
        """World transform of ``local`` when parented to this transform."""
        radians = math.radians(self.rotation)
        cos, sin = math.cos(radians), math.sin(radians)
        lx = local.x * self.scale_x
        ly = local.y * self.scale_y
        return Transform2D(
            x=self.x + lx * cos - ly * sin,
            y=self.y + lx * sin + ly * cos,
            rotation=self.rotation + local.rotation,
            scale_x=self.scale_x * local.scale_x,
            scale_y=self.scale_y * local.scale_y,
        )

    def to_local(self, x: float, y: float) -> Tuple[float, float]:
        """Express a world point in this transform's local frame."""
        dx = x - self.x
        dy = y - self.y
        radians = math.radians(self.rotation)
        cos, sin = math.cos(radians), math.sin(radians)
        scale_x = 1.0 if abs(self.scale_x) <= EPSILON else self.scale_x
        scale_y = 1.0 if abs(self.scale_y) <= EPSILON else self.scale_y
        return (dx * cos + dy * sin) / scale_x, (-dx * sin + dy * cos) / scale_y


def compose_world(local: Bone, parent: Optional[Transform2D] = None) -> Transform2D:
    if parent is None:
        return Transform2D(
            x=local.x, y=local.y, rotation=local.rotation,
            scale_x=local.scale_x, scale_y=local.scale_y,
        )
    return parent.compose(local)


def bones_by_name(bones: Iterable[Mapping[str, Any]]) -> Dict[str, Bone]:
    """Parse bone dictionaries; the first bone wins on duplicate names."""
    result: Dict[str, Bone] = {}
    for data in bones or ():
        if isinstance(data, Mapping) and data.get("name") and data["name"] not in result:
            result[str(data["name"])] = Bone.from_dict(data)
    return result


def build_world_map(bones: Iterable[Mapping[str, Any]]) -> Dict[str, Transform2D]:
    """
    Accumulate the world transform of every bone.

    Parents that are missing, or that close a cycle, are treated as absent.

    Args:
        bones: Bone dictionaries in document order

    Returns:
        Bone name -> world transform
    """
    by_name = bones_by_name(bones)
    world: Dict[str, Transform2D] = {}

    def resolve(name: str, stack: Set[str]) -> Optional[Transform2D]:
        if name in world:
            return world[name]
        bone = by_name.get(name)
        if bone is None or name in stack:
            return None
        stack.add(name)
        parent_world = resolve(bone.parent, stack) if bone.parent else None
        stack.discard(name)
        world[name] = compose_world(bone, parent_world)
        return world[name]

    for name in by_name:
        resolve(name, set())
    return world


def find_root_bone(bones: List[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    """First parentless bone, else the first bone."""
    for bone in bones:
        if isinstance(bone, Mapping) and not bone.get("parent"):
            return bone
    return bones[0] if bones else None


def sanitize_bone_name(value, fallback: str = "fbx_bone") -> str:
    cleaned = re.sub(r"[\s/\\:;.,]+", "_", str(value or "").strip())
    cleaned = re.sub(r"[^A-Za-z0-9_\-]", "_", cleaned)
    cleaned = re.sub(r"_+", "_", cleaned).strip("_")
    return cleaned or fallback


def generate_unique_bone_name(preferred: str, used: Set[str]) -> str:
    """
    Sanitize ``preferred`` and make it unique within ``used``.

    Collisions get a ``_fbx_N`` suffix. The chosen name is added to ``used``.
    """
    base = sanitize_bone_name(preferred)
    candidate = base
    suffix = 1
    while candidate in used and suffix < 100000:
        candidate = f"{base}_fbx_{suffix}"
        suffix += 1
    if candidate in used:
        candidate = f"{base}_{len(used)}"
    used.add(candidate)
    return candidate


def parent_cycle_free(bones: List[Mapping[str, Any]]) -> bool:
    """True if following ``parent`` links from every bone terminates."""
    parents = {b.get("name"): b.get("parent") for b in bones if isinstance(b, Mapping)}
    for name in parents:
        seen = set()
        current = name
        while current:
            if current in seen:
                return False
            seen.add(current)
            current = parents.get(current)
    return True
