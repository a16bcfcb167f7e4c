"""
Bone reference repair after a skeleton rebuild.

When the bone list is replaced, every slot, constraint, animation timeline and
weighted skin vertex that names (or indexes) a removed bone must be pointed at
a surviving bone, according to the mismatch policy.
"""

import copy
import logging
from typing import Any, Dict, List, Mapping, Optional, Set

from mocap2d.core.canonical import normalize_name
from mocap2d.core.errors import SkeletonInvariantError, StrictMismatchError
from mocap2d.core.types import SkeletonConversionReport
from mocap2d.skeleton.skin import collect_weighted_bone_indices, remap_weighted_attachments

logger = logging.getLogger(__name__)

CONSTRAINT_GROUPS = (("ik", "IK"), ("path", "path"), ("transform", "transform"))


def normalized_index(names) -> Dict[str, List[str]]:
    index: Dict[str, List[str]] = {}
    for name in names:
        key = normalize_name(name)
        if key:
            index.setdefault(key, []).append(name)
    return index


def resolve_normalized(name: str, index: Mapping[str, List[str]]) -> Optional[str]:
    """Unique case/punctuation-insensitive match, or None if absent or ambiguous."""
    matches = index.get(normalize_name(name)) or []
    return matches[0] if len(matches) == 1 else None


def collect_missing_bone_references(skeleton: Mapping[str, Any]) -> List[str]:
    """
    Names referenced by the skeleton that are not bones.

    Checks bone parents, slot bones, constraint targets and bone lists, and
    animation bone timelines.
    """
    bones = [b for b in skeleton.get("bones") or [] if isinstance(b, Mapping)]
    names = {b.get("name") for b in bones if b.get("name")}
    missing: Dict[str, None] = {}

    def check(name):
        if name and name not in names:
            missing[name] = None

    for bone in bones:
        check(bone.get("parent"))
    for slot in skeleton.get("slots") or []:
        if isinstance(slot, Mapping):
            check(slot.get("bone"))
    for key, _ in CONSTRAINT_GROUPS:
        for constraint in skeleton.get(key) or []:
            if not isinstance(constraint, Mapping):
                continue
            check(constraint.get("target"))
            for bone_name in constraint.get("bones") or []:
                check(bone_name)
    for animation in (skeleton.get("animations") or {}).values():
        if isinstance(animation, Mapping):
            for bone_name in (animation.get("bones") or {}):
                check(bone_name)
    return list(missing)


class ReferenceRepairer:
    """
    Repairs references in a rebuilt skeleton.

    Each old name resolves by exact match against the rebuilt bones, then by a
    unique normalized match, then by policy: ``strict-fail`` raises,
    ``skip-missing`` drops the reference and ``auto-add-bones`` clones the
    original bone (with its parent chain) as a compatibility bone.
    """

    def __init__(
        self,
        skeleton: Dict[str, Any],
        original_bones: List[Mapping[str, Any]],
        root_name: str,
        policy: str,
        report: SkeletonConversionReport,
    ):
        self.skeleton = skeleton
        self.original_bones = original_bones
        self.original_by_name = {}
        for bone in original_bones:
            if isinstance(bone, Mapping) and bone.get("name"):
                self.original_by_name.setdefault(bone["name"], bone)
        self.root_name = root_name
        self.policy = policy
        self.report = report

        self.bone_names: Set[str] = {b["name"] for b in skeleton["bones"] if b.get("name")}
        self._normalized = normalized_index(sorted(self.bone_names))
        self._cache: Dict[str, Optional[str]] = {}

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.report.warnings.append(message)

    def ensure_compatibility_bone(self, name: str, stack: Optional[Set[str]] = None) -> str:
        """Clone the original bone named ``name`` into the rebuilt skeleton."""
        stack = stack if stack is not None else set()
        if not name:
            return self.root_name
        if name in self.bone_names:
            return name
        if name in stack:
            return self.root_name

        stack.add(name)
        original = self.original_by_name.get(name)
        parent = original.get("parent") if original else None
        resolved_parent = (
            self.ensure_compatibility_bone(parent, stack) if parent and parent != name else self.root_name
        )
        stack.discard(name)

        clone = copy.deepcopy(dict(original)) if original else {}
        clone["name"] = name
        if resolved_parent and resolved_parent != name:
            clone["parent"] = resolved_parent
        else:
            clone.pop("parent", None)

        self.skeleton["bones"].append(clone)
        self.bone_names.add(name)
        self.report.compatibility_bones_added.append(name)
        return name

    def resolve(self, name: str, context: str = "reference") -> Optional[str]:
        """
        Resolve an old bone name to a bone of the rebuilt skeleton.

        Returns:
            The bone name, or None when ``skip-missing`` dropped it

        Raises:
            StrictMismatchError: Under ``strict-fail`` when unresolvable
        """
        if not name:
            return None
        if name in self._cache:
            return self._cache[name]

        if name in self.bone_names:
            resolved = name
        else:
            resolved = resolve_normalized(name, self._normalized)

        if resolved is None:
            if self.policy == "strict-fail":
                raise StrictMismatchError(
                    f'Rebuilt skeleton could not remap "{name}" ({context}).', unresolved=[name]
                )
            if self.policy == "skip-missing":
                self._warn(f'Skipped unresolved bone reference "{name}" ({context}).')
            else:
                resolved = self.ensure_compatibility_bone(name)
                self._warn(f'Added compatibility bone "{name}" for unresolved {context}.')

        self._cache[name] = resolved
        return resolved

    def remap(self, name: str, context: str) -> Optional[str]:
        resolved = self.resolve(name, context)
        if resolved and resolved != name:
            self.report.remapped_references += 1
        return resolved

    def repair_slots(self) -> None:
        for slot in self.skeleton.get("slots") or []:
            if not isinstance(slot, dict) or not slot.get("bone"):
                continue
            resolved = self.remap(slot["bone"], f'slot "{slot.get("name") or "unknown"}"')
            slot["bone"] = resolved or self.root_name

    def repair_constraints(self) -> None:
        for key, label in CONSTRAINT_GROUPS:
            if key not in self.skeleton:
                continue
            kept = []
            for constraint in self.skeleton.get(key) or []:
                if not isinstance(constraint, Mapping):
                    continue
                repaired = copy.deepcopy(dict(constraint))
                name = repaired.get("name") or "unknown"
                had_target = bool(repaired.get("target"))
                if had_target:
                    repaired["target"] = self.remap(repaired["target"], f'{label} target "{name}"')

                bones = repaired.get("bones")
                if isinstance(bones, list):
                    remapped = (self.remap(b, f'{label} bones "{name}"') for b in bones)
                    repaired["bones"] = [b for b in remapped if b]

                if self.policy == "skip-missing":
                    lost_target = had_target and not repaired.get("target")
                    lost_bones = isinstance(bones, list) and not repaired["bones"]
                    if lost_target or lost_bones:
                        self._warn(f'Dropped {label} constraint "{name}" due to unresolved bone references.')
                        continue
                kept.append(repaired)
            self.skeleton[key] = kept

    def repair_animations(self) -> None:
        for animation_name, animation in (self.skeleton.get("animations") or {}).items():
            if not isinstance(animation, dict) or not isinstance(animation.get("bones"), Mapping):
                continue
            merged: Dict[str, Any] = {}
            for bone_name, timeline in animation["bones"].items():
                resolved = self.remap(bone_name, f'animation "{animation_name}"')
                if not resolved:
                    continue
                if resolved in merged:
                    merged[resolved] = {**(merged[resolved] or {}), **(timeline or {})}
                    self._warn(
                        f'Merged duplicate animation bone timelines into "{resolved}" '
                        f'while remapping "{animation_name}".'
                    )
                else:
                    merged[resolved] = timeline
            animation["bones"] = merged

    def repair_skins(self) -> None:
        """Rewrite weighted vertex bone indices from the old bone order to the new one."""
        resolved_by_index: Dict[int, str] = {}
        for old_index in collect_weighted_bone_indices(self.skeleton):
            bone = self.original_bones[old_index] if 0 <= old_index < len(self.original_bones) else None
            old_name = bone.get("name") if isinstance(bone, Mapping) else None
            if not old_name:
                continue
            resolved_by_index[old_index] = self.resolve(old_name, "skin weights") or self.root_name

        # Compatibility bones added while resolving are part of the new order
        new_index: Dict[str, int] = {}
        for index, bone in enumerate(self.skeleton["bones"]):
            new_index.setdefault(bone.get("name"), index)
        fallback = new_index.get(self.root_name, 0)
        index_map = {old: new_index.get(name, fallback) for old, name in resolved_by_index.items()}

        count = remap_weighted_attachments(self.skeleton, index_map, fallback)
        if count:
            self._warn(f"Remapped weighted skin bone indices for {count} attachment(s).")

    def run(self) -> None:
        """
        Repair every reference, then verify none dangles.

        Raises:
            StrictMismatchError: Under ``strict-fail`` on the first unresolved reference
            SkeletonInvariantError: If any reference is still dangling afterwards
        """
        self.repair_slots()
        self.repair_constraints()
        self.repair_animations()
        self.repair_skins()

        missing = collect_missing_bone_references(self.skeleton)
        if missing:
            raise SkeletonInvariantError(
                f"Rebuilt skeleton failed validation. Missing references: {', '.join(missing)}",
                missing=missing,
            )
