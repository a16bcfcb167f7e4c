"""
Canonicalizer: binds arbitrary source joint names to the canonical humanoid.
"""

import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Set

from mocap2d.core.humanoid import CANONICAL_FALLBACKS, CANONICAL_JOINTS, DEFAULT_ALIASES
from mocap2d.core.types import CanonicalMotion, CanonicalTrack, DecodedMotion

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_name(value) -> str:
    """Lower-case and strip everything but ASCII letters and digits."""
    return _NON_ALNUM.sub("", str(value or "").strip().lower())


def build_alias_set(aliases: Iterable[str]) -> Set[str]:
    return {normalized for normalized in (normalize_name(a) for a in aliases or ()) if normalized}


def build_alias_table(overrides: Optional[Mapping[str, Iterable[str]]] = None) -> Dict[str, Set[str]]:
    """
    Alias table ``canonical joint -> normalized aliases``.

    An override replaces the default list of that joint entirely.
    """
    overrides = overrides or {}
    return {
        joint: build_alias_set(overrides.get(joint) or DEFAULT_ALIASES.get(joint, ()))
        for joint in CANONICAL_JOINTS
    }


def to_canonical_humanoid(
    motion: DecodedMotion,
    aliases: Optional[Mapping[str, Iterable[str]]] = None,
) -> CanonicalMotion:
    """
    Map the decoded joint tracks onto the 18 canonical joints.

    Tracks are tried in input order, so the first track whose normalized name
    is in a joint's alias set wins. Unmatched joints borrow the track of the
    first resolved joint in their fallback chain; joints that still cannot be
    resolved are listed in ``missing_canonical_joints``.

    Args:
        motion: Decoded source motion
        aliases: Optional per-joint alias overrides

    Returns:
        Canonical motion with mapping and warnings
    """
    warnings: List[str] = list(motion.warnings)
    alias_table = build_alias_table(aliases)
    entries = [(normalize_name(track.name), track) for track in motion.joint_tracks.values()]

    tracks: Dict[str, CanonicalTrack] = {}
    mapping: Dict[str, str] = {}
    unresolved: List[str] = []

    for joint in CANONICAL_JOINTS:
        alias_set = alias_table[joint]
        match = next((track for normalized, track in entries if normalized in alias_set), None)
        if match is None:
            unresolved.append(joint)
            continue
        tracks[joint] = CanonicalTrack(
            name=joint,
            source_name=match.name,
            parent_name=match.parent_name,
            positions=match.positions,
            rotations=match.rotations,
        )
        mapping[joint] = match.name

    missing: List[str] = []
    for joint in unresolved:
        fallback = next((c for c in CANONICAL_FALLBACKS.get(joint, ()) if c in tracks), None)
        if fallback is None:
            missing.append(joint)
            continue

        borrowed = tracks[fallback]
        tracks[joint] = CanonicalTrack(
            name=joint,
            source_name=borrowed.source_name,
            parent_name=borrowed.parent_name,
            positions=borrowed.positions,
            rotations=borrowed.rotations,
            derived_from=fallback,
        )
        mapping[joint] = borrowed.source_name
        message = (
            f'Canonical joint "{joint}" was missing; reusing "{fallback}" '
            f'source track "{borrowed.source_name}".'
        )
        logger.warning(message)
        warnings.append(message)

    if missing:
        message = f"Missing canonical joints: {', '.join(missing)}"
        logger.warning(message)
        warnings.append(message)

    logger.debug("Canonicalized %d/%d joints", len(mapping), len(CANONICAL_JOINTS))

    return CanonicalMotion(
        frame_times=motion.frame_times,
        tracks=tracks,
        mapping=mapping,
        missing_canonical_joints=missing,
        fps=motion.fps,
        duration=motion.duration,
        warnings=warnings,
    )
