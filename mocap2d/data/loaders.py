"""
Load decoded motion, target skeletons and retarget profiles from disk.

JSON is the native format; profiles and configs may also be YAML.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from mocap2d.core.errors import MotionInputError
from mocap2d.core.profile import RetargetProfile
from mocap2d.core.types import DecodedMotion

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def load_document(path: Path) -> Any:
    """Parse a JSON or YAML file (chosen by suffix)."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() in YAML_SUFFIXES:
            return yaml.safe_load(f)
        return json.load(f)


def load_motion(path: Path) -> DecodedMotion:
    """
    Load a decoded motion file.

    Raises:
        MotionInputError: If the file does not hold a motion object
    """
    data = load_document(path)
    if not isinstance(data, dict):
        raise MotionInputError(f"Motion file {path} does not contain a motion object.")
    motion = DecodedMotion.from_dict(data)
    if motion.source_file is None:
        motion.source_file = Path(path).name
    logger.debug("Loaded motion %s: %d tracks, %d frames", path, len(motion.joint_tracks), motion.num_frames)
    return motion


def load_skeleton(path: Path) -> Dict[str, Any]:
    """
    Load a target skeleton document.

    Raises:
        MotionInputError: If the file does not hold a skeleton object
    """
    data = load_document(path)
    if not isinstance(data, dict):
        raise MotionInputError(f"Skeleton file {path} does not contain a skeleton object.")
    return data


def load_profile(path: Path) -> RetargetProfile:
    data = load_document(path)
    if not isinstance(data, dict):
        raise MotionInputError(f"Profile file {path} does not contain a profile object.")
    profile = RetargetProfile.from_dict(data)
    logger.debug("Loaded profile '%s' with %d target bones", profile.id, len(profile.target_bones))
    return profile
