"""
Canonical humanoid definition.

Eighteen joint roles shared between arbitrary source rigs and target
skeletons, with their default name aliases, fallback chains and hierarchy.
"""

from typing import Dict, List, Optional, Tuple

CANONICAL_JOINTS: Tuple[str, ...] = (
    "hips",
    "spine",
    "spine1",
    "spine2",
    "neck",
    "head",
    "leftArm",
    "leftForeArm",
    "leftHand",
    "rightArm",
    "rightForeArm",
    "rightHand",
    "leftUpLeg",
    "leftLeg",
    "leftFoot",
    "rightUpLeg",
    "rightLeg",
    "rightFoot",
)

DEFAULT_ALIASES: Dict[str, List[str]] = {
    "hips": ["mixamorig:hips", "hips", "hip", "pelvis", "root", "centerhips"],
    "spine": ["mixamorig:spine", "spine", "spine0", "spine_01", "abdomen"],
    "spine1": ["mixamorig:spine1", "spine1", "spine_02", "chest"],
    "spine2": ["mixamorig:spine2", "spine2", "spine_03", "upperchest"],
    "neck": ["mixamorig:neck", "neck", "neck1"],
    "head": ["mixamorig:head", "head", "headtop"],
    "leftArm": [
        "mixamorig:leftarm", "leftarm", "larm", "arm_l", "lupperarm",
        "leftshoulder", "lshldr", "lshoulder",
    ],
    "leftForeArm": ["mixamorig:leftforearm", "leftforearm", "lforearm", "forearm_l", "lfore_arm"],
    "leftHand": ["mixamorig:lefthand", "lefthand", "lhand", "hand_l", "leftpalm", "lpalm"],
    "rightArm": [
        "mixamorig:rightarm", "rightarm", "rarm", "arm_r", "rupperarm",
        "rightshoulder", "rshldr", "rshoulder",
    ],
    "rightForeArm": ["mixamorig:rightforearm", "rightforearm", "rforearm", "forearm_r", "rfore_arm"],
    "rightHand": ["mixamorig:righthand", "righthand", "rhand", "hand_r", "rightpalm", "rpalm"],
    "leftUpLeg": ["mixamorig:leftupleg", "leftupleg", "lthigh", "upleg_l", "leftthigh", "leftupperleg"],
    "leftLeg": ["mixamorig:leftleg", "leftleg", "lleg", "calf_l", "leftcalf", "leftshin", "lshin"],
    "leftFoot": ["mixamorig:leftfoot", "leftfoot", "lfoot", "foot_l", "leftankle"],
    "rightUpLeg": ["mixamorig:rightupleg", "rightupleg", "rthigh", "upleg_r", "rightthigh", "rightupperleg"],
    "rightLeg": ["mixamorig:rightleg", "rightleg", "rleg", "calf_r", "rightcalf", "rightshin", "rshin"],
    "rightFoot": ["mixamorig:rightfoot", "rightfoot", "rfoot", "foot_r", "rightankle"],
}

# Ordered substitutes for a joint the source rig lacks
CANONICAL_FALLBACKS: Dict[str, List[str]] = {
    "spine": ["hips"],
    "spine1": ["spine", "hips"],
    "spine2": ["spine1", "spine", "hips"],
    "neck": ["spine2", "spine1", "spine"],
    "head": ["neck", "spine2", "spine1"],
    "leftForeArm": ["leftArm"],
    "leftHand": ["leftForeArm", "leftArm"],
    "rightForeArm": ["rightArm"],
    "rightHand": ["rightForeArm", "rightArm"],
    "leftLeg": ["leftUpLeg"],
    "leftFoot": ["leftLeg", "leftUpLeg"],
    "rightLeg": ["rightUpLeg"],
    "rightFoot": ["rightLeg", "rightUpLeg"],
}

PARENT_BY_JOINT: Dict[str, Optional[str]] = {
    "hips": None,
    "spine": "hips",
    "spine1": "spine",
    "spine2": "spine1",
    "neck": "spine2",
    "head": "neck",
    "leftArm": "spine2",
    "leftForeArm": "leftArm",
    "leftHand": "leftForeArm",
    "rightArm": "spine2",
    "rightForeArm": "rightArm",
    "rightHand": "rightForeArm",
    "leftUpLeg": "hips",
    "leftLeg": "leftUpLeg",
    "leftFoot": "leftLeg",
    "rightUpLeg": "hips",
    "rightLeg": "rightUpLeg",
    "rightFoot": "rightLeg",
}

CHILD_BY_JOINT: Dict[str, Optional[str]] = {
    "hips": "spine",
    "spine": "spine1",
    "spine1": "spine2",
    "spine2": "neck",
    "neck": "head",
    "head": None,
    "leftArm": "leftForeArm",
    "leftForeArm": "leftHand",
    "leftHand": None,
    "rightArm": "rightForeArm",
    "rightForeArm": "rightHand",
    "rightHand": None,
    "leftUpLeg": "leftLeg",
    "leftLeg": "leftFoot",
    "leftFoot": None,
    "rightUpLeg": "rightLeg",
    "rightLeg": "rightFoot",
    "rightFoot": None,
}

SIDE_SWAP: Dict[str, str] = {
    "leftArm": "rightArm",
    "leftForeArm": "rightForeArm",
    "leftHand": "rightHand",
    "leftUpLeg": "rightUpLeg",
    "leftLeg": "rightLeg",
    "leftFoot": "rightFoot",
    "rightArm": "leftArm",
    "rightForeArm": "leftForeArm",
    "rightHand": "leftHand",
    "rightUpLeg": "leftUpLeg",
    "rightLeg": "leftLeg",
    "rightFoot": "leftFoot",
}


def mirrored_joint(joint: str) -> str:
    """Left/right counterpart of a canonical joint (itself for centre joints)."""
    return SIDE_SWAP.get(joint, joint)
