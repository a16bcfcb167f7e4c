"""Shared fixtures: a synthetic humanoid motion, a target skeleton and a profile."""

import copy

import pytest

from mocap2d.core.humanoid import PARENT_BY_JOINT

# Rest pose: x spreads the arms (left positive), y is up, z is depth
REST_POSE = {
    "hips": (0.0, 1.0, 0.0),
    "spine": (0.0, 1.1, 0.0),
    "spine1": (0.0, 1.2, 0.0),
    "spine2": (0.0, 1.3, 0.0),
    "neck": (0.0, 1.5, 0.0),
    "head": (0.0, 1.7, 0.0),
    "leftArm": (0.2, 1.45, 0.0),
    "leftForeArm": (0.45, 1.45, 0.0),
    "leftHand": (0.7, 1.45, 0.0),
    "rightArm": (-0.2, 1.45, 0.0),
    "rightForeArm": (-0.45, 1.45, 0.0),
    "rightHand": (-0.7, 1.45, 0.0),
    "leftUpLeg": (0.1, 0.95, 0.0),
    "leftLeg": (0.1, 0.5, 0.0),
    "leftFoot": (0.1, 0.05, 0.0),
    "rightUpLeg": (-0.1, 0.95, 0.0),
    "rightLeg": (-0.1, 0.5, 0.0),
    "rightFoot": (-0.1, 0.05, 0.0),
}

SOURCE_NAMES = {
    "hips": "mixamorig:Hips",
    "spine": "mixamorig:Spine",
    "spine1": "mixamorig:Spine1",
    "spine2": "mixamorig:Spine2",
    "neck": "mixamorig:Neck",
    "head": "mixamorig:Head",
    "leftArm": "mixamorig:LeftArm",
    "leftForeArm": "mixamorig:LeftForeArm",
    "leftHand": "mixamorig:LeftHand",
    "rightArm": "mixamorig:RightArm",
    "rightForeArm": "mixamorig:RightForeArm",
    "rightHand": "mixamorig:RightHand",
    "leftUpLeg": "mixamorig:LeftUpLeg",
    "leftLeg": "mixamorig:LeftLeg",
    "leftFoot": "mixamorig:LeftFoot",
    "rightUpLeg": "mixamorig:RightUpLeg",
    "rightLeg": "mixamorig:RightLeg",
    "rightFoot": "mixamorig:RightFoot",
}


def build_motion_dict(
    frames=3,
    fps=30.0,
    offsets=None,
    joints=None,
    include_nodes=True,
    source_file="walk_cycle.fbx",
):
    """
    Decoded motion dictionary for the synthetic humanoid.

    Args:
        frames: Number of frames
        fps: Sampling rate
        offsets: Optional ``f(joint, frame) -> (dx, dy, dz)`` added to the rest pose
        joints: Canonical joints to include (all by default)
        include_nodes: Whether to emit source skeleton metadata
        source_file: Recorded source file name
    """
    joints = list(joints or REST_POSE)
    frame_times = [round(index / fps, 6) for index in range(frames)]

    tracks = []
    for joint in joints:
        rest = REST_POSE[joint]
        positions = []
        for frame in range(frames):
            delta = offsets(joint, frame) if offsets else (0.0, 0.0, 0.0)
            positions.append([rest[i] + delta[i] for i in range(3)])
        parent = PARENT_BY_JOINT[joint]
        tracks.append({
            "name": SOURCE_NAMES[joint],
            "parentName": SOURCE_NAMES[parent] if parent in joints else None,
            "positions": positions,
        })

    data = {
        "sourceFile": source_file,
        "clipName": "Take 001",
        "fps": fps,
        "duration": frame_times[-1] if frame_times else 0.0,
        "frameTimes": frame_times,
        "jointTracks": tracks,
        "warnings": [],
    }
    if include_nodes:
        nodes = []
        for joint in joints:
            parent = PARENT_BY_JOINT[joint]
            x, y, z = REST_POSE[joint]
            nodes.append({
                "name": SOURCE_NAMES[joint],
                "parentName": SOURCE_NAMES[parent] if parent in joints else None,
                "depth": 0,
                "isBone": True,
                "restWorldPosition": {"x": x, "y": y, "z": z},
            })
        data["skeleton"] = {"nodes": nodes}
    return data


@pytest.fixture
def motion_builder():
    return build_motion_dict


@pytest.fixture
def motion_dict():
    return build_motion_dict()


def build_skeleton(mirrored=False):
    side = -1.0 if mirrored else 1.0
    return {
        "skeleton": {"spine": "4.1.00", "width": 200, "height": 300},
        "bones": [
            {"name": "root"},
            {"name": "hips", "parent": "root", "y": 100},
            {"name": "torso", "parent": "hips", "y": 10, "rotation": 90, "length": 40},
            {"name": "head", "parent": "torso", "x": 40, "length": 20},
            {"name": "ARM_L", "parent": "hips", "x": 20 * side, "y": 40, "length": 25},
            {"name": "FOREARM_L", "parent": "ARM_L", "x": 25, "length": 25},
            {"name": "ARM_R", "parent": "hips", "x": -20 * side, "y": 40, "length": 25},
            {"name": "FOREARM_R", "parent": "ARM_R", "x": 25, "length": 25},
            {"name": "LEG_L", "parent": "hips", "x": 10, "rotation": -90, "length": 45},
            {"name": "LEG_R", "parent": "hips", "x": -10, "rotation": -90, "length": 45},
            {"name": "cape", "parent": "torso", "x": 5, "length": 30},
        ],
        "slots": [
            {"name": "body", "bone": "torso", "attachment": "body"},
            {"name": "cape", "bone": "cape", "attachment": "cape"},
            {"name": "arm_l", "bone": "ARM_L", "attachment": "arm_l"},
        ],
        "ik": [
            {"name": "leg_l_ik", "bones": ["LEG_L"], "target": "hips", "order": 0},
        ],
        "path": [
            {"name": "cape_path", "bones": ["cape"], "target": "torso", "order": 1},
        ],
        "transform": [
            {"name": "head_follow", "bones": ["head"], "target": "torso", "order": 2},
        ],
        "skins": [
            {
                "name": "default",
                "attachments": {
                    "body": {
                        "body": {
                            "type": "mesh",
                            "uvs": [0, 0, 1, 0, 1, 1],
                            "triangles": [0, 1, 2],
                            # torso (2) + cape (10), hips (1), torso (2)
                            "vertices": [
                                2, 2, 0.0, 0.0, 0.5, 10, 1.0, 0.0, 0.5,
                                1, 1, 2.0, 0.0, 1.0,
                                1, 2, 0.0, 3.0, 1.0,
                            ],
                        },
                    },
                    "arm_l": {
                        "arm_l": {"type": "region", "width": 10, "height": 30},
                    },
                },
            }
        ],
        "animations": {
            "idle": {
                "bones": {
                    "torso": {"rotate": [{"time": 0, "angle": 0}, {"time": 1, "angle": 5}]},
                    "cape": {"rotate": [{"time": 0, "angle": 3}]},
                }
            }
        },
    }


@pytest.fixture
def skeleton():
    return build_skeleton()


@pytest.fixture
def skeleton_builder():
    return build_skeleton


@pytest.fixture
def mirrored_skeleton():
    return build_skeleton(mirrored=True)


PROFILE_DICT = {
    "id": "test-humanoid",
    "targetBones": {
        "hips": {"bone": "hips", "translate": True},
        "spine": "torso",
        "head": "head",
        "leftArm": "ARM_L",
        "leftForeArm": "FOREARM_L",
        "rightArm": "ARM_R",
        "rightForeArm": "FOREARM_R",
        "leftUpLeg": "LEG_L",
        "rightUpLeg": "LEG_R",
    },
    "jointAdjustments": {
        "head": {"multiplier": 0.5, "offset": 0},
    },
    "limits": {"minAngle": -170, "maxAngle": 170, "rotationEpsilonDeg": 0.2, "translationEpsilon": 0.12},
    "sideCalibration": {
        "sourceLeftJoint": "leftArm",
        "sourceRightJoint": "rightArm",
        "targetLeftBone": "ARM_L",
        "targetRightBone": "ARM_R",
    },
    "translationScale": 100,
    "timeline": {"uniformKeyframes": True},
}


@pytest.fixture
def profile_dict():
    return copy.deepcopy(PROFILE_DICT)
