"""Tests for axis inference and 3D to 2D projection."""

import numpy as np
import pytest

from mocap2d.core.canonical import to_canonical_humanoid
from mocap2d.core.config import ProjectionConfig
from mocap2d.core.errors import MotionInputError
from mocap2d.core.humanoid import CANONICAL_JOINTS
from mocap2d.core.projection import compute_world_angles, infer_axes, project_3d_to_2d
from mocap2d.core.types import DecodedMotion


def canonical_from(data):
    return to_canonical_humanoid(DecodedMotion.from_dict(data))


class TestAxisInference:
    def test_upright_rig(self, motion_dict):
        projected = project_3d_to_2d(canonical_from(motion_dict))
        assert projected.axis_mapping.to_dict() == {"horizontal": "x", "vertical": "y", "depth": "z"}
        assert "Projection axes inferred as horizontal=x, vertical=y, depth=z." in projected.warnings

    def test_z_up_rig(self):
        anchors = {
            "hips": np.array([0.0, 0.0, 1.0]),
            "head": np.array([0.0, 0.1, 1.7]),
            "leftArm": np.array([0.0, 0.3, 1.4]),
            "rightArm": np.array([0.05, -0.3, 1.4]),
        }
        axes = infer_axes(anchors, np.zeros((0, 3)))
        assert (axes.horizontal, axes.vertical, axes.depth) == ("y", "z", "x")

    def test_neck_stands_in_for_head(self):
        anchors = {
            "hips": np.array([0.0, 1.0, 0.0]),
            "neck": np.array([0.0, 1.5, 0.0]),
            "leftUpLeg": np.array([0.0, 0.9, 0.1]),
            "rightUpLeg": np.array([0.0, 0.9, -0.1]),
        }
        axes = infer_axes(anchors, np.zeros((0, 3)))
        assert (axes.horizontal, axes.vertical, axes.depth) == ("z", "y", "x")

    def test_spread_fallback(self):
        cloud = np.array([[0.0, 0.0, 0.0], [0.5, 0.1, 2.0]])
        axes = infer_axes({}, cloud)
        assert (axes.horizontal, axes.vertical, axes.depth) == ("x", "z", "y")

    def test_explicit_axes_skip_inference(self, motion_dict):
        config = ProjectionConfig().merged({"horizontalAxis": "z", "verticalAxis": "y", "depthAxis": "x"})
        projected = project_3d_to_2d(canonical_from(motion_dict), config)
        assert projected.axis_mapping.horizontal == "z"
        assert not any(w.startswith("Projection axes inferred") for w in projected.warnings)


class TestWorldAngles:
    def test_direction_to_child(self):
        positions = np.zeros((2, 3))
        children = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
        angles = compute_world_angles(positions, children, None, 0.05, 0.85)
        np.testing.assert_allclose(angles, [0.0, 90.0])

    def test_direction_from_parent_without_child(self):
        positions = np.array([[0.0, -1.0, 0.0]])
        parents = np.zeros((1, 3))
        angles = compute_world_angles(positions, None, parents, 0.05, 0.85)
        np.testing.assert_allclose(angles, [-90.0])

    def test_degenerate_frame_holds_previous(self):
        positions = np.zeros((3, 3))
        children = np.array([[0.0, 1.0, 0.0], [0.0, 0.0, 0.5], [np.nan, np.nan, np.nan]])
        angles = compute_world_angles(positions, children, None, 0.05, 0.85)
        np.testing.assert_allclose(angles, [90.0, 90.0, 90.0])

    def test_out_of_plane_yaw_is_suppressed(self):
        positions = np.zeros((1, 3))
        children = np.array([[1.0, 0.0, 1.0]])
        angles = compute_world_angles(positions, children, None, 0.05, 0.85)
        ratio = 1.0 / (2.0 + 1e-6)
        expected = 45.0 * 0.05 * (1.0 - ratio * 0.85)
        assert angles[0] == pytest.approx(expected, rel=1e-6)


class TestProjection:
    def test_zero_frames_raise(self, motion_builder):
        data = motion_builder(frames=0)
        with pytest.raises(MotionInputError, match="No animation frames"):
            project_3d_to_2d(canonical_from(data))

    def test_static_pose_angles(self, motion_dict):
        projected = project_3d_to_2d(canonical_from(motion_dict))

        assert set(projected.joint_angles) == set(CANONICAL_JOINTS)
        np.testing.assert_allclose(projected.world_joint_angles["hips"], [90.0] * 3)
        np.testing.assert_allclose(projected.world_joint_angles["leftArm"], [0.0] * 3, atol=1e-9)
        # leftArm relative to spine2 (pointing up)
        np.testing.assert_allclose(projected.joint_angles["leftArm"], [-90.0] * 3)
        np.testing.assert_allclose(projected.hips_translation, np.zeros((3, 2)))

    def test_side_calibration(self, motion_dict):
        projected = project_3d_to_2d(canonical_from(motion_dict))
        assert projected.source_side.left_arm_x == pytest.approx(0.2)
        assert projected.source_side.right_arm_x == pytest.approx(-0.2)

    def test_missing_arms_skip_side_calibration(self, motion_builder):
        joints = [j for j in CANONICAL_JOINTS if "Arm" not in j and "Hand" not in j]
        projected = project_3d_to_2d(canonical_from(motion_builder(joints=joints)))
        assert not projected.source_side.available
        assert (
            "Unable to derive source side calibration from left/right arm first-frame positions."
            in projected.warnings
        )

    def test_hips_translation_follows_motion(self, motion_builder):
        def offsets(joint, frame):
            return (0.1 * frame, 0.0, 0.0) if joint == "hips" else (0.0, 0.0, 0.0)

        projected = project_3d_to_2d(canonical_from(motion_builder(frames=10, offsets=offsets)))
        assert projected.hips_translation.shape == (10, 2)
        assert projected.hips_translation[-1, 0] > 0.0
        np.testing.assert_allclose(projected.hips_translation[:, 1], np.zeros(10))

    def test_is_deterministic(self, motion_builder):
        def offsets(joint, frame):
            return (0.0, 0.02 * frame, 0.01 * frame) if joint.startswith("left") else (0.0, 0.0, 0.0)

        data = motion_builder(frames=12, offsets=offsets)
        first = project_3d_to_2d(canonical_from(data))
        second = project_3d_to_2d(canonical_from(data))
        for joint in first.joint_angles:
            np.testing.assert_array_equal(first.joint_angles[joint], second.joint_angles[joint])

    def test_short_track_is_padded_with_missing_samples(self, motion_builder):
        canonical = canonical_from(motion_builder(frames=6))
        canonical.tracks["leftForeArm"].positions = canonical.tracks["leftForeArm"].positions[:3]
        projected = project_3d_to_2d(canonical)

        for angles in projected.joint_angles.values():
            assert angles.shape == (6,)
            assert np.isfinite(angles).all()
        # the missing samples hold the last known angle
        np.testing.assert_allclose(projected.world_joint_angles["leftForeArm"], np.zeros(6), atol=1e-9)
