"""Tests for spine-first and fbx-first skeleton conversion."""

import copy

import pytest

from mocap2d.core.config import SkeletonConversionConfig
from mocap2d.core.errors import MotionInputError, SkeletonInvariantError, StrictMismatchError
from mocap2d.core.profile import RetargetProfile
from mocap2d.core.types import DecodedMotion, SkeletonConversionReport
from mocap2d.skeleton.convert import convert_skeleton
from mocap2d.skeleton.graph import parent_cycle_free
from mocap2d.skeleton.repair import ReferenceRepairer, collect_missing_bone_references


def run_conversion(skeleton, motion_data, profile_data, mode, policy="auto-add-bones"):
    config = SkeletonConversionConfig(enabled=True, mode=mode, mismatch_policy=policy)
    return convert_skeleton(
        skeleton,
        DecodedMotion.from_dict(motion_data),
        profile=RetargetProfile.from_dict(profile_data),
        config=config,
    )


def assert_valid_tree(skeleton):
    bones = skeleton["bones"]
    names = [bone["name"] for bone in bones]
    assert len(names) == len(set(names))
    roots = [bone for bone in bones if not bone.get("parent")]
    assert len(roots) == 1
    assert all(bone["parent"] in names for bone in bones if bone.get("parent"))
    assert parent_cycle_free(bones)
    assert collect_missing_bone_references(skeleton) == []


def bone(skeleton, name):
    return next(b for b in skeleton["bones"] if b["name"] == name)


class TestSpineFirst:
    def test_adds_unmapped_source_nodes(self, skeleton, motion_dict, profile_dict):
        original = copy.deepcopy(skeleton)
        result = run_conversion(skeleton, motion_dict, profile_dict, "spine-first")

        assert skeleton == original
        assert result.report.mode == "spine-first"
        assert len(result.report.added_bones) == 9
        assert "mixamorig_Spine1" in result.report.added_bones
        assert result.skeleton["bones"][:11] == original["bones"]
        assert_valid_tree(result.skeleton)

    def test_new_bones_follow_source_hierarchy(self, skeleton, motion_dict, profile_dict):
        result = run_conversion(skeleton, motion_dict, profile_dict, "spine-first")
        converted = result.skeleton

        assert bone(converted, "mixamorig_Spine1")["parent"] == "torso"
        assert bone(converted, "mixamorig_Spine2")["parent"] == "mixamorig_Spine1"
        assert bone(converted, "mixamorig_LeftHand")["parent"] == "FOREARM_L"
        assert bone(converted, "mixamorig_LeftFoot")["parent"] == "mixamorig_LeftLeg"

    def test_placement_is_scaled_into_target_space(self, skeleton, motion_dict, profile_dict):
        result = run_conversion(skeleton, motion_dict, profile_dict, "spine-first")
        spine1 = bone(result.skeleton, "mixamorig_Spine1")

        # 0.1 source units above the torso at a scale of 100, along the torso's +x
        assert spine1["x"] == pytest.approx(10.0)
        assert spine1["length"] == pytest.approx(10.0)
        assert "rotation" not in spine1

    def test_reports_inferred_axes(self, skeleton, motion_dict, profile_dict):
        result = run_conversion(skeleton, motion_dict, profile_dict, "spine-first")
        assert (
            "Skeleton conversion projection axes inferred as horizontal=x, vertical=y, depth=z."
            in result.report.warnings
        )

    def test_strict_fail_raises_without_touching_input(self, skeleton, motion_dict, profile_dict):
        original = copy.deepcopy(skeleton)
        with pytest.raises(StrictMismatchError) as excinfo:
            run_conversion(skeleton, motion_dict, profile_dict, "spine-first", "strict-fail")

        assert "mixamorig:Spine1" in excinfo.value.unresolved
        assert skeleton == original

    def test_skip_missing_keeps_bones(self, skeleton, motion_dict, profile_dict):
        result = run_conversion(skeleton, motion_dict, profile_dict, "spine-first", "skip-missing")

        assert result.skeleton["bones"] == skeleton["bones"]
        assert result.report.added_bones == []
        assert (
            'Skipped unmapped FBX source node "mixamorig:Spine1" due to skeleton mismatch policy.'
            in result.report.warnings
        )

    def test_empty_skeleton_gets_root(self, motion_dict, profile_dict):
        result = run_conversion({"bones": []}, motion_dict, profile_dict, "spine-first")

        assert result.report.added_bones[0] == "root"
        assert len(result.skeleton["bones"]) == 19
        assert bone(result.skeleton, "mixamorig_Hips")["parent"] == "root"
        assert any("fell back to identity transform" in w for w in result.report.warnings)
        assert_valid_tree(result.skeleton)


class TestFbxFirst:
    def test_rebuilds_hierarchy(self, skeleton, motion_dict, profile_dict):
        original = copy.deepcopy(skeleton)
        result = run_conversion(skeleton, motion_dict, profile_dict, "fbx-first")
        converted = result.skeleton

        assert skeleton == original
        assert converted["bones"][0] == {"name": "root"}
        assert bone(converted, "hips")["parent"] == "root"
        assert bone(converted, "hips")["y"] == pytest.approx(100.0)
        assert bone(converted, "torso")["parent"] == "hips"
        assert bone(converted, "mixamorig_Neck")["parent"] == "mixamorig_Spine2"
        assert_valid_tree(converted)

    def test_auto_add_creates_compatibility_bones(self, skeleton, motion_dict, profile_dict):
        result = run_conversion(skeleton, motion_dict, profile_dict, "fbx-first")
        converted = result.skeleton

        assert result.report.compatibility_bones_added == ["cape"]
        assert bone(converted, "cape")["parent"] == "torso"
        assert 'Added compatibility bone "cape" for unresolved slot "cape".' in result.report.warnings
        assert converted["path"][0]["bones"] == ["cape"]
        assert set(converted["animations"]["idle"]["bones"]) == {"torso", "cape"}

    def test_skin_indices_follow_new_bone_order(self, skeleton, motion_dict, profile_dict):
        result = run_conversion(skeleton, motion_dict, profile_dict, "fbx-first")
        converted = result.skeleton
        names = [b["name"] for b in converted["bones"]]
        vertices = converted["skins"][0]["attachments"]["body"]["body"]["vertices"]

        torso, cape, hips = names.index("torso"), names.index("cape"), names.index("hips")
        assert vertices == [
            2, torso, 0.0, 0.0, 0.5, cape, 1.0, 0.0, 0.5,
            1, hips, 2.0, 0.0, 1.0,
            1, torso, 0.0, 3.0, 1.0,
        ]
        assert "Remapped weighted skin bone indices for 1 attachment(s)." in result.report.warnings

    def test_skip_missing_redirects_slot_to_root(self, skeleton, motion_dict, profile_dict):
        result = run_conversion(skeleton, motion_dict, profile_dict, "fbx-first", "skip-missing")
        converted = result.skeleton
        slots = {slot["name"]: slot for slot in converted["slots"]}

        assert slots["cape"]["bone"] == "root"
        assert 'Skipped unresolved bone reference "cape" (slot "cape").' in result.report.warnings
        assert converted["path"] == []
        assert 'Dropped path constraint "cape_path" due to unresolved bone references.' in result.report.warnings
        assert "cape" not in converted["animations"]["idle"]["bones"]
        vertices = converted["skins"][0]["attachments"]["body"]["body"]["vertices"]
        assert vertices[5] == 0
        assert_valid_tree(converted)

    def test_strict_fail_raises(self, skeleton, motion_dict, profile_dict):
        original = copy.deepcopy(skeleton)
        with pytest.raises(StrictMismatchError, match='could not remap "cape"'):
            run_conversion(skeleton, motion_dict, profile_dict, "fbx-first", "strict-fail")
        assert skeleton == original

    def test_source_named_like_root_is_renamed(self, skeleton, motion_dict, profile_dict):
        motion_dict["skeleton"]["nodes"].append({"name": "root", "parentName": None})
        result = run_conversion(skeleton, motion_dict, profile_dict, "fbx-first")

        assert "root_fbx" in [b["name"] for b in result.skeleton["bones"]]
        assert_valid_tree(result.skeleton)


class TestOptionsAndInputs:
    def test_unsupported_mode_falls_back(self, skeleton, motion_dict, profile_dict):
        result = run_conversion(skeleton, motion_dict, profile_dict, "Sideways")
        assert result.report.mode == "spine-first"
        assert 'Unsupported skeleton mode "sideways" requested; defaulted to "spine-first".' in result.report.warnings

    def test_mode_is_case_insensitive(self, skeleton, motion_dict, profile_dict):
        result = run_conversion(skeleton, motion_dict, profile_dict, " FBX-First ")
        assert result.report.mode == "fbx-first"

    def test_tracks_stand_in_for_missing_metadata(self, skeleton, motion_builder, profile_dict):
        result = run_conversion(skeleton, motion_builder(include_nodes=False), profile_dict, "spine-first")
        assert result.report.warnings[0].startswith("Source skeleton metadata was unavailable")
        assert len(result.report.added_bones) == 9

    def test_invalid_skeleton(self, motion_dict, profile_dict):
        with pytest.raises(MotionInputError):
            run_conversion(["not", "a", "skeleton"], motion_dict, profile_dict, "spine-first")

    def test_no_source_nodes(self, skeleton, profile_dict):
        motion = {"frameTimes": [0.0], "jointTracks": []}
        with pytest.raises(MotionInputError, match="No source skeleton nodes"):
            run_conversion(skeleton, motion, profile_dict, "spine-first")


class TestReferenceRepairer:
    def test_normalized_match_counts_as_remap(self):
        skeleton = {
            "bones": [{"name": "root"}, {"name": "Arm_L", "parent": "root"}],
            "slots": [{"name": "arm", "bone": "arm-l"}],
        }
        report = SkeletonConversionReport(mode="fbx-first")
        ReferenceRepairer(skeleton, [], "root", "strict-fail", report).run()

        assert skeleton["slots"][0]["bone"] == "Arm_L"
        assert report.remapped_references == 1

    def test_ambiguous_normalized_match_is_unresolved(self):
        skeleton = {
            "bones": [{"name": "root"}, {"name": "arm_l", "parent": "root"}, {"name": "ARM-L", "parent": "root"}],
            "slots": [{"name": "arm", "bone": "Arm L"}],
        }
        report = SkeletonConversionReport(mode="fbx-first")
        ReferenceRepairer(skeleton, [], "root", "skip-missing", report).run()
        assert skeleton["slots"][0]["bone"] == "root"

    def test_duplicate_timelines_merge(self):
        skeleton = {
            "bones": [{"name": "root"}, {"name": "arm", "parent": "root"}],
            "animations": {"wave": {"bones": {
                "arm": {"rotate": [{"time": 0, "angle": 1}]},
                "ARM": {"translate": [{"time": 0, "x": 1, "y": 0}]},
            }}},
        }
        report = SkeletonConversionReport(mode="fbx-first")
        ReferenceRepairer(skeleton, [], "root", "auto-add-bones", report).run()

        assert skeleton["animations"]["wave"]["bones"] == {
            "arm": {
                "rotate": [{"time": 0, "angle": 1}],
                "translate": [{"time": 0, "x": 1, "y": 0}],
            }
        }
        assert any(w.startswith('Merged duplicate animation bone timelines into "arm"') for w in report.warnings)

    def test_dangling_bone_parent_is_fatal(self):
        skeleton = {"bones": [{"name": "root"}, {"name": "arm", "parent": "ghost"}]}
        report = SkeletonConversionReport(mode="fbx-first")
        with pytest.raises(SkeletonInvariantError) as excinfo:
            ReferenceRepairer(skeleton, [], "root", "auto-add-bones", report).run()
        assert excinfo.value.missing == ["ghost"]
