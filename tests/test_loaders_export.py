"""Tests for reading inputs from disk and writing outputs."""

import json

import numpy as np
import pytest

from mocap2d.core.errors import MotionInputError
from mocap2d.data.loaders import load_document, load_motion, load_profile, load_skeleton
from mocap2d.export.json_export import export_report, export_skeleton


def test_load_motion_records_file_name(tmp_path, motion_builder):
    path = tmp_path / "jump.json"
    path.write_text(json.dumps(motion_builder(frames=4, source_file=None)), encoding="utf-8")
    motion = load_motion(path)

    assert motion.source_file == "jump.json"
    assert motion.num_frames == 4
    assert len(motion.joint_tracks) == 18
    assert motion.joint_tracks["mixamorig:Hips"].positions.shape == (4, 3)


def test_load_motion_keeps_decoder_file_name(tmp_path, motion_dict):
    path = tmp_path / "decoded.json"
    path.write_text(json.dumps(motion_dict), encoding="utf-8")
    assert load_motion(path).source_file == "walk_cycle.fbx"


@pytest.mark.parametrize("loader", [load_motion, load_skeleton, load_profile])
def test_non_object_documents_are_rejected(tmp_path, loader):
    path = tmp_path / "list.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    with pytest.raises(MotionInputError):
        loader(path)


def test_yaml_profile(tmp_path):
    path = tmp_path / "humanoid.yaml"
    path.write_text(
        "id: yaml-humanoid\n"
        "targetBones:\n"
        "  hips: {bone: HIPS, translate: true}\n"
        "  head: HEAD\n"
        "rootMotion: translate\n",
        encoding="utf-8",
    )
    profile = load_profile(path)

    assert profile.id == "yaml-humanoid"
    assert profile.target_bones["hips"].translate
    assert profile.target_bone_names() == {"hips": "HIPS", "head": "HEAD"}
    assert profile.root_motion == "translate"


def test_document_format_follows_suffix(tmp_path):
    path = tmp_path / "doc.YML"
    path.write_text("a: 1\n", encoding="utf-8")
    assert load_document(path) == {"a": 1}


def test_missing_file_raises(tmp_path):
    with pytest.raises(OSError):
        load_skeleton(tmp_path / "missing.json")


def test_export_creates_directories(tmp_path, skeleton):
    path = tmp_path / "out" / "nested" / "hero.generated.json"
    export_skeleton(skeleton, path)

    text = path.read_text(encoding="utf-8")
    assert text.endswith("}\n")
    assert json.loads(text) == skeleton
    assert text.startswith('{\n  "skeleton"')


def test_export_report_keeps_unicode(tmp_path):
    path = tmp_path / "report.json"
    export_report({"file": "café.json"}, path, indent=4)

    text = path.read_text(encoding="utf-8")
    assert "café" in text
    assert text == '{\n    "file": "café.json"\n}\n'


@pytest.mark.parametrize("field,value", [
    ("frameTimes", 5),
    ("jointTracks", "hips"),
    ("skeleton", {"nodes": {"name": "hips"}}),
])
def test_malformed_motion_fields(tmp_path, motion_dict, field, value):
    motion_dict[field] = value
    path = tmp_path / "broken.json"
    path.write_text(json.dumps(motion_dict), encoding="utf-8")
    with pytest.raises(MotionInputError):
        load_motion(path)


def test_tracks_are_fitted_to_frame_times(tmp_path, motion_builder):
    data = motion_builder(frames=6)
    data["jointTracks"][0]["positions"] = data["jointTracks"][0]["positions"][:3]
    data["jointTracks"][1]["positions"].append([9.0, 9.0, 9.0])
    path = tmp_path / "short.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    motion = load_motion(path)

    hips = motion.joint_tracks["mixamorig:Hips"].positions
    assert hips.shape == (6, 3)
    assert np.isnan(hips[3:]).all()
    assert motion.joint_tracks["mixamorig:Spine"].positions.shape == (6, 3)
