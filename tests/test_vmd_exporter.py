"""Tests for motion recording and VMD serialization."""

import numpy as np
import pytest

from mocap_retarget.core.geometry import quat_from_axis_angle, quat_identity
from mocap_retarget.export import MotionClip, MotionFrame, MotionRecorder, VMDExporter, read_vmd
from mocap_retarget.export.vmd_exporter import (
    BONE_FRAME,
    MORPH_FRAME,
    VMD_HEADER,
    decode_name,
    encode_name,
)


TURN = quat_from_axis_angle(np.array([0, 1.0, 0]), 0.5)


def make_clip():
    return MotionClip(name="test", frames=[
        MotionFrame(bones={"上半身": quat_identity(), "首": TURN}, morphs={"あ": 0.5, "まばたき": 0.0}),
        MotionFrame(bones={"上半身": TURN, "首": quat_identity()}, morphs=None),
    ])


def test_struct_sizes():
    assert BONE_FRAME.size == 111
    assert MORPH_FRAME.size == 23


def test_name_padding():
    assert encode_name("首", 15) == "首".encode("shift_jis") + b"\x00" * 13
    assert len(encode_name("左人指１" * 4, 15)) == 15
    assert decode_name(encode_name("左手捩", 15)) == "左手捩"


def test_layout(config):
    data = VMDExporter(config).to_bytes(make_clip())
    assert data.startswith(VMD_HEADER)
    assert data[25:30] == b"\x00" * 5
    expected = 30 + 20 + 4 + 4 * BONE_FRAME.size + 4 + 4 * MORPH_FRAME.size + 3 * 4
    assert len(data) == expected
    assert data[-12:] == b"\x00" * 12


def test_decoded_keys(config):
    motion = read_vmd(VMDExporter(config).to_bytes(make_clip()))
    assert motion.model_name == ""

    assert [(k["name"], k["frame"]) for k in motion.bone_keys] == [
        ("上半身", 0), ("首", 0), ("上半身", 2), ("首", 2),
    ]
    neck = motion.bone_keys[1]
    assert neck["position"] == (0.0, 0.0, 0.0)
    np.testing.assert_allclose(neck["rotation"], TURN, atol=1e-6)

    # Frames without morphs write zero weights under the same names
    assert [(k["name"], k["frame"], k["weight"]) for k in motion.morph_keys] == [
        ("あ", 0, 0.5), ("まばたき", 0, 0.0), ("あ", 2, 0.0), ("まばたき", 2, 0.0),
    ]


def test_rotation_is_stored_xyzw(config):
    data = VMDExporter(config).to_bytes(make_clip())
    first_bone = 30 + 20 + 4
    fields = BONE_FRAME.unpack_from(data, first_bone + BONE_FRAME.size)
    x, y, z, w = fields[5:9]
    np.testing.assert_allclose([w, x, y, z], TURN, atol=1e-6)


def test_frame_multiplier_and_model_name(config):
    config.set("export.frame_multiplier", 3)
    config.set("export.model_name", "初音ミク")
    motion = read_vmd(VMDExporter(config).to_bytes(make_clip()))
    assert motion.model_name == "初音ミク"
    assert {k["frame"] for k in motion.bone_keys} == {0, 3}


def test_invalid_frame_multiplier(config):
    config.set("export.frame_multiplier", 0)
    with pytest.raises(ValueError):
        VMDExporter(config)


def test_empty_clip_rejected(config):
    with pytest.raises(ValueError):
        VMDExporter(config).to_bytes(MotionClip(name="empty"))


def test_export_writes_file(config, tmp_path):
    path = VMDExporter(config).export(make_clip())
    assert path == tmp_path / "out" / "test.vmd"
    assert len(read_vmd(path).bone_keys) == 4


def test_read_rejects_bad_data(config):
    with pytest.raises(ValueError):
        read_vmd(b"Not a motion file at all")
    data = VMDExporter(config).to_bytes(make_clip())
    with pytest.raises(ValueError):
        read_vmd(data[:100])


def test_recorder_samples_at_fixed_rate(config):
    recorder = MotionRecorder(config, fps=32)
    recorder.start()
    kept = [recorder.offer(i / 64.0, {"首": TURN}) for i in range(64)]
    clip = recorder.stop("sampled")
    assert sum(kept) == 32
    assert kept[:4] == [True, False, True, False]
    assert clip.frame_count == 32
    assert clip.duration == pytest.approx(1.0)


def test_recorder_skips_empty_and_idle(config):
    recorder = MotionRecorder(config)
    assert not recorder.offer(0.0, {"首": TURN})
    recorder.start()
    assert not recorder.offer(0.0, {})
    assert recorder.offer(0.1, {"首": TURN}, {"あ": 1.0})
    assert recorder.frame_count == 1
    clip = recorder.stop()
    assert not recorder.is_recording
    assert clip.frames[0].morphs == {"あ": 1.0}


def test_recorder_rejects_bad_fps(config):
    with pytest.raises(ValueError):
        MotionRecorder(config, fps=0)
