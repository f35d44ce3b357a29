"""Tests for caller-side bone blending."""

import numpy as np
import pytest

from mocap_retarget.core.geometry import quat_angle, quat_from_axis_angle, quat_identity
from mocap_retarget.core.skeleton import BoneID
from mocap_retarget.motion import BoneBlender
from tests.conftest import assert_identity, assert_same_rotation


TARGET = quat_from_axis_angle(np.array([0, 0, 1.0]), 1.0)


def test_first_apply_starts_from_rest(config):
    blender = BoneBlender(config)
    pose = blender.apply({BoneID.NECK: TARGET})
    assert quat_angle(quat_identity(), pose[BoneID.NECK]) == pytest.approx(0.7)


def test_snap_and_hold(config):
    blender = BoneBlender(config)
    assert_same_rotation(blender.apply({BoneID.NECK: TARGET}, t=1.0)[BoneID.NECK], TARGET)

    held = blender.apply({BoneID.NECK: quat_identity()}, t=0.0)
    assert_same_rotation(held[BoneID.NECK], TARGET)


def test_repeated_apply_converges(config):
    blender = BoneBlender(config, factor=0.5)
    for _ in range(40):
        pose = blender.apply({BoneID.LEFT_ARM: TARGET})
    assert quat_angle(pose[BoneID.LEFT_ARM], TARGET) < 1e-6


def test_untouched_bones_keep_last_rotation(config):
    blender = BoneBlender(config, factor=1.0)
    blender.apply({BoneID.NECK: TARGET})
    pose = blender.apply({BoneID.HEAD: TARGET})
    assert_same_rotation(pose[BoneID.NECK], TARGET)
    assert set(pose) == {BoneID.NECK, BoneID.HEAD}


def test_pose_is_a_copy(config):
    blender = BoneBlender(config, factor=1.0)
    pose = blender.apply({BoneID.NECK: TARGET})
    pose[BoneID.NECK][:] = 0.0
    assert_same_rotation(blender.pose[BoneID.NECK], TARGET)


def test_invalid_factor(config):
    with pytest.raises(ValueError):
        BoneBlender(config, factor=1.5)
    with pytest.raises(ValueError):
        BoneBlender(config).apply({BoneID.NECK: TARGET}, t=-0.1)


def test_reset(config):
    blender = BoneBlender(config, factor=1.0)
    blender.apply({BoneID.NECK: TARGET})
    blender.reset()
    assert blender.pose == {}
    pose = blender.apply({BoneID.NECK: quat_identity()})
    assert_identity(pose[BoneID.NECK])
