"""Tests for the bone taxonomy and chain tables."""

import numpy as np
import pytest

from mocap_retarget.core.skeleton import (
    BODY_BONES,
    BONE_SOURCES,
    EVALUATION_ORDER,
    FACE_MIN_LANDMARK_COUNT,
    HEAD_TILT,
    KINEMATIC_CHAIN,
    MMD_BONE_NAMES,
    MMD_NAME_TO_BONE,
    REFERENCE_DIRECTIONS,
    BoneID,
    finger_bones,
    evaluation_order,
    parent_of,
)


def test_body_bone_count():
    assert len(BODY_BONES) == 48
    assert BoneID.LEFT_EYE not in KINEMATIC_CHAIN


def test_evaluation_order_places_ancestors_first():
    position = {bone: i for i, bone in enumerate(EVALUATION_ORDER)}
    assert set(position) == set(KINEMATIC_CHAIN)
    for bone, ancestors in KINEMATIC_CHAIN.items():
        for ancestor in ancestors:
            assert position[ancestor] < position[bone]


def test_finger_chain():
    assert KINEMATIC_CHAIN[BoneID.LEFT_INDEX_3] == (
        BoneID.UPPER_BODY, BoneID.LEFT_ARM, BoneID.LEFT_ELBOW, BoneID.LEFT_WRIST_TWIST,
        BoneID.LEFT_WRIST, BoneID.LEFT_INDEX_1, BoneID.LEFT_INDEX_2,
    )
    assert parent_of(BoneID.RIGHT_THUMB_0) == BoneID.RIGHT_WRIST
    assert parent_of(BoneID.LOWER_BODY) is None


def test_finger_joint_numbering():
    assert [b.value for b in finger_bones("left", "thumb")] == [
        "left_thumb_0", "left_thumb_1", "left_thumb_2",
    ]
    assert finger_bones("right", "pinky")[0] == BoneID.RIGHT_PINKY_1


def test_mmd_names():
    assert MMD_BONE_NAMES[BoneID.UPPER_BODY] == "上半身"
    assert MMD_BONE_NAMES[BoneID.LEFT_THUMB_0] == "左親指０"
    assert MMD_BONE_NAMES[BoneID.RIGHT_INDEX_1] == "右人指１"
    assert MMD_BONE_NAMES[BoneID.LEFT_WRIST_TWIST] == "左手捩"
    assert MMD_BONE_NAMES[BoneID.RIGHT_EYE] == "右目"
    assert len(set(MMD_BONE_NAMES.values())) == len(MMD_BONE_NAMES) == len(BoneID)
    assert MMD_NAME_TO_BONE["首"] == BoneID.NECK


def test_every_bone_has_a_source():
    assert set(BONE_SOURCES) == set(KINEMATIC_CHAIN)


def test_reference_directions_are_unit_and_read_only():
    for key, v in REFERENCE_DIRECTIONS.items():
        assert np.linalg.norm(v) == pytest.approx(1.0), key
    with pytest.raises(ValueError):
        REFERENCE_DIRECTIONS[HEAD_TILT][0] = 1.0


def test_direction_bones_have_reference():
    for bone, source in BONE_SOURCES.items():
        if source["method"] in ("direction", "twist", "head"):
            assert bone in REFERENCE_DIRECTIONS


def test_evaluation_order_rejects_cycles():
    chain = {
        BoneID.NECK: (BoneID.HEAD,),
        BoneID.HEAD: (BoneID.NECK,),
    }
    with pytest.raises(ValueError, match="Cycle"):
        evaluation_order(chain)


def test_evaluation_order_rejects_unknown_ancestor():
    with pytest.raises(ValueError, match="unknown ancestor"):
        evaluation_order({BoneID.NECK: (BoneID.UPPER_BODY,)})


def test_face_landmark_minimum():
    assert FACE_MIN_LANDMARK_COUNT == 474
