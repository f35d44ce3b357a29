"""Tests for the body/hand kinematic solver."""

import logging

import numpy as np
import pytest

from mocap_retarget.core.geometry import (
    quat_from_axis_angle,
    quat_rotate_vector,
)
from mocap_retarget.core.skeleton import (
    BODY_BONES,
    BONE_SOURCES,
    HEAD_TILT,
    REFERENCE_DIRECTIONS,
    BodyLandmark,
    BoneID,
)
from mocap_retarget.motion import BodyHandSolver, ReferencePose
from mocap_retarget.motion.calibration import build_neutral_body, build_neutral_hand
from mocap_retarget.pose.landmarks import LandmarkSet
from tests.conftest import assert_identity, assert_same_rotation


T_POSE = ReferencePose.default().replace({
    BoneID.LEFT_ARM: (1, 0, 0), BoneID.LEFT_ELBOW: (1, 0, 0), BoneID.LEFT_WRIST: (1, 0, 0),
    BoneID.RIGHT_ARM: (-1, 0, 0), BoneID.RIGHT_ELBOW: (-1, 0, 0), BoneID.RIGHT_WRIST: (-1, 0, 0),
})


@pytest.fixture
def solver(config):
    return BodyHandSolver(config)


@pytest.fixture
def t_pose_body():
    return build_neutral_body(T_POSE)


def body_set(landmarks):
    return LandmarkSet.from_landmarks(landmarks)


def test_no_input_gives_identity_for_every_bone(solver):
    bones = solver.solve()
    assert set(bones) == set(BODY_BONES)
    for q in bones.values():
        assert_identity(q)


def test_neutral_pose_is_identity(solver, neutral_body, neutral_left_hand, neutral_right_hand):
    bones = solver.solve(neutral_body, neutral_left_hand, neutral_right_hand)
    for q in bones.values():
        assert_identity(q)


def test_solve_is_deterministic(config, neutral_body, neutral_left_hand, rng):
    noisy = body_set(neutral_body).positions + rng.normal(scale=0.02, size=(33, 3))
    first = BodyHandSolver(config).solve(noisy, neutral_left_hand)
    second = BodyHandSolver(config).solve(noisy, neutral_left_hand)
    again = BodyHandSolver(config).solve(noisy, neutral_left_hand)
    for bone in first:
        np.testing.assert_array_equal(first[bone], second[bone])
        np.testing.assert_array_equal(first[bone], again[bone])


def test_random_input_gives_finite_unit_quaternions(solver, rng):
    for _ in range(10):
        body = rng.uniform(-1, 1, size=(33, 4))
        body[:, 3] = rng.uniform(0, 1, size=33)
        bones = solver.solve(body, rng.normal(size=(21, 3)), rng.normal(size=(21, 3)))
        for bone, q in bones.items():
            assert np.all(np.isfinite(q)), bone
            assert np.linalg.norm(q) == pytest.approx(1.0), bone


def test_t_pose_arm_maps_rest_onto_horizontal(solver, t_pose_body):
    bones = solver.solve(t_pose_body)
    rest = REFERENCE_DIRECTIONS[BoneID.LEFT_ARM]
    np.testing.assert_allclose(quat_rotate_vector(bones[BoneID.LEFT_ARM], rest), [1, 0, 0], atol=1e-9)
    rest = REFERENCE_DIRECTIONS[BoneID.RIGHT_ARM]
    np.testing.assert_allclose(quat_rotate_vector(bones[BoneID.RIGHT_ARM], rest), [-1, 0, 0], atol=1e-9)
    # A straight arm leaves the forearm and hand at rest relative to the upper arm
    assert_identity(bones[BoneID.LEFT_ELBOW])
    assert_identity(bones[BoneID.LEFT_WRIST])
    assert_identity(bones[BoneID.UPPER_BODY])


def test_moving_wrist_only_changes_descendants(solver, t_pose_body):
    before = solver.solve(t_pose_body)
    wrist = BodyLandmark.LEFT_WRIST
    moved = body_set(t_pose_body)
    moved = moved.with_point(wrist, moved.point(wrist) + np.array([0.0, 0.1, -0.05]))
    after = solver.solve(moved)

    for bone in (BoneID.UPPER_BODY, BoneID.LOWER_BODY, BoneID.LEFT_ARM, BoneID.RIGHT_ARM, BoneID.NECK):
        np.testing.assert_allclose(after[bone], before[bone], atol=1e-12)
    assert abs(np.dot(after[BoneID.LEFT_ELBOW], before[BoneID.LEFT_ELBOW])) < 1 - 1e-6
    assert abs(np.dot(after[BoneID.LEFT_WRIST], before[BoneID.LEFT_WRIST])) < 1 - 1e-6


def test_missing_landmark_affects_only_its_bones(solver, t_pose_body):
    before = solver.solve(t_pose_body)
    after = solver.solve(body_set(t_pose_body).without_point(BodyLandmark.LEFT_ELBOW))

    assert_identity(after[BoneID.LEFT_ARM])
    assert_identity(after[BoneID.LEFT_ELBOW])
    np.testing.assert_allclose(after[BoneID.RIGHT_ARM], before[BoneID.RIGHT_ARM], atol=1e-12)
    np.testing.assert_allclose(after[BoneID.RIGHT_ELBOW], before[BoneID.RIGHT_ELBOW], atol=1e-12)


def test_low_visibility_landmark_is_ignored(solver, t_pose_body):
    hidden = body_set(t_pose_body)
    visibility = hidden.visibility.copy()
    visibility[BodyLandmark.LEFT_ELBOW] = 0.05
    hidden = LandmarkSet(hidden.positions, visibility)

    bones = solver.solve(hidden)
    assert_identity(bones[BoneID.LEFT_ARM])
    assert not np.allclose(bones[BoneID.RIGHT_ARM], [1, 0, 0, 0])

    lenient = BodyHandSolver(min_visibility=0.0).solve(hidden)
    assert_same_rotation(lenient[BoneID.LEFT_ARM], solver.solve(t_pose_body)[BoneID.LEFT_ARM])


def test_coincident_landmarks_give_identity(solver, neutral_body):
    body = body_set(neutral_body)
    shoulder = body.point(BodyLandmark.LEFT_SHOULDER)
    bones = solver.solve(body.with_point(BodyLandmark.LEFT_ELBOW, shoulder))
    assert_identity(bones[BoneID.LEFT_ARM])
    for q in bones.values():
        assert np.all(np.isfinite(q))


def test_antiparallel_leg_is_half_turn(solver, neutral_body):
    body = body_set(neutral_body)
    hip = body.point(BodyLandmark.LEFT_HIP)
    # Detector y points down, so a smaller y puts the knee above the hip
    bones = solver.solve(body.with_point(BodyLandmark.LEFT_KNEE, hip + np.array([0.0, -0.42, 0.0])))

    q = bones[BoneID.LEFT_LEG]
    assert np.linalg.norm(q) == pytest.approx(1.0)
    assert q[0] == pytest.approx(0.0, abs=1e-9)
    np.testing.assert_allclose(quat_rotate_vector(q, np.array([0, -1.0, 0])), [0, 1, 0], atol=1e-9)


def test_head_turn(solver):
    turn = quat_from_axis_angle(np.array([0, 1.0, 0]), np.radians(30))
    default = ReferencePose.default()
    turned = default.replace({
        BoneID.HEAD: quat_rotate_vector(turn, default.direction(BoneID.HEAD)),
        HEAD_TILT: quat_rotate_vector(turn, default.direction(HEAD_TILT)),
    })
    bones = solver.solve(build_neutral_body(turned))

    assert_identity(bones[BoneID.NECK])
    assert_same_rotation(bones[BoneID.HEAD], turn)


def test_missing_ear_gives_identity_head(solver, neutral_body):
    bones = solver.solve(body_set(neutral_body).without_point(BodyLandmark.LEFT_EAR))
    assert_identity(bones[BoneID.HEAD])


def test_wrist_twist_keeps_roll_only(solver):
    angle = 0.4
    rolled = ReferencePose.default().replace({
        BoneID.LEFT_WRIST_TWIST: (0.0, np.sin(angle), -np.cos(angle)),
    })
    bones = solver.solve(left_hand=build_neutral_hand("left", rolled))

    twist = bones[BoneID.LEFT_WRIST_TWIST]
    assert_same_rotation(twist, quat_from_axis_angle(np.array([1.0, 0, 0]), angle))
    assert_identity(bones[BoneID.RIGHT_WRIST_TWIST])


def test_wrong_size_set_is_ignored(solver, neutral_body, neutral_left_hand):
    bones = solver.solve(neutral_body[:32], neutral_left_hand[:20])
    for q in bones.values():
        assert_identity(q)


def test_hand_only_input(solver, neutral_left_hand):
    bones = solver.solve(left_hand=neutral_left_hand)
    for bone, source in BONE_SOURCES.items():
        if source["source"] == "body":
            assert_identity(bones[bone])


def test_accepts_dicts_and_arrays(solver, neutral_body):
    as_dicts = [lm.to_dict() for lm in neutral_body]
    as_array = np.array([[lm.x, lm.y, lm.z, lm.visibility] for lm in neutral_body])
    for body in (as_dicts, as_array):
        for q in solver.solve(body).values():
            assert_identity(q)


def test_malformed_input_is_ignored(solver):
    bones = solver.solve(body=["not a landmark"] * 33)
    for q in bones.values():
        assert_identity(q)


def test_null_coordinate_is_ignored(solver, neutral_body):
    body = [lm.to_dict() for lm in neutral_body]
    body[BodyLandmark.LEFT_KNEE]["x"] = None
    bones = solver.solve(body)
    assert set(bones) == set(BODY_BONES)
    for q in bones.values():
        assert_identity(q)


@pytest.mark.parametrize("columns", [3, 4])
def test_batched_array_is_ignored(solver, neutral_body, columns):
    rows = np.array([[lm.x, lm.y, lm.z, lm.visibility] for lm in neutral_body])[:, :columns]
    for q in solver.solve(rows[np.newaxis]).values():
        assert_identity(q)


def test_size_diagnostic_is_logged_once(solver, neutral_body, caplog):
    with caplog.at_level(logging.DEBUG, logger="retarget"):
        for size in (30, 31, 32):
            solver.solve(neutral_body[:size])
    messages = [r.getMessage() for r in caplog.records if "Ignoring body" in r.getMessage()]
    assert messages == ["Ignoring body landmarks: got 30, expected 33"]
