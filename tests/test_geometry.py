"""Tests for vector and quaternion helpers."""

import numpy as np
import pytest

from mocap_retarget.core.geometry import (
    any_orthogonal,
    normalize,
    quat_angle,
    quat_from_axis_angle,
    quat_from_frame,
    quat_from_two_vectors,
    quat_from_yaw_pitch_roll,
    quat_identity,
    quat_multiply,
    quat_rotate_vector,
    quat_slerp,
    quat_to_euler,
    quat_to_matrix,
    rotation_matrix_to_quaternion,
    safe_direction,
    to_local,
)
from tests.conftest import assert_identity, assert_same_rotation


@pytest.mark.parametrize("v_from, v_to", [
    ((1, 0, 0), (0, 1, 0)),
    ((0, -1, 0), (0.3, -0.8, 0.2)),
    ((1, -1, 0), (-0.2, 0.1, -1)),
    ((0, 0, -1), (0, 0.6, -0.8)),
])
def test_shortest_arc_maps_from_onto_to(v_from, v_to):
    q = quat_from_two_vectors(np.array(v_from, float), np.array(v_to, float))
    assert np.linalg.norm(q) == pytest.approx(1.0)
    rotated = quat_rotate_vector(q, np.array(v_from, float) / np.linalg.norm(v_from))
    np.testing.assert_allclose(rotated, np.array(v_to) / np.linalg.norm(v_to), atol=1e-9)


@pytest.mark.parametrize("v", [(1, 0, 0), (0, 1, 0), (0, 0, -1), (0.3, -0.4, 0.866)])
def test_antiparallel_is_half_turn(v):
    v = np.array(v, float) / np.linalg.norm(v)
    q = quat_from_two_vectors(v, -v)
    assert np.all(np.isfinite(q))
    assert np.linalg.norm(q) == pytest.approx(1.0)
    assert q[0] == pytest.approx(0.0, abs=1e-12)
    np.testing.assert_allclose(quat_rotate_vector(q, v), -v, atol=1e-9)


@pytest.mark.parametrize("eps", [1e-4, 1e-6, 1e-8, 1e-10])
@pytest.mark.parametrize("v", [(1, 0, 0), (0, -1, 0), (0.3, -0.4, 0.866)])
def test_nearly_antiparallel_stays_finite(v, eps):
    a = normalize(np.array(v, float))
    b = normalize(-a + eps * any_orthogonal(a))
    q = quat_from_two_vectors(a, b)
    assert np.all(np.isfinite(q))
    assert np.linalg.norm(q) == pytest.approx(1.0)
    assert np.linalg.norm(quat_rotate_vector(q, a) - b) <= max(eps, 1e-4)


def test_parallel_and_zero_inputs_give_identity():
    assert_identity(quat_from_two_vectors(np.array([0, 2.0, 0]), np.array([0, 5.0, 0])))
    assert_identity(quat_from_two_vectors(np.zeros(3), np.array([1.0, 0, 0])))
    assert_identity(quat_from_two_vectors(np.array([1.0, 0, 0]), np.zeros(3)))


def test_safe_direction():
    np.testing.assert_allclose(safe_direction(np.zeros(3), np.array([0, 3.0, 0])), [0, 1, 0])
    assert safe_direction(np.ones(3), np.ones(3)) is None
    assert safe_direction(np.zeros(3), np.array([np.nan, 0, 0])) is None


def test_frame_of_world_axes_is_identity():
    assert_identity(quat_from_frame(np.array([2.0, 0, 0]), np.array([0, 1.0, 0])))


def test_frame_rejects_degenerate_axes():
    assert quat_from_frame(np.zeros(3), np.array([0, 1.0, 0])) is None
    assert quat_from_frame(np.array([0, 1.0, 0]), np.array([0, 3.0, 0])) is None


def test_frame_keeps_x_axis():
    x = np.array([0.8, 0.0, -0.6])
    q = quat_from_frame(x, np.array([0.1, 1.0, 0.0]))
    np.testing.assert_allclose(quat_rotate_vector(q, np.array([1.0, 0, 0])), x, atol=1e-9)


def test_matrix_round_trip(rng):
    for _ in range(20):
        q = rng.normal(size=4)
        q /= np.linalg.norm(q)
        assert_same_rotation(rotation_matrix_to_quaternion(quat_to_matrix(q)), q, atol=1e-9)


def test_to_local_undoes_parent_rotation():
    parent = quat_from_axis_angle(np.array([0.2, 1.0, -0.3]), 0.9)
    v = np.array([0.3, -0.5, 0.8])
    np.testing.assert_allclose(to_local(parent, quat_rotate_vector(parent, v)), v, atol=1e-12)


def test_slerp_endpoints_and_midpoint():
    q = quat_from_axis_angle(np.array([0, 0, 1.0]), 1.2)
    assert_same_rotation(quat_slerp(quat_identity(), q, 0.0), quat_identity())
    assert_same_rotation(quat_slerp(quat_identity(), q, 1.0), q)
    assert quat_angle(quat_identity(), quat_slerp(quat_identity(), q, 0.5)) == pytest.approx(0.6)


def test_slerp_takes_shortest_path():
    q = quat_from_axis_angle(np.array([1.0, 0, 0]), 0.4)
    halfway = quat_slerp(quat_identity(), -q, 0.5)
    assert quat_angle(quat_identity(), halfway) == pytest.approx(0.2)


def test_euler_roll_of_x_rotation():
    roll, pitch, yaw = quat_to_euler(quat_from_axis_angle(np.array([1.0, 0, 0]), 0.5))
    assert roll == pytest.approx(0.5)
    assert pitch == pytest.approx(0.0)
    assert yaw == pytest.approx(0.0)


def test_yaw_pitch_roll_order():
    yaw, pitch = 0.3, -0.2
    q = quat_from_yaw_pitch_roll(yaw, pitch, 0.0)
    expected = quat_multiply(
        quat_from_axis_angle(np.array([0, 1.0, 0]), yaw),
        quat_from_axis_angle(np.array([1.0, 0, 0]), pitch),
    )
    assert_same_rotation(q, expected)
