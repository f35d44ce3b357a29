"""Shared fixtures: isolated config and synthetic neutral landmarks."""

import numpy as np
import pytest
import yaml

from mocap_retarget.core import Config
from mocap_retarget.motion.calibration import (
    build_neutral_body,
    build_neutral_face,
    build_neutral_hand,
)


@pytest.fixture(autouse=True)
def fresh_config():
    """Config is a process-wide singleton; give every test its own."""
    Config._instance = None
    yield
    Config._instance = None


@pytest.fixture
def config(tmp_path):
    """Built-in defaults with output redirected to a temp directory."""
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"export": {"output_dir": str(tmp_path / "out")}}))
    return Config(str(path))


@pytest.fixture
def neutral_body():
    return build_neutral_body()


@pytest.fixture
def neutral_left_hand():
    return build_neutral_hand("left")


@pytest.fixture
def neutral_right_hand():
    return build_neutral_hand("right")


@pytest.fixture
def neutral_face():
    return build_neutral_face()


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


def assert_identity(q, atol=1e-6):
    """Identity up to the quaternion double cover."""
    q = np.asarray(q)
    assert abs(abs(q[0]) - 1.0) < atol, f"not identity: {q}"
    np.testing.assert_allclose(q[1:], 0.0, atol=atol)


def assert_same_rotation(q1, q2, atol=1e-6):
    q1, q2 = np.asarray(q1), np.asarray(q2)
    assert abs(abs(float(np.dot(q1, q2))) - 1.0) < atol, f"{q1} != {q2}"
