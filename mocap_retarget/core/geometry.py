"""Vector and quaternion math shared by the solvers.

Quaternions are numpy arrays in ``[w, x, y, z]`` order. Every function
returns a new array and never mutates its inputs.
"""

from typing import Optional, Sequence
import numpy as np


EPSILON = 1e-8

# Dot products past these bounds count as parallel / antiparallel
PARALLEL_DOT = 1.0 - 1e-9
ANTIPARALLEL_DOT = -1.0 + 1e-9


# =============================================================================
# VECTORS
# =============================================================================

def vec3(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=np.float64).reshape(3)


def normalize(v: np.ndarray) -> np.ndarray:
    """Normalize vector, return zero vector if length is zero."""
    length = np.linalg.norm(v)
    if length < EPSILON or not np.isfinite(length):
        return np.zeros_like(v, dtype=np.float64)
    return v / length


def safe_direction(start: np.ndarray, end: np.ndarray) -> Optional[np.ndarray]:
    """Unit vector from start to end, or None when the points coincide."""
    d = np.asarray(end, dtype=np.float64) - np.asarray(start, dtype=np.float64)
    length = np.linalg.norm(d)
    if length < EPSILON or not np.isfinite(length):
        return None
    return d / length


def midpoint(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return (np.asarray(a, dtype=np.float64) + np.asarray(b, dtype=np.float64)) * 0.5


def any_orthogonal(v: np.ndarray) -> np.ndarray:
    """Some unit vector perpendicular to unit vector v."""
    ortho = np.array([1.0, 0.0, 0.0])
    if abs(v[0]) > 0.9:
        ortho = np.array([0.0, 1.0, 0.0])
    return normalize(np.cross(v, ortho))


# =============================================================================
# QUATERNIONS
# =============================================================================

def quat_identity() -> np.ndarray:
    return np.array([1.0, 0.0, 0.0, 0.0])


def quat_normalize(q: np.ndarray) -> np.ndarray:
    """Unit quaternion, identity if q is degenerate."""
    length = np.linalg.norm(q)
    if length < EPSILON or not np.isfinite(length):
        return quat_identity()
    return np.asarray(q, dtype=np.float64) / length


def quat_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """Hamilton product q1 * q2 (q2 applied first)."""
    w1, x1, y1, z1 = q1
    w2, x2, y2, z2 = q2
    return np.array([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2
    ], dtype=np.float64)


def quat_chain(quats: Sequence[np.ndarray]) -> np.ndarray:
    """Product of quaternions in order, root first."""
    result = quat_identity()
    for q in quats:
        result = quat_multiply(result, q)
    return result


def quat_conjugate(q: np.ndarray) -> np.ndarray:
    return np.array([q[0], -q[1], -q[2], -q[3]], dtype=np.float64)


def quat_rotate_vector(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Rotate vector v by unit quaternion q."""
    qv = np.array([0.0, v[0], v[1], v[2]])
    result = quat_multiply(quat_multiply(q, qv), quat_conjugate(q))
    return result[1:]


def quat_from_axis_angle(axis: np.ndarray, angle: float) -> np.ndarray:
    axis = normalize(np.asarray(axis, dtype=np.float64))
    if not axis.any():
        return quat_identity()
    half = angle / 2
    s = np.sin(half)
    return np.array([np.cos(half), axis[0] * s, axis[1] * s, axis[2] * s])


def quat_from_two_vectors(v_from: np.ndarray, v_to: np.ndarray) -> np.ndarray:
    """
    Shortest-arc rotation taking direction v_from onto direction v_to.

    Parallel inputs give identity. Antiparallel inputs give a half turn
    about an axis orthogonal to v_from. A zero-length input gives identity.
    """
    v_from = normalize(np.asarray(v_from, dtype=np.float64))
    v_to = normalize(np.asarray(v_to, dtype=np.float64))
    if not v_from.any() or not v_to.any():
        return quat_identity()

    dot = float(np.clip(np.dot(v_from, v_to), -1.0, 1.0))

    if dot >= PARALLEL_DOT:
        return quat_identity()

    if dot <= ANTIPARALLEL_DOT:
        axis = any_orthogonal(v_from)
        return np.array([0.0, axis[0], axis[1], axis[2]])

    axis = np.cross(v_from, v_to)
    s = np.sqrt((1.0 + dot) * 2.0)
    invs = 1.0 / s

    return quat_normalize(np.array([
        s * 0.5,
        axis[0] * invs,
        axis[1] * invs,
        axis[2] * invs
    ]))


def quat_slerp(q1: np.ndarray, q2: np.ndarray, t: float) -> np.ndarray:
    """Spherical linear interpolation between unit quaternions."""
    q1 = np.asarray(q1, dtype=np.float64)
    q2 = np.asarray(q2, dtype=np.float64)
    dot = float(np.dot(q1, q2))

    # Ensure shortest path
    if dot < 0:
        q2 = -q2
        dot = -dot

    if dot > 0.9995:
        # Linear interpolation for close quaternions
        return quat_normalize(q1 + t * (q2 - q1))

    theta_0 = np.arccos(min(dot, 1.0))
    theta = theta_0 * t

    q2_perp = quat_normalize(q2 - q1 * dot)

    return quat_normalize(q1 * np.cos(theta) + q2_perp * np.sin(theta))


def quat_angle(q1: np.ndarray, q2: np.ndarray) -> float:
    """Rotation angle in radians between two unit quaternions."""
    dot = abs(float(np.dot(q1, q2)))
    return 2.0 * float(np.arccos(min(dot, 1.0)))


def quat_to_euler(q: np.ndarray) -> np.ndarray:
    """Convert quaternion to [roll, pitch, yaw] about X, Y, Z in radians."""
    w, x, y, z = q

    sinr_cosp = 2 * (w * x + y * z)
    cosr_cosp = 1 - 2 * (x * x + y * y)
    roll = np.arctan2(sinr_cosp, cosr_cosp)

    sinp = 2 * (w * y - z * x)
    if abs(sinp) >= 1:
        pitch = np.copysign(np.pi / 2, sinp)
    else:
        pitch = np.arcsin(sinp)

    siny_cosp = 2 * (w * z + x * y)
    cosy_cosp = 1 - 2 * (y * y + z * z)
    yaw = np.arctan2(siny_cosp, cosy_cosp)

    return np.array([roll, pitch, yaw], dtype=np.float64)


def quat_from_yaw_pitch_roll(yaw: float, pitch: float, roll: float) -> np.ndarray:
    """Yaw about Y, then pitch about X, then roll about Z (q = qy * qx * qz)."""
    qy = quat_from_axis_angle(np.array([0.0, 1.0, 0.0]), yaw)
    qx = quat_from_axis_angle(np.array([1.0, 0.0, 0.0]), pitch)
    qz = quat_from_axis_angle(np.array([0.0, 0.0, 1.0]), roll)
    return quat_normalize(quat_multiply(quat_multiply(qy, qx), qz))


def quat_to_matrix(q: np.ndarray) -> np.ndarray:
    """3x3 rotation matrix of unit quaternion q."""
    w, x, y, z = q
    return np.array([
        [1 - 2*(y*y + z*z), 2*(x*y - w*z),     2*(x*z + w*y)],
        [2*(x*y + w*z),     1 - 2*(x*x + z*z), 2*(y*z - w*x)],
        [2*(x*z - w*y),     2*(y*z + w*x),     1 - 2*(x*x + y*y)],
    ], dtype=np.float64)


def rotation_matrix_to_quaternion(R: np.ndarray) -> np.ndarray:
    """Convert 3x3 rotation matrix to unit quaternion."""
    trace = R[0, 0] + R[1, 1] + R[2, 2]

    if trace > 0:
        s = 0.5 / np.sqrt(trace + 1.0)
        w = 0.25 / s
        x = (R[2, 1] - R[1, 2]) * s
        y = (R[0, 2] - R[2, 0]) * s
        z = (R[1, 0] - R[0, 1]) * s
    elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
        s = 2.0 * np.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2])
        w = (R[2, 1] - R[1, 2]) / s
        x = 0.25 * s
        y = (R[0, 1] + R[1, 0]) / s
        z = (R[0, 2] + R[2, 0]) / s
    elif R[1, 1] > R[2, 2]:
        s = 2.0 * np.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2])
        w = (R[0, 2] - R[2, 0]) / s
        x = (R[0, 1] + R[1, 0]) / s
        y = 0.25 * s
        z = (R[1, 2] + R[2, 1]) / s
    else:
        s = 2.0 * np.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1])
        w = (R[1, 0] - R[0, 1]) / s
        x = (R[0, 2] + R[2, 0]) / s
        y = (R[1, 2] + R[2, 1]) / s
        z = 0.25 * s

    q = quat_normalize(np.array([w, x, y, z]))
    return q if q[0] >= 0 else -q


def quat_from_frame(x_axis: np.ndarray, up: np.ndarray) -> Optional[np.ndarray]:
    """
    Orientation of the orthonormal frame spanned by x_axis and up.

    x is kept exactly, z = x cross up, and y is re-orthogonalised as
    z cross x. Returns None when x_axis is zero or parallel to up.
    """
    x = normalize(np.asarray(x_axis, dtype=np.float64))
    if not x.any():
        return None
    z = normalize(np.cross(x, np.asarray(up, dtype=np.float64)))
    if not z.any():
        return None
    y = np.cross(z, x)
    return rotation_matrix_to_quaternion(np.column_stack([x, y, z]))


def to_local(parent: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Express world direction v in the space of cumulative rotation parent."""
    return quat_to_matrix(parent).T @ np.asarray(v, dtype=np.float64)
