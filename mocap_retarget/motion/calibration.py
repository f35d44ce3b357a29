"""Reference pose calibration and synthetic neutral poses.

The shipped rest directions were measured once from a neutral capture.
:func:`calibrate` repeats that measurement for any captured neutral pose
and returns a new :class:`ReferencePose`. The ``build_neutral_*``
functions produce detector-space landmarks whose every bone sits exactly
on its rest direction, so a solver fed them returns identity rotations
and zero morphs.
"""

from typing import Any, Dict, List, Optional
import numpy as np

from mocap_retarget.core import get_logger, Config
from mocap_retarget.core.geometry import midpoint, to_local
from mocap_retarget.core.skeleton import (
    BONE_SOURCES,
    EVALUATION_ORDER,
    FINGERS,
    HEAD_TILT,
    KINEMATIC_CHAIN,
    BodyLandmark,
    BoneID,
    FaceLandmark,
    HandLandmark,
    finger_bones,
    finger_landmarks,
)
from mocap_retarget.pose.landmarks import Landmark
from .body_solver import BodyHandSolver, head_axes, segment_direction
from .reference_pose import ReferencePose


FACE_MESH_SIZE = 478

logger = get_logger("motion.calibration")


def _to_detector(points: Dict[int, np.ndarray], count: int,
                 visibility: Optional[float] = None) -> List[Landmark]:
    """Solver-space points (y up) to detector landmarks (y down)."""
    out = []
    for i in range(count):
        x, y, z = points[i]
        out.append(Landmark(float(x), float(-y), float(z), visibility))
    return out


def _rest(key: object, reference: ReferencePose) -> np.ndarray:
    return np.asarray(reference.direction(key))


# =============================================================================
# NEUTRAL POSES
# =============================================================================

def build_neutral_body(reference: Optional[ReferencePose] = None) -> List[Landmark]:
    """33 world landmarks (metres, hip-centred) standing in the rest pose."""
    ref = reference or ReferencePose.default()
    B = BodyLandmark
    p: Dict[int, np.ndarray] = {}

    p[B.LEFT_HIP] = np.array([0.10, 0.0, 0.0])
    p[B.RIGHT_HIP] = np.array([-0.10, 0.0, 0.0])
    p[B.LEFT_SHOULDER] = np.array([0.18, 0.50, 0.0])
    p[B.RIGHT_SHOULDER] = np.array([-0.18, 0.50, 0.0])

    # Head: the neck, ear axis and eye line follow their rest directions
    shoulder_center = midpoint(p[B.LEFT_SHOULDER], p[B.RIGHT_SHOULDER])
    ear_center = shoulder_center + 0.15 * _rest(BoneID.NECK, ref)
    ear_half = 0.07 * _rest(BoneID.HEAD, ref)
    p[B.LEFT_EAR] = ear_center + ear_half
    p[B.RIGHT_EAR] = ear_center - ear_half
    eye_center = ear_center + 0.08 * _rest(HEAD_TILT, ref)
    eye_half = 0.03 * _rest(BoneID.HEAD, ref)
    p[B.LEFT_EYE] = eye_center + eye_half
    p[B.RIGHT_EYE] = eye_center - eye_half
    p[B.LEFT_EYE_INNER] = eye_center + 0.5 * eye_half
    p[B.RIGHT_EYE_INNER] = eye_center - 0.5 * eye_half
    p[B.LEFT_EYE_OUTER] = eye_center + 1.5 * eye_half
    p[B.RIGHT_EYE_OUTER] = eye_center - 1.5 * eye_half
    p[B.NOSE] = eye_center + np.array([0.0, -0.03, -0.02])
    p[B.MOUTH_LEFT] = eye_center + np.array([0.025, -0.07, 0.0])
    p[B.MOUTH_RIGHT] = eye_center + np.array([-0.025, -0.07, 0.0])

    for side in ("left", "right"):
        S = side.upper()
        arm = _rest(BoneID(f"{side}_arm"), ref)
        forearm = _rest(BoneID(f"{side}_elbow"), ref)
        hand = _rest(BoneID(f"{side}_wrist"), ref)
        p[B[f"{S}_ELBOW"]] = p[B[f"{S}_SHOULDER"]] + 0.28 * arm
        p[B[f"{S}_WRIST"]] = p[B[f"{S}_ELBOW"]] + 0.25 * forearm
        p[B[f"{S}_INDEX"]] = p[B[f"{S}_WRIST"]] + 0.08 * hand
        p[B[f"{S}_PINKY"]] = p[B[f"{S}_WRIST"]] + 0.07 * hand + np.array([0.0, 0.0, 0.02])
        p[B[f"{S}_THUMB"]] = p[B[f"{S}_WRIST"]] + 0.05 * hand + np.array([0.0, 0.0, -0.03])

        p[B[f"{S}_KNEE"]] = p[B[f"{S}_HIP"]] + 0.42 * _rest(BoneID(f"{side}_leg"), ref)
        p[B[f"{S}_ANKLE"]] = p[B[f"{S}_KNEE"]] + 0.40 * _rest(BoneID(f"{side}_knee"), ref)
        p[B[f"{S}_HEEL"]] = p[B[f"{S}_ANKLE"]] + np.array([0.0, -0.06, 0.04])
        p[B[f"{S}_FOOT_INDEX"]] = p[B[f"{S}_HEEL"]] + 0.20 * _rest(BoneID(f"{side}_ankle"), ref)

    return _to_detector(p, len(BodyLandmark), visibility=0.99)


def build_neutral_hand(side: str, reference: Optional[ReferencePose] = None,
                       wrist: Optional[np.ndarray] = None) -> List[Landmark]:
    """21 hand landmarks for one side in the rest pose."""
    if side not in ("left", "right"):
        raise ValueError(f"side must be 'left' or 'right', got {side!r}")
    ref = reference or ReferencePose.default()
    H = HandLandmark
    base = np.zeros(3) if wrist is None else np.asarray(wrist, dtype=np.float64)
    along = _rest(BoneID(f"{side}_wrist"), ref)

    # Knuckle line index->ring follows the twist rest direction
    across = _rest(BoneID(f"{side}_wrist_twist"), ref)
    knuckles = {
        "index": base + 0.09 * along + 0.015 * across,
        "middle": base + 0.09 * along,
        "ring": base + 0.09 * along - 0.015 * across,
        "pinky": base + 0.08 * along - 0.03 * across,
        "thumb": base + 0.02 * along + 0.03 * across,
    }
    lengths = {"thumb": (0.04, 0.03, 0.025)}

    p: Dict[int, np.ndarray] = {H.WRIST: base}
    for finger in FINGERS:
        points = finger_landmarks(finger)
        bones = finger_bones(side, finger)
        segment_lengths = lengths.get(finger, (0.04, 0.025, 0.02))
        current = knuckles[finger]
        p[points[0]] = current
        for bone, length, point in zip(bones, segment_lengths, points[1:]):
            current = current + length * _rest(bone, ref)
            p[point] = current

    return _to_detector(p, len(HandLandmark))


def build_neutral_face() -> List[Landmark]:
    """Refined face mesh with open eyes, centred irises and a closed, relaxed mouth."""
    F = FaceLandmark
    center = np.array([0.5, 0.5, 0.0])
    points = {i: center for i in range(FACE_MESH_SIZE)}
    placed = {
        F.LEFT_EYE_LEFT: (0.40, 0.40), F.LEFT_EYE_RIGHT: (0.46, 0.40),
        F.LEFT_EYE_UPPER: (0.43, 0.39), F.LEFT_EYE_LOWER: (0.43, 0.41),
        F.LEFT_EYE_IRIS: (0.43, 0.40),
        F.RIGHT_EYE_LEFT: (0.54, 0.40), F.RIGHT_EYE_RIGHT: (0.60, 0.40),
        F.RIGHT_EYE_UPPER: (0.57, 0.39), F.RIGHT_EYE_LOWER: (0.57, 0.41),
        F.RIGHT_EYE_IRIS: (0.57, 0.40),
        F.MOUTH_LEFT: (0.45, 0.60), F.MOUTH_RIGHT: (0.55, 0.60),
        F.UPPER_LIP_TOP: (0.50, 0.595), F.LOWER_LIP_BOTTOM: (0.50, 0.605),
        F.LEFT_EAR: (0.35, 0.45), F.RIGHT_EAR: (0.65, 0.45),
    }
    for index, (x, y) in placed.items():
        points[int(index)] = np.array([x, y, 0.0])
    # Face landmarks are image coordinates already (y down)
    return [Landmark(float(v[0]), float(v[1]), float(v[2])) for _, v in sorted(points.items())]


# =============================================================================
# CALIBRATION
# =============================================================================

def calibrate(
    body: Any,
    left_hand: Any = None,
    right_hand: Any = None,
    base: Optional[ReferencePose] = None,
    config: Optional[Config] = None
) -> ReferencePose:
    """
    Measure rest directions from a captured neutral pose.

    Every direction-solved bone is assumed to be at rest, so its parent
    space is just its chain root (the solved upper or lower body frame).
    The observed segment direction in that space becomes the new rest
    direction. Bones that cannot be measured keep the base direction.

    Args:
        body: 33 pose landmarks of the neutral capture
        left_hand: optional 21 left-hand landmarks
        right_hand: optional 21 right-hand landmarks
        base: directions to start from (default: shipped constants)
        config: configuration for the measuring solver

    Returns:
        New ReferencePose
    """
    base = base or ReferencePose.default()
    solver = BodyHandSolver(config, reference_pose=base)
    sets = solver.prepare(body, left_hand, right_hand)
    roots = solver.solve_prepared(sets)

    updates: Dict[object, np.ndarray] = {}
    for bone in EVALUATION_ORDER:
        method = BONE_SOURCES[bone]["method"]
        if method == "frame":
            continue
        ancestors = KINEMATIC_CHAIN[bone]
        parent = roots[ancestors[0]]

        if method == "head":
            axes = head_axes(sets, solver.min_visibility)
            if axes is None:
                continue
            ear_axis, facing = axes
            updates[BoneID.HEAD] = to_local(parent, ear_axis)
            updates[HEAD_TILT] = to_local(parent, facing)
            continue

        direction = segment_direction(bone, sets, solver.min_visibility)
        if direction is not None:
            updates[bone] = to_local(parent, direction)

    calibrated = base.replace(updates)
    logger.info(
        f"Calibrated {len(updates)} rest directions "
        f"(max change {np.degrees(calibrated.max_deviation(base)):.1f} deg)"
    )
    return calibrated

