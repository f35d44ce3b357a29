"""Body/Hand Solver - Convert holistic landmarks to MMD bone rotations"""

from typing import Any, Dict, Optional, Tuple
import numpy as np

from mocap_retarget.core import get_logger, Config
from mocap_retarget.core.logging import OnceLogger
from mocap_retarget.core.geometry import (
    midpoint,
    quat_chain,
    quat_from_axis_angle,
    quat_from_frame,
    quat_from_two_vectors,
    quat_identity,
    quat_multiply,
    quat_to_euler,
    safe_direction,
    to_local,
)
from mocap_retarget.core.skeleton import (
    BODY_LANDMARK_COUNT,
    BONE_SOURCES,
    EVALUATION_ORDER,
    HAND_LANDMARK_COUNT,
    HEAD_TILT,
    KINEMATIC_CHAIN,
    BoneID,
)
from mocap_retarget.pose.landmarks import LandmarkSet
from .reference_pose import ReferencePose


WORLD_UP = np.array([0.0, 1.0, 0.0])
# Twist keeps only the roll about the parent (elbow) frame X axis
TWIST_AXIS = np.array([1.0, 0.0, 0.0])

EXPECTED_SIZES = {
    "body": BODY_LANDMARK_COUNT,
    "left_hand": HAND_LANDMARK_COUNT,
    "right_hand": HAND_LANDMARK_COUNT,
}


BoneMap = Dict[BoneID, np.ndarray]


def segment_direction(bone: BoneID, sets: Dict[str, Optional[LandmarkSet]],
                      min_visibility: float = 0.0) -> Optional[np.ndarray]:
    """
    World-space direction of the segment that drives a direction-solved bone.

    Two landmarks give end minus start. Four landmarks give the midpoint of
    the last pair minus the midpoint of the first pair. Returns None if the
    set is absent, a landmark is missing or hidden, or the points coincide.
    """
    source = BONE_SOURCES[bone]
    landmarks = sets.get(source["source"])
    indices = source["landmarks"]
    if landmarks is None or not landmarks.has_all(indices, min_visibility):
        return None

    if len(indices) == 4:
        start = midpoint(landmarks.point(indices[0]), landmarks.point(indices[1]))
        end = midpoint(landmarks.point(indices[2]), landmarks.point(indices[3]))
    else:
        start = landmarks.point(indices[0])
        end = landmarks.point(indices[1])
    return safe_direction(start, end)


def head_axes(sets: Dict[str, Optional[LandmarkSet]],
              min_visibility: float = 0.0) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """World ear axis (right to left) and facing (ear centre to eye centre), or None."""
    body = sets.get("body")
    indices = BONE_SOURCES[BoneID.HEAD]["landmarks"]
    if body is None or not body.has_all(indices, min_visibility):
        return None

    right_ear, left_ear, right_eye, left_eye = (body.point(i) for i in indices)
    ear_axis = safe_direction(right_ear, left_ear)
    facing = safe_direction(midpoint(left_ear, right_ear), midpoint(left_eye, right_eye))
    if ear_axis is None or facing is None:
        return None
    return ear_axis, facing


class BodyHandSolver:
    """
    Convert body and hand landmarks to local MMD bone rotations.

    Bones are evaluated in kinematic-chain order into a fresh table each
    call; every bone reads only its ancestors from that table. Any bone
    whose inputs are absent, hidden or degenerate is identity. The solver
    keeps no orientation state between calls, so consumers blend frames
    themselves (see ``BoneBlender``).
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        min_visibility: Optional[float] = None,
        reference_pose: Optional[ReferencePose] = None
    ):
        self.logger = get_logger("motion.body")
        self.config = config or Config()

        body_config = self.config.body
        if min_visibility is None:
            min_visibility = body_config.get("min_visibility", 0.1)
        self._min_visibility = float(min_visibility)
        self._reference = reference_pose or ReferencePose.default()
        self._diagnostics = OnceLogger(self.logger)

        self.logger.info(
            f"Initialized body/hand solver ({len(EVALUATION_ORDER)} bones, "
            f"min_visibility={self._min_visibility})"
        )

    @property
    def reference_pose(self) -> ReferencePose:
        return self._reference

    @property
    def min_visibility(self) -> float:
        return self._min_visibility

    def prepare(self, body: Any = None, left_hand: Any = None,
                right_hand: Any = None) -> Dict[str, Optional[LandmarkSet]]:
        """Validate landmark sets and move them into solver space (y up)."""
        raw = {"body": body, "left_hand": left_hand, "right_hand": right_hand}
        sets: Dict[str, Optional[LandmarkSet]] = {}
        for name, value in raw.items():
            sets[name] = self._prepare_set(name, value)
        return sets

    def _prepare_set(self, name: str, value: Any) -> Optional[LandmarkSet]:
        if value is None:
            return None
        try:
            landmarks = LandmarkSet.coerce(value)
        except ValueError as e:
            self._diagnostics.debug(f"{name}:invalid", f"Ignoring {name} landmarks: {e}")
            return None

        expected = EXPECTED_SIZES[name]
        if len(landmarks) != expected:
            self._diagnostics.debug(
                f"{name}:size",
                f"Ignoring {name} landmarks: got {len(landmarks)}, expected {expected}"
            )
            return None
        if name != "body":
            # Hand detectors report no meaningful per-point visibility
            landmarks = landmarks.without_visibility()
        return landmarks.to_solver_space()

    def solve(self, body: Any = None, left_hand: Any = None,
              right_hand: Any = None) -> BoneMap:
        """
        Solve all body and hand bones for one frame.

        Args:
            body: 33 pose landmarks, or None
            left_hand: 21 hand landmarks, or None
            right_hand: 21 hand landmarks, or None

        Returns:
            BoneID -> unit quaternion [w, x, y, z] in parent-local space
        """
        sets = self.prepare(body, left_hand, right_hand)
        return self.solve_prepared(sets)

    def solve_prepared(self, sets: Dict[str, Optional[LandmarkSet]]) -> BoneMap:
        """Solve from sets already returned by :meth:`prepare`."""
        resolved: BoneMap = {}
        for bone in EVALUATION_ORDER:
            parent = quat_chain([resolved[a] for a in KINEMATIC_CHAIN[bone]])
            q = self._solve_bone(bone, parent, sets)
            resolved[bone] = q if q is not None else quat_identity()
        return resolved

    def _solve_bone(self, bone: BoneID, parent: np.ndarray,
                    sets: Dict[str, Optional[LandmarkSet]]) -> Optional[np.ndarray]:
        method = BONE_SOURCES[bone]["method"]

        if method == "frame":
            return self._solve_frame(bone, sets)
        if method == "head":
            return self._solve_head(parent, sets)
        if method == "twist":
            return self._solve_twist(bone, parent, sets)

        direction = segment_direction(bone, sets, self._min_visibility)
        if direction is None:
            return None
        local = to_local(parent, direction)
        return quat_from_two_vectors(self._reference.direction(bone), local)

    def _solve_frame(self, bone: BoneID, sets: Dict[str, Optional[LandmarkSet]]) -> Optional[np.ndarray]:
        """Spine roots: x from the right->left landmark pair, up from the torso or world."""
        body = sets.get("body")
        indices = BONE_SOURCES[bone]["landmarks"]
        if body is None or not body.has_all(indices[:2], self._min_visibility):
            return None

        right, left = body.point(indices[0]), body.point(indices[1])
        x_axis = left - right

        if bone == BoneID.LOWER_BODY:
            up = WORLD_UP
        else:
            # World landmarks are hip-centred, so the origin stands in for missing hips
            hip_center = np.zeros(3)
            if body.has_all(indices[2:], self._min_visibility):
                hip_center = midpoint(body.point(indices[2]), body.point(indices[3]))
            up = midpoint(left, right) - hip_center

        return quat_from_frame(x_axis, up)

    def _solve_head(self, parent: np.ndarray,
                    sets: Dict[str, Optional[LandmarkSet]]) -> Optional[np.ndarray]:
        """Ear axis rotation, then the eye/ear tilt measured in the rotated frame."""
        axes = head_axes(sets, self._min_visibility)
        if axes is None:
            return None
        ear_axis, facing = axes

        primary = quat_from_two_vectors(
            self._reference.direction(BoneID.HEAD), to_local(parent, ear_axis)
        )
        tilt_frame = quat_multiply(parent, primary)
        tilt = quat_from_two_vectors(
            self._reference.direction(HEAD_TILT), to_local(tilt_frame, facing)
        )
        return quat_multiply(primary, tilt)

    def _solve_twist(self, bone: BoneID, parent: np.ndarray,
                     sets: Dict[str, Optional[LandmarkSet]]) -> Optional[np.ndarray]:
        """Roll about the elbow frame X axis from the ring-to-index knuckle line; yaw and pitch dropped."""
        direction = segment_direction(bone, sets, self._min_visibility)
        if direction is None:
            return None
        full = quat_from_two_vectors(self._reference.direction(bone), to_local(parent, direction))
        roll = quat_to_euler(full)[0]
        return quat_from_axis_angle(TWIST_AXIS, roll)

    def reset(self) -> None:
        """Forget logged diagnostics. The solver holds no pose state."""
        self._diagnostics.clear()
