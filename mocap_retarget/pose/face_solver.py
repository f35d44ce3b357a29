"""Face Solver - eye bones and expression morphs from face mesh landmarks

Consumes the refined MediaPipe face mesh (478 points, at least 474 needed
for the iris centres) in normalized image coordinates and produces:
  - left/right eye bone rotations from iris gaze
  - blink, wink, mouth-open and smile morph weights

All derived scalars are exponentially smoothed across calls.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional
import numpy as np

from mocap_retarget.core import get_logger, Config
from mocap_retarget.core.logging import OnceLogger
from mocap_retarget.core.geometry import quat_from_yaw_pitch_roll, quat_identity
from mocap_retarget.core.skeleton import FACE_MIN_LANDMARK_COUNT, BoneID, FaceLandmark
from .landmarks import LandmarkSet


# Gaze limits
MAX_EYE_YAW = np.pi / 6     # 30 degrees
MAX_EYE_PITCH = np.pi / 12  # 15 degrees

# Eye aspect ratio (height / width) thresholds
EYE_CLOSED_RATIO = 0.1
EYE_OPEN_RATIO = 0.3

# Mouth ratio (lip gap / mouth width): exactly 0 at or below threshold
MOUTH_OPEN_THRESHOLD = 0.18
MOUTH_OPEN_RANGE = 0.2

# Corner lift in normalized image units
SMILE_THRESHOLD = 0.008
SMILE_GAIN = 120.0

# Wink needs one eye clearly shut while the other stays open
WINK_CLOSED = 0.5
WINK_OPEN = 0.3

MAX_SMOOTHING = 0.95


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return float(min(max(value, lo), hi))


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


@dataclass
class FaceMorphWeights:
    """Expression morph weights, each in [0, 1]."""
    blink: float = 0.0
    wink_left: float = 0.0
    wink_right: float = 0.0
    mouth_open: float = 0.0
    smile: float = 0.0

    # MMD morph names as used by PMX models
    RIG_NAMES = {
        "blink": "まばたき",
        "wink_left": "ウィンク",
        "wink_right": "ウィンク右",
        "mouth_open": "あ",
        "smile": "ワ",
    }

    def to_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def to_rig_names(self) -> Dict[str, float]:
        return {self.RIG_NAMES[name]: value for name, value in self.to_dict().items()}


@dataclass
class FaceSolverResult:
    """Eye bones plus morph weights for one frame."""
    eye_bones: Dict[BoneID, np.ndarray] = field(default_factory=lambda: {
        BoneID.LEFT_EYE: quat_identity(),
        BoneID.RIGHT_EYE: quat_identity(),
    })
    morph_weights: FaceMorphWeights = field(default_factory=FaceMorphWeights)
    tracked: bool = False


@dataclass
class _SmoothingState:
    left_gaze_x: float = 0.0
    left_gaze_y: float = 0.0
    right_gaze_x: float = 0.0
    right_gaze_y: float = 0.0
    left_openness: float = 1.0
    right_openness: float = 1.0
    mouth: float = 0.0
    smile: float = 0.0


class FaceSolver:
    """
    Stateful face solver.

    The only state is the smoothed scalars from the previous call; it
    lives as long as the instance and is cleared by :meth:`reset`.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        smoothing_factor: Optional[float] = None,
        morph_exponents: Optional[Dict[str, float]] = None
    ):
        self.logger = get_logger("pose.face")
        self.config = config or Config()

        face_config = self.config.face
        if smoothing_factor is None:
            smoothing_factor = face_config.get("smoothing_factor", 0.3)
        self._smoothing = 0.0
        self.set_smoothing_factor(smoothing_factor)

        exponents = dict(face_config.get("morph_exponents") or {})
        exponents.update(morph_exponents or {})
        known = {f.name for f in fields(FaceMorphWeights)}
        unknown = set(exponents) - known
        if unknown:
            raise ValueError(f"Unknown morph exponent(s): {sorted(unknown)}")
        self._exponents = {name: float(exponents.get(name, 1.0)) for name in known}
        if any(e <= 0 for e in self._exponents.values()):
            raise ValueError(f"Morph exponents must be positive: {self._exponents}")

        self._state = _SmoothingState()
        self._diagnostics = OnceLogger(self.logger)

        self.logger.info(f"Initialized face solver (smoothing={self._smoothing})")

    @property
    def smoothing_factor(self) -> float:
        return self._smoothing

    @smoothing_factor.setter
    def smoothing_factor(self, value: float) -> None:
        self.set_smoothing_factor(value)

    def set_smoothing_factor(self, value: float) -> None:
        """Set smoothing, clamped to [0, 0.95]. 0 means no smoothing."""
        self._smoothing = _clamp(float(value), 0.0, MAX_SMOOTHING)

    def reset(self) -> None:
        """Restore the initial smoothing state (eyes open, everything else neutral)."""
        self._state = _SmoothingState()

    def solve(self, face_landmarks: Any) -> FaceSolverResult:
        """
        Solve eye bones and morphs for one frame.

        Args:
            face_landmarks: face mesh landmarks (>= 474 points), or None

        Returns:
            FaceSolverResult; identity eyes and zero morphs if input is unusable
        """
        landmarks = self._prepare(face_landmarks)
        if landmarks is None:
            return FaceSolverResult()

        F = FaceLandmark
        p = landmarks.point
        state = self._state
        t = 1.0 - self._smoothing

        # Gaze
        left_gx, left_gy = self._eye_gaze(p(F.LEFT_EYE_LEFT), p(F.LEFT_EYE_RIGHT), p(F.LEFT_EYE_IRIS))
        right_gx, right_gy = self._eye_gaze(p(F.RIGHT_EYE_LEFT), p(F.RIGHT_EYE_RIGHT), p(F.RIGHT_EYE_IRIS))

        state.left_gaze_x = _lerp(state.left_gaze_x, left_gx, t)
        state.left_gaze_y = _lerp(state.left_gaze_y, left_gy, t)
        state.right_gaze_x = _lerp(state.right_gaze_x, right_gx, t)
        state.right_gaze_y = _lerp(state.right_gaze_y, right_gy, t)

        gaze_x = (state.left_gaze_x + state.right_gaze_x) / 2
        gaze_y = (state.left_gaze_y + state.right_gaze_y) / 2
        eye_rotation = self.eye_rotation(gaze_x, gaze_y)

        # Openness; the image is mirrored so the subject's left eye is the mesh's right eye
        left_open = self._eye_openness(
            p(F.RIGHT_EYE_LEFT), p(F.RIGHT_EYE_RIGHT), p(F.RIGHT_EYE_UPPER), p(F.RIGHT_EYE_LOWER)
        )
        right_open = self._eye_openness(
            p(F.LEFT_EYE_LEFT), p(F.LEFT_EYE_RIGHT), p(F.LEFT_EYE_UPPER), p(F.LEFT_EYE_LOWER)
        )
        state.left_openness = _lerp(state.left_openness, left_open, t)
        state.right_openness = _lerp(state.right_openness, right_open, t)

        # Mouth
        mouth = self._mouth_openness(
            p(F.UPPER_LIP_TOP), p(F.LOWER_LIP_BOTTOM), p(F.MOUTH_LEFT), p(F.MOUTH_RIGHT)
        )
        smile = self._smile(
            p(F.UPPER_LIP_TOP), p(F.LOWER_LIP_BOTTOM), p(F.MOUTH_LEFT), p(F.MOUTH_RIGHT)
        )
        state.mouth = _lerp(state.mouth, mouth, t)
        state.smile = _lerp(state.smile, smile, t)

        morphs = self._morphs(1.0 - state.left_openness, 1.0 - state.right_openness,
                              state.mouth, state.smile)

        return FaceSolverResult(
            eye_bones={BoneID.LEFT_EYE: eye_rotation, BoneID.RIGHT_EYE: eye_rotation.copy()},
            morph_weights=morphs,
            tracked=True,
        )

    def _prepare(self, face_landmarks: Any) -> Optional[LandmarkSet]:
        if face_landmarks is None:
            return None
        try:
            landmarks = LandmarkSet.coerce(face_landmarks)
        except ValueError as e:
            self._diagnostics.debug("face:invalid", f"Ignoring face landmarks: {e}")
            return None

        if len(landmarks) < FACE_MIN_LANDMARK_COUNT:
            self._diagnostics.debug(
                "face:size",
                f"Ignoring face landmarks: got {len(landmarks)}, need {FACE_MIN_LANDMARK_COUNT}"
            )
            return None
        if not landmarks.has_all([int(i) for i in FaceLandmark]):
            return None
        return landmarks

    @staticmethod
    def _eye_gaze(corner_a: np.ndarray, corner_b: np.ndarray, iris: np.ndarray):
        """Iris offset from the corner midpoint, normalized by eye size."""
        center = (corner_a[:2] + corner_b[:2]) / 2
        width = abs(corner_a[0] - corner_b[0])
        if width < 1e-8:
            return 0.0, 0.0
        height = width * 0.5

        x = (iris[0] - center[0]) / (width * 0.5)
        y = (iris[1] - center[1]) / (height * 0.5)
        return _clamp(x, -1.0, 1.0), _clamp(y, -0.5, 0.5)

    @staticmethod
    def eye_rotation(gaze_x: float, gaze_y: float) -> np.ndarray:
        """Eye bone rotation for a gaze; x in [-1, 1] turns yaw, y in [-0.5, 0.5] turns pitch."""
        pitch = gaze_y * MAX_EYE_PITCH
        yaw = -gaze_x * MAX_EYE_YAW
        return quat_from_yaw_pitch_roll(yaw, pitch, 0.0)

    @staticmethod
    def _eye_openness(corner_a: np.ndarray, corner_b: np.ndarray,
                      upper: np.ndarray, lower: np.ndarray) -> float:
        width = float(np.linalg.norm(corner_a - corner_b))
        if width == 0:
            return 1.0
        ratio = float(np.linalg.norm(upper - lower)) / width

        if ratio <= EYE_CLOSED_RATIO:
            return 0.0
        if ratio >= EYE_OPEN_RATIO:
            return 1.0
        return (ratio - EYE_CLOSED_RATIO) / (EYE_OPEN_RATIO - EYE_CLOSED_RATIO)

    @staticmethod
    def _mouth_openness(upper_lip: np.ndarray, lower_lip: np.ndarray,
                        corner_left: np.ndarray, corner_right: np.ndarray) -> float:
        width = float(np.linalg.norm(corner_left - corner_right))
        if width == 0:
            return 0.0
        ratio = float(np.linalg.norm(upper_lip - lower_lip)) / width

        if ratio <= MOUTH_OPEN_THRESHOLD:
            return 0.0
        return _clamp((ratio - MOUTH_OPEN_THRESHOLD) / MOUTH_OPEN_RANGE)

    @staticmethod
    def _smile(upper_lip: np.ndarray, lower_lip: np.ndarray,
               corner_left: np.ndarray, corner_right: np.ndarray) -> float:
        # Image y points down, so raised corners have smaller y than the lip centre
        center_y = (upper_lip[1] + lower_lip[1]) / 2
        corner_y = (corner_left[1] + corner_right[1]) / 2
        raw = float(center_y - corner_y)

        if raw <= SMILE_THRESHOLD:
            return 0.0
        return _clamp((raw - SMILE_THRESHOLD) * SMILE_GAIN)

    def _morphs(self, left_blink: float, right_blink: float,
                mouth: float, smile: float) -> FaceMorphWeights:
        wink_left = left_blink if left_blink > WINK_CLOSED and right_blink < WINK_OPEN else 0.0
        wink_right = right_blink if right_blink > WINK_CLOSED and left_blink < WINK_OPEN else 0.0

        raw = {
            "blink": (left_blink + right_blink) / 2,
            "wink_left": wink_left,
            "wink_right": wink_right,
            "mouth_open": mouth,
            "smile": smile,
        }
        shaped = {name: _clamp(_clamp(value) ** self._exponents[name]) for name, value in raw.items()}
        return FaceMorphWeights(**shaped)
