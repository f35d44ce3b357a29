"""Per-frame retargeting pipeline: gate, solve, blend, record"""

from dataclasses import dataclass, field
from typing import Dict, Optional
import numpy as np

from mocap_retarget.core import get_logger, Config, FrameGate, FrameTimer
from mocap_retarget.core.skeleton import MMD_BONE_NAMES, BoneID
from mocap_retarget.export.vmd_exporter import MotionClip, MotionRecorder
from mocap_retarget.pose.face_solver import FaceMorphWeights, FaceSolver
from mocap_retarget.pose.holistic_frame import HolisticFrame
from .body_solver import BodyHandSolver
from .bone_blender import BoneBlender


def to_rig_names(bones: Dict[BoneID, np.ndarray]) -> Dict[str, np.ndarray]:
    """BoneID keyed rotations to MMD bone names."""
    return {MMD_BONE_NAMES[bone]: q for bone, q in bones.items()}


@dataclass
class RetargetResult:
    """Output of one processed frame."""
    timestamp: float
    targets: Dict[BoneID, np.ndarray] = field(default_factory=dict)
    applied: Dict[BoneID, np.ndarray] = field(default_factory=dict)
    morphs: Optional[FaceMorphWeights] = None
    solve_time: float = 0.0

    def rig_pose(self) -> Dict[str, np.ndarray]:
        return to_rig_names(self.applied)


class RetargetPipeline:
    """
    Drives the solvers from captured holistic frames.

    Frames are throttled by a FrameGate. A frame without body or hand
    landmarks leaves the applied body untouched (the scene keeps its last
    pose) and a frame without a face keeps the last morphs.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        body_solver: Optional[BodyHandSolver] = None,
        face_solver: Optional[FaceSolver] = None,
        blender: Optional[BoneBlender] = None,
        recorder: Optional[MotionRecorder] = None,
        gate: Optional[FrameGate] = None
    ):
        self.logger = get_logger("motion.pipeline")
        self.config = config or Config()

        self.body_solver = body_solver or BodyHandSolver(self.config)
        self.face_solver = face_solver or FaceSolver(self.config)
        self.blender = blender or BoneBlender(self.config)
        self.recorder = recorder or MotionRecorder(self.config)
        self.gate = gate or FrameGate(int(self.config.capture.get("frame_skip", 2)))
        self.timer = FrameTimer()

        self._morphs: Optional[FaceMorphWeights] = None
        self._frames_processed = 0

    def process(self, frame: HolisticFrame) -> Optional[RetargetResult]:
        """
        Process one captured frame.

        Returns:
            RetargetResult, or None if the gate dropped the frame
        """
        if not self.gate.accept(frame.timestamp):
            return None

        self.timer.start()

        targets: Dict[BoneID, np.ndarray] = {}
        if frame.body is not None or frame.left_hand is not None or frame.right_hand is not None:
            targets.update(self.body_solver.solve(frame.body, frame.left_hand, frame.right_hand))

        if frame.face is not None:
            face = self.face_solver.solve(frame.face)
            if face.tracked:
                targets.update(face.eye_bones)
                self._morphs = face.morph_weights

        applied = self.blender.apply(targets)
        solve_time = self.timer.stop()
        self._frames_processed += 1

        if self.recorder.is_recording:
            morphs = self._morphs.to_rig_names() if self._morphs is not None else None
            self.recorder.offer(frame.timestamp, to_rig_names(applied), morphs)

        return RetargetResult(
            timestamp=frame.timestamp,
            targets=targets,
            applied=applied,
            morphs=self._morphs,
            solve_time=solve_time,
        )

    def start_recording(self, timestamp: Optional[float] = None) -> None:
        self.recorder.start(timestamp)

    def stop_recording(self, name: str = "motion") -> MotionClip:
        return self.recorder.stop(name)

    @property
    def frames_processed(self) -> int:
        return self._frames_processed

    def stats(self) -> dict:
        return {
            "processed": self._frames_processed,
            "dropped": self.gate.dropped_count,
            "avg_solve_ms": self.timer.average_frame_time * 1000.0,
            "max_solve_ms": self.timer.max_frame_time * 1000.0,
        }

    def reset(self) -> None:
        """Clear blending, smoothing, gating and timing state."""
        self.blender.reset()
        self.face_solver.reset()
        self.gate.reset()
        self.timer.reset()
        self._morphs = None
        self._frames_processed = 0
