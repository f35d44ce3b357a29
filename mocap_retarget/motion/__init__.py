"""Body/hand solving, calibration, blending and the frame pipeline"""

from .reference_pose import ReferencePose
from .body_solver import BodyHandSolver
from .bone_blender import BoneBlender
from .calibration import calibrate, build_neutral_body, build_neutral_hand, build_neutral_face
from .pipeline import RetargetPipeline, RetargetResult, to_rig_names

__all__ = [
    "ReferencePose", "BodyHandSolver", "BoneBlender",
    "calibrate", "build_neutral_body", "build_neutral_hand", "build_neutral_face",
    "RetargetPipeline", "RetargetResult", "to_rig_names",
]
