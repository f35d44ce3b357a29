"""Landmark input and face solving"""

from .landmarks import Landmark, LandmarkSet
from .face_solver import FaceSolver, FaceSolverResult, FaceMorphWeights
from .holistic_frame import HolisticFrame, iter_frames, load_frames, save_frames

__all__ = [
    "Landmark", "LandmarkSet",
    "FaceSolver", "FaceSolverResult", "FaceMorphWeights",
    "HolisticFrame", "iter_frames", "load_frames", "save_frames",
]
