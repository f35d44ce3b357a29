"""Core systems - config, logging, timing, geometry, skeleton"""

from .config import Config
from .logging import setup_logging, get_logger, OnceLogger
from .timing import FrameTimer, FrameGate
from .skeleton import (
    BoneID,
    MMD_BONE_NAMES,
    MMD_NAME_TO_BONE,
    KINEMATIC_CHAIN,
    EVALUATION_ORDER,
    REFERENCE_DIRECTIONS,
    BONE_SOURCES,
    BODY_BONES,
    EYE_BONES,
    BodyLandmark,
    HandLandmark,
    FaceLandmark,
    evaluation_order,
)

__all__ = [
    "Config", "setup_logging", "get_logger", "OnceLogger",
    "FrameTimer", "FrameGate",
    "BoneID", "MMD_BONE_NAMES", "MMD_NAME_TO_BONE",
    "KINEMATIC_CHAIN", "EVALUATION_ORDER", "REFERENCE_DIRECTIONS", "BONE_SOURCES",
    "BODY_BONES", "EYE_BONES",
    "BodyLandmark", "HandLandmark", "FaceLandmark",
    "evaluation_order",
]
