"""MMD humanoid bone taxonomy and MediaPipe Holistic landmark tables.

This module defines the fixed set of bones the solvers drive, their rig
(MMD) names, the kinematic chain each bone hangs from, and the rest
direction every direction-solved bone is measured against.
"""

from enum import Enum, IntEnum
from typing import Dict, List, Optional, Tuple
import numpy as np


class BoneID(Enum):
    """Bones driven by the body/hand and face solvers."""
    # Spine and head
    UPPER_BODY = "upper_body"
    LOWER_BODY = "lower_body"
    NECK = "neck"
    HEAD = "head"

    # Legs
    LEFT_LEG = "left_leg"
    LEFT_KNEE = "left_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_LEG = "right_leg"
    RIGHT_KNEE = "right_knee"
    RIGHT_ANKLE = "right_ankle"

    # Arms
    LEFT_ARM = "left_arm"
    LEFT_ELBOW = "left_elbow"
    LEFT_WRIST_TWIST = "left_wrist_twist"
    LEFT_WRIST = "left_wrist"
    RIGHT_ARM = "right_arm"
    RIGHT_ELBOW = "right_elbow"
    RIGHT_WRIST_TWIST = "right_wrist_twist"
    RIGHT_WRIST = "right_wrist"

    # Left fingers
    LEFT_THUMB_0 = "left_thumb_0"
    LEFT_THUMB_1 = "left_thumb_1"
    LEFT_THUMB_2 = "left_thumb_2"
    LEFT_INDEX_1 = "left_index_1"
    LEFT_INDEX_2 = "left_index_2"
    LEFT_INDEX_3 = "left_index_3"
    LEFT_MIDDLE_1 = "left_middle_1"
    LEFT_MIDDLE_2 = "left_middle_2"
    LEFT_MIDDLE_3 = "left_middle_3"
    LEFT_RING_1 = "left_ring_1"
    LEFT_RING_2 = "left_ring_2"
    LEFT_RING_3 = "left_ring_3"
    LEFT_PINKY_1 = "left_pinky_1"
    LEFT_PINKY_2 = "left_pinky_2"
    LEFT_PINKY_3 = "left_pinky_3"

    # Right fingers
    RIGHT_THUMB_0 = "right_thumb_0"
    RIGHT_THUMB_1 = "right_thumb_1"
    RIGHT_THUMB_2 = "right_thumb_2"
    RIGHT_INDEX_1 = "right_index_1"
    RIGHT_INDEX_2 = "right_index_2"
    RIGHT_INDEX_3 = "right_index_3"
    RIGHT_MIDDLE_1 = "right_middle_1"
    RIGHT_MIDDLE_2 = "right_middle_2"
    RIGHT_MIDDLE_3 = "right_middle_3"
    RIGHT_RING_1 = "right_ring_1"
    RIGHT_RING_2 = "right_ring_2"
    RIGHT_RING_3 = "right_ring_3"
    RIGHT_PINKY_1 = "right_pinky_1"
    RIGHT_PINKY_2 = "right_pinky_2"
    RIGHT_PINKY_3 = "right_pinky_3"

    # Eyes (face solver)
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"


FINGERS = ("thumb", "index", "middle", "ring", "pinky")
SIDES = ("left", "right")


def finger_bones(side: str, finger: str) -> List[BoneID]:
    """Joint bones of one finger, proximal first."""
    joints = (0, 1, 2) if finger == "thumb" else (1, 2, 3)
    return [BoneID(f"{side}_{finger}_{j}") for j in joints]


_FULLWIDTH_DIGITS = "０１２３"
_MMD_SIDE = {"left": "左", "right": "右"}
_MMD_FINGER = {"thumb": "親指", "index": "人指", "middle": "中指", "ring": "薬指", "pinky": "小指"}


def _build_mmd_names() -> Dict[BoneID, str]:
    names = {
        BoneID.UPPER_BODY: "上半身",
        BoneID.LOWER_BODY: "下半身",
        BoneID.NECK: "首",
        BoneID.HEAD: "頭",
    }
    for side in SIDES:
        s = _MMD_SIDE[side]
        names[BoneID(f"{side}_leg")] = f"{s}足"
        names[BoneID(f"{side}_knee")] = f"{s}ひざ"
        names[BoneID(f"{side}_ankle")] = f"{s}足首"
        names[BoneID(f"{side}_arm")] = f"{s}腕"
        names[BoneID(f"{side}_elbow")] = f"{s}ひじ"
        names[BoneID(f"{side}_wrist_twist")] = f"{s}手捩"
        names[BoneID(f"{side}_wrist")] = f"{s}手首"
        names[BoneID(f"{side}_eye")] = f"{s}目"
        for finger in FINGERS:
            for bone in finger_bones(side, finger):
                joint = int(bone.value[-1])
                names[bone] = f"{s}{_MMD_FINGER[finger]}{_FULLWIDTH_DIGITS[joint]}"
    return names


# Rig bone names as they appear in PMX models and VMD motion files
MMD_BONE_NAMES: Dict[BoneID, str] = _build_mmd_names()

MMD_NAME_TO_BONE: Dict[str, BoneID] = {name: bone for bone, name in MMD_BONE_NAMES.items()}


# =============================================================================
# KINEMATIC CHAIN
# =============================================================================

def _build_chain() -> Dict[BoneID, Tuple[BoneID, ...]]:
    chain: Dict[BoneID, Tuple[BoneID, ...]] = {
        BoneID.UPPER_BODY: (),
        BoneID.LOWER_BODY: (),
        BoneID.NECK: (BoneID.UPPER_BODY,),
        BoneID.HEAD: (BoneID.UPPER_BODY, BoneID.NECK),
    }
    for side in SIDES:
        leg = BoneID(f"{side}_leg")
        knee = BoneID(f"{side}_knee")
        chain[leg] = (BoneID.LOWER_BODY,)
        chain[knee] = chain[leg] + (leg,)
        chain[BoneID(f"{side}_ankle")] = chain[knee] + (knee,)

        arm = BoneID(f"{side}_arm")
        elbow = BoneID(f"{side}_elbow")
        twist = BoneID(f"{side}_wrist_twist")
        wrist = BoneID(f"{side}_wrist")
        chain[arm] = (BoneID.UPPER_BODY,)
        chain[elbow] = chain[arm] + (arm,)
        chain[twist] = chain[elbow] + (elbow,)
        chain[wrist] = chain[twist] + (twist,)

        for finger in FINGERS:
            ancestors = chain[wrist] + (wrist,)
            for bone in finger_bones(side, finger):
                chain[bone] = ancestors
                ancestors = ancestors + (bone,)
    return chain


# Bone -> ancestors, root first. The last ancestor is the direct parent.
KINEMATIC_CHAIN: Dict[BoneID, Tuple[BoneID, ...]] = _build_chain()

BODY_BONES: Tuple[BoneID, ...] = tuple(KINEMATIC_CHAIN)
EYE_BONES: Tuple[BoneID, ...] = (BoneID.LEFT_EYE, BoneID.RIGHT_EYE)


def evaluation_order(chain: Dict[BoneID, Tuple[BoneID, ...]] = KINEMATIC_CHAIN) -> List[BoneID]:
    """
    Topological order over a chain table: every bone after all its ancestors.

    Ties keep table order, so the result is deterministic.

    Raises:
        ValueError: if an ancestor is not in the table or the table has a cycle
    """
    order: List[BoneID] = []
    placed = set()
    pending = list(chain)

    while pending:
        progressed = False
        remaining = []
        for bone in pending:
            ancestors = chain[bone]
            for ancestor in ancestors:
                if ancestor not in chain:
                    raise ValueError(f"{bone.value} has unknown ancestor {ancestor.value}")
            if all(a in placed for a in ancestors):
                order.append(bone)
                placed.add(bone)
                progressed = True
            else:
                remaining.append(bone)
        if not progressed:
            raise ValueError(f"Cycle in kinematic chain: {[b.value for b in remaining]}")
        pending = remaining

    return order


EVALUATION_ORDER: Tuple[BoneID, ...] = tuple(evaluation_order())


def parent_of(bone: BoneID) -> Optional[BoneID]:
    ancestors = KINEMATIC_CHAIN.get(bone, ())
    return ancestors[-1] if ancestors else None


# =============================================================================
# LANDMARK TABLES
# =============================================================================

class BodyLandmark(IntEnum):
    """MediaPipe Pose landmark indices."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


class HandLandmark(IntEnum):
    """MediaPipe Hands landmark indices."""
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


class FaceLandmark(IntEnum):
    """Face mesh indices consumed by the face solver (refined 478-point mesh)."""
    UPPER_LIP_TOP = 13
    LOWER_LIP_BOTTOM = 14
    LEFT_EYE_LEFT = 33
    MOUTH_LEFT = 61
    LEFT_EYE_RIGHT = 133
    LEFT_EYE_LOWER = 145
    LEFT_EYE_UPPER = 159
    LEFT_EAR = 234
    RIGHT_EYE_RIGHT = 263
    MOUTH_RIGHT = 291
    RIGHT_EYE_LEFT = 362
    RIGHT_EYE_LOWER = 374
    RIGHT_EYE_UPPER = 386
    RIGHT_EAR = 454
    LEFT_EYE_IRIS = 468
    RIGHT_EYE_IRIS = 473


BODY_LANDMARK_COUNT = 33
HAND_LANDMARK_COUNT = 21
FACE_MIN_LANDMARK_COUNT = max(FaceLandmark) + 1


def finger_landmarks(finger: str) -> List[HandLandmark]:
    """Hand landmarks along one finger, base first (4 points)."""
    if finger == "thumb":
        names = ("CMC", "MCP", "IP", "TIP")
    else:
        names = ("MCP", "PIP", "DIP", "TIP")
    return [HandLandmark[f"{finger.upper()}_{n}"] for n in names]


# =============================================================================
# BONE SOURCES
# =============================================================================

def _build_sources() -> Dict[BoneID, dict]:
    """
    Which landmark set and indices drive each bone, and how.

    Methods:
        frame     - orthonormal frame from an axis pair plus an up vector
        direction - shortest arc from the rest direction to landmarks[1] - landmarks[0]
        head      - ear axis rotation followed by eye/ear tilt
        twist     - hand plane direction, roll component only
    """
    B = BodyLandmark
    sources: Dict[BoneID, dict] = {
        BoneID.UPPER_BODY: {
            "source": "body",
            "landmarks": [B.RIGHT_SHOULDER, B.LEFT_SHOULDER, B.RIGHT_HIP, B.LEFT_HIP],
            "method": "frame",
        },
        BoneID.LOWER_BODY: {
            "source": "body",
            "landmarks": [B.RIGHT_HIP, B.LEFT_HIP],
            "method": "frame",
        },
        BoneID.NECK: {
            "source": "body",
            "landmarks": [B.LEFT_SHOULDER, B.RIGHT_SHOULDER, B.LEFT_EAR, B.RIGHT_EAR],
            "method": "direction",
        },
        BoneID.HEAD: {
            "source": "body",
            "landmarks": [B.RIGHT_EAR, B.LEFT_EAR, B.RIGHT_EYE, B.LEFT_EYE],
            "method": "head",
        },
    }
    for side in SIDES:
        S = side.upper()
        sources[BoneID(f"{side}_leg")] = {
            "source": "body", "landmarks": [B[f"{S}_HIP"], B[f"{S}_KNEE"]], "method": "direction",
        }
        sources[BoneID(f"{side}_knee")] = {
            "source": "body", "landmarks": [B[f"{S}_KNEE"], B[f"{S}_ANKLE"]], "method": "direction",
        }
        sources[BoneID(f"{side}_ankle")] = {
            "source": "body", "landmarks": [B[f"{S}_HEEL"], B[f"{S}_FOOT_INDEX"]], "method": "direction",
        }
        sources[BoneID(f"{side}_arm")] = {
            "source": "body", "landmarks": [B[f"{S}_SHOULDER"], B[f"{S}_ELBOW"]], "method": "direction",
        }
        sources[BoneID(f"{side}_elbow")] = {
            "source": "body", "landmarks": [B[f"{S}_ELBOW"], B[f"{S}_WRIST"]], "method": "direction",
        }
        sources[BoneID(f"{side}_wrist_twist")] = {
            "source": f"{side}_hand",
            "landmarks": [HandLandmark.RING_MCP, HandLandmark.INDEX_MCP],
            "method": "twist",
        }
        sources[BoneID(f"{side}_wrist")] = {
            "source": "body", "landmarks": [B[f"{S}_WRIST"], B[f"{S}_INDEX"]], "method": "direction",
        }
        for finger in FINGERS:
            points = finger_landmarks(finger)
            for i, bone in enumerate(finger_bones(side, finger)):
                sources[bone] = {
                    "source": f"{side}_hand",
                    "landmarks": [points[i], points[i + 1]],
                    "method": "direction",
                }
    return sources


BONE_SOURCES: Dict[BoneID, dict] = _build_sources()


# =============================================================================
# REFERENCE DIRECTIONS
# =============================================================================

def _unit(x: float, y: float, z: float) -> np.ndarray:
    v = np.array([x, y, z], dtype=np.float64)
    v = v / np.linalg.norm(v)
    v.setflags(write=False)
    return v


# Auxiliary rest directions that are not bones of their own
HEAD_TILT = "head_tilt"


def _build_reference_directions() -> Dict[object, np.ndarray]:
    """Rest directions in parent space, calibrated from a neutral capture."""
    refs: Dict[object, np.ndarray] = {
        BoneID.NECK: _unit(0, 1, 0),
        BoneID.HEAD: _unit(1, 0, 0),
        HEAD_TILT: _unit(0, 0, -1),
    }
    for side in SIDES:
        sign = 1.0 if side == "left" else -1.0
        limb = _unit(sign, -1, 0)
        refs[BoneID(f"{side}_leg")] = _unit(0, -1, 0)
        refs[BoneID(f"{side}_knee")] = _unit(0, -1, 0)
        refs[BoneID(f"{side}_ankle")] = _unit(0, 0, -1)
        refs[BoneID(f"{side}_arm")] = limb
        refs[BoneID(f"{side}_elbow")] = limb
        refs[BoneID(f"{side}_wrist_twist")] = _unit(0, 0, -1)
        refs[BoneID(f"{side}_wrist")] = limb
        for finger in FINGERS:
            ref = _unit(sign, -1, -1) if finger == "thumb" else limb
            for bone in finger_bones(side, finger):
                refs[bone] = ref
    return refs


REFERENCE_DIRECTIONS: Dict[object, np.ndarray] = _build_reference_directions()
