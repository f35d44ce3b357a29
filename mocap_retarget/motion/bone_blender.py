"""Caller-side temporal blending of solved bone rotations."""

from typing import Dict, Mapping, Optional
import numpy as np

from mocap_retarget.core import get_logger, Config
from mocap_retarget.core.geometry import quat_identity, quat_slerp
from mocap_retarget.core.skeleton import BoneID


class BoneBlender:
    """
    Applies solver output to a rig the way a scene does.

    Each bone is slerped from its last applied rotation toward the new
    target by factor t. A bone seen for the first time starts from its
    rest rotation (identity). t = 1 snaps to the target, t = 0 holds.
    """

    def __init__(self, config: Optional[Config] = None, factor: Optional[float] = None):
        self.logger = get_logger("motion.blender")
        self.config = config or Config()

        if factor is None:
            factor = self.config.blending.get("factor", 0.7)
        self._factor = self._check_factor(factor)
        self._applied: Dict[BoneID, np.ndarray] = {}

    @staticmethod
    def _check_factor(t: float) -> float:
        t = float(t)
        if not 0.0 <= t <= 1.0:
            raise ValueError(f"Blend factor must be in [0, 1], got {t}")
        return t

    @property
    def factor(self) -> float:
        return self._factor

    def apply(self, targets: Mapping[BoneID, np.ndarray],
              t: Optional[float] = None) -> Dict[BoneID, np.ndarray]:
        """
        Blend targets into the applied pose.

        Args:
            targets: BoneID -> target quaternion for this frame
            t: blend factor, defaults to the configured factor

        Returns:
            Copy of the applied rotation for every bone touched so far
        """
        t = self._factor if t is None else self._check_factor(t)

        for bone, target in targets.items():
            previous = self._applied.get(bone, quat_identity())
            self._applied[bone] = quat_slerp(previous, target, t)

        return self.pose

    @property
    def pose(self) -> Dict[BoneID, np.ndarray]:
        return {bone: q.copy() for bone, q in self._applied.items()}

    def reset(self) -> None:
        self._applied.clear()
