"""Immutable table of bone rest directions."""

from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional
import numpy as np

from mocap_retarget.core.skeleton import REFERENCE_DIRECTIONS


class ReferencePose:
    """
    Rest direction per direction-solved bone, in parent-local space.

    Instances never change. Recalibrating yields a new ReferencePose via
    :meth:`replace`, so a solver holding one is never affected mid-stream.
    """

    _default: Optional["ReferencePose"] = None

    def __init__(self, directions: Mapping[object, np.ndarray]):
        table: Dict[object, np.ndarray] = {}
        for key, vector in directions.items():
            v = np.asarray(vector, dtype=np.float64).reshape(3)
            length = np.linalg.norm(v)
            if not np.isfinite(length) or length < 1e-8:
                raise ValueError(f"Reference direction for {_key_name(key)} has zero length")
            v = v / length
            v.setflags(write=False)
            table[key] = v
        self._directions = MappingProxyType(table)

    @classmethod
    def default(cls) -> "ReferencePose":
        """The calibrated constants shipped with the rig."""
        if cls._default is None:
            cls._default = cls(REFERENCE_DIRECTIONS)
        return cls._default

    def direction(self, key: object) -> np.ndarray:
        return self._directions[key]

    def replace(self, updates: Mapping[object, np.ndarray]) -> "ReferencePose":
        """New pose with some directions swapped out."""
        merged = dict(self._directions)
        merged.update(updates)
        return ReferencePose(merged)

    def max_deviation(self, other: "ReferencePose") -> float:
        """Largest angle in radians between matching directions of two poses."""
        worst = 0.0
        for key, v in self._directions.items():
            if key not in other:
                continue
            dot = float(np.clip(np.dot(v, other.direction(key)), -1.0, 1.0))
            worst = max(worst, float(np.arccos(dot)))
        return worst

    def to_dict(self) -> Dict[str, list]:
        return {_key_name(k): v.tolist() for k, v in self._directions.items()}

    def __contains__(self, key: object) -> bool:
        return key in self._directions

    def __iter__(self) -> Iterator[object]:
        return iter(self._directions)

    def __len__(self) -> int:
        return len(self._directions)

    def __repr__(self) -> str:
        return f"ReferencePose({len(self)} directions)"


def _key_name(key: object) -> str:
    return getattr(key, "value", str(key))
