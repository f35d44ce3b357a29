"""Landmark containers and conversion into solver space."""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence
import numpy as np


@dataclass(frozen=True)
class Landmark:
    """Single 3D landmark as produced by the detector."""
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None

    @classmethod
    def from_any(cls, value: Any) -> Optional["Landmark"]:
        """
        Build a landmark from a tuple, mapping or object with x/y/z attributes.

        Returns None for None input.

        Raises:
            ValueError: if the value has no usable coordinates
        """
        if value is None:
            return None
        if isinstance(value, Landmark):
            return value
        if isinstance(value, Mapping):
            try:
                return cls(
                    _coordinate(value["x"], "x"),
                    _coordinate(value["y"], "y"),
                    _coordinate(value.get("z", 0.0) or 0.0, "z"),
                    _optional_float(value.get("visibility")),
                )
            except KeyError as e:
                raise ValueError(f"Landmark mapping missing key {e}") from e
        if isinstance(value, (tuple, list, np.ndarray)):
            if len(value) < 2:
                raise ValueError(f"Landmark needs at least 2 coordinates, got {len(value)}")
            z = _coordinate(value[2], "z") if len(value) > 2 else 0.0
            vis = _optional_float(value[3]) if len(value) > 3 else None
            return cls(_coordinate(value[0], "x"), _coordinate(value[1], "y"), z, vis)
        if hasattr(value, "x") and hasattr(value, "y"):
            return cls(
                _coordinate(value.x, "x"),
                _coordinate(value.y, "y"),
                _coordinate(getattr(value, "z", 0.0) or 0.0, "z"),
                _optional_float(getattr(value, "visibility", None)),
            )
        raise ValueError(f"Cannot interpret {type(value).__name__} as a landmark")

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def to_dict(self) -> dict:
        d = {"x": self.x, "y": self.y, "z": self.z}
        if self.visibility is not None:
            d["visibility"] = self.visibility
        return d


def _coordinate(value: Any, name: str) -> float:
    """Scalar coordinate as float; anything else is a ValueError."""
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Landmark {name} must be a number, got {value!r}") from e


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else _coordinate(value, "visibility")


class LandmarkSet:
    """
    Fixed-size, index-addressed landmark array.

    Holds positions as an (N, 3) float array, visibility as an (N,) array
    (NaN where the detector gave none) and a presence mask so individual
    entries may be missing.
    """

    def __init__(
        self,
        positions: np.ndarray,
        visibility: Optional[np.ndarray] = None,
        present: Optional[np.ndarray] = None
    ):
        positions = np.asarray(positions, dtype=np.float64)
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise ValueError(f"positions must have shape (N, 3), got {positions.shape}")
        n = positions.shape[0]

        if visibility is None:
            visibility = np.full(n, np.nan)
        if present is None:
            present = np.all(np.isfinite(positions), axis=1)

        self._positions = positions.copy()
        self._visibility = np.asarray(visibility, dtype=np.float64).copy()
        self._present = np.asarray(present, dtype=bool).copy()
        for arr in (self._positions, self._visibility, self._present):
            arr.setflags(write=False)

    @classmethod
    def from_landmarks(cls, landmarks: Iterable[Any]) -> "LandmarkSet":
        """Build a set from any iterable of landmark-like values (None allowed)."""
        try:
            raw = list(landmarks)
        except TypeError as e:
            raise ValueError(f"Landmarks must be a sequence: {e}") from e
        items = [Landmark.from_any(lm) for lm in raw]
        n = len(items)
        positions = np.zeros((n, 3), dtype=np.float64)
        visibility = np.full(n, np.nan)
        present = np.zeros(n, dtype=bool)
        for i, lm in enumerate(items):
            if lm is None:
                continue
            positions[i] = (lm.x, lm.y, lm.z)
            if lm.visibility is not None:
                visibility[i] = lm.visibility
            present[i] = np.all(np.isfinite(positions[i]))
        return cls(positions, visibility, present)

    @classmethod
    def coerce(cls, value: Any) -> Optional["LandmarkSet"]:
        """Accept a LandmarkSet, an (N, 3+) array or a landmark sequence. None stays None."""
        if value is None or isinstance(value, LandmarkSet):
            return value
        if isinstance(value, np.ndarray):
            if value.ndim != 2:
                raise ValueError(f"Landmark array must be 2-dimensional, got shape {value.shape}")
            if value.shape[1] >= 3:
                try:
                    value = np.asarray(value, dtype=np.float64)
                except (TypeError, ValueError) as e:
                    raise ValueError(f"Landmark array is not numeric: {e}") from e
                visibility = value[:, 3] if value.shape[1] > 3 else None
                return cls(value[:, :3], visibility)
        return cls.from_landmarks(value)

    def __len__(self) -> int:
        return self._positions.shape[0]

    @property
    def positions(self) -> np.ndarray:
        return self._positions

    @property
    def visibility(self) -> np.ndarray:
        return self._visibility

    def has(self, index: int, min_visibility: float = 0.0) -> bool:
        """True if landmark index exists, is present and is visible enough."""
        if index < 0 or index >= len(self) or not self._present[index]:
            return False
        vis = self._visibility[index]
        return np.isnan(vis) or vis >= min_visibility

    def has_all(self, indices: Sequence[int], min_visibility: float = 0.0) -> bool:
        return all(self.has(i, min_visibility) for i in indices)

    def point(self, index: int) -> np.ndarray:
        return self._positions[index].copy()

    def to_solver_space(self) -> "LandmarkSet":
        """Flip y so up is positive; detectors report y pointing down."""
        flipped = self._positions * np.array([1.0, -1.0, 1.0])
        return LandmarkSet(flipped, self._visibility, self._present)

    def without_visibility(self) -> "LandmarkSet":
        """Copy of this set with visibility scores discarded."""
        return LandmarkSet(self._positions, None, self._present)

    def with_point(self, index: int, position: Sequence[float]) -> "LandmarkSet":
        """Copy of this set with one landmark moved."""
        positions = self._positions.copy()
        present = self._present.copy()
        positions[index] = np.asarray(position, dtype=np.float64)
        present[index] = True
        return LandmarkSet(positions, self._visibility, present)

    def without_point(self, index: int) -> "LandmarkSet":
        """Copy of this set with one landmark marked missing."""
        present = self._present.copy()
        present[index] = False
        return LandmarkSet(self._positions, self._visibility, present)

    def to_list(self) -> list:
        out = []
        for i in range(len(self)):
            if not self._present[i]:
                out.append(None)
                continue
            x, y, z = self._positions[i]
            vis = self._visibility[i]
            out.append(Landmark(float(x), float(y), float(z), None if np.isnan(vis) else float(vis)))
        return out

    def __repr__(self) -> str:
        return f"LandmarkSet(n={len(self)}, present={int(self._present.sum())})"
