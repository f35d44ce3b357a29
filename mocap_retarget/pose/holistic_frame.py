"""Per-frame holistic landmark records and recording loader.

A recording is JSON Lines, one frame per line:

    {"timestamp": 0.033, "body": [...], "left_hand": [...],
     "right_hand": [...], "face": [...]}

Landmarks may be ``[x, y, z(, visibility)]`` lists or ``{"x", "y", "z",
"visibility"}`` objects. Raw HolisticLandmarker result keys
(``poseWorldLandmarks``, ``leftHandWorldLandmarks``,
``rightHandWorldLandmarks``, ``faceLandmarks``) are accepted too, in
which case the first detection of each list is used. A plain JSON array
of frames is also accepted.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List, Optional, Union

from mocap_retarget.core import get_logger
from .landmarks import Landmark


logger = get_logger("pose.frames")

KEY_ALIASES = {
    "body": ("body", "pose", "poseWorldLandmarks"),
    "left_hand": ("left_hand", "leftHandWorldLandmarks", "leftHandLandmarks"),
    "right_hand": ("right_hand", "rightHandWorldLandmarks", "rightHandLandmarks"),
    "face": ("face", "faceLandmarks"),
}


@dataclass
class HolisticFrame:
    """Landmarks of one captured frame. Absent parts are None."""
    timestamp: float
    body: Optional[List[Landmark]] = None
    left_hand: Optional[List[Landmark]] = None
    right_hand: Optional[List[Landmark]] = None
    face: Optional[List[Landmark]] = None

    @classmethod
    def from_dict(cls, data: dict, default_timestamp: float = 0.0) -> "HolisticFrame":
        """
        Build a frame from a decoded JSON object.

        Raises:
            ValueError: if a landmark entry cannot be interpreted
        """
        if not isinstance(data, dict):
            raise ValueError(f"Frame must be a JSON object, got {type(data).__name__}")

        parts = {}
        for name, aliases in KEY_ALIASES.items():
            raw = None
            for key in aliases:
                if key in data:
                    raw = data[key]
                    break
            parts[name] = _landmark_list(raw)

        timestamp = data.get("timestamp", data.get("time", default_timestamp))
        try:
            timestamp = float(timestamp)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Frame timestamp must be a number, got {timestamp!r}") from e
        return cls(timestamp=timestamp, **parts)

    def to_dict(self) -> dict:
        out = {"timestamp": self.timestamp}
        for name in KEY_ALIASES:
            value = getattr(self, name)
            if value is not None:
                out[name] = [None if lm is None else lm.to_dict() for lm in value]
        return out


def _landmark_list(raw: Any) -> Optional[List[Landmark]]:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ValueError(f"Landmarks must be a list, got {type(raw).__name__}")
    if not raw:
        return None
    # Detector results nest one landmark list per detected person/hand
    first = raw[0]
    if isinstance(first, list) and first and isinstance(first[0], (list, dict)):
        raw = first
    return [Landmark.from_any(lm) for lm in raw]


def iter_frames(path: Union[str, Path], frame_interval: float = 1.0 / 30.0) -> Iterator[HolisticFrame]:
    """
    Stream frames from a JSON Lines or JSON array recording.

    Frames without a timestamp get ``index * frame_interval``.

    Raises:
        FileNotFoundError: if the file does not exist
        ValueError: on malformed JSON or frame content, with the line number
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Landmark recording not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        head = f.read(1)
        while head and head.isspace():
            head = f.read(1)
        f.seek(0)

        if head == "[":
            try:
                items = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}: invalid JSON: {e}") from e
            for index, item in enumerate(items):
                try:
                    frame = HolisticFrame.from_dict(item, index * frame_interval)
                except ValueError as e:
                    raise ValueError(f"{path}: frame {index}: {e}") from e
                yield frame
            return

        index = 0
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
                frame = HolisticFrame.from_dict(data, index * frame_interval)
            except (json.JSONDecodeError, ValueError) as e:
                raise ValueError(f"{path}:{line_number}: {e}") from e
            index += 1
            yield frame


def load_frames(path: Union[str, Path], frame_interval: float = 1.0 / 30.0) -> List[HolisticFrame]:
    frames = list(iter_frames(path, frame_interval))
    logger.info(f"Loaded {len(frames)} frames from {path}")
    return frames


def save_frames(frames: List[HolisticFrame], path: Union[str, Path]) -> None:
    """Write frames as JSON Lines."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        for frame in frames:
            f.write(json.dumps(frame.to_dict()))
            f.write("\n")
    logger.info(f"Saved {len(frames)} frames to {path}")
