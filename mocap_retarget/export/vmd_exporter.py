"""VMD (Vocaloid Motion Data) recorder and exporter for MMD models"""

import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union
import numpy as np

from mocap_retarget.core import get_logger, Config


VMD_HEADER = b"Vocaloid Motion Data 0002"
HEADER_SIZE = 30
MODEL_NAME_SIZE = 20
FRAME_NAME_SIZE = 15

# Interpolation curve bytes per bone key; 20 everywhere is a straight line
INTERPOLATION = bytes([20]) * 64

BONE_FRAME = struct.Struct("<15sI3f4f64s")
MORPH_FRAME = struct.Struct("<15sIf")
COUNT = struct.Struct("<I")

VMD_ENCODING = "shift_jis"


def encode_name(name: str, size: int) -> bytes:
    """Shift-JIS name truncated or zero padded to size bytes."""
    raw = name.encode(VMD_ENCODING)
    return raw[:size].ljust(size, b"\x00")


def decode_name(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode(VMD_ENCODING, errors="replace")


@dataclass
class MotionFrame:
    """One recorded frame: rig bone name -> quaternion [w, x, y, z], morph name -> weight."""
    bones: Dict[str, np.ndarray]
    morphs: Optional[Dict[str, float]] = None
    timestamp: float = 0.0


@dataclass
class MotionClip:
    """Container for recorded motion."""
    name: str
    fps: float = 30.0
    frames: List[MotionFrame] = field(default_factory=list)

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def duration(self) -> float:
        return len(self.frames) / self.fps if self.fps > 0 else 0.0

    @property
    def is_valid(self) -> bool:
        return len(self.frames) > 0


class MotionRecorder:
    """
    Samples the applied pose at a fixed rate.

    Capture runs faster or slower than the recording rate; a frame is kept
    whenever at least one interval has elapsed since the previous sample,
    and the remainder carries over so the average rate stays on target.
    """

    def __init__(self, config: Optional[Config] = None, fps: Optional[float] = None):
        self.logger = get_logger("export.recorder")
        self.config = config or Config()

        if fps is None:
            fps = self.config.capture.get("record_fps", 30.0)
        if fps <= 0:
            raise ValueError(f"Recording fps must be positive, got {fps}")
        self._fps = float(fps)
        self._interval = 1.0 / self._fps

        self._frames: List[MotionFrame] = []
        self._recording = False
        self._last_sample: Optional[float] = None

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    def start(self, timestamp: Optional[float] = None) -> None:
        """Start a new recording, discarding any previous frames."""
        self._frames = []
        self._recording = True
        self._last_sample = timestamp
        self.logger.info(f"Recording started ({self._fps:.0f} fps)")

    def offer(self, timestamp: float, bones: Mapping[str, np.ndarray],
              morphs: Optional[Mapping[str, float]] = None) -> bool:
        """
        Offer the current pose. Returns True if it was recorded.

        Poses with no bones are never recorded.
        """
        if not self._recording or not bones:
            return False

        if self._last_sample is None:
            next_sample = timestamp
        else:
            elapsed = timestamp - self._last_sample
            if elapsed < self._interval:
                return False
            next_sample = timestamp - (elapsed % self._interval)

        self._frames.append(MotionFrame(
            bones={name: np.array(q, dtype=np.float64) for name, q in bones.items()},
            morphs=dict(morphs) if morphs is not None else None,
            timestamp=timestamp,
        ))
        self._last_sample = next_sample
        return True

    def stop(self, name: str = "motion") -> MotionClip:
        """Stop recording and hand over the clip."""
        self._recording = False
        clip = MotionClip(name=name, fps=self._fps, frames=self._frames)
        self._frames = []
        self.logger.info(f"Recording stopped: {clip.frame_count} frames ({clip.duration:.1f}s)")
        return clip


class VMDExporter:
    """
    Write motion clips as VMD files readable by MikuMikuDance and MMD loaders.

    Bone keys carry rotation only (position zero) with linear
    interpolation. Morph names are taken from the first frame that has
    morphs; frames without morphs write zero weights.
    """

    def __init__(self, config: Optional[Config] = None):
        self.logger = get_logger("export.vmd")
        self.config = config or Config()

        export_config = self.config.export

        self._output_dir = Path(export_config.get("output_dir", "./output"))
        self._model_name = export_config.get("model_name", "") or ""
        self._frame_multiplier = int(export_config.get("frame_multiplier", 2))
        if self._frame_multiplier < 1:
            raise ValueError(f"frame_multiplier must be >= 1, got {self._frame_multiplier}")

        self.logger.info(f"Initialized VMD exporter (frame_multiplier={self._frame_multiplier})")

    def export(self, clip: MotionClip, filename: Optional[str] = None) -> Path:
        """
        Export clip to <output_dir>/<filename>.vmd.

        Returns:
            Path to exported file
        """
        data = self.to_bytes(clip)

        self._output_dir.mkdir(parents=True, exist_ok=True)
        output_path = self._output_dir / f"{filename or clip.name}.vmd"
        with open(output_path, "wb") as f:
            f.write(data)

        self.logger.info(f"Exported {clip.frame_count} frames to {output_path} ({len(data)} bytes)")
        return output_path

    def to_bytes(self, clip: MotionClip) -> bytes:
        """
        Serialize clip to VMD bytes.

        Raises:
            ValueError: if the clip has no frames
        """
        if not clip.is_valid:
            raise ValueError("No frames to export")

        parts: List[bytes] = [
            encode_name(VMD_HEADER.decode("ascii"), HEADER_SIZE),
            encode_name(self._model_name, MODEL_NAME_SIZE),
        ]

        bone_keys: List[bytes] = []
        for i, frame in enumerate(clip.frames):
            frame_number = i * self._frame_multiplier
            for name, q in frame.bones.items():
                w, x, y, z = (float(c) for c in q)
                bone_keys.append(BONE_FRAME.pack(
                    encode_name(name, FRAME_NAME_SIZE), frame_number,
                    0.0, 0.0, 0.0,
                    x, y, z, w,
                    INTERPOLATION,
                ))
        parts.append(COUNT.pack(len(bone_keys)))
        parts.extend(bone_keys)

        morph_names = next((list(f.morphs) for f in clip.frames if f.morphs), [])
        morph_keys: List[bytes] = []
        for i, frame in enumerate(clip.frames):
            frame_number = i * self._frame_multiplier
            weights = frame.morphs or {}
            for name in morph_names:
                morph_keys.append(MORPH_FRAME.pack(
                    encode_name(name, FRAME_NAME_SIZE), frame_number, float(weights.get(name, 0.0))
                ))
        parts.append(COUNT.pack(len(morph_keys)))
        parts.extend(morph_keys)

        # Camera, light and self-shadow sections are empty
        parts.extend([COUNT.pack(0)] * 3)

        return b"".join(parts)


@dataclass
class VMDMotion:
    """Decoded VMD content."""
    model_name: str
    bone_keys: List[dict]
    morph_keys: List[dict]


def read_vmd(source: Union[str, Path, bytes]) -> VMDMotion:
    """
    Decode bone and morph keys from a VMD file or bytes.

    Raises:
        ValueError: if the data is not VMD 0002 or is truncated
    """
    data = source if isinstance(source, bytes) else Path(source).read_bytes()
    if not data.startswith(VMD_HEADER):
        raise ValueError("Not a Vocaloid Motion Data 0002 file")

    try:
        offset = HEADER_SIZE
        model_name = decode_name(data[offset:offset + MODEL_NAME_SIZE])
        offset += MODEL_NAME_SIZE

        (bone_count,) = COUNT.unpack_from(data, offset)
        offset += COUNT.size
        bone_keys = []
        for _ in range(bone_count):
            name, frame, px, py, pz, x, y, z, w, _curve = BONE_FRAME.unpack_from(data, offset)
            offset += BONE_FRAME.size
            bone_keys.append({
                "name": decode_name(name),
                "frame": frame,
                "position": (px, py, pz),
                "rotation": np.array([w, x, y, z]),
            })

        (morph_count,) = COUNT.unpack_from(data, offset)
        offset += COUNT.size
        morph_keys = []
        for _ in range(morph_count):
            name, frame, weight = MORPH_FRAME.unpack_from(data, offset)
            offset += MORPH_FRAME.size
            morph_keys.append({"name": decode_name(name), "frame": frame, "weight": weight})
    except struct.error as e:
        raise ValueError(f"Truncated VMD data: {e}") from e

    return VMDMotion(model_name=model_name, bone_keys=bone_keys, morph_keys=morph_keys)
