"""Motion recording and VMD export"""

from .vmd_exporter import MotionClip, MotionFrame, MotionRecorder, VMDExporter, read_vmd

__all__ = [
    "MotionClip", "MotionFrame", "MotionRecorder", "VMDExporter", "read_vmd",
]
