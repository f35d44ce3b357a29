#!/usr/bin/env python3
"""
MoCap Retarget - Main Entry Point

Replays recorded MediaPipe Holistic landmarks through the body/hand and
face solvers and exports the resulting MMD motion as VMD.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from mocap_retarget.app import main


if __name__ == "__main__":
    sys.exit(main())
