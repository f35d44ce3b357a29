"""Command line replay: landmark recording in, VMD motion out."""

import argparse
from pathlib import Path
from typing import List, Optional

from mocap_retarget import __version__
from mocap_retarget.core import Config, FrameGate, setup_logging, get_logger
from mocap_retarget.export import VMDExporter
from mocap_retarget.motion import BodyHandSolver, RetargetPipeline, calibrate
from mocap_retarget.pose import load_frames


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Retarget recorded holistic landmarks onto an MMD rig and export VMD"
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file (default: config.yaml in project root)"
    )
    parser.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Landmark recording (JSON Lines, one frame per line)"
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Output directory (overrides config)"
    )
    parser.add_argument(
        "--name", "-n",
        type=str,
        default=None,
        help="Output file name without extension (default: input file stem)"
    )
    parser.add_argument(
        "--calibrate",
        type=str,
        default=None,
        help="Recording whose first frame is a neutral pose to calibrate rest directions"
    )
    parser.add_argument(
        "--frame-skip",
        type=int,
        default=None,
        help="Process every Nth frame (overrides config)"
    )
    parser.add_argument(
        "--smoothing",
        type=float,
        default=None,
        help="Face smoothing factor in [0, 0.95] (overrides config)"
    )
    parser.add_argument(
        "--blend",
        type=float,
        default=None,
        help="Bone blend factor in [0, 1] (overrides config)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = parse_args(argv)

    try:
        config = Config(args.config) if args.config else Config()
    except FileNotFoundError as e:
        print(f"Error: {e}")
        return 1

    log_level = "DEBUG" if args.debug else config.get("app.log_level", "INFO")
    setup_logging(level=log_level, log_file="retarget")
    logger = get_logger("main")

    logger.info("=" * 50)
    logger.info(f"MoCap Retarget v{__version__}")
    logger.info("=" * 50)

    if args.output:
        config.set("export.output_dir", args.output)
        logger.info(f"Output override: {args.output}")
    if args.frame_skip is not None:
        config.set("capture.frame_skip", args.frame_skip)
    if args.smoothing is not None:
        config.set("face.smoothing_factor", args.smoothing)
    if args.blend is not None:
        config.set("blending.factor", args.blend)

    try:
        return run(config, args)
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 1


def run(config: Config, args: argparse.Namespace) -> int:
    """Replay a recording through the pipeline and export the motion."""
    logger = get_logger("main")

    frames = load_frames(args.input)
    if not frames:
        logger.error(f"No frames in {args.input}")
        return 1

    body_solver = None
    if args.calibrate:
        neutral = load_frames(args.calibrate)
        if not neutral or neutral[0].body is None:
            logger.error(f"No neutral body pose in {args.calibrate}")
            return 1
        first = neutral[0]
        reference = calibrate(first.body, first.left_hand, first.right_hand, config=config)
        body_solver = BodyHandSolver(config, reference_pose=reference)

    pipeline = RetargetPipeline(
        config,
        body_solver=body_solver,
        gate=FrameGate(int(config.get("capture.frame_skip", 2))),
    )
    pipeline.start_recording()

    for frame in frames:
        pipeline.process(frame)

    stats = pipeline.stats()
    logger.info(
        f"Processed {stats['processed']} frames, dropped {stats['dropped']} "
        f"(avg {stats['avg_solve_ms']:.2f} ms, max {stats['max_solve_ms']:.2f} ms)"
    )

    name = args.name or Path(args.input).stem
    clip = pipeline.stop_recording(name)
    if not clip.is_valid:
        logger.error("Nothing was recorded; no frame carried body, hand or face landmarks")
        return 1

    output_path = VMDExporter(config).export(clip, name)
    logger.info(f"Motion written to {output_path}")
    return 0
