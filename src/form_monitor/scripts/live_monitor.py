"""
Live form monitor on a local camera or a video file.

Runs the frame loop with an OpenCV preview window (press ``q`` or ``Esc`` to
stop) and prints the session summary on exit.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Optional

os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "3")

from ..session.builder import build_engine
from ..session.overlay import OpenCVOverlay
from ..session.scheduler import EngineState, MonitorSnapshot
from ..session.sources import VideoFileFrameSource
from ..utils.io_utils import load_settings

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Real-time exercise form monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Default camera, auto exercise detection:
  form-monitor --authenticated

  # Pin push-ups on a recorded clip without a preview window:
  form-monitor --video clips/pushups.mp4 --exercise pushup --no-window
""",
    )
    ap.add_argument("--camera", type=int, default=None, help="Camera device index.")
    ap.add_argument("--video", default=None, help="Video file to analyze instead of a camera.")
    ap.add_argument("--backend", default=None, help="Preferred pose backend (e.g. mediapipe_cpu, movenet, synthetic).")
    ap.add_argument("--exercise", default=None, help="Pin an exercise (pushup, squat, ...); default is auto.")
    ap.add_argument("--authenticated", action="store_true", help="Bypass the free-trial session limit.")
    ap.add_argument("--max-fps", type=float, default=None, help="Cap the analysis rate.")
    ap.add_argument("--duration", type=float, default=None, help="Stop after N seconds.")
    ap.add_argument("--config", default=None, help="YAML settings file (default: config/monitor.yaml).")
    ap.add_argument("--no-window", action="store_true", help="Do not open a preview window.")
    return ap


async def run_monitor(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    overrides = {}
    if args.camera is not None:
        overrides["camera_index"] = args.camera
    if args.backend:
        overrides["preferred_backend"] = args.backend
    if args.max_fps is not None:
        overrides["max_fps"] = args.max_fps
    if overrides:
        settings = settings.model_copy(update=overrides)

    source_factory = None
    if args.video:
        def source_factory():
            return VideoFileFrameSource(args.video)

    overlay = None if args.no_window else OpenCVOverlay()
    engine = build_engine(settings, source_factory=source_factory, overlay=overlay)
    if overlay is not None:
        overlay.on_quit = engine.stop

    finished = asyncio.Event()
    last_message: Optional[str] = None

    def on_update(snapshot: MonitorSnapshot) -> None:
        nonlocal last_message
        feedback = snapshot.current_feedback
        if feedback is not None and feedback.message != last_message:
            last_message = feedback.message
            logger.info("[%s] %s (%.0f%%)", feedback.severity.value, feedback.message, feedback.confidence * 100)
        if snapshot.state is EngineState.IDLE:
            finished.set()

    engine.subscribe(on_update)
    if args.exercise:
        engine.pin_exercise(args.exercise)

    try:
        await engine.start(authenticated=args.authenticated)
        if not engine.is_running:
            print(f"Monitoring did not start: {engine.status}", file=sys.stderr)
            return 1
        finished.clear()
        try:
            await asyncio.wait_for(finished.wait(), timeout=args.duration)
        except asyncio.TimeoutError:
            logger.info("Duration reached, stopping.")
    finally:
        engine.stop()
        stats = engine.session_stats
        engine.close()

    print("\n✅ Session complete")
    print(json.dumps(stats.model_dump(), indent=2))
    return 0


def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(name)s | %(message)s")
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run_monitor(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
