# repcounter/runtime/cli.py
from __future__ import annotations
import argparse
import sys
import time

from repcounter.common import settings
from repcounter.counter.session import RepSessionManager
from repcounter.counter.state_machine import EXERCISES


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="repcounter", description="Count push-ups or squats from a webcam.")
    p.add_argument("--exercise", choices=EXERCISES, default="pushup")
    p.add_argument("--camera", type=int, default=settings.CAMERA_INDEX, help="OpenCV camera index")
    p.add_argument("--show", action="store_true", help="open a preview window with the skeleton overlay")
    p.add_argument("--up-angle", type=float, default=None)
    p.add_argument("--down-angle", type=float, default=None)
    p.add_argument("--up-frames", type=int, default=None, help="consecutive up frames needed to count")
    p.add_argument("--no-store", action="store_true", help="do not write the session to the database")
    p.add_argument("--log-level", default=settings.LOG_LEVEL)
    return p


def main(argv=None):
    args = build_parser().parse_args(argv)
    settings.setup_logging(args.log_level)

    overrides = {}
    if args.up_angle is not None:
        overrides["up_angle"] = args.up_angle
    if args.down_angle is not None:
        overrides["down_angle"] = args.down_angle
    if args.up_frames is not None:
        overrides["required_up_frames"] = args.up_frames

    mgr = RepSessionManager(persist=not args.no_store)

    def on_event(ev: dict):
        if ev.get("type") == "rep":
            print(f"rep {ev['count']}", flush=True)
        elif ev.get("type") == "trace" and "error" in ev.get("msg", ""):
            print(ev["msg"], file=sys.stderr, flush=True)

    mgr.set_event_sink(on_event)
    mgr.start(args.exercise, source="camera", camera_index=args.camera, show_window=args.show, **overrides)
    pipe = mgr.active_pipeline

    print(f"Counting {args.exercise}s. Press Ctrl+C (or q in the window) to finish.", flush=True)
    if not pipe.wait_ready(timeout=15.0):
        print("Pose model not ready yet; waiting for a body in view...", flush=True)
    try:
        while pipe.is_alive():
            time.sleep(0.2)
    except KeyboardInterrupt:
        print("\nExiting…", flush=True)

    summary = mgr.stop()
    if summary is None:
        return 1
    print(
        f"{summary.exercise}: {summary.count} reps in {summary.duration_seconds:.1f}s "
        f"({summary.avg_time_per_rep:.2f}s/rep)",
        flush=True,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
