# repcounter/counter/web_pipeline.py
from __future__ import annotations
from typing import Callable, Optional, Sequence

from repcounter.counter.detector import RepDetector, make_detector
from repcounter.counter.pose_source import PassthroughPoseSource


class WebLandmarkPipeline:
    """
    A minimal 'pipeline' that consumes landmark sets computed in the browser.
    No camera, no threads. Just await push_landmarks(landmarks).
    """
    def __init__(
        self,
        exercise: str,
        on_rep: Callable[[int], None],
        debug_cb: Optional[Callable[[dict], None]] = None,
        **overrides,
    ):
        self.on_rep = on_rep
        self.debug_cb = debug_cb
        self.detector: RepDetector = make_detector(exercise, PassthroughPoseSource(), debug_cb=debug_cb, **overrides)
        self._running = True

    # keep for API parity with CameraPipeline
    def start(self):
        self._running = True

    def stop(self):
        self._running = False
        self.detector.cleanup()

    def pause(self):
        self._running = False

    def resume(self):
        if not self.detector.closed:
            self._running = True

    def request_reset(self):
        # frames arrive on the caller's loop, so the reset can happen right away
        self.detector.reset()

    async def push_landmarks(self, landmarks: Sequence) -> int:
        """Feed one landmark set (Landmark objects or x/y/z/visibility dicts)."""
        if not self._running:
            return self.detector.count
        before = self.detector.count
        count = await self.detector.detect(landmarks)
        if count > before:
            if self.debug_cb:
                self.debug_cb({"type": "trace", "msg": f"rep++ ({self.detector.get_last_angle():.1f}°)"})
            self.on_rep(count)
        return count
