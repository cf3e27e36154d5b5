from __future__ import annotations
import asyncio
import logging
import threading
import time
from typing import Callable, Optional

import cv2

from repcounter.counter.detector import RepDetector

logger = logging.getLogger(__name__)


class CameraPipeline(threading.Thread):
    """
    Webcam loop: read a frame, await detector.detect(frame), report new reps.

    The thread owns its event loop and the detector for its whole life, so
    the detector is never touched from two threads at once.
    """
    def __init__(
            self,
            detector: RepDetector,
            on_rep: Callable[[int], None],
            camera_index: int = 0,
            show_window: bool = False,
            on_error: Optional[Callable[[str], None]] = None,
    ):
        super().__init__(daemon=True)
        self.detector = detector
        self.on_rep = on_rep
        self.on_error = on_error
        self.camera_index = camera_index
        self.show_window = show_window
        self._stop_event = threading.Event()
        self._paused = threading.Event()
        self._reset_requested = threading.Event()
        self.cap = None

    def run(self):
        try:
            asyncio.run(self._loop())
        except Exception as e:
            logger.exception("camera pipeline stopped on error")
            if self.on_error:
                try:
                    self.on_error(str(e))
                except Exception:
                    logger.exception("on_error callback failed")
        finally:
            if self.cap is not None:
                self.cap.release()
            self.detector.cleanup()
            if self.show_window:
                try:
                    cv2.destroyAllWindows()
                except cv2.error:
                    pass

    async def _loop(self):
        self.cap = cv2.VideoCapture(self.camera_index)
        if not self.cap.isOpened():
            raise RuntimeError(f"Webcam {self.camera_index} not available")

        if self.show_window:
            try:
                cv2.namedWindow("repcounter", cv2.WINDOW_NORMAL)
            except cv2.error:
                self.show_window = False

        last = self.detector.count
        while not self._stop_event.is_set():
            if self._reset_requested.is_set():
                self._reset_requested.clear()
                self.detector.reset()
                last = self.detector.count
            if self._paused.is_set():
                await asyncio.sleep(0.05)
                continue
            ok, frame = self.cap.read()
            if not ok:
                await asyncio.sleep(0.01)
                continue

            count = await self.detector.detect(frame)
            if count > last:
                last = count
                self.on_rep(count)

            if self.show_window:
                self._show(frame)

    def _show(self, frame):
        # drawing pulls in mediapipe connections; only needed with a window
        from repcounter.counter.drawing import draw_overlay

        try:
            draw_overlay(frame, self.detector)
            cv2.imshow("repcounter", frame)
            if cv2.waitKey(1) & 0xFF == ord("q"):
                self.stop()
        except cv2.error:
            self.show_window = False

    def stop(self):
        self._stop_event.set()

    def pause(self):
        self._paused.set()

    def resume(self):
        self._paused.clear()

    def request_reset(self):
        """Ask the camera thread to reset its detector before the next frame."""
        self._reset_requested.set()

    def wait_ready(self, timeout: float = 10.0) -> bool:
        t0 = time.monotonic()
        while time.monotonic() - t0 < timeout:
            if self.detector.is_ready():
                return True
            if not self.is_alive():
                return False
            time.sleep(0.05)
        return False
