from __future__ import annotations
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import cv2
import numpy as np
import mediapipe as mp

from repcounter.counter.landmarks import LandmarkSet, landmarks_from_results
from repcounter.counter.pose_source import PoseSource

logger = logging.getLogger(__name__)


class MediaPipePoseSource(PoseSource):
    """
    MediaPipe Pose behind the PoseSource interface.

    Inference runs on a single worker thread so frames are processed one at
    a time and in submission order.
    """
    def __init__(self, model_complexity: int = 0, min_detection_confidence: float = 0.5,
                 min_tracking_confidence: float = 0.5):
        self.model_complexity = model_complexity
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.pose = None
        self._closed = False
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pose")

    def _create(self):
        mp_pose = mp.solutions.pose
        return mp_pose.Pose(
            model_complexity=self.model_complexity,
            smooth_landmarks=True,
            enable_segmentation=False,
            min_detection_confidence=self.min_detection_confidence,
            min_tracking_confidence=self.min_tracking_confidence,
        )

    async def initialize(self) -> None:
        if self.pose is not None:
            return
        loop = asyncio.get_running_loop()
        self.pose = await loop.run_in_executor(self._executor, self._create)
        logger.info("mediapipe pose ready (model_complexity=%d)", self.model_complexity)

    def _process_sync(self, frame: np.ndarray) -> Optional[LandmarkSet]:
        pose = self.pose
        if pose is None:
            return None
        image = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        image.flags.writeable = False
        res = pose.process(image)
        return landmarks_from_results(res)

    async def process(self, frame: np.ndarray) -> Optional[LandmarkSet]:
        if frame is None:
            return None
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._process_sync, frame)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        pose, self.pose = self.pose, None
        if pose is not None:
            # queued behind any in-flight inference
            self._executor.submit(pose.close)
        self._executor.shutdown(wait=False)
