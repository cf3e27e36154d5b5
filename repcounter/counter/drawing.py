from __future__ import annotations

import cv2
import numpy as np
import mediapipe as mp

from repcounter.counter.detector import RepDetector
from repcounter.counter.landmarks import UNIMPORTANT_LANDMARKS

CONNECTIONS = [
    (a, b) for a, b in mp.solutions.pose.POSE_CONNECTIONS
    if a not in UNIMPORTANT_LANDMARKS and b not in UNIMPORTANT_LANDMARKS
]
LINE_COLOR = (66, 117, 245)
POINT_COLOR = (230, 66, 245)


def draw_overlay(frame: np.ndarray, detector: RepDetector) -> np.ndarray:
    """Skeleton (no face/fingers), count, phase and hint drawn in place."""
    h, w = frame.shape[:2]
    landmarks = detector.get_landmarks()
    if landmarks:
        pts = {
            i: (int(lm.x * w), int(lm.y * h))
            for i, lm in enumerate(landmarks)
            if lm is not None and i not in UNIMPORTANT_LANDMARKS
        }
        for a, b in CONNECTIONS:
            if a in pts and b in pts:
                cv2.line(frame, pts[a], pts[b], LINE_COLOR, 2)
        for p in pts.values():
            cv2.circle(frame, p, 3, POINT_COLOR, -1)

    cv2.putText(frame, f"{detector.cfg.exercise}: {detector.count}", (20, 40),
                cv2.FONT_HERSHEY_SIMPLEX, 1, (0, 255, 0), 2)
    status = detector.get_state().value if detector.is_ready() else "waiting for pose"
    hint = detector.feedback_hint()
    if hint:
        status = f"{status} - {hint}"
    cv2.putText(frame, status, (20, 75), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2)
    return frame
