from __future__ import annotations
from typing import Iterable, Tuple

from repcounter.counter.landmarks import DEFAULT_VISIBILITY, LOWER_BODY_LANDMARKS, LandmarkSet, get


class VisibilityGate:
    """
    Decides whether a frame may advance the rep state machine.

    A frame is leg-visible when at least one lower-body landmark has
    visibility above `threshold`. Up to `tolerance` consecutive invisible
    frames are still admitted so a single dropped detection does not stall
    a rep; after that frames are rejected until the legs come back.
    """
    def __init__(self, threshold: float = 0.3, tolerance: int = 2,
                 indices: Iterable[int] = LOWER_BODY_LANDMARKS):
        self.threshold = threshold
        self.tolerance = tolerance
        self.indices: Tuple[int, ...] = tuple(int(i) for i in indices)
        self.misses = 0

    def legs_visible(self, landmarks: LandmarkSet) -> bool:
        for i in self.indices:
            lm = get(landmarks, i)
            if lm is None:
                continue
            vis = DEFAULT_VISIBILITY if lm.visibility is None else lm.visibility
            if vis > self.threshold:
                return True
        return False

    def admit(self, landmarks: LandmarkSet) -> bool:
        if self.legs_visible(landmarks):
            self.misses = 0
            return True
        self.misses += 1
        return self.misses <= self.tolerance

    def reset(self):
        self.misses = 0
