from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from repcounter.counter.landmarks import Landmark, LandmarkSet, landmarks_from_dicts


class PoseSource(ABC):
    """
    External pose model seen from the detector.

    process() is awaited once per submitted frame and yields the landmark
    set for that frame (None when no body was found). Results come back in
    submission order.
    """

    async def initialize(self) -> None:
        return None

    @abstractmethod
    async def process(self, frame: Any) -> Optional[LandmarkSet]:
        ...

    def close(self) -> None:
        return None


class PassthroughPoseSource(PoseSource):
    """
    For landmarks already computed elsewhere (e.g. MediaPipe running in the
    browser). A frame is either a landmark set or a list of landmark dicts.
    """

    async def process(self, frame: Any) -> Optional[LandmarkSet]:
        if frame is None:
            return None
        items: List[Any] = list(frame)
        if items and all(i is None or isinstance(i, Landmark) for i in items):
            return items
        return landmarks_from_dicts(items)
