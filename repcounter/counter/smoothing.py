from __future__ import annotations
from typing import List, Optional

import numpy as np

from repcounter.counter.landmarks import DEFAULT_VISIBILITY, DEFAULT_Z, Landmark, LandmarkSet


class LandmarkSmoother:
    """
    Exponential moving average over successive landmark sets.

    Each channel (x, y, z, visibility) of each index is blended on its own:
        smoothed = smoothed * alpha + raw * (1 - alpha)
    so alpha is the weight kept on history. An index seen for the first time
    since reset() is copied straight from the raw set.
    """
    def __init__(self, alpha: float = 0.8):
        if not 0.0 <= alpha < 1.0:
            raise ValueError(f"smoothing factor must be in [0, 1), got {alpha}")
        self.alpha = alpha
        self._buffer: Optional[np.ndarray] = None  # (n, 4)
        self._seen: Optional[np.ndarray] = None    # (n,) bool

    def reset(self):
        self._buffer = None
        self._seen = None

    @property
    def initialized(self) -> bool:
        return self._buffer is not None

    @staticmethod
    def _to_array(raw: LandmarkSet) -> np.ndarray:
        arr = np.full((len(raw), 4), np.nan, dtype=float)
        for i, lm in enumerate(raw):
            if lm is None:
                continue
            arr[i, 0] = lm.x
            arr[i, 1] = lm.y
            arr[i, 2] = DEFAULT_Z if lm.z is None else lm.z
            arr[i, 3] = DEFAULT_VISIBILITY if lm.visibility is None else lm.visibility
        return arr

    def smooth(self, raw: LandmarkSet) -> List[Optional[Landmark]]:
        arr = self._to_array(raw)
        present = ~np.isnan(arr).any(axis=1)

        # lazily allocate; a different topology starts over
        if self._buffer is None or self._buffer.shape != arr.shape:
            self._buffer = np.zeros_like(arr)
            self._seen = np.zeros(len(arr), dtype=bool)

        blend = present & self._seen
        fresh = present & ~self._seen
        self._buffer[blend] = self._buffer[blend] * self.alpha + arr[blend] * (1.0 - self.alpha)
        self._buffer[fresh] = arr[fresh]
        self._seen |= present

        out: List[Optional[Landmark]] = []
        for i, ok in enumerate(present):
            if not ok:
                out.append(None)
                continue
            x, y, z, vis = (float(v) for v in self._buffer[i])
            out.append(Landmark(x=x, y=y, z=z, visibility=vis))
        return out
