from __future__ import annotations
import math
from typing import Optional, Tuple

from repcounter.counter.geometry import average_angle, joint_angle, midpoint, vertical_orientation
from repcounter.counter.landmarks import LandmarkSet, PoseLandmark as P, get, has_all
from repcounter.counter.state_machine import FrameReading, RepConfig


class ExerciseClassifier:
    """
    Turns one (smoothed, gated) landmark set into a FrameReading.

    Subclasses name the two joint chains (proximal, medial, distal) whose
    angle is averaged, e.g. shoulder-elbow-wrist for push-ups.
    """
    left_chain: Tuple[int, int, int] = ()
    right_chain: Tuple[int, int, int] = ()

    def __init__(self, cfg: RepConfig):
        self.cfg = cfg

    @property
    def required_indices(self) -> Tuple[int, ...]:
        return tuple(self.left_chain) + tuple(self.right_chain)

    @property
    def min_length(self) -> int:
        return max(self.required_indices) + 1

    def reset(self):
        pass

    def accept(self, landmarks: LandmarkSet) -> bool:
        """Extra per-exercise frame filter; rejected frames do not advance state."""
        return True

    def classify(self, landmarks: LandmarkSet) -> Optional[FrameReading]:
        if not has_all(landmarks, self.required_indices):
            return None
        lp, lm, ld = (landmarks[i] for i in self.left_chain)
        rp, rm, rd = (landmarks[i] for i in self.right_chain)

        angle = average_angle(
            joint_angle(lp.xy, lm.xy, ld.xy),
            joint_angle(rp.xy, rm.xy, rd.xy),
        )
        if math.isnan(angle):
            return None

        # image y grows downward: smaller y is higher up
        proximal_y = (lp.y + rp.y) / 2.0
        medial_y = (lm.y + rm.y) / 2.0

        is_up = angle > self.cfg.up_angle and proximal_y < medial_y
        is_down = proximal_y > medial_y
        if self.cfg.down_requires_angle:
            is_down = is_down and angle < self.cfg.down_angle
        return FrameReading(angle=angle, is_up=is_up, is_down=is_down)


class PushupClassifier(ExerciseClassifier):
    left_chain = (P.LEFT_SHOULDER, P.LEFT_ELBOW, P.LEFT_WRIST)
    right_chain = (P.RIGHT_SHOULDER, P.RIGHT_ELBOW, P.RIGHT_WRIST)


class SquatClassifier(ExerciseClassifier):
    left_chain = (P.LEFT_HIP, P.LEFT_KNEE, P.LEFT_ANKLE)
    right_chain = (P.RIGHT_HIP, P.RIGHT_KNEE, P.RIGHT_ANKLE)

    def __init__(self, cfg: RepConfig):
        super().__init__(cfg)
        self._torso_ema: Optional[float] = None
        self._accepted_torso: Optional[float] = None

    def reset(self):
        self._torso_ema = None
        self._accepted_torso = None

    @property
    def torso_angle(self) -> Optional[float]:
        return self._accepted_torso

    def _torso_orientation(self, landmarks: LandmarkSet) -> float:
        ls, rs = get(landmarks, P.LEFT_SHOULDER), get(landmarks, P.RIGHT_SHOULDER)
        lh, rh = get(landmarks, P.LEFT_HIP), get(landmarks, P.RIGHT_HIP)
        if ls is None or rs is None or lh is None or rh is None:
            return math.nan
        return vertical_orientation(midpoint(ls.xy, rs.xy), midpoint(lh.xy, rh.xy))

    def accept(self, landmarks: LandmarkSet) -> bool:
        """Reject frames where the torso turned instead of moving vertically."""
        if not self.cfg.torso_filter:
            return True
        raw = self._torso_orientation(landmarks)
        if math.isnan(raw):
            # no shoulders this frame; nothing to compare
            return True
        a = self.cfg.torso_smoothing
        smoothed = raw if self._torso_ema is None else self._torso_ema * a + raw * (1.0 - a)
        self._torso_ema = smoothed
        if self._accepted_torso is not None and abs(smoothed - self._accepted_torso) > self.cfg.torso_max_delta:
            return False
        self._accepted_torso = smoothed
        return True


CLASSIFIERS = {
    "pushup": PushupClassifier,
    "squat": SquatClassifier,
}
