from __future__ import annotations
import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Iterable, List, Optional, Sequence, Tuple

# Substituted when a pose model does not report a channel.
DEFAULT_Z = 0.0
DEFAULT_VISIBILITY = 0.5


@dataclass(frozen=True)
class Landmark:
    x: float
    y: float
    z: Optional[float] = None
    visibility: Optional[float] = None

    @property
    def xy(self) -> Tuple[float, float]:
        return (self.x, self.y)


LandmarkSet = Sequence[Optional[Landmark]]


class PoseLandmark(IntEnum):
    """33-point MediaPipe Pose topology."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


NUM_POSE_LANDMARKS = len(PoseLandmark)
POSE_LANDMARK_NAMES = [lm.name for lm in PoseLandmark]

# Face and finger points, not drawn and never used for counting
UNIMPORTANT_LANDMARKS = frozenset(range(0, 11)) | frozenset(range(17, 23))

LOWER_BODY_LANDMARKS = (
    PoseLandmark.LEFT_HIP, PoseLandmark.RIGHT_HIP,
    PoseLandmark.LEFT_KNEE, PoseLandmark.RIGHT_KNEE,
    PoseLandmark.LEFT_ANKLE, PoseLandmark.RIGHT_ANKLE,
    PoseLandmark.LEFT_HEEL, PoseLandmark.RIGHT_HEEL,
    PoseLandmark.LEFT_FOOT_INDEX, PoseLandmark.RIGHT_FOOT_INDEX,
)


def get(landmarks: LandmarkSet, index: int) -> Optional[Landmark]:
    """Positional lookup that tolerates short sets."""
    if index < 0 or index >= len(landmarks):
        return None
    return landmarks[index]


def has_all(landmarks: LandmarkSet, indices: Iterable[int]) -> bool:
    return all(get(landmarks, i) is not None for i in indices)


def _finite(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def landmark_from_dict(data: Optional[dict]) -> Optional[Landmark]:
    """Build a Landmark from a JSON-ish dict; anything unusable becomes None."""
    if not data:
        return None
    x = _finite(data.get("x"))
    y = _finite(data.get("y"))
    if x is None or y is None:
        return None
    vis = data.get("visibility", data.get("score"))
    return Landmark(x=x, y=y, z=_finite(data.get("z")), visibility=_finite(vis))


def landmarks_from_dicts(items: Iterable[Optional[dict]]) -> List[Optional[Landmark]]:
    return [landmark_from_dict(d) for d in items]


def landmarks_from_results(results) -> Optional[List[Optional[Landmark]]]:
    """Convert a MediaPipe Pose `results` object; None when no body was found."""
    pose_landmarks = getattr(results, "pose_landmarks", None)
    if pose_landmarks is None:
        return None
    out: List[Optional[Landmark]] = []
    for lm in pose_landmarks.landmark:
        out.append(Landmark(
            x=float(lm.x),
            y=float(lm.y),
            z=_finite(getattr(lm, "z", None)),
            visibility=_finite(getattr(lm, "visibility", None)),
        ))
    return out


def landmarks_to_dicts(landmarks: LandmarkSet) -> List[Optional[dict]]:
    return [
        None if lm is None else {"x": lm.x, "y": lm.y, "z": lm.z, "visibility": lm.visibility}
        for lm in landmarks
    ]
