import math

import pytest

from repcounter.counter.landmarks import LOWER_BODY_LANDMARKS, NUM_POSE_LANDMARKS, Landmark, PoseLandmark as P
from repcounter.counter.pose_source import PoseSource


def _rotate(ux, uy, deg):
    r = math.radians(deg)
    return (ux * math.cos(r) - uy * math.sin(r), ux * math.sin(r) + uy * math.cos(r))


def _chain(proximal, medial, angle, length=0.1):
    """Distal point so that the angle at `medial` equals `angle`."""
    ux, uy = proximal[0] - medial[0], proximal[1] - medial[1]
    n = math.hypot(ux, uy)
    dx, dy = _rotate(ux / n, uy / n, angle)
    return (medial[0] + dx * length, medial[1] + dy * length)


def base_pose(visibility=0.9, leg_visibility=0.9):
    lms = []
    for i in range(NUM_POSE_LANDMARKS):
        lms.append(Landmark(x=0.1 + 0.02 * i, y=0.1 + 0.01 * i, z=0.0, visibility=visibility))
    lms = [
        Landmark(lm.x, lm.y, lm.z, leg_visibility) if i in LOWER_BODY_LANDMARKS else lm
        for i, lm in enumerate(lms)
    ]
    return lms


def pushup_pose(angle, shoulder_above=True, leg_visibility=0.9, drop=()):
    """Both arms at `angle`; shoulder above or below the elbow in image coordinates."""
    lms = base_pose(leg_visibility=leg_visibility)
    for side, x0 in ((0, 0.4), (1, 0.6)):
        shoulder_i = P.LEFT_SHOULDER if side == 0 else P.RIGHT_SHOULDER
        elbow_i = P.LEFT_ELBOW if side == 0 else P.RIGHT_ELBOW
        wrist_i = P.LEFT_WRIST if side == 0 else P.RIGHT_WRIST
        elbow = (x0, 0.5)
        shoulder = (x0, 0.4) if shoulder_above else (x0, 0.6)
        wrist = _chain(shoulder, elbow, angle)
        lms[shoulder_i] = Landmark(shoulder[0], shoulder[1], 0.0, 0.9)
        lms[elbow_i] = Landmark(elbow[0], elbow[1], 0.0, 0.9)
        lms[wrist_i] = Landmark(wrist[0], wrist[1], 0.0, 0.9)
    for i in drop:
        lms[i] = None
    return lms


def squat_pose(angle, hip_above=True, leg_visibility=0.9, torso_lean=0.0, drop=()):
    """Both legs at knee `angle`; shoulders above the hips, leaning `torso_lean` degrees."""
    lms = base_pose(leg_visibility=leg_visibility)
    for side, x0 in ((0, 0.45), (1, 0.55)):
        hip_i = P.LEFT_HIP if side == 0 else P.RIGHT_HIP
        knee_i = P.LEFT_KNEE if side == 0 else P.RIGHT_KNEE
        ankle_i = P.LEFT_ANKLE if side == 0 else P.RIGHT_ANKLE
        shoulder_i = P.LEFT_SHOULDER if side == 0 else P.RIGHT_SHOULDER
        knee = (x0, 0.7)
        hip = (x0, 0.55) if hip_above else (x0, 0.75)
        ankle = _chain(hip, knee, angle, length=0.15)
        dx, dy = _rotate(0.0, -0.25, torso_lean)
        shoulder = (hip[0] + dx, hip[1] + dy)
        lms[hip_i] = Landmark(hip[0], hip[1], 0.0, leg_visibility)
        lms[knee_i] = Landmark(knee[0], knee[1], 0.0, leg_visibility)
        lms[ankle_i] = Landmark(ankle[0], ankle[1], 0.0, leg_visibility)
        lms[shoulder_i] = Landmark(shoulder[0], shoulder[1], 0.0, 0.9)
    for i in drop:
        lms[i] = None
    return lms


class FakePoseSource(PoseSource):
    """Treats every frame as its own result; records calls."""

    def __init__(self, fail_init=False, fail_on=None):
        self.fail_init = fail_init
        self.fail_on = fail_on or set()
        self.init_calls = 0
        self.process_calls = 0
        self.close_calls = 0

    async def initialize(self):
        self.init_calls += 1
        if self.fail_init:
            raise RuntimeError("model download failed")

    async def process(self, frame):
        self.process_calls += 1
        if self.process_calls in self.fail_on:
            raise ValueError("malformed frame")
        return frame

    def close(self):
        self.close_calls += 1


@pytest.fixture
def fake_source():
    return FakePoseSource()


@pytest.fixture
def tmp_db(tmp_path):
    from repcounter.data import db

    db.configure(tmp_path / "repcounter.db")
    yield db
    db.configure(tmp_path / "closed.db")
