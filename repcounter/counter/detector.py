from __future__ import annotations
import logging
import math
from typing import Any, Callable, List, Optional

from repcounter.counter.exercises import CLASSIFIERS, ExerciseClassifier, PushupClassifier, SquatClassifier
from repcounter.counter.landmarks import Landmark, LandmarkSet
from repcounter.counter.pose_source import PoseSource
from repcounter.counter.smoothing import LandmarkSmoother
from repcounter.counter.state_machine import DetectorState, RepConfig, RepState, RepStateMachine
from repcounter.counter.visibility import VisibilityGate

logger = logging.getLogger(__name__)

HINT_GO_LOWER = "go lower"
HINT_GO_HIGHER = "go higher"


class RepDetector:
    """
    Owns a pose source and runs every result through
    smoothing -> visibility gate -> classifier -> state machine.

    One instance per exercise and camera session; instances never share
    state. detect() must not be awaited concurrently on the same instance;
    overlapping calls are dropped.
    """
    def __init__(
        self,
        pose_source: PoseSource,
        cfg: RepConfig,
        classifier: Optional[ExerciseClassifier] = None,
        debug_cb: Optional[Callable[[dict], None]] = None,
    ):
        self.cfg = cfg
        self.pose_source = pose_source
        self.classifier = classifier or CLASSIFIERS[cfg.exercise](cfg)
        self.smoother = LandmarkSmoother(cfg.smoothing_factor)
        self.gate = VisibilityGate(cfg.visibility_threshold, cfg.visibility_tolerance)
        self.machine = RepStateMachine(cfg, debug_cb=debug_cb)

        self._landmarks: Optional[List[Optional[Landmark]]] = None
        self._initialized = False
        self._init_failed = False
        self._ready = False
        self._busy = False
        self._closed = False

    # --- lifecycle

    async def initialize(self) -> bool:
        if self._initialized:
            return True
        if self._init_failed or self._closed:
            return False
        try:
            await self.pose_source.initialize()
        except Exception:
            self._init_failed = True
            logger.exception("%s: pose source failed to initialize", self.cfg.exercise)
            return False
        self._initialized = True
        return True

    async def detect(self, frame: Any) -> int:
        """Submit one frame; returns the count after its result was applied."""
        if self._closed:
            logger.debug("%s: detect() after cleanup ignored", self.cfg.exercise)
            return self.count
        if self._busy:
            logger.debug("%s: frame dropped, previous frame still in flight", self.cfg.exercise)
            return self.count

        self._busy = True
        try:
            if not await self.initialize():
                return self.count
            landmarks = await self.pose_source.process(frame)
        except Exception as e:
            logger.warning("%s: pose source error, frame skipped: %s", self.cfg.exercise, e)
            return self.count
        finally:
            self._busy = False

        if self._closed or landmarks is None:
            return self.count
        self._ready = True
        return self.process_landmarks(landmarks)

    def process_landmarks(self, landmarks: LandmarkSet) -> int:
        """Run one landmark set through the pipeline and return the count."""
        if landmarks is None or len(landmarks) < self.classifier.min_length:
            return self.count

        smoothed = self.smoother.smooth(landmarks)
        self._landmarks = smoothed

        if self.cfg.gate_on_legs:
            admitted = self.gate.admit(smoothed)
            self.machine.state.frames_below_visibility = self.gate.misses
            if not admitted:
                return self.count

        reading = self.classifier.classify(smoothed)
        if reading is None:
            return self.count
        if not self.classifier.accept(smoothed):
            logger.debug("%s: frame rejected by %s filter", self.cfg.exercise, type(self.classifier).__name__)
            return self.count

        self.machine.step(reading)
        return self.count

    def reset(self):
        self.machine.reset()
        self.smoother.reset()
        self.gate.reset()
        self.classifier.reset()
        self._landmarks = None

    def cleanup(self):
        if self._closed:
            return
        self._closed = True
        try:
            self.pose_source.close()
        except Exception:
            logger.exception("%s: error while closing pose source", self.cfg.exercise)

    # --- read-only introspection

    @property
    def count(self) -> int:
        return self.machine.count

    def get_count(self) -> int:
        return self.count

    def get_state(self) -> RepState:
        return self.machine.phase

    def get_detector_state(self) -> DetectorState:
        return self.machine.state

    def get_last_angle(self) -> float:
        return self.machine.state.last_angle

    def get_landmarks(self) -> Optional[List[Optional[Landmark]]]:
        return self._landmarks

    @property
    def up_angle_threshold(self) -> float:
        return self.cfg.up_angle

    @property
    def down_angle_threshold(self) -> float:
        return self.cfg.down_angle

    def is_ready(self) -> bool:
        return self._ready

    @property
    def closed(self) -> bool:
        return self._closed

    def feedback_hint(self) -> str:
        """On-screen nudge from the last angle; not used for counting."""
        angle = self.get_last_angle()
        if math.isnan(angle):
            return ""
        phase = self.get_state()
        if phase == RepState.UP and angle > self.cfg.down_angle:
            return HINT_GO_LOWER
        if phase == RepState.DOWN and angle < self.cfg.up_angle:
            return HINT_GO_HIGHER
        return ""


class PushupDetector(RepDetector):
    def __init__(self, pose_source: PoseSource, cfg: Optional[RepConfig] = None,
                 debug_cb: Optional[Callable[[dict], None]] = None):
        cfg = cfg or RepConfig.for_exercise("pushup")
        super().__init__(pose_source, cfg, PushupClassifier(cfg), debug_cb=debug_cb)


class SquatDetector(RepDetector):
    def __init__(self, pose_source: PoseSource, cfg: Optional[RepConfig] = None,
                 debug_cb: Optional[Callable[[dict], None]] = None):
        cfg = cfg or RepConfig.for_exercise("squat")
        super().__init__(pose_source, cfg, SquatClassifier(cfg), debug_cb=debug_cb)


def make_detector(exercise: str, pose_source: PoseSource, debug_cb=None, **overrides) -> RepDetector:
    cfg = RepConfig.for_exercise(exercise, **overrides)
    if exercise == "pushup":
        return PushupDetector(pose_source, cfg, debug_cb=debug_cb)
    return SquatDetector(pose_source, cfg, debug_cb=debug_cb)
