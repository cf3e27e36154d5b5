from __future__ import annotations
import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Literal, Optional

logger = logging.getLogger(__name__)

Exercise = Literal["pushup", "squat"]
EXERCISES = ("pushup", "squat")


class UnknownExerciseError(ValueError):
    pass


class RepState(str, Enum):
    UNKNOWN = "unknown"
    UP = "up"       # joint extended, resting position
    DOWN = "down"   # joint flexed, bottom position


@dataclass
class RepConfig:
    exercise: Exercise
    # Hysteresis: up_angle > down_angle leaves a dead zone between them
    up_angle: float = 160.0
    down_angle: float = 100.0
    # Debounce: consecutive up frames needed before Down -> Up counts
    required_up_frames: int = 1
    # When True a down frame must also be below down_angle (strict depth)
    down_requires_angle: bool = False
    # Smoothing (weight kept on history)
    smoothing_factor: float = 0.8
    # Visibility gate
    gate_on_legs: bool = True
    visibility_threshold: float = 0.3
    visibility_tolerance: int = 2
    # Squat torso-orientation filter
    torso_filter: bool = False
    torso_max_delta: float = 15.0
    torso_smoothing: float = 0.8

    def __post_init__(self):
        if self.up_angle <= self.down_angle:
            raise ValueError("up_angle must be greater than down_angle")
        if self.required_up_frames < 1:
            raise ValueError("required_up_frames must be at least 1")

    @classmethod
    def for_exercise(cls, exercise: str, **overrides) -> "RepConfig":
        if exercise == "pushup":
            cfg = cls(exercise="pushup", required_up_frames=1)
        elif exercise == "squat":
            cfg = cls(exercise="squat", required_up_frames=2, torso_filter=True)
        else:
            raise UnknownExerciseError(f"unknown exercise {exercise!r}, expected one of {EXERCISES}")
        return replace(cfg, **overrides)


@dataclass
class DetectorState:
    phase: RepState = RepState.UNKNOWN
    count: int = 0
    consecutive_up_frames: int = 0
    frames_below_visibility: int = 0
    last_angle: float = 0.0


@dataclass
class FrameReading:
    """Per-frame classification handed to the state machine."""
    angle: float
    is_up: bool
    is_down: bool


class RepStateMachine:
    """
    Unknown -> Up <-> Down machine with debounced counting.

    The only transition that increments the count is Down -> Up, and it
    fires only after `required_up_frames` consecutive up frames, so each
    down->up cycle counts exactly once no matter how long either phase lasts.
    """
    def __init__(self, cfg: RepConfig, debug_cb: Optional[Callable[[dict], None]] = None):
        self.cfg = cfg
        self._dbg = debug_cb or (lambda *_: None)
        self.state = DetectorState()

    @property
    def count(self) -> int:
        return self.state.count

    @property
    def phase(self) -> RepState:
        return self.state.phase

    def reset(self):
        self.state = DetectorState()

    def _enter_state(self, new_phase: RepState):
        if new_phase != self.state.phase:
            self.state.phase = new_phase
            self._dbg({"type": "trace", "msg": f"{self.cfg.exercise}: state→{new_phase.value}"})

    def step(self, reading: FrameReading) -> bool:
        """Advance one classified frame. Returns True when a rep was counted."""
        if math.isnan(reading.angle):
            return False
        st = self.state
        st.last_angle = reading.angle

        if reading.is_up:
            st.consecutive_up_frames += 1
        else:
            st.consecutive_up_frames = 0

        if st.phase == RepState.UNKNOWN:
            self._enter_state(RepState.UP if reading.is_up else RepState.DOWN)
        elif st.phase == RepState.UP:
            if reading.is_down:
                self._enter_state(RepState.DOWN)
        elif st.phase == RepState.DOWN:
            if st.consecutive_up_frames >= self.cfg.required_up_frames:
                self._enter_state(RepState.UP)
                st.count += 1
                st.consecutive_up_frames = 0
                logger.debug("%s rep %d at %.1f°", self.cfg.exercise, st.count, reading.angle)
                return True
        return False
