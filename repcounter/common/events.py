from __future__ import annotations
from dataclasses import asdict, dataclass
from enum import Enum


class EventType(str, Enum):
    SESSION_STARTED = "session_started"
    SESSION_PAUSED = "session_paused"
    SESSION_RESUMED = "session_resumed"
    SESSION_STOPPED = "session_stopped"
    REP = "rep"
    TRACE = "trace"


@dataclass
class SessionEvent:
    type: EventType
    session_id: str
    exercise: str
    ts: float
    count: int = 0

    def to_dict(self) -> dict:
        d = asdict(self)
        d["type"] = self.type.value
        return d


@dataclass
class RepEvent:
    type: EventType
    session_id: str
    ts: float
    count: int
    angle: float
    exercise: str

    def to_dict(self) -> dict:
        d = asdict(self)
        d["type"] = self.type.value
        return d


@dataclass
class SessionSummary:
    """Completed-session totals handed to storage. Built by the caller, not the detector."""
    count: int
    duration_seconds: float
    avg_time_per_rep: float
    exercise: str

    @classmethod
    def build(cls, count: int, duration_seconds: float, exercise: str) -> "SessionSummary":
        duration = max(0.0, float(duration_seconds))
        avg = duration / count if count > 0 else 0.0
        return cls(count=int(count), duration_seconds=duration, avg_time_per_rep=avg, exercise=exercise)

    def to_dict(self) -> dict:
        return asdict(self)
