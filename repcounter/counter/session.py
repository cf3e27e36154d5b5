from __future__ import annotations
import logging
import time
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Literal, Optional, Sequence, Union

from repcounter.common import settings
from repcounter.common.events import EventType, RepEvent, SessionEvent, SessionSummary
from repcounter.counter.detector import RepDetector, make_detector
from repcounter.counter.state_machine import EXERCISES, UnknownExerciseError
from repcounter.counter.web_pipeline import WebLandmarkPipeline
from repcounter.data import db

if TYPE_CHECKING:
    from repcounter.counter.pipeline import CameraPipeline

logger = logging.getLogger(__name__)

Source = Literal["web", "camera"]
Pipeline = Union[WebLandmarkPipeline, "CameraPipeline"]


@dataclass
class SessionStatus:
    session_id: str
    state: str
    count: int
    exercise: Optional[str] = None
    phase: Optional[str] = None
    last_angle: Optional[float] = None
    hint: str = ""
    ready: bool = False


class RepSessionManager:
    """
    Caller side of the detector: tracks wall-clock duration, builds the
    session summary and hands it to storage. One active session at a time.
    """
    def __init__(self, persist: bool = True, clock: Callable[[], float] = time.monotonic):
        self.persist = persist
        self._clock = clock
        self.active_id: Optional[str] = None
        self.active_exercise: Optional[str] = None
        self.active_pipeline: Optional[Pipeline] = None
        self.count = 0
        self.paused = False
        self._started_at = 0.0
        self._started_clock = 0.0
        self._paused_total = 0.0
        self._paused_at: Optional[float] = None
        self._event_sink: Optional[Callable[[dict], None]] = None

    def set_event_sink(self, sink: Callable[[dict], None]):
        self._event_sink = sink

    def _emit(self, payload: dict):
        if self._event_sink is None:
            return
        try:
            self._event_sink(payload)
        except Exception:
            logger.exception("event sink failed")

    def _emit_debug(self, ev):
        """
        Accepts either a dict like {"type":"trace","msg": "..."} or any object;
        normalizes and forwards to the sink so it appears in the trace panel.
        """
        if isinstance(ev, dict):
            payload = ev
        else:
            payload = {"type": EventType.TRACE.value, "msg": str(ev)}
        self._emit(payload)

    @property
    def detector(self) -> Optional[RepDetector]:
        if self.active_pipeline is None:
            return None
        return self.active_pipeline.detector

    def _on_rep(self, count: int):
        self.count = count
        ts = time.time()
        det = self.detector
        angle = det.get_last_angle() if det is not None else float("nan")
        sid = self.active_id or ""
        if self.persist and sid:
            try:
                db.insert_event(sid, ts, count, angle)
            except Exception:
                logger.exception("could not store rep event")
        self._emit(RepEvent(EventType.REP, sid, ts, count, angle, self.active_exercise or "").to_dict())

    def _on_error(self, msg: str):
        # Called from the camera thread
        logger.error("pipeline error: %s", msg)
        self._emit_debug({"type": "trace", "msg": f"pipeline error: {msg}"})

    def start(self, exercise: str, source: Source = "web", camera_index: Optional[int] = None,
              show_window: bool = False, **overrides):
        if exercise not in EXERCISES:
            raise UnknownExerciseError(f"unknown exercise {exercise!r}, expected one of {EXERCISES}")
        # stop existing session if any
        if self.active_pipeline is not None:
            self.stop(self.active_id)

        sid = str(uuid.uuid4())
        self.active_id = sid
        self.active_exercise = exercise
        self.count = 0
        self.paused = False
        self._started_at = time.time()
        self._started_clock = self._clock()
        self._paused_total = 0.0
        self._paused_at = None

        if self.persist:
            db.insert_session(sid, exercise, self._started_at)

        if source == "camera":
            # opencv and mediapipe are only needed when we own the camera
            from repcounter.counter.mediapipe_source import MediaPipePoseSource
            from repcounter.counter.pipeline import CameraPipeline

            detector = make_detector(
                exercise,
                MediaPipePoseSource(model_complexity=settings.MODEL_COMPLEXITY),
                debug_cb=self._emit_debug,
                **overrides,
            )
            pipe: Pipeline = CameraPipeline(
                detector,
                on_rep=self._on_rep,
                camera_index=settings.CAMERA_INDEX if camera_index is None else camera_index,
                show_window=show_window,
                on_error=self._on_error,
            )
        else:
            pipe = WebLandmarkPipeline(exercise, on_rep=self._on_rep, debug_cb=self._emit_debug, **overrides)

        self.active_pipeline = pipe
        pipe.start()

        logger.info("session %s started: %s (%s)", sid, exercise, source)
        self._emit(SessionEvent(EventType.SESSION_STARTED, sid, exercise, self._started_at).to_dict())
        return sid, f"started {exercise}"

    async def push_landmarks(self, landmarks: Sequence) -> int:
        """Feed one browser-computed landmark set to the active web session."""
        if isinstance(self.active_pipeline, WebLandmarkPipeline):
            return await self.active_pipeline.push_landmarks(landmarks)
        return self.count

    def pause(self, session_id: Optional[str] = None) -> str:
        if self.active_pipeline is None or self.paused:
            return self.active_id or ""
        self.active_pipeline.pause()
        self.paused = True
        self._paused_at = self._clock()
        self._emit(SessionEvent(EventType.SESSION_PAUSED, self.active_id or "", self.active_exercise or "", time.time(), self.count).to_dict())
        return self.active_id or ""

    def resume(self, session_id: Optional[str] = None) -> str:
        if self.active_pipeline is None or not self.paused:
            return self.active_id or ""
        self.active_pipeline.resume()
        self.paused = False
        if self._paused_at is not None:
            self._paused_total += self._clock() - self._paused_at
            self._paused_at = None
        self._emit(SessionEvent(EventType.SESSION_RESUMED, self.active_id or "", self.active_exercise or "", time.time(), self.count).to_dict())
        return self.active_id or ""

    def reset(self):
        """Restart counting inside the active session."""
        # the pipeline owns its detector; a camera thread resets it between frames
        if self.active_pipeline is not None:
            self.active_pipeline.request_reset()
        self.count = 0
        self._started_clock = self._clock()
        self._paused_total = 0.0
        self._paused_at = self._clock() if self.paused else None

    def elapsed(self) -> float:
        if self.active_id is None:
            return 0.0
        end = self._paused_at if self._paused_at is not None else self._clock()
        return max(0.0, end - self._started_clock - self._paused_total)

    def stop(self, session_id: Optional[str] = None) -> Optional[SessionSummary]:
        if self.active_id is None:
            return None
        sid = self.active_id
        exercise = self.active_exercise or ""
        duration = self.elapsed()

        pipe = self.active_pipeline
        if pipe is not None:
            pipe.stop()
            # only the camera pipeline is a thread
            if hasattr(pipe, "join"):
                pipe.join(timeout=1.0)
            det = pipe.detector
            self.count = det.count

        summary = SessionSummary.build(self.count, duration, exercise)
        end = time.time()
        if self.persist:
            try:
                db.finish_session(sid, end, summary)
            except Exception:
                logger.exception("could not store session %s", sid)

        self.active_pipeline = None
        self.active_id = None
        self.active_exercise = None
        self.paused = False
        self._paused_at = None
        logger.info("session %s stopped: %d reps in %.1fs", sid, summary.count, summary.duration_seconds)
        self._emit(SessionEvent(EventType.SESSION_STOPPED, sid, exercise, end, summary.count).to_dict())
        return summary

    def status(self, session_id: Optional[str] = None) -> SessionStatus:
        det = self.detector
        if det is None:
            return SessionStatus(session_id="", state="idle", count=self.count)
        return SessionStatus(
            session_id=self.active_id or "",
            state="paused" if self.paused else "running",
            count=det.count,
            exercise=self.active_exercise,
            phase=det.get_state().value,
            last_angle=det.get_last_angle(),
            hint=det.feedback_hint(),
            ready=det.is_ready(),
        )
