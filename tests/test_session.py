import asyncio

import pytest

from repcounter.common.events import SessionSummary
from repcounter.counter.session import RepSessionManager
from repcounter.counter.state_machine import UnknownExerciseError

from conftest import pushup_pose, squat_pose


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def pushup_cycle(n):
    return ([pushup_pose(170.0), pushup_pose(90.0, shoulder_above=False)] * n) + [pushup_pose(170.0)]


async def push_all(mgr, frames):
    for f in frames:
        await mgr.push_landmarks(f)


def test_summary_arithmetic():
    s = SessionSummary.build(4, 20.0, "pushup")
    assert s.avg_time_per_rep == pytest.approx(5.0)
    assert SessionSummary.build(0, 12.0, "squat").avg_time_per_rep == 0.0
    assert SessionSummary.build(3, -1.0, "squat").duration_seconds == 0.0


def test_web_session_round_trip(tmp_db):
    clock = FakeClock()
    events = []
    mgr = RepSessionManager(clock=clock)
    mgr.set_event_sink(events.append)

    sid, status = mgr.start("pushup", source="web", smoothing_factor=0.0)
    assert status == "started pushup"
    asyncio.run(push_all(mgr, pushup_cycle(3)))
    assert mgr.count == 3
    assert mgr.status().count == 3
    assert mgr.status().phase == "up"

    clock.now += 30.0
    summary = mgr.stop()
    assert summary == SessionSummary(count=3, duration_seconds=30.0, avg_time_per_rep=10.0, exercise="pushup")
    assert mgr.status().state == "idle"

    row = tmp_db.get_session(sid)
    assert row["count"] == 3
    assert row["duration_s"] == pytest.approx(30.0)
    assert tmp_db.count_events(sid) == 3
    assert [e["count"] for e in events if e["type"] == "rep"] == [1, 2, 3]
    assert events[0]["type"] == "session_started"
    assert events[-1]["type"] == "session_stopped"


def test_paused_session_ignores_frames_and_time(tmp_db):
    clock = FakeClock()
    mgr = RepSessionManager(clock=clock)
    mgr.start("squat", smoothing_factor=0.0)
    clock.now += 10.0
    mgr.pause()
    assert mgr.status().state == "paused"
    asyncio.run(push_all(mgr, [squat_pose(175.0), squat_pose(80.0, hip_above=False)] + [squat_pose(175.0)] * 2))
    assert mgr.count == 0
    clock.now += 50.0
    mgr.resume()
    clock.now += 5.0
    summary = mgr.stop()
    assert summary.duration_seconds == pytest.approx(15.0)
    assert summary.count == 0


def test_reset_restarts_count(tmp_db):
    mgr = RepSessionManager(clock=FakeClock())
    mgr.start("pushup", smoothing_factor=0.0)
    asyncio.run(push_all(mgr, pushup_cycle(2)))
    assert mgr.count == 2
    mgr.reset()
    assert mgr.status().count == 0
    assert mgr.status().phase == "unknown"
    asyncio.run(push_all(mgr, pushup_cycle(1)))
    assert mgr.stop().count == 1


def test_starting_again_finishes_previous(tmp_db):
    mgr = RepSessionManager(clock=FakeClock())
    first, _ = mgr.start("pushup")
    second, _ = mgr.start("squat")
    assert first != second
    assert tmp_db.get_session(first)["stopped_at"] is not None
    assert [s["id"] for s in tmp_db.list_sessions()] == [first]
    mgr.stop()
    assert {s["exercise"] for s in tmp_db.list_sessions()} == {"pushup", "squat"}
    assert [s["exercise"] for s in tmp_db.list_sessions(exercise="squat")] == ["squat"]


def test_unknown_exercise(tmp_db):
    mgr = RepSessionManager()
    with pytest.raises(UnknownExerciseError):
        mgr.start("burpee")
    assert mgr.stop() is None


def test_failing_sink_does_not_break_counting():
    def sink(ev):
        raise RuntimeError("socket gone")

    mgr = RepSessionManager(persist=False)
    mgr.set_event_sink(sink)
    mgr.start("pushup", smoothing_factor=0.0)
    asyncio.run(push_all(mgr, pushup_cycle(1)))
    assert mgr.stop().count == 1


def test_reset_goes_through_the_pipeline(tmp_db, monkeypatch):
    mgr = RepSessionManager(clock=FakeClock())
    mgr.start("pushup", smoothing_factor=0.0)
    asyncio.run(push_all(mgr, pushup_cycle(1)))
    calls = []
    pipe = mgr.active_pipeline
    monkeypatch.setattr(pipe, "request_reset", lambda: calls.append(pipe.detector.count))
    mgr.reset()
    assert calls == [1]
    assert mgr.count == 0
    mgr.stop()
