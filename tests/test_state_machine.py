import math

import pytest

from repcounter.counter.state_machine import (
    FrameReading,
    RepConfig,
    RepState,
    RepStateMachine,
    UnknownExerciseError,
)

UP = FrameReading(angle=170.0, is_up=True, is_down=False)
DOWN = FrameReading(angle=90.0, is_up=False, is_down=True)
MID = FrameReading(angle=130.0, is_up=False, is_down=False)


def machine(required=1):
    return RepStateMachine(RepConfig.for_exercise("pushup", required_up_frames=required))


def feed(m, readings):
    return [m.step(r) for r in readings]


def test_unknown_to_up_and_down():
    m = machine()
    m.step(UP)
    assert m.phase == RepState.UP
    m = machine()
    m.step(MID)
    assert m.phase == RepState.DOWN
    assert m.count == 0


def test_one_count_per_cycle():
    m = machine()
    counted = feed(m, [UP, UP, DOWN, DOWN, DOWN, UP, UP, UP])
    assert m.count == 1
    assert counted.count(True) == 1
    assert m.phase == RepState.UP


@pytest.mark.parametrize("required", [1, 2, 3])
def test_exact_run_length_counts_once(required):
    m = machine(required)
    feed(m, [UP, DOWN])
    counted = feed(m, [UP] * required)
    assert counted[-1] is True
    assert counted.count(True) == 1
    assert m.count == 1


@pytest.mark.parametrize("required", [2, 3])
def test_isolated_up_frame_is_debounced(required):
    m = machine(required)
    feed(m, [UP, DOWN, UP, DOWN, DOWN, UP, DOWN])
    assert m.count == 0
    assert m.phase == RepState.DOWN
    assert m.state.consecutive_up_frames == 0


def test_run_counter_resets_after_count():
    m = machine(2)
    feed(m, [DOWN, UP, UP])
    assert m.count == 1
    assert m.state.consecutive_up_frames == 0


def test_hovering_between_thresholds_never_counts():
    m = machine()
    feed(m, [MID] * 50)
    assert m.count == 0


def test_partial_oscillation_without_full_up():
    m = machine()
    feed(m, [UP] + [DOWN, MID, DOWN, MID] * 10)
    assert m.count == 0


def test_monotonic_and_bounded():
    import random

    rng = random.Random(7)
    m = machine(2)
    prev = 0
    transitions = 0
    for _ in range(2000):
        before = m.phase
        m.step(rng.choice([UP, DOWN, MID]))
        if before == RepState.DOWN and m.phase == RepState.UP:
            transitions += 1
        assert prev <= m.count <= prev + 1
        prev = m.count
    assert m.count == transitions


def test_nan_angle_is_skipped():
    m = machine()
    feed(m, [UP, DOWN])
    m.step(FrameReading(angle=math.nan, is_up=True, is_down=False))
    assert m.phase == RepState.DOWN
    assert m.state.last_angle == 90.0


def test_reset_is_idempotent():
    m = machine()
    feed(m, [UP, DOWN, UP, DOWN, UP])
    assert m.count == 2
    m.reset()
    m.reset()
    assert m.count == 0
    assert m.phase == RepState.UNKNOWN


def test_debug_callback_reports_transitions():
    seen = []
    m = RepStateMachine(RepConfig.for_exercise("squat"), debug_cb=seen.append)
    m.step(UP)
    assert seen == [{"type": "trace", "msg": "squat: state→up"}]


def test_config_validation():
    with pytest.raises(ValueError):
        RepConfig.for_exercise("pushup", up_angle=90.0, down_angle=100.0)
    with pytest.raises(ValueError):
        RepConfig.for_exercise("pushup", required_up_frames=0)
    with pytest.raises(UnknownExerciseError):
        RepConfig.for_exercise("burpee")
    assert RepConfig.for_exercise("squat").required_up_frames == 2
    assert RepConfig.for_exercise("squat").torso_filter
