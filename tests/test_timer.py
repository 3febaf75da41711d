import pytest

from pomotask.core.errors import TimerStateError
from pomotask.core.timer import (
    PomodoroTimer,
    TimerPhase,
    TimerState,
    TimerStateStore,
    minutes_between,
    should_take_long_break,
)

T0 = 1_760_000_000_000


def test_last_tick_completes_with_planned_duration() -> None:
    timer = PomodoroTimer()
    timer.start(25, now_ms=T0)

    for _ in range(25 * 60 - 1):
        assert timer.tick(T0) is None
    assert timer.remaining_seconds == 1
    assert timer.phase == TimerPhase.RUNNING

    completed = timer.tick(T0 + 25 * 60 * 1000)

    assert completed is not None
    assert completed.duration_minutes == 25
    assert completed.started_at_ms == T0
    assert timer.phase == TimerPhase.COMPLETING
    assert timer.remaining_seconds == 0


def test_pause_resume_keeps_remaining() -> None:
    timer = PomodoroTimer()
    timer.start(10, now_ms=T0)
    for _ in range(90):
        timer.tick()

    timer.pause()
    paused = timer.remaining_seconds
    assert timer.tick() is None
    timer.resume(now_ms=T0 + 10 * 60 * 1000)

    assert paused == 10 * 60 - 90
    assert timer.remaining_seconds == paused
    assert timer.started_at_ms == T0 + 10 * 60 * 1000 - 90 * 1000


def test_abandon_never_completes() -> None:
    timer = PomodoroTimer()
    timer.start(1, "task-1", "Write report", now_ms=T0)
    timer.tick(T0)
    timer.abandon()

    assert timer.phase == TimerPhase.IDLE
    assert timer.bound_task_id is None
    assert timer.can_start_break is False
    with pytest.raises(TimerStateError):
        timer.start_break(False, 5, now_ms=T0)


def test_invalid_transitions_raise() -> None:
    timer = PomodoroTimer()
    with pytest.raises(TimerStateError):
        timer.pause()
    with pytest.raises(TimerStateError):
        timer.resume()
    with pytest.raises(TimerStateError):
        timer.skip_break()
    timer.start(5, now_ms=T0)
    with pytest.raises(TimerStateError):
        timer.start(5, now_ms=T0)


def test_break_after_completion_then_ends_idle() -> None:
    timer = PomodoroTimer()
    timer.start(1, now_ms=T0)
    for _ in range(60):
        timer.tick(T0 + 60_000)

    timer.start_break(True, 2, now_ms=T0 + 60_000)
    assert timer.phase == TimerPhase.BREAK
    assert timer.snapshot().is_long_break is True

    results = [timer.tick() for _ in range(120)]

    assert results == [None] * 120
    assert timer.phase == TimerPhase.IDLE
    assert timer.can_start_break is False


def test_break_allowed_from_idle_after_finish() -> None:
    timer = PomodoroTimer()
    timer.start(1, now_ms=T0)
    for _ in range(60):
        timer.tick(T0 + 60_000)
    timer.finish()

    assert timer.phase == TimerPhase.IDLE
    assert timer.can_start_break is True
    timer.start_break(False, 5, now_ms=T0 + 61_000)
    timer.skip_break()
    assert timer.phase == TimerPhase.IDLE


def test_start_from_completing_finishes_first() -> None:
    timer = PomodoroTimer()
    timer.start(1, "task-1", "Write report", now_ms=T0)
    for _ in range(60):
        timer.tick(T0 + 60_000)

    timer.start(25, "task-1", "Write report", now_ms=T0 + 70_000)

    assert timer.phase == TimerPhase.RUNNING
    assert timer.total_seconds == 25 * 60


def test_invalid_duration_from_completing_keeps_completion() -> None:
    timer = PomodoroTimer()
    timer.start(1, "task-1", "Write report", now_ms=T0)
    for _ in range(60):
        timer.tick(T0 + 60_000)

    with pytest.raises(TimerStateError):
        timer.start(0, "task-1", "Write report", now_ms=T0 + 70_000)

    assert timer.phase == TimerPhase.COMPLETING
    assert timer.bound_task_id == "task-1"


def test_recovery_completes_when_time_ran_out(local) -> None:
    first = PomodoroTimer(TimerStateStore(local))
    first.start(25, "task-1", "Write report", now_ms=T0)

    second = PomodoroTimer(TimerStateStore(local))
    completed = second.recover(now_ms=T0 + 40 * 60 * 1000)

    assert completed is not None
    assert completed.duration_minutes == 40
    assert completed.task_id == "task-1"
    assert completed.task_title == "Write report"
    assert second.phase == TimerPhase.COMPLETING
    assert local.get("timerState") is None


def test_recovery_of_running_timer_uses_wall_clock(local) -> None:
    PomodoroTimer(TimerStateStore(local)).start(25, now_ms=T0)

    timer = PomodoroTimer(TimerStateStore(local))
    assert timer.recover(now_ms=T0 + 10 * 60 * 1000 + 400) is None

    assert timer.phase == TimerPhase.RUNNING
    assert timer.remaining_seconds == 15 * 60


def test_recovery_of_paused_timer_keeps_remaining(local) -> None:
    first = PomodoroTimer(TimerStateStore(local))
    first.start(25, now_ms=T0)
    for _ in range(100):
        first.tick()
    first.pause()

    second = PomodoroTimer(TimerStateStore(local))
    second.recover(now_ms=T0 + 5 * 3600 * 1000)

    assert second.phase == TimerPhase.PAUSED
    assert second.remaining_seconds == 25 * 60 - 100


def test_recovery_of_long_break_keeps_its_kind(local) -> None:
    first = PomodoroTimer(TimerStateStore(local))
    first.start(1, now_ms=T0)
    for _ in range(60):
        first.tick(T0 + 60_000)
    first.start_break(True, 15, now_ms=T0 + 60_000)

    second = PomodoroTimer(TimerStateStore(local))
    assert second.recover(now_ms=T0 + 5 * 60 * 1000) is None

    assert second.phase == TimerPhase.BREAK
    assert second.snapshot().is_long_break is True
    assert second.remaining_seconds == 11 * 60


def test_recovery_of_expired_break_goes_idle(local) -> None:
    TimerStateStore(local).save(TimerState(TimerPhase.BREAK, T0, 5))

    timer = PomodoroTimer(TimerStateStore(local))

    assert timer.recover(now_ms=T0 + 6 * 60 * 1000) is None
    assert timer.phase == TimerPhase.IDLE


def test_corrupt_saved_state_is_ignored(local) -> None:
    local.set("timerState", {"phase": "running"})

    timer = PomodoroTimer(TimerStateStore(local))

    assert timer.recover(now_ms=T0) is None
    assert timer.phase == TimerPhase.IDLE


def test_minutes_round_half_up() -> None:
    assert minutes_between(0, 29_999) == 0
    assert minutes_between(0, 30_000) == 1
    assert minutes_between(0, 25 * 60_000) == 25
    assert minutes_between(10, 0) == 0


def test_long_break_every_interval() -> None:
    pattern = [should_take_long_break(before, 4) for before in range(8)]

    assert pattern == [False, False, False, True, False, False, False, True]
    assert should_take_long_break(3, 0) is False
