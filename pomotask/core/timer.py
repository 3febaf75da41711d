from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from loguru import logger

from pomotask.core import config
from pomotask.core.errors import StoreError, TimerStateError
from pomotask.data.storage import LocalStorage


class TimerPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETING = "completing"
    BREAK = "break"


# Phases that survive in the local slot; "completing" is never written.
_PERSISTED_PHASES = {TimerPhase.RUNNING, TimerPhase.PAUSED, TimerPhase.BREAK}


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


def minutes_between(started_at_ms: int, ended_at_ms: int) -> int:
    """Whole minutes between two epoch-ms instants, rounding half up."""
    return max(0, int((ended_at_ms - started_at_ms + 30_000) // 60_000))


def should_take_long_break(completed_today_before: int, long_break_interval: int) -> bool:
    """`completed_today_before` excludes the Pomodoro that just finished."""
    if long_break_interval <= 0:
        return False
    return (completed_today_before + 1) % long_break_interval == 0


@dataclass(frozen=True)
class TimerState:
    """What the local slot holds between process runs."""

    phase: TimerPhase
    started_at_ms: int
    planned_duration_minutes: int
    bound_task_id: str | None = None
    bound_task_title: str = ""
    paused_remaining_seconds: int | None = None
    is_long_break: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "started_at_ms": self.started_at_ms,
            "planned_duration_minutes": self.planned_duration_minutes,
            "bound_task_id": self.bound_task_id,
            "bound_task_title": self.bound_task_title,
            "paused_remaining_seconds": self.paused_remaining_seconds,
            "is_long_break": self.is_long_break,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TimerState:
        paused = data.get("paused_remaining_seconds")
        return cls(
            phase=TimerPhase(data["phase"]),
            started_at_ms=int(data["started_at_ms"]),
            planned_duration_minutes=int(data["planned_duration_minutes"]),
            bound_task_id=data.get("bound_task_id") or None,
            bound_task_title=data.get("bound_task_title") or "",
            paused_remaining_seconds=int(paused) if paused is not None else None,
            is_long_break=bool(data.get("is_long_break", False)),
        )


@dataclass(frozen=True)
class CompletedPomodoro:
    started_at_ms: int
    ended_at_ms: int
    duration_minutes: int
    task_id: str | None
    task_title: str


@dataclass(frozen=True)
class TimerSnapshot:
    phase: TimerPhase
    total_seconds: int
    remaining_seconds: int
    elapsed_seconds: int
    progress: float
    bound_task_id: str | None
    bound_task_title: str
    is_long_break: bool


class TimerStateStore:
    """Single local slot for the running timer.

    Read and write failures only degrade recovery across process runs, so
    they are logged and swallowed here.
    """

    def __init__(self, local: LocalStorage, key: str = config.TIMER_STATE_KEY) -> None:
        self._local = local
        self._key = key

    def load(self) -> TimerState | None:
        try:
            raw = self._local.get(self._key)
        except StoreError as exc:
            logger.warning(f"[TIMER] Could not read saved timer: {exc}")
            return None
        if not raw:
            return None
        try:
            return TimerState.from_dict(raw)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(f"[TIMER] Ignoring corrupt saved timer {raw!r}: {exc}")
            return None

    def save(self, state: TimerState) -> None:
        try:
            self._local.set(self._key, state.to_dict())
        except StoreError as exc:
            logger.warning(f"[TIMER] Could not save timer state: {exc}")

    def clear(self) -> None:
        try:
            self._local.remove(self._key)
        except StoreError as exc:
            logger.warning(f"[TIMER] Could not clear timer state: {exc}")


class PomodoroTimer:
    """Wall-clock anchored Pomodoro/break state machine.

    Every transition takes an optional `now_ms` (epoch milliseconds) so the
    caller controls time; otherwise the clock passed at construction is used.
    """

    def __init__(
        self,
        state_store: TimerStateStore | None = None,
        clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        self._store = state_store
        self._clock = clock
        self._phase = TimerPhase.IDLE
        self._total_seconds = 0
        self._remaining_seconds = 0
        self._started_at_ms: int | None = None
        self._planned_minutes = 0
        self._bound_task_id: str | None = None
        self._bound_task_title = ""
        self._break_eligible = False
        self._is_long_break = False

    @property
    def phase(self) -> TimerPhase:
        return self._phase

    @property
    def remaining_seconds(self) -> int:
        return self._remaining_seconds

    @property
    def total_seconds(self) -> int:
        return self._total_seconds

    @property
    def started_at_ms(self) -> int | None:
        return self._started_at_ms

    @property
    def bound_task_id(self) -> str | None:
        return self._bound_task_id

    @property
    def bound_task_title(self) -> str:
        return self._bound_task_title

    @property
    def can_start_break(self) -> bool:
        return self._phase == TimerPhase.COMPLETING or (self._phase == TimerPhase.IDLE and self._break_eligible)

    def start(
        self,
        duration_minutes: int,
        bound_task_id: str | None = None,
        bound_task_title: str = "",
        now_ms: int | None = None,
    ) -> None:
        if self._phase not in {TimerPhase.IDLE, TimerPhase.COMPLETING}:
            raise TimerStateError(f"Cannot start a Pomodoro while {self._phase.value}")
        if duration_minutes <= 0:
            raise TimerStateError("Duration must be positive")
        if self._phase == TimerPhase.COMPLETING:
            self.finish()
        now_ms = self._now(now_ms)
        self._begin(TimerPhase.RUNNING, duration_minutes, now_ms)
        self._bound_task_id = bound_task_id
        self._bound_task_title = bound_task_title if bound_task_id else ""
        self._break_eligible = False
        self._is_long_break = False
        logger.info(f"[TIMER] Started {duration_minutes} min Pomodoro (task={bound_task_id})")
        self._persist()

    def tick(self, now_ms: int | None = None) -> CompletedPomodoro | None:
        """Advance one second. Returns the finished Pomodoro when it completes."""
        if self._phase not in {TimerPhase.RUNNING, TimerPhase.BREAK}:
            return None
        self._remaining_seconds = max(0, self._remaining_seconds - 1)
        if self._remaining_seconds > 0:
            return None
        if self._phase == TimerPhase.BREAK:
            self._end_break()
            return None
        return self._complete(self._now(now_ms))

    def pause(self) -> None:
        if self._phase != TimerPhase.RUNNING:
            raise TimerStateError(f"Cannot pause while {self._phase.value}")
        self._phase = TimerPhase.PAUSED
        logger.debug(f"[TIMER] Paused with {self._remaining_seconds}s left")
        self._persist()

    def resume(self, now_ms: int | None = None) -> None:
        if self._phase != TimerPhase.PAUSED:
            raise TimerStateError(f"Cannot resume while {self._phase.value}")
        elapsed_seconds = self._total_seconds - self._remaining_seconds
        self._started_at_ms = self._now(now_ms) - elapsed_seconds * 1000
        self._phase = TimerPhase.RUNNING
        logger.debug(f"[TIMER] Resumed with {self._remaining_seconds}s left")
        self._persist()

    def abandon(self) -> None:
        if self._phase not in {TimerPhase.RUNNING, TimerPhase.PAUSED}:
            raise TimerStateError(f"Cannot abandon while {self._phase.value}")
        logger.info("[TIMER] Pomodoro abandoned")
        self._reset()
        self._break_eligible = False

    def finish(self) -> None:
        """Leave the completion step without a break."""
        if self._phase != TimerPhase.COMPLETING:
            raise TimerStateError(f"Nothing to finish while {self._phase.value}")
        self._reset()

    def start_break(self, is_long: bool, duration_minutes: int, now_ms: int | None = None) -> None:
        if not self.can_start_break:
            raise TimerStateError("A break can only follow a completed Pomodoro")
        if duration_minutes <= 0:
            raise TimerStateError("Duration must be positive")
        self._begin(TimerPhase.BREAK, duration_minutes, self._now(now_ms))
        self._bound_task_id = None
        self._bound_task_title = ""
        self._break_eligible = False
        self._is_long_break = is_long
        logger.info(f"[TIMER] Started {'long' if is_long else 'short'} break of {duration_minutes} min")
        self._persist()

    def skip_break(self) -> None:
        if self._phase != TimerPhase.BREAK:
            raise TimerStateError(f"No break to skip while {self._phase.value}")
        self._end_break()

    def recover(self, now_ms: int | None = None) -> CompletedPomodoro | None:
        """Restore the saved timer after the process was suspended or restarted.

        A Pomodoro whose planned time ran out while the process was away is
        completed immediately, with its duration measured up to `now_ms`.
        """
        if self._phase != TimerPhase.IDLE or self._store is None:
            return None
        state = self._store.load()
        if state is None or state.phase not in _PERSISTED_PHASES:
            return None
        now_ms = self._now(now_ms)
        self._phase = state.phase
        self._planned_minutes = state.planned_duration_minutes
        self._total_seconds = state.planned_duration_minutes * 60
        self._started_at_ms = state.started_at_ms
        self._bound_task_id = state.bound_task_id
        self._bound_task_title = state.bound_task_title
        self._is_long_break = state.is_long_break if state.phase == TimerPhase.BREAK else False

        if state.phase == TimerPhase.PAUSED:
            remaining = state.paused_remaining_seconds
            if remaining is None:
                remaining = self._total_seconds
            self._remaining_seconds = max(0, min(self._total_seconds, remaining))
            logger.info(f"[TIMER] Recovered paused Pomodoro with {self._remaining_seconds}s left")
            return None

        elapsed_seconds = max(0, (now_ms - state.started_at_ms) // 1000)
        if elapsed_seconds >= self._total_seconds:
            self._remaining_seconds = 0
            if state.phase == TimerPhase.BREAK:
                logger.info("[TIMER] Break ran out while suspended")
                self._end_break()
                return None
            logger.info("[TIMER] Pomodoro ran out while suspended, completing now")
            return self._complete(now_ms)
        self._remaining_seconds = self._total_seconds - elapsed_seconds
        logger.info(f"[TIMER] Recovered {state.phase.value} with {self._remaining_seconds}s left")
        return None

    def snapshot(self) -> TimerSnapshot:
        elapsed = max(0, self._total_seconds - self._remaining_seconds)
        progress = (elapsed / self._total_seconds) if self._total_seconds > 0 else 0.0
        return TimerSnapshot(
            phase=self._phase,
            total_seconds=self._total_seconds,
            remaining_seconds=self._remaining_seconds,
            elapsed_seconds=elapsed,
            progress=max(0.0, min(1.0, progress)),
            bound_task_id=self._bound_task_id,
            bound_task_title=self._bound_task_title,
            is_long_break=self._is_long_break,
        )

    def _begin(self, phase: TimerPhase, duration_minutes: int, now_ms: int) -> None:
        self._phase = phase
        self._planned_minutes = duration_minutes
        self._total_seconds = duration_minutes * 60
        self._remaining_seconds = self._total_seconds
        self._started_at_ms = now_ms

    def _complete(self, ended_at_ms: int) -> CompletedPomodoro:
        started_at_ms = self._started_at_ms if self._started_at_ms is not None else ended_at_ms
        completed = CompletedPomodoro(
            started_at_ms=started_at_ms,
            ended_at_ms=ended_at_ms,
            duration_minutes=minutes_between(started_at_ms, ended_at_ms),
            task_id=self._bound_task_id,
            task_title=self._bound_task_title,
        )
        self._phase = TimerPhase.COMPLETING
        self._remaining_seconds = 0
        self._break_eligible = True
        if self._store is not None:
            self._store.clear()
        logger.info(f"[TIMER] Pomodoro completed after {completed.duration_minutes} min")
        return completed

    def _end_break(self) -> None:
        logger.info("[TIMER] Break finished")
        self._reset()
        self._break_eligible = False

    def _reset(self) -> None:
        break_eligible = self._break_eligible
        self._phase = TimerPhase.IDLE
        self._total_seconds = 0
        self._remaining_seconds = 0
        self._started_at_ms = None
        self._planned_minutes = 0
        self._bound_task_id = None
        self._bound_task_title = ""
        self._is_long_break = False
        self._break_eligible = break_eligible
        if self._store is not None:
            self._store.clear()

    def _persist(self) -> None:
        if self._store is None or self._phase not in _PERSISTED_PHASES or self._started_at_ms is None:
            return
        self._store.save(
            TimerState(
                phase=self._phase,
                started_at_ms=self._started_at_ms,
                planned_duration_minutes=self._planned_minutes,
                bound_task_id=self._bound_task_id,
                bound_task_title=self._bound_task_title,
                paused_remaining_seconds=self._remaining_seconds if self._phase == TimerPhase.PAUSED else None,
                is_long_break=self._is_long_break,
            )
        )

    def _now(self, now_ms: int | None) -> int:
        return self._clock() if now_ms is None else now_ms
