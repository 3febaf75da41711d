from __future__ import annotations

"""Qt driver tying the timer to tasks, pomodoro logs and settings."""

from datetime import datetime

from loguru import logger
from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from pomotask.core import config
from pomotask.core.errors import PomotaskError, TimerStateError
from pomotask.core.periods import day_end, day_start
from pomotask.core.session_context import SessionContext
from pomotask.core.timer import (
    CompletedPomodoro,
    PomodoroTimer,
    TimerPhase,
    TimerStateStore,
    should_take_long_break,
)
from pomotask.data.models import FocusSession, Task, TaskStatus, UserSettings
from pomotask.data.repositories import FocusLogRepository, SettingsRepository, TaskRepository


def _to_datetime(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(epoch_ms / 1000)


class PomodoroController(QObject):
    state_changed = pyqtSignal()
    ticked = pyqtSignal(int)
    pomodoro_completed = pyqtSignal(object)
    completion_failed = pyqtSignal(str)
    auto_start_failed = pyqtSignal(str)
    break_started = pyqtSignal(bool, int)
    break_finished = pyqtSignal()
    alert_requested = pyqtSignal()

    def __init__(self, ctx: SessionContext, timer: PomodoroTimer | None = None) -> None:
        super().__init__()
        self.ctx = ctx
        self.tasks = TaskRepository(ctx)
        self.logs = FocusLogRepository(ctx)
        self.settings_repo = SettingsRepository(ctx)
        self.timer = timer or PomodoroTimer(TimerStateStore(ctx.local))
        self._settings: UserSettings | None = None
        self._pending: CompletedPomodoro | None = None
        self._ticker = QTimer(self)
        self._ticker.setInterval(config.TICK_INTERVAL_MS)
        self._ticker.timeout.connect(self._on_timeout)

    @property
    def settings(self) -> UserSettings:
        if self._settings is None:
            self._settings = self.settings_repo.get()
        return self._settings

    @property
    def pending_completion(self) -> CompletedPomodoro | None:
        return self._pending

    @property
    def is_ticking(self) -> bool:
        return self._ticker.isActive()

    def reload_settings(self) -> UserSettings:
        self._settings = self.settings_repo.get()
        return self._settings

    def recover(self, now_ms: int | None = None) -> FocusSession | None:
        """Pick up a timer saved by an earlier run of the process."""
        completed = self.timer.recover(now_ms)
        session = self._handle_completion(completed, now_ms) if completed else None
        self._changed()
        return session

    def start_pomodoro(
        self,
        task_id: str | None = None,
        duration_minutes: int | None = None,
        now_ms: int | None = None,
    ) -> None:
        self.ctx.require_owner()
        if self._pending is not None:
            raise TimerStateError("The last Pomodoro is not saved yet; retry or discard it first")
        if self.timer.phase not in {TimerPhase.IDLE, TimerPhase.COMPLETING}:
            raise TimerStateError(f"Cannot start a Pomodoro while {self.timer.phase.value}")
        settings = self.reload_settings()
        task = self.tasks.get(task_id) if task_id else None
        title = task.title if task else ""
        self.timer.start(duration_minutes or settings.pomodoro_duration, task_id, title, now_ms)
        if task is not None and task.status == TaskStatus.PENDING:
            try:
                self.tasks.start_progress(task.id)
            except PomotaskError:
                self.timer.abandon()
                raise
        self._changed()

    def pause(self) -> None:
        self.timer.pause()
        self._changed()

    def resume(self, now_ms: int | None = None) -> None:
        self.timer.resume(now_ms)
        self._changed()

    def abandon(self) -> None:
        self.timer.abandon()
        self._changed()

    def skip_break(self) -> None:
        self.timer.skip_break()
        self._changed()

    def tick(self, now_ms: int | None = None) -> None:
        was_break = self.timer.phase == TimerPhase.BREAK
        completed = self.timer.tick(now_ms)
        if completed is not None:
            self._handle_completion(completed, now_ms)
        elif was_break and self.timer.phase == TimerPhase.IDLE:
            self._on_break_finished(now_ms)
        else:
            self.ticked.emit(self.timer.remaining_seconds)
        self._changed()

    def record_completion(self, completed: CompletedPomodoro) -> FocusSession:
        if completed.task_id:
            session = self.complete_and_bind_task(completed)
        else:
            session = self.complete_independent(completed)
        self.pomodoro_completed.emit(session)
        if self.settings.sound_enabled or self.settings.vibration_enabled:
            self.alert_requested.emit()
        return session

    def complete_independent(self, completed: CompletedPomodoro) -> FocusSession:
        session = self._create_log(completed)
        self._pending = None
        return session

    def complete_and_bind_task(self, completed: CompletedPomodoro) -> FocusSession:
        session = self._create_log(completed)
        self._pending = None
        try:
            self.tasks.increment_pomodoro(completed.task_id)
        except PomotaskError as exc:
            # The log is saved; only the task counter missed this Pomodoro.
            logger.error(f"[TASKS] Could not count Pomodoro for task {completed.task_id}: {exc}")
            self.completion_failed.emit(str(exc))
        return session

    def retry_completion(self, now_ms: int | None = None) -> FocusSession | None:
        """Save a completion whose earlier write failed, on user request."""
        if self._pending is None:
            return None
        session = self._handle_completion(self._pending, now_ms)
        self._changed()
        return session

    def next_break_is_long(self) -> bool:
        today = self.ctx.now().date()
        done_today = self.logs.count_between(day_start(today), day_end(today))
        before = done_today if self._pending is not None else done_today - 1
        return should_take_long_break(max(0, before), self.settings.long_break_interval)

    def take_break(self, duration_minutes: int | None = None, now_ms: int | None = None) -> None:
        is_long = self.next_break_is_long()
        minutes = duration_minutes or self.settings.break_minutes(is_long)
        self.timer.start_break(is_long, minutes, now_ms)
        self.break_started.emit(is_long, minutes)
        self._changed()

    def dismiss_completion(self) -> None:
        if self._pending is not None:
            raise TimerStateError("The last Pomodoro is not saved yet; retry or discard it first")
        self.timer.finish()
        self._changed()

    def discard_completion(self) -> None:
        """Drop a completion whose write failed, on user request."""
        if self._pending is None:
            raise TimerStateError("No unsaved Pomodoro to discard")
        logger.warning(f"[TIMER] Discarding unsaved {self._pending.duration_minutes} min Pomodoro")
        self._pending = None
        if self.timer.phase == TimerPhase.COMPLETING:
            self.timer.finish()
        self._changed()

    def complete_bound_task(self) -> Task:
        task_id = self.timer.bound_task_id
        if self.timer.phase != TimerPhase.COMPLETING or not task_id:
            raise TimerStateError("No finished Pomodoro bound to a task")
        task = self.tasks.complete(task_id)
        self.timer.finish()
        self._changed()
        return task

    def start_another(self, now_ms: int | None = None) -> None:
        self.start_pomodoro(self.timer.bound_task_id, now_ms=now_ms)

    def _create_log(self, completed: CompletedPomodoro) -> FocusSession:
        return self.logs.create(
            task_id=completed.task_id,
            task_title=completed.task_title,
            duration=completed.duration_minutes,
            started_at=_to_datetime(completed.started_at_ms),
            ended_at=_to_datetime(completed.ended_at_ms),
        )

    def _handle_completion(self, completed: CompletedPomodoro, now_ms: int | None) -> FocusSession | None:
        self._pending = completed
        try:
            session = self.record_completion(completed)
        except PomotaskError as exc:
            logger.error(f"[TIMER] Could not save finished Pomodoro: {exc}")
            self.completion_failed.emit(str(exc))
            return None
        if self.settings.auto_start_break:
            try:
                self.take_break(now_ms=now_ms)
            except PomotaskError as exc:
                logger.error(f"[TIMER] Could not start break: {exc}")
                self.auto_start_failed.emit(str(exc))
        if not session.task_id and self.timer.phase == TimerPhase.COMPLETING:
            self.timer.finish()
        return session

    def _on_break_finished(self, now_ms: int | None) -> None:
        self.break_finished.emit()
        try:
            if self.settings.auto_start_pomodoro:
                self.start_pomodoro(now_ms=now_ms)
        except PomotaskError as exc:
            logger.error(f"[TIMER] Could not auto-start Pomodoro: {exc}")
            self.auto_start_failed.emit(str(exc))

    def _changed(self) -> None:
        if self.timer.phase in {TimerPhase.RUNNING, TimerPhase.BREAK}:
            if not self._ticker.isActive():
                self._ticker.start()
        elif self._ticker.isActive():
            self._ticker.stop()
        self.state_changed.emit()

    def _on_timeout(self) -> None:
        self.tick()
