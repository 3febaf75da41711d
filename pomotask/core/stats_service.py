from __future__ import annotations

"""Loads the owner's records and runs the aggregation functions over them."""

from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from typing import Any

from loguru import logger

from pomotask.core import config, statistics
from pomotask.core.errors import ValidationError
from pomotask.core.periods import day_end, day_start, week_end, week_start
from pomotask.core.session_context import SessionContext
from pomotask.data.repositories import FocusLogRepository, TaskRepository, UserRepository


@dataclass(frozen=True)
class WeekSummary:
    week_start: str
    total_pomodoros: int
    total_minutes: int
    completed_tasks: int
    chart: list[statistics.DayPoint]
    avg_daily: float
    max_daily: int
    streak_days: int


def _as_bound(value: date | datetime | str | None, end: bool) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value) if "T" in value or " " in value else date.fromisoformat(value)
        except ValueError:
            raise ValidationError(f"Invalid date: {value!r}") from None
    if isinstance(value, datetime):
        return value
    return day_end(value) if end else day_start(value)


class StatisticsService:
    KINDS = ("overview", "daily", "weekly", "monthly", "taskAnalysis", "week", "today")

    def __init__(self, ctx: SessionContext) -> None:
        self.ctx = ctx
        self.tasks = TaskRepository(ctx)
        self.logs = FocusLogRepository(ctx)
        self.users = UserRepository(ctx)

    def overview(self) -> statistics.Overview:
        user = self.users.get()
        return statistics.overview(
            self.logs.completed(),
            self.tasks.list(),
            user.created_at if user else None,
            self.ctx.now(),
        )

    def buckets(
        self,
        granularity: statistics.Granularity | str,
        start: date | datetime | str,
        end: date | datetime | str,
    ) -> list[statistics.Bucket]:
        lower, upper = _as_bound(start, end=False), _as_bound(end, end=True)
        if lower is None or upper is None:
            raise ValidationError("A start and an end date are required")
        if lower > upper:
            raise ValidationError("Start date must not be after end date")
        return statistics.bucket_by(self.logs.completed(lower, upper), granularity)

    def daily(self, start: date | datetime | str, end: date | datetime | str) -> list[statistics.Bucket]:
        return self.buckets(statistics.Granularity.DAY, start, end)

    def weekly(self, start: date | datetime | str, end: date | datetime | str) -> list[statistics.Bucket]:
        return self.buckets(statistics.Granularity.WEEK, start, end)

    def monthly(self, start: date | datetime | str, end: date | datetime | str) -> list[statistics.Bucket]:
        return self.buckets(statistics.Granularity.MONTH, start, end)

    def task_analysis(self) -> statistics.TaskAnalysis:
        return statistics.task_analysis(self.tasks.list(), self.logs.completed())

    def today(self, day: date | None = None) -> statistics.TodaySummary:
        day = day or self.ctx.now().date()
        sessions = self.logs.completed(day_start(day), day_end(day))
        completed = self.tasks.completed_between(day_start(day), day_end(day))
        return statistics.today_summary(sessions, completed, day)

    def week_summary(self, today: date | None = None) -> WeekSummary:
        today = today or self.ctx.now().date()
        first, last = week_start(today), week_end(today)
        this_week = self.logs.completed(day_start(first), day_end(last))
        window_start = today - timedelta(days=config.STREAK_WINDOW_DAYS - 1)
        recent = self.logs.completed(day_start(window_start), day_end(today))
        completed = self.tasks.completed_between(day_start(first), day_end(last))
        trend = statistics.trends(this_week)
        return WeekSummary(
            week_start=first.isoformat(),
            total_pomodoros=len(this_week),
            total_minutes=sum(session.duration for session in this_week),
            completed_tasks=len(completed),
            chart=statistics.daily_series(recent, today),
            avg_daily=trend.avg_daily,
            max_daily=trend.max_daily,
            streak_days=statistics.streak(statistics.daily_counts(recent), today),
        )

    def handle(self, kind: str, start: Any = None, end: Any = None) -> Any:
        """Answer a statistics request by name, as plain dicts and lists."""
        logger.debug(f"[STATS] {kind} request ({start} .. {end})")
        if kind == "overview":
            result: Any = self.overview()
        elif kind == "daily":
            result = self.daily(start, end)
        elif kind == "weekly":
            result = self.weekly(start, end)
        elif kind == "monthly":
            result = self.monthly(start, end)
        elif kind == "taskAnalysis":
            result = self.task_analysis()
        elif kind == "week":
            result = self.week_summary()
        elif kind == "today":
            result = self.today()
        else:
            raise ValidationError(f"Unknown statistics type: {kind!r}")
        if isinstance(result, list):
            return [asdict(item) for item in result]
        return asdict(result)
