from __future__ import annotations

"""Pure aggregation over focus sessions and tasks.

Nothing here touches storage or mutates its inputs, so the same functions
back both the on-screen figures and the batch statistics requests.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

from pomotask.core import config
from pomotask.core.periods import as_local, week_start
from pomotask.data.models import FocusSession, Priority, Task, TaskStatus


class Granularity(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True)
class Bucket:
    key: str
    count: int
    total_minutes: int


@dataclass(frozen=True)
class Overview:
    total_pomodoros: int
    total_minutes: int
    total_hours: float
    completed_tasks: int
    total_tasks: int
    register_days: int
    avg_daily: float
    completion_rate: float


@dataclass(frozen=True)
class PriorityStat:
    count: int
    completed: int


@dataclass(frozen=True)
class TaskAnalysis:
    priority_stats: dict[str, PriorityStat]
    status_stats: dict[str, int]
    avg_pomodoros_per_task: float
    independent_pomodoros: int
    total_tasks: int


@dataclass(frozen=True)
class DayPoint:
    date: str
    count: int
    height: float


@dataclass(frozen=True)
class Trends:
    avg_daily: float
    max_daily: int


@dataclass(frozen=True)
class TodaySummary:
    pomodoro_count: int
    focus_minutes: int
    completed_tasks: int


def bucket_key(moment: datetime, granularity: Granularity | str) -> str:
    local_day = as_local(moment).date()
    granularity = Granularity(granularity)
    if granularity == Granularity.DAY:
        return local_day.isoformat()
    if granularity == Granularity.WEEK:
        return week_start(local_day).isoformat()
    return f"{local_day.year:04d}-{local_day.month:02d}"


def bucket_by(sessions: Iterable[FocusSession], granularity: Granularity | str) -> list[Bucket]:
    """Group sessions by local day, Monday week start, or year-month."""
    counts: dict[str, int] = {}
    minutes: dict[str, int] = {}
    for session in sessions:
        key = bucket_key(session.started_at, granularity)
        counts[key] = counts.get(key, 0) + 1
        minutes[key] = minutes.get(key, 0) + session.duration
    return [Bucket(key=key, count=counts[key], total_minutes=minutes[key]) for key in sorted(counts)]


def daily_counts(sessions: Iterable[FocusSession]) -> dict[str, int]:
    return {bucket.key: bucket.count for bucket in bucket_by(sessions, Granularity.DAY)}


def streak(
    daily: Mapping[str, int],
    today: date,
    window_days: int = config.STREAK_WINDOW_DAYS,
) -> int:
    """Consecutive days with a session, counting back from today.

    The scan starts at today, so a day without a session yet yields 0 even
    when yesterday continued a run.
    """
    days = 0
    for offset in range(window_days):
        key = (today - timedelta(days=offset)).isoformat()
        if daily.get(key, 0) > 0:
            days += 1
        else:
            break
    return days


def overview(
    sessions: list[FocusSession],
    tasks: list[Task],
    user_created_at: datetime | None,
    now: datetime,
) -> Overview:
    total_pomodoros = len(sessions)
    total_minutes = sum(session.duration for session in sessions)
    completed_tasks = sum(1 for task in tasks if task.status == TaskStatus.COMPLETED)
    total_tasks = len(tasks)

    register_days = 0
    avg_daily = 0.0
    if user_created_at is not None:
        age = as_local(now) - as_local(user_created_at)
        register_days = max(1, age // timedelta(days=1) + 1)
        avg_daily = round(total_pomodoros / register_days, 1)

    completion_rate = round(completed_tasks / total_tasks * 100, 1) if total_tasks else 0.0
    return Overview(
        total_pomodoros=total_pomodoros,
        total_minutes=total_minutes,
        total_hours=round(total_minutes / 60, 1),
        completed_tasks=completed_tasks,
        total_tasks=total_tasks,
        register_days=register_days,
        avg_daily=avg_daily,
        completion_rate=completion_rate,
    )


def task_analysis(tasks: list[Task], sessions: list[FocusSession]) -> TaskAnalysis:
    priority_counts = {priority.value: [0, 0] for priority in Priority}
    status_stats = {status.value: 0 for status in TaskStatus}
    for task in tasks:
        counts = priority_counts[task.priority.value]
        counts[0] += 1
        if task.status == TaskStatus.COMPLETED:
            counts[1] += 1
        status_stats[task.status.value] += 1

    with_pomodoros = [task.pomodoro_completed for task in tasks if task.pomodoro_completed > 0]
    avg = round(sum(with_pomodoros) / len(with_pomodoros), 1) if with_pomodoros else 0.0
    return TaskAnalysis(
        priority_stats={key: PriorityStat(count=c, completed=done) for key, (c, done) in priority_counts.items()},
        status_stats=status_stats,
        avg_pomodoros_per_task=avg,
        independent_pomodoros=sum(1 for session in sessions if not session.task_id),
        total_tasks=len(tasks),
    )


def daily_series(sessions: Iterable[FocusSession], today: date, days: int = config.CHART_DAYS) -> list[DayPoint]:
    """Counts for the last `days` days, oldest first, with bar heights in percent."""
    daily = daily_counts(sessions)
    keys = [(today - timedelta(days=offset)).isoformat() for offset in range(days - 1, -1, -1)]
    peak = max([daily.get(key, 0) for key in keys] + [1])
    return [DayPoint(date=key, count=daily.get(key, 0), height=daily.get(key, 0) / peak * 100) for key in keys]


def trends(sessions: Iterable[FocusSession]) -> Trends:
    """Average over the days that have data, and the best day."""
    counts = list(daily_counts(sessions).values())
    if not counts:
        return Trends(avg_daily=0.0, max_daily=0)
    return Trends(avg_daily=round(sum(counts) / len(counts), 1), max_daily=max(counts))


def today_summary(sessions: Iterable[FocusSession], tasks: Iterable[Task], day: date) -> TodaySummary:
    todays = [session for session in sessions if as_local(session.started_at).date() == day]
    completed = [
        task
        for task in tasks
        if task.completed_at is not None and as_local(task.completed_at).date() == day
    ]
    return TodaySummary(
        pomodoro_count=len(todays),
        focus_minutes=sum(session.duration for session in todays),
        completed_tasks=len(completed),
    )
