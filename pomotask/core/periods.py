from __future__ import annotations

"""Calendar boundaries in local time; weeks start on Monday."""

from datetime import date, datetime, time, timedelta


def as_local(moment: datetime) -> datetime:
    """Naive local view of a datetime; naive values are taken as local already."""
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


def day_start(day: date) -> datetime:
    return datetime.combine(day, time.min)


def day_end(day: date) -> datetime:
    return datetime.combine(day, time.max)


def week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def week_end(day: date) -> date:
    return week_start(day) + timedelta(days=6)
