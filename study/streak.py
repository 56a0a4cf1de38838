"""Consecutive-day activity streaks."""

from datetime import date, timedelta
from typing import AbstractSet, Iterable


def current_streak(activity_dates: AbstractSet[date], today: date) -> int:
    """
    Count consecutive active days ending today or yesterday.

    Walks backward from `today`. A missing `today` does not break the
    streak (the user may not have studied yet); a gap on any earlier day
    ends the walk.
    """
    streak = 0
    offset = 0
    while True:
        check_date = today - timedelta(days=offset)
        if check_date in activity_dates:
            streak += 1
        elif offset > 0:
            return streak
        offset += 1


def longest_streak(activity_dates: Iterable[date]) -> int:
    """Longest run of consecutive days anywhere in the history."""
    days = sorted(set(activity_dates))
    best = 0
    run = 0
    prev = None
    for day in days:
        if prev is not None and day - prev == timedelta(days=1):
            run += 1
        else:
            run = 1
        best = max(best, run)
        prev = day
    return best
