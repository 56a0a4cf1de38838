"""Activity logging and dashboard statistics."""

from datetime import date
from typing import Dict, Optional

from server.repositories import ActivityLog
from study.analytics import (
    accuracy_trend,
    activity_by_date,
    stats_by_type,
    total_stats,
    weak_areas,
)
from study.models import utc_today


def record_activity(activity: ActivityLog, activity_type: str, score: int = 0) -> Dict:
    """
    Raises:
        ValueError for an unknown activity type.
    """
    record = activity.record(activity_type, score=score)
    return {'date': record.date.isoformat(), 'type': record.type, 'score': record.score}


def get_stats(activity: ActivityLog, today: Optional[date] = None, trend_days: int = 7) -> Dict:
    """
    Dashboard statistics.

    Returns:
        {total_activities, total_days, current_streak, longest_streak,
         by_type, weak_areas, accuracy_trend, activity_by_date}
    """
    today = utc_today() if today is None else today
    records = activity.records()
    stats = total_stats(records, today)
    stats.update({
        'by_type': stats_by_type(records),
        'weak_areas': weak_areas(records),
        'accuracy_trend': accuracy_trend(records, today, days=trend_days),
        'activity_by_date': activity_by_date(records),
    })
    return stats
