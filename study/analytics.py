"""Activity analytics for the learning dashboard."""

import math
from datetime import date, timedelta
from typing import Dict, List

from study.models import ActivityRecord
from study.ratings import ActivityType
from study.streak import current_streak, longest_streak


# Dashboard names for activity types; anything unlisted is grammar work
AREA_NAMES = {
    ActivityType.PREDICTION.value: 'Translation',
    ActivityType.CHAT.value: 'Conversation',
    ActivityType.REVIEW.value: 'Vocabulary',
}


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _distinct_dates(records: List[ActivityRecord]) -> set:
    return {r.date for r in records}


def total_stats(records: List[ActivityRecord], today: date) -> Dict:
    """
    Headline numbers for the dashboard.

    Returns:
        {total_activities, total_days, current_streak, longest_streak}
    """
    dates = _distinct_dates(records)
    return {
        'total_activities': len(records),
        'total_days': len(dates),
        'current_streak': current_streak(dates, today),
        'longest_streak': longest_streak(dates),
    }


def activity_by_date(records: List[ActivityRecord], limit: int = 30) -> List[Dict]:
    """Activity counts per day, newest day first, at most `limit` days."""
    counts: Dict[date, int] = {}
    for r in records:
        counts[r.date] = counts.get(r.date, 0) + 1
    days = sorted(counts, reverse=True)[:limit]
    return [{'date': d.isoformat(), 'count': counts[d]} for d in days]


def _scores_by_type(records: List[ActivityRecord]) -> Dict[str, List[int]]:
    by_type: Dict[str, List[int]] = {}
    for r in records:
        by_type.setdefault(r.type, []).append(r.score)
    return by_type


def stats_by_type(records: List[ActivityRecord]) -> List[Dict]:
    """Average score and count per activity type."""
    return [
        {
            'type': t,
            'avg_score': round(sum(scores) / len(scores), 2),
            'count': len(scores),
        }
        for t, scores in sorted(_scores_by_type(records).items())
    ]


def weak_areas(records: List[ActivityRecord]) -> List[Dict]:
    """Areas sorted by average score, weakest first."""
    areas = [
        {
            'area': AREA_NAMES.get(t, 'Grammar'),
            'score': _round_half_up(sum(scores) / len(scores)),
        }
        for t, scores in _scores_by_type(records).items()
    ]
    areas.sort(key=lambda a: a['score'])
    return areas


def accuracy_trend(records: List[ActivityRecord], today: date, days: int = 7) -> List[Dict]:
    """Average score per day over the last `days` days, oldest first."""
    since = today - timedelta(days=days)
    per_day: Dict[date, List[int]] = {}
    for r in records:
        if r.date >= since:
            per_day.setdefault(r.date, []).append(r.score)
    return [
        {'date': d.isoformat(), 'accuracy': _round_half_up(sum(s) / len(s))}
        for d, s in sorted(per_day.items())
    ]
