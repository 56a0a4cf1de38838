"""SQL-backed stores for phrases and the activity log."""

import logging
from datetime import date
from typing import List, Optional, Set

from sqlalchemy import delete, func, select

from server.db.models import PhraseRow, UserStat
from server.db.session import Database
from study.models import ActivityRecord, Phrase, ReviewState, now_ms, utc_day, utc_today
from study.ratings import ActivityType
from study.scheduler import new_review_state, schedule

logger = logging.getLogger("phrasedeck.review")

# Activity score logged per review: quality 1-5 mapped onto 20-100
REVIEW_SCORE_PER_QUALITY = 20
MAX_SCORE = 100


class PhraseNotFoundError(KeyError):
    """Raised when a phrase id does not exist."""


def _row_to_state(row: PhraseRow) -> ReviewState:
    return ReviewState(
        ease_factor=row.ease_factor,
        interval=row.interval,
        next_review_at=row.next_review,
        created_at=row.created_at,
    )


def _row_to_phrase(row: PhraseRow) -> Phrase:
    return Phrase(
        id=row.id,
        original=row.original,
        translated=row.translated,
        pronunciation=row.pronunciation or '',
        explanation=row.explanation or '',
        use_case=row.use_case or '',
        review=_row_to_state(row),
    )


def _apply_state(row: PhraseRow, state: ReviewState) -> None:
    row.next_review = state.next_review_at
    row.ease_factor = state.ease_factor
    row.interval = state.interval


class PhraseRepository:
    """
    Phrase storage over a Database handle.

    Each public method runs in its own transaction. review() reads,
    schedules and writes in one transaction with a row lock so two
    concurrent ratings of the same phrase cannot lose an update.
    """

    def __init__(self, db: Database):
        self.db = db

    def add(
        self,
        original: str,
        translated: str,
        pronunciation: str = '',
        explanation: str = '',
        use_case: str = '',
        now: Optional[int] = None,
    ) -> Phrase:
        """Save a new phrase; its first review is one day after creation."""
        state = new_review_state(now_ms() if now is None else now)
        row = PhraseRow(
            original=original,
            translated=translated,
            pronunciation=pronunciation,
            explanation=explanation,
            use_case=use_case,
            created_at=state.created_at,
        )
        _apply_state(row, state)
        with self.db.session() as s:
            s.add(row)
            s.flush()
            phrase = _row_to_phrase(row)
        logger.info("Saved phrase %d: %s", phrase.id, original[:30])
        return phrase

    def get(self, phrase_id: int) -> Optional[Phrase]:
        with self.db.session() as s:
            row = s.get(PhraseRow, phrase_id)
            return _row_to_phrase(row) if row is not None else None

    def load_review_state(self, phrase_id: int) -> ReviewState:
        phrase = self.get(phrase_id)
        if phrase is None:
            raise PhraseNotFoundError(phrase_id)
        return phrase.review

    def save_review_state(self, phrase_id: int, state: ReviewState) -> None:
        with self.db.session() as s:
            row = s.get(PhraseRow, phrase_id)
            if row is None:
                raise PhraseNotFoundError(phrase_id)
            _apply_state(row, state)

    def review(
        self,
        phrase_id: int,
        quality: int,
        now: Optional[int] = None,
        activity: Optional['ActivityLog'] = None,
    ) -> Phrase:
        """
        Apply one rating to a phrase and persist the new schedule atomically.

        With `activity`, a review activity dated the UTC day of `now` is
        written in the same transaction as the schedule.
        """
        if now is None:
            now = now_ms()
        with self.db.session() as s:
            row = s.execute(
                select(PhraseRow).where(PhraseRow.id == phrase_id).with_for_update()
            ).scalar_one_or_none()
            if row is None:
                raise PhraseNotFoundError(phrase_id)
            new_state = schedule(_row_to_state(row), quality, now)
            _apply_state(row, new_state)
            if activity is not None:
                activity.stage(
                    s, ActivityType.REVIEW.value,
                    score=quality * REVIEW_SCORE_PER_QUALITY,
                    day=utc_day(now),
                )
            phrase = _row_to_phrase(row)
        logger.debug(
            "Reviewed phrase %d q=%d -> interval=%d ease=%.4f",
            phrase_id, quality, new_state.interval, new_state.ease_factor,
        )
        return phrase

    def due(self, now: Optional[int] = None) -> List[Phrase]:
        """Phrases whose next review instant has passed, earliest first."""
        if now is None:
            now = now_ms()
        with self.db.session() as s:
            rows = s.scalars(
                select(PhraseRow)
                .where(PhraseRow.next_review <= now)
                .order_by(PhraseRow.next_review.asc(), PhraseRow.id.asc())
            ).all()
            return [_row_to_phrase(r) for r in rows]

    def all(self) -> List[Phrase]:
        """All phrases, newest first."""
        with self.db.session() as s:
            rows = s.scalars(
                select(PhraseRow).order_by(PhraseRow.created_at.desc(), PhraseRow.id.desc())
            ).all()
            return [_row_to_phrase(r) for r in rows]

    def delete(self, phrase_id: int) -> bool:
        with self.db.session() as s:
            result = s.execute(delete(PhraseRow).where(PhraseRow.id == phrase_id))
            return result.rowcount > 0

    def count(self) -> int:
        with self.db.session() as s:
            return s.scalar(select(func.count()).select_from(PhraseRow))


class ActivityLog:
    """Append-only log of learning activities, one row per activity."""

    def __init__(self, db: Database):
        self.db = db

    def stage(self, session, activity_type: str, score: int = 0, day: Optional[date] = None) -> ActivityRecord:
        """Validate an activity and add its row to an open session without committing."""
        try:
            activity_type = ActivityType(activity_type).value
        except ValueError:
            raise ValueError(f"Unknown activity type: {activity_type!r}") from None
        score = int(score)
        if not (0 <= score <= MAX_SCORE):
            raise ValueError(f"Score must be 0-{MAX_SCORE}, got {score}")
        if day is None:
            day = utc_today()
        session.add(UserStat(date=day.isoformat(), type=activity_type, score=score))
        return ActivityRecord(date=day, type=activity_type, score=score)

    def record(self, activity_type: str, score: int = 0, day: Optional[date] = None) -> ActivityRecord:
        with self.db.session() as s:
            return self.stage(s, activity_type, score=score, day=day)

    def records(self) -> List[ActivityRecord]:
        with self.db.session() as s:
            rows = s.scalars(select(UserStat).order_by(UserStat.date.asc(), UserStat.id.asc())).all()
            return [
                ActivityRecord(date=date.fromisoformat(r.date), type=r.type, score=r.score or 0)
                for r in rows
            ]

    def distinct_dates(self) -> Set[date]:
        with self.db.session() as s:
            values = s.scalars(select(UserStat.date).distinct()).all()
            return {date.fromisoformat(v) for v in values}
