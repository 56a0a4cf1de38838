"""Phrase review service wrappers -- all return JSON-serializable dicts."""

from typing import Dict, Optional

from server.repositories import ActivityLog, PhraseNotFoundError, PhraseRepository
from study.models import Phrase, now_ms
from study.scheduler import is_due


def _phrase_to_summary(phrase: Phrase, now: int) -> Dict:
    """Convert a Phrase to a JSON-safe dict, flagging whether it is due."""
    d = phrase.to_dict()
    d['is_due'] = is_due(phrase.review, now)
    return d


def add_phrase(
    repo: PhraseRepository,
    original: str,
    translated: str,
    pronunciation: str = '',
    explanation: str = '',
    use_case: str = '',
    now: Optional[int] = None,
) -> Dict:
    now = now_ms() if now is None else now
    phrase = repo.add(
        original, translated,
        pronunciation=pronunciation,
        explanation=explanation,
        use_case=use_case,
        now=now,
    )
    return _phrase_to_summary(phrase, now)


def list_phrases(repo: PhraseRepository, now: Optional[int] = None) -> Dict:
    """Return every phrase, newest first."""
    now = now_ms() if now is None else now
    phrases = repo.all()
    return {
        'count': len(phrases),
        'phrases': [_phrase_to_summary(p, now) for p in phrases],
    }


def due_phrases(repo: PhraseRepository, now: Optional[int] = None) -> Dict:
    """Return the phrases to show in the next review session."""
    now = now_ms() if now is None else now
    due = repo.due(now)
    return {
        'count': len(due),
        'phrases': [_phrase_to_summary(p, now) for p in due],
    }


def review_phrase(
    repo: PhraseRepository,
    activity: ActivityLog,
    phrase_id: int,
    quality: int,
    now: Optional[int] = None,
) -> Dict:
    """
    Rate a phrase, persist its new schedule and log a review activity
    dated the UTC day of `now`, both in one transaction.

    Returns:
        The updated phrase summary.

    Raises:
        PhraseNotFoundError if phrase_id does not exist.
        InvalidQualityError / InvalidStateError from the scheduler.
    """
    now = now_ms() if now is None else now
    phrase = repo.review(phrase_id, quality, now, activity=activity)
    return _phrase_to_summary(phrase, now)


def delete_phrase(repo: PhraseRepository, phrase_id: int) -> Dict:
    """
    Raises:
        PhraseNotFoundError if phrase_id does not exist.
    """
    if not repo.delete(phrase_id):
        raise PhraseNotFoundError(phrase_id)
    return {'deleted': phrase_id}
