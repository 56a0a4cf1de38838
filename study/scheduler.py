"""SM-2 spaced repetition scheduler."""

import math
from dataclasses import replace
from numbers import Integral

from study.models import MS_PER_DAY, ReviewState
from study.ratings import PASSING_QUALITY


DEFAULT_EASE = 2.5
MIN_EASE = 1.3
MIN_INTERVAL = 1


class InvalidQualityError(ValueError):
    """Raised when a quality rating is not an integer in 1..5."""


class InvalidStateError(ValueError):
    """Raised when a stored review state violates the ease or interval floor."""


def _round_half_up(x: float) -> int:
    # round() would give banker's rounding: 12.5 -> 12
    return int(math.floor(x + 0.5))


def new_review_state(created_at: int) -> ReviewState:
    """Initial schedule for a freshly saved phrase: first review one day later."""
    return ReviewState(
        ease_factor=DEFAULT_EASE,
        interval=MIN_INTERVAL,
        next_review_at=created_at + MS_PER_DAY,
        created_at=created_at,
    )


def validate_quality(quality) -> int:
    if isinstance(quality, bool) or not isinstance(quality, Integral):
        raise InvalidQualityError(f"Quality must be an integer 1-5, got {quality!r}")
    if not (1 <= quality <= 5):
        raise InvalidQualityError(f"Quality must be 1-5, got {quality}")
    return int(quality)


def validate_state(state: ReviewState) -> None:
    """Reject a review state below the ease or interval floor. Never clamps."""
    if state.ease_factor < MIN_EASE:
        raise InvalidStateError(
            f"Ease factor must be >= {MIN_EASE}, got {state.ease_factor}"
        )
    if state.interval < MIN_INTERVAL:
        raise InvalidStateError(
            f"Interval must be >= {MIN_INTERVAL} day, got {state.interval}"
        )


def schedule(state: ReviewState, quality: int, now: int) -> ReviewState:
    """
    Apply one review to a phrase's schedule.

    Args:
        state:   Current review state
        quality: User rating 1-5 (1-2 failed, 3-5 recalled)
        now:     Current instant in epoch milliseconds

    Returns:
        A new ReviewState with updated ease_factor, interval and
        next_review_at. created_at is carried over.

    Raises:
        InvalidQualityError: quality is not an integer in 1..5
        InvalidStateError:   state has ease < 1.3 or interval < 1
    """
    quality = validate_quality(quality)
    validate_state(state)

    if quality < PASSING_QUALITY:
        new_interval = 1
    elif state.interval == 1:
        # A first success keeps the 1-day interval; only 2 -> 6 jumps.
        new_interval = 1
    elif state.interval == 2:
        new_interval = 6
    else:
        new_interval = _round_half_up(state.interval * state.ease_factor)

    # EF' = EF + (0.1 - (5-q) * (0.08 + (5-q) * 0.02))
    miss = 5 - quality
    new_ease = max(MIN_EASE, state.ease_factor + (0.1 - miss * (0.08 + miss * 0.02)))

    return replace(
        state,
        ease_factor=new_ease,
        interval=new_interval,
        next_review_at=now + new_interval * MS_PER_DAY,
    )


def is_due(state: ReviewState, now: int) -> bool:
    """True once the scheduled review instant has been reached."""
    return state.next_review_at <= now
