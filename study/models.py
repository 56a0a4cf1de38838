"""Data models for the study engine: review state, phrases, activity and chat transcripts."""

import time
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from study.ratings import ActivityType


MS_PER_DAY = 86_400_000


def now_ms() -> int:
    """Current wall-clock instant in epoch milliseconds."""
    return int(time.time() * 1000)


def utc_today() -> date:
    """Current calendar day in UTC (activity dates are recorded in UTC)."""
    return datetime.now(timezone.utc).date()


def utc_day(ms: int) -> date:
    """Calendar day in UTC of an epoch-millisecond instant."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).date()


@dataclass(frozen=True)
class ReviewState:
    """
    Scheduling state of a single phrase.

    Timestamps are epoch milliseconds. Instances are immutable: the
    scheduler returns a new value instead of mutating its input.
    """
    ease_factor: float
    interval: int
    next_review_at: int
    created_at: int

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'ReviewState':
        return cls(
            ease_factor=float(data['ease_factor']),
            interval=int(data['interval']),
            next_review_at=int(data['next_review_at']),
            created_at=int(data['created_at']),
        )


@dataclass
class Phrase:
    """A saved phrase with its translation and review schedule."""
    id: int
    original: str
    translated: str
    review: ReviewState
    pronunciation: str = ''
    explanation: str = ''
    use_case: str = ''

    def to_dict(self) -> Dict:
        d = asdict(self)
        d['review'] = self.review.to_dict()
        return d


@dataclass(frozen=True)
class ActivityRecord:
    """One logged learning activity on a calendar day."""
    date: date
    type: str = ActivityType.REVIEW.value
    score: int = 0


@dataclass
class ChatMessage:
    """A single turn of a practice conversation."""
    role: str  # "user" | "ai"
    content: str
    translation: Optional[str] = None
    corrections: Optional[List] = None

    def to_dict(self) -> Dict:
        d = {'role': self.role, 'content': self.content}
        if self.translation is not None:
            d['translation'] = self.translation
        if self.corrections is not None:
            d['corrections'] = self.corrections
        return d

    @classmethod
    def from_dict(cls, data: Dict) -> 'ChatMessage':
        return cls(
            role=data.get('role', ''),
            content=data.get('content', ''),
            translation=data.get('translation'),
            corrections=data.get('corrections'),
        )


@dataclass
class Conversation:
    """A saved practice conversation for one scenario and language."""
    id: int
    scenario: str
    language: str
    messages: List[ChatMessage] = field(default_factory=list)
    created_at: int = 0

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'scenario': self.scenario,
            'language': self.language,
            'messages': [m.to_dict() for m in self.messages],
            'created_at': self.created_at,
        }
