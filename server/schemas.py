"""Pydantic request/response schemas for the Phrasedeck API."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, StrictInt


# ---- Phrases ----

class PhraseCreateRequest(BaseModel):
    original: str = Field(..., min_length=1, max_length=2000)
    translated: str = Field(..., min_length=1, max_length=2000)
    pronunciation: str = Field(default="", max_length=2000)
    explanation: str = Field(default="", max_length=5000)
    use_case: str = Field(default="", max_length=5000)


class ReviewStateSchema(BaseModel):
    ease_factor: float
    interval: int
    next_review_at: int
    created_at: int


class PhraseSchema(BaseModel):
    id: int
    original: str
    translated: str
    pronunciation: str
    explanation: str
    use_case: str
    review: ReviewStateSchema
    is_due: bool


class PhraseListResponse(BaseModel):
    count: int
    phrases: List[PhraseSchema]


# ---- Review ----

class PhraseReviewRequest(BaseModel):
    # Strict: true, 4.0 and "5" are not ratings. Range is checked by the scheduler.
    quality: StrictInt


# ---- Activity & stats ----

class ActivityRequest(BaseModel):
    type: str
    score: int = Field(default=0, ge=0, le=100)


class ActivityResponse(BaseModel):
    date: str
    type: str
    score: int


class StatsResponse(BaseModel):
    total_activities: int
    total_days: int
    current_streak: int
    longest_streak: int
    by_type: List[Dict[str, Any]]
    weak_areas: List[Dict[str, Any]]
    accuracy_trend: List[Dict[str, Any]]
    activity_by_date: List[Dict[str, Any]]


# ---- Content cache ----

class CacheKeyRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000)
    input_lang: str
    output_lang: str
    tone: str = "neutral"


class CacheKeyResponse(BaseModel):
    key: str


class CachedResponse(BaseModel):
    key: str
    hit: bool
    payload: Optional[Dict[str, Any]] = None


class LessonSaveRequest(BaseModel):
    topic: str = Field(..., min_length=1, max_length=255)
    language: str = Field(..., min_length=1, max_length=64)
    level: str = Field(..., min_length=1, max_length=64)
    lesson: Dict[str, Any]


class LessonSaveResponse(BaseModel):
    id: int


class LessonResponse(BaseModel):
    hit: bool
    lesson: Optional[Dict[str, Any]] = None


class CleanResponse(BaseModel):
    removed: int


class ChatMessageSchema(BaseModel):
    role: str = Field(..., pattern="^(user|ai)$")
    content: str
    translation: Optional[str] = None
    corrections: Optional[List[Any]] = None


class ConversationSaveRequest(BaseModel):
    scenario: str = Field(..., min_length=1, max_length=255)
    language: str = Field(..., min_length=1, max_length=64)
    messages: List[ChatMessageSchema] = Field(default_factory=list)


class ConversationUpdateRequest(BaseModel):
    messages: List[ChatMessageSchema]


class ConversationSchema(BaseModel):
    id: int
    scenario: str
    language: str
    messages: List[ChatMessageSchema]
    created_at: int


class ConversationListResponse(BaseModel):
    conversations: List[ConversationSchema]


class ReplyLookupRequest(BaseModel):
    user_message: str = Field(..., min_length=1, max_length=5000)
    scenario: str
    language: str


class ReplyLookupResponse(BaseModel):
    hit: bool
    reply: Optional[ChatMessageSchema] = None
