"""FastAPI application -- routes for the Phrasedeck learning backend."""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from server.__version__ import __version__
from server.content_cache import ContentCache, cache_key
from server.db.session import Database
from server.dependencies import (
    get_activity_log,
    get_content_cache,
    get_phrase_repo,
    get_settings,
)
from server.repositories import ActivityLog, PhraseNotFoundError, PhraseRepository
from server.schemas import (
    ActivityRequest,
    ActivityResponse,
    CachedResponse,
    CacheKeyRequest,
    CacheKeyResponse,
    CleanResponse,
    ConversationListResponse,
    ConversationSaveRequest,
    ConversationSchema,
    ConversationUpdateRequest,
    LessonResponse,
    LessonSaveRequest,
    LessonSaveResponse,
    PhraseCreateRequest,
    PhraseListResponse,
    PhraseReviewRequest,
    PhraseSchema,
    ReplyLookupRequest,
    ReplyLookupResponse,
    StatsResponse,
)
from server.services import review_service, stats_service
from study.models import ChatMessage
from study.scheduler import InvalidQualityError, InvalidStateError

logger = logging.getLogger("phrasedeck")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan: open the database handle for the app and close it on shutdown."""
    settings = get_settings()
    logger.setLevel(settings.log_level)
    db = Database.from_settings(settings)
    db.init_schema()
    app.state.database = db
    ts = datetime.now(timezone.utc).isoformat()
    logger.info("[%s] Startup: database ready", ts)
    try:
        yield
    finally:
        db.dispose()
        ts_end = datetime.now(timezone.utc).isoformat()
        logger.info("[%s] Shutdown: complete", ts_end)


app = FastAPI(title="Phrasedeck", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _messages(items) -> list:
    return [ChatMessage(**m.model_dump()) for m in items]


# ---- Health (no dependencies, always fast) ----

@app.get("/health")
def health():
    """Minimal health check. No deps. Always returns immediately."""
    return {"ok": True}


# ---- Phrases ----

@app.post("/phrases", response_model=PhraseSchema)
def create_phrase(body: PhraseCreateRequest, repo: PhraseRepository = Depends(get_phrase_repo)):
    return review_service.add_phrase(
        repo,
        body.original,
        body.translated,
        pronunciation=body.pronunciation,
        explanation=body.explanation,
        use_case=body.use_case,
    )


@app.get("/phrases", response_model=PhraseListResponse)
def list_phrases(repo: PhraseRepository = Depends(get_phrase_repo)):
    return review_service.list_phrases(repo)


@app.get("/phrases/due", response_model=PhraseListResponse)
def due_phrases(repo: PhraseRepository = Depends(get_phrase_repo)):
    return review_service.due_phrases(repo)


@app.post("/phrases/{phrase_id}/review", response_model=PhraseSchema)
def review_phrase(
    phrase_id: int,
    body: PhraseReviewRequest,
    repo: PhraseRepository = Depends(get_phrase_repo),
    activity: ActivityLog = Depends(get_activity_log),
):
    try:
        return review_service.review_phrase(repo, activity, phrase_id, body.quality)
    except PhraseNotFoundError:
        raise HTTPException(status_code=404, detail=f"Phrase not found: {phrase_id}")
    except InvalidQualityError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InvalidStateError as e:
        logger.error("Corrupt review state for phrase %d: %s", phrase_id, e)
        raise HTTPException(status_code=409, detail=str(e))


@app.delete("/phrases/{phrase_id}")
def delete_phrase(phrase_id: int, repo: PhraseRepository = Depends(get_phrase_repo)):
    try:
        return review_service.delete_phrase(repo, phrase_id)
    except PhraseNotFoundError:
        raise HTTPException(status_code=404, detail=f"Phrase not found: {phrase_id}")


# ---- Activity & stats ----

@app.post("/activity", response_model=ActivityResponse)
def record_activity(body: ActivityRequest, activity: ActivityLog = Depends(get_activity_log)):
    try:
        return stats_service.record_activity(activity, body.type, body.score)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/stats", response_model=StatsResponse)
def stats(days: int = 7, activity: ActivityLog = Depends(get_activity_log)):
    return stats_service.get_stats(activity, trend_days=days)


# ---- API response cache ----

@app.post("/cache/key", response_model=CacheKeyResponse)
def make_cache_key(body: CacheKeyRequest):
    return {"key": cache_key(body.text, body.input_lang, body.output_lang, body.tone)}


@app.get("/cache/{key}", response_model=CachedResponse)
def get_cached(key: str, cache: ContentCache = Depends(get_content_cache)):
    payload = cache.get_response(key)
    return {"key": key, "hit": payload is not None, "payload": payload}


@app.put("/cache/{key}", response_model=CachedResponse)
def put_cached(key: str, payload: dict, cache: ContentCache = Depends(get_content_cache)):
    cache.put_response(key, payload)
    return {"key": key, "hit": True, "payload": payload}


# ---- Lessons ----

@app.post("/lessons", response_model=LessonSaveResponse)
def save_lesson(body: LessonSaveRequest, cache: ContentCache = Depends(get_content_cache)):
    lesson_id = cache.save_lesson(body.topic, body.language, body.level, body.lesson)
    return {"id": lesson_id}


@app.get("/lessons/random", response_model=LessonResponse)
def random_lesson(
    topic: str,
    language: str,
    level: str,
    cache: ContentCache = Depends(get_content_cache),
):
    lesson = cache.random_lesson(topic, language, level)
    return {"hit": lesson is not None, "lesson": lesson}


@app.post("/lessons/clean", response_model=CleanResponse)
def clean_lessons(cache: ContentCache = Depends(get_content_cache)):
    return {"removed": cache.clean_expired_lessons()}


# ---- Conversations ----

@app.post("/conversations", response_model=ConversationSchema)
def save_conversation(body: ConversationSaveRequest, cache: ContentCache = Depends(get_content_cache)):
    convo = cache.save_conversation(body.scenario, body.language, _messages(body.messages))
    return convo.to_dict()


@app.get("/conversations", response_model=ConversationListResponse)
def list_conversations(cache: ContentCache = Depends(get_content_cache)):
    return {"conversations": [c.to_dict() for c in cache.list_conversations()]}


@app.put("/conversations/{conversation_id}")
def update_conversation(
    conversation_id: int,
    body: ConversationUpdateRequest,
    cache: ContentCache = Depends(get_content_cache),
):
    if not cache.update_conversation(conversation_id, _messages(body.messages)):
        raise HTTPException(status_code=404, detail=f"Conversation not found: {conversation_id}")
    return {"ok": True}


@app.post("/conversations/lookup", response_model=ReplyLookupResponse)
def lookup_reply(body: ReplyLookupRequest, cache: ContentCache = Depends(get_content_cache)):
    reply = cache.find_cached_reply(body.user_message, body.scenario, body.language)
    return {"hit": reply is not None, "reply": reply.to_dict() if reply else None}
