"""Cache for generated content: API responses, lessons and chat transcripts.

JSON is encoded and decoded only here; callers work with dicts and
study.models.Conversation values.
"""

import hashlib
import json
import logging
import random
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select

from server.db.models import ApiCacheRow, ConversationRow, LessonCacheRow
from server.db.session import Database
from study.models import MS_PER_DAY, ChatMessage, Conversation, now_ms

logger = logging.getLogger("phrasedeck.cache")


def cache_key(text: str, input_lang: str, output_lang: str, tone: str) -> str:
    """Deterministic key for a translation request (case and outer whitespace ignored)."""
    raw = f"{text.strip().lower()}_{input_lang}_{output_lang}_{tone}"
    return hashlib.md5(raw.encode('utf-8')).hexdigest()


def _decode(raw: str, what: str) -> Optional[Any]:
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Corrupt JSON in %s; treating as a miss", what)
        return None


def _encode_messages(messages: List[ChatMessage]) -> str:
    return json.dumps([m.to_dict() for m in messages], ensure_ascii=False)


def _row_to_conversation(row: ConversationRow) -> Conversation:
    data = _decode(row.messages_json, f"conversation {row.id}") or []
    return Conversation(
        id=row.id,
        scenario=row.scenario,
        language=row.language,
        messages=[ChatMessage.from_dict(m) for m in data if isinstance(m, dict)],
        created_at=row.created_at,
    )


class ContentCache:
    """
    SQL-backed cache in front of the content generation collaborator.

    - API responses: keyed by cache_key(), insert-or-replace
    - Lessons: at most `lessons_per_key` per (topic, language, level),
      served at random while younger than `lesson_ttl_days`
    - Conversations: saved transcripts, also searched for a reusable reply
    """

    def __init__(
        self,
        db: Database,
        lesson_ttl_days: int = 7,
        lessons_per_key: int = 10,
        conversation_lookup_limit: int = 5,
    ):
        self.db = db
        self.lesson_ttl_ms = lesson_ttl_days * MS_PER_DAY
        self.lessons_per_key = lessons_per_key
        self.conversation_lookup_limit = conversation_lookup_limit

    @classmethod
    def from_settings(cls, db: Database, settings) -> 'ContentCache':
        return cls(
            db,
            lesson_ttl_days=settings.lesson_ttl_days,
            lessons_per_key=settings.lessons_per_key,
            conversation_lookup_limit=settings.conversation_lookup_limit,
        )

    # ----------------------------
    # API responses
    # ----------------------------
    def get_response(self, key: str) -> Optional[Dict[str, Any]]:
        with self.db.session() as s:
            row = s.get(ApiCacheRow, key)
            if row is None:
                return None
            return _decode(row.response_json, f"api_cache {key}")

    def put_response(self, key: str, payload: Dict[str, Any], now: Optional[int] = None) -> None:
        ts = now_ms() if now is None else now
        encoded = json.dumps(payload, ensure_ascii=False)
        with self.db.session() as s:
            row = s.get(ApiCacheRow, key)
            if row is None:
                s.add(ApiCacheRow(hash_key=key, response_json=encoded, timestamp=ts))
            else:
                row.response_json = encoded
                row.timestamp = ts

    # ----------------------------
    # Lessons
    # ----------------------------
    def save_lesson(
        self,
        topic: str,
        language: str,
        level: str,
        lesson: Dict[str, Any],
        now: Optional[int] = None,
    ) -> int:
        """Store a lesson, evicting the oldest ones for the same key beyond the cap."""
        ts = now_ms() if now is None else now
        with self.db.session() as s:
            existing = s.scalars(
                select(LessonCacheRow.id)
                .where(
                    LessonCacheRow.topic == topic,
                    LessonCacheRow.language == language,
                    LessonCacheRow.level == level,
                )
                .order_by(LessonCacheRow.created_at.desc(), LessonCacheRow.id.desc())
            ).all()
            stale = existing[max(self.lessons_per_key - 1, 0):]
            if stale:
                s.execute(delete(LessonCacheRow).where(LessonCacheRow.id.in_(stale)))
            row = LessonCacheRow(
                topic=topic,
                language=language,
                level=level,
                lesson_json=json.dumps(lesson, ensure_ascii=False),
                created_at=ts,
            )
            s.add(row)
            s.flush()
            row_id = row.id
        logger.info("Lesson cached for %s (%s/%s)", topic, language, level)
        return row_id

    def random_lesson(
        self,
        topic: str,
        language: str,
        level: str,
        now: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> Optional[Dict[str, Any]]:
        """A random unexpired lesson for the key, or None."""
        ts = now_ms() if now is None else now
        with self.db.session() as s:
            rows = s.scalars(
                select(LessonCacheRow)
                .where(
                    LessonCacheRow.topic == topic,
                    LessonCacheRow.language == language,
                    LessonCacheRow.level == level,
                    LessonCacheRow.created_at > ts - self.lesson_ttl_ms,
                )
                .order_by(LessonCacheRow.id.asc())
            ).all()
            candidates = [(r.id, r.lesson_json) for r in rows]
        if not candidates:
            return None
        row_id, raw = (rng or random).choice(candidates)
        return _decode(raw, f"lesson_cache {row_id}")

    def count_lessons(self, topic: str, language: str, level: str) -> int:
        with self.db.session() as s:
            return s.scalar(
                select(func.count())
                .select_from(LessonCacheRow)
                .where(
                    LessonCacheRow.topic == topic,
                    LessonCacheRow.language == language,
                    LessonCacheRow.level == level,
                )
            )

    def clean_expired_lessons(self, now: Optional[int] = None) -> int:
        """Delete lessons older than the TTL. Returns the number removed."""
        ts = now_ms() if now is None else now
        with self.db.session() as s:
            result = s.execute(
                delete(LessonCacheRow).where(LessonCacheRow.created_at < ts - self.lesson_ttl_ms)
            )
            removed = result.rowcount
        if removed:
            logger.info("Removed %d expired lesson(s)", removed)
        return removed

    # ----------------------------
    # Conversations
    # ----------------------------
    def save_conversation(
        self,
        scenario: str,
        language: str,
        messages: List[ChatMessage],
        now: Optional[int] = None,
    ) -> Conversation:
        ts = now_ms() if now is None else now
        with self.db.session() as s:
            row = ConversationRow(
                scenario=scenario,
                language=language,
                messages_json=_encode_messages(messages),
                created_at=ts,
            )
            s.add(row)
            s.flush()
            return _row_to_conversation(row)

    def list_conversations(self) -> List[Conversation]:
        """All conversations, most recently updated first."""
        with self.db.session() as s:
            rows = s.scalars(
                select(ConversationRow).order_by(
                    ConversationRow.created_at.desc(), ConversationRow.id.desc()
                )
            ).all()
            return [_row_to_conversation(r) for r in rows]

    def update_conversation(
        self,
        conversation_id: int,
        messages: List[ChatMessage],
        now: Optional[int] = None,
    ) -> bool:
        """Replace a transcript and bump its timestamp. False if the id is unknown."""
        ts = now_ms() if now is None else now
        with self.db.session() as s:
            row = s.get(ConversationRow, conversation_id)
            if row is None:
                return False
            row.messages_json = _encode_messages(messages)
            row.created_at = ts
        return True

    def find_cached_reply(
        self,
        user_message: str,
        scenario: str,
        language: str,
    ) -> Optional[ChatMessage]:
        """
        Look for an earlier AI reply to the same user message.

        Scans the most recent conversations for this scenario and language
        for a user turn matching `user_message` (trimmed, case-insensitive)
        that is immediately followed by an AI turn.
        """
        wanted = user_message.strip().lower()
        with self.db.session() as s:
            rows = s.scalars(
                select(ConversationRow)
                .where(ConversationRow.scenario == scenario, ConversationRow.language == language)
                .order_by(ConversationRow.created_at.desc(), ConversationRow.id.desc())
                .limit(self.conversation_lookup_limit)
            ).all()
            conversations = [_row_to_conversation(r) for r in rows]

        for convo in conversations:
            msgs = convo.messages
            for current, following in zip(msgs, msgs[1:]):
                if (
                    current.role == 'user'
                    and current.content.strip().lower() == wanted
                    and following.role == 'ai'
                ):
                    return following
        return None
