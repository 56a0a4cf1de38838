"""Tests for phrase, review and stats API endpoints."""

import sys
import tempfile
from datetime import timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from fastapi.testclient import TestClient
from server.app import app
from server.config import Settings
from server.db.models import PhraseRow
from server.db.session import Database
from server.dependencies import get_database, get_settings
from server.repositories import ActivityLog, PhraseRepository
from study.models import MS_PER_DAY, ReviewState, now_ms, utc_today


# ============================================================================
# Helpers
# ============================================================================

def _setup(tmp_dir: Path):
    settings = Settings(database_url=f"sqlite:///{tmp_dir / 'api.db'}")
    db = Database.from_settings(settings)
    db.init_schema()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_database] = lambda: db
    return db, TestClient(app)


def _teardown(db: Database):
    app.dependency_overrides.clear()
    db.dispose()


def _add_due(db: Database, original: str, days_ago: int = 2) -> int:
    """Insert a phrase created `days_ago` days back, so it is already due."""
    phrase = PhraseRepository(db).add(original, f"{original}-tr", now=now_ms() - days_ago * MS_PER_DAY)
    return phrase.id


# ============================================================================
# Tests: /phrases
# ============================================================================

def test_create_phrase():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            resp = client.post("/phrases", json={
                "original": "Bonjour",
                "translated": "Hello",
                "pronunciation": "bon-ZHOOR",
            })
            assert resp.status_code == 200
            body = resp.json()
            assert body["original"] == "Bonjour"
            assert body["review"]["ease_factor"] == 2.5
            assert body["review"]["interval"] == 1
            assert body["review"]["next_review_at"] == body["review"]["created_at"] + MS_PER_DAY
            assert body["is_due"] is False
        finally:
            _teardown(db)


def test_create_phrase_requires_text():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            resp = client.post("/phrases", json={"original": "", "translated": "x"})
            assert resp.status_code == 422
        finally:
            _teardown(db)


def test_list_phrases():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            client.post("/phrases", json={"original": "a", "translated": "1"})
            client.post("/phrases", json={"original": "b", "translated": "2"})
            body = client.get("/phrases").json()
            assert body["count"] == 2
            assert {p["original"] for p in body["phrases"]} == {"a", "b"}
        finally:
            _teardown(db)


def test_due_phrases_empty():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            client.post("/phrases", json={"original": "fresh", "translated": "x"})
            body = client.get("/phrases/due").json()
            assert body == {"count": 0, "phrases": []}
        finally:
            _teardown(db)


def test_due_phrases_returns_due_oldest_first():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            newer = _add_due(db, "newer", days_ago=2)
            older = _add_due(db, "older", days_ago=5)
            client.post("/phrases", json={"original": "fresh", "translated": "x"})
            body = client.get("/phrases/due").json()
            assert [p["id"] for p in body["phrases"]] == [older, newer]
            assert all(p["is_due"] for p in body["phrases"])
        finally:
            _teardown(db)


def test_delete_phrase():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            pid = client.post("/phrases", json={"original": "a", "translated": "1"}).json()["id"]
            assert client.delete(f"/phrases/{pid}").status_code == 200
            assert client.delete(f"/phrases/{pid}").status_code == 404
            assert client.get("/phrases").json()["count"] == 0
        finally:
            _teardown(db)


# ============================================================================
# Tests: /phrases/{id}/review
# ============================================================================

def test_review_updates_schedule_and_logs_activity():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            pid = _add_due(db, "Danke")
            resp = client.post(f"/phrases/{pid}/review", json={"quality": 5})
            assert resp.status_code == 200
            body = resp.json()
            assert body["review"]["interval"] == 1
            assert abs(body["review"]["ease_factor"] - 2.6) < 1e-9
            assert body["is_due"] is False

            stats = client.get("/stats").json()
            assert stats["total_activities"] == 1
            assert stats["by_type"][0]["type"] == "review"
            assert stats["by_type"][0]["avg_score"] == 100
        finally:
            _teardown(db)


def test_review_failed_recall_resets_interval():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            pid = _add_due(db, "Entschuldigung")
            created = PhraseRepository(db).get(pid).review.created_at
            PhraseRepository(db).save_review_state(pid, ReviewState(2.5, 10, created, created))
            body = client.post(f"/phrases/{pid}/review", json={"quality": 1}).json()
            assert body["review"]["interval"] == 1
            assert abs(body["review"]["ease_factor"] - 1.96) < 1e-9
        finally:
            _teardown(db)


def test_review_invalid_quality_returns_400():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            pid = _add_due(db, "x")
            before = PhraseRepository(db).get(pid).review
            for q in (0, 6):
                resp = client.post(f"/phrases/{pid}/review", json={"quality": q})
                assert resp.status_code == 400
            assert PhraseRepository(db).get(pid).review == before
            assert client.get("/stats").json()["total_activities"] == 0
        finally:
            _teardown(db)


def test_review_rejects_non_integer_quality():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            pid = _add_due(db, "x")
            before = PhraseRepository(db).get(pid).review
            for q in (True, False, 4.0, "5", None):
                resp = client.post(f"/phrases/{pid}/review", json={"quality": q})
                assert resp.status_code in (400, 422), q
            assert PhraseRepository(db).get(pid).review == before
            assert client.get("/stats").json()["total_activities"] == 0
        finally:
            _teardown(db)


def test_review_unknown_phrase_returns_404():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            resp = client.post("/phrases/999/review", json={"quality": 4})
            assert resp.status_code == 404
        finally:
            _teardown(db)


def test_review_corrupted_state_returns_409():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            pid = _add_due(db, "x")
            with db.session() as s:
                s.get(PhraseRow, pid).interval = 0
            resp = client.post(f"/phrases/{pid}/review", json={"quality": 4})
            assert resp.status_code == 409
        finally:
            _teardown(db)


# ============================================================================
# Tests: /activity and /stats
# ============================================================================

def test_record_activity_and_stats():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            assert client.post("/activity", json={"type": "prediction", "score": 10}).status_code == 200
            assert client.post("/activity", json={"type": "chat", "score": 15}).status_code == 200
            stats = client.get("/stats").json()
            assert stats["total_activities"] == 2
            assert stats["total_days"] == 1
            assert stats["current_streak"] == 1
            assert stats["weak_areas"][0] == {"area": "Translation", "score": 10}
            assert stats["activity_by_date"] == [{"date": utc_today().isoformat(), "count": 2}]
        finally:
            _teardown(db)


def test_record_activity_unknown_type_returns_400():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            resp = client.post("/activity", json={"type": "juggling", "score": 10})
            assert resp.status_code == 400
        finally:
            _teardown(db)


def test_stats_streak_tolerates_missing_today():
    with tempfile.TemporaryDirectory() as tmp:
        db, client = _setup(Path(tmp))
        try:
            log = ActivityLog(db)
            today = utc_today()
            log.record("review", 60, day=today - timedelta(days=1))
            log.record("review", 60, day=today - timedelta(days=2))
            log.record("review", 60, day=today - timedelta(days=4))
            stats = client.get("/stats").json()
            assert stats["current_streak"] == 2
            assert stats["longest_streak"] == 2
            assert stats["total_days"] == 3
        finally:
            _teardown(db)
