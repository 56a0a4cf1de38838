"""Tests for server/repositories.py -- SQL phrase storage and activity log."""

import sys
import tempfile
import threading
from datetime import date, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from server.db.models import PhraseRow
from server.db.session import Database
from server.repositories import ActivityLog, PhraseNotFoundError, PhraseRepository
from study.models import MS_PER_DAY, ReviewState
from study.scheduler import InvalidQualityError, InvalidStateError


T0 = 1_700_000_000_000


def _make_db(tmp: str) -> Database:
    db = Database(f"sqlite:///{Path(tmp) / 'test.db'}")
    db.init_schema()
    return db


# ============================================================================
# PhraseRepository
# ============================================================================

def test_add_and_get():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        repo = PhraseRepository(db)
        phrase = repo.add("Guten Morgen", "Good morning", pronunciation="GOO-ten", now=T0)
        loaded = repo.get(phrase.id)
        assert loaded is not None
        assert loaded.original == "Guten Morgen"
        assert loaded.pronunciation == "GOO-ten"
        assert loaded.review == ReviewState(2.5, 1, T0 + MS_PER_DAY, T0)
        db.dispose()


def test_add_keeps_explanation_and_use_case_separate():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        repo = PhraseRepository(db)
        phrase = repo.add("Hola", "Hello", explanation="Informal", use_case="Greeting friends", now=T0)
        loaded = repo.get(phrase.id)
        assert loaded.pronunciation == ''
        assert loaded.explanation == "Informal"
        assert loaded.use_case == "Greeting friends"
        db.dispose()


def test_get_missing_returns_none():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        assert PhraseRepository(db).get(999) is None
        db.dispose()


def test_load_and_save_review_state():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        repo = PhraseRepository(db)
        phrase = repo.add("a", "b", now=T0)
        new_state = ReviewState(2.2, 6, T0 + 6 * MS_PER_DAY, T0)
        repo.save_review_state(phrase.id, new_state)
        assert repo.load_review_state(phrase.id) == new_state
        with pytest.raises(PhraseNotFoundError):
            repo.load_review_state(12345)
        with pytest.raises(PhraseNotFoundError):
            repo.save_review_state(12345, new_state)
        db.dispose()


def test_due_filters_and_sorts():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        repo = PhraseRepository(db)
        late = repo.add("late", "x", now=T0 - 5 * MS_PER_DAY)
        later = repo.add("later", "x", now=T0 - 2 * MS_PER_DAY)
        fresh = repo.add("fresh", "x", now=T0)

        due = repo.due(now=T0)
        assert [p.id for p in due] == [late.id, later.id]
        assert fresh.id not in {p.id for p in due}
        db.dispose()


def test_due_includes_exact_boundary():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        repo = PhraseRepository(db)
        p = repo.add("x", "y", now=T0)
        assert [d.id for d in repo.due(now=T0 + MS_PER_DAY)] == [p.id]
        assert repo.due(now=T0 + MS_PER_DAY - 1) == []
        db.dispose()


def test_all_newest_first_and_count():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        repo = PhraseRepository(db)
        a = repo.add("a", "1", now=T0)
        b = repo.add("b", "2", now=T0 + 1000)
        assert [p.id for p in repo.all()] == [b.id, a.id]
        assert repo.count() == 2
        db.dispose()


def test_review_persists_new_schedule():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        repo = PhraseRepository(db)
        p = repo.add("x", "y", now=T0)
        repo.save_review_state(p.id, ReviewState(2.5, 2, T0 + 2 * MS_PER_DAY, T0))

        now = T0 + 2 * MS_PER_DAY
        updated = repo.review(p.id, 4, now=now)
        assert updated.review.interval == 6
        assert updated.review.next_review_at == now + 6 * MS_PER_DAY
        assert updated.review.created_at == T0
        assert repo.get(p.id).review == updated.review
        db.dispose()


def test_review_missing_phrase_raises():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        with pytest.raises(PhraseNotFoundError):
            PhraseRepository(db).review(42, 4, now=T0)
        db.dispose()


def test_review_invalid_quality_leaves_row_untouched():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        repo = PhraseRepository(db)
        p = repo.add("x", "y", now=T0)
        with pytest.raises(InvalidQualityError):
            repo.review(p.id, 0, now=T0)
        assert repo.get(p.id).review == p.review
        db.dispose()


def test_review_rejects_corrupted_row():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        repo = PhraseRepository(db)
        p = repo.add("x", "y", now=T0)
        with db.session() as s:
            s.get(PhraseRow, p.id).ease_factor = 1.1
        with pytest.raises(InvalidStateError):
            repo.review(p.id, 4, now=T0)
        assert repo.get(p.id).review.ease_factor == 1.1
        db.dispose()


def test_concurrent_reviews_apply_every_rating():
    """Each review runs in its own transaction; none of them is lost."""
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        repo = PhraseRepository(db)
        p = repo.add("x", "y", now=T0)
        errors = []

        def rate():
            try:
                repo.review(p.id, 5, now=T0 + MS_PER_DAY)
            except Exception as e:  # collected and asserted below
                errors.append(e)

        threads = [threading.Thread(target=rate) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        # four +0.1 ease steps from 2.5
        assert repo.get(p.id).review.ease_factor == pytest.approx(2.9)
        db.dispose()


def test_delete():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        repo = PhraseRepository(db)
        p = repo.add("x", "y", now=T0)
        assert repo.delete(p.id) is True
        assert repo.get(p.id) is None
        assert repo.delete(p.id) is False
        db.dispose()


# ============================================================================
# ActivityLog
# ============================================================================

def test_activity_record_and_read_back():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        log = ActivityLog(db)
        day = date(2024, 1, 10)
        log.record('review', score=80, day=day)
        log.record('chat', score=15, day=day)
        log.record('prediction', score=10, day=day - timedelta(days=1))

        records = log.records()
        assert len(records) == 3
        assert records[0].date == day - timedelta(days=1)
        assert log.distinct_dates() == {day, day - timedelta(days=1)}
        db.dispose()


def test_activity_unknown_type_rejected():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        with pytest.raises(ValueError):
            ActivityLog(db).record('dancing', score=5)
        assert ActivityLog(db).records() == []
        db.dispose()


def test_separate_databases_do_not_share_state():
    with tempfile.TemporaryDirectory() as tmp_a, tempfile.TemporaryDirectory() as tmp_b:
        db_a = _make_db(tmp_a)
        db_b = _make_db(tmp_b)
        PhraseRepository(db_a).add("only in a", "x", now=T0)
        assert PhraseRepository(db_a).count() == 1
        assert PhraseRepository(db_b).count() == 0
        db_a.dispose()
        db_b.dispose()


def test_review_logs_activity_on_the_day_of_now():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        repo = PhraseRepository(db)
        log = ActivityLog(db)
        p = repo.add("x", "y", now=T0)
        # T0 is 2023-11-14 22:13 UTC; two hours later is the next UTC day
        repo.review(p.id, 4, now=T0 + 2 * 3_600_000, activity=log)
        records = log.records()
        assert len(records) == 1
        assert records[0].date == date(2023, 11, 15)
        assert records[0].type == 'review'
        assert records[0].score == 80
        db.dispose()


def test_review_rolls_back_schedule_when_activity_write_fails():
    class BrokenLog(ActivityLog):
        def stage(self, session, activity_type, score=0, day=None):
            raise RuntimeError("activity insert failed")

    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        repo = PhraseRepository(db)
        p = repo.add("x", "y", now=T0)
        with pytest.raises(RuntimeError):
            repo.review(p.id, 5, now=T0 + MS_PER_DAY, activity=BrokenLog(db))
        assert repo.get(p.id).review == p.review
        assert ActivityLog(db).records() == []
        db.dispose()


def test_review_invalid_quality_logs_no_activity():
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        repo = PhraseRepository(db)
        log = ActivityLog(db)
        p = repo.add("x", "y", now=T0)
        with pytest.raises(InvalidQualityError):
            repo.review(p.id, 6, now=T0, activity=log)
        assert log.records() == []
        db.dispose()


@pytest.mark.parametrize("score", [-5, 101])
def test_activity_score_out_of_range_rejected(score):
    with tempfile.TemporaryDirectory() as tmp:
        db = _make_db(tmp)
        with pytest.raises(ValueError):
            ActivityLog(db).record('chat', score=score)
        assert ActivityLog(db).records() == []
        db.dispose()
