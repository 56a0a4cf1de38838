"""
Phrasedeck CLI.

Usage:
    python -m server.cli --db sqlite:///phrasedeck.db add "Guten Morgen" "Good morning" [--pronunciation ...]
    python -m server.cli --db sqlite:///phrasedeck.db list
    python -m server.cli --db sqlite:///phrasedeck.db due
    python -m server.cli --db sqlite:///phrasedeck.db review
    python -m server.cli --db sqlite:///phrasedeck.db rate <phrase_id> <quality>
    python -m server.cli --db sqlite:///phrasedeck.db delete <phrase_id>
    python -m server.cli --db sqlite:///phrasedeck.db log <type> [--score N]
    python -m server.cli --db sqlite:///phrasedeck.db stats
    python -m server.cli --db sqlite:///phrasedeck.db serve [--port 8000]
"""

import argparse
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List

from server.config import Settings
from server.db.session import Database
from server.repositories import ActivityLog, PhraseNotFoundError, PhraseRepository
from server.services import review_service, stats_service
from study.models import Phrase
from study.ratings import ActivityType, Rating
from study.scheduler import InvalidQualityError, InvalidStateError

# Rating buttons shown in a review session; 2 has no button
RATING_KEYS = {
    '1': Rating.AGAIN,
    '3': Rating.HARD,
    '4': Rating.GOOD,
    '5': Rating.EASY,
}


def _fmt_ts(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime('%Y-%m-%d %H:%M')


@contextmanager
def _open(args) -> Iterator[Database]:
    settings = Settings(database_url=args.db) if args.db else Settings()
    db = Database.from_settings(settings)
    try:
        db.init_schema()
        yield db
    finally:
        db.dispose()


def run_review_session(
    repo: PhraseRepository,
    activity: ActivityLog,
    due: List[Phrase],
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
) -> Dict:
    """
    Show each due phrase, reveal the translation, and ask for a rating.

    Enter on the reveal prompt shows the answer; 'q' at any prompt ends
    the session. Unknown rating keys re-prompt. A phrase with a corrupt
    stored schedule is reported and skipped.

    Returns:
        {reviewed, passed, failed, skipped}
    """
    summary = {'reviewed': 0, 'passed': 0, 'failed': 0, 'skipped': 0}
    prompt = "Rate [1=Again 3=Hard 4=Good 5=Easy, q=quit]: "

    for i, phrase in enumerate(due, 1):
        output_fn(f"\n[{i}/{len(due)}] {phrase.original}")
        try:
            if input_fn("(enter to reveal) ").strip().lower() == 'q':
                break
            output_fn(f"  -> {phrase.translated}")
            if phrase.pronunciation:
                output_fn(f"     {phrase.pronunciation}")
            answer = input_fn(prompt).strip().lower()
            while answer != 'q' and answer not in RATING_KEYS:
                answer = input_fn(prompt).strip().lower()
        except (EOFError, KeyboardInterrupt):
            output_fn("\nSession ended.")
            break
        if answer == 'q':
            break

        quality = int(RATING_KEYS[answer])
        try:
            updated = review_service.review_phrase(repo, activity, phrase.id, quality)
        except InvalidStateError as e:
            output_fn(f"  skipped: {e}")
            summary['skipped'] += 1
            continue
        summary['reviewed'] += 1
        if quality >= 3:
            summary['passed'] += 1
        else:
            summary['failed'] += 1
        output_fn(f"  next review in {updated['review']['interval']} day(s)")

    output_fn(
        f"\nReviewed {summary['reviewed']}: "
        f"{summary['passed']} passed, {summary['failed']} failed."
    )
    if summary['skipped']:
        output_fn(f"Skipped {summary['skipped']} phrase(s) with a corrupt schedule.")
    return summary


def cmd_add(args):
    with _open(args) as db:
        phrase = review_service.add_phrase(
            PhraseRepository(db), args.original, args.translated,
            pronunciation=args.pronunciation,
            explanation=args.explanation,
            use_case=args.use_case,
        )
    print(f"Saved phrase {phrase['id']} (first review {_fmt_ts(phrase['review']['next_review_at'])} UTC)")


def cmd_list(args):
    with _open(args) as db:
        result = review_service.list_phrases(PhraseRepository(db))
    if not result['phrases']:
        print("No phrases saved yet.")
        return
    print(f"\n{result['count']} phrase(s):\n")
    for p in result['phrases']:
        flag = '*' if p['is_due'] else ' '
        print(f" {flag} {p['id']:>4}  {p['original'][:40]:<40}  {p['translated'][:40]}")


def cmd_due(args):
    with _open(args) as db:
        result = review_service.due_phrases(PhraseRepository(db))
    if not result['phrases']:
        print("No phrases due. Come back later!")
        return
    print(f"\n{result['count']} phrase(s) due for review:\n")
    for i, p in enumerate(result['phrases'], 1):
        r = p['review']
        print(f"  {i}. {p['original'][:80]}")
        print(f"     due={_fmt_ts(r['next_review_at'])}  ease={r['ease_factor']:.2f}  "
              f"interval={r['interval']}d")


def cmd_review(args):
    with _open(args) as db:
        repo = PhraseRepository(db)
        due = repo.due()
        if not due:
            print("No phrases due. Come back later!")
            return
        summary = run_review_session(repo, ActivityLog(db), due)
    if summary['skipped']:
        sys.exit(3)


def cmd_rate(args):
    with _open(args) as db:
        try:
            p = review_service.review_phrase(PhraseRepository(db), ActivityLog(db), args.phrase_id, args.quality)
        except PhraseNotFoundError:
            print(f"Phrase not found: {args.phrase_id}")
            sys.exit(1)
        except InvalidQualityError as e:
            print(str(e))
            sys.exit(2)
        except InvalidStateError as e:
            print(f"Corrupt schedule for phrase {args.phrase_id}: {e}")
            sys.exit(3)
    r = p['review']
    print(f"Phrase {p['id']}: interval={r['interval']}d ease={r['ease_factor']:.2f} "
          f"next={_fmt_ts(r['next_review_at'])} UTC")


def cmd_delete(args):
    with _open(args) as db:
        try:
            review_service.delete_phrase(PhraseRepository(db), args.phrase_id)
        except PhraseNotFoundError:
            print(f"Phrase not found: {args.phrase_id}")
            sys.exit(1)
    print(f"Deleted phrase {args.phrase_id}")


def cmd_log(args):
    with _open(args) as db:
        try:
            rec = stats_service.record_activity(ActivityLog(db), args.type, args.score)
        except ValueError as e:
            print(str(e))
            sys.exit(2)
    print(f"Logged {rec['type']} ({rec['score']}) on {rec['date']}")


def cmd_stats(args):
    with _open(args) as db:
        stats = stats_service.get_stats(ActivityLog(db))
        repo = PhraseRepository(db)
        total, due = repo.count(), len(repo.due())

    print(f"\nPhrases: {total}  (due now: {due})")
    print(f"  Activities:     {stats['total_activities']}")
    print(f"  Active days:    {stats['total_days']}")
    print(f"  Current streak: {stats['current_streak']}")
    print(f"  Longest streak: {stats['longest_streak']}")

    if stats['weak_areas']:
        print("  Areas (weakest first):")
        for a in stats['weak_areas']:
            print(f"    {a['area']}: {a['score']}")

    if stats['accuracy_trend']:
        print("  Last 7 days:")
        for t in stats['accuracy_trend']:
            print(f"    {t['date']}: {t['accuracy']}")


def cmd_serve(args):
    import uvicorn

    if args.db:
        os.environ["DATABASE_URL"] = args.db
    uvicorn.run("server.app:app", host=args.host, port=args.port, reload=args.reload)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Phrasedeck -- phrase review with spaced repetition",
    )
    parser.add_argument(
        '--db', default=None,
        help="Database URL (default: $DATABASE_URL or sqlite:///phrasedeck.db)",
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    add_parser = subparsers.add_parser('add', help='Save a new phrase')
    add_parser.add_argument('original', help='Phrase in the language being learned')
    add_parser.add_argument('translated', help='Translation')
    add_parser.add_argument('--pronunciation', default='')
    add_parser.add_argument('--explanation', default='')
    add_parser.add_argument('--use-case', dest='use_case', default='')

    subparsers.add_parser('list', help='List all phrases (* = due)')
    subparsers.add_parser('due', help='Show phrases due for review')
    subparsers.add_parser('review', help='Run interactive review session')

    rate_parser = subparsers.add_parser('rate', help='Rate one phrase without a session')
    rate_parser.add_argument('phrase_id', type=int)
    rate_parser.add_argument('quality', type=int, help='1-5 (1-2 failed, 3-5 recalled)')

    delete_parser = subparsers.add_parser('delete', help='Delete a phrase')
    delete_parser.add_argument('phrase_id', type=int)

    log_parser = subparsers.add_parser('log', help='Record a learning activity')
    log_parser.add_argument('type', choices=[t.value for t in ActivityType])
    log_parser.add_argument('--score', type=int, default=0, help='0-100')

    subparsers.add_parser('stats', help='Show streaks and activity statistics')

    serve_parser = subparsers.add_parser('serve', help='Run the HTTP API')
    serve_parser.add_argument('--host', default='127.0.0.1')
    serve_parser.add_argument('--port', type=int, default=int(os.environ.get("BACKEND_PORT", "8000")))
    serve_parser.add_argument('--reload', action='store_true')
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    commands = {
        'add': cmd_add,
        'list': cmd_list,
        'due': cmd_due,
        'review': cmd_review,
        'rate': cmd_rate,
        'delete': cmd_delete,
        'log': cmd_log,
        'stats': cmd_stats,
        'serve': cmd_serve,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return
    handler(args)


if __name__ == '__main__':
    main()
