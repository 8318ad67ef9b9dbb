import argparse
import os
from pathlib import Path
from typing import Optional

from sqlalchemy.orm import Session

from natureup.db import session as db_session
from natureup.db.models import Conversation, Excursion

USER_MODELS = (Conversation, Excursion)


def resolve_db_path(override: Optional[str]) -> Path:
    raw = override or os.getenv("DB_PATH") or "./natureup.db"
    return Path(raw).expanduser().resolve()


def _scoped(db: Session, model, user_ids: list[str]):
    query = db.query(model)
    if user_ids:
        query = query.filter(model.user_id.in_(user_ids))
    return query


def summarize(db: Session, user_ids: list[str]) -> dict[str, int]:
    """Row counts per table for the given users (every user when empty)."""
    return {model.__tablename__: _scoped(db, model, user_ids).count() for model in USER_MODELS}


def purge(db: Session, user_ids: list[str]) -> dict[str, int]:
    deleted = {
        model.__tablename__: _scoped(db, model, user_ids).delete(synchronize_session=False)
        for model in USER_MODELS
    }
    db.commit()
    return deleted


def _print_counts(title: str, counts: dict[str, int]) -> None:
    print(title)
    for table, count in counts.items():
        print(f"  {table}: {count}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Remove NatureUp conversations and excursions for one or more users.")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--user-id", action="append", default=[], help="User id to clear (repeatable).")
    target.add_argument("--all", action="store_true", help="Clear rows for every user.")
    parser.add_argument("--db-path", default=None, help="SQLite file; defaults to DB_PATH or ./natureup.db.")
    parser.add_argument("--dry-run", action="store_true", help="Print matching row counts and exit.")
    parser.add_argument("--yes", action="store_true", help="Required to actually delete.")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    user_ids = [] if args.all else [value.strip() for value in args.user_id if value.strip()]
    if not args.all and not user_ids:
        parser.error("--user-id must not be blank")
    if not args.dry_run and not args.yes:
        parser.error("pass --yes to delete, or --dry-run to preview")

    db_path = resolve_db_path(args.db_path)
    if not db_path.exists():
        print(f"No database at {db_path}")
        return 1

    db_session.configure_database(str(db_path))
    db = db_session.SessionLocal()
    try:
        print(f"Database: {db_path}")
        print(f"Scope: {'all users' if args.all else ', '.join(user_ids)}")
        if args.dry_run:
            _print_counts("Would delete:", summarize(db, user_ids))
        else:
            _print_counts("Deleted:", purge(db, user_ids))
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
