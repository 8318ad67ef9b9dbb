import os
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from natureup.db.models import Base

# Conversations and saved excursions share one SQLite file.
DB_PATH = os.getenv("DB_PATH", "./natureup.db")

# Sync endpoints run in FastAPI's threadpool, so a session may move threads.
connect_args = {"check_same_thread": False}


def _build_engine(db_path: str):
    Path(db_path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(f"sqlite:///{db_path}", connect_args=connect_args)


engine = _build_engine(DB_PATH)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def configure_database(db_path: str) -> None:
    """Point the engine and ``SessionLocal`` at another file (tests, scripts/clear_user_data.py)."""
    global DB_PATH, engine
    DB_PATH = db_path
    engine = _build_engine(DB_PATH)
    SessionLocal.configure(bind=engine)


def create_tables() -> None:
    Base.metadata.create_all(bind=engine)


def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()
