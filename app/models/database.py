from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.config import settings


def _normalize_database_url(database_url: str) -> str:
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+psycopg://", 1)

    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+psycopg://", 1)

    return database_url


def _engine_kwargs(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        # Request handlers run in a threadpool, the sqlite driver pins connections to a thread.
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


_database_url = _normalize_database_url(settings.DATABASE_URL)
engine = create_engine(_database_url, **_engine_kwargs(_database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
