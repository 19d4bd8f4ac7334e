from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, declarative_base
from pathlib import Path

from config.settings import settings

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the document store.

    SQLite databases get WAL mode and a busy timeout so concurrent batch
    workers wait for the write lock instead of failing immediately.
    """
    url = make_url(database_url)
    is_sqlite = url.get_backend_name() == 'sqlite'
    in_memory = is_sqlite and url.database in (None, '', ':memory:')

    kwargs = {'echo': False}
    if is_sqlite:
        kwargs['connect_args'] = {'check_same_thread': False}
        if url.database and not in_memory:
            Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
    if not in_memory:
        kwargs.update(
            pool_size=20,  # Batch workers + API requests
            max_overflow=30,
            pool_pre_ping=True,  # Verify connections are alive before using
            pool_recycle=3600,
        )

    new_engine = create_engine(database_url, **kwargs)

    if is_sqlite:
        @event.listens_for(new_engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            if not in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA busy_timeout=5000")  # Wait up to 5s for locks instead of failing immediately
            cursor.close()

    return new_engine


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(bind=engine)


def get_db():
    """Dependency for FastAPI routes"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
