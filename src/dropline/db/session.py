"""Engine and session factory for the transfer registry.

There is one engine per process. Request handlers receive a session through
the ``get_db`` dependency; scripts use :func:`session_scope`.
"""

from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from dropline.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base for users, transfers, files and recipients."""


# Models register their tables on Base.metadata at import time.
import dropline.models  # noqa: E402,F401


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:  # type: ignore[no-untyped-def]
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, echo: bool = False, **engine_kwargs: Any) -> Engine:
    """Create an engine for ``url``.

    SQLite connections may be shared across threads (FastAPI runs sync
    dependencies in a threadpool) and get foreign key enforcement switched on.
    """
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
    engine = create_engine(url, pool_pre_ping=True, echo=echo, **engine_kwargs)
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


engine = build_engine(settings.effective_database_url, echo=settings.sql_debug)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for scripts. Services commit explicitly; this only closes it."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind: Engine | None = None) -> None:
    Base.metadata.create_all(bind=bind or engine)


def drop_tables(bind: Engine | None = None) -> None:
    Base.metadata.drop_all(bind=bind or engine)
