"""Database engine, sessions and time helpers."""

from .session import Base, SessionLocal, build_engine, engine, get_db, session_scope

__all__ = ["Base", "SessionLocal", "build_engine", "engine", "get_db", "session_scope"]
