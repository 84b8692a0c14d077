"""
Community Hub – Async SQLAlchemy engine, session factory, and declarative base.
"""

from __future__ import annotations

from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


# ── Declarative base ──
class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy own BEGIN on SQLite so SAVEPOINT / begin_nested() work.

    Transactions open with BEGIN IMMEDIATE: the write lock is taken up front,
    so concurrent writers wait on the busy timeout instead of failing with
    "database is locked" when a deferred read lock tries to upgrade.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine with the per-dialect tweaks this app relies on."""
    engine_kwargs = {
        "echo": kwargs.pop("echo", settings.DEBUG),
        "future": True,
    }
    engine_kwargs.update(kwargs)

    # PgBouncer (transaction mode) does not support prepared statement caching.
    if "postgresql" in url:
        engine_kwargs.setdefault("connect_args", {"statement_cache_size": 0})

    engine = create_async_engine(url, **engine_kwargs)
    if url.startswith("sqlite"):
        _enable_sqlite_savepoints(engine)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# ── Process-wide engine & session factory ──
engine = build_engine(settings.DATABASE_URL)
async_session = build_session_factory(engine)


# ── Dependency for FastAPI routes ──
async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield a session from the factory bound to the running app."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
