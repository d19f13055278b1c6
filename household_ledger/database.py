"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - create_engine_for(): builds an async engine, patching SQLite so that
    SAVEPOINTs (session.begin_nested()) behave like on PostgreSQL
  - engine / AsyncSessionLocal: the application's engine and session factory
  - Base: Declarative base class that all ORM models inherit from
  - session_scope(): one unit of work (commit or roll back, then events)
  - get_db(): FastAPI dependency that provides a session per request

Session lifecycle:
  Each API request gets its own session via get_db(). Services only flush;
  the session commits when the request succeeds and rolls back on ANY
  exception, domain errors included. A rejected settlement or transfer
  therefore never leaves a partial write behind. Events the services
  queued are delivered after the commit and dropped on rollback.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from household_ledger import events
from household_ledger.config import settings


def create_engine_for(url: str, **kwargs) -> AsyncEngine:
    """
    Create an async engine for `url`.

    pysqlite (and therefore aiosqlite) manages transactions itself and
    emits BEGIN lazily, which breaks SAVEPOINT handling. For SQLite URLs we
    switch the driver to autocommit and emit BEGIN ourselves, following the
    recipe in the SQLAlchemy SQLite dialect documentation.
    """
    engine = create_async_engine(url, **kwargs)

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine.sync_engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


engine = create_engine_for(settings.DATABASE_URL, echo=settings.DEBUG)

# expire_on_commit=False prevents lazy-load errors after commit in async code
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """
    One unit of work: commit and deliver queued events on success, or
    drop the events and roll back on any exception.
    """
    async with (session_factory or AsyncSessionLocal)() as session:
        try:
            yield session
            await events.commit_and_publish(session)
        except Exception:
            events.discard_pending(session)
            await session.rollback()
            raise


async def get_db():
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with session_scope() as session:
        yield session
