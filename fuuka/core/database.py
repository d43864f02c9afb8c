#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Database engine and session factory.

The archive tables are filled by the scraper; this application only reads
them.  ``create_all_tables()`` exists for development and test databases.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


# -----------------------------------------------------------------------------

from .config import get_settings


# -----------------------------------------------------------------------------

class Base(DeclarativeBase):
    """Declarative base for the board and post tables."""
    pass


# -----------------------------------------------------------------------------

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


# -----------------------------------------------------------------------------

def init_db(url: str | None = None, echo: bool | None = None) -> None:
    """(Re)create the engine and session factory.  Called once at startup."""
    global _engine, _session_factory
    settings = get_settings()
    db_url = url or settings.database_url

    kwargs: dict = {"echo": settings.db_echo if echo is None else echo}
    if db_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_size"]    = settings.db_pool_size
        kwargs["max_overflow"] = settings.db_max_overflow
        kwargs["pool_pre_ping"] = True

    _engine = create_async_engine(db_url, **kwargs)
    _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)


# -----------------------------------------------------------------------------

def get_engine() -> AsyncEngine:
    if _engine is None:
        init_db()
    assert _engine is not None
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        init_db()
    assert _session_factory is not None
    return _session_factory


# -----------------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a read session."""
    async with get_session_factory()() as session:
        yield session


# -----------------------------------------------------------------------------

async def create_all_tables() -> None:
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# -----------------------------------------------------------------------------
