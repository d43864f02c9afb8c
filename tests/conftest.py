#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pytest fixtures for Fuuka tests.
Uses an in-memory SQLite database so no external services are needed.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Any, Iterable

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fuuka.core.database import Base, get_db
from fuuka.core.security import create_access_token
from fuuka.main import create_app
from fuuka.models import Board, Post


# -----------------------------------------------------------------------------

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


# -----------------------------------------------------------------------------

@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session_factory(db_engine):
    """Shared sessionmaker — both client and db_session use this."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(db_session_factory):
    """Direct DB session for test setup (seeding boards and posts)."""
    async with db_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_engine, db_session_factory):
    """HTTP test client wired to an isolated in-memory DB."""
    async def override_get_db():
        async with db_session_factory() as session:
            yield session

    app = create_app()
    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# -----------------------------------------------------------------------------
# Helper functions for tests
# -----------------------------------------------------------------------------

def make_row(num: int, thread_num: int | None = None, comment: str | None = None, **fields: Any) -> dict:
    """A post row as the scraper stores it; the first post of a thread is its OP."""
    thread_num = num if thread_num is None else thread_num
    row = {
        "doc_id": num,
        "num": num,
        "subnum": 0,
        "thread_num": thread_num,
        "op": num == thread_num and not fields.get("subnum"),
        "timestamp": 1357380000,
        "capcode": "N",
        "comment": comment,
    }
    row.update(fields)
    return row


async def seed_board(db_session: AsyncSession, shortname: str = "a", **fields: Any) -> Board:
    board = Board(shortname=shortname, name=fields.pop("name", shortname.upper()), **fields)
    db_session.add(board)
    await db_session.commit()
    return board


async def seed_posts(db_session: AsyncSession, board: Board, rows: Iterable[dict]) -> list[Post]:
    posts = []
    for row in rows:
        row = dict(row)
        row.pop("doc_id", None)
        posts.append(Post(board_id=board.id, **row))
    db_session.add_all(posts)
    await db_session.commit()
    return posts


def viewer_headers(*permissions: str, subject: str = "moderator") -> dict:
    token = create_access_token(subject, permissions)
    return {"Authorization": f"Bearer {token}"}


# -----------------------------------------------------------------------------
