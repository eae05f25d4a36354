"""
Notarium Backend: Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets its own SQLite database file (aiosqlite driver) with
       all tables created, so services run against real SQL: counters,
       visibility clauses and search scoring are exercised as written.

Fixture Hierarchy:
    Function-scoped:
    ├── db_engine:        async engine on a fresh database file
    ├── session_factory:  async_sessionmaker bound to db_engine
    ├── db_session:       session used by the code under test
    ├── mock_db_session:  AsyncMock session for failure paths
    ├── reload:           reads a row through a brand-new session
    ├── world:            subjects and users most tests start from
    └── test_client:      HTTPX AsyncClient over the FastAPI app
"""

import os

# Override settings before any notarium import reads them.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["DB_AUTO_INIT"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from notarium.database import Base, get_db_session, json_serializer
from notarium.models import Note, Subject, User, UserRole


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'notarium.db'}",
        json_serializer=json_serializer,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_db_session():
    """
    A mock AsyncSession for code paths that only need add/commit/rollback.

    Usage:
        mock_db_session.commit.side_effect = OperationalError(...)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def reload(session_factory):
    """
    Fetch a row through a new session, bypassing the identity map of the
    session under test.

    Usage:
        author = await reload(User, world.author.id)
    """

    async def _reload(model, pk) -> Optional[Any]:
        async with session_factory() as session:
            return await session.get(model, pk)

    return _reload


@pytest.fixture
def count_rows(session_factory):
    async def _count(table: str) -> int:
        async with session_factory() as session:
            result = await session.execute(text(f"SELECT COUNT(*) FROM {table}"))
            return result.scalar_one()

    return _count


# ══════════════════════════════════════════════════════════════════════════
# Sample Data
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def world(db_session):
    """
    Two subjects and four users.

    Names are chosen so common search tokens in the tests ("sel",
    "biologi") never match them by accident.
    """
    biology = Subject(name="Biologi", icon="🧬")
    physics = Subject(name="Fisika", icon="⚛️")
    author = User(display_name="Rina Wulandari", class_name="10.1", role=UserRole.STUDENT)
    classmate = User(display_name="Budi Santoso", class_name="10.1", role=UserRole.STUDENT)
    outsider = User(display_name="Dewi Lestari", class_name="10.2", role=UserRole.STUDENT)
    admin = User(display_name="Pak Guru", class_name=None, role=UserRole.ADMIN)
    db_session.add_all([biology, physics, author, classmate, outsider, admin])
    await db_session.commit()
    return SimpleNamespace(
        biology=biology,
        physics=physics,
        author=author,
        classmate=classmate,
        outsider=outsider,
        admin=admin,
    )


@pytest.fixture
def make_note(db_session):
    """
    Insert a note row directly, without touching counters.

    For read-path tests (visibility, search) that need precise rows.
    """

    async def _make(author: User, subject: Subject, **fields) -> Note:
        values = {
            "title": "Untitled",
            "description": "No description",
            "tags": [],
            "images": [],
            "author_class": author.class_name,
        }
        values.update(fields)
        note = Note(author_id=author.id, subject_id=subject.id, **values)
        db_session.add(note)
        await db_session.commit()
        return note

    return _make


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory, db_engine, monkeypatch):
    """
    HTTPX AsyncClient routed to the FastAPI app, with the per-request session
    and the health-check engine pointed at the test database.
    """
    from notarium import database
    from notarium.main import app

    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_session
    monkeypatch.setattr(database, "engine", db_engine)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
