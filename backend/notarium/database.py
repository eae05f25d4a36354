"""
Notarium Backend: Database Session Management
===============================================

What:  Async SQLAlchemy engine, session factory, declarative base, the
       per-request session dependency and the schema bootstrap routine.
How:   One engine per process. Each request gets its own AsyncSession that is
       committed on success and rolled back on error. Services that need
       all-or-nothing writes commit their own groups through the
       CounterMaintainer, so the final commit here is usually a no-op.
Who:   Route handlers (via Depends), the FastAPI lifespan, Alembic, tests.

Schema bootstrap:
    init_schema() creates missing tables, seeds the subject catalog and
    reconciles aggregate counters. It runs at most once per process; the
    guard flag and lock make concurrent or repeated calls harmless.
"""

import asyncio
import json
import logging
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from notarium.config import settings

logger = logging.getLogger(__name__)


def json_serializer(value: Any) -> str:
    """
    Serializer for JSON columns.

    Keeps non-ASCII characters as they are, so substring search over the
    stored text (tags) sees "biología", not "biolog\\u00eda".
    """
    return json.dumps(value, ensure_ascii=False)


def _engine_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "echo": settings.log_level == "DEBUG",
        "json_serializer": json_serializer,
    }
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


# ── Engine & Session Factory ──────────────────────────────────────────────
engine = create_async_engine(settings.database_url, **_engine_options())

# expire_on_commit=False: grouped mutations commit mid-request and the
# services keep working with the loaded objects afterwards.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all ORM models; its metadata is what Alembic tracks."""
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    On success the session is committed, on any error it is rolled back and
    the exception re-raised for the global handlers. Groups already committed
    by the CounterMaintainer stay committed; this is what gives chunked note
    creation its documented partial-success behaviour.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Schema Bootstrap ──────────────────────────────────────────────────────
# Subject catalog shipped with the service (name, icon).
DEFAULT_SUBJECTS = (
    ("Filsafat", "🧠"),
    ("Fisika", "⚛️"),
    ("Matematika", "📐"),
    ("Bahasa Indonesia", "🗣️"),
    ("Bahasa Inggris", "🇬🇧"),
    ("Sosiologi", "👥"),
    ("Sejarah Indonesia", "📜"),
    ("Geografi", "🌍"),
    ("Ekonomi", "💹"),
    ("Sains", "🔬"),
    ("PKN", "🏛️"),
    ("PAK", "⛪"),
    ("Biologi", "🧬"),
    ("Kimia", "🧪"),
)

_schema_ready = False
_schema_lock = asyncio.Lock()


async def seed_subjects(session: AsyncSession) -> int:
    """Insert catalog subjects that are missing. Returns how many were added."""
    from notarium.models.subject import Subject

    result = await session.execute(select(Subject.name))
    existing = set(result.scalars().all())
    added = 0
    for name, icon in DEFAULT_SUBJECTS:
        if name not in existing:
            session.add(Subject(name=name, icon=icon))
            added += 1
    if added:
        await session.commit()
    return added


async def init_schema(
    bind: Optional[AsyncEngine] = None,
    session_factory: Optional[async_sessionmaker] = None,
) -> bool:
    """
    Idempotent schema bootstrap, executed at most once per process.

    Returns True when this call performed the setup, False when it had
    already run. Passing an explicit engine and session factory is how the
    test suite points it at its own database.
    """
    global _schema_ready

    async with _schema_lock:
        if _schema_ready:
            return False

        # Registers every model with Base.metadata
        import notarium.models  # noqa: F401
        from notarium.services.counters import counter_maintainer

        bind = bind or engine
        session_factory = session_factory or async_session_factory

        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with session_factory() as session:
            added = await seed_subjects(session)
            await counter_maintainer.reconcile(session)

        logger.info("Schema initialized (%d subjects seeded, counters reconciled)", added)
        _schema_ready = True
        return True


def reset_schema_flag() -> None:
    """Forget that bootstrap ran; the next init_schema() call runs it again."""
    global _schema_ready
    _schema_ready = False


async def dispose_engine() -> None:
    """Close every pooled connection. Called on application shutdown."""
    await engine.dispose()
