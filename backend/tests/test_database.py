"""
Notarium Backend: Schema Bootstrap Tests
==========================================

What we test:
    ✅ init_schema() seeds the subject catalog and runs once per process
    ✅ seed_subjects() only inserts what is missing
    ✅ Bootstrap repairs drifted counters
"""

import pytest
from sqlalchemy import select, text

from notarium.database import DEFAULT_SUBJECTS, init_schema, reset_schema_flag, seed_subjects
from notarium.models import Subject, User


@pytest.fixture(autouse=True)
def fresh_bootstrap():
    reset_schema_flag()
    yield
    reset_schema_flag()


class TestInitSchema:
    @pytest.mark.asyncio
    async def test_runs_once(self, db_engine, session_factory, count_rows):
        first = await init_schema(bind=db_engine, session_factory=session_factory)
        second = await init_schema(bind=db_engine, session_factory=session_factory)

        assert first is True
        assert second is False
        assert await count_rows("subjects") == len(DEFAULT_SUBJECTS)

    @pytest.mark.asyncio
    async def test_reconciles_counters(
        self, db_engine, session_factory, world, make_note, reload
    ):
        await make_note(world.author, world.biology)
        async with session_factory() as session:
            await session.execute(
                text("UPDATE users SET notes_uploaded = 9 WHERE id = :id"), {"id": world.author.id}
            )
            await session.commit()

        await init_schema(bind=db_engine, session_factory=session_factory)

        assert (await reload(User, world.author.id)).notes_uploaded == 1
        assert (await reload(Subject, world.biology.id)).note_count == 1


class TestSeedSubjects:
    @pytest.mark.asyncio
    async def test_idempotent(self, db_session):
        assert await seed_subjects(db_session) == len(DEFAULT_SUBJECTS)
        assert await seed_subjects(db_session) == 0

    @pytest.mark.asyncio
    async def test_keeps_existing_rows(self, db_session, world):
        # world already holds "Biologi" and "Fisika"
        added = await seed_subjects(db_session)

        assert added == len(DEFAULT_SUBJECTS) - 2
        result = await db_session.execute(select(Subject).where(Subject.name == "Biologi"))
        assert len(result.scalars().all()) == 1
