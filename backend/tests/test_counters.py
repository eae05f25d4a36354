"""
Notarium Backend: Counter Maintainer Tests
============================================

What we test:
    ✅ A grouped mutation commits all of its steps
    ✅ A failing step rolls back every step of its group (StorageError)
    ✅ Decrements are floored at zero
    ✅ reconcile() restores counters from live notes
"""

import pytest
from sqlalchemy import text, update
from sqlalchemy.exc import OperationalError

from notarium.exceptions import StorageError
from notarium.models import Note, NoteStatus, Subject, User
from notarium.services.counters import (
    AddRow,
    CounterMaintainer,
    Mutation,
    Statement,
    shift_counters,
)


class ExplodingStep(Mutation):
    async def apply(self, session):
        raise OperationalError("UPDATE users ...", {}, Exception("disk I/O error"))


class TestApplyGrouped:
    def setup_method(self):
        self.counters = CounterMaintainer()

    @pytest.mark.asyncio
    async def test_group_commits_row_and_counters(self, db_session, world, reload):
        note = Note(
            title="Genetika",
            author_id=world.author.id,
            subject_id=world.biology.id,
            status=NoteStatus.PUBLISHED,
        )
        await self.counters.apply_grouped(
            db_session, [AddRow(note), *self.counters.publication_effects(note)]
        )

        assert (await reload(Note, note.id)) is not None
        assert (await reload(Subject, world.biology.id)).note_count == 1
        assert (await reload(User, world.author.id)).notes_uploaded == 1

    @pytest.mark.asyncio
    async def test_failure_rolls_back_whole_group(self, db_session, world, reload, count_rows):
        author_id, subject_id = world.author.id, world.biology.id
        note = Note(title="Gagal", author_id=author_id, subject_id=subject_id)

        with pytest.raises(StorageError) as exc_info:
            await self.counters.apply_grouped(
                db_session,
                [
                    AddRow(note),
                    shift_counters(Subject, subject_id, note_count=1),
                    ExplodingStep(),
                ],
            )

        assert exc_info.value.context["error_type"] == "OperationalError"
        assert await count_rows("notes") == 0
        assert (await reload(Subject, subject_id)).note_count == 0

    @pytest.mark.asyncio
    async def test_non_database_errors_propagate_after_rollback(self, db_session, world, count_rows):
        class Broken(Mutation):
            async def apply(self, session):
                raise RuntimeError("bug")

        note = Note(title="X", author_id=world.author.id, subject_id=world.biology.id)
        with pytest.raises(RuntimeError):
            await self.counters.apply_grouped(db_session, [AddRow(note), Broken()])
        assert await count_rows("notes") == 0


class TestFlooredDecrement:
    def setup_method(self):
        self.counters = CounterMaintainer()

    @pytest.mark.asyncio
    async def test_decrement_below_zero_clamps(self, db_session, world, reload):
        await self.counters.apply_grouped(
            db_session, [shift_counters(User, world.author.id, total_likes=2)]
        )
        await self.counters.apply_grouped(
            db_session, [shift_counters(User, world.author.id, total_likes=-5, notes_uploaded=-1)]
        )

        author = await reload(User, world.author.id)
        assert author.total_likes == 0
        assert author.notes_uploaded == 0

    @pytest.mark.asyncio
    async def test_partial_decrement(self, db_session, world, reload):
        await self.counters.apply_grouped(
            db_session, [shift_counters(Subject, world.physics.id, note_count=5)]
        )
        await self.counters.apply_grouped(
            db_session, [shift_counters(Subject, world.physics.id, note_count=-3)]
        )
        assert (await reload(Subject, world.physics.id)).note_count == 2


class TestReconcile:
    def setup_method(self):
        self.counters = CounterMaintainer()

    @pytest.mark.asyncio
    async def test_restores_drifted_counters(self, db_session, session_factory, world, make_note, reload):
        await make_note(world.author, world.biology, likes=3, admin_upvotes=1)
        await make_note(world.author, world.biology, likes=2, status=NoteStatus.DRAFT)
        legacy = await make_note(world.author, world.physics)
        await make_note(world.classmate, world.biology, admin_upvotes=4)

        async with session_factory() as other:
            await other.execute(text("UPDATE notes SET status = NULL WHERE id = :id"), {"id": legacy.id})
            await other.execute(update(Subject).values(note_count=99))
            await other.execute(update(User).values(notes_uploaded=42, total_likes=-7))
            await other.commit()

        await self.counters.reconcile(db_session)

        biology = await reload(Subject, world.biology.id)
        physics = await reload(Subject, world.physics.id)
        author = await reload(User, world.author.id)
        classmate = await reload(User, world.classmate.id)
        outsider = await reload(User, world.outsider.id)

        # Drafts do not count; legacy NULL status does.
        assert biology.note_count == 2
        assert physics.note_count == 1
        assert author.notes_uploaded == 2
        assert author.total_likes == 5
        assert author.total_admin_upvotes == 1
        assert classmate.notes_uploaded == 1
        assert classmate.total_admin_upvotes == 4
        assert outsider.notes_uploaded == 0
        assert outsider.total_likes == 0
