"""
Notarium Backend: Counter Maintainer
======================================

What:  Applies a group of related writes (a note row change plus the counter
       deltas it causes) as one unit, and owns every counter delta the
       engine knows about.
How:   A group is an ordered list of Mutation objects. apply_grouped()
       applies them in order inside the session's current transaction,
       flushes pending ORM changes and commits. Any database failure rolls
       the whole group back and surfaces as StorageError, so a reader never
       sees a counter without its row change or the reverse.

Counter effects:
    publish            users.notes_uploaded +1, subjects.note_count +1
    like / unlike      notes.likes ±1, author users.total_likes ±1
    upvote / unvote    notes.admin_upvotes ±1, author users.total_admin_upvotes ±1
    delete             reverse all of the above for that note

Every decrement is floored at zero in SQL (CASE WHEN col < n THEN 0 ...),
which also keeps concurrent read-modify-write races from going negative.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Sequence

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Executable

from notarium.exceptions import StorageError
from notarium.models.note import Note
from notarium.models.subject import Subject
from notarium.models.user import User
from notarium.services.visibility import published_filter

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Mutations
# ══════════════════════════════════════════════════════════════════════════


class Mutation:
    """One write inside a grouped mutation."""

    async def apply(self, session: AsyncSession) -> None:
        raise NotImplementedError


@dataclass
class Statement(Mutation):
    """A Core/ORM DML statement (UPDATE, DELETE, INSERT)."""

    statement: Executable

    async def apply(self, session: AsyncSession) -> None:
        await session.execute(self.statement)


@dataclass
class GuardedStatement(Statement):
    """
    A conditional UPDATE that must match at least one row.

    When the WHERE clause matches nothing, `on_miss()` is raised and the
    rest of the group never runs.
    """

    on_miss: Callable[[], Exception]

    async def apply(self, session: AsyncSession) -> None:
        result = await session.execute(self.statement)
        if result.rowcount == 0:
            raise self.on_miss()


@dataclass
class AddRow(Mutation):
    """Insert an ORM object; flushed immediately so its primary key is known."""

    row: Any

    async def apply(self, session: AsyncSession) -> None:
        session.add(self.row)
        await session.flush()


@dataclass
class DeleteRow(Mutation):
    """Delete a loaded ORM object."""

    row: Any

    async def apply(self, session: AsyncSession) -> None:
        await session.delete(self.row)
        await session.flush()


def _shift(column, delta: int):
    if delta >= 0:
        return column + delta
    return case((column < -delta, 0), else_=column + delta)


def shift_counters(model, row_id: int, **deltas: int) -> Statement:
    """
    UPDATE model SET col = col + delta, ... WHERE id = row_id

    Negative deltas are floored at zero.
    """
    values = {name: _shift(getattr(model, name), delta) for name, delta in deltas.items()}
    stmt = (
        update(model)
        .where(model.id == row_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return Statement(stmt)


# ══════════════════════════════════════════════════════════════════════════
# Counter Maintainer
# ══════════════════════════════════════════════════════════════════════════


class CounterMaintainer:
    """
    Grouped-mutation executor plus the catalogue of counter effects.

    Stateless; the module-level `counter_maintainer` instance is shared.
    """

    async def apply_grouped(self, session: AsyncSession, mutations: Sequence[Mutation]) -> None:
        """
        Apply `mutations` and any pending ORM changes as one transaction.

        Raises:
            StorageError: the group failed and was rolled back entirely.
            Exception raised by a step (a GuardedStatement miss, for
            example): the group was rolled back and it propagates as is.
        """
        try:
            for mutation in mutations:
                await mutation.apply(session)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(
                "Grouped mutation of %d step(s) failed and was rolled back: %s",
                len(mutations),
                str(e),
            )
            raise StorageError(
                context={"error_type": type(e).__name__, "steps": len(mutations)},
            ) from e
        except Exception:
            await session.rollback()
            raise

    # ── Counter effects ───────────────────────────────────────────────────

    def publication_effects(self, note: Note) -> List[Mutation]:
        """Increments caused by a note entering the published state."""
        return [
            shift_counters(User, note.author_id, notes_uploaded=1),
            shift_counters(Subject, note.subject_id, note_count=1),
        ]

    def like_effects(self, note: Note, delta: int) -> List[Mutation]:
        return [
            shift_counters(Note, note.id, likes=delta),
            shift_counters(User, note.author_id, total_likes=delta),
        ]

    def upvote_effects(self, note: Note, delta: int) -> List[Mutation]:
        return [
            shift_counters(Note, note.id, admin_upvotes=delta),
            shift_counters(User, note.author_id, total_admin_upvotes=delta),
        ]

    def deletion_effects(self, note: Note) -> List[Mutation]:
        """
        Reverse every increment the note caused.

        Drafts never incremented notes_uploaded / note_count, so only the
        engagement totals are reversed for them.
        """
        author_deltas = {
            "total_likes": -(note.likes or 0),
            "total_admin_upvotes": -(note.admin_upvotes or 0),
        }
        effects: List[Mutation] = []
        if note.counts_as_published:
            author_deltas["notes_uploaded"] = -1
            effects.append(shift_counters(Subject, note.subject_id, note_count=-1))
        effects.insert(0, shift_counters(User, note.author_id, **author_deltas))
        return effects

    # ── Reconciliation ────────────────────────────────────────────────────

    async def reconcile(self, session: AsyncSession) -> None:
        """
        Recompute subjects.note_count and the user totals from live notes.

        Restores the counter invariants after drift (manual SQL edits, rows
        imported from older releases, lost races).
        """
        published_count = (
            select(func.count(Note.id))
            .where(Note.subject_id == Subject.id, published_filter())
            .scalar_subquery()
        )
        notes_uploaded = (
            select(func.count(Note.id))
            .where(Note.author_id == User.id, published_filter())
            .scalar_subquery()
        )
        likes_sum = (
            select(func.coalesce(func.sum(Note.likes), 0))
            .where(Note.author_id == User.id)
            .scalar_subquery()
        )
        upvotes_sum = (
            select(func.coalesce(func.sum(Note.admin_upvotes), 0))
            .where(Note.author_id == User.id)
            .scalar_subquery()
        )

        await self.apply_grouped(
            session,
            [
                Statement(
                    update(Subject)
                    .values(note_count=published_count)
                    .execution_options(synchronize_session=False)
                ),
                Statement(
                    update(User)
                    .values(
                        notes_uploaded=notes_uploaded,
                        total_likes=likes_sum,
                        total_admin_upvotes=upvotes_sum,
                    )
                    .execution_options(synchronize_session=False)
                ),
            ],
        )
        logger.info("Counters reconciled with live note data")


counter_maintainer = CounterMaintainer()
