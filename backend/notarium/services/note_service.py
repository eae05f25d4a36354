"""
Notarium Backend: Note Service (Business Logic Orchestrator)
==============================================================

What:  The operations the engine exposes: create, publish, browse, search,
       engage, edit and delete notes.
How:   Composes the chunking builder, the publication state machine, the
       visibility evaluator, the search engine and the counter maintainer.
       Every write that touches a counter goes through
       counter_maintainer.apply_grouped().
Who:   Called by route handlers; calls services and the database layer.

Operation map:
    create_note ───────▶ chunking_builder.build ──▶ apply_grouped (per part)
    publish_draft ─────▶ publication.publish ─────▶ apply_grouped
    list_by_subject ───▶ visibility_clause
    search ────────────▶ search.search (visibility_clause inside)
    toggle_like ───────▶ apply_grouped (row + note.likes + author total)
    toggle_admin_upvote▶ apply_grouped (row + note.admin_upvotes + author total)
    update_note ───────▶ apply_grouped (pending ORM changes only)
    delete_note ───────▶ apply_grouped (engagement rows, detach, delete, reversal)

Design Decision:
    NoteService is stateless. It receives the session for each call and
    holds nothing between calls, so a single instance is shared.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from notarium.config import settings
from notarium.exceptions import ForbiddenError, NotFoundError, ValidationError
from notarium.models.engagement import AdminNoteLike, NoteLike
from notarium.models.note import Note
from notarium.models.subject import Subject
from notarium.models.types import NoteStatus, UserRole
from notarium.models.user import User
from notarium.schemas.note import NoteSubmission, NoteUpdate
from notarium.services import search as search_engine
from notarium.services.audit import log_admin_activity
from notarium.services.chunking import chunking_builder
from notarium.services.counters import (
    AddRow,
    DeleteRow,
    Mutation,
    Statement,
    counter_maintainer,
)
from notarium.services.publication import publication
from notarium.services.visibility import can_view, published_filter, visibility_clause

logger = logging.getLogger(__name__)


class LeaderboardRow(NamedTuple):
    user: User
    score: int


class NoteService:
    """
    Business logic layer for note operations.

    Error Handling Strategy:
        Lookups that miss raise NotFoundError, ownership or role mismatches
        raise ForbiddenError, bad input raises ValidationError; all of them
        before any write. Failed grouped writes surface as StorageError from
        the counter maintainer with everything in the group rolled back.
    """

    # ── Lookups ───────────────────────────────────────────────────────────

    async def get_user(self, db: AsyncSession, user_id: Optional[int]) -> Optional[User]:
        """The user with `user_id`, or None (anonymous or unknown)."""
        if user_id is None:
            return None
        return await db.get(User, user_id, populate_existing=True)

    async def _get_note(self, db: AsyncSession, note_id: int) -> Note:
        note = await db.get(Note, note_id, populate_existing=True)
        if note is None:
            raise NotFoundError(resource="note", resource_id=note_id)
        return note

    async def get_note(self, db: AsyncSession, note_id: int, viewer: Optional[User] = None) -> Note:
        """
        A single note as seen by `viewer`.

        Notes the viewer may not see are reported as missing, except to
        their author.
        """
        note = await self._get_note(db, note_id)
        is_author = viewer is not None and viewer.id == note.author_id
        if not is_author and not can_view(viewer, note):
            raise NotFoundError(resource="note", resource_id=note_id)
        return note

    # ── Creation & Publication ────────────────────────────────────────────

    async def create_note(
        self, db: AsyncSession, author_id: int, submission: NoteSubmission
    ) -> List[Note]:
        """
        Store a submission, splitting it into continuation parts as needed.

        Returns:
            All created notes in part order (part 1 first).

        Raises:
            NotFoundError, ValidationError: before any write
            OversizeError: a part was too large; earlier parts stay stored
            StorageError: a part's grouped write failed
        """
        return await chunking_builder.build(db, author_id, submission)

    async def publish_draft(self, db: AsyncSession, note_id: int, owner_id: int) -> Note:
        """
        Publish the owner's draft.

        Raises:
            NotFoundError: no such note
            ForbiddenError: requester is not the author
            AlreadyPublishedError: note is not a draft (counters unchanged)
        """
        note = await self._get_note(db, note_id)
        if note.author_id != owner_id:
            raise ForbiddenError(
                "Only the author can publish this note",
                context={"note_id": note_id},
            )
        return await publication.publish(db, note)

    async def publish_scheduled(
        self, db: AsyncSession, now: Optional[datetime] = None
    ) -> List[Note]:
        return await publication.publish_scheduled(db, now)

    # ── Browse & Search ───────────────────────────────────────────────────

    async def list_subjects(self, db: AsyncSession) -> List[Subject]:
        result = await db.execute(
            select(Subject).order_by(Subject.name).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_by_subject(
        self, db: AsyncSession, subject_id: int, viewer: Optional[User] = None
    ) -> List[Note]:
        """
        Notes filed under a subject that `viewer` may see, newest first.

        Query plan:
            WHERE subject_id = :id AND <visibility clause>
            ORDER BY created_at DESC
            → idx_notes_subject_id
        """
        subject = await db.get(Subject, subject_id)
        if subject is None:
            raise NotFoundError(resource="subject", resource_id=subject_id)

        result = await db.execute(
            select(Note)
            .where(Note.subject_id == subject_id, visibility_clause(viewer))
            .order_by(Note.created_at.desc(), Note.id.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_my_notes(
        self,
        db: AsyncSession,
        author_id: int,
        status: Optional[NoteStatus] = None,
    ) -> List[Note]:
        """
        Every note by `author_id`, drafts and class-restricted ones included.

        `status` narrows to drafts or to published notes (legacy rows count
        as published).
        """
        query = (
            select(Note)
            .where(Note.author_id == author_id)
            .execution_options(populate_existing=True)
        )
        if status is NoteStatus.DRAFT:
            query = query.where(Note.status == NoteStatus.DRAFT)
        elif status is NoteStatus.PUBLISHED:
            query = query.where(published_filter())
        result = await db.execute(query.order_by(Note.created_at.desc(), Note.id.desc()))
        return list(result.scalars().all())

    async def search(
        self, db: AsyncSession, query: Optional[str], viewer: Optional[User] = None
    ) -> List[search_engine.RankedNote]:
        return await search_engine.search(db, query, viewer)

    async def leaderboard(self, db: AsyncSession, limit: int = 100) -> List[LeaderboardRow]:
        """
        Non-admin users ranked by notes + likes + admin upvotes.

        Ties break on notes uploaded, then likes received.
        """
        score = (User.notes_uploaded + User.total_likes + User.total_admin_upvotes).label("score")
        result = await db.execute(
            select(User, score)
            .where(User.role != UserRole.ADMIN)
            .order_by(
                score.desc(),
                User.notes_uploaded.desc(),
                User.total_likes.desc(),
                User.id,
            )
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return [LeaderboardRow(user, int(value)) for user, value in result.all()]

    # ── Engagement ────────────────────────────────────────────────────────

    async def toggle_like(self, db: AsyncSession, note_id: int, user_id: int) -> Dict[str, bool]:
        """
        Like the note, or remove the like if `user_id` already liked it.

        The like row, note.likes and the author's total_likes change together.
        """
        note = await self._get_note(db, note_id)
        if await db.get(User, user_id) is None:
            raise NotFoundError(resource="user", resource_id=user_id)

        existing = await db.get(NoteLike, (note_id, user_id))
        if existing is not None:
            group: List[Mutation] = [DeleteRow(existing)]
            group.extend(counter_maintainer.like_effects(note, -1))
        else:
            group = [AddRow(NoteLike(note_id=note_id, user_id=user_id))]
            group.extend(counter_maintainer.like_effects(note, 1))

        await counter_maintainer.apply_grouped(db, group)
        liked = existing is None
        logger.info("User %s %s note %s", user_id, "liked" if liked else "unliked", note_id)
        return {"liked": liked}

    async def toggle_admin_upvote(
        self, db: AsyncSession, note_id: int, admin_id: int
    ) -> Dict[str, bool]:
        """Admin counterpart of toggle_like, on admin_upvotes / total_admin_upvotes."""
        admin = await db.get(User, admin_id, populate_existing=True)
        if admin is None:
            raise NotFoundError(resource="user", resource_id=admin_id)
        if not admin.is_admin:
            raise ForbiddenError("Only admins can upvote notes", context={"user_id": admin_id})
        note = await self._get_note(db, note_id)

        existing = await db.get(AdminNoteLike, (note_id, admin_id))
        if existing is not None:
            group: List[Mutation] = [DeleteRow(existing)]
            group.extend(counter_maintainer.upvote_effects(note, -1))
        else:
            group = [AddRow(AdminNoteLike(note_id=note_id, admin_id=admin_id))]
            group.extend(counter_maintainer.upvote_effects(note, 1))

        await counter_maintainer.apply_grouped(db, group)
        liked = existing is None
        await log_admin_activity(
            db,
            admin_id,
            "upvote_note" if liked else "remove_upvote",
            "note",
            note_id,
        )
        return {"liked": liked}

    # ── Edit & Delete ─────────────────────────────────────────────────────

    async def update_note(
        self,
        db: AsyncSession,
        note_id: int,
        requester_id: int,
        is_admin: bool,
        changes: NoteUpdate,
    ) -> Note:
        """
        Apply an author edit or an admin moderation edit.

        Raises:
            ValidationError: nothing to change, blank title, too many images
            NotFoundError: no such note
            ForbiddenError: requester is neither the author nor an admin
        """
        fields: Dict[str, Any] = {
            name: value
            for name, value in changes.model_dump(exclude_unset=True).items()
            if value is not None
        }
        if not fields:
            raise ValidationError("No changes provided")
        if "title" in fields:
            fields["title"] = fields["title"].strip()
            if not fields["title"]:
                raise ValidationError("Title is required", field="title")
        if len(fields.get("images", [])) > settings.max_images_per_note:
            raise ValidationError(
                f"A note holds at most {settings.max_images_per_note} images",
                field="images",
            )

        note = await self._get_note(db, note_id)
        is_author = note.author_id == requester_id
        if not is_author and not is_admin:
            raise ForbiddenError("You can only edit your own notes", context={"note_id": note_id})

        for name, value in fields.items():
            setattr(note, name, value)
        await counter_maintainer.apply_grouped(db, [])

        if not is_author:
            await log_admin_activity(
                db,
                requester_id,
                "edit_note",
                "note",
                note_id,
                {"fields": sorted(fields)},
            )
        await db.refresh(note)
        logger.info("Note %s updated (%s)", note_id, ", ".join(sorted(fields)))
        return note

    async def delete_note(
        self,
        db: AsyncSession,
        note_id: int,
        requester_id: int,
        is_admin: bool,
    ) -> Dict[str, int]:
        """
        Delete a note and reverse every counter increment it caused.

        Continuation parts of the note are detached (parent_note_id set to
        NULL), never deleted with it.

        Returns:
            {"points_deducted": likes + admin_upvotes × admin_upvote_weight}
        """
        note = await self._get_note(db, note_id)
        is_author = note.author_id == requester_id
        if not is_author and not is_admin:
            raise ForbiddenError(
                "You can only delete your own notes", context={"note_id": note_id}
            )

        likes = note.likes or 0
        admin_upvotes = note.admin_upvotes or 0
        points_deducted = likes + admin_upvotes * settings.admin_upvote_weight
        author_id = note.author_id

        group: List[Mutation] = [
            Statement(delete(NoteLike).where(NoteLike.note_id == note_id)),
            Statement(delete(AdminNoteLike).where(AdminNoteLike.note_id == note_id)),
            Statement(
                update(Note)
                .where(Note.parent_note_id == note_id)
                .values(parent_note_id=None)
                .execution_options(synchronize_session=False)
            ),
            *counter_maintainer.deletion_effects(note),
            DeleteRow(note),
        ]
        await counter_maintainer.apply_grouped(db, group)

        if not is_author:
            await log_admin_activity(
                db,
                requester_id,
                "delete_note",
                "note",
                note_id,
                {"author_id": author_id, "points_deducted": points_deducted},
            )
        logger.info(
            "Note %s deleted by user %s (%d point(s) deducted from user %s)",
            note_id,
            requester_id,
            points_deducted,
            author_id,
        )
        return {"points_deducted": points_deducted}

    # ── Maintenance ───────────────────────────────────────────────────────

    async def reconcile_counters(self, db: AsyncSession) -> None:
        await counter_maintainer.reconcile(db)


# ── Singleton Instance ────────────────────────────────────────────────────
note_service = NoteService()
