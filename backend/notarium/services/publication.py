"""
Notarium Backend: Publication State Machine
=============================================

What:  The note lifecycle. Only one transition exists:

           draft ──publish──▶ published

       There is no way back. Rows without a recognised status are legacy
       rows and already count as published.
How:   publish() flips the status with a conditional UPDATE (WHERE status =
       'draft') and applies the publication counter increments in the same
       grouped mutation. When another request published the note first the
       UPDATE matches nothing, the group is rolled back and the caller gets
       AlreadyPublishedError, so a note is counted exactly once.
Who:   NoteService.publish_draft() (owner action) and publish_scheduled()
       (sweep over due drafts).
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Set

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from notarium.exceptions import AlreadyPublishedError
from notarium.models.note import Note
from notarium.models.types import NoteStatus, utcnow
from notarium.services.counters import GuardedStatement, Mutation, counter_maintainer

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[NoteStatus, Set[NoteStatus]] = {
    NoteStatus.DRAFT: {NoteStatus.PUBLISHED},
    NoteStatus.PUBLISHED: set(),
}


def can_transition(current: Optional[NoteStatus], target: NoteStatus) -> bool:
    # Legacy rows (None) behave as published.
    effective = current if current is not None else NoteStatus.PUBLISHED
    return target in TRANSITIONS[effective]


class PublicationStateMachine:
    async def publish(self, session: AsyncSession, note: Note) -> Note:
        """
        Move `note` from draft to published and count it.

        Raises:
            AlreadyPublishedError: the note is not a draft; nothing changed
            StorageError: the grouped write failed and was rolled back
        """
        note_id = note.id
        if not can_transition(note.status, NoteStatus.PUBLISHED):
            raise AlreadyPublishedError(note_id=note_id)

        flip = (
            update(Note)
            .where(Note.id == note_id, Note.status == NoteStatus.DRAFT)
            .values(status=NoteStatus.PUBLISHED, scheduled_publish_at=None)
            .execution_options(synchronize_session=False)
        )
        group: List[Mutation] = [
            GuardedStatement(flip, on_miss=lambda: AlreadyPublishedError(note_id=note_id)),
            *counter_maintainer.publication_effects(note),
        ]
        try:
            await counter_maintainer.apply_grouped(session, group)
        except AlreadyPublishedError:
            logger.info("Note %s was published concurrently; not counted again", note_id)
            raise

        await session.refresh(note)
        logger.info("Note %s published", note.id)
        return note

    async def publish_scheduled(
        self, session: AsyncSession, now: Optional[datetime] = None
    ) -> List[Note]:
        """Publish every draft whose scheduled_publish_at is due, one group each."""
        now = now or utcnow()
        result = await session.execute(
            select(Note.id)
            .where(
                Note.status == NoteStatus.DRAFT,
                Note.scheduled_publish_at.is_not(None),
                Note.scheduled_publish_at <= now,
            )
            .order_by(Note.scheduled_publish_at, Note.id)
        )
        due_ids = list(result.scalars().all())

        published: List[Note] = []
        skipped = 0
        for note_id in due_ids:
            note = await session.get(Note, note_id, populate_existing=True)
            if note is None:
                continue
            try:
                published.append(await self.publish(session, note))
            except AlreadyPublishedError:
                # Published by its author (or another sweep) meanwhile.
                skipped += 1

        if skipped:
            # The rollback of a skipped note expired everything loaded before it.
            for note in published:
                await session.refresh(note)

        if published:
            logger.info("Scheduled sweep published %d note(s)", len(published))
        return published


publication = PublicationStateMachine()
