"""
Notarium Backend: Chunking & Continuation Builder
===================================================

What:  Turns one submission into one or more persisted notes.
How:   Images are split into groups of `settings.max_images_per_note`.
       Each group becomes a note; parts 2..n are continuations that point
       at part 1. Every part is written in its own grouped mutation
       together with the counter increments it causes.
Who:   Called by NoteService.create_note().

Flow:
    submission ─▶ validate ─▶ normalize images ─▶ partition ─▶ for each chunk:
                                                               size check
                                                               insert + counters (one group)

Failure semantics:
    Validation failures happen before any write. A chunk that is too large
    raises OversizeError; parts persisted before it stay committed and
    their ids travel with the exception.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from notarium.config import settings
from notarium.exceptions import NotFoundError, OversizeError, ValidationError
from notarium.models.note import Note
from notarium.models.subject import Subject
from notarium.models.types import NoteStatus
from notarium.models.user import User
from notarium.schemas.note import NoteSubmission
from notarium.services.counters import AddRow, Mutation, counter_maintainer

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "No description"


@dataclass
class Chunk:
    """Content of one part of a submission, before it is persisted."""

    part_number: int
    title: str
    extracted_text: str
    images: List[str] = field(default_factory=list)


# ── Pure helpers ──────────────────────────────────────────────────────────


def normalize_images(images: Sequence[str], image_path: Optional[str] = None) -> List[str]:
    """
    Ordered image references from either input form.

    `images` wins when non-empty. Otherwise `image_path` is decoded: a
    JSON array string yields its elements, any other non-empty string is a
    single reference.
    """
    refs = [ref for ref in images if ref]
    if refs:
        return refs
    if not image_path or not image_path.strip():
        return []

    raw = image_path.strip()
    if raw.startswith("["):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            decoded = None
        if isinstance(decoded, list):
            return [str(ref) for ref in decoded if ref]
    return [raw]


def partition(images: Sequence[str], size: int) -> List[List[str]]:
    """Split into groups of `size`. No images still gives one empty group."""
    if not images:
        return [[]]
    return [list(images[i:i + size]) for i in range(0, len(images), size)]


def expected_parts(image_count: int, size: Optional[int] = None) -> int:
    size = size or settings.max_images_per_note
    return math.ceil(max(image_count, 1) / size)


def build_chunks(title: str, extracted_text: str, images: Sequence[str]) -> List[Chunk]:
    chunks: List[Chunk] = []
    for index, group in enumerate(partition(images, settings.max_images_per_note)):
        part = index + 1
        if part == 1:
            chunks.append(Chunk(part, title, extracted_text, group))
        else:
            # Continuations repeat the whole extracted text after the marker.
            chunks.append(
                Chunk(
                    part,
                    f"{title} ({part})",
                    f"{settings.continuation_marker}\n\n{extracted_text}",
                    group,
                )
            )
    return chunks


def payload_size(
    title: str,
    description: str,
    extracted_text: str,
    images: Sequence[str],
    tags: Sequence[str],
) -> int:
    """Serialized size of a chunk in UTF-8 bytes, as checked against the ceiling."""
    payload = {
        "title": title,
        "description": description,
        "extracted_text": extracted_text,
        "image_path": json.dumps(list(images)),
        "tags": json.dumps(list(tags)),
    }
    return len(json.dumps(payload).encode("utf-8"))


# ── Builder ───────────────────────────────────────────────────────────────


class ChunkingBuilder:
    """Validates a submission and persists it as a chain of notes."""

    async def build(
        self,
        session: AsyncSession,
        author_id: int,
        submission: NoteSubmission,
    ) -> List[Note]:
        """
        Persist `submission` as one note per image chunk.

        Returns:
            Every created note in part order; the first is the primary result.

        Raises:
            NotFoundError: author does not exist
            ValidationError: subject missing/unknown or title blank
            OversizeError: a chunk exceeds settings.max_chunk_bytes
            StorageError: a grouped write failed
        """
        # ── Step 1: Validate before any write ─────────────────────────────
        author = await session.get(User, author_id)
        if author is None:
            raise NotFoundError(resource="user", resource_id=author_id)

        if submission.subject_id is None:
            raise ValidationError("Subject is required", field="subject_id")
        subject = await session.get(Subject, submission.subject_id)
        if subject is None:
            raise ValidationError(
                "Subject does not exist",
                field="subject_id",
                context={"subject_id": submission.subject_id},
            )

        title = (submission.title or "").strip()
        if not title:
            raise ValidationError("Title is required", field="title")

        # ── Step 2: Normalize and partition ───────────────────────────────
        images = normalize_images(submission.images, submission.image_path)
        chunks = build_chunks(title, submission.extracted_text or "", images)

        description = submission.description or DEFAULT_DESCRIPTION
        content = submission.content or description
        summary = submission.summary or description
        tags = list(submission.tags)
        published = submission.status is not NoteStatus.DRAFT

        # ── Step 3: Persist each chunk ────────────────────────────────────
        created: List[Note] = []
        for chunk in chunks:
            size = payload_size(chunk.title, description, chunk.extracted_text, chunk.images, tags)
            if size > settings.max_chunk_bytes:
                logger.warning(
                    "Chunk %d of '%s' is %d bytes (max %d); %d part(s) already stored",
                    chunk.part_number,
                    title,
                    size,
                    settings.max_chunk_bytes,
                    len(created),
                )
                raise OversizeError(
                    actual_size=size,
                    max_size=settings.max_chunk_bytes,
                    part_number=chunk.part_number,
                    created_note_ids=[note.id for note in created],
                )

            note = Note(
                title=chunk.title,
                description=description,
                content=content,
                extracted_text=chunk.extracted_text,
                summary=summary,
                tags=list(tags),
                images=chunk.images,
                subject_id=subject.id,
                author_id=author.id,
                author_class=author.class_name,
                status=submission.status,
                visibility=submission.visibility,
                scheduled_publish_at=None if published else submission.scheduled_publish_at,
                parent_note_id=created[0].id if created else None,
                part_number=chunk.part_number,
                likes=0,
                admin_upvotes=0,
            )
            group: List[Mutation] = [AddRow(note)]
            if published:
                group.extend(counter_maintainer.publication_effects(note))
            await counter_maintainer.apply_grouped(session, group)
            created.append(note)

        logger.info(
            "Stored '%s' as %d part(s) for user %s (status=%s)",
            title,
            len(created),
            author.id,
            submission.status.value,
        )
        return created


chunking_builder = ChunkingBuilder()
