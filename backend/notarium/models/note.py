"""
Notarium Backend: Note Model
==============================

What:  ORM model for the `notes` table, the central entity of the service.
Who:   Written by the chunking builder, the publication state machine and
       the counter maintainer; read by browse and search.

Continuation chains:
    A submission with more images than fit in one note becomes a chain.
    Part 1 has parent_note_id = NULL; parts 2..n point at part 1 and carry
    part_number 2..n. Deleting part 1 detaches the other parts (SET NULL)
    instead of deleting them.

Lifecycle:
    status: draft → published (see services/publication.py). NULL means a
    legacy row and is read as published. visibility: everyone | class, NULL
    read as everyone.

Engagement:
    likes and admin_upvotes are denormalized counts of the note_likes and
    admin_note_likes rows. They never go below zero.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from notarium.database import Base
from notarium.models.types import LenientEnum, NoteStatus, Visibility, utcnow


class Note(Base):
    """A persisted study note, or one part of a multi-part submission."""

    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # ── Content ───────────────────────────────────────────────────────────
    # Input titles are capped at 200 characters; the column leaves room for
    # the " (n)" suffix of continuation parts.
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True, comment="Body text")
    extracted_text: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True, comment="OCR text supplied by the uploader"
    )
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    images: Mapped[List[str]] = mapped_column(
        JSON, nullable=False, default=list, comment="Ordered image references, at most 3"
    )

    # ── Classification ────────────────────────────────────────────────────
    subject_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("subjects.id"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    author_class: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True, comment="Author's class when the note was created"
    )

    # ── Lifecycle ─────────────────────────────────────────────────────────
    status: Mapped[Optional[NoteStatus]] = mapped_column(
        LenientEnum(NoteStatus),
        nullable=True,
        default=NoteStatus.PUBLISHED,
        server_default=text("'published'"),
    )
    visibility: Mapped[Optional[Visibility]] = mapped_column(
        LenientEnum(Visibility),
        nullable=True,
        default=Visibility.EVERYONE,
        server_default=text("'everyone'"),
    )
    scheduled_publish_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # ── Continuation ──────────────────────────────────────────────────────
    parent_note_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("notes.id", ondelete="SET NULL"), nullable=True
    )
    part_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # ── Engagement ────────────────────────────────────────────────────────
    likes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    admin_upvotes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_notes_subject_id", "subject_id"),
        Index("idx_notes_author_id", "author_id"),
        Index("idx_notes_parent_note_id", "parent_note_id"),
        Index("idx_notes_created_at", created_at.desc()),
    )

    @property
    def is_continuation(self) -> bool:
        return self.parent_note_id is not None

    @property
    def counts_as_published(self) -> bool:
        """Whether this note contributed to the author's and subject's counters."""
        return self.status is not NoteStatus.DRAFT

    def __repr__(self) -> str:
        return (
            f"<Note(id={self.id}, title='{self.title}', status={self.status}, "
            f"part={self.part_number})>"
        )
