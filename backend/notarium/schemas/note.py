"""
Notarium Backend: Pydantic Request/Response Schemas
=====================================================

What:  Pydantic models for the service's inputs and outputs.
How:   Services accept the request models directly (NoteSubmission,
       NoteUpdate); route handlers serialize ORM rows through the response
       models with from_attributes.

Design Decision:
    Input normalization that the stored data depends on (status, visibility,
    the legacy image_path field) happens here or in the chunking builder.
    Business rules that need the database (author/subject existence) stay
    in the services and raise application exceptions, not pydantic errors.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from notarium.models.types import NoteStatus, Visibility


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class NoteSubmission(BaseModel):
    """
    A note as submitted by its author, before chunking.

    `images` is the ordered list of image references. Older clients send a
    single `image_path` instead, either a plain reference or a JSON-encoded
    array of references; the chunking builder accepts both.
    """

    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    content: Optional[str] = None
    extracted_text: Optional[str] = Field(
        default=None, description="Text recognised from the images by the client"
    )
    # Older clients send the summary as `quick_summary`.
    summary: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("summary", "quick_summary")
    )
    images: List[str] = Field(default_factory=list)
    image_path: Optional[str] = Field(default=None, description="Legacy single-field images")
    tags: List[str] = Field(default_factory=list)
    subject_id: Optional[int] = None
    status: NoteStatus = NoteStatus.PUBLISHED
    scheduled_publish_at: Optional[datetime] = None
    visibility: Visibility = Visibility.EVERYONE

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> NoteStatus:
        """Anything other than 'draft' publishes immediately."""
        if v is NoteStatus.DRAFT or (isinstance(v, str) and v.strip().lower() == "draft"):
            return NoteStatus.DRAFT
        return NoteStatus.PUBLISHED

    @field_validator("visibility", mode="before")
    @classmethod
    def coerce_visibility(cls, v: Any) -> Visibility:
        """Only 'class' restricts; empty or unknown values mean everyone."""
        if v is Visibility.CLASS or (isinstance(v, str) and v.strip().lower() == "class"):
            return Visibility.CLASS
        return Visibility.EVERYONE

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v: Any) -> Any:
        return [] if v is None else v


class NoteUpdate(BaseModel):
    """
    Partial edit of a note's content. Only fields that are set are applied.

    Lifecycle, visibility and engagement fields are not editable here.
    """

    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    content: Optional[str] = None
    extracted_text: Optional[str] = None
    summary: Optional[str] = None
    tags: Optional[List[str]] = None
    images: Optional[List[str]] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class NoteResponse(BaseModel):
    """Full representation of a stored note (or one part of a chain)."""

    id: int
    title: str
    description: Optional[str] = None
    content: Optional[str] = None
    extracted_text: Optional[str] = None
    summary: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    subject_id: int
    author_id: int
    author_class: Optional[str] = None
    status: Optional[NoteStatus] = Field(
        default=None, description="null for legacy rows, read as published"
    )
    visibility: Optional[Visibility] = None
    scheduled_publish_at: Optional[datetime] = None
    parent_note_id: Optional[int] = None
    part_number: Optional[int] = None
    likes: int = 0
    admin_upvotes: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class NoteCreateResponse(BaseModel):
    """
    Result of a submission. `note` is part 1; `notes` is the whole chain in
    part order.
    """

    note: NoteResponse
    notes: List[NoteResponse]
    total_parts: int


class SearchResultItem(NoteResponse):
    relevance_score: int = Field(description="Sum of weights of the matched fields")


class LikeToggleResponse(BaseModel):
    liked: bool


class DeleteResponse(BaseModel):
    message: str = "Note deleted"
    points_deducted: int = Field(description="likes + admin upvotes × upvote weight")


class PublishedBatchResponse(BaseModel):
    published: List[NoteResponse]
