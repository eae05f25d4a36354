"""
Notarium Backend: Notes Route Handlers
========================================

What:  HTTP surface for note operations.
How:   Handlers extract the viewer and the body, delegate to NoteService and
       serialize ORM rows through the response schemas. No business rules
       live here.

Routes:
    POST   /api/notes                   create (chunked)        201
    GET    /api/notes/mine              author's own notes
    GET    /api/notes/search?q=         ranked search
    GET    /api/notes/{id}              single note
    PATCH  /api/notes/{id}              author / admin edit
    DELETE /api/notes/{id}              author / admin delete
    POST   /api/notes/{id}/publish      draft → published
    POST   /api/notes/{id}/like         like toggle
    POST   /api/notes/{id}/admin-upvote admin upvote toggle
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from notarium.database import get_db_session
from notarium.models.types import NoteStatus
from notarium.models.user import User
from notarium.routes.deps import get_viewer, require_admin, require_user
from notarium.schemas.common import ErrorResponse
from notarium.schemas.note import (
    DeleteResponse,
    LikeToggleResponse,
    NoteCreateResponse,
    NoteResponse,
    NoteSubmission,
    NoteUpdate,
    SearchResultItem,
)
from notarium.services.note_service import note_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["Notes"])


@router.post(
    "",
    response_model=NoteCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid submission", "model": ErrorResponse},
        413: {"description": "A part exceeds the payload ceiling", "model": ErrorResponse},
    },
    summary="Create a note, split into continuation parts when needed",
)
async def create_note(
    submission: NoteSubmission,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> NoteCreateResponse:
    notes = await note_service.create_note(db, user.id, submission)
    items = [NoteResponse.model_validate(note) for note in notes]
    return NoteCreateResponse(note=items[0], notes=items, total_parts=len(items))


@router.get("/mine", response_model=List[NoteResponse], summary="The caller's own notes")
async def list_my_notes(
    status_filter: Optional[NoteStatus] = Query(default=None, alias="status"),
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[NoteResponse]:
    notes = await note_service.list_my_notes(db, user.id, status_filter)
    return [NoteResponse.model_validate(note) for note in notes]


@router.get(
    "/search",
    response_model=List[SearchResultItem],
    summary="Search visible notes by relevance",
)
async def search_notes(
    q: str = Query(default="", max_length=200),
    viewer: Optional[User] = Depends(get_viewer),
    db: AsyncSession = Depends(get_db_session),
) -> List[SearchResultItem]:
    ranked = await note_service.search(db, q, viewer)
    return [
        SearchResultItem(
            **NoteResponse.model_validate(item.note).model_dump(),
            relevance_score=item.score,
        )
        for item in ranked
    ]


@router.get(
    "/{note_id}",
    response_model=NoteResponse,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
)
async def get_note(
    note_id: int,
    viewer: Optional[User] = Depends(get_viewer),
    db: AsyncSession = Depends(get_db_session),
) -> NoteResponse:
    note = await note_service.get_note(db, note_id, viewer)
    return NoteResponse.model_validate(note)


@router.patch("/{note_id}", response_model=NoteResponse, summary="Edit a note")
async def update_note(
    note_id: int,
    changes: NoteUpdate,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> NoteResponse:
    note = await note_service.update_note(db, note_id, user.id, user.is_admin, changes)
    return NoteResponse.model_validate(note)


@router.delete("/{note_id}", response_model=DeleteResponse, summary="Delete a note")
async def delete_note(
    note_id: int,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> DeleteResponse:
    result = await note_service.delete_note(db, note_id, user.id, user.is_admin)
    return DeleteResponse(points_deducted=result["points_deducted"])


@router.post(
    "/{note_id}/publish",
    response_model=NoteResponse,
    responses={400: {"description": "Note is already published", "model": ErrorResponse}},
)
async def publish_note(
    note_id: int,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> NoteResponse:
    note = await note_service.publish_draft(db, note_id, user.id)
    return NoteResponse.model_validate(note)


@router.post("/{note_id}/like", response_model=LikeToggleResponse)
async def toggle_like(
    note_id: int,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> LikeToggleResponse:
    result = await note_service.toggle_like(db, note_id, user.id)
    return LikeToggleResponse(**result)


@router.post("/{note_id}/admin-upvote", response_model=LikeToggleResponse)
async def toggle_admin_upvote(
    note_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> LikeToggleResponse:
    result = await note_service.toggle_admin_upvote(db, note_id, admin.id)
    return LikeToggleResponse(**result)
