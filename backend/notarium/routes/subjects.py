"""
Notarium Backend: Browse Route Handlers
=========================================

GET /api/subjects                 catalog with published-note counts
GET /api/subjects/{id}/notes      notes in a subject visible to the caller
GET /api/leaderboard              student ranking
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from notarium.database import get_db_session
from notarium.models.user import User
from notarium.routes.deps import get_viewer
from notarium.schemas.common import ErrorResponse, LeaderboardEntry, SubjectResponse
from notarium.schemas.note import NoteResponse
from notarium.services.note_service import note_service

router = APIRouter(prefix="/api", tags=["Browse"])


@router.get("/subjects", response_model=List[SubjectResponse])
async def list_subjects(db: AsyncSession = Depends(get_db_session)) -> List[SubjectResponse]:
    subjects = await note_service.list_subjects(db)
    return [SubjectResponse.model_validate(subject) for subject in subjects]


@router.get(
    "/subjects/{subject_id}/notes",
    response_model=List[NoteResponse],
    responses={404: {"description": "Subject not found", "model": ErrorResponse}},
)
async def list_subject_notes(
    subject_id: int,
    viewer: Optional[User] = Depends(get_viewer),
    db: AsyncSession = Depends(get_db_session),
) -> List[NoteResponse]:
    notes = await note_service.list_by_subject(db, subject_id, viewer)
    return [NoteResponse.model_validate(note) for note in notes]


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def leaderboard(
    limit: int = Query(default=100, ge=1, le=500),
    db: AsyncSession = Depends(get_db_session),
) -> List[LeaderboardEntry]:
    rows = await note_service.leaderboard(db, limit)
    return [
        LeaderboardEntry(
            id=row.user.id,
            display_name=row.user.display_name,
            class_name=row.user.class_name,
            notes_uploaded=row.user.notes_uploaded,
            total_likes=row.user.total_likes,
            total_admin_upvotes=row.user.total_admin_upvotes,
            score=row.score,
        )
        for row in rows
    ]
