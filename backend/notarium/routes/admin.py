"""
Notarium Backend: Maintenance Route Handlers
==============================================

Admin-only triggers for the periodic jobs. A scheduler (cron, a k8s
CronJob) is expected to call them; the service runs no timers itself.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from notarium.database import get_db_session
from notarium.models.user import User
from notarium.routes.deps import require_admin
from notarium.schemas.note import NoteResponse, PublishedBatchResponse
from notarium.services.audit import log_admin_activity
from notarium.services.note_service import note_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.post("/publish-scheduled", response_model=PublishedBatchResponse)
async def publish_scheduled(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> PublishedBatchResponse:
    notes = await note_service.publish_scheduled(db)
    return PublishedBatchResponse(
        published=[NoteResponse.model_validate(note) for note in notes]
    )


@router.post("/reconcile-counters", status_code=204)
async def reconcile_counters(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> None:
    await note_service.reconcile_counters(db)
    await log_admin_activity(db, admin.id, "reconcile_counters", "system")
