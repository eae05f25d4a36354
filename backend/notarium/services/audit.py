"""
Notarium Backend: Admin Activity Log
======================================

Best-effort audit trail for admin actions (moderation edits, deletes,
upvotes). A failed audit write is logged at WARNING and swallowed: the
admin action it describes has already been committed and stands.
"""

import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notarium.models.engagement import AdminActivity

logger = logging.getLogger(__name__)


async def log_admin_activity(
    session: AsyncSession,
    admin_id: int,
    action_type: str,
    target_type: str,
    target_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
) -> bool:
    """Record one admin action. Returns False when the write failed."""
    try:
        session.add(
            AdminActivity(
                admin_id=admin_id,
                action_type=action_type,
                target_type=target_type,
                target_id=target_id,
                details=json.dumps(details) if details else None,
            )
        )
        await session.commit()
        return True
    except SQLAlchemyError as e:
        await session.rollback()
        logger.warning(
            "Could not record admin activity %s on %s %s: %s",
            action_type,
            target_type,
            target_id,
            str(e),
        )
        return False
