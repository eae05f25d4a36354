"""
Notarium Backend: Route Dependencies
======================================

Viewer identity comes from the X-User-ID header. Authentication itself
happens upstream (a gateway or auth service sets the header); this module
only turns the id into a User row.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from notarium.database import get_db_session
from notarium.exceptions import ForbiddenError, NotFoundError
from notarium.models.user import User
from notarium.services.note_service import note_service


async def get_viewer(
    x_user_id: Optional[int] = Header(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[User]:
    """The requesting user, or None for anonymous and unknown ids."""
    return await note_service.get_user(db, x_user_id)


async def require_user(
    x_user_id: Optional[int] = Header(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    if x_user_id is None:
        raise ForbiddenError("Sign in required")
    user = await note_service.get_user(db, x_user_id)
    if user is None:
        raise NotFoundError(resource="user", resource_id=x_user_id)
    return user


async def require_admin(user: User = Depends(require_user)) -> User:
    if not user.is_admin:
        raise ForbiddenError("Admin access required", context={"user_id": user.id})
    return user
