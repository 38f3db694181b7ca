from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.crud.user import get_user_by_id
from app.database.models import User
from app.services.billing_errors import NothingToUpdateError, UserNotFoundError


logger = structlog.get_logger(__name__)


async def get_user_info(db: AsyncSession, user_id: int) -> User:
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise UserNotFoundError()
    return user


async def update_user_info(
    db: AsyncSession,
    user_id: int,
    *,
    username: str | None = None,
    avatar: str | None = None,
) -> User:
    """Update profile fields; blank values are left unchanged."""
    updates = {}
    if username and username.strip():
        updates['username'] = username.strip()
    if avatar and avatar.strip():
        updates['avatar'] = avatar.strip()
    if not updates:
        raise NothingToUpdateError()

    try:
        user = await get_user_info(db, user_id)
        for field, value in updates.items():
            setattr(user, field, value)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info('User profile updated', user_id=user_id, fields=sorted(updates))
    return user
