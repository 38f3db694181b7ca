from __future__ import annotations

from typing import Any, Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.crud.user_notification import create_user_notification, get_user_notifications


logger = structlog.get_logger(__name__)


class NotificationSender(Protocol):
    """Outbound delivery (email) implemented outside this service."""

    async def send_code(self, email: str, code: str, purpose: str) -> None: ...


async def notify_user(
    db: AsyncSession,
    *,
    user_id: int,
    notification_type: str,
    title: str,
    body: str,
    payload: dict[str, Any] | None = None,
) -> bool:
    """Store an in-app notification in its own commit.

    Called after the business transaction has committed; a failure here is
    logged and reported as ``False``, never raised.
    """
    try:
        await create_user_notification(
            db,
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            body=body,
            payload=payload or {},
        )
        await db.commit()
    except Exception as exc:
        logger.warning(
            'Failed to store user notification',
            user_id=user_id,
            notification_type=notification_type,
            exc=exc,
        )
        await db.rollback()
        return False
    return True


async def deliver_code(sender: NotificationSender, email: str, code: str, purpose: str) -> bool:
    try:
        await sender.send_code(email, code, purpose)
    except Exception as exc:
        logger.warning('Failed to deliver verification code', email=email, purpose=purpose, exc=exc)
        return False
    return True


async def list_user_notifications(
    db: AsyncSession,
    user_id: int,
    *,
    unread_only: bool = False,
    limit: int = 20,
) -> dict:
    rows, unread = await get_user_notifications(db, user_id=user_id, unread_only=unread_only, limit=limit)
    return {'items': rows, 'unread': unread}
