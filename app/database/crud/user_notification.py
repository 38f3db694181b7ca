from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import UserNotification


async def create_user_notification(
    db: AsyncSession,
    *,
    user_id: int,
    notification_type: str,
    title: str,
    body: str | None = None,
    payload: dict | None = None,
) -> UserNotification:
    notification = UserNotification(
        user_id=user_id,
        notification_type=notification_type,
        title=title,
        body=body,
        payload=payload or {},
    )
    db.add(notification)
    await db.flush()
    return notification


async def get_user_notifications(
    db: AsyncSession,
    *,
    user_id: int,
    unread_only: bool = False,
    limit: int = 20,
) -> tuple[list[UserNotification], int]:
    conditions = [UserNotification.user_id == user_id]
    if unread_only:
        conditions.append(UserNotification.read_at.is_(None))

    query = (
        select(UserNotification)
        .where(*conditions)
        .order_by(UserNotification.created_at.desc(), UserNotification.id.desc())
        .limit(max(1, min(limit, 100)))
    )
    unread_query = select(func.count(UserNotification.id)).where(
        UserNotification.user_id == user_id,
        UserNotification.read_at.is_(None),
    )

    rows = (await db.execute(query)).scalars().all()
    unread = int((await db.execute(unread_query)).scalar() or 0)
    return list(rows), unread
