from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Subscription, SubscriptionStatus


async def get_subscription_by_id(
    db: AsyncSession,
    subscription_id: int,
    *,
    for_update: bool = False,
) -> Subscription | None:
    query = select(Subscription).where(Subscription.id == subscription_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_user_subscriptions(db: AsyncSession, user_id: int) -> list[Subscription]:
    query = (
        select(Subscription)
        .where(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
    )
    return list((await db.execute(query)).scalars().all())


async def get_current_subscription(
    db: AsyncSession,
    user_id: int,
    *,
    now: datetime,
    for_update: bool = False,
) -> Subscription | None:
    """Active, not yet lapsed subscription with the latest expiry."""
    query = (
        select(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.expired_at >= now,
        )
        .order_by(Subscription.expired_at.desc(), Subscription.id.desc())
        .limit(1)
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def add_traffic_usage(db: AsyncSession, subscription_id: int, total_bytes: int) -> bool:
    """Conditional increment; returns False when the quota ceiling would be crossed."""
    result = await db.execute(
        update(Subscription)
        .where(
            Subscription.id == subscription_id,
            Subscription.traffic_used_bytes + total_bytes <= Subscription.traffic_limit_bytes,
        )
        .values(traffic_used_bytes=Subscription.traffic_used_bytes + total_bytes)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
