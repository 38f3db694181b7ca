from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import SubscriptionPlan


async def get_plan_by_id(db: AsyncSession, plan_id: int) -> SubscriptionPlan | None:
    return await db.get(SubscriptionPlan, plan_id)


async def get_active_plans(db: AsyncSession) -> list[SubscriptionPlan]:
    query = (
        select(SubscriptionPlan)
        .where(SubscriptionPlan.is_active.is_(True))
        .order_by(SubscriptionPlan.display_order.asc(), SubscriptionPlan.price_kopeks.asc())
    )
    return list((await db.execute(query)).scalars().all())
