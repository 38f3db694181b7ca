from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Order


async def create_order(db: AsyncSession, order: Order) -> Order:
    db.add(order)
    await db.flush()
    return order


async def get_user_orders(
    db: AsyncSession,
    *,
    user_id: int,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Order], int]:
    query = (
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset(max(0, offset))
        .limit(max(1, min(limit, 100)))
    )
    total_query = select(func.count(Order.id)).where(Order.user_id == user_id)

    rows = (await db.execute(query)).scalars().all()
    total = int((await db.execute(total_query)).scalar() or 0)
    return list(rows), total
