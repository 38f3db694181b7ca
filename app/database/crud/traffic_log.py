from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import TrafficLog


async def create_traffic_log(db: AsyncSession, log: TrafficLog) -> TrafficLog:
    db.add(log)
    await db.flush()
    return log


async def get_user_traffic_logs(db: AsyncSession, *, user_id: int, limit: int = 100) -> list[TrafficLog]:
    query = (
        select(TrafficLog)
        .where(TrafficLog.user_id == user_id)
        .order_by(TrafficLog.recorded_at.desc(), TrafficLog.id.desc())
        .limit(max(1, limit))
    )
    return list((await db.execute(query)).scalars().all())
