from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Node, UserNodeAccess


async def get_node_by_id(db: AsyncSession, node_id: int) -> Node | None:
    return await db.get(Node, node_id)


async def get_active_nodes(
    db: AsyncSession,
    *,
    location: str | None = None,
    protocol: str | None = None,
) -> list[Node]:
    query = select(Node).where(Node.is_active.is_(True))
    if location:
        query = query.where(Node.location == location)
    if protocol:
        query = query.where(Node.protocol == protocol)
    query = query.order_by(Node.location.asc(), Node.name.asc())
    return list((await db.execute(query)).scalars().all())


async def get_active_node_ids(db: AsyncSession) -> list[int]:
    result = await db.execute(select(Node.id).where(Node.is_active.is_(True)).order_by(Node.id))
    return [int(row[0]) for row in result.all()]


def _insert_for(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    if dialect == 'postgresql':
        return postgresql.insert
    if dialect == 'sqlite':
        return sqlite.insert
    raise RuntimeError(f'Node access upsert requires PostgreSQL or SQLite, got {dialect!r}')


async def upsert_user_node_access(
    db: AsyncSession,
    *,
    user_id: int,
    node_id: int,
    subscription_id: int,
    expired_at: datetime,
    granted_at: datetime,
) -> None:
    insert = _insert_for(db)
    stmt = insert(UserNodeAccess).values(
        user_id=user_id,
        node_id=node_id,
        subscription_id=subscription_id,
        expired_at=expired_at,
        granted_at=granted_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[UserNodeAccess.user_id, UserNodeAccess.node_id],
        set_={'subscription_id': stmt.excluded.subscription_id, 'expired_at': stmt.excluded.expired_at},
    )
    await db.execute(stmt)


async def get_user_node_access(db: AsyncSession, *, user_id: int, node_id: int) -> UserNodeAccess | None:
    result = await db.execute(
        select(UserNodeAccess).where(UserNodeAccess.user_id == user_id, UserNodeAccess.node_id == node_id)
    )
    return result.scalar_one_or_none()

