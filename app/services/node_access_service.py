from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.crud.node import (
    get_active_node_ids,
    get_active_nodes,
    get_node_by_id,
    get_user_node_access,
    upsert_user_node_access,
)
from app.database.models import Node
from app.services.billing_errors import NodeNotFoundError
from app.utils.subscription_utils import ensure_aware, now_utc


logger = structlog.get_logger(__name__)


async def grant_node_access(
    db: AsyncSession,
    *,
    user_id: int,
    subscription_id: int,
    expired_at: datetime,
) -> int:
    """Point the user's grant on every active node at this subscription.

    One upsert per node keyed on (user_id, node_id): an existing grant is
    overwritten in place, a missing one is inserted. Runs inside the caller's
    transaction and returns the number of nodes touched.
    """
    expired_at = ensure_aware(expired_at)
    granted_at = now_utc()
    node_ids = await get_active_node_ids(db)
    for node_id in node_ids:
        await upsert_user_node_access(
            db,
            user_id=user_id,
            node_id=node_id,
            subscription_id=subscription_id,
            expired_at=expired_at,
            granted_at=granted_at,
        )

    logger.debug(
        'Node access granted',
        user_id=user_id,
        subscription_id=subscription_id,
        nodes=len(node_ids),
        expired_at=expired_at.isoformat(),
    )
    return len(node_ids)


async def check_user_node_access(db: AsyncSession, user_id: int, node_id: int) -> bool:
    access = await get_user_node_access(db, user_id=user_id, node_id=node_id)
    if access is None:
        return False
    return not access.is_expired


async def list_nodes(db: AsyncSession, *, location: str | None = None, protocol: str | None = None) -> list[Node]:
    return await get_active_nodes(db, location=location, protocol=protocol)


async def get_node(db: AsyncSession, node_id: int) -> Node:
    node = await get_node_by_id(db, node_id)
    if node is None:
        raise NodeNotFoundError()
    return node
