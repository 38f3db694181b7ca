from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database.crud.node import get_node_by_id
from app.database.crud.subscription import add_traffic_usage, get_current_subscription
from app.database.crud.traffic_log import create_traffic_log, get_user_traffic_logs
from app.database.models import TrafficLog
from app.services.billing_errors import (
    InvalidAmountError,
    NoActiveSubscriptionError,
    NodeNotFoundError,
    QuotaExceededError,
)
from app.utils.subscription_utils import now_utc


logger = structlog.get_logger(__name__)


async def record_traffic(
    db: AsyncSession,
    user_id: int,
    node_id: int,
    upload_bytes: int,
    download_bytes: int,
) -> TrafficLog:
    """Charge one session's traffic against the user's current subscription.

    Either the log row is appended and ``traffic_used_bytes`` advanced, or
    nothing is written. Usage never exceeds ``traffic_limit_bytes``.
    """
    if upload_bytes < 0 or download_bytes < 0:
        raise InvalidAmountError('Traffic counters cannot be negative')
    total_bytes = upload_bytes + download_bytes

    try:
        if await get_node_by_id(db, node_id) is None:
            raise NodeNotFoundError()

        now = now_utc()
        subscription = await get_current_subscription(db, user_id, now=now, for_update=True)
        if subscription is None:
            raise NoActiveSubscriptionError()

        used = int(subscription.traffic_used_bytes or 0)
        limit = int(subscription.traffic_limit_bytes or 0)
        if used + total_bytes > limit:
            logger.warning(
                'Traffic rejected: quota exceeded',
                user_id=user_id,
                subscription_id=subscription.id,
                used=used,
                limit=limit,
                requested=total_bytes,
            )
            raise QuotaExceededError()

        # Re-checked in SQL in case another session advanced the counter
        if not await add_traffic_usage(db, subscription.id, total_bytes):
            raise QuotaExceededError()

        log = await create_traffic_log(
            db,
            TrafficLog(
                user_id=user_id,
                subscription_id=subscription.id,
                node_id=node_id,
                upload_bytes=upload_bytes,
                download_bytes=download_bytes,
                total_bytes=total_bytes,
                recorded_at=now,
            ),
        )
        await db.refresh(subscription, ['traffic_used_bytes'])
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.debug(
        'Traffic recorded',
        user_id=user_id,
        node_id=node_id,
        subscription_id=subscription.id,
        total_bytes=total_bytes,
        traffic_used_bytes=subscription.traffic_used_bytes,
    )
    return log


async def list_traffic_logs(db: AsyncSession, user_id: int, *, limit: int | None = None) -> list[TrafficLog]:
    page_limit = min(limit or settings.TRAFFIC_LOG_PAGE_LIMIT, settings.TRAFFIC_LOG_PAGE_LIMIT)
    return await get_user_traffic_logs(db, user_id=user_id, limit=page_limit)
