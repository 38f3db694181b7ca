from __future__ import annotations

import secrets
from datetime import datetime

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database.crud.order import create_order, get_user_orders
from app.database.models import Order, OrderStatus, OrderType
from app.services.billing_errors import AlreadyExistsError
from app.utils.subscription_utils import now_utc


logger = structlog.get_logger(__name__)


def generate_order_no(user_id: int, now: datetime | None = None) -> str:
    """Order number: prefix, UTC second, user id and a random suffix.

    The suffix keeps two orders of one user within the same second apart; the
    unique index on ``orders.order_no`` rejects whatever still collides.
    """
    moment = now or now_utc()
    return f'{settings.ORDER_NO_PREFIX}{moment:%Y%m%d%H%M%S}{user_id}{secrets.token_hex(4).upper()}'


async def create_paid_order(
    db: AsyncSession,
    *,
    user_id: int,
    order_type: OrderType,
    amount_kopeks: int,
    payment_method: str | None,
    plan_id: int | None = None,
    subscription_id: int | None = None,
    now: datetime | None = None,
) -> Order:
    """Append a paid order inside the caller's transaction.

    On a collision the session must be rolled back by the caller.
    """
    paid_at = now or now_utc()
    order = Order(
        order_no=generate_order_no(user_id, paid_at),
        user_id=user_id,
        type=order_type.value,
        plan_id=plan_id,
        subscription_id=subscription_id,
        amount_kopeks=amount_kopeks,
        payment_method=payment_method,
        status=OrderStatus.PAID.value,
        paid_at=paid_at,
        created_at=paid_at,
    )
    try:
        await create_order(db, order)
    except IntegrityError as exc:
        logger.warning('Order number collision', user_id=user_id, order_no=order.order_no, exc=exc)
        raise AlreadyExistsError('Order number collision, please retry') from exc
    return order


async def list_user_orders(db: AsyncSession, user_id: int, *, limit: int = 20, offset: int = 0) -> dict:
    rows, total = await get_user_orders(db, user_id=user_id, limit=limit, offset=offset)
    return {'items': rows, 'total': total}
