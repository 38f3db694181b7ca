from __future__ import annotations

import secrets
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database.crud.plan import get_active_plans, get_plan_by_id
from app.database.crud.subscription import (
    get_current_subscription,
    get_subscription_by_id,
    get_user_subscriptions,
)
from app.database.models import OrderType, Subscription, SubscriptionPlan, SubscriptionStatus
from app.services.balance_service import debit_balance, get_balance
from app.services.billing_errors import (
    ForbiddenError,
    InvalidDurationError,
    PlanInactiveError,
    PlanNotFoundError,
    SubscriptionCancelledError,
    SubscriptionNotFoundError,
)
from app.services.node_access_service import grant_node_access
from app.services.notification_service import notify_user
from app.services.order_service import create_paid_order
from app.utils.subscription_utils import add_days, add_months, effective_status, now_utc, usage_percentage


logger = structlog.get_logger(__name__)


def _generate_subscribe_url() -> str:
    return f'{settings.SUBSCRIBE_URL_BASE.rstrip("/")}/{secrets.token_hex(16)}'


async def _load_purchasable_plan(db: AsyncSession, plan_id: int) -> SubscriptionPlan:
    plan = await get_plan_by_id(db, plan_id)
    if plan is None:
        raise PlanNotFoundError()
    if not plan.is_active:
        raise PlanInactiveError()
    return plan


async def _get_owned_subscription(
    db: AsyncSession,
    user_id: int,
    subscription_id: int,
    *,
    for_update: bool = False,
) -> Subscription:
    subscription = await get_subscription_by_id(db, subscription_id, for_update=for_update)
    if subscription is None:
        raise SubscriptionNotFoundError()
    if subscription.user_id != user_id:
        raise ForbiddenError()
    return subscription


async def purchase_subscription(
    db: AsyncSession,
    user_id: int,
    plan_id: int,
    payment_method: str,
) -> Subscription:
    """Buy a plan from the user's balance.

    Debit, subscription, paid order and node grants are written in a single
    transaction; on any failure none of them persist.
    """
    try:
        plan = await _load_purchasable_plan(db, plan_id)

        await debit_balance(db, user_id, plan.price_kopeks)

        now = now_utc()
        subscription = Subscription(
            user_id=user_id,
            plan_id=plan.id,
            name=plan.name,
            price_kopeks=plan.price_kopeks,
            duration_days=plan.duration_days,
            traffic_limit_bytes=plan.traffic_limit_bytes,
            traffic_used_bytes=0,
            status=SubscriptionStatus.ACTIVE.value,
            subscribe_url=_generate_subscribe_url(),
            started_at=now,
            expired_at=add_days(now, plan.duration_days),
            created_at=now,
        )
        db.add(subscription)
        await db.flush()

        order = await create_paid_order(
            db,
            user_id=user_id,
            order_type=OrderType.PURCHASE,
            amount_kopeks=plan.price_kopeks,
            payment_method=payment_method,
            plan_id=plan.id,
            subscription_id=subscription.id,
            now=now,
        )

        await grant_node_access(
            db,
            user_id=user_id,
            subscription_id=subscription.id,
            expired_at=subscription.expired_at,
        )

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        'Subscription purchased',
        user_id=user_id,
        plan_id=plan.id,
        subscription_id=subscription.id,
        order_no=order.order_no,
        amount_kopeks=plan.price_kopeks,
    )

    notified = await notify_user(
        db,
        user_id=user_id,
        notification_type='subscription_purchased',
        title='Subscription activated',
        body=f'{subscription.name} is active until {subscription.expired_at:%Y-%m-%d %H:%M} UTC.',
        payload={'subscription_id': subscription.id, 'order_no': order.order_no},
    )
    if not notified:
        await db.refresh(subscription)
    return subscription


async def renew_subscription(
    db: AsyncSession,
    user_id: int,
    subscription_id: int,
    months: int,
) -> Subscription:
    """Extend a subscription by whole calendar months.

    The new expiry counts from the current ``expired_at``, not from now, so an
    early renewal keeps the remaining days and a lapsed one resumes from its
    old expiry. Traffic usage is carried over. A cancelled subscription stays
    cancelled and cannot be renewed.
    """
    if months <= 0:
        raise InvalidDurationError()

    try:
        subscription = await _get_owned_subscription(db, user_id, subscription_id, for_update=True)
        if subscription.status == SubscriptionStatus.CANCELLED.value:
            raise SubscriptionCancelledError()

        plan = await get_plan_by_id(db, subscription.plan_id) if subscription.plan_id is not None else None
        if plan is None:
            raise PlanNotFoundError()

        total_kopeks = plan.price_kopeks * months
        await debit_balance(db, user_id, total_kopeks)

        previous_expiry = subscription.expired_at
        subscription.expired_at = add_months(previous_expiry, months)
        subscription.status = SubscriptionStatus.ACTIVE.value
        await db.flush()

        order = await create_paid_order(
            db,
            user_id=user_id,
            order_type=OrderType.RENEW,
            amount_kopeks=total_kopeks,
            payment_method='balance',
            plan_id=plan.id,
            subscription_id=subscription.id,
        )

        await grant_node_access(
            db,
            user_id=user_id,
            subscription_id=subscription.id,
            expired_at=subscription.expired_at,
        )

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        'Subscription renewed',
        user_id=user_id,
        subscription_id=subscription.id,
        months=months,
        previous_expiry=previous_expiry.isoformat(),
        expired_at=subscription.expired_at.isoformat(),
        order_no=order.order_no,
    )

    notified = await notify_user(
        db,
        user_id=user_id,
        notification_type='subscription_renewed',
        title='Subscription renewed',
        body=f'{subscription.name} now runs until {subscription.expired_at:%Y-%m-%d %H:%M} UTC.',
        payload={'subscription_id': subscription.id, 'order_no': order.order_no, 'months': months},
    )
    if not notified:
        await db.refresh(subscription)
    return subscription


async def cancel_subscription(db: AsyncSession, user_id: int, subscription_id: int) -> Subscription:
    """Mark the subscription cancelled.

    Node grants already issued stay valid until their own expiry.
    """
    try:
        subscription = await _get_owned_subscription(db, user_id, subscription_id, for_update=True)
        already_cancelled = subscription.status == SubscriptionStatus.CANCELLED.value
        if not already_cancelled:
            subscription.status = SubscriptionStatus.CANCELLED.value
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if already_cancelled:
        return subscription

    logger.info('Subscription cancelled', user_id=user_id, subscription_id=subscription.id)
    return subscription


async def list_user_subscriptions(db: AsyncSession, user_id: int) -> list[dict]:
    now = now_utc()
    rows = await get_user_subscriptions(db, user_id)
    return [
        {
            'id': row.id,
            'plan_id': row.plan_id,
            'name': row.name,
            'status': effective_status(row, now),
            'price': row.price,
            'duration_days': row.duration_days,
            'traffic_limit_bytes': int(row.traffic_limit_bytes or 0),
            'traffic_used_bytes': int(row.traffic_used_bytes or 0),
            'subscribe_url': row.subscribe_url,
            'started_at': row.started_at,
            'expired_at': row.expired_at,
        }
        for row in rows
    ]


async def list_active_plans(db: AsyncSession) -> list[SubscriptionPlan]:
    return await get_active_plans(db)


async def get_user_traffic(db: AsyncSession, user_id: int, *, now: datetime | None = None) -> dict:
    subscription = await get_current_subscription(db, user_id, now=now or now_utc())
    if subscription is None:
        return {'used': 0, 'total': 0, 'percentage': 0.0, 'reset_date': None}

    used = int(subscription.traffic_used_bytes or 0)
    total = int(subscription.traffic_limit_bytes or 0)
    return {
        'used': used,
        'total': total,
        'percentage': usage_percentage(used, total),
        'reset_date': subscription.expired_at,
    }


async def get_account_stats(db: AsyncSession, user_id: int) -> dict:
    balance_kopeks = await get_balance(db, user_id)
    traffic = await get_user_traffic(db, user_id)
    return {'balance_kopeks': balance_kopeks, 'traffic': traffic}
