from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.crud.user import add_to_balance, get_user_by_id, subtract_from_balance
from app.database.models import Order, OrderType, User
from app.services.billing_errors import InsufficientFundsError, InvalidAmountError, UserNotFoundError
from app.services.order_service import create_paid_order


logger = structlog.get_logger(__name__)


def _validate_amount(amount_kopeks: int) -> int:
    if isinstance(amount_kopeks, bool) or not isinstance(amount_kopeks, int) or amount_kopeks <= 0:
        raise InvalidAmountError()
    return amount_kopeks


async def credit_balance(db: AsyncSession, user_id: int, amount_kopeks: int) -> User:
    """Increase the balance inside the caller's transaction.

    No idempotency key: callers deduplicate retries themselves.
    """
    _validate_amount(amount_kopeks)

    if not await add_to_balance(db, user_id, amount_kopeks):
        raise UserNotFoundError()

    user = await get_user_by_id(db, user_id)
    await db.refresh(user, ['balance_kopeks'])
    return user


async def debit_balance(db: AsyncSession, user_id: int, amount_kopeks: int) -> User:
    """Decrease the balance inside the caller's transaction.

    The user row stays locked until the enclosing transaction ends, so
    concurrent debits of the same user are serialized. Nothing is committed
    here: a failure later in the caller's unit of work undoes the debit.
    """
    _validate_amount(amount_kopeks)

    user = await get_user_by_id(db, user_id, for_update=True)
    if user is None:
        raise UserNotFoundError()

    # Check and write in one statement; also holds on backends without row locks
    if not await subtract_from_balance(db, user_id, amount_kopeks):
        logger.info(
            'Debit rejected: insufficient balance',
            user_id=user_id,
            amount_kopeks=amount_kopeks,
        )
        raise InsufficientFundsError()

    await db.refresh(user, ['balance_kopeks'])
    return user


async def get_balance(db: AsyncSession, user_id: int) -> int:
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise UserNotFoundError()
    return int(user.balance_kopeks or 0)


async def recharge_balance(
    db: AsyncSession,
    user_id: int,
    amount_kopeks: int,
    payment_method: str,
) -> tuple[User, Order]:
    """Credit the balance and book a paid recharge order in one commit.

    Funds are assumed to be already collected by the payment side.
    """
    try:
        user = await credit_balance(db, user_id, amount_kopeks)
        order = await create_paid_order(
            db,
            user_id=user_id,
            order_type=OrderType.RECHARGE,
            amount_kopeks=amount_kopeks,
            payment_method=payment_method,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        'Balance recharged',
        user_id=user_id,
        amount_kopeks=amount_kopeks,
        balance_kopeks=user.balance_kopeks,
        order_no=order.order_no,
    )
    return user, order
