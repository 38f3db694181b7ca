from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import User


async def get_user_by_id(db: AsyncSession, user_id: int, *, for_update: bool = False) -> User | None:
    query = select(User).where(User.id == user_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def add_to_balance(db: AsyncSession, user_id: int, amount_kopeks: int) -> bool:
    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(balance_kopeks=User.balance_kopeks + amount_kopeks)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def subtract_from_balance(db: AsyncSession, user_id: int, amount_kopeks: int) -> bool:
    """Conditional decrement; returns False when the balance does not cover the amount."""
    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.balance_kopeks >= amount_kopeks)
        .values(balance_kopeks=User.balance_kopeks - amount_kopeks)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
