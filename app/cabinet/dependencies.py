from collections.abc import AsyncIterator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.crud.user import get_user_by_id
from app.database.database import get_db
from app.database.models import User


async def get_cabinet_db() -> AsyncIterator[AsyncSession]:
    async for session in get_db():
        yield session


async def get_current_cabinet_user(
    request: Request,
    db: AsyncSession = Depends(get_cabinet_db),
) -> User:
    """Resolve the user authenticated upstream (``request.state.user_id``)."""
    user_id = getattr(request.state, 'user_id', None)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Not authenticated')

    user = await get_user_by_id(db, int(user_id))
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Not authenticated')
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Account is disabled')
    return user
