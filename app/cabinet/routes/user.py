from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.cabinet.schemas.billing import UpdateUserInfoRequest, UserInfoResponse
from app.database.models import User
from app.services.user_service import get_user_info, update_user_info

from ..dependencies import get_cabinet_db, get_current_cabinet_user


router = APIRouter(prefix='/user', tags=['Cabinet User'])


@router.get('/info', response_model=UserInfoResponse)
async def get_info(
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    return UserInfoResponse.model_validate(await get_user_info(db, user.id))


@router.put('/info', response_model=UserInfoResponse)
async def update_info(
    payload: UpdateUserInfoRequest,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    updated = await update_user_info(db, user.id, username=payload.username, avatar=payload.avatar)
    return UserInfoResponse.model_validate(updated)
