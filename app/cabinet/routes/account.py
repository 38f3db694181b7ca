from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.cabinet.schemas.billing import (
    AccountStatsResponse,
    BalanceResponse,
    NotificationInfo,
    NotificationListResponse,
    OrderInfo,
    OrderListResponse,
    RechargeRequest,
    RechargeResponse,
    TrafficInfo,
    TrafficLogInfo,
)
from app.database.models import User, kopeks_to_decimal
from app.services.balance_service import get_balance, recharge_balance
from app.services.notification_service import list_user_notifications
from app.services.order_service import list_user_orders
from app.services.subscription_service import get_account_stats, get_user_traffic
from app.services.traffic_service import list_traffic_logs
from app.utils.subscription_utils import to_kopeks

from ..dependencies import get_cabinet_db, get_current_cabinet_user


router = APIRouter(prefix='/account', tags=['Cabinet Account'])


@router.get('/balance', response_model=BalanceResponse)
async def balance(
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    return BalanceResponse(balance=kopeks_to_decimal(await get_balance(db, user.id)))


@router.get('/traffic', response_model=TrafficInfo)
async def traffic(
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    return TrafficInfo(**await get_user_traffic(db, user.id))


@router.get('/traffic/logs', response_model=list[TrafficLogInfo])
async def traffic_logs(
    limit: int = Query(50, ge=1, le=1000),
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    return await list_traffic_logs(db, user.id, limit=limit)


@router.get('/stats', response_model=AccountStatsResponse)
async def stats(
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    data = await get_account_stats(db, user.id)
    return AccountStatsResponse(
        balance=kopeks_to_decimal(data['balance_kopeks']),
        traffic=TrafficInfo(**data['traffic']),
    )


@router.post('/recharge', response_model=RechargeResponse)
async def recharge(
    payload: RechargeRequest,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    updated_user, order = await recharge_balance(db, user.id, to_kopeks(payload.amount), payload.payment_method)
    return RechargeResponse(order_no=order.order_no, amount=order.amount, balance=updated_user.balance)


@router.get('/orders', response_model=OrderListResponse)
async def orders(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    result = await list_user_orders(db, user.id, limit=limit, offset=offset)
    return OrderListResponse(
        items=[OrderInfo.model_validate(row) for row in result['items']],
        total=result['total'],
    )


@router.get('/notifications', response_model=NotificationListResponse)
async def notifications(
    unread_only: bool = False,
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    result = await list_user_notifications(db, user.id, unread_only=unread_only, limit=limit)
    return NotificationListResponse(
        items=[NotificationInfo.model_validate(row) for row in result['items']],
        unread=result['unread'],
    )
