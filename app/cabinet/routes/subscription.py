from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.cabinet.schemas.billing import (
    PlanInfo,
    PlanListResponse,
    PurchaseRequest,
    RenewRequest,
    SubscriptionInfo,
    SubscriptionListResponse,
    SuccessResponse,
)
from app.database.models import User
from app.services.subscription_service import (
    cancel_subscription,
    list_active_plans,
    list_user_subscriptions,
    purchase_subscription,
    renew_subscription,
)
from app.utils.subscription_utils import effective_status

from ..dependencies import get_cabinet_db, get_current_cabinet_user


router = APIRouter(prefix='/subscriptions', tags=['Cabinet Subscriptions'])


def _subscription_info(subscription) -> SubscriptionInfo:
    info = SubscriptionInfo.model_validate(subscription)
    info.status = effective_status(subscription)
    return info


@router.get('', response_model=SubscriptionListResponse)
async def get_subscriptions(
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    items = await list_user_subscriptions(db, user.id)
    return SubscriptionListResponse(items=items, total=len(items))


@router.get('/plans', response_model=PlanListResponse)
async def get_plans(db: AsyncSession = Depends(get_cabinet_db)):
    plans = await list_active_plans(db)
    return PlanListResponse(items=[PlanInfo.model_validate(plan) for plan in plans], total=len(plans))


@router.post('/purchase', response_model=SubscriptionInfo)
async def purchase(
    payload: PurchaseRequest,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    subscription = await purchase_subscription(db, user.id, payload.plan_id, payload.payment_method)
    return _subscription_info(subscription)


@router.post('/renew', response_model=SubscriptionInfo)
async def renew(
    payload: RenewRequest,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    subscription = await renew_subscription(db, user.id, payload.subscription_id, payload.months)
    return _subscription_info(subscription)


@router.delete('/{subscription_id}', response_model=SuccessResponse)
async def cancel(
    subscription_id: int,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    await cancel_subscription(db, user.id, subscription_id)
    return SuccessResponse()
