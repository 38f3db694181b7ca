from datetime import UTC, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app import main
from app.cabinet import dependencies
from app.cabinet.routes import account, nodes, subscription, user
from app.cabinet.schemas.billing import PurchaseRequest, RechargeRequest, RenewRequest, UpdateUserInfoRequest
from app.services.billing_errors import INTERNAL_ERROR_DETAIL, InsufficientFundsError


def _subscription(**overrides):
    now = datetime.now(UTC)
    values = dict(
        id=5,
        plan_id=3,
        name='Standard',
        status='active',
        price=Decimal('49.90'),
        duration_days=30,
        traffic_limit_bytes=1000,
        traffic_used_bytes=0,
        subscribe_url='https://api.example.com/sub/abc',
        started_at=now,
        expired_at=now + timedelta(days=30),
    )
    values.update(overrides)
    return SimpleNamespace(**values)


async def test_purchase_route_passes_user_and_plan(monkeypatch):
    purchase = AsyncMock(return_value=_subscription())
    monkeypatch.setattr(subscription, 'purchase_subscription', purchase)

    db = AsyncMock(spec=AsyncSession)
    result = await subscription.purchase(
        PurchaseRequest(plan_id=3, payment_method='balance'),
        user=SimpleNamespace(id=1),
        db=db,
    )

    purchase.assert_awaited_once_with(db, 1, 3, 'balance')
    assert result.id == 5
    assert result.price == Decimal('49.90')


async def test_renew_route_reports_lapsed_subscription_as_expired(monkeypatch):
    lapsed = _subscription(expired_at=datetime.now(UTC) - timedelta(seconds=1))
    monkeypatch.setattr(subscription, 'renew_subscription', AsyncMock(return_value=lapsed))

    result = await subscription.renew(
        RenewRequest(subscription_id=5, months=1),
        user=SimpleNamespace(id=1),
        db=AsyncMock(spec=AsyncSession),
    )

    assert result.status == 'expired'


async def test_purchase_route_propagates_billing_errors(monkeypatch):
    monkeypatch.setattr(subscription, 'purchase_subscription', AsyncMock(side_effect=InsufficientFundsError()))

    with pytest.raises(HTTPException) as exc:
        await subscription.purchase(
            PurchaseRequest(plan_id=3, payment_method='balance'),
            user=SimpleNamespace(id=1),
            db=AsyncMock(spec=AsyncSession),
        )

    assert exc.value.status_code == 402
    assert exc.value.detail['error_code'] == 'INSUFFICIENT_FUNDS'


async def test_recharge_route_converts_amount_to_kopeks(monkeypatch):
    recharge = AsyncMock(
        return_value=(
            SimpleNamespace(balance=Decimal('112.34')),
            SimpleNamespace(order_no='ORD1', amount=Decimal('12.34')),
        )
    )
    monkeypatch.setattr(account, 'recharge_balance', recharge)

    db = AsyncMock(spec=AsyncSession)
    result = await account.recharge(
        RechargeRequest(amount=Decimal('12.34'), payment_method='card'),
        user=SimpleNamespace(id=1),
        db=db,
    )

    recharge.assert_awaited_once_with(db, 1, 1234, 'card')
    assert result.success is True
    assert result.balance == Decimal('112.34')


async def test_stats_route_renders_balance_in_currency_units(monkeypatch):
    monkeypatch.setattr(
        account,
        'get_account_stats',
        AsyncMock(
            return_value={
                'balance_kopeks': 5010,
                'traffic': {'used': 10, 'total': 100, 'percentage': 10.0, 'reset_date': None},
            }
        ),
    )

    result = await account.stats(user=SimpleNamespace(id=1), db=AsyncMock(spec=AsyncSession))

    assert result.balance == Decimal('50.10')
    assert result.traffic.percentage == 10.0


async def test_node_access_route(monkeypatch):
    monkeypatch.setattr(nodes, 'get_node', AsyncMock(return_value=SimpleNamespace(id=9)))
    monkeypatch.setattr(nodes, 'check_user_node_access', AsyncMock(return_value=True))

    result = await nodes.get_node_access(9, user=SimpleNamespace(id=1), db=AsyncMock(spec=AsyncSession))

    assert result.node_id == 9
    assert result.has_access is True


async def test_current_user_requires_authenticated_request():
    request = SimpleNamespace(state=SimpleNamespace())

    with pytest.raises(HTTPException) as exc:
        await dependencies.get_current_cabinet_user(request, db=AsyncMock(spec=AsyncSession))

    assert exc.value.status_code == 401


async def test_current_user_rejects_suspended_account(monkeypatch):
    monkeypatch.setattr(
        dependencies,
        'get_user_by_id',
        AsyncMock(return_value=SimpleNamespace(id=1, is_active=False)),
    )
    request = SimpleNamespace(state=SimpleNamespace(user_id=1))

    with pytest.raises(HTTPException) as exc:
        await dependencies.get_current_cabinet_user(request, db=AsyncMock(spec=AsyncSession))

    assert exc.value.status_code == 403


async def test_unhandled_errors_hide_details(monkeypatch):
    monkeypatch.setattr(main, 'logger', MagicMock())
    request = SimpleNamespace(url=SimpleNamespace(path='/cabinet/account/balance'), method='GET')

    response = await main.unhandled_exception_handler(request, RuntimeError('connection refused'))

    assert response.status_code == 500
    assert b'INTERNAL_ERROR' in response.body
    assert b'connection refused' not in response.body
    assert INTERNAL_ERROR_DETAIL['error_code'] == 'INTERNAL_ERROR'


async def test_user_info_routes(monkeypatch):
    profile = SimpleNamespace(
        id=1,
        username='alice',
        email='alice@example.com',
        avatar='https://cdn.example.com/a.png',
        status='active',
        balance=Decimal('50.10'),
        created_at=datetime.now(UTC),
    )
    update = AsyncMock(return_value=profile)
    monkeypatch.setattr(user, 'get_user_info', AsyncMock(return_value=profile))
    monkeypatch.setattr(user, 'update_user_info', update)

    db = AsyncMock(spec=AsyncSession)
    current = SimpleNamespace(id=1)

    info = await user.get_info(user=current, db=db)
    assert info.email == 'alice@example.com'
    assert info.balance == Decimal('50.10')

    updated = await user.update_info(
        UpdateUserInfoRequest(avatar='https://cdn.example.com/a.png'),
        user=current,
        db=db,
    )
    update.assert_awaited_once_with(db, 1, username=None, avatar='https://cdn.example.com/a.png')
    assert updated.avatar == 'https://cdn.example.com/a.png'


async def test_health():
    assert await main.health() == {'status': 'ok'}


def test_create_app_registers_routes(monkeypatch):
    monkeypatch.setattr(main, 'setup_logging', MagicMock())

    app = main.create_app()

    paths = {route.path for route in app.routes}
    assert {
        '/health',
        '/cabinet/user/info',
        '/cabinet/subscriptions/purchase',
        '/cabinet/account/balance',
        '/cabinet/nodes/{node_id}/access',
    } <= paths
