from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from app.services.billing_errors import PlanNotFoundError, QuotaExceededError
from app.utils.subscription_utils import add_months, effective_status, to_kopeks, usage_percentage


def test_add_months_clamps_to_month_end():
    assert add_months(datetime(2027, 1, 31, 12, tzinfo=UTC), 1) == datetime(2027, 2, 28, 12, tzinfo=UTC)


def test_add_months_treats_naive_values_as_utc():
    assert add_months(datetime(2026, 11, 15), 2) == datetime(2027, 1, 15, tzinfo=UTC)


def test_effective_status():
    now = datetime(2026, 6, 1, tzinfo=UTC)
    future = now + timedelta(days=1)
    past = now - timedelta(days=1)

    assert effective_status(SimpleNamespace(status='active', expired_at=future), now) == 'active'
    assert effective_status(SimpleNamespace(status='active', expired_at=past), now) == 'expired'
    assert effective_status(SimpleNamespace(status='active', expired_at=now), now) == 'active'
    assert effective_status(SimpleNamespace(status='cancelled', expired_at=future), now) == 'cancelled'


@pytest.mark.parametrize(
    'amount, expected',
    [('49.90', 4990), ('100', 10000), ('0.005', 1), (12, 1200)],
)
def test_to_kopeks(amount, expected):
    assert to_kopeks(amount) == expected


def test_to_kopeks_rejects_garbage():
    with pytest.raises(ValueError):
        to_kopeks('ten rubles')


def test_usage_percentage_without_limit():
    assert usage_percentage(500, 0) == 0.0
    assert usage_percentage(1, 3) == 33.33


def test_billing_error_carries_code_and_message():
    error = QuotaExceededError()

    assert error.status_code == 403
    assert error.detail == {'error_code': 'QUOTA_EXCEEDED', 'message': 'Traffic quota exhausted'}
    assert str(error) == 'QUOTA_EXCEEDED: Traffic quota exhausted'


def test_billing_error_message_override():
    error = PlanNotFoundError('Plan 7 was removed')

    assert error.status_code == 404
    assert error.detail['message'] == 'Plan 7 was removed'
