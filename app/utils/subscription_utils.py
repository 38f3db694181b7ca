from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from dateutil.relativedelta import relativedelta

from app.database.models import SubscriptionStatus


GIGABYTE = 1024**3


def now_utc() -> datetime:
    return datetime.now(UTC)


def ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def add_days(moment: datetime, days: int) -> datetime:
    return ensure_aware(moment) + timedelta(days=days)


def add_months(moment: datetime, months: int) -> datetime:
    """Calendar-month shift; Jan 31 + 1 month lands on the last day of February."""
    return ensure_aware(moment) + relativedelta(months=months)


def effective_status(subscription, now: datetime | None = None) -> str:
    """Status as seen at read time: an active row past its expiry reads as expired."""
    current = now or now_utc()
    status_value = (subscription.status or SubscriptionStatus.ACTIVE.value).lower()
    if status_value != SubscriptionStatus.ACTIVE.value:
        return status_value
    if subscription.expired_at is None or ensure_aware(subscription.expired_at) < current:
        return SubscriptionStatus.EXPIRED.value
    return SubscriptionStatus.ACTIVE.value


def to_kopeks(amount: Decimal | str | int | float) -> int:
    """Convert a currency amount (e.g. ``'49.90'``) to integer minor units."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f'Invalid amount: {amount!r}') from exc
    return int((value * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def usage_percentage(used_bytes: int, limit_bytes: int) -> float:
    if not limit_bytes:
        return 0.0
    return round(used_bytes / limit_bytes * 100, 2)
