from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func


def _aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is timezone-aware (SQLite returns naive values)."""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def kopeks_to_decimal(value: int | None) -> Decimal:
    return (Decimal(int(value or 0)) / 100).quantize(Decimal('0.01'))


class AwareDateTime(TypeDecorator):
    """DateTime that auto-converts naive values to UTC-aware on load from DB."""

    impl = DateTime
    cache_ok = True

    def __init__(self):
        super().__init__(timezone=True)

    def process_bind_param(self, value, dialect):
        if value is not None and isinstance(value, datetime) and value.tzinfo is not None:
            return value.astimezone(UTC)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


Base = declarative_base()


class UserStatus(Enum):
    ACTIVE = 'active'
    SUSPENDED = 'suspended'
    DELETED = 'deleted'


class SubscriptionStatus(Enum):
    ACTIVE = 'active'
    EXPIRED = 'expired'
    CANCELLED = 'cancelled'


class OrderType(Enum):
    PURCHASE = 'purchase'
    RENEW = 'renew'
    RECHARGE = 'recharge'


class OrderStatus(Enum):
    PENDING = 'pending'
    PAID = 'paid'
    CANCELLED = 'cancelled'
    REFUNDED = 'refunded'


class NodeStatus(Enum):
    ONLINE = 'online'
    OFFLINE = 'offline'
    MAINTENANCE = 'maintenance'


class User(Base):
    __tablename__ = 'users'
    __table_args__ = (CheckConstraint('balance_kopeks >= 0', name='ck_users_balance_non_negative'),)

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(255), nullable=False)
    avatar = Column(String(512), nullable=True)
    balance_kopeks = Column(BigInteger, default=0, nullable=False)
    status = Column(String(20), default=UserStatus.ACTIVE.value, nullable=False)
    created_at = Column(AwareDateTime(), default=func.now())
    updated_at = Column(AwareDateTime(), default=func.now(), onupdate=func.now())

    subscriptions = relationship('Subscription', back_populates='user')
    orders = relationship('Order', back_populates='user')
    node_accesses = relationship('UserNodeAccess', back_populates='user')

    @property
    def balance(self) -> Decimal:
        return kopeks_to_decimal(self.balance_kopeks)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value


class SubscriptionPlan(Base):
    """Catalog entry. Subscriptions copy its terms at purchase time."""

    __tablename__ = 'subscription_plans'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price_kopeks = Column(BigInteger, nullable=False)
    traffic_limit_bytes = Column(BigInteger, nullable=False)
    duration_days = Column(Integer, nullable=False)
    features = Column(JSON, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    created_at = Column(AwareDateTime(), default=func.now())
    updated_at = Column(AwareDateTime(), default=func.now(), onupdate=func.now())

    subscriptions = relationship('Subscription', back_populates='plan')

    @property
    def price(self) -> Decimal:
        return kopeks_to_decimal(self.price_kopeks)


class Subscription(Base):
    __tablename__ = 'subscriptions'
    __table_args__ = (
        CheckConstraint(
            'traffic_used_bytes >= 0 AND traffic_used_bytes <= traffic_limit_bytes',
            name='ck_subscriptions_traffic_within_limit',
        ),
        Index('ix_subscriptions_user_status_expired', 'user_id', 'status', 'expired_at'),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey('subscription_plans.id', ondelete='SET NULL'), nullable=True, index=True)

    # Terms copied from the plan at purchase time
    name = Column(String(255), nullable=False)
    price_kopeks = Column(BigInteger, nullable=False)
    duration_days = Column(Integer, nullable=False)
    traffic_limit_bytes = Column(BigInteger, nullable=False)

    traffic_used_bytes = Column(BigInteger, default=0, nullable=False)
    status = Column(String(20), default=SubscriptionStatus.ACTIVE.value, nullable=False)
    subscribe_url = Column(String(512), nullable=True)

    started_at = Column(AwareDateTime(), nullable=False)
    expired_at = Column(AwareDateTime(), nullable=False)
    created_at = Column(AwareDateTime(), default=func.now())
    updated_at = Column(AwareDateTime(), default=func.now(), onupdate=func.now())

    user = relationship('User', back_populates='subscriptions')
    plan = relationship('SubscriptionPlan', back_populates='subscriptions')
    traffic_logs = relationship('TrafficLog', back_populates='subscription', passive_deletes=True)

    @property
    def price(self) -> Decimal:
        return kopeks_to_decimal(self.price_kopeks)


class Order(Base):
    __tablename__ = 'orders'

    id = Column(Integer, primary_key=True, index=True)
    order_no = Column(String(64), nullable=False, unique=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    plan_id = Column(Integer, ForeignKey('subscription_plans.id', ondelete='SET NULL'), nullable=True)
    subscription_id = Column(Integer, ForeignKey('subscriptions.id', ondelete='SET NULL'), nullable=True)
    amount_kopeks = Column(BigInteger, nullable=False)
    payment_method = Column(String(50), nullable=True)
    status = Column(String(20), default=OrderStatus.PENDING.value, nullable=False)
    paid_at = Column(AwareDateTime(), nullable=True)
    created_at = Column(AwareDateTime(), default=func.now())

    user = relationship('User', back_populates='orders')

    @property
    def amount(self) -> Decimal:
        return kopeks_to_decimal(self.amount_kopeks)


class Node(Base):
    __tablename__ = 'nodes'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True)
    protocol = Column(String(50), nullable=True)  # vmess/vless/trojan/shadowsocks
    server_address = Column(String(255), nullable=True)
    server_port = Column(Integer, nullable=True)
    status = Column(String(20), default=NodeStatus.ONLINE.value, nullable=False)
    latency_ms = Column(Integer, default=0, nullable=False)
    load_percentage = Column(Integer, default=0, nullable=False)
    bandwidth = Column(String(50), nullable=True)
    max_connections = Column(Integer, nullable=True)
    current_connections = Column(Integer, default=0, nullable=False)
    config = Column(JSON, default=dict)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(AwareDateTime(), default=func.now())
    updated_at = Column(AwareDateTime(), default=func.now(), onupdate=func.now())


class UserNodeAccess(Base):
    __tablename__ = 'user_node_access'
    __table_args__ = (UniqueConstraint('user_id', 'node_id', name='uq_user_node_access_user_node'),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    node_id = Column(Integer, ForeignKey('nodes.id', ondelete='CASCADE'), nullable=False)
    subscription_id = Column(Integer, ForeignKey('subscriptions.id', ondelete='CASCADE'), nullable=False)
    granted_at = Column(AwareDateTime(), default=func.now())
    expired_at = Column(AwareDateTime(), nullable=True)

    user = relationship('User', back_populates='node_accesses')
    node = relationship('Node')
    subscription = relationship('Subscription')

    @property
    def is_expired(self) -> bool:
        end = _aware(self.expired_at)
        return end is not None and end < datetime.now(UTC)


class TrafficLog(Base):
    __tablename__ = 'traffic_logs'
    __table_args__ = (Index('ix_traffic_logs_user_recorded', 'user_id', 'recorded_at'),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    subscription_id = Column(Integer, ForeignKey('subscriptions.id', ondelete='CASCADE'), nullable=False, index=True)
    node_id = Column(Integer, ForeignKey('nodes.id', ondelete='CASCADE'), nullable=False)
    upload_bytes = Column(BigInteger, default=0, nullable=False)
    download_bytes = Column(BigInteger, default=0, nullable=False)
    total_bytes = Column(BigInteger, default=0, nullable=False)
    recorded_at = Column(AwareDateTime(), default=func.now())

    subscription = relationship('Subscription', back_populates='traffic_logs')


class UserNotification(Base):
    __tablename__ = 'user_notifications'
    __table_args__ = (Index('ix_user_notifications_user_created', 'user_id', 'created_at'),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    notification_type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    payload = Column(JSON, default=dict)
    created_at = Column(AwareDateTime(), default=func.now())
    read_at = Column(AwareDateTime(), nullable=True)
