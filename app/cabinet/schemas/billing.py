from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class PlanInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    price: Decimal
    traffic_limit_bytes: int
    duration_days: int
    features: list[str] = Field(default_factory=list)
    display_order: int = 0


class PlanListResponse(BaseModel):
    items: list[PlanInfo]
    total: int


class SubscriptionInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    plan_id: int | None = None
    name: str
    status: str
    price: Decimal
    duration_days: int
    traffic_limit_bytes: int
    traffic_used_bytes: int
    subscribe_url: str | None = None
    started_at: datetime
    expired_at: datetime


class SubscriptionListResponse(BaseModel):
    items: list[SubscriptionInfo]
    total: int


class PurchaseRequest(BaseModel):
    plan_id: int
    payment_method: str = Field(..., min_length=1, max_length=50)


class RenewRequest(BaseModel):
    subscription_id: int
    months: int = Field(..., ge=1, le=36)


class RechargeRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_method: str = Field(..., min_length=1, max_length=50)


class RechargeResponse(BaseModel):
    success: bool = True
    order_no: str
    amount: Decimal
    balance: Decimal


class BalanceResponse(BaseModel):
    balance: Decimal


class TrafficInfo(BaseModel):
    used: int
    total: int
    percentage: float
    reset_date: datetime | None = None


class AccountStatsResponse(BaseModel):
    balance: Decimal
    traffic: TrafficInfo


class OrderInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_no: str
    type: str
    plan_id: int | None = None
    subscription_id: int | None = None
    amount: Decimal
    payment_method: str | None = None
    status: str
    paid_at: datetime | None = None
    created_at: datetime | None = None


class OrderListResponse(BaseModel):
    items: list[OrderInfo]
    total: int


class NodeInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    location: str | None = None
    protocol: str | None = None
    server_address: str | None = None
    server_port: int | None = None
    status: str
    latency_ms: int = 0
    load_percentage: int = 0
    bandwidth: str | None = None
    max_connections: int | None = None
    current_connections: int = 0


class NodeListResponse(BaseModel):
    items: list[NodeInfo]
    total: int


class NodeAccessResponse(BaseModel):
    node_id: int
    has_access: bool


class TrafficLogInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subscription_id: int
    node_id: int
    upload_bytes: int
    download_bytes: int
    total_bytes: int
    recorded_at: datetime


class SuccessResponse(BaseModel):
    success: bool = True


class NotificationInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    notification_type: str
    title: str
    body: str | None = None
    payload: dict = Field(default_factory=dict)
    created_at: datetime | None = None
    read_at: datetime | None = None


class NotificationListResponse(BaseModel):
    items: list[NotificationInfo]
    unread: int


class UserInfoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    avatar: str | None = None
    status: str
    balance: Decimal
    created_at: datetime | None = None


class UpdateUserInfoRequest(BaseModel):
    username: str | None = Field(None, max_length=255)
    avatar: str | None = Field(None, max_length=512)
