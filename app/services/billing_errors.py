from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status


class BillingError(HTTPException):
    """Business-rule failure with a stable code and a user-readable message.

    Raised from the service layer; the cabinet API returns ``detail`` as is.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = 'BILLING_ERROR'
    message: str = 'Operation failed'

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or type(self).message
        self.context = context
        super().__init__(
            status_code=type(self).status_code,
            detail={'error_code': self.error_code, 'message': self.message},
        )

    def __str__(self) -> str:
        return f'{self.error_code}: {self.message}'


class NotFoundError(BillingError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = 'NOT_FOUND'
    message = 'Requested object not found'


class UserNotFoundError(NotFoundError):
    error_code = 'USER_NOT_FOUND'
    message = 'User not found'


class PlanNotFoundError(NotFoundError):
    error_code = 'PLAN_NOT_FOUND'
    message = 'Subscription plan not found'


class SubscriptionNotFoundError(NotFoundError):
    error_code = 'SUBSCRIPTION_NOT_FOUND'
    message = 'Subscription not found'


class NodeNotFoundError(NotFoundError):
    error_code = 'NODE_NOT_FOUND'
    message = 'Node not found'


class ForbiddenError(BillingError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = 'FORBIDDEN'
    message = 'You are not allowed to manage this subscription'


class InsufficientFundsError(BillingError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    error_code = 'INSUFFICIENT_FUNDS'
    message = 'Insufficient balance'


class InvalidAmountError(BillingError):
    error_code = 'INVALID_AMOUNT'
    message = 'Amount must be greater than zero'


class InvalidDurationError(BillingError):
    error_code = 'INVALID_DURATION'
    message = 'Renewal period must be at least one month'


class PlanInactiveError(BillingError):
    status_code = status.HTTP_409_CONFLICT
    error_code = 'PLAN_INACTIVE'
    message = 'This plan is no longer available'


class SubscriptionCancelledError(BillingError):
    status_code = status.HTTP_409_CONFLICT
    error_code = 'SUBSCRIPTION_CANCELLED'
    message = 'Cancelled subscriptions cannot be renewed'


class NothingToUpdateError(BillingError):
    error_code = 'NOTHING_TO_UPDATE'
    message = 'Nothing to update'


class QuotaExceededError(BillingError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = 'QUOTA_EXCEEDED'
    message = 'Traffic quota exhausted'


class NoActiveSubscriptionError(BillingError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = 'NO_ACTIVE_SUBSCRIPTION'
    message = 'No active subscription'


class AlreadyExistsError(BillingError):
    status_code = status.HTTP_409_CONFLICT
    error_code = 'ALREADY_EXISTS'
    message = 'Record already exists'


INTERNAL_ERROR_DETAIL = {'error_code': 'INTERNAL_ERROR', 'message': 'Internal error, please try again later'}
