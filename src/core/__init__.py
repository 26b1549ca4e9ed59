"""Shared building blocks: error taxonomy and tenant ownership."""

from src.core.errors import (
    AlertEngineError,
    InvalidStateTransitionError,
    NotFoundError,
    NotInitializedError,
    RetryBudgetExceededError,
)
from src.core.tenancy import TenantExecutor, alert_key, notification_key

__all__ = [
    "AlertEngineError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "NotInitializedError",
    "RetryBudgetExceededError",
    "TenantExecutor",
    "alert_key",
    "notification_key",
]
