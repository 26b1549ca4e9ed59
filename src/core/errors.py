"""Typed failures surfaced to the immediate caller.

Metric gaps during rule evaluation and channel delivery failures are not
exceptions: the former is reported on ``EvaluationResult`` and the latter
is recorded on the ``NotificationRecord``.
"""


class AlertEngineError(Exception):
    """Base exception for alert and notification operations."""


class NotInitializedError(AlertEngineError):
    """Raised when a tenant component is used before ``initialize``."""

    def __init__(self, component: str, key: str):
        super().__init__(f"{component} not initialized for {key}")
        self.component = component
        self.key = key


class NotFoundError(AlertEngineError):
    """Raised when an alert, channel or notification id is unknown."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class InvalidStateTransitionError(AlertEngineError):
    """Raised when an operation is not allowed from the current status.

    Callers must not retry automatically.
    """


class RetryBudgetExceededError(InvalidStateTransitionError):
    """Raised when a notification has used up its retry budget."""

    def __init__(self, notification_id: str, max_retries: int):
        super().__init__(
            f"Maximum retries ({max_retries}) exceeded for notification {notification_id}"
        )
        self.notification_id = notification_id
        self.max_retries = max_retries
