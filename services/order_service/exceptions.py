"""
Lifecycle errors.

Every error names the step that failed (``stage``) and the steps that had
already been applied (``completed``), so a caller can tell a clean failure
from one that left the order mutated without its history entry or
notification.
"""

STAGE_READ_ORDER = "read_order"
STAGE_READ_HISTORY = "read_status_history"
STAGE_WRITE_ORDER = "write_order"
STAGE_APPEND_HISTORY = "append_status_history"
STAGE_DISPATCH = "dispatch_notifications"


class OrderLifecycleError(Exception):
    def __init__(self, order_id: str, stage: str, message: str, cause: Exception | None = None,
                 completed: tuple[str, ...] = ()):
        super().__init__(message)
        self.order_id = order_id
        self.stage = stage
        self.cause = cause
        self.completed = tuple(completed)


class OrderNotFoundError(OrderLifecycleError):
    def __init__(self, order_id: str, stage: str = STAGE_READ_ORDER, cause: Exception | None = None):
        super().__init__(order_id, stage, f"Order {order_id} not found", cause)


class InvalidTransitionError(OrderLifecycleError):
    def __init__(self, order_id: str, current: str | None, requested: str):
        super().__init__(
            order_id,
            STAGE_READ_ORDER,
            f"Order {order_id} cannot move from {current} to {requested}",
        )
        self.current = current
        self.requested = requested


class WriteFailureError(OrderLifecycleError):
    """The first write was rejected; nothing was applied."""


class PartialCompletionError(OrderLifecycleError):
    """A later step failed after earlier writes were applied. Nothing is rolled back."""


class NotificationDeliveryError(Exception):
    """The primary recipient's notification could not be written."""

    def __init__(self, order_id: str, recipient: str, cause: Exception):
        super().__init__(f"Notification to {recipient} for order {order_id} failed: {cause}")
        self.order_id = order_id
        self.recipient = recipient
        self.cause = cause
