from .setup import setup_observability, configure_logging
from .metrics import (
    order_status_transitions_total,
    order_lifecycle_failures_total,
    order_notifications_total,
)
