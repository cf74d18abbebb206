from prometheus_client import Counter

# Business Metrics
order_status_transitions_total = Counter(
    "order_status_transitions_total",
    "Completed order status transitions",
    ["status"] # Labels: 'TO_SHIP', 'CANCELLED', etc.
)

order_lifecycle_failures_total = Counter(
    "order_lifecycle_failures_total",
    "Lifecycle operations that stopped at a failing step",
    ["stage"] # Labels: 'write_order', 'append_status_history', 'dispatch_notifications'
)

order_notifications_total = Counter(
    "order_notifications_total",
    "Notification writes attempted by the dispatcher",
    ["type", "outcome"] # Labels: outcome='delivered', 'failed', 'skipped'
)
