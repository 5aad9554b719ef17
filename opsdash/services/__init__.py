"""Business services for opsdash."""

from opsdash.services.invoicing import InvoiceAggregator, calculate_total
from opsdash.services.lifecycle import ALLOWED_STATUS_TRANSITIONS, OrderLifecycle, can_transition
from opsdash.services.sinks import ActivityLog, NotificationSink, StoreActivityLog, StoreNotificationSink

__all__ = [
    "ALLOWED_STATUS_TRANSITIONS",
    "ActivityLog",
    "InvoiceAggregator",
    "NotificationSink",
    "OrderLifecycle",
    "StoreActivityLog",
    "StoreNotificationSink",
    "calculate_total",
    "can_transition",
]
