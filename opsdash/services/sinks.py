"""Notification and audit sinks used for lifecycle side effects."""

import logging
from typing import Any, Protocol

from opsdash.api.client import StoreClient
from opsdash.core.constants import EntityType

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Delivers a message to a user. May be sync or async."""

    def notify(self, user_id: str, title: str, message: str, related_id: str | None = None) -> Any: ...


class ActivityLog(Protocol):
    """Appends an audit record. May be sync or async."""

    def log_activity(
        self, action: str, resource_type: str, resource_id: str, details: dict[str, Any] | None = None
    ) -> Any: ...


class StoreNotificationSink:
    """Writes notifications into the ``notifications`` table."""

    def __init__(self, client: StoreClient, notification_type: str = "order") -> None:
        self.client = client
        self.notification_type = notification_type

    async def notify(self, user_id: str, title: str, message: str, related_id: str | None = None) -> None:
        await self.client.insert(
            EntityType.NOTIFICATIONS,
            {
                "user_id": user_id,
                "type": self.notification_type,
                "title": title,
                "message": message,
                "related_id": related_id,
                "read": False,
            },
        )
        logger.debug(f"Notified {user_id}: {title}")


class StoreActivityLog:
    """Appends order activity to the ``order_logs`` table."""

    def __init__(self, client: StoreClient, actor_id: str | None = None) -> None:
        """Initialize the activity log.

        Args:
            client: Store client
            actor_id: Employee recorded as ``performed_by``
        """
        self.client = client
        self.actor_id = actor_id

    async def log_activity(
        self, action: str, resource_type: str, resource_id: str, details: dict[str, Any] | None = None
    ) -> None:
        await self.client.insert(
            EntityType.ORDER_LOGS,
            {
                "order_id": resource_id,
                "action": action,
                "performed_by": self.actor_id,
                "details": {"resource_type": resource_type, **(details or {})},
            },
        )
        logger.debug(f"Logged {action} on {resource_type} {resource_id}")
