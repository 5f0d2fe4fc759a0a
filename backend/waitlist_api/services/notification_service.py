"""
Notification delivery for the waitlist engine.

The engine only ever calls `send_notification`, which never raises: a
failed notification is logged and counted, and the state transition that
triggered it stands.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from waitlist_api.core.logging import get_logger
from waitlist_api.core.metrics import notification_failures
from waitlist_api.models.notification import Notification
from waitlist_api.services.cache_service import publish_notification

logger = get_logger(__name__)


class NotificationSender(ABC):
    """Fire-and-forget message sink."""

    @abstractmethod
    async def notify(
        self,
        user_id: int,
        type: str,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        pass


class DatabaseNotificationSender(NotificationSender):
    """
    Stores an in-app notification row, then publishes it on the user's
    Redis channel for real-time delivery.

    Callers commit their own transition before notifying; the rollback
    below only ever discards the notification row.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify(self, user_id, type, title, message, data=None) -> None:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=data,
        )
        self.db.add(notification)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await publish_notification(
            user_id,
            {
                "id": notification.id,
                "type": type,
                "title": title,
                "message": message,
                "data": data,
            },
        )


async def send_notification(
    sender: NotificationSender,
    *,
    user_id: int,
    type: str,
    title: str,
    message: str,
    data: Optional[dict[str, Any]] = None,
) -> bool:
    """Deliver a notification, swallowing and logging any failure."""
    try:
        await sender.notify(user_id, type, title, message, data)
    except Exception as e:
        notification_failures.inc()
        logger.warning(
            "notification_failed",
            user_id=user_id,
            notification_type=type,
            title=title,
            error=str(e),
        )
        return False
    return True
