import logging
from typing import Any, Dict

from storefront.repositories import NotificationService

logger = logging.getLogger(__name__)


class LoggingNotificationService(NotificationService):
    """Writes notifications to the log instead of a delivery channel."""

    async def notify(
        self, user_id: str, event_type: str, payload: Dict[str, Any]
    ) -> None:
        logger.info(
            "Notification",
            extra={
                "user_id": user_id,
                "event_type": event_type,
                "payload": payload,
            },
        )
