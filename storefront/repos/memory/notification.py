"""
Memory implementation of NotificationService that records every call.
"""

from typing import Any, Dict, List, Tuple

from storefront.repositories import NotificationService


class MemoryNotificationService(NotificationService):
    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, Dict[str, Any]]] = []

    async def notify(
        self, user_id: str, event_type: str, payload: Dict[str, Any]
    ) -> None:
        self.sent.append((user_id, event_type, dict(payload)))

    def events_for(self, user_id: str) -> List[str]:
        return [event for uid, event, _ in self.sent if uid == user_id]
