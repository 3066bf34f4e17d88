"""Notification Repository - In-app notifications"""
from typing import List
from pymongo.collection import Collection
from pymongo import DESCENDING

from .mongo_client import get_collection
from ..domain.models import Notification
from ..domain.errors import NotificationNotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationRepository:
    """Repository for per-user in-app notifications"""

    def __init__(self):
        self._notifications: Collection = get_collection("notifications")

    def create_notification(self, notification: Notification) -> Notification:
        doc = notification.model_dump()
        doc["_id"] = notification.notification_id

        self._notifications.insert_one(doc)
        logger.debug(
            f"Notification {notification.type} for {notification.user_id}",
            extra={"user_id": notification.user_id, "ticket_id": notification.ticket_id}
        )
        return notification

    def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        """Notifications of a user, newest first"""
        query = {"user_id": user_id}
        if unread_only:
            query["is_read"] = False

        cursor = self._notifications.find(query).sort("created_at", DESCENDING).limit(limit)
        notifications = []
        for doc in cursor:
            doc.pop("_id", None)
            notifications.append(Notification.model_validate(doc))
        return notifications

    def count_unread(self, user_id: str) -> int:
        return self._notifications.count_documents({"user_id": user_id, "is_read": False})

    def list_for_ticket(self, ticket_id: str) -> List[Notification]:
        cursor = self._notifications.find({"ticket_id": ticket_id}).sort("created_at", DESCENDING)
        notifications = []
        for doc in cursor:
            doc.pop("_id", None)
            notifications.append(Notification.model_validate(doc))
        return notifications

    def mark_read(self, notification_id: str, user_id: str) -> Notification:
        """Mark one of the user's notifications as read"""
        result = self._notifications.find_one_and_update(
            {"notification_id": notification_id, "user_id": user_id},
            {"$set": {"is_read": True}},
            return_document=True
        )
        if result is None:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        result.pop("_id", None)
        return Notification.model_validate(result)
