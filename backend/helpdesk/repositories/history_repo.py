"""History Repository - Append-only ticket history"""
from typing import List
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import get_collection
from ..domain.models import TicketHistory
from ..utils.logger import get_logger

logger = get_logger(__name__)


class HistoryRepository:
    """Repository for ticket history entries (append-only)"""

    def __init__(self):
        self._history: Collection = get_collection("ticket_history")

    def create_entry(self, entry: TicketHistory) -> TicketHistory:
        """Append a history entry"""
        doc = entry.model_dump()
        doc["_id"] = entry.history_id

        self._history.insert_one(doc)
        logger.debug(
            f"History {entry.action} on ticket {entry.ticket_id}",
            extra={"ticket_id": entry.ticket_id, "action": entry.action}
        )
        return entry

    def list_for_ticket(self, ticket_id: str, limit: int = 200) -> List[TicketHistory]:
        """History of a ticket, oldest first"""
        cursor = self._history.find({"ticket_id": ticket_id}).sort(
            [("created_at", ASCENDING), ("history_id", ASCENDING)]
        ).limit(limit)

        entries = []
        for doc in cursor:
            doc.pop("_id", None)
            entries.append(TicketHistory.model_validate(doc))
        return entries
