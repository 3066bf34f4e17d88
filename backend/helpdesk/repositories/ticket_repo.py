"""Ticket Repository - Data access for tickets"""
import re
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING, ASCENDING

from .mongo_client import get_collection
from ..domain.models import Ticket
from ..domain.errors import TicketNotFoundError
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


def _plain(value: Any) -> Any:
    """Store enum members by value"""
    if isinstance(value, Enum):
        return value.value
    return value


class TicketRepository:
    """Repository for ticket operations"""

    def __init__(self):
        self._tickets: Collection = get_collection("tickets")

    # =========================================================================
    # Ticket CRUD
    # =========================================================================

    def create_ticket(self, ticket: Ticket) -> Ticket:
        """Create a new ticket"""
        # Keep datetimes as datetimes so MongoDB sorts them
        doc = ticket.model_dump()
        doc["_id"] = ticket.ticket_id

        self._tickets.insert_one(doc)
        logger.info(f"Created ticket: {ticket.ticket_number}", extra={"ticket_id": ticket.ticket_id})
        return ticket

    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID"""
        doc = self._tickets.find_one({"ticket_id": ticket_id})
        if doc:
            doc.pop("_id", None)
            return Ticket.model_validate(doc)
        return None

    def get_ticket_or_raise(self, ticket_id: str) -> Ticket:
        """Get ticket by ID or raise error"""
        ticket = self.get_ticket(ticket_id)
        if not ticket:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    def ticket_number_exists(self, ticket_number: str) -> bool:
        """Check whether a ticket number is already taken"""
        return self._tickets.count_documents({"ticket_number": ticket_number}, limit=1) > 0

    def update_ticket(self, ticket_id: str, updates: Dict[str, Any]) -> Ticket:
        """Apply a single $set to the ticket and return the updated ticket"""
        updates = {key: _plain(value) for key, value in updates.items()}
        updates["updated_at"] = utc_now()

        result = self._tickets.find_one_and_update(
            {"ticket_id": ticket_id},
            {"$set": updates},
            return_document=True
        )
        if result is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")

        result.pop("_id", None)
        logger.info(f"Updated ticket: {ticket_id}", extra={"ticket_id": ticket_id})
        return Ticket.model_validate(result)

    def add_tags(self, ticket_id: str, tags: List[str]) -> None:
        """Merge tags into the ticket without duplicates"""
        if not tags:
            return
        self._tickets.update_one(
            {"ticket_id": ticket_id},
            {"$addToSet": {"tags": {"$each": tags}}, "$set": {"updated_at": utc_now()}}
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def list_by_statuses(self, statuses: Iterable[Any]) -> List[Ticket]:
        """All tickets in any of the given statuses, oldest first"""
        cursor = self._tickets.find(
            {"status": {"$in": [_plain(s) for s in statuses]}}
        ).sort([("created_at", ASCENDING), ("ticket_id", ASCENDING)])
        return [self._to_ticket(doc) for doc in cursor]

    def get_tickets_by_ids(self, ticket_ids: List[str]) -> Dict[str, Ticket]:
        """Fetch several tickets keyed by ticket_id"""
        if not ticket_ids:
            return {}
        cursor = self._tickets.find({"ticket_id": {"$in": ticket_ids}})
        tickets = [self._to_ticket(doc) for doc in cursor]
        return {t.ticket_id: t for t in tickets}

    def list_tickets(
        self,
        search: Optional[str] = None,
        status: Optional[Any] = None,
        priority: Optional[Any] = None,
        team_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        category_id: Optional[str] = None,
        requester_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[Ticket]:
        """List tickets with filters, newest first"""
        query = self._build_query(
            search, status, priority, team_id, agent_id, category_id, requester_id
        )
        cursor = self._tickets.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
        return [self._to_ticket(doc) for doc in cursor]

    def count_tickets(
        self,
        search: Optional[str] = None,
        status: Optional[Any] = None,
        priority: Optional[Any] = None,
        team_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        category_id: Optional[str] = None,
        requester_id: Optional[str] = None
    ) -> int:
        """Count tickets with the same filters as list_tickets"""
        query = self._build_query(
            search, status, priority, team_id, agent_id, category_id, requester_id
        )
        return self._tickets.count_documents(query)

    def _build_query(
        self,
        search: Optional[str],
        status: Optional[Any],
        priority: Optional[Any],
        team_id: Optional[str],
        agent_id: Optional[str],
        category_id: Optional[str],
        requester_id: Optional[str]
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = _plain(status)
        if priority:
            query["priority"] = _plain(priority)
        if team_id:
            query["assigned_team_id"] = team_id
        if agent_id:
            query["assigned_agent_id"] = agent_id
        if category_id:
            query["category_id"] = category_id
        if requester_id:
            query["requester_id"] = requester_id
        if search:
            pattern = re.escape(search)
            query["$or"] = [
                {"subject": {"$regex": pattern, "$options": "i"}},
                {"ticket_number": {"$regex": pattern, "$options": "i"}},
                {"description": {"$regex": pattern, "$options": "i"}},
            ]
        return query

    @staticmethod
    def _to_ticket(doc: Dict[str, Any]) -> Ticket:
        doc.pop("_id", None)
        return Ticket.model_validate(doc)
