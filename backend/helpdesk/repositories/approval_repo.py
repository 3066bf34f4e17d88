"""Approval Repository - Data access for ticket approvals"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING

from .mongo_client import get_collection
from ..domain.models import TicketApproval
from ..domain.enums import ApprovalLevel, ApprovalStatus
from ..domain.errors import ApprovalNotFoundError
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class ApprovalRepository:
    """Repository for ticket approval records"""

    def __init__(self):
        self._approvals: Collection = get_collection("ticket_approvals")

    def create_approval(self, approval: TicketApproval) -> TicketApproval:
        """Create an approval record"""
        doc = approval.model_dump()
        doc["_id"] = approval.approval_id

        self._approvals.insert_one(doc)
        logger.info(
            f"Created {approval.approval_level} approval for ticket {approval.ticket_id}",
            extra={
                "ticket_id": approval.ticket_id,
                "approval_id": approval.approval_id,
                "approval_level": approval.approval_level,
                "approver_id": approval.approver_id,
            }
        )
        return approval

    def get_approval(self, approval_id: str) -> Optional[TicketApproval]:
        """Get approval by ID"""
        doc = self._approvals.find_one({"approval_id": approval_id})
        if doc:
            return self._to_approval(doc)
        return None

    def get_approval_or_raise(self, approval_id: str) -> TicketApproval:
        """Get approval by ID or raise error"""
        approval = self.get_approval(approval_id)
        if not approval:
            raise ApprovalNotFoundError(f"Approval {approval_id} not found")
        return approval

    def update_approval(self, approval_id: str, updates: Dict[str, Any]) -> TicketApproval:
        """Update an approval record"""
        updates["updated_at"] = utc_now()
        result = self._approvals.find_one_and_update(
            {"approval_id": approval_id},
            {"$set": updates},
            return_document=True
        )
        if result is None:
            raise ApprovalNotFoundError(f"Approval {approval_id} not found")
        return self._to_approval(result)

    def list_for_ticket(self, ticket_id: str) -> List[TicketApproval]:
        """All approvals of a ticket in sequence order"""
        cursor = self._approvals.find({"ticket_id": ticket_id}).sort("sequence", ASCENDING)
        return [self._to_approval(doc) for doc in cursor]

    def get_current_pending(self, ticket_id: str) -> Optional[TicketApproval]:
        """Lowest-sequence pending approval of a ticket"""
        cursor = self._approvals.find(
            {"ticket_id": ticket_id, "status": ApprovalStatus.PENDING.value}
        ).sort("sequence", ASCENDING).limit(1)
        for doc in cursor:
            return self._to_approval(doc)
        return None

    def list_pending_for_ticket(self, ticket_id: str) -> List[TicketApproval]:
        cursor = self._approvals.find(
            {"ticket_id": ticket_id, "status": ApprovalStatus.PENDING.value}
        ).sort("sequence", ASCENDING)
        return [self._to_approval(doc) for doc in cursor]

    def next_sequence(self, ticket_id: str) -> int:
        """Sequence number for the next approval on a ticket"""
        cursor = self._approvals.find({"ticket_id": ticket_id}).sort("sequence", DESCENDING).limit(1)
        for doc in cursor:
            return int(doc.get("sequence") or 0) + 1
        return 1

    def count_with_status(self, ticket_id: str, status: ApprovalStatus) -> int:
        return self._approvals.count_documents({"ticket_id": ticket_id, "status": status.value})

    def hod_approval_exists(self, ticket_id: str, after_sequence: int = 0) -> bool:
        """
        True if a pending or approved HOD approval exists after ``after_sequence``

        Passing the sequence of the round's LM approval limits the check to
        the current round, so a HOD decision from an earlier round is ignored.
        """
        return self._approvals.count_documents({
            "ticket_id": ticket_id,
            "sequence": {"$gt": after_sequence},
            "approval_level": ApprovalLevel.HOD.value,
            "status": {"$in": [ApprovalStatus.PENDING.value, ApprovalStatus.APPROVED.value]},
        }, limit=1) > 0

    def list_pending_for_approver(self, approver_id: str) -> List[TicketApproval]:
        """Pending approvals assigned to the user or to nobody, newest first"""
        cursor = self._approvals.find({
            "status": ApprovalStatus.PENDING.value,
            "$or": [{"approver_id": approver_id}, {"approver_id": None}],
        }).sort("created_at", DESCENDING)
        return [self._to_approval(doc) for doc in cursor]

    @staticmethod
    def _to_approval(doc: Dict[str, Any]) -> TicketApproval:
        doc.pop("_id", None)
        return TicketApproval.model_validate(doc)
