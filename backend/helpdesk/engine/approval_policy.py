"""Approval Policy - Decide which approval levels a ticket needs"""
from typing import Iterable, Optional

from ..domain.models import Ticket, TicketCategory, User
from ..domain.enums import TicketPriority
from ..domain.roles import has_any_role
from ..utils.logger import get_logger

logger = get_logger(__name__)

HOD_PRIORITIES = (TicketPriority.HIGH, TicketPriority.CRITICAL)


class ApprovalPolicy:
    """
    Approval requirement rules

    Checked in order, first decisive rule wins:
    1. Requester holds an auto-approve role -> no approval
    2. Category threshold set and cost >= threshold -> approval
    3. Category requires approval -> approval
    4. Category exists -> no approval
    5. No category -> approval
    """

    def __init__(self, auto_approve_roles: Iterable[str]):
        self.auto_approve_roles = frozenset(auto_approve_roles)

    def is_auto_approved(self, requester: Optional[User]) -> bool:
        return bool(requester) and has_any_role(requester.roles, self.auto_approve_roles)

    def requires_approval(
        self,
        ticket: Ticket,
        requester: Optional[User],
        category: Optional[TicketCategory]
    ) -> bool:
        """Whether the ticket needs line manager approval"""
        if self.is_auto_approved(requester):
            logger.info(
                f"Ticket {ticket.ticket_number} auto-approved by requester role",
                extra={"ticket_id": ticket.ticket_id, "user_id": ticket.requester_id}
            )
            return False

        if category is None:
            return True

        if self.meets_cost_threshold(ticket, category):
            return True

        return category.requires_approval

    def requires_hod_approval(self, ticket: Ticket, category: Optional[TicketCategory]) -> bool:
        """Whether a second (HOD) approval follows the line manager approval"""
        if ticket.priority in HOD_PRIORITIES:
            return True

        if category is None:
            return False

        if self.meets_cost_threshold(ticket, category):
            return True

        return category.requires_hod_approval and not category.hod_approval_threshold

    @staticmethod
    def meets_cost_threshold(ticket: Ticket, category: TicketCategory) -> bool:
        """
        Cost (missing = 0) at or above the category threshold

        A threshold of 0 counts as no threshold.
        """
        if not category.hod_approval_threshold:
            return False
        cost = ticket.estimated_cost or 0
        return cost >= category.hod_approval_threshold
