"""Approval Workflow Service - Line manager and HOD sign-off

Flow for a ticket that needs approval:

    created -> LM approval (pending) -> [HOD approval (pending)] -> assigned
                    |                          |
                    +--- rejected -------------+--> cancelled -> resubmit

A ticket has at most one pending approval at a time. The HOD step is only
created after the LM approves, and only when the ticket needs it.
"""
from typing import List, Optional, Tuple

from ..config.settings import settings
from ..domain.models import ActorContext, Ticket, TicketApproval, TicketCategory, User
from ..domain.enums import ApprovalLevel, ApprovalStatus, TicketStatus, FINAL_STATUSES
from ..domain.errors import (
    InvalidStateError, PermissionDeniedError, ResubmissionLimitError, ValidationError
)
from ..domain.roles import TICKETS_ASSIGN, TICKETS_EDIT
from ..repositories.ticket_repo import TicketRepository
from ..repositories.approval_repo import ApprovalRepository
from ..repositories.directory_repo import DirectoryRepository
from ..engine.approval_policy import ApprovalPolicy
from ..engine.approver_resolver import ApproverResolver
from ..engine.history_writer import HistoryWriter
from .notification_service import NotificationService
from ..utils.idgen import generate_approval_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

MAX_COMMENT_LENGTH = 1000


class ApprovalWorkflowService:
    """Service for the multi-level approval workflow"""

    def __init__(self):
        self.ticket_repo = TicketRepository()
        self.approval_repo = ApprovalRepository()
        self.directory_repo = DirectoryRepository()
        self.policy = ApprovalPolicy(settings.auto_approve_roles_list)
        self.resolver = ApproverResolver()
        self.history = HistoryWriter()
        self.notification_service = NotificationService()

    # =========================================================================
    # Workflow start
    # =========================================================================

    def initialize_workflow(self, ticket: Ticket) -> Ticket:
        """
        Start approval for a new (or resubmitted) ticket

        Routes the ticket directly when no approval is needed, otherwise
        opens a pending LM approval.
        """
        existing = self.approval_repo.get_current_pending(ticket.ticket_id)
        if existing:
            logger.warning(
                f"Ticket {ticket.ticket_number} already has a pending approval",
                extra={"ticket_id": ticket.ticket_id, "approval_id": existing.approval_id}
            )
            return ticket

        requester = self.directory_repo.get_user(ticket.requester_id)
        category = self._get_category(ticket)

        if not self.policy.requires_approval(ticket, requester, category):
            team_id = category.default_team_id if category else None
            return self._route(ticket, team_id, user_id=None)

        approver = self.resolver.resolve_line_manager(ticket, requester)
        return self._request_approval(ticket, ApprovalLevel.LM, approver)

    # =========================================================================
    # Decisions
    # =========================================================================

    def approve(
        self,
        approval_id: str,
        actor: ActorContext,
        comment: Optional[str] = None,
        routed_to_team_id: Optional[str] = None
    ) -> TicketApproval:
        """Approve a pending approval and advance the ticket"""
        approval = self.approval_repo.get_approval_or_raise(approval_id)
        ticket = self.ticket_repo.get_ticket_or_raise(approval.ticket_id)
        self._check_can_decide(approval, ticket, actor)

        level = ApprovalLevel(approval.approval_level)
        approval = self.approval_repo.update_approval(approval.approval_id, {
            "status": ApprovalStatus.APPROVED.value,
            "approver_id": actor.user_id,
            "comments": comment,
            "approved_at": utc_now(),
            "routed_to_team_id": routed_to_team_id,
        })
        logger.info(
            f"{level.label} approval granted for {ticket.ticket_number}",
            extra={"ticket_id": ticket.ticket_id, "approval_id": approval_id, "approver_id": actor.user_id}
        )
        self.history.write_approved(ticket.ticket_id, actor.user_id, level.label, comment)
        self.notification_service.notify_approval_approved(approval, ticket, actor)

        category = self._get_category(ticket)

        if level == ApprovalLevel.LM:
            if self.policy.requires_hod_approval(ticket, category):
                self._open_hod_approval(ticket, category, after_sequence=approval.sequence)
                return approval

            team_id = routed_to_team_id or (category.default_team_id if category else None)
            if not team_id:
                fallback = self.resolver.resolve_fallback_team(settings.fallback_team_code)
                team_id = fallback.department_id if fallback else None
            self._route(ticket, team_id, user_id=actor.user_id)
        else:
            team_id = routed_to_team_id or (category.default_team_id if category else None)
            self._route(ticket, team_id, user_id=actor.user_id)

        return approval

    def reject(self, approval_id: str, actor: ActorContext, comment: Optional[str]) -> TicketApproval:
        """Reject a pending approval; the ticket is cancelled but kept"""
        comment = (comment or "").strip()
        if not comment:
            raise ValidationError("A comment is required to reject an approval", details={"field": "comments"})
        if len(comment) > MAX_COMMENT_LENGTH:
            raise ValidationError(
                f"Comment must be at most {MAX_COMMENT_LENGTH} characters",
                details={"field": "comments"}
            )

        approval = self.approval_repo.get_approval_or_raise(approval_id)
        ticket = self.ticket_repo.get_ticket_or_raise(approval.ticket_id)
        self._check_can_decide(approval, ticket, actor)

        level = ApprovalLevel(approval.approval_level)
        approval = self.approval_repo.update_approval(approval.approval_id, {
            "status": ApprovalStatus.REJECTED.value,
            "approver_id": actor.user_id,
            "comments": comment,
            "rejected_at": utc_now(),
        })
        self.ticket_repo.update_ticket(ticket.ticket_id, {"status": TicketStatus.CANCELLED})
        self.history.write_rejected(ticket.ticket_id, actor.user_id, level.label, comment)
        logger.info(
            f"{level.label} approval rejected for {ticket.ticket_number}",
            extra={"ticket_id": ticket.ticket_id, "approval_id": approval_id, "approver_id": actor.user_id}
        )
        self.notification_service.notify_approval_rejected(approval, ticket, actor, comment)
        return approval

    def resubmit(self, ticket_id: str, actor: ActorContext) -> Ticket:
        """Send a rejected ticket through approval again"""
        ticket = self.ticket_repo.get_ticket_or_raise(ticket_id)

        if actor.user_id != ticket.requester_id and not actor.can(TICKETS_EDIT):
            raise PermissionDeniedError("Only the requester can resubmit this ticket")

        rejections = self.approval_repo.count_with_status(ticket_id, ApprovalStatus.REJECTED)
        if ticket.status != TicketStatus.CANCELLED or rejections == 0:
            raise InvalidStateError(
                "Only rejected tickets can be resubmitted",
                details={"status": ticket.status}
            )
        if rejections >= settings.max_resubmissions:
            raise ResubmissionLimitError(
                f"Ticket was rejected {rejections} times and cannot be resubmitted",
                details={"rejections": rejections, "max_resubmissions": settings.max_resubmissions}
            )

        for stray in self.approval_repo.list_pending_for_ticket(ticket_id):
            self.approval_repo.update_approval(stray.approval_id, {
                "status": ApprovalStatus.REJECTED.value,
                "comments": "Closed by resubmission",
                "rejected_at": utc_now(),
            })

        ticket = self.ticket_repo.update_ticket(ticket_id, {"status": TicketStatus.OPEN})
        self.history.write_resubmitted(ticket_id, actor.user_id, rejections)
        logger.info(
            f"Ticket {ticket.ticket_number} resubmitted (attempt {rejections})",
            extra={"ticket_id": ticket_id, "user_id": actor.user_id}
        )
        return self.initialize_workflow(ticket)

    # =========================================================================
    # Queries
    # =========================================================================

    def list_approvals(self, ticket_id: str) -> List[TicketApproval]:
        self.ticket_repo.get_ticket_or_raise(ticket_id)
        return self.approval_repo.list_for_ticket(ticket_id)

    def get_current_approval(self, ticket_id: str) -> Optional[TicketApproval]:
        return self.approval_repo.get_current_pending(ticket_id)

    def list_pending_for_approver(self, user_id: str) -> List[Tuple[TicketApproval, Ticket]]:
        """Pending approvals for the user or unassigned, on open tickets, newest first"""
        approvals = self.approval_repo.list_pending_for_approver(user_id)
        tickets = self.ticket_repo.get_tickets_by_ids(list({a.ticket_id for a in approvals}))

        pending = []
        for approval in approvals:
            ticket = tickets.get(approval.ticket_id)
            if ticket is None or ticket.status in FINAL_STATUSES:
                continue
            pending.append((approval, ticket))
        return pending

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_can_decide(self, approval: TicketApproval, ticket: Ticket, actor: ActorContext) -> None:
        if not actor.can(TICKETS_EDIT):
            raise PermissionDeniedError("You cannot approve or reject tickets")
        if not approval.is_pending:
            raise InvalidStateError(
                f"Approval is already {approval.status}",
                details={"approval_id": approval.approval_id, "status": approval.status}
            )
        if ticket.status in FINAL_STATUSES:
            raise InvalidStateError(
                f"Ticket is {ticket.status} and can no longer be approved or rejected",
                details={"ticket_id": ticket.ticket_id, "status": ticket.status}
            )
        if approval.approver_id and approval.approver_id != actor.user_id and not actor.can(TICKETS_ASSIGN):
            raise PermissionDeniedError("You are not the approver for this ticket")

    def _open_hod_approval(
        self,
        ticket: Ticket,
        category: Optional[TicketCategory],
        after_sequence: int
    ) -> None:
        if self.approval_repo.hod_approval_exists(ticket.ticket_id, after_sequence):
            logger.info(
                f"HOD approval already exists for {ticket.ticket_number}",
                extra={"ticket_id": ticket.ticket_id}
            )
            return
        requester = self.directory_repo.get_user(ticket.requester_id)
        approver = self.resolver.resolve_hod(ticket, category, requester)
        self._request_approval(ticket, ApprovalLevel.HOD, approver)

    def _request_approval(self, ticket: Ticket, level: ApprovalLevel, approver: Optional[User]) -> Ticket:
        now = utc_now()
        approval = TicketApproval(
            approval_id=generate_approval_id(),
            ticket_id=ticket.ticket_id,
            approval_level=level,
            status=ApprovalStatus.PENDING,
            approver_id=approver.user_id if approver else None,
            sequence=self.approval_repo.next_sequence(ticket.ticket_id),
            created_at=now,
            updated_at=now
        )
        self.approval_repo.create_approval(approval)

        if ticket.status != TicketStatus.PENDING:
            ticket = self.ticket_repo.update_ticket(ticket.ticket_id, {"status": TicketStatus.PENDING})
        self.history.write_approval_requested(ticket.ticket_id, level.label, approval.approver_id)

        if approver:
            self.notification_service.notify_approval_requested(approval, ticket, approver.user_id)
        else:
            logger.warning(
                f"{level.label} approval for {ticket.ticket_number} has no approver",
                extra={"ticket_id": ticket.ticket_id, "approval_id": approval.approval_id}
            )
        return ticket

    def _route(self, ticket: Ticket, team_id: Optional[str], user_id: Optional[str]) -> Ticket:
        """Mark the ticket assigned, to a team when one is known"""
        team_id = team_id or ticket.assigned_team_id
        updates = {"status": TicketStatus.ASSIGNED}
        if team_id:
            updates["assigned_team_id"] = team_id
        else:
            logger.warning(
                f"Ticket {ticket.ticket_number} routed without a team",
                extra={"ticket_id": ticket.ticket_id}
            )
        ticket = self.ticket_repo.update_ticket(ticket.ticket_id, updates)
        self.history.write_routed(ticket.ticket_id, user_id, team_id)
        return ticket

    def _get_category(self, ticket: Ticket) -> Optional[TicketCategory]:
        if not ticket.category_id:
            return None
        return self.directory_repo.get_category(ticket.category_id)
