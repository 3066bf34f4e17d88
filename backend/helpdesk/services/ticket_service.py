"""Ticket Service - Ticket lifecycle business logic"""
from typing import Any, Dict, List, Optional

from ..config.settings import settings
from ..domain.models import ActorContext, Ticket, TicketCreate, TicketHistory, TicketUpdate
from ..domain.enums import TicketStatus
from ..domain.errors import ConflictError, InvalidStateError, PermissionDeniedError
from ..domain.roles import TICKETS_ASSIGN, TICKETS_EDIT
from ..repositories.ticket_repo import TicketRepository
from ..repositories.history_repo import HistoryRepository
from ..engine.history_writer import HistoryWriter
from .approval_workflow_service import ApprovalWorkflowService
from .automation_service import AutomationService
from ..utils.idgen import generate_ticket_id, generate_ticket_number_candidate
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

MAX_NUMBER_ATTEMPTS = 20

ASSIGNMENT_FIELDS = ("assigned_team_id", "assigned_agent_id")


class TicketService:
    """Service for ticket operations"""

    def __init__(self):
        self.ticket_repo = TicketRepository()
        self.history_repo = HistoryRepository()
        self.history = HistoryWriter()
        self.workflow = ApprovalWorkflowService()
        self.automation = AutomationService()

    def create_ticket(self, payload: TicketCreate, actor: ActorContext) -> Ticket:
        """
        Open a ticket, run creation automation, then start the approval workflow

        Automation and workflow failures are logged; the ticket is still created.
        """
        now = utc_now()
        ticket = Ticket(
            ticket_id=generate_ticket_id(),
            ticket_number=self._next_ticket_number(),
            requester_id=actor.user_id,
            status=TicketStatus.OPEN,
            created_at=now,
            updated_at=now,
            **payload.model_dump()
        )
        self.ticket_repo.create_ticket(ticket)
        self.history.write_created(ticket.ticket_id, actor.user_id, ticket.ticket_number)

        self.automation.on_ticket_created(ticket)

        try:
            ticket = self.ticket_repo.get_ticket_or_raise(ticket.ticket_id)
            self.workflow.initialize_workflow(ticket)
        except Exception as e:
            logger.error(
                f"Approval workflow failed to start for {ticket.ticket_number}: {e}",
                extra={"ticket_id": ticket.ticket_id},
                exc_info=True
            )

        return self.ticket_repo.get_ticket_or_raise(ticket.ticket_id)

    def update_ticket(self, ticket_id: str, changes: TicketUpdate, actor: ActorContext) -> Ticket:
        """Apply changed fields, record history and run update automation"""
        ticket = self.ticket_repo.get_ticket_or_raise(ticket_id)
        requested = changes.model_dump(exclude_unset=True)

        if any(field in requested for field in ASSIGNMENT_FIELDS) and not actor.can(TICKETS_ASSIGN):
            raise PermissionDeniedError("You cannot reassign tickets")
        if not actor.can(TICKETS_EDIT):
            raise PermissionDeniedError("You cannot edit this ticket")

        diff: Dict[str, Any] = {
            field: (getattr(ticket, field), value)
            for field, value in requested.items()
            if getattr(ticket, field) != value
        }
        if not diff:
            return ticket

        if "status" in diff:
            pending = self.workflow.get_current_approval(ticket_id)
            if pending:
                raise InvalidStateError(
                    "Ticket status cannot change while an approval is pending",
                    details={"ticket_id": ticket_id, "approval_id": pending.approval_id}
                )

        updates = {field: new for field, (_, new) in diff.items()}
        if "status" in updates:
            if updates["status"] == TicketStatus.RESOLVED:
                updates["resolved_at"] = utc_now()
            elif updates["status"] == TicketStatus.CLOSED:
                updates["closed_at"] = utc_now()

        ticket = self.ticket_repo.update_ticket(ticket_id, updates)
        self.history.write_field_changes(ticket_id, actor.user_id, diff)

        self.automation.on_ticket_updated(ticket)
        if "status" in diff:
            ticket = self.ticket_repo.get_ticket_or_raise(ticket_id)
            self.automation.on_ticket_status_changed(ticket)

        return self.ticket_repo.get_ticket_or_raise(ticket_id)

    def get_ticket(self, ticket_id: str) -> Ticket:
        return self.ticket_repo.get_ticket_or_raise(ticket_id)

    def list_tickets(
        self,
        actor: ActorContext,
        search: Optional[str] = None,
        status: Optional[TicketStatus] = None,
        priority: Optional[str] = None,
        team_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        category_id: Optional[str] = None,
        requester_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Dict[str, Any]:
        """List tickets; callers without edit rights only see their own"""
        if not actor.can(TICKETS_EDIT):
            requester_id = actor.user_id

        filters = dict(
            search=search, status=status, priority=priority, team_id=team_id,
            agent_id=agent_id, category_id=category_id, requester_id=requester_id
        )
        return {
            "items": self.ticket_repo.list_tickets(skip=skip, limit=limit, **filters),
            "total": self.ticket_repo.count_tickets(**filters),
            "skip": skip,
            "limit": limit,
        }

    def get_history(self, ticket_id: str) -> List[TicketHistory]:
        self.ticket_repo.get_ticket_or_raise(ticket_id)
        return self.history_repo.list_for_ticket(ticket_id)

    def _next_ticket_number(self) -> str:
        for _ in range(MAX_NUMBER_ATTEMPTS):
            candidate = generate_ticket_number_candidate(settings.ticket_number_prefix)
            if not self.ticket_repo.ticket_number_exists(candidate):
                return candidate
        raise ConflictError("Could not allocate a unique ticket number")
