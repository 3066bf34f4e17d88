"""
Ticket Routes

Create, read, update tickets; approvals, history, resubmission and
on-demand escalation checks for a single ticket.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from ..deps import require_permission
from ...domain.models import ActorContext, Ticket, TicketApproval, TicketCreate, TicketHistory, TicketUpdate
from ...domain.enums import TicketPriority, TicketStatus
from ...domain.errors import PermissionDeniedError
from ...domain.roles import (
    ESCALATION_RULES_MANAGE, TICKETS_CREATE, TICKETS_EDIT, TICKETS_VIEW
)
from ...services.ticket_service import TicketService
from ...services.approval_workflow_service import ApprovalWorkflowService
from ...services.escalation_service import EscalationService
from ...utils.logger import get_logger
from .schemas import EscalationCheckResponse, TicketListResponse

logger = get_logger(__name__)
router = APIRouter()


def _check_can_view(ticket: Ticket, actor: ActorContext) -> None:
    if ticket.requester_id != actor.user_id and not actor.can(TICKETS_EDIT):
        raise PermissionDeniedError("You cannot view this ticket")


@router.post("", response_model=Ticket, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    request: TicketCreate,
    actor: ActorContext = Depends(require_permission(TICKETS_CREATE))
):
    """
    Create a ticket

    Runs ticket_created automation, then starts the approval workflow.
    """
    ticket = TicketService().create_ticket(request, actor)
    logger.info(
        f"Created ticket: {ticket.ticket_number}",
        extra={"ticket_id": ticket.ticket_id, "user_id": actor.user_id}
    )
    return ticket


@router.get("", response_model=TicketListResponse)
async def list_tickets(
    q: Optional[str] = Query(None, description="Search subject, number, description"),
    status: Optional[TicketStatus] = Query(None),
    priority: Optional[TicketPriority] = Query(None),
    team_id: Optional[str] = Query(None),
    agent_id: Optional[str] = Query(None),
    category_id: Optional[str] = Query(None),
    requester_id: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    actor: ActorContext = Depends(require_permission(TICKETS_VIEW))
):
    """List tickets, newest first"""
    return TicketService().list_tickets(
        actor,
        search=q,
        status=status,
        priority=priority,
        team_id=team_id,
        agent_id=agent_id,
        category_id=category_id,
        requester_id=requester_id,
        skip=skip,
        limit=limit
    )


@router.get("/{ticket_id}", response_model=Ticket)
async def get_ticket(
    ticket_id: str,
    actor: ActorContext = Depends(require_permission(TICKETS_VIEW))
):
    """Get a ticket"""
    ticket = TicketService().get_ticket(ticket_id)
    _check_can_view(ticket, actor)
    return ticket


@router.patch("/{ticket_id}", response_model=Ticket)
async def update_ticket(
    ticket_id: str,
    request: TicketUpdate,
    actor: ActorContext = Depends(require_permission(TICKETS_EDIT))
):
    """
    Update ticket fields

    Status cannot change while an approval is pending; approvals decide it.
    """
    return TicketService().update_ticket(ticket_id, request, actor)


@router.get("/{ticket_id}/approvals", response_model=List[TicketApproval])
async def list_ticket_approvals(
    ticket_id: str,
    actor: ActorContext = Depends(require_permission(TICKETS_VIEW))
):
    """Approvals of a ticket in sequence order"""
    _check_can_view(TicketService().get_ticket(ticket_id), actor)
    return ApprovalWorkflowService().list_approvals(ticket_id)


@router.get("/{ticket_id}/approvals/current", response_model=Optional[TicketApproval])
async def get_current_approval(
    ticket_id: str,
    actor: ActorContext = Depends(require_permission(TICKETS_VIEW))
):
    """The pending approval awaiting a decision, or null"""
    _check_can_view(TicketService().get_ticket(ticket_id), actor)
    return ApprovalWorkflowService().get_current_approval(ticket_id)


@router.get("/{ticket_id}/history", response_model=List[TicketHistory])
async def get_ticket_history(
    ticket_id: str,
    actor: ActorContext = Depends(require_permission(TICKETS_VIEW))
):
    """Ticket history, oldest first"""
    service = TicketService()
    _check_can_view(service.get_ticket(ticket_id), actor)
    return service.get_history(ticket_id)


@router.post("/{ticket_id}/resubmit", response_model=Ticket)
async def resubmit_ticket(
    ticket_id: str,
    actor: ActorContext = Depends(require_permission(TICKETS_VIEW))
):
    """Send a rejected ticket through approval again"""
    return ApprovalWorkflowService().resubmit(ticket_id, actor)


@router.post("/{ticket_id}/check-escalation", response_model=EscalationCheckResponse)
async def check_ticket_escalation(
    ticket_id: str,
    actor: ActorContext = Depends(require_permission(ESCALATION_RULES_MANAGE))
):
    """Evaluate escalation rules for one ticket now"""
    rule = EscalationService().check_ticket(ticket_id)
    return EscalationCheckResponse(
        ticket_id=ticket_id,
        escalated=rule is not None,
        rule_id=rule.rule_id if rule else None,
        rule_name=rule.name if rule else None
    )
