"""
Approval Routes

Approver inbox and approve / reject decisions.
"""

from typing import List
from fastapi import APIRouter, Depends

from ..deps import require_permission
from ...domain.models import ActorContext, TicketApproval
from ...domain.roles import TICKETS_EDIT, TICKETS_VIEW
from ...services.approval_workflow_service import ApprovalWorkflowService
from ...utils.logger import get_logger
from .schemas import ApproveRequest, PendingApprovalResponse, RejectRequest

logger = get_logger(__name__)
router = APIRouter()


@router.get("/pending", response_model=List[PendingApprovalResponse])
async def get_pending_approvals(
    actor: ActorContext = Depends(require_permission(TICKETS_VIEW))
):
    """
    Pending approvals for the current user

    Includes unassigned approvals; tickets that are resolved, closed or
    cancelled are left out. Newest first.
    """
    pending = ApprovalWorkflowService().list_pending_for_approver(actor.user_id)
    return [PendingApprovalResponse(approval=approval, ticket=ticket) for approval, ticket in pending]


@router.post("/{approval_id}/approve", response_model=TicketApproval)
async def approve(
    approval_id: str,
    request: ApproveRequest,
    actor: ActorContext = Depends(require_permission(TICKETS_EDIT))
):
    """Approve a pending approval"""
    return ApprovalWorkflowService().approve(
        approval_id,
        actor,
        comment=request.comments,
        routed_to_team_id=request.routed_to_team_id
    )


@router.post("/{approval_id}/reject", response_model=TicketApproval)
async def reject(
    approval_id: str,
    request: RejectRequest,
    actor: ActorContext = Depends(require_permission(TICKETS_EDIT))
):
    """Reject a pending approval; the ticket is cancelled"""
    return ApprovalWorkflowService().reject(approval_id, actor, request.comments)
