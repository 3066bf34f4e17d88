"""
API Schemas

Request and response models that are not domain entities.
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from ...domain.models import Notification, Ticket, TicketApproval


# =============================================================================
# Tickets
# =============================================================================

class TicketListResponse(BaseModel):
    """Response for ticket list"""
    items: List[Ticket]
    total: int
    skip: int
    limit: int


class EscalationCheckResponse(BaseModel):
    """Result of checking a single ticket against escalation rules"""
    ticket_id: str
    escalated: bool
    rule_id: Optional[str] = None
    rule_name: Optional[str] = None


# =============================================================================
# Approvals
# =============================================================================

class ApproveRequest(BaseModel):
    """Request to approve"""
    comments: Optional[str] = Field(None, max_length=1000)
    routed_to_team_id: Optional[str] = None


class RejectRequest(BaseModel):
    """Request to reject; a reason is mandatory"""
    comments: str = Field(..., min_length=1, max_length=1000)


class PendingApprovalResponse(BaseModel):
    """Pending approval with its ticket"""
    approval: TicketApproval
    ticket: Ticket


# =============================================================================
# Notifications
# =============================================================================

class NotificationListResponse(BaseModel):
    """List of notifications with unread count"""
    items: List[Notification]
    unread_count: int


# =============================================================================
# Common
# =============================================================================

class ActionResponse(BaseModel):
    """Generic success response"""
    success: bool = True
    message: str = ""
