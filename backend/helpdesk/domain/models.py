"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict, model_validator

from .enums import (
    TicketStatus, TicketPriority, TicketSource, ApprovalLevel, ApprovalStatus,
    TimeTriggerType, AutomationTriggerEvent, HistoryAction, NotificationType,
    EmailStatus, EmailTemplateKey
)
from .roles import has_permission


# Persisted documents keep plain string values for enums so they can be
# written to MongoDB as-is and queried by value.
STORED = ConfigDict(extra="ignore", use_enum_values=True)


# ============================================================================
# Directory: departments, users, categories
# ============================================================================

class Department(BaseModel):
    """Department / team tickets are routed to"""
    model_config = STORED

    department_id: str
    name: str
    code: Optional[str] = None
    manager_id: Optional[str] = Field(None, description="User ID of the department manager")
    is_active: bool = True


class User(BaseModel):
    """Helpdesk user"""
    model_config = STORED

    user_id: str
    name: str
    email: EmailStr
    department_id: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: Optional[datetime] = None


class ActorContext(BaseModel):
    """The user performing the current action"""
    model_config = ConfigDict(extra="forbid")

    user_id: str
    name: str
    email: EmailStr
    department_id: Optional[str] = None
    roles: List[str] = Field(default_factory=list)

    @classmethod
    def from_user(cls, user: User) -> "ActorContext":
        return cls(
            user_id=user.user_id,
            name=user.name,
            email=user.email,
            department_id=user.department_id,
            roles=list(user.roles),
        )

    def can(self, permission: str) -> bool:
        """Check a permission against the actor's roles"""
        return has_permission(self.roles, permission)


class TicketCategory(BaseModel):
    """Ticket category with its approval configuration"""
    model_config = STORED

    category_id: str
    name: str
    slug: str
    description: Optional[str] = None
    parent_id: Optional[str] = None
    default_team_id: Optional[str] = Field(None, description="Department tickets are routed to")
    is_active: bool = True
    requires_approval: bool = False
    requires_hod_approval: bool = False
    hod_approval_threshold: Optional[float] = Field(None, ge=0, description="Cost at/above which HOD approval applies")


# ============================================================================
# Tickets
# ============================================================================

class Ticket(BaseModel):
    """Ticket instance"""
    model_config = STORED

    ticket_id: str = Field(..., description="Unique ticket ID")
    ticket_number: str = Field(..., description="Human facing number, e.g. KT-12345")
    subject: str
    description: Optional[str] = None
    requester_id: str
    assigned_team_id: Optional[str] = None
    assigned_agent_id: Optional[str] = None
    category_id: Optional[str] = None
    project_id: Optional[str] = None
    sla_policy_id: Optional[str] = None
    status: TicketStatus = TicketStatus.OPEN
    priority: TicketPriority = TicketPriority.MEDIUM
    source: TicketSource = TicketSource.WEB
    estimated_cost: Optional[float] = Field(None, ge=0)
    tags: List[str] = Field(default_factory=list)
    first_response_due_at: Optional[datetime] = None
    resolution_due_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TicketApproval(BaseModel):
    """One sign-off request on a ticket"""
    model_config = STORED

    approval_id: str
    ticket_id: str
    approval_level: ApprovalLevel
    status: ApprovalStatus = ApprovalStatus.PENDING
    approver_id: Optional[str] = None
    comments: Optional[str] = None
    sequence: int = 1
    routed_to_team_id: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING


class TicketHistory(BaseModel):
    """Ticket history entry (append-only)"""
    model_config = STORED

    history_id: str
    ticket_id: str
    user_id: Optional[str] = Field(None, description="None for system actions")
    action: HistoryAction
    field_name: Optional[str] = None
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    description: str = ""
    created_at: datetime


# ============================================================================
# Rules: conditions and actions
# ============================================================================

class Condition(BaseModel):
    """Field/operator/value condition"""
    model_config = ConfigDict(extra="ignore")

    field: str = Field(..., min_length=1, description="Ticket field to evaluate")
    operator: str = Field("equals", min_length=1, description="Comparison operator")
    value: Any = None


class RuleAction(BaseModel):
    """Type/value action applied to a ticket"""
    model_config = ConfigDict(extra="ignore")

    type: str = Field(..., min_length=1)
    value: Any = None


class EscalationRuleBase(BaseModel):
    """Editable escalation rule fields"""
    model_config = STORED

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    conditions: List[Condition] = Field(default_factory=list)
    time_trigger_type: Optional[TimeTriggerType] = None
    time_trigger_minutes: Optional[int] = Field(None, ge=1)
    actions: List[RuleAction] = Field(..., min_length=1)
    priority: int = Field(0, ge=0, le=100)
    is_active: bool = True

    @model_validator(mode="after")
    def _minutes_required_with_trigger(self):
        if self.time_trigger_type and self.time_trigger_minutes is None:
            raise ValueError("time_trigger_minutes is required when time_trigger_type is set")
        return self


class EscalationRule(EscalationRuleBase):
    """Escalation rule evaluated by the scheduled checker"""
    rule_id: str
    execution_count: int = 0
    last_executed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class AutomationRuleBase(BaseModel):
    """Editable automation rule fields"""
    model_config = STORED

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    trigger_event: AutomationTriggerEvent
    conditions: List[Condition] = Field(..., min_length=1)
    actions: List[RuleAction] = Field(..., min_length=1)
    priority: int = Field(0, ge=0, le=100)
    is_active: bool = True


class AutomationRule(AutomationRuleBase):
    """Automation rule run on ticket events"""
    # Stored rules may have lost their conditions; such rules never match
    conditions: List[Condition] = Field(default_factory=list)
    rule_id: str
    execution_count: int = 0
    last_executed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Notifications
# ============================================================================

class Notification(BaseModel):
    """In-app notification"""
    model_config = STORED

    notification_id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    ticket_id: Optional[str] = None
    related_user_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    is_read: bool = False
    created_at: datetime


# ============================================================================
# Email outbox
# ============================================================================

class EmailOutbox(BaseModel):
    """Email waiting in the outbox (or already delivered)"""
    model_config = STORED

    email_id: str
    ticket_id: Optional[str] = None
    template_key: EmailTemplateKey
    recipients: List[EmailStr]
    payload: Dict[str, Any] = Field(default_factory=dict)
    status: EmailStatus = EmailStatus.PENDING
    retry_count: int = 0
    last_error: Optional[str] = None
    next_retry_at: Optional[datetime] = None
    next_retry_ts: float = 0.0  # Epoch seconds of next_retry_at, used by the queue query
    created_at: datetime
    sent_at: Optional[datetime] = None


# ============================================================================
# Engine results
# ============================================================================

class ActionPlan(BaseModel):
    """Ticket changes produced from a list of rule actions"""
    updates: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    notify_user_ids: List[str] = Field(default_factory=list)
    notify_team_ids: List[str] = Field(default_factory=list)
    notify_manager: bool = False
    skipped: List[str] = Field(default_factory=list, description="Actions that could not be applied")

    @property
    def is_empty(self) -> bool:
        return not (
            self.updates or self.tags or self.notify_user_ids
            or self.notify_team_ids or self.notify_manager
        )


class EscalationRunResult(BaseModel):
    """Summary of one escalation check run"""
    tickets_checked: int = 0
    tickets_escalated: int = 0
    failures: int = 0
    skipped_locked: bool = False
    escalations: List[Dict[str, str]] = Field(default_factory=list, description="ticket_id/rule_id pairs")


# ============================================================================
# Ticket input
# ============================================================================

class TicketCreate(BaseModel):
    """Fields a caller supplies when opening a ticket"""
    model_config = ConfigDict(extra="forbid")

    subject: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category_id: Optional[str] = None
    project_id: Optional[str] = None
    assigned_team_id: Optional[str] = None
    priority: TicketPriority = TicketPriority.MEDIUM
    source: TicketSource = TicketSource.WEB
    estimated_cost: Optional[float] = Field(None, ge=0)
    tags: List[str] = Field(default_factory=list)
    first_response_due_at: Optional[datetime] = None
    resolution_due_at: Optional[datetime] = None


class TicketUpdate(BaseModel):
    """Partial ticket update; unset fields are left alone"""
    model_config = ConfigDict(extra="forbid")

    subject: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category_id: Optional[str] = None
    project_id: Optional[str] = None
    sla_policy_id: Optional[str] = None
    assigned_team_id: Optional[str] = None
    assigned_agent_id: Optional[str] = None
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    estimated_cost: Optional[float] = Field(None, ge=0)
    tags: Optional[List[str]] = None
    first_response_due_at: Optional[datetime] = None
    resolution_due_at: Optional[datetime] = None


# ============================================================================
# Rule updates
# ============================================================================

class EscalationRuleUpdate(BaseModel):
    """Partial escalation rule update"""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    description: Optional[str] = None
    conditions: Optional[List[Condition]] = None
    time_trigger_type: Optional[TimeTriggerType] = None
    time_trigger_minutes: Optional[int] = None
    actions: Optional[List[RuleAction]] = None
    priority: Optional[int] = None
    is_active: Optional[bool] = None


class AutomationRuleUpdate(BaseModel):
    """Partial automation rule update"""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    description: Optional[str] = None
    trigger_event: Optional[AutomationTriggerEvent] = None
    conditions: Optional[List[Condition]] = None
    actions: Optional[List[RuleAction]] = None
    priority: Optional[int] = None
    is_active: Optional[bool] = None
