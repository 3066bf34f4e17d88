"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class TicketStatus(str, Enum):
    """Global ticket status"""
    OPEN = "open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    PENDING = "pending"  # Waiting for approval
    RESOLVED = "resolved"
    CLOSED = "closed"
    CANCELLED = "cancelled"  # Also the state of a rejected ticket


# Tickets the escalation checker looks at
ESCALATABLE_STATUSES = (
    TicketStatus.OPEN,
    TicketStatus.ASSIGNED,
    TicketStatus.IN_PROGRESS,
    TicketStatus.PENDING,
)

# Tickets that can no longer be approved or rejected
FINAL_STATUSES = (
    TicketStatus.RESOLVED,
    TicketStatus.CLOSED,
    TicketStatus.CANCELLED,
)


class TicketPriority(str, Enum):
    """Ticket priority"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TicketSource(str, Enum):
    """Channel the ticket came in through"""
    WEB = "web"
    EMAIL = "email"
    PHONE = "phone"
    MOBILE_APP = "mobile_app"
    WALK_IN = "walk_in"


class ApprovalLevel(str, Enum):
    """Approval levels, in the order they are requested"""
    LM = "lm"    # Line Manager
    HOD = "hod"  # Head of Department

    @property
    def label(self) -> str:
        return "Line Manager" if self is ApprovalLevel.LM else "Head of Department"


class ApprovalStatus(str, Enum):
    """Approval record outcomes"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ConditionOperator(str, Enum):
    """Operators for rule condition evaluation"""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IN = "in"
    NOT_IN = "not_in"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class TimeTriggerType(str, Enum):
    """Timestamp an escalation rule measures against"""
    CREATED_AT = "created_at"                        # Time since creation
    UPDATED_AT = "updated_at"                        # Time since last update
    FIRST_RESPONSE_DUE_AT = "first_response_due_at"  # Time past first response due
    RESOLUTION_DUE_AT = "resolution_due_at"          # Time past resolution due

    @property
    def is_due_date(self) -> bool:
        return self in (TimeTriggerType.FIRST_RESPONSE_DUE_AT, TimeTriggerType.RESOLUTION_DUE_AT)


class ActionType(str, Enum):
    """Rule action types (escalation and automation vocabularies)"""
    # Escalation actions
    CHANGE_PRIORITY = "change_priority"
    CHANGE_STATUS = "change_status"
    REASSIGN_TO_TEAM = "reassign_to_team"  # Also clears the assigned agent
    REASSIGN_TO_AGENT = "reassign_to_agent"
    NOTIFY_TEAM = "notify_team"
    NOTIFY_AGENT = "notify_agent"
    NOTIFY_MANAGER = "notify_manager"
    # Automation actions
    ASSIGN_TO_TEAM = "assign_to_team"
    ASSIGN_TO_AGENT = "assign_to_agent"
    SET_STATUS = "set_status"
    SET_PRIORITY = "set_priority"
    SET_CATEGORY = "set_category"
    SET_SLA_POLICY = "set_sla_policy"
    ADD_TAGS = "add_tags"


class AutomationTriggerEvent(str, Enum):
    """Ticket events automation rules subscribe to"""
    TICKET_CREATED = "ticket_created"
    TICKET_UPDATED = "ticket_updated"
    TICKET_STATUS_CHANGED = "ticket_status_changed"


class HistoryAction(str, Enum):
    """Types of ticket history entries"""
    CREATED = "created"
    UPDATED = "updated"
    ROUTED = "routed"
    APPROVAL_REQUESTED = "approval_requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    RESUBMITTED = "resubmitted"
    ESCALATED = "escalated"
    AUTOMATION_APPLIED = "automation_applied"


class NotificationType(str, Enum):
    """Types of in-app notifications"""
    TICKET_CREATED = "ticket_created"
    APPROVAL_REQUESTED = "approval_requested"
    APPROVAL_APPROVED = "approval_approved"
    APPROVAL_REJECTED = "approval_rejected"
    TICKET_UPDATED = "ticket_updated"
    TICKET_ESCALATED = "ticket_escalated"


class EmailStatus(str, Enum):
    """Email outbox status"""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"  # Retries exhausted


class EmailTemplateKey(str, Enum):
    """Email templates for approval events"""
    APPROVAL_REQUESTED = "approval_requested"  # To the approver
    APPROVAL_APPROVED = "approval_approved"    # To the requester
    APPROVAL_REJECTED = "approval_rejected"    # To the requester
