"""History Writer - Append-only ticket history"""
from enum import Enum
from typing import Any, Dict, List, Optional

from ..domain.models import TicketHistory
from ..domain.enums import HistoryAction
from ..repositories.history_repo import HistoryRepository
from ..utils.idgen import generate_history_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class HistoryWriter:
    """
    Write ticket history entries (append-only)

    Every state change made by the workflow, the rules or a user leaves a
    history entry. ``user_id`` is None for system actions.
    """

    def __init__(self):
        self.repo = HistoryRepository()

    def write_entry(
        self,
        ticket_id: str,
        action: HistoryAction,
        user_id: Optional[str] = None,
        description: str = "",
        field_name: Optional[str] = None,
        old_value: Any = None,
        new_value: Any = None
    ) -> TicketHistory:
        """Write a single history entry"""
        entry = TicketHistory(
            history_id=generate_history_id(),
            ticket_id=ticket_id,
            user_id=user_id,
            action=action,
            field_name=field_name,
            old_value=_plain(old_value),
            new_value=_plain(new_value),
            description=description,
            created_at=utc_now()
        )
        return self.repo.create_entry(entry)

    def write_created(self, ticket_id: str, user_id: Optional[str], ticket_number: str) -> TicketHistory:
        return self.write_entry(
            ticket_id=ticket_id,
            action=HistoryAction.CREATED,
            user_id=user_id,
            description=f"Ticket {ticket_number} created"
        )

    def write_field_changes(
        self,
        ticket_id: str,
        user_id: Optional[str],
        changes: Dict[str, Any],
        action: HistoryAction = HistoryAction.UPDATED,
        description: str = ""
    ) -> List[TicketHistory]:
        """
        Write one entry per changed field

        Args:
            changes: field name -> (old value, new value)
        """
        entries = []
        for field_name, (old_value, new_value) in changes.items():
            entries.append(self.write_entry(
                ticket_id=ticket_id,
                action=action,
                user_id=user_id,
                field_name=field_name,
                old_value=old_value,
                new_value=new_value,
                description=description or f"{field_name} changed"
            ))
        return entries

    def write_routed(self, ticket_id: str, user_id: Optional[str], team_id: Optional[str]) -> TicketHistory:
        description = f"Ticket routed to team {team_id}" if team_id else "Ticket routed without a team"
        return self.write_entry(
            ticket_id=ticket_id,
            action=HistoryAction.ROUTED,
            user_id=user_id,
            field_name="assigned_team_id",
            new_value=team_id,
            description=description
        )

    def write_approval_requested(
        self,
        ticket_id: str,
        level_label: str,
        approver_id: Optional[str]
    ) -> TicketHistory:
        return self.write_entry(
            ticket_id=ticket_id,
            action=HistoryAction.APPROVAL_REQUESTED,
            field_name="approver_id",
            new_value=approver_id,
            description=f"{level_label} approval requested"
        )

    def write_approved(
        self,
        ticket_id: str,
        user_id: str,
        level_label: str,
        comment: Optional[str] = None
    ) -> TicketHistory:
        description = f"{level_label} approval granted"
        if comment:
            description = f"{description}: {comment}"
        return self.write_entry(
            ticket_id=ticket_id,
            action=HistoryAction.APPROVED,
            user_id=user_id,
            description=description
        )

    def write_rejected(
        self,
        ticket_id: str,
        user_id: str,
        level_label: str,
        comment: str
    ) -> TicketHistory:
        return self.write_entry(
            ticket_id=ticket_id,
            action=HistoryAction.REJECTED,
            user_id=user_id,
            description=f"{level_label} approval rejected: {comment}"
        )

    def write_resubmitted(self, ticket_id: str, user_id: str, attempt: int) -> TicketHistory:
        return self.write_entry(
            ticket_id=ticket_id,
            action=HistoryAction.RESUBMITTED,
            user_id=user_id,
            new_value=attempt,
            description=f"Ticket resubmitted for approval (attempt {attempt})"
        )

    def write_escalated(self, ticket_id: str, rule_id: str, rule_name: str) -> TicketHistory:
        return self.write_entry(
            ticket_id=ticket_id,
            action=HistoryAction.ESCALATED,
            field_name="escalation_rule_id",
            new_value=rule_id,
            description=f"Escalated by rule '{rule_name}'"
        )

    def write_automation_applied(self, ticket_id: str, rule_id: str, rule_name: str) -> TicketHistory:
        return self.write_entry(
            ticket_id=ticket_id,
            action=HistoryAction.AUTOMATION_APPLIED,
            field_name="automation_rule_id",
            new_value=rule_id,
            description=f"Automation rule '{rule_name}' applied"
        )
