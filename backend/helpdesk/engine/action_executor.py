"""Action Executor - Apply rule actions to tickets"""
from typing import Any, Dict, Iterable, List, Optional

from ..domain.models import ActionPlan, RuleAction, Ticket
from ..domain.enums import ActionType, TicketPriority, TicketStatus, NotificationType
from ..repositories.ticket_repo import TicketRepository
from ..repositories.directory_repo import DirectoryRepository
from ..services.notification_service import NotificationService
from .history_writer import HistoryWriter
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Action type -> ticket field it sets
FIELD_ACTIONS: Dict[str, str] = {
    ActionType.CHANGE_PRIORITY.value: "priority",
    ActionType.SET_PRIORITY.value: "priority",
    ActionType.CHANGE_STATUS.value: "status",
    ActionType.SET_STATUS.value: "status",
    ActionType.ASSIGN_TO_TEAM.value: "assigned_team_id",
    ActionType.REASSIGN_TO_TEAM.value: "assigned_team_id",
    ActionType.ASSIGN_TO_AGENT.value: "assigned_agent_id",
    ActionType.REASSIGN_TO_AGENT.value: "assigned_agent_id",
    ActionType.SET_CATEGORY.value: "category_id",
    ActionType.SET_SLA_POLICY.value: "sla_policy_id",
}

# Fields whose value must be a member of an enum
ENUM_FIELDS = {
    "priority": TicketPriority,
    "status": TicketStatus,
}


class ActionExecutor:
    """
    Turn (type, value) actions into ticket changes and apply them

    Planning is pure; applying writes one ticket update, merges tags,
    records history and sends notifications.
    """

    def __init__(self):
        self.ticket_repo = TicketRepository()
        self.directory_repo = DirectoryRepository()
        self.notification_service = NotificationService()
        self.history = HistoryWriter()

    def plan(self, actions: Iterable[RuleAction]) -> ActionPlan:
        """Build an ActionPlan, skipping invalid actions"""
        plan = ActionPlan()

        for action in actions:
            action_type = action.type
            value = action.value

            if not action_type:
                plan.skipped.append("<missing type>")
                continue

            if action_type in FIELD_ACTIONS:
                field_name = FIELD_ACTIONS[action_type]
                enum_cls = ENUM_FIELDS.get(field_name)
                if enum_cls is not None:
                    try:
                        value = enum_cls(value).value
                    except ValueError:
                        logger.warning(f"Skipping {action_type}: invalid value {value!r}", extra={"action": action_type})
                        plan.skipped.append(action_type)
                        continue
                plan.updates[field_name] = value
                if action_type == ActionType.REASSIGN_TO_TEAM:
                    plan.updates["assigned_agent_id"] = None

            elif action_type == ActionType.ADD_TAGS:
                for tag in self._as_tags(value):
                    if tag not in plan.tags:
                        plan.tags.append(tag)

            elif action_type == ActionType.NOTIFY_AGENT:
                if value:
                    plan.notify_user_ids.append(str(value))

            elif action_type == ActionType.NOTIFY_TEAM:
                if value:
                    plan.notify_team_ids.append(str(value))

            elif action_type == ActionType.NOTIFY_MANAGER:
                plan.notify_manager = True

            else:
                logger.warning(f"Skipping unknown action type: {action_type}", extra={"action": action_type})
                plan.skipped.append(action_type)

        return plan

    def apply(
        self,
        ticket: Ticket,
        plan: ActionPlan,
        source: str,
        notification_type: NotificationType = NotificationType.TICKET_ESCALATED,
        title: Optional[str] = None,
        message: Optional[str] = None
    ) -> Ticket:
        """
        Persist a plan against a ticket

        Args:
            ticket: Ticket the actions apply to
            plan: Output of plan()
            source: Human readable origin used in history (e.g. rule name)
            notification_type: Type used for notify_* actions

        Returns:
            The updated ticket
        """
        changes = {
            field_name: (getattr(ticket, field_name, None), new_value)
            for field_name, new_value in plan.updates.items()
            if getattr(ticket, field_name, None) != new_value
        }

        if changes:
            ticket = self.ticket_repo.update_ticket(
                ticket.ticket_id, {field_name: new for field_name, (_, new) in changes.items()}
            )
            self.history.write_field_changes(
                ticket.ticket_id, None, changes, description=f"Changed by {source}"
            )

        new_tags = [tag for tag in plan.tags if tag not in ticket.tags]
        if new_tags:
            old_tags = list(ticket.tags)
            self.ticket_repo.add_tags(ticket.ticket_id, new_tags)
            ticket = self.ticket_repo.get_ticket_or_raise(ticket.ticket_id)
            self.history.write_field_changes(
                ticket.ticket_id, None, {"tags": (old_tags, ticket.tags)}, description=f"Tags added by {source}"
            )

        self._send_notifications(ticket, plan, notification_type, title, message)
        return ticket

    def execute(self, ticket: Ticket, actions: Iterable[RuleAction], source: str, **kwargs: Any) -> Ticket:
        """Plan and apply in one step"""
        return self.apply(ticket, self.plan(actions), source, **kwargs)

    def _send_notifications(
        self,
        ticket: Ticket,
        plan: ActionPlan,
        notification_type: NotificationType,
        title: Optional[str],
        message: Optional[str]
    ) -> None:
        title = title or f"Ticket update: {ticket.ticket_number}"
        message = message or f"Ticket '{ticket.subject}' needs attention."

        for user_id in plan.notify_user_ids:
            self.notification_service.notify_user(user_id, notification_type, title, message, ticket=ticket)

        for team_id in plan.notify_team_ids:
            self.notification_service.notify_team(team_id, notification_type, title, message, ticket=ticket)

        if plan.notify_manager:
            manager_id = self._team_manager_id(ticket)
            if manager_id:
                self.notification_service.notify_user(manager_id, notification_type, title, message, ticket=ticket)
            else:
                logger.warning(
                    f"No manager to notify for ticket {ticket.ticket_number}",
                    extra={"ticket_id": ticket.ticket_id}
                )

    def _team_manager_id(self, ticket: Ticket) -> Optional[str]:
        if not ticket.assigned_team_id:
            return None
        department = self.directory_repo.get_department(ticket.assigned_team_id)
        return department.manager_id if department else None

    @staticmethod
    def _as_tags(value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [str(tag).strip() for tag in value if str(tag).strip()]
        return [str(value).strip()] if str(value).strip() else []
