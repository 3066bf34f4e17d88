"""Automation Service - Event-triggered automation rules"""
from typing import List

from ..domain.models import AutomationRule, Ticket
from ..domain.enums import AutomationTriggerEvent, NotificationType
from ..repositories.ticket_repo import TicketRepository
from ..repositories.rule_repo import RuleRepository
from ..engine.condition_evaluator import ConditionEvaluator
from ..engine.action_executor import ActionExecutor
from ..engine.history_writer import HistoryWriter
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AutomationService:
    """
    Run automation rules when tickets are created or updated

    Every matching rule runs, in priority order. The ticket is re-read after
    each rule so later rules see earlier changes. Failures are logged and
    never reach the caller.
    """

    def __init__(self):
        self.ticket_repo = TicketRepository()
        self.rule_repo = RuleRepository()
        self.evaluator = ConditionEvaluator()
        self.executor = ActionExecutor()
        self.history = HistoryWriter()

    def execute_rules(self, ticket: Ticket, trigger_event: AutomationTriggerEvent) -> List[str]:
        """
        Execute matching rules for an event

        Returns:
            IDs of the rules that fired
        """
        fired: List[str] = []
        try:
            rules = self.rule_repo.list_automation_rules(
                active_only=True, trigger_event=AutomationTriggerEvent(trigger_event).value
            )
        except Exception as e:
            logger.error(f"Failed to load automation rules: {e}", extra={"trigger_event": str(trigger_event)})
            return fired

        for rule in rules:
            try:
                if not self.rule_matches(rule, ticket):
                    continue
                self._execute_rule(rule, ticket)
                fired.append(rule.rule_id)
                ticket = self.ticket_repo.get_ticket_or_raise(ticket.ticket_id)
            except Exception as e:
                logger.error(
                    f"Automation rule '{rule.name}' failed on {ticket.ticket_number}: {e}",
                    extra={"ticket_id": ticket.ticket_id, "rule_id": rule.rule_id},
                    exc_info=True
                )
        return fired

    def rule_matches(self, rule: AutomationRule, ticket: Ticket) -> bool:
        """A rule with no conditions never matches"""
        if not rule.is_active or not rule.conditions:
            return False
        return self.evaluator.matches_all(rule.conditions, ticket)

    def on_ticket_created(self, ticket: Ticket) -> List[str]:
        return self.execute_rules(ticket, AutomationTriggerEvent.TICKET_CREATED)

    def on_ticket_updated(self, ticket: Ticket) -> List[str]:
        return self.execute_rules(ticket, AutomationTriggerEvent.TICKET_UPDATED)

    def on_ticket_status_changed(self, ticket: Ticket) -> List[str]:
        return self.execute_rules(ticket, AutomationTriggerEvent.TICKET_STATUS_CHANGED)

    def _execute_rule(self, rule: AutomationRule, ticket: Ticket) -> None:
        self.executor.execute(
            ticket,
            rule.actions,
            source=f"automation rule '{rule.name}'",
            notification_type=NotificationType.TICKET_UPDATED
        )
        self.rule_repo.record_automation_execution(rule.rule_id)
        self.history.write_automation_applied(ticket.ticket_id, rule.rule_id, rule.name)
        logger.info(
            f"Automation rule '{rule.name}' applied to {ticket.ticket_number}",
            extra={"ticket_id": ticket.ticket_id, "rule_id": rule.rule_id, "rule_name": rule.name}
        )
