"""Escalation Service - Scheduled escalation rule checker"""
import os
import socket
from datetime import datetime
from typing import List, Optional

from ..config.settings import settings
from ..domain.models import EscalationRule, EscalationRunResult, Ticket
from ..domain.enums import ESCALATABLE_STATUSES, NotificationType, TimeTriggerType
from ..repositories.ticket_repo import TicketRepository
from ..repositories.rule_repo import RuleRepository
from ..repositories.job_lock_repo import JobLockRepository
from ..engine.condition_evaluator import ConditionEvaluator
from ..engine.action_executor import ActionExecutor
from ..engine.history_writer import HistoryWriter
from .notification_service import NotificationService
from ..utils.idgen import generate_id
from ..utils.time import utc_now, minutes_since, is_past, format_duration
from ..utils.logger import get_logger

logger = get_logger(__name__)

JOB_NAME = "check_escalations"


class EscalationService:
    """
    Evaluate active escalation rules against open tickets

    Rules are tried in priority order (highest first, then oldest); only
    the first matching rule fires for a ticket in one run.
    """

    def __init__(self):
        self.ticket_repo = TicketRepository()
        self.rule_repo = RuleRepository()
        self.lock_repo = JobLockRepository()
        self.evaluator = ConditionEvaluator()
        self.executor = ActionExecutor()
        self.history = HistoryWriter()
        self.notification_service = NotificationService()

    # =========================================================================
    # Runs
    # =========================================================================

    def check_and_escalate(self, now: Optional[datetime] = None) -> EscalationRunResult:
        """Check every escalatable ticket once"""
        now = now or utc_now()
        result = EscalationRunResult()

        rules = self.rule_repo.list_escalation_rules(active_only=True)
        tickets = self.ticket_repo.list_by_statuses(ESCALATABLE_STATUSES)
        logger.info(f"Checking {len(tickets)} tickets against {len(rules)} escalation rules")

        for ticket in tickets:
            result.tickets_checked += 1
            try:
                rule = self._escalate_ticket(ticket, rules, now)
            except Exception as e:
                result.failures += 1
                logger.error(
                    f"Escalation failed for ticket {ticket.ticket_number}: {e}",
                    extra={"ticket_id": ticket.ticket_id},
                    exc_info=True
                )
                continue
            if rule:
                result.tickets_escalated += 1
                result.escalations.append({"ticket_id": ticket.ticket_id, "rule_id": rule.rule_id})

        logger.info(
            f"Escalation check complete: {result.tickets_escalated}/{result.tickets_checked} escalated",
            extra={"status": "completed"}
        )
        return result

    def run_exclusive(self, owner: Optional[str] = None, now: Optional[datetime] = None) -> EscalationRunResult:
        """
        Run check_and_escalate under the cross-process job lock

        Returns a result with skipped_locked=True when another process holds
        the lock.
        """
        owner = owner or f"{socket.gethostname()}-{os.getpid()}-{generate_id()}"
        if not self.lock_repo.acquire(JOB_NAME, owner, settings.escalation_lock_seconds):
            logger.warning("Escalation check already running elsewhere, skipping")
            return EscalationRunResult(skipped_locked=True)

        try:
            return self.check_and_escalate(now=now)
        finally:
            self.lock_repo.release(JOB_NAME, owner)

    def check_ticket(self, ticket_id: str, now: Optional[datetime] = None) -> Optional[EscalationRule]:
        """Evaluate one ticket; returns the rule that fired, if any"""
        ticket = self.ticket_repo.get_ticket_or_raise(ticket_id)
        if ticket.status not in ESCALATABLE_STATUSES:
            return None
        rules = self.rule_repo.list_escalation_rules(active_only=True)
        return self._escalate_ticket(ticket, rules, now or utc_now())

    # =========================================================================
    # Matching
    # =========================================================================

    def rule_matches(self, rule: EscalationRule, ticket: Ticket, now: Optional[datetime] = None) -> bool:
        """Active, all conditions hold and the time trigger (if any) is met"""
        if not rule.is_active:
            return False
        if not self.evaluator.matches_all(rule.conditions, ticket):
            return False
        if rule.time_trigger_type and rule.time_trigger_minutes is not None:
            return self.time_trigger_met(rule, ticket, now or utc_now())
        return True

    def time_trigger_met(self, rule: EscalationRule, ticket: Ticket, now: datetime) -> bool:
        trigger = TimeTriggerType(rule.time_trigger_type)
        timestamp = getattr(ticket, trigger.value, None)
        if timestamp is None:
            return False

        if trigger.is_due_date and not is_past(timestamp, now):
            return False
        elapsed = minutes_since(timestamp, now)
        if elapsed < rule.time_trigger_minutes:
            return False
        logger.debug(
            f"Rule '{rule.name}' time trigger met on {ticket.ticket_number}: "
            f"{trigger.value} was {format_duration(elapsed)} ago",
            extra={"ticket_id": ticket.ticket_id, "rule_id": rule.rule_id}
        )
        return True

    # =========================================================================
    # Execution
    # =========================================================================

    def execute_rule(self, rule: EscalationRule, ticket: Ticket) -> Ticket:
        """Apply the rule's actions and record the escalation"""
        content = self.notification_service.ticket_escalated_message(ticket, rule.name)
        ticket = self.executor.execute(
            ticket,
            rule.actions,
            source=f"escalation rule '{rule.name}'",
            notification_type=NotificationType.TICKET_ESCALATED,
            title=content["title"],
            message=content["message"]
        )
        self.rule_repo.record_escalation_execution(rule.rule_id)
        self.history.write_escalated(ticket.ticket_id, rule.rule_id, rule.name)
        logger.info(
            f"Escalated ticket {ticket.ticket_number} by rule '{rule.name}'",
            extra={"ticket_id": ticket.ticket_id, "rule_id": rule.rule_id, "rule_name": rule.name}
        )
        return ticket

    def _escalate_ticket(
        self,
        ticket: Ticket,
        rules: List[EscalationRule],
        now: datetime
    ) -> Optional[EscalationRule]:
        for rule in rules:
            if self.rule_matches(rule, ticket, now):
                self.execute_rule(rule, ticket)
                return rule
        return None
