"""Tests for the scheduled escalation checker"""
from datetime import timedelta

import pytest

from helpdesk.domain.models import Condition, EscalationRule, RuleAction
from helpdesk.domain.enums import HistoryAction, NotificationType, TicketStatus
from helpdesk.repositories.history_repo import HistoryRepository
from helpdesk.repositories.job_lock_repo import JobLockRepository
from helpdesk.repositories.notification_repo import NotificationRepository
from helpdesk.repositories.rule_repo import RuleRepository
from helpdesk.repositories.ticket_repo import TicketRepository
from helpdesk.services.escalation_service import EscalationService, JOB_NAME
from helpdesk.utils.idgen import generate_rule_id
from helpdesk.utils.time import utc_now


@pytest.fixture
def service(directory):
    return EscalationService()


@pytest.fixture
def add_rule(mongo_db):
    repo = RuleRepository()

    def _add(**fields):
        now = utc_now()
        data = {
            "rule_id": generate_rule_id(),
            "name": "Stale ticket",
            "time_trigger_type": "created_at",
            "time_trigger_minutes": 60,
            "actions": [RuleAction(type="change_priority", value="high")],
            "created_at": now,
            "updated_at": now,
        }
        data.update(fields)
        return repo.create_escalation_rule(EscalationRule(**data))

    return _add


def hours_ago(hours):
    return utc_now() - timedelta(hours=hours)


class TestCheckAndEscalate:

    def test_young_ticket_is_not_escalated(self, service, add_rule, make_ticket):
        add_rule()
        ticket = make_ticket(created_at=utc_now() - timedelta(minutes=10))

        result = service.check_and_escalate()

        assert result.tickets_checked == 1
        assert result.tickets_escalated == 0
        assert TicketRepository().get_ticket(ticket.ticket_id).priority == "medium"

    def test_old_ticket_is_escalated(self, service, add_rule, make_ticket):
        rule = add_rule()
        ticket = make_ticket(created_at=hours_ago(2))

        result = service.check_and_escalate()

        assert result.tickets_escalated == 1
        assert result.escalations == [{"ticket_id": ticket.ticket_id, "rule_id": rule.rule_id}]
        assert TicketRepository().get_ticket(ticket.ticket_id).priority == "high"

        stored = RuleRepository().get_escalation_rule(rule.rule_id)
        assert stored.execution_count == 1
        assert stored.last_executed_at is not None

        actions = [e.action for e in HistoryRepository().list_for_ticket(ticket.ticket_id)]
        assert HistoryAction.ESCALATED in actions

    def test_only_highest_priority_rule_fires(self, service, add_rule, make_ticket):
        add_rule(name="Low", priority=10, actions=[RuleAction(type="add_tags", value="low-rule")])
        high = add_rule(name="High", priority=90, actions=[RuleAction(type="add_tags", value="high-rule")])
        ticket = make_ticket(created_at=hours_ago(2))

        result = service.check_and_escalate()

        assert result.escalations[0]["rule_id"] == high.rule_id
        assert TicketRepository().get_ticket(ticket.ticket_id).tags == ["high-rule"]

    def test_inactive_rules_are_ignored(self, service, add_rule, make_ticket):
        add_rule(is_active=False)
        make_ticket(created_at=hours_ago(2))

        assert service.check_and_escalate().tickets_escalated == 0

    def test_finished_tickets_are_not_checked(self, service, add_rule, make_ticket):
        add_rule()
        make_ticket(created_at=hours_ago(2), status="resolved")
        make_ticket(created_at=hours_ago(2), status="cancelled")

        result = service.check_and_escalate()

        assert result.tickets_checked == 0

    def test_conditions_must_match(self, service, add_rule, make_ticket):
        add_rule(conditions=[Condition(field="priority", operator="equals", value="critical")])
        make_ticket(created_at=hours_ago(2))

        assert service.check_and_escalate().tickets_escalated == 0

    def test_rule_without_time_trigger_fires_on_conditions(self, service, add_rule, make_ticket):
        add_rule(
            time_trigger_type=None, time_trigger_minutes=None,
            conditions=[Condition(field="assigned_team_id", operator="is_empty")],
            actions=[RuleAction(type="assign_to_team", value="DEP-it")]
        )
        ticket = make_ticket()

        service.check_and_escalate()

        assert TicketRepository().get_ticket(ticket.ticket_id).assigned_team_id == "DEP-it"

    def test_failure_on_one_ticket_does_not_stop_run(self, service, add_rule, make_ticket, monkeypatch):
        add_rule()
        first = make_ticket(created_at=hours_ago(3))
        second = make_ticket(created_at=hours_ago(2))
        original = service.execute_rule

        def flaky(rule, ticket):
            if ticket.ticket_id == first.ticket_id:
                raise RuntimeError("boom")
            return original(rule, ticket)

        monkeypatch.setattr(service, "execute_rule", flaky)

        result = service.check_and_escalate()

        assert result.failures == 1
        assert result.tickets_escalated == 1
        assert result.escalations[0]["ticket_id"] == second.ticket_id

    def test_escalation_notifies_team_manager(self, service, add_rule, make_ticket):
        add_rule(actions=[RuleAction(type="notify_manager")])
        make_ticket(created_at=hours_ago(2), assigned_team_id="DEP-it")

        service.check_and_escalate()

        notifications = NotificationRepository().list_for_user("USR-it-manager")
        assert [n.type for n in notifications] == [NotificationType.TICKET_ESCALATED]


class TestTimeTriggers:

    def test_due_date_must_be_past(self, service, add_rule, make_ticket):
        rule = add_rule(time_trigger_type="resolution_due_at", time_trigger_minutes=30)
        now = utc_now()

        not_due = make_ticket(resolution_due_at=now + timedelta(hours=1))
        just_due = make_ticket(resolution_due_at=now - timedelta(minutes=10))
        overdue = make_ticket(resolution_due_at=now - timedelta(minutes=45))

        assert not service.time_trigger_met(rule, not_due, now)
        assert not service.time_trigger_met(rule, just_due, now)
        assert service.time_trigger_met(rule, overdue, now)

    def test_missing_timestamp_never_triggers(self, service, add_rule, make_ticket):
        rule = add_rule(time_trigger_type="first_response_due_at", time_trigger_minutes=1)
        ticket = make_ticket()

        assert not service.time_trigger_met(rule, ticket, utc_now())

    def test_updated_at_trigger(self, service, add_rule, make_ticket):
        rule = add_rule(time_trigger_type="updated_at", time_trigger_minutes=120)
        ticket = make_ticket(updated_at=hours_ago(3))

        assert service.rule_matches(rule, ticket)


class TestExclusiveRun:

    def test_run_is_skipped_while_locked(self, service, add_rule, make_ticket):
        add_rule()
        make_ticket(created_at=hours_ago(2))
        assert JobLockRepository().acquire(JOB_NAME, "other-server", 600)

        result = service.run_exclusive(owner="this-server")

        assert result.skipped_locked
        assert result.tickets_checked == 0

    def test_lock_is_released_after_run(self, service, add_rule, make_ticket):
        add_rule()
        make_ticket(created_at=hours_ago(2))

        result = service.run_exclusive(owner="this-server")

        assert result.tickets_escalated == 1
        assert JobLockRepository().get_lock(JOB_NAME)["locked_by"] is None


class TestCheckTicket:

    def test_check_single_ticket(self, service, add_rule, make_ticket):
        rule = add_rule()
        ticket = make_ticket(created_at=hours_ago(2))

        fired = service.check_ticket(ticket.ticket_id)

        assert fired.rule_id == rule.rule_id

    def test_check_closed_ticket_does_nothing(self, service, add_rule, make_ticket):
        add_rule()
        ticket = make_ticket(created_at=hours_ago(2), status=TicketStatus.CLOSED)

        assert service.check_ticket(ticket.ticket_id) is None
