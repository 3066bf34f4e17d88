"""Tests for planning and applying rule actions"""
import pytest

from helpdesk.domain.models import RuleAction
from helpdesk.domain.enums import HistoryAction, NotificationType
from helpdesk.engine.action_executor import ActionExecutor
from helpdesk.repositories.history_repo import HistoryRepository
from helpdesk.repositories.notification_repo import NotificationRepository


@pytest.fixture
def executor(directory):
    return ActionExecutor()


def actions(*pairs):
    return [RuleAction(type=t, value=v) for t, v in pairs]


class TestPlan:

    def test_field_actions_become_updates(self, executor):
        plan = executor.plan(actions(
            ("change_priority", "critical"),
            ("set_status", "in_progress"),
            ("assign_to_agent", "USR-it-agent"),
            ("set_category", "CAT-sw"),
        ))
        assert plan.updates == {
            "priority": "critical",
            "status": "in_progress",
            "assigned_agent_id": "USR-it-agent",
            "category_id": "CAT-sw",
        }
        assert plan.skipped == []

    def test_reassign_to_team_clears_agent(self, executor):
        plan = executor.plan(actions(("reassign_to_team", "DEP-it")))
        assert plan.updates == {"assigned_team_id": "DEP-it", "assigned_agent_id": None}

    def test_invalid_enum_value_is_skipped(self, executor):
        plan = executor.plan(actions(("set_priority", "urgent"), ("set_status", "open")))
        assert plan.updates == {"status": "open"}
        assert plan.skipped == ["set_priority"]

    def test_unknown_action_is_skipped(self, executor):
        plan = executor.plan(actions(("send_sms", "+100"), ("add_tags", "vip")))
        assert plan.skipped == ["send_sms"]
        assert plan.tags == ["vip"]

    def test_add_tags_deduplicates(self, executor):
        plan = executor.plan(actions(("add_tags", ["vip", " network "]), ("add_tags", "vip"), ("add_tags", "")))
        assert plan.tags == ["vip", "network"]

    def test_notify_actions(self, executor):
        plan = executor.plan(actions(
            ("notify_agent", "USR-it-agent"),
            ("notify_team", "DEP-it"),
            ("notify_manager", None),
            ("notify_agent", None),
        ))
        assert plan.notify_user_ids == ["USR-it-agent"]
        assert plan.notify_team_ids == ["DEP-it"]
        assert plan.notify_manager is True
        assert not plan.updates

    def test_empty_plan(self, executor):
        assert executor.plan([]).is_empty


class TestApply:

    def test_apply_updates_ticket_and_writes_history(self, executor, make_ticket):
        ticket = make_ticket(priority="low", assigned_agent_id="USR-it-agent")

        updated = executor.execute(
            ticket, actions(("set_priority", "high"), ("reassign_to_team", "DEP-it")), source="rule 'Bump'"
        )

        assert updated.priority == "high"
        assert updated.assigned_team_id == "DEP-it"
        assert updated.assigned_agent_id is None

        entries = HistoryRepository().list_for_ticket(ticket.ticket_id)
        changed = {e.field_name: (e.old_value, e.new_value) for e in entries if e.action == HistoryAction.UPDATED}
        assert changed["priority"] == ("low", "high")
        assert changed["assigned_team_id"] == (None, "DEP-it")
        assert changed["assigned_agent_id"] == ("USR-it-agent", None)

    def test_unchanged_fields_are_not_written(self, executor, make_ticket):
        ticket = make_ticket(priority="high")

        executor.execute(ticket, actions(("set_priority", "high")), source="test")

        assert HistoryRepository().list_for_ticket(ticket.ticket_id) == []

    def test_tags_are_merged(self, executor, make_ticket):
        ticket = make_ticket(tags=["hardware"])

        updated = executor.execute(ticket, actions(("add_tags", ["hardware", "vip"])), source="test")

        assert updated.tags == ["hardware", "vip"]
        entries = HistoryRepository().list_for_ticket(ticket.ticket_id)
        assert [e.field_name for e in entries] == ["tags"]

    def test_notify_manager_uses_assigned_team(self, executor, make_ticket):
        ticket = make_ticket(assigned_team_id="DEP-it")

        executor.execute(
            ticket, actions(("notify_manager", None)), source="test",
            notification_type=NotificationType.TICKET_ESCALATED
        )

        notifications = NotificationRepository().list_for_user("USR-it-manager")
        assert len(notifications) == 1
        assert notifications[0].type == NotificationType.TICKET_ESCALATED
        assert notifications[0].ticket_id == ticket.ticket_id

    def test_notify_team_reaches_every_member(self, executor, make_ticket):
        ticket = make_ticket()

        executor.execute(ticket, actions(("notify_team", "DEP-it")), source="test", title="Heads up")

        repo = NotificationRepository()
        recipients = {n.user_id for n in repo.list_for_ticket(ticket.ticket_id)}
        assert recipients == {"USR-it-manager", "USR-it-agent", "USR-admin"}
        assert repo.list_for_user("USR-it-agent")[0].title == "Heads up"

    def test_notify_manager_without_team_sends_nothing(self, executor, make_ticket):
        ticket = make_ticket()

        executor.execute(ticket, actions(("notify_manager", None)), source="test")

        assert NotificationRepository().list_for_ticket(ticket.ticket_id) == []
