"""Tests for the line manager / HOD approval workflow"""
import pytest

from helpdesk.domain.models import TicketCreate, TicketUpdate
from helpdesk.domain.enums import ApprovalLevel, ApprovalStatus, HistoryAction, NotificationType, TicketStatus
from helpdesk.domain.errors import (
    InvalidStateError, PermissionDeniedError, ResubmissionLimitError, ValidationError
)
from helpdesk.repositories.approval_repo import ApprovalRepository
from helpdesk.repositories.history_repo import HistoryRepository
from helpdesk.repositories.notification_repo import NotificationRepository
from helpdesk.repositories.ticket_repo import TicketRepository
from helpdesk.services.approval_workflow_service import ApprovalWorkflowService
from helpdesk.services.ticket_service import TicketService


@pytest.fixture
def workflow(directory):
    return ApprovalWorkflowService()


@pytest.fixture
def open_ticket(directory, actor):
    """Create a ticket through the service as the given requester"""
    service = TicketService()

    def _open(requester="USR-requester", **fields):
        fields.setdefault("subject", "Need a new laptop")
        return service.create_ticket(TicketCreate(**fields), actor(requester))

    return _open


def pending_approval(workflow, ticket):
    approval = workflow.get_current_approval(ticket.ticket_id)
    assert approval is not None
    return approval


def reload(ticket):
    return TicketRepository().get_ticket_or_raise(ticket.ticket_id)


class TestWorkflowStart:

    def test_cost_below_threshold_needs_line_manager_only(self, workflow, open_ticket):
        ticket = open_ticket(category_id="CAT-hw", estimated_cost=500)

        assert ticket.status == TicketStatus.PENDING
        approvals = workflow.list_approvals(ticket.ticket_id)
        assert len(approvals) == 1
        assert approvals[0].approval_level == ApprovalLevel.LM
        assert approvals[0].approver_id == "USR-lm"
        assert approvals[0].sequence == 1

    def test_category_without_approval_routes_directly(self, workflow, open_ticket):
        ticket = open_ticket(category_id="CAT-sw")

        assert ticket.status == TicketStatus.ASSIGNED
        assert ticket.assigned_team_id == "DEP-it"
        assert workflow.list_approvals(ticket.ticket_id) == []

    def test_ticket_without_category_needs_approval(self, workflow, open_ticket):
        ticket = open_ticket()

        assert ticket.status == TicketStatus.PENDING
        assert pending_approval(workflow, ticket).approval_level == ApprovalLevel.LM

    def test_cost_at_threshold_needs_approval_even_without_flag(self, workflow, open_ticket, directory):
        category = directory.get_category("CAT-sw")
        directory.save_category(category.model_copy(update={"hod_approval_threshold": 200}))

        ticket = open_ticket(category_id="CAT-sw", estimated_cost=200)

        assert ticket.status == TicketStatus.PENDING

    def test_zero_threshold_counts_as_no_threshold(self, workflow, open_ticket, directory):
        category = directory.get_category("CAT-sw")
        directory.save_category(category.model_copy(update={"hod_approval_threshold": 0}))

        ticket = open_ticket(category_id="CAT-sw")

        assert ticket.status == TicketStatus.ASSIGNED
        assert workflow.list_approvals(ticket.ticket_id) == []

    def test_auto_approve_role_skips_approval(self, workflow, open_ticket):
        ticket = open_ticket(requester="USR-director", category_id="CAT-hw", estimated_cost=50000)

        assert ticket.status == TicketStatus.ASSIGNED
        assert ticket.assigned_team_id == "DEP-it"
        assert workflow.list_approvals(ticket.ticket_id) == []

    def test_approver_is_notified(self, workflow, open_ticket):
        ticket = open_ticket(category_id="CAT-hw")

        notifications = NotificationRepository().list_for_user("USR-lm")
        assert len(notifications) == 1
        assert notifications[0].type == NotificationType.APPROVAL_REQUESTED
        assert notifications[0].ticket_id == ticket.ticket_id

    def test_initialize_twice_keeps_one_pending_approval(self, workflow, open_ticket):
        ticket = open_ticket(category_id="CAT-hw")

        workflow.initialize_workflow(reload(ticket))

        assert len(workflow.list_approvals(ticket.ticket_id)) == 1

    def test_history_records_request(self, workflow, open_ticket):
        ticket = open_ticket(category_id="CAT-hw")

        actions = [e.action for e in HistoryRepository().list_for_ticket(ticket.ticket_id)]
        assert HistoryAction.CREATED in actions
        assert HistoryAction.APPROVAL_REQUESTED in actions


class TestApprove:

    def test_line_manager_approval_routes_ticket(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw", estimated_cost=500)
        approval = pending_approval(workflow, ticket)

        decided = workflow.approve(approval.approval_id, actor("USR-lm"), comment="ok")

        assert decided.status == ApprovalStatus.APPROVED
        assert decided.approved_at is not None
        ticket = reload(ticket)
        assert ticket.status == TicketStatus.ASSIGNED
        assert ticket.assigned_team_id == "DEP-it"
        assert len(workflow.list_approvals(ticket.ticket_id)) == 1

    def test_cost_at_threshold_adds_hod_step(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw", estimated_cost=1000)

        workflow.approve(pending_approval(workflow, ticket).approval_id, actor("USR-lm"))

        assert reload(ticket).status == TicketStatus.PENDING
        hod = pending_approval(workflow, ticket)
        assert hod.approval_level == ApprovalLevel.HOD
        assert hod.approver_id == "USR-hod"
        assert hod.sequence == 2

        workflow.approve(hod.approval_id, actor("USR-hod"))

        ticket = reload(ticket)
        assert ticket.status == TicketStatus.ASSIGNED
        assert ticket.assigned_team_id == "DEP-it"
        levels = [a.approval_level for a in workflow.list_approvals(ticket.ticket_id)]
        assert levels == [ApprovalLevel.LM, ApprovalLevel.HOD]

    def test_hod_required_without_threshold(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-access")

        workflow.approve(pending_approval(workflow, ticket).approval_id, actor("USR-lm"))

        assert pending_approval(workflow, ticket).approval_level == ApprovalLevel.HOD

    def test_hod_required_with_zero_threshold(self, workflow, open_ticket, actor, directory):
        category = directory.get_category("CAT-access")
        directory.save_category(category.model_copy(update={"hod_approval_threshold": 0}))
        ticket = open_ticket(category_id="CAT-access")

        workflow.approve(pending_approval(workflow, ticket).approval_id, actor("USR-lm"))

        assert pending_approval(workflow, ticket).approval_level == ApprovalLevel.HOD

    def test_high_priority_without_category_adds_hod_step(self, workflow, open_ticket, actor):
        ticket = open_ticket(priority="high")

        workflow.approve(pending_approval(workflow, ticket).approval_id, actor("USR-lm"))

        hod = pending_approval(workflow, ticket)
        assert hod.approval_level == ApprovalLevel.HOD
        assert hod.approver_id == "USR-hod"

    def test_category_without_team_falls_back_to_it(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-misc")

        workflow.approve(pending_approval(workflow, ticket).approval_id, actor("USR-lm"))

        assert reload(ticket).assigned_team_id == "DEP-it"

    def test_routed_team_overrides_category_team(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw")

        workflow.approve(
            pending_approval(workflow, ticket).approval_id, actor("USR-lm"), routed_to_team_id="DEP-fin"
        )

        assert reload(ticket).assigned_team_id == "DEP-fin"

    def test_requester_cannot_approve(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw")

        with pytest.raises(PermissionDeniedError):
            workflow.approve(pending_approval(workflow, ticket).approval_id, actor("USR-requester"))

    def test_requester_cannot_decide_unassigned_approval(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw", estimated_cost=5000)
        approval = pending_approval(workflow, ticket)
        ApprovalRepository().update_approval(approval.approval_id, {"approver_id": None})

        with pytest.raises(PermissionDeniedError):
            workflow.approve(approval.approval_id, actor("USR-requester"))
        with pytest.raises(PermissionDeniedError):
            workflow.reject(approval.approval_id, actor("USR-requester"), "Not needed")

        assert pending_approval(workflow, ticket).approval_id == approval.approval_id
        assert reload(ticket).status == TicketStatus.PENDING

    def test_user_with_assign_permission_can_approve(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw")
        approval = pending_approval(workflow, ticket)

        decided = workflow.approve(approval.approval_id, actor("USR-it-manager"))

        assert decided.approver_id == "USR-it-manager"

    def test_approving_twice_fails(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw")
        approval = pending_approval(workflow, ticket)
        workflow.approve(approval.approval_id, actor("USR-lm"))

        with pytest.raises(InvalidStateError):
            workflow.approve(approval.approval_id, actor("USR-lm"))

    def test_requester_is_told_about_approval(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw")

        workflow.approve(pending_approval(workflow, ticket).approval_id, actor("USR-lm"))

        types = [n.type for n in NotificationRepository().list_for_user("USR-requester")]
        assert types == [NotificationType.APPROVAL_APPROVED]


class TestReject:

    def test_reject_cancels_ticket(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw")
        approval = pending_approval(workflow, ticket)

        decided = workflow.reject(approval.approval_id, actor("USR-lm"), "Not in budget")

        assert decided.status == ApprovalStatus.REJECTED
        assert decided.rejected_at is not None
        assert decided.comments == "Not in budget"
        assert reload(ticket).status == TicketStatus.CANCELLED
        assert reload(ticket).assigned_team_id is None
        assert workflow.get_current_approval(ticket.ticket_id) is None

    @pytest.mark.parametrize("comment", [None, "", "   ", "x" * 1001])
    def test_reject_requires_valid_comment(self, workflow, open_ticket, actor, comment):
        ticket = open_ticket(category_id="CAT-hw")

        with pytest.raises(ValidationError):
            workflow.reject(pending_approval(workflow, ticket).approval_id, actor("USR-lm"), comment)

        assert reload(ticket).status == TicketStatus.PENDING

    def test_cannot_decide_on_cancelled_ticket(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw")
        approval = pending_approval(workflow, ticket)
        TicketRepository().update_ticket(ticket.ticket_id, {"status": TicketStatus.CANCELLED})

        with pytest.raises(InvalidStateError):
            workflow.approve(approval.approval_id, actor("USR-lm"))


class TestResubmit:

    def test_resubmit_opens_new_approval(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw")
        workflow.reject(pending_approval(workflow, ticket).approval_id, actor("USR-lm"), "Add a quote")

        resubmitted = workflow.resubmit(ticket.ticket_id, actor("USR-requester"))

        assert resubmitted.status == TicketStatus.PENDING
        approval = pending_approval(workflow, ticket)
        assert approval.sequence == 2
        assert approval.approval_level == ApprovalLevel.LM

    def test_each_round_gets_its_own_hod_step(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw", estimated_cost=5000)
        workflow.reject(pending_approval(workflow, ticket).approval_id, actor("USR-lm"), "Add a quote")
        workflow.resubmit(ticket.ticket_id, actor("USR-requester"))
        workflow.approve(pending_approval(workflow, ticket).approval_id, actor("USR-lm"))
        workflow.approve(pending_approval(workflow, ticket).approval_id, actor("USR-hod"))
        assert reload(ticket).status == TicketStatus.ASSIGNED

        TicketService().update_ticket(ticket.ticket_id, TicketUpdate(status="cancelled"), actor("USR-admin"))
        workflow.resubmit(ticket.ticket_id, actor("USR-requester"))
        workflow.approve(pending_approval(workflow, ticket).approval_id, actor("USR-lm"))

        assert reload(ticket).status == TicketStatus.PENDING
        hod = pending_approval(workflow, ticket)
        assert (hod.approval_level, hod.sequence) == (ApprovalLevel.HOD, 5)

        workflow.approve(hod.approval_id, actor("USR-hod"))

        assert reload(ticket).status == TicketStatus.ASSIGNED

    def test_resubmission_limit(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw")
        for attempt in range(3):
            workflow.reject(pending_approval(workflow, ticket).approval_id, actor("USR-lm"), f"No {attempt}")
            if attempt < 2:
                workflow.resubmit(ticket.ticket_id, actor("USR-requester"))

        with pytest.raises(ResubmissionLimitError):
            workflow.resubmit(ticket.ticket_id, actor("USR-requester"))

    def test_only_rejected_tickets_can_be_resubmitted(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw")

        with pytest.raises(InvalidStateError):
            workflow.resubmit(ticket.ticket_id, actor("USR-requester"))

    def test_other_users_cannot_resubmit(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw")
        workflow.reject(pending_approval(workflow, ticket).approval_id, actor("USR-lm"), "No")

        with pytest.raises(PermissionDeniedError):
            workflow.resubmit(ticket.ticket_id, actor("USR-director"))


class TestUpdatesDuringApproval:

    def test_requester_cannot_edit_own_ticket(self, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw", estimated_cost=5000)

        with pytest.raises(PermissionDeniedError):
            TicketService().update_ticket(
                ticket.ticket_id, TicketUpdate(status="assigned", estimated_cost=0), actor("USR-requester")
            )

        ticket = reload(ticket)
        assert ticket.status == TicketStatus.PENDING
        assert ticket.estimated_cost == 5000

    def test_status_is_locked_while_approval_pending(self, workflow, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw")

        with pytest.raises(InvalidStateError):
            TicketService().update_ticket(ticket.ticket_id, TicketUpdate(status="assigned"), actor("USR-lm"))

        assert reload(ticket).status == TicketStatus.PENDING
        assert pending_approval(workflow, ticket).status == ApprovalStatus.PENDING

    def test_other_fields_can_change_while_approval_pending(self, open_ticket, actor):
        ticket = open_ticket(category_id="CAT-hw")

        updated = TicketService().update_ticket(ticket.ticket_id, TicketUpdate(priority="high"), actor("USR-lm"))

        assert updated.priority == "high"
        assert updated.status == TicketStatus.PENDING


class TestPendingList:

    def test_pending_for_approver(self, workflow, open_ticket):
        ticket = open_ticket(category_id="CAT-hw")

        pending = workflow.list_pending_for_approver("USR-lm")

        assert [t.ticket_id for _, t in pending] == [ticket.ticket_id]
        assert workflow.list_pending_for_approver("USR-hod") == []

    def test_pending_list_skips_closed_tickets(self, workflow, open_ticket):
        ticket = open_ticket(category_id="CAT-hw")
        TicketRepository().update_ticket(ticket.ticket_id, {"status": TicketStatus.CANCELLED})

        assert workflow.list_pending_for_approver("USR-lm") == []
