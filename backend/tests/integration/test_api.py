"""API tests through the FastAPI app (lifespan not started)"""
import pytest
from fastapi.testclient import TestClient

from helpdesk.main import app
from helpdesk.repositories.approval_repo import ApprovalRepository

API = "/api/v1"


@pytest.fixture
def client(directory):
    return TestClient(app)


def as_user(user_id):
    return {"X-User-Id": user_id}


def create_ticket(client, user_id="USR-requester", **fields):
    fields.setdefault("subject", "Replace broken monitor")
    response = client.post(f"{API}/tickets", json=fields, headers=as_user(user_id))
    assert response.status_code == 201, response.text
    return response.json()


class TestAuth:

    def test_missing_user_header(self, client):
        response = client.get(f"{API}/tickets")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"

    def test_unknown_user(self, client):
        response = client.get(f"{API}/tickets", headers=as_user("USR-ghost"))

        assert response.status_code == 401

    def test_requester_cannot_manage_rules(self, client):
        response = client.get(f"{API}/admin/escalation-rules", headers=as_user("USR-requester"))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PERMISSION_DENIED"


class TestTickets:

    def test_unknown_ticket(self, client):
        response = client.get(f"{API}/tickets/TKT-missing", headers=as_user("USR-admin"))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "TICKET_NOT_FOUND"

    def test_create_ticket_starts_approval(self, client):
        ticket = create_ticket(client, category_id="CAT-hw", estimated_cost=300)

        assert ticket["status"] == "pending"
        assert ticket["ticket_number"].startswith("KT-")

        approvals = client.get(
            f"{API}/tickets/{ticket['ticket_id']}/approvals", headers=as_user("USR-requester")
        ).json()
        assert [(a["approval_level"], a["approver_id"]) for a in approvals] == [("lm", "USR-lm")]

    def test_invalid_ticket_payload(self, client):
        response = client.post(f"{API}/tickets", json={"subject": ""}, headers=as_user("USR-requester"))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_requesters_only_list_their_own_tickets(self, client):
        create_ticket(client)
        create_ticket(client, user_id="USR-lm")

        mine = client.get(f"{API}/tickets", headers=as_user("USR-requester")).json()
        everything = client.get(f"{API}/tickets", headers=as_user("USR-lm")).json()

        assert mine["total"] == 1
        assert everything["total"] == 2

    def test_other_requesters_cannot_view_ticket(self, client, directory):
        ticket = create_ticket(client, user_id="USR-lm")

        response = client.get(f"{API}/tickets/{ticket['ticket_id']}", headers=as_user("USR-requester"))

        assert response.status_code == 403

    def test_update_and_history(self, client):
        ticket = create_ticket(client, category_id="CAT-sw")

        response = client.patch(
            f"{API}/tickets/{ticket['ticket_id']}",
            json={"priority": "high"},
            headers=as_user("USR-it-agent")
        )
        assert response.status_code == 200
        assert response.json()["priority"] == "high"

        history = client.get(
            f"{API}/tickets/{ticket['ticket_id']}/history", headers=as_user("USR-it-agent")
        ).json()
        assert "created" in [entry["action"] for entry in history]
        change = next(entry for entry in history if entry["field_name"] == "priority")
        assert (change["old_value"], change["new_value"]) == ("medium", "high")

    def test_requester_cannot_reassign(self, client):
        ticket = create_ticket(client, category_id="CAT-sw")

        response = client.patch(
            f"{API}/tickets/{ticket['ticket_id']}",
            json={"assigned_team_id": "DEP-fin"},
            headers=as_user("USR-requester")
        )

        assert response.status_code == 403

    def test_requester_cannot_skip_pending_approval(self, client):
        ticket = create_ticket(client, category_id="CAT-hw", estimated_cost=5000)
        url = f"{API}/tickets/{ticket['ticket_id']}"

        response = client.patch(url, json={"status": "assigned", "estimated_cost": 0}, headers=as_user("USR-requester"))

        assert response.status_code == 403
        stored = client.get(url, headers=as_user("USR-requester")).json()
        assert (stored["status"], stored["estimated_cost"]) == ("pending", 5000)

    def test_status_change_refused_while_approval_pending(self, client):
        ticket = create_ticket(client, category_id="CAT-hw")
        url = f"{API}/tickets/{ticket['ticket_id']}"

        response = client.patch(url, json={"status": "assigned"}, headers=as_user("USR-lm"))

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_STATE"
        current = client.get(f"{url}/approvals/current", headers=as_user("USR-requester")).json()
        assert current["status"] == "pending"


class TestApprovals:

    def test_approve_routes_ticket(self, client):
        ticket = create_ticket(client, category_id="CAT-hw", estimated_cost=300)

        pending = client.get(f"{API}/approvals/pending", headers=as_user("USR-lm")).json()
        assert len(pending) == 1
        approval_id = pending[0]["approval"]["approval_id"]

        response = client.post(
            f"{API}/approvals/{approval_id}/approve", json={"comments": "Fine"}, headers=as_user("USR-lm")
        )
        assert response.status_code == 200
        assert response.json()["status"] == "approved"

        stored = client.get(f"{API}/tickets/{ticket['ticket_id']}", headers=as_user("USR-requester")).json()
        assert stored["status"] == "assigned"
        assert stored["assigned_team_id"] == "DEP-it"

    def test_current_approval(self, client):
        ticket = create_ticket(client, category_id="CAT-hw", estimated_cost=300)
        url = f"{API}/tickets/{ticket['ticket_id']}/approvals/current"

        current = client.get(url, headers=as_user("USR-requester")).json()
        assert current["approval_level"] == "lm"
        assert current["status"] == "pending"

        client.post(f"{API}/approvals/{current['approval_id']}/approve", json={}, headers=as_user("USR-lm"))

        assert client.get(url, headers=as_user("USR-requester")).json() is None

    def test_reject_needs_comment(self, client):
        create_ticket(client, category_id="CAT-hw")
        approval_id = client.get(
            f"{API}/approvals/pending", headers=as_user("USR-lm")
        ).json()[0]["approval"]["approval_id"]

        response = client.post(f"{API}/approvals/{approval_id}/reject", json={}, headers=as_user("USR-lm"))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_reject_and_resubmit(self, client):
        ticket = create_ticket(client, category_id="CAT-hw")
        approval_id = client.get(
            f"{API}/approvals/pending", headers=as_user("USR-lm")
        ).json()[0]["approval"]["approval_id"]

        rejected = client.post(
            f"{API}/approvals/{approval_id}/reject", json={"comments": "Need a quote"}, headers=as_user("USR-lm")
        )
        assert rejected.json()["status"] == "rejected"

        again = client.post(
            f"{API}/approvals/{approval_id}/approve", json={}, headers=as_user("USR-lm")
        )
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "INVALID_STATE"

        resubmitted = client.post(
            f"{API}/tickets/{ticket['ticket_id']}/resubmit", headers=as_user("USR-requester")
        )
        assert resubmitted.status_code == 200
        assert resubmitted.json()["status"] == "pending"

    def test_requester_cannot_approve_unassigned_approval(self, client):
        ticket = create_ticket(client, category_id="CAT-hw", estimated_cost=5000)
        url = f"{API}/tickets/{ticket['ticket_id']}/approvals/current"
        approval_id = client.get(url, headers=as_user("USR-requester")).json()["approval_id"]
        ApprovalRepository().update_approval(approval_id, {"approver_id": None})

        response = client.post(
            f"{API}/approvals/{approval_id}/approve", json={}, headers=as_user("USR-requester")
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PERMISSION_DENIED"
        current = client.get(url, headers=as_user("USR-requester")).json()
        assert (current["approval_id"], current["status"]) == (approval_id, "pending")

    def test_unknown_approval(self, client):
        response = client.post(f"{API}/approvals/APR-missing/approve", json={}, headers=as_user("USR-lm"))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "APPROVAL_NOT_FOUND"


class TestRules:

    def test_invalid_rule_is_rejected(self, client):
        response = client.post(
            f"{API}/admin/escalation-rules",
            json={"name": "Broken", "time_trigger_type": "created_at", "actions": [{"type": "notify_manager"}]},
            headers=as_user("USR-admin")
        )

        assert response.status_code == 400

    def test_create_rule_and_run_check(self, client, make_ticket):
        response = client.post(
            f"{API}/admin/escalation-rules",
            json={
                "name": "Unassigned tickets",
                "conditions": [{"field": "assigned_team_id", "operator": "is_empty"}],
                "actions": [{"type": "assign_to_team", "value": "DEP-it"}],
                "priority": 10,
            },
            headers=as_user("USR-admin")
        )
        assert response.status_code == 201
        rule_id = response.json()["rule_id"]
        make_ticket()

        run = client.post(f"{API}/admin/escalation-rules/run", headers=as_user("USR-admin")).json()

        assert run["tickets_escalated"] == 1
        assert run["escalations"][0]["rule_id"] == rule_id
        rule = client.get(f"{API}/admin/escalation-rules/{rule_id}", headers=as_user("USR-admin")).json()
        assert rule["execution_count"] == 1

    def test_check_single_ticket(self, client, make_ticket):
        client.post(
            f"{API}/admin/escalation-rules",
            json={"name": "Critical", "conditions": [{"field": "priority", "operator": "equals", "value": "critical"}],
                  "actions": [{"type": "add_tags", "value": "hot"}]},
            headers=as_user("USR-admin")
        )
        ticket = make_ticket(priority="critical")

        result = client.post(
            f"{API}/tickets/{ticket.ticket_id}/check-escalation", headers=as_user("USR-admin")
        ).json()

        assert result["escalated"] is True
        assert result["rule_name"] == "Critical"

    def test_automation_rule_crud(self, client):
        created = client.post(
            f"{API}/admin/automation-rules",
            json={
                "name": "VPN tickets",
                "trigger_event": "ticket_created",
                "conditions": [{"field": "subject", "operator": "contains", "value": "VPN"}],
                "actions": [{"type": "add_tags", "value": "network"}],
            },
            headers=as_user("USR-admin")
        )
        assert created.status_code == 201
        rule_id = created.json()["rule_id"]

        updated = client.put(
            f"{API}/admin/automation-rules/{rule_id}", json={"is_active": False}, headers=as_user("USR-admin")
        )
        assert updated.json()["is_active"] is False

        deleted = client.delete(f"{API}/admin/automation-rules/{rule_id}", headers=as_user("USR-admin"))
        assert deleted.json()["success"] is True
        missing = client.get(f"{API}/admin/automation-rules/{rule_id}", headers=as_user("USR-admin"))
        assert missing.status_code == 404


class TestNotifications:

    def test_list_and_mark_read(self, client):
        create_ticket(client, category_id="CAT-hw")

        inbox = client.get(f"{API}/notifications", headers=as_user("USR-lm")).json()
        assert inbox["unread_count"] == 1
        notification_id = inbox["items"][0]["notification_id"]

        response = client.post(f"{API}/notifications/{notification_id}/read", headers=as_user("USR-lm"))
        assert response.json()["is_read"] is True
        assert client.get(f"{API}/notifications", headers=as_user("USR-lm")).json()["unread_count"] == 0

    def test_cannot_read_someone_elses_notification(self, client):
        create_ticket(client, category_id="CAT-hw")
        notification_id = client.get(
            f"{API}/notifications", headers=as_user("USR-lm")
        ).json()["items"][0]["notification_id"]

        response = client.post(f"{API}/notifications/{notification_id}/read", headers=as_user("USR-requester"))

        assert response.status_code == 404


def test_root_and_correlation_header(client):
    response = client.get("/", headers={"X-Correlation-Id": "abc-123"})

    assert response.status_code == 200
    assert response.json()["name"] == "Helpdesk Approval & Escalation Service"
    assert response.headers["X-Correlation-Id"] == "abc-123"
