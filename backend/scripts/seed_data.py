"""
Seed Data Script - Loads directory data and sample rules
Run: python -m scripts.seed_data

Safe to re-run: directory records are upserted by id, sample rules are
only created when no rules exist.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import timedelta

from helpdesk.repositories.mongo_client import create_indexes
from helpdesk.repositories.directory_repo import DirectoryRepository
from helpdesk.repositories.rule_repo import RuleRepository
from helpdesk.domain.models import (
    AutomationRule, Condition, Department, EscalationRule, RuleAction, TicketCategory, User
)
from helpdesk.domain import roles
from helpdesk.utils.idgen import generate_rule_id
from helpdesk.utils.time import utc_now


DEPARTMENTS = [
    ("DEP-it", "IT Service Desk", "IT-SD", "USR-it-manager"),
    ("DEP-finance", "Finance", "FIN", "USR-finance-hod"),
    ("DEP-operations", "Operations", "OPS", "USR-ops-manager"),
]

# (user_id, name, email, department_id, roles)
USERS = [
    ("USR-admin", "System Administrator", "admin@example.com", "DEP-it", [roles.SUPER_ADMIN]),
    ("USR-it-manager", "Ian Tan", "ian.tan@example.com", "DEP-it", [roles.MANAGER]),
    ("USR-it-agent", "Ada Kim", "ada.kim@example.com", "DEP-it", [roles.AGENT]),
    ("USR-finance-hod", "Farah Noor", "farah.noor@example.com", "DEP-finance", [roles.HEAD_OF_DEPARTMENT]),
    ("USR-ops-manager", "Omar Reyes", "omar.reyes@example.com", "DEP-operations", [roles.LINE_MANAGER]),
    ("USR-ops-requester", "Rita Lowe", "rita.lowe@example.com", "DEP-operations", [roles.REQUESTER]),
    ("USR-director", "Dana Cole", "dana.cole@example.com", "DEP-operations", [roles.DIRECTOR]),
]

CATEGORIES = [
    TicketCategory(
        category_id="CAT-hardware", name="Hardware Request", slug="hardware-request",
        default_team_id="DEP-it", requires_approval=True, requires_hod_approval=True,
        hod_approval_threshold=1000
    ),
    TicketCategory(
        category_id="CAT-software", name="Software Issue", slug="software-issue",
        default_team_id="DEP-it", requires_approval=False
    ),
    TicketCategory(
        category_id="CAT-access", name="System Access", slug="system-access",
        default_team_id="DEP-it", requires_approval=True, requires_hod_approval=True
    ),
]


def seed_directory() -> None:
    repo = DirectoryRepository()
    now = utc_now()

    for department_id, name, code, manager_id in DEPARTMENTS:
        repo.save_department(Department(department_id=department_id, name=name, code=code, manager_id=manager_id))
    print(f"Departments: {len(DEPARTMENTS)}")

    for offset, (user_id, name, email, department_id, user_roles) in enumerate(USERS):
        repo.save_user(User(
            user_id=user_id, name=name, email=email, department_id=department_id,
            roles=user_roles, created_at=now + timedelta(seconds=offset)
        ))
    print(f"Users: {len(USERS)}")

    for category in CATEGORIES:
        repo.save_category(category)
    print(f"Categories: {len(CATEGORIES)}")


def seed_rules() -> None:
    repo = RuleRepository()
    now = utc_now()

    if not repo.list_escalation_rules():
        repo.create_escalation_rule(EscalationRule(
            rule_id=generate_rule_id(),
            name="Critical tickets unattended for 30 minutes",
            conditions=[Condition(field="priority", operator="equals", value="critical")],
            time_trigger_type="created_at",
            time_trigger_minutes=30,
            actions=[RuleAction(type="notify_manager"), RuleAction(type="reassign_to_team", value="DEP-it")],
            priority=90,
            created_at=now,
            updated_at=now
        ))
        repo.create_escalation_rule(EscalationRule(
            rule_id=generate_rule_id(),
            name="Resolution overdue by 1 hour",
            time_trigger_type="resolution_due_at",
            time_trigger_minutes=60,
            actions=[RuleAction(type="change_priority", value="high"), RuleAction(type="notify_team", value="DEP-it")],
            priority=50,
            created_at=now,
            updated_at=now
        ))
        print("Escalation rules: 2")

    if not repo.list_automation_rules():
        repo.create_automation_rule(AutomationRule(
            rule_id=generate_rule_id(),
            name="Tag VPN tickets",
            trigger_event="ticket_created",
            conditions=[Condition(field="subject", operator="contains", value="VPN")],
            actions=[RuleAction(type="add_tags", value=["vpn", "network"]), RuleAction(type="assign_to_team", value="DEP-it")],
            priority=10,
            created_at=now,
            updated_at=now
        ))
        print("Automation rules: 1")


def main() -> None:
    create_indexes()
    seed_directory()
    seed_rules()
    print("Seed complete.")


if __name__ == "__main__":
    main()
