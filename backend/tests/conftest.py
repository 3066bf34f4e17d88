"""
Pytest Configuration and Fixtures

MongoDB is replaced by mongomock through the repository layer's database
hook, so every test starts with an empty in-memory database.
"""

import os
import tempfile
from datetime import timedelta
from typing import Any, Callable, Dict

# Must be set before helpdesk.config.settings is imported
os.environ.setdefault("LOGS_PATH", os.path.join(tempfile.gettempdir(), "helpdesk-test-logs"))
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import mongomock
import pytest

from helpdesk.repositories import mongo_client
from helpdesk.repositories.directory_repo import DirectoryRepository
from helpdesk.repositories.ticket_repo import TicketRepository
from helpdesk.domain import roles
from helpdesk.domain.models import ActorContext, Department, Ticket, TicketCategory, User
from helpdesk.utils.idgen import generate_ticket_id, generate_ticket_number_candidate
from helpdesk.utils.time import utc_now


@pytest.fixture(autouse=True)
def mongo_db(monkeypatch):
    """Fresh in-memory database for each test"""
    db = mongomock.MongoClient().db
    monkeypatch.setattr(mongo_client, "_database", db)
    yield db


# user_id -> (name, department_id, roles)
USERS = {
    "USR-requester": ("Rita Requester", "DEP-ops", [roles.REQUESTER]),
    "USR-lm": ("Liam Linemanager", "DEP-ops", [roles.LINE_MANAGER]),
    "USR-hod": ("Hana Head", "DEP-ops", [roles.HEAD_OF_DEPARTMENT]),
    "USR-it-manager": ("Ivan Manager", "DEP-it", [roles.MANAGER]),
    "USR-it-agent": ("Alice Agent", "DEP-it", [roles.AGENT]),
    "USR-director": ("Dora Director", "DEP-ops", [roles.DIRECTOR]),
    "USR-admin": ("Sam Admin", "DEP-it", [roles.SUPER_ADMIN]),
}


@pytest.fixture
def directory(mongo_db) -> DirectoryRepository:
    """Departments, users and categories used across tests"""
    repo = DirectoryRepository()
    now = utc_now()

    repo.save_department(Department(
        department_id="DEP-it", name="IT Service Desk", code="IT-SD", manager_id="USR-it-manager"
    ))
    repo.save_department(Department(
        department_id="DEP-ops", name="Operations", code="OPS", manager_id="USR-lm"
    ))
    repo.save_department(Department(department_id="DEP-fin", name="Finance", code="FIN"))

    for offset, (user_id, (name, department_id, user_roles)) in enumerate(USERS.items()):
        repo.save_user(User(
            user_id=user_id,
            name=name,
            email=f"{user_id.lower()}@example.com",
            department_id=department_id,
            roles=user_roles,
            created_at=now + timedelta(seconds=offset)
        ))

    repo.save_category(TicketCategory(
        category_id="CAT-hw", name="Hardware", slug="hardware", default_team_id="DEP-it",
        requires_approval=True, requires_hod_approval=True, hod_approval_threshold=1000
    ))
    repo.save_category(TicketCategory(
        category_id="CAT-sw", name="Software", slug="software", default_team_id="DEP-it",
        requires_approval=False
    ))
    repo.save_category(TicketCategory(
        category_id="CAT-access", name="Access", slug="access", default_team_id="DEP-it",
        requires_approval=True, requires_hod_approval=True
    ))
    repo.save_category(TicketCategory(
        category_id="CAT-misc", name="Miscellaneous", slug="misc", requires_approval=True
    ))
    return repo


@pytest.fixture
def actor(directory) -> Callable[[str], ActorContext]:
    """Build an ActorContext for a seeded user"""
    def _actor(user_id: str) -> ActorContext:
        return ActorContext.from_user(directory.get_user_or_raise(user_id))
    return _actor


@pytest.fixture
def make_ticket(mongo_db) -> Callable[..., Ticket]:
    """Insert a ticket directly, bypassing automation and approvals"""
    repo = TicketRepository()

    def _make(**overrides: Any) -> Ticket:
        now = utc_now()
        data: Dict[str, Any] = {
            "ticket_id": generate_ticket_id(),
            "ticket_number": generate_ticket_number_candidate(),
            "subject": "Laptop will not boot",
            "requester_id": "USR-requester",
            "created_at": now,
            "updated_at": now,
        }
        data.update(overrides)
        return repo.create_ticket(Ticket(**data))

    return _make
