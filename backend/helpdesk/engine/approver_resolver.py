"""Approver Resolver - Find the user who signs off each approval level"""
from typing import Optional

from ..domain.models import Ticket, TicketCategory, User, Department
from ..domain.roles import APPROVAL_ROLES, HOD_ROLES, DIRECTOR, SUPER_ADMIN
from ..repositories.directory_repo import DirectoryRepository
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Fallback team name match when no department carries the fallback code
IT_TEAM_NAME_PATTERN = r"\bIT\b|Information Technology"


class ApproverResolver:
    """
    Resolve approvers and routing teams from the directory

    "First" user always means lowest created_at, then user_id.
    """

    def __init__(self):
        self.directory_repo = DirectoryRepository()

    def resolve_line_manager(self, ticket: Ticket, requester: Optional[User]) -> Optional[User]:
        """
        Line manager lookup order:
        1. Approval-role user in the requester's department
        2. Approval-role user in the ticket's assigned team
        3. Any approval-role user
        """
        if requester and requester.department_id:
            user = self.directory_repo.find_first_user_with_roles(APPROVAL_ROLES, requester.department_id)
            if user:
                return user

        if ticket.assigned_team_id:
            user = self.directory_repo.find_first_user_with_roles(APPROVAL_ROLES, ticket.assigned_team_id)
            if user:
                return user

        user = self.directory_repo.find_first_user_with_roles(APPROVAL_ROLES)
        if user is None:
            logger.warning(
                f"No line manager found for ticket {ticket.ticket_number}",
                extra={"ticket_id": ticket.ticket_id}
            )
        return user

    def resolve_hod(
        self,
        ticket: Ticket,
        category: Optional[TicketCategory],
        requester: Optional[User]
    ) -> Optional[User]:
        """
        HOD lookup order: assigned team, category default team, requester's
        department, any HOD, then any Director, then any Super Admin.
        """
        department_ids = [
            ticket.assigned_team_id,
            category.default_team_id if category else None,
            requester.department_id if requester else None,
        ]
        for department_id in department_ids:
            if not department_id:
                continue
            user = self.directory_repo.find_first_user_with_roles(HOD_ROLES, department_id)
            if user:
                return user

        user = self.directory_repo.find_first_user_with_roles(HOD_ROLES)
        if user:
            return user

        for role in (DIRECTOR, SUPER_ADMIN):
            user = self.directory_repo.find_first_user_with_roles([role])
            if user:
                logger.warning(
                    f"No HOD found for ticket {ticket.ticket_number}, falling back to {role}",
                    extra={"ticket_id": ticket.ticket_id, "approver_id": user.user_id}
                )
                return user

        logger.warning(
            f"No HOD approver found for ticket {ticket.ticket_number}",
            extra={"ticket_id": ticket.ticket_id}
        )
        return None

    def resolve_fallback_team(self, team_code: str) -> Optional[Department]:
        """IT team used when an LM-approved ticket has no routing team"""
        department = self.directory_repo.find_department_by_code(team_code)
        if department:
            return department
        return self.directory_repo.find_department_by_name_pattern(IT_TEAM_NAME_PATTERN)
