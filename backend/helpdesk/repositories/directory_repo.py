"""Directory Repository - Users, departments and ticket categories"""
from typing import Iterable, List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import get_collection
from ..domain.models import User, Department, TicketCategory
from ..domain.errors import UserNotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Deterministic "first user" ordering for approver lookups
USER_ORDER = [("created_at", ASCENDING), ("user_id", ASCENDING)]


class DirectoryRepository:
    """Repository for directory data loaded by the seed script"""

    def __init__(self):
        self._users: Collection = get_collection("users")
        self._departments: Collection = get_collection("departments")
        self._categories: Collection = get_collection("ticket_categories")

    # =========================================================================
    # Users
    # =========================================================================

    def save_user(self, user: User) -> User:
        """Insert or replace a user"""
        doc = user.model_dump()
        doc["_id"] = user.user_id
        self._users.replace_one({"_id": user.user_id}, doc, upsert=True)
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        doc = self._users.find_one({"user_id": user_id})
        if doc:
            doc.pop("_id", None)
            return User.model_validate(doc)
        return None

    def get_user_or_raise(self, user_id: str) -> User:
        user = self.get_user(user_id)
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    def find_first_user_with_roles(
        self,
        roles: Iterable[str],
        department_id: Optional[str] = None
    ) -> Optional[User]:
        """First active user holding any of the roles, optionally within a department"""
        query = {"is_active": True, "roles": {"$in": list(roles)}}
        if department_id:
            query["department_id"] = department_id
        for doc in self._users.find(query).sort(USER_ORDER).limit(1):
            doc.pop("_id", None)
            return User.model_validate(doc)
        return None

    def list_active_users_in_department(self, department_id: str) -> List[User]:
        cursor = self._users.find(
            {"department_id": department_id, "is_active": True}
        ).sort(USER_ORDER)
        users = []
        for doc in cursor:
            doc.pop("_id", None)
            users.append(User.model_validate(doc))
        return users

    # =========================================================================
    # Departments
    # =========================================================================

    def save_department(self, department: Department) -> Department:
        doc = department.model_dump()
        doc["_id"] = department.department_id
        self._departments.replace_one({"_id": department.department_id}, doc, upsert=True)
        return department

    def get_department(self, department_id: str) -> Optional[Department]:
        doc = self._departments.find_one({"department_id": department_id})
        if doc:
            doc.pop("_id", None)
            return Department.model_validate(doc)
        return None

    def find_department_by_code(self, code: str) -> Optional[Department]:
        doc = self._departments.find_one({"code": code})
        if doc:
            doc.pop("_id", None)
            return Department.model_validate(doc)
        return None

    def find_department_by_name_pattern(self, pattern: str) -> Optional[Department]:
        """First department whose name matches the regex"""
        cursor = self._departments.find({"name": {"$regex": pattern}}).sort("department_id", ASCENDING).limit(1)
        for doc in cursor:
            doc.pop("_id", None)
            return Department.model_validate(doc)
        return None

    # =========================================================================
    # Categories
    # =========================================================================

    def save_category(self, category: TicketCategory) -> TicketCategory:
        doc = category.model_dump()
        doc["_id"] = category.category_id
        self._categories.replace_one({"_id": category.category_id}, doc, upsert=True)
        return category

    def get_category(self, category_id: str) -> Optional[TicketCategory]:
        doc = self._categories.find_one({"category_id": category_id})
        if doc:
            doc.pop("_id", None)
            return TicketCategory.model_validate(doc)
        return None
