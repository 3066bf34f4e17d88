"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection
from .ticket_repo import TicketRepository
from .approval_repo import ApprovalRepository
from .history_repo import HistoryRepository
from .directory_repo import DirectoryRepository
from .rule_repo import RuleRepository
from .notification_repo import NotificationRepository
from .job_lock_repo import JobLockRepository

__all__ = [
    "get_database",
    "get_collection",
    "TicketRepository",
    "ApprovalRepository",
    "HistoryRepository",
    "DirectoryRepository",
    "RuleRepository",
    "NotificationRepository",
    "JobLockRepository",
]
