"""Notification Service - In-app notifications and approval emails for ticket events

Notifications are best effort: a failure to store one (or to queue its email)
is logged and never breaks the workflow step that triggered it.
"""
from typing import Any, Callable, Dict, List, Optional

from ..domain.models import Notification, Ticket, TicketApproval, ActorContext
from ..domain.enums import NotificationType, ApprovalLevel
from ..repositories.notification_repo import NotificationRepository
from ..repositories.directory_repo import DirectoryRepository
from .email_service import EmailService
from ..utils.idgen import generate_notification_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationService:
    """Service for creating and reading in-app notifications"""

    def __init__(self):
        self.repo = NotificationRepository()
        self.directory_repo = DirectoryRepository()
        self.email_service = EmailService()

    # =========================================================================
    # Delivery
    # =========================================================================

    def notify_user(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        ticket: Optional[Ticket] = None,
        related_user_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None
    ) -> Optional[Notification]:
        """Store a notification for one user"""
        try:
            notification = Notification(
                notification_id=generate_notification_id(),
                user_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                ticket_id=ticket.ticket_id if ticket else None,
                related_user_id=related_user_id,
                data=data,
                created_at=utc_now()
            )
            return self.repo.create_notification(notification)
        except Exception as e:
            logger.warning(
                f"Failed to create notification for {user_id}: {e}",
                extra={"user_id": user_id, "ticket_id": ticket.ticket_id if ticket else None}
            )
            return None

    def notify_team(
        self,
        department_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        ticket: Optional[Ticket] = None,
        data: Optional[Dict[str, Any]] = None
    ) -> List[Notification]:
        """Notify every active user of a department"""
        sent = []
        for user in self.directory_repo.list_active_users_in_department(department_id):
            notification = self.notify_user(
                user.user_id, notification_type, title, message, ticket=ticket, data=data
            )
            if notification:
                sent.append(notification)
        return sent

    def notify_requester(
        self,
        ticket: Ticket,
        notification_type: NotificationType,
        title: str,
        message: str,
        related_user_id: Optional[str] = None
    ) -> Optional[Notification]:
        return self.notify_user(
            ticket.requester_id, notification_type, title, message,
            ticket=ticket, related_user_id=related_user_id
        )

    # =========================================================================
    # Workflow notifications
    # =========================================================================

    def notify_approval_requested(
        self,
        approval: TicketApproval,
        ticket: Ticket,
        approver_id: str
    ) -> Optional[Notification]:
        label = ApprovalLevel(approval.approval_level).label
        notification = self.notify_user(
            approver_id,
            NotificationType.APPROVAL_REQUESTED,
            title=f"{label} approval required: {ticket.ticket_number}",
            message=f"Ticket '{ticket.subject}' is waiting for your approval.",
            ticket=ticket,
            related_user_id=ticket.requester_id,
            data={"approval_id": approval.approval_id, "approval_level": approval.approval_level}
        )
        approver = self.directory_repo.get_user(approver_id)
        if approver:
            self._queue_email(self.email_service.enqueue_approval_requested, approval, ticket, approver)
        return notification

    def notify_approval_approved(
        self,
        approval: TicketApproval,
        ticket: Ticket,
        actor: ActorContext
    ) -> Optional[Notification]:
        label = ApprovalLevel(approval.approval_level).label
        notification = self.notify_requester(
            ticket,
            NotificationType.APPROVAL_APPROVED,
            title=f"{label} approval granted: {ticket.ticket_number}",
            message=f"{actor.name} approved your ticket '{ticket.subject}'.",
            related_user_id=actor.user_id
        )
        self._queue_email(self.email_service.enqueue_approval_approved, approval, ticket, actor)
        return notification

    def notify_approval_rejected(
        self,
        approval: TicketApproval,
        ticket: Ticket,
        actor: ActorContext,
        comment: str
    ) -> Optional[Notification]:
        label = ApprovalLevel(approval.approval_level).label
        notification = self.notify_requester(
            ticket,
            NotificationType.APPROVAL_REJECTED,
            title=f"{label} approval rejected: {ticket.ticket_number}",
            message=f"{actor.name} rejected your ticket '{ticket.subject}': {comment}",
            related_user_id=actor.user_id
        )
        self._queue_email(self.email_service.enqueue_approval_rejected, approval, ticket, actor, comment)
        return notification

    def _queue_email(self, enqueue: Callable[..., Any], approval: TicketApproval, ticket: Ticket, *args: Any) -> None:
        try:
            enqueue(approval, ticket, *args)
        except Exception as e:
            logger.warning(
                f"Failed to queue approval email for {ticket.ticket_number}: {e}",
                extra={"ticket_id": ticket.ticket_id, "approval_id": approval.approval_id}
            )

    def ticket_escalated_message(self, ticket: Ticket, rule_name: str) -> Dict[str, str]:
        """Title and message used for escalation notifications"""
        return {
            "title": f"Ticket escalated: {ticket.ticket_number}",
            "message": f"Ticket '{ticket.subject}' was escalated by rule '{rule_name}'.",
        }

    # =========================================================================
    # Inbox
    # =========================================================================

    def list_notifications(self, user_id: str, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        return self.repo.list_for_user(user_id, unread_only=unread_only, limit=limit)

    def count_unread(self, user_id: str) -> int:
        return self.repo.count_unread(user_id)

    def mark_read(self, notification_id: str, user_id: str) -> Notification:
        return self.repo.mark_read(notification_id, user_id)
