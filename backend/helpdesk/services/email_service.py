"""Email Service - Approval emails through the outbox

Workflow steps only queue emails. The delivery job picks pending emails up,
renders them and posts them to the configured mail relay; failures are
retried with backoff by the outbox repository.
"""
import os
import socket
from typing import Any, Dict, List, Optional
import httpx

from ..config.settings import settings
from ..domain.models import ActorContext, EmailOutbox, Ticket, TicketApproval, User
from ..domain.enums import ApprovalLevel, EmailTemplateKey, TicketStatus
from ..domain.errors import EmailSendError
from ..repositories.email_outbox_repo import EmailOutboxRepository
from ..repositories.directory_repo import DirectoryRepository
from ..repositories.job_lock_repo import JobLockRepository
from ..templates import get_email_template
from ..utils.idgen import generate_email_id, generate_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

JOB_NAME = "send_emails"


class EmailService:
    """Service for queueing and delivering approval emails"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.repo = EmailOutboxRepository()
        self.directory_repo = DirectoryRepository()
        self.lock_repo = JobLockRepository()
        self._transport = transport

    # =========================================================================
    # Queueing
    # =========================================================================

    def enqueue_email(
        self,
        template_key: EmailTemplateKey,
        recipients: List[str],
        payload: Dict[str, Any],
        ticket_id: Optional[str] = None
    ) -> Optional[EmailOutbox]:
        """Queue an email; returns None when email is disabled or there is no recipient"""
        if not settings.email_enabled:
            return None
        if not recipients:
            logger.info(f"No recipients for {template_key.value}, email skipped", extra={"ticket_id": ticket_id})
            return None

        email = EmailOutbox(
            email_id=generate_email_id(),
            ticket_id=ticket_id,
            template_key=template_key,
            recipients=recipients,
            payload=payload,
            next_retry_ts=utc_now().timestamp(),
            created_at=utc_now()
        )
        return self.repo.create_email(email)

    def enqueue_approval_requested(
        self,
        approval: TicketApproval,
        ticket: Ticket,
        approver: User
    ) -> Optional[EmailOutbox]:
        """Ask the LM or HOD approver for a decision"""
        payload = self._ticket_payload(ticket, approval)
        payload["approver_name"] = approver.name
        payload["is_hod"] = approval.approval_level == ApprovalLevel.HOD.value
        return self.enqueue_email(
            EmailTemplateKey.APPROVAL_REQUESTED, [approver.email], payload, ticket.ticket_id
        )

    def enqueue_approval_approved(
        self,
        approval: TicketApproval,
        ticket: Ticket,
        actor: ActorContext
    ) -> Optional[EmailOutbox]:
        """Tell the requester one approval level was granted"""
        payload = self._ticket_payload(ticket, approval)
        payload["approver_name"] = actor.name
        payload["comments"] = approval.comments or ""
        return self._enqueue_to_requester(EmailTemplateKey.APPROVAL_APPROVED, ticket, payload)

    def enqueue_approval_rejected(
        self,
        approval: TicketApproval,
        ticket: Ticket,
        actor: ActorContext,
        comment: str
    ) -> Optional[EmailOutbox]:
        """Tell the requester the ticket was rejected and why"""
        payload = self._ticket_payload(ticket, approval)
        payload["approver_name"] = actor.name
        payload["comments"] = comment
        payload["status"] = TicketStatus.CANCELLED.value
        return self._enqueue_to_requester(EmailTemplateKey.APPROVAL_REJECTED, ticket, payload)

    def _enqueue_to_requester(
        self,
        template_key: EmailTemplateKey,
        ticket: Ticket,
        payload: Dict[str, Any]
    ) -> Optional[EmailOutbox]:
        requester = self.directory_repo.get_user(ticket.requester_id)
        recipients = [requester.email] if requester and requester.is_active else []
        return self.enqueue_email(template_key, recipients, payload, ticket.ticket_id)

    def _ticket_payload(self, ticket: Ticket, approval: TicketApproval) -> Dict[str, Any]:
        requester = self.directory_repo.get_user(ticket.requester_id)
        return {
            "ticket_id": ticket.ticket_id,
            "ticket_number": ticket.ticket_number,
            "subject": ticket.subject,
            "requester_name": requester.name if requester else ticket.requester_id,
            "priority": ticket.priority,
            "status": ticket.status,
            "approval_id": approval.approval_id,
            "approval_level": ApprovalLevel(approval.approval_level).label,
        }

    # =========================================================================
    # Delivery
    # =========================================================================

    def build_email_content(self, email: EmailOutbox) -> Dict[str, str]:
        """Subject and HTML body for a queued email"""
        return get_email_template(
            email.template_key,
            email.payload,
            app_url=settings.frontend_url,
            app_name=settings.app_name
        )

    async def send_email(self, email: EmailOutbox) -> bool:
        """
        Render and send one queued email

        Returns True if the relay accepted it. A failure is recorded on the
        outbox entry for a later retry and never raised.
        """
        start_time = utc_now()
        try:
            content = self.build_email_content(email)
            await self._post_to_relay(email.recipients, content["subject"], content["body"])
        except Exception as e:
            self.repo.mark_failed(email.email_id, str(e))
            logger.error(
                f"Failed to send email: {email.email_id}",
                extra={
                    "email_id": email.email_id,
                    "template": email.template_key,
                    "error_type": type(e).__name__,
                    "retry_count": email.retry_count + 1
                }
            )
            return False

        self.repo.mark_sent(email.email_id)
        processing_time_ms = (utc_now() - start_time).total_seconds() * 1000
        logger.info(
            f"Sent email: {email.email_id}",
            extra={
                "email_id": email.email_id,
                "template": email.template_key,
                "recipients_count": len(email.recipients),
                "processing_time_ms": round(processing_time_ms, 2)
            }
        )
        return True

    async def _post_to_relay(self, recipients: List[str], subject: str, body: str) -> None:
        if not settings.email_api_url:
            raise EmailSendError("Email relay is not configured")

        headers = {"Content-Type": "application/json"}
        if settings.email_api_token:
            headers["Authorization"] = f"Bearer {settings.email_api_token}"
        message = {
            "from": settings.email_from,
            "to": recipients,
            "subject": subject,
            "html": body,
        }

        async with httpx.AsyncClient(transport=self._transport, timeout=settings.email_timeout_seconds) as client:
            response = await client.post(settings.email_api_url, headers=headers, json=message)

        if response.status_code not in (200, 202):
            raise EmailSendError(
                f"Mail relay returned {response.status_code}",
                details={"status_code": response.status_code, "response": response.text[:500]}
            )

    async def deliver_pending(self, owner: Optional[str] = None) -> Dict[str, int]:
        """
        Send one batch of due emails under the cross-process job lock

        Returns counts of sent and failed emails; ``skipped_locked`` is 1 when
        another process holds the lock.
        """
        owner = owner or f"{socket.gethostname()}-{os.getpid()}-{generate_id()}"
        counts = {"sent": 0, "failed": 0, "skipped_locked": 0}
        if not self.lock_repo.acquire(JOB_NAME, owner, settings.escalation_lock_seconds):
            counts["skipped_locked"] = 1
            return counts

        try:
            for email in self.repo.get_pending_emails(limit=settings.email_batch_size):
                if await self.send_email(email):
                    counts["sent"] += 1
                else:
                    counts["failed"] += 1
        finally:
            self.lock_repo.release(JOB_NAME, owner)
        return counts
