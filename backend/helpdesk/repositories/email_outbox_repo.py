"""Email Outbox Repository - Queued approval emails

Emails are written here by the workflow and sent later by the delivery job,
so a slow or failing mail relay never holds up an approval decision.
"""
from datetime import datetime, timedelta
from typing import List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import get_collection
from ..config.settings import settings
from ..domain.models import EmailOutbox
from ..domain.enums import EmailStatus
from ..domain.errors import NotFoundError
from ..utils.logger import get_logger
from ..utils.time import ensure_utc, utc_now

logger = get_logger(__name__)


class EmailOutboxRepository:
    """Repository for the email outbox"""

    def __init__(self):
        self._outbox: Collection = get_collection("email_outbox")

    def create_email(self, email: EmailOutbox) -> EmailOutbox:
        doc = email.model_dump()
        doc["_id"] = email.email_id

        self._outbox.insert_one(doc)
        logger.info(
            f"Queued email: {email.template_key}",
            extra={"email_id": email.email_id, "ticket_id": email.ticket_id}
        )
        return email

    def get_email(self, email_id: str) -> Optional[EmailOutbox]:
        doc = self._outbox.find_one({"email_id": email_id})
        if doc:
            doc.pop("_id", None)
            return EmailOutbox.model_validate(doc)
        return None

    def get_pending_emails(self, limit: int = 50, now: Optional[datetime] = None) -> List[EmailOutbox]:
        """Pending emails whose retry time has come, oldest first"""
        now = ensure_utc(now) if now else utc_now()
        cursor = self._outbox.find({
            "status": EmailStatus.PENDING.value,
            "next_retry_ts": {"$lte": now.timestamp()},
        }).sort("created_at", ASCENDING).limit(limit)

        emails = []
        for doc in cursor:
            doc.pop("_id", None)
            emails.append(EmailOutbox.model_validate(doc))
        return emails

    def list_for_ticket(self, ticket_id: str) -> List[EmailOutbox]:
        cursor = self._outbox.find({"ticket_id": ticket_id}).sort("created_at", ASCENDING)
        emails = []
        for doc in cursor:
            doc.pop("_id", None)
            emails.append(EmailOutbox.model_validate(doc))
        return emails

    def mark_sent(self, email_id: str) -> EmailOutbox:
        result = self._outbox.find_one_and_update(
            {"email_id": email_id},
            {"$set": {
                "status": EmailStatus.SENT.value,
                "sent_at": utc_now(),
                "next_retry_at": None,
                "next_retry_ts": 0.0,
            }},
            return_document=True
        )
        if result is None:
            raise NotFoundError(f"Email {email_id} not found")
        result.pop("_id", None)
        return EmailOutbox.model_validate(result)

    def mark_failed(self, email_id: str, error: str) -> EmailOutbox:
        """
        Record a failed attempt

        The email is retried after 1, 2, 4, ... minutes until
        ``email_max_retries`` attempts have failed, then marked failed.
        """
        email = self.get_email(email_id)
        if not email:
            raise NotFoundError(f"Email {email_id} not found")

        retry_count = email.retry_count + 1
        if retry_count >= settings.email_max_retries:
            status, next_retry = EmailStatus.FAILED.value, None
        else:
            status = EmailStatus.PENDING.value
            next_retry = utc_now() + timedelta(minutes=2 ** email.retry_count)

        result = self._outbox.find_one_and_update(
            {"email_id": email_id},
            {"$set": {
                "status": status,
                "retry_count": retry_count,
                "last_error": error,
                "next_retry_at": next_retry,
                "next_retry_ts": next_retry.timestamp() if next_retry else 0.0,
            }},
            return_document=True
        )
        result.pop("_id", None)
        logger.warning(
            f"Email {email_id} failed (attempt {retry_count})",
            extra={"email_id": email_id, "status": status}
        )
        return EmailOutbox.model_validate(result)
