"""Escalation Scheduler - Periodic escalation checks and email delivery

Runs the escalation checker on an interval (default every 15 minutes) and,
when a mail relay is configured, sends queued approval emails every minute.
Overlap is prevented twice: APScheduler never starts a second instance of
the job in this process, and the MongoDB job lock keeps other processes
(other servers, the CLI) from running at the same time.
"""
import asyncio
import os
import socket
from typing import Dict, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config.settings import settings
from ..domain.models import EscalationRunResult
from ..services.email_service import EmailService
from ..services.escalation_service import EscalationService
from ..utils.logger import get_logger, set_correlation_id
from ..utils.idgen import generate_correlation_id, generate_id
from ..utils.time import utc_now

logger = get_logger(__name__)

JOB_ID = "check_escalations"
EMAIL_JOB_ID = "send_emails"


class EscalationScheduler:
    """APScheduler wrapper owning the escalation job and the email job"""

    def __init__(self):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._is_running = False
        self._server_id = self._generate_server_id()
        self._run_count = 0

    def _generate_server_id(self) -> str:
        """Unique owner id for the job lock"""
        return f"{socket.gethostname()}-{os.getpid()}-{generate_id()[:8]}"

    def start(self) -> None:
        """Start the scheduler"""
        if self._is_running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._check_escalations,
            trigger=IntervalTrigger(minutes=settings.escalation_interval_minutes),
            id=JOB_ID,
            name="Check ticket escalations",
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        if settings.email_delivery_enabled:
            self.scheduler.add_job(
                self._send_emails,
                trigger=IntervalTrigger(minutes=settings.email_interval_minutes),
                id=EMAIL_JOB_ID,
                name="Send queued emails",
                max_instances=1,
                coalesce=True,
                replace_existing=True
            )
        self.scheduler.start()
        self._is_running = True
        logger.info(
            f"Escalation scheduler started, every {settings.escalation_interval_minutes} minutes",
            extra={"action": "scheduler_start"}
        )

    def stop(self) -> None:
        """Stop the scheduler"""
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("Escalation scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def _check_escalations(self) -> Optional[EscalationRunResult]:
        """Job body; the blocking check runs in a worker thread"""
        set_correlation_id(generate_correlation_id())
        start_time = utc_now()
        try:
            result = await asyncio.to_thread(self._run_once)
        except Exception as e:
            logger.error(f"Error in escalation job: {e}", extra={"error_code": type(e).__name__}, exc_info=True)
            return None

        self._run_count += 1
        duration_ms = (utc_now() - start_time).total_seconds() * 1000
        logger.info(
            f"Escalation job finished in {round(duration_ms, 2)}ms "
            f"({result.tickets_escalated} escalated, skipped_locked={result.skipped_locked})",
            extra={"status": "locked" if result.skipped_locked else "completed"}
        )
        return result

    def _run_once(self) -> EscalationRunResult:
        # ContextVars are copied into the worker thread by asyncio.to_thread
        return EscalationService().run_exclusive(owner=self._server_id)

    async def _send_emails(self) -> Optional[Dict[str, int]]:
        """Email job body; delivery is async so it runs on the event loop"""
        set_correlation_id(generate_correlation_id())
        try:
            counts = await EmailService().deliver_pending(owner=self._server_id)
        except Exception as e:
            logger.error(f"Error in email job: {e}", extra={"error_code": type(e).__name__}, exc_info=True)
            return None

        if counts["sent"] or counts["failed"]:
            logger.info(
                f"Email job sent {counts['sent']}, failed {counts['failed']}",
                extra={"status": "completed"}
            )
        return counts


# Global scheduler instance
_scheduler: Optional[EscalationScheduler] = None


def get_scheduler() -> EscalationScheduler:
    """Get or create scheduler instance"""
    global _scheduler
    if _scheduler is None:
        _scheduler = EscalationScheduler()
    return _scheduler


def start_scheduler() -> None:
    """Start the global scheduler"""
    get_scheduler().start()


def stop_scheduler() -> None:
    """Stop the global scheduler"""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
