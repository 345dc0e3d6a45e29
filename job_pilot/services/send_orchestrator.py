from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from job_pilot.config import settings
from job_pilot.constants import LOG_SEND, SEND_LOCK
from job_pilot.errors import JobPilotError, NotFoundError
from job_pilot.models import ApplicationStatus, JobApplication, JobStage
from job_pilot.services.accounts import add_activity, load_user_settings
from job_pilot.services.duplicates import check_duplicate
from job_pilot.services.mailer import DeliveryResult, Mailer, text_to_html
from job_pilot.services.readiness import check_readiness
from job_pilot.services.send_limiter import can_send_now
from job_pilot.services.system_lock import acquire_lock, release_lock
from job_pilot.services.system_log import write_system_log
from job_pilot.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SendOutcome:
    application_id: int
    status: str  # "sent", "failed", "cancelled" or "skipped"
    reason: Optional[str] = None
    rate_limited: bool = False


@dataclass
class BatchResult:
    skipped: bool = False
    reason: Optional[str] = None
    processed: int = 0
    sent: int = 0
    failed: int = 0
    cancelled: int = 0
    deferred: int = 0
    errors: int = 0
    partial: bool = False
    outcomes: list[SendOutcome] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "skipped": self.skipped,
            "reason": self.reason,
            "processed": self.processed,
            "sent": self.sent,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "deferred": self.deferred,
            "errors": self.errors,
            "partial": self.partial,
        }


def _claim_for_sending(db: Session, application_id: int, now: datetime) -> bool:
    """READY -> SENDING as one conditional write; False if someone else got there first."""
    result = db.execute(
        update(JobApplication)
        .where(JobApplication.id == application_id, JobApplication.status == ApplicationStatus.READY)
        .values(status=ApplicationStatus.SENDING, sending_started_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


async def _deliver(mailer: Mailer, application: JobApplication, timeout: float) -> DeliveryResult:
    try:
        return await asyncio.wait_for(
            mailer.send(
                application.sender_email,
                application.recipient_email,
                application.subject,
                text_to_html(application.body),
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        return DeliveryResult(success=False, error=f"Delivery timed out after {timeout:.0f}s")
    except Exception as e:
        logger.error(f"Mailer raised while sending application {application.id}: {e}")
        return DeliveryResult(success=False, error=str(e) or type(e).__name__)


async def send_application(
    db: Session,
    application_id: int,
    mailer: Mailer,
    now: Optional[datetime] = None,
    timeout: Optional[float] = None,
) -> SendOutcome:
    """Run every gate for one READY application, then deliver it."""
    now = now or utcnow()
    application = db.get(JobApplication, application_id)
    if application is None:
        raise NotFoundError("Application not found")
    db.refresh(application)

    if application.status != ApplicationStatus.READY:
        return SendOutcome(application_id, "skipped", f"status is {ApplicationStatus(application.status).value}")
    if application.scheduled_send_at is not None and application.scheduled_send_at > now:
        return SendOutcome(application_id, "skipped", "scheduled for later")

    report = check_readiness(db, application.user_id)
    if not report.ready:
        return SendOutcome(application_id, "skipped", f"setup incomplete: {', '.join(report.missing)}")

    user_settings = load_user_settings(db, application.user_id)
    limit = can_send_now(db, user_settings, now=now)
    if not limit.allowed:
        return SendOutcome(application_id, "skipped", limit.reason, rate_limited=True)

    job = application.user_job.global_job
    if not application.recipient_email:
        application.transition(ApplicationStatus.CANCELLED)
        application.error_message = "No recipient email address"
        db.commit()
        return SendOutcome(application_id, "cancelled", application.error_message)
    if not application.sender_email:
        application.sender_email = user_settings.application_email

    duplicate = check_duplicate(db, application.user_id, job, exclude_application_id=application.id, now=now)
    if duplicate.is_duplicate:
        application.transition(ApplicationStatus.CANCELLED)
        application.error_message = duplicate.reason
        add_activity(db, application.user_id, "application_cancelled", f"Not sent: {duplicate.reason}",
                     user_job_id=application.user_job_id, now=now)
        db.commit()
        return SendOutcome(application_id, "cancelled", duplicate.reason)

    if not _claim_for_sending(db, application.id, now):
        return SendOutcome(application_id, "skipped", "already claimed by another sender")
    db.refresh(application)

    result = await _deliver(mailer, application, timeout or settings.send_timeout_seconds)

    if result.success:
        application.transition(ApplicationStatus.SENT)
        application.sent_at = now
        application.message_id = result.message_id
        application.error_message = None
        user_job = application.user_job
        user_job.stage = JobStage.APPLIED
        user_job.applied_at = now
        add_activity(db, application.user_id, "application_sent",
                     f"Application sent to {application.recipient_email} for {job.title} at {job.company}",
                     user_job_id=user_job.id, now=now)
        db.commit()
        logger.info(
            f"Application {application.id} sent to {application.recipient_email}",
            extra={"application_id": application.id, "user_id": application.user_id},
        )
        return SendOutcome(application_id, "sent")

    application.transition(ApplicationStatus.FAILED)
    application.retry_count = (application.retry_count or 0) + 1
    application.error_message = result.error or "Unknown delivery error"
    db.commit()
    logger.warning(f"Application {application.id} failed: {application.error_message}")
    return SendOutcome(application_id, "failed", application.error_message)


class SendInProgressError(JobPilotError):
    status_code = 409


async def send_single(
    db: Session,
    user_id: int,
    application_id: int,
    mailer: Mailer,
    now: Optional[datetime] = None,
) -> SendOutcome:
    """User-triggered send of one application; shares the batch lock."""
    application = db.get(JobApplication, application_id)
    if application is None or application.user_id != user_id:
        raise NotFoundError("Application not found")
    if not acquire_lock(db, SEND_LOCK, now=now):
        raise SendInProgressError("A send batch is running. Try again shortly.")
    try:
        return await send_application(db, application_id, mailer, now=now)
    finally:
        db.rollback()
        release_lock(db, SEND_LOCK)


async def run_send_batch(
    db: Session,
    mailer: Mailer,
    now: Optional[datetime] = None,
    batch_size: Optional[int] = None,
    inter_send_delay: Optional[float] = None,
    soft_limit_seconds: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable] = asyncio.sleep,
) -> BatchResult:
    """Send due READY applications oldest-first under the cluster-wide send lock.

    Stops early once the soft time budget is spent; whatever is left stays
    READY for the next invocation.
    """
    started = clock()
    batch_size = batch_size or settings.send_batch_size
    inter_send_delay = settings.inter_send_delay_seconds if inter_send_delay is None else inter_send_delay
    soft_limit_seconds = settings.cron_soft_limit_seconds if soft_limit_seconds is None else soft_limit_seconds

    if not acquire_lock(db, SEND_LOCK, now=now):
        return BatchResult(skipped=True, reason="send batch already running")

    result = BatchResult()
    try:
        cutoff = now or utcnow()
        due = (
            db.query(JobApplication.id, JobApplication.user_id)
            .filter(
                JobApplication.status == ApplicationStatus.READY,
                or_(JobApplication.scheduled_send_at.is_(None), JobApplication.scheduled_send_at <= cutoff),
            )
            .order_by(JobApplication.created_at, JobApplication.id)
            .limit(batch_size)
            .all()
        )

        limited_users: set[int] = set()
        for index, (application_id, user_id) in enumerate(due):
            if clock() - started > soft_limit_seconds:
                result.partial = True
                break
            if user_id in limited_users:
                result.deferred += 1
                continue

            try:
                outcome = await send_application(db, application_id, mailer, now=now or utcnow())
            except Exception as e:
                db.rollback()
                result.errors += 1
                logger.exception(f"Unexpected error sending application {application_id}: {e}")
                continue

            result.processed += 1
            result.outcomes.append(outcome)
            if outcome.status == "sent":
                result.sent += 1
            elif outcome.status == "failed":
                result.failed += 1
            elif outcome.status == "cancelled":
                result.cancelled += 1
            else:
                result.deferred += 1
                if outcome.rate_limited:
                    limited_users.add(user_id)

            if outcome.status in ("sent", "failed") and index < len(due) - 1:
                await sleep(inter_send_delay)

        write_system_log(
            db,
            LOG_SEND,
            f"Sent {result.sent}, failed {result.failed}, cancelled {result.cancelled}, deferred {result.deferred}",
            source="send-batch",
            details=result.as_dict(),
            now=now,
        )
        return result
    finally:
        db.rollback()
        release_lock(db, SEND_LOCK)
