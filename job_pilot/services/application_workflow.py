"""User-initiated moves through the application state machine.

Sending itself lives in ``send_orchestrator``; this module covers approval,
cancellation and manual retry.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from job_pilot.config import settings
from job_pilot.errors import InvalidTransitionError, JobPilotError, NotFoundError
from job_pilot.models import ApplicationStatus, JobApplication
from job_pilot.services.accounts import add_activity
from job_pilot.utils.clock import utcnow

logger = logging.getLogger(__name__)

CANCELLABLE = (ApplicationStatus.DRAFT, ApplicationStatus.READY)


class RetryLimitError(JobPilotError):
    status_code = 409


def get_application(db: Session, user_id: int, application_id: int) -> JobApplication:
    application = (
        db.query(JobApplication)
        .filter(JobApplication.id == application_id, JobApplication.user_id == user_id)
        .first()
    )
    if application is None:
        raise NotFoundError("Application not found")
    return application


def approve_application(
    db: Session,
    user_id: int,
    application_id: int,
    recipient_email: Optional[str] = None,
    scheduled_send_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> JobApplication:
    """DRAFT -> READY. Approval starts a fresh retry budget."""
    application = get_application(db, user_id, application_id)
    if recipient_email:
        application.recipient_email = recipient_email.strip().lower()
    if not application.recipient_email:
        raise JobPilotError("Add a recipient email before approving this application.")

    application.transition(ApplicationStatus.READY)
    application.retry_count = 0
    application.error_message = None
    application.scheduled_send_at = scheduled_send_at
    add_activity(db, user_id, "application_approved", "Application approved for sending",
                 user_job_id=application.user_job_id, now=now)
    db.commit()
    db.refresh(application)
    return application


def cancel_application(db: Session, user_id: int, application_id: int, now: Optional[datetime] = None) -> JobApplication:
    """DRAFT/READY -> CANCELLED; anything else is refused loudly.

    The write is conditional on the status so a cancel can never land on an
    application a concurrent batch has just claimed for sending.
    """
    application = get_application(db, user_id, application_id)
    result = db.execute(
        update(JobApplication)
        .where(JobApplication.id == application.id, JobApplication.status.in_(CANCELLABLE))
        .values(status=ApplicationStatus.CANCELLED, updated_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        db.refresh(application)
        raise InvalidTransitionError(ApplicationStatus(application.status), ApplicationStatus.CANCELLED)

    add_activity(db, user_id, "application_cancelled", "Application cancelled",
                 user_job_id=application.user_job_id, now=now)
    db.commit()
    db.refresh(application)
    return application


def retry_application(db: Session, user_id: int, application_id: int, now: Optional[datetime] = None) -> JobApplication:
    """FAILED -> READY while the retry budget lasts."""
    application = get_application(db, user_id, application_id)
    if (application.retry_count or 0) >= settings.max_send_attempts:
        raise RetryLimitError(
            f"Application already failed {application.retry_count} times; no retries left."
        )
    application.transition(ApplicationStatus.READY)
    application.scheduled_send_at = None
    add_activity(db, user_id, "application_retry", "Application queued for another send attempt",
                 user_job_id=application.user_job_id, now=now)
    db.commit()
    db.refresh(application)
    return application
