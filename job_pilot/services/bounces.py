from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from job_pilot.constants import LOG_BOUNCE
from job_pilot.models import ApplicationStatus, GlobalJob, JobApplication, UserJob, UserSettings
from job_pilot.services.accounts import add_activity
from job_pilot.services.mailer import Mailer
from job_pilot.services.notifications import send_user_notification
from job_pilot.services.system_log import write_system_log
from job_pilot.utils.clock import utcnow

logger = logging.getLogger(__name__)

BOUNCE_EVENTS = {"hard_bounce", "soft_bounce"}


class BounceEvent(BaseModel):
    event: str
    email: str
    reason: Optional[str] = None
    message_id: Optional[str] = Field(default=None, alias="messageId")

    model_config = {"populate_by_name": True}


@dataclass
class BounceResult:
    ignored: bool = False
    reason: Optional[str] = None
    bounced_application_ids: list[int] = field(default_factory=list)
    cleared_jobs: int = 0
    paused_users: list[int] = field(default_factory=list)


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """HMAC-SHA256 hex digest of the raw body. Anything goes when no secret is configured."""
    if not secret:
        return True
    if not signature:
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    provided = signature.strip()
    if provided.lower().startswith("sha256="):
        provided = provided[len("sha256="):]
    return hmac.compare_digest(expected, provided.lower())


async def handle_bounce_event(
    db: Session,
    event: BounceEvent,
    mailer: Optional[Mailer] = None,
    now: Optional[datetime] = None,
) -> BounceResult:
    """SENT -> BOUNCED for the bounced address. Replaying the same event changes nothing."""
    now = now or utcnow()
    if event.event not in BOUNCE_EVENTS:
        return BounceResult(ignored=True, reason=f"event '{event.event}' not handled")

    email = event.email.strip().lower()
    conditions = [func.lower(JobApplication.recipient_email) == email]
    if event.message_id:
        conditions.append(JobApplication.message_id == event.message_id)

    applications = (
        db.query(JobApplication)
        .filter(JobApplication.status == ApplicationStatus.SENT, or_(*conditions))
        .all()
    )
    result = BounceResult()
    if not applications:
        result.reason = "no sent application for this address"
        return result

    reason = event.reason or event.event.replace("_", " ")
    affected_users: dict[int, list[JobApplication]] = {}
    for application in applications:
        application.transition(ApplicationStatus.BOUNCED)
        application.error_message = f"Bounced: {reason}"
        application.updated_at = now
        result.bounced_application_ids.append(application.id)
        affected_users.setdefault(application.user_id, []).append(application)
        add_activity(db, application.user_id, "application_bounced",
                     f"Email to {application.recipient_email} bounced ({reason})",
                     user_job_id=application.user_job_id, now=now)

    job_ids = [
        row[0]
        for row in db.query(UserJob.global_job_id)
        .filter(UserJob.id.in_([a.user_job_id for a in applications]))
        .all()
    ]
    jobs = (
        db.query(GlobalJob)
        .filter(or_(GlobalJob.id.in_(job_ids), func.lower(GlobalJob.company_email) == email))
        .all()
    )
    for job in jobs:
        if job.company_email and job.company_email.lower() == email:
            job.company_email = None
            result.cleared_jobs += 1

    for user_id in affected_users:
        user_settings = db.query(UserSettings).filter(UserSettings.user_id == user_id).first()
        if user_settings is None:
            continue
        pause_until = now + timedelta(hours=user_settings.bounce_pause_hours or 24)
        if not user_settings.sending_paused_until or user_settings.sending_paused_until < pause_until:
            user_settings.sending_paused_until = pause_until
        result.paused_users.append(user_id)

    db.commit()
    write_system_log(
        db,
        LOG_BOUNCE,
        f"{event.event} for {email}: {len(result.bounced_application_ids)} application(s) bounced",
        source="email-bounce",
        details={"email": email, "reason": reason, "applications": result.bounced_application_ids},
        now=now,
    )

    if mailer is not None:
        for user_id in affected_users:
            user_settings = db.query(UserSettings).filter(UserSettings.user_id == user_id).first()
            if user_settings is None:
                continue
            subject = "An application email bounced"
            body = (
                f"<p>Your application to <strong>{email}</strong> bounced ({reason}).</p>"
                "<p>Automatic sending is paused for a while to protect your sender reputation.</p>"
            )
            try:
                await send_user_notification(db, user_settings, subject, body, mailer, now=now)
            except Exception as e:
                logger.error(f"Bounce notification for user {user_id} failed: {e}")

    logger.info(f"Bounce processed for {email}: {result.bounced_application_ids}")
    return result
