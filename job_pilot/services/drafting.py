from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from job_pilot.errors import JobPilotError, NoResumeError, NotFoundError, ProfileIncompleteError, RateLimitedError
from job_pilot.models import ApplicationStatus, JobApplication, UserJob, UserSettings
from job_pilot.services.accounts import active_resumes, add_activity, load_user_settings
from job_pilot.services.email_drafter import EmailDrafter
from job_pilot.services.llm_client import get_llm_client
from job_pilot.services.rate_limiter import RateLimiter, rate_limiter
from job_pilot.services.resume_matcher import LLMResumeTiebreaker, ResumeChoice, ResumeTiebreaker, select_resume
from job_pilot.utils.clock import utcnow

logger = logging.getLogger(__name__)


class ApplicationLockedError(JobPilotError):
    status_code = 409


def default_drafter() -> EmailDrafter:
    return EmailDrafter(get_llm_client())


def default_tiebreaker() -> Optional[ResumeTiebreaker]:
    client = get_llm_client()
    return LLMResumeTiebreaker(client) if client is not None else None


async def create_draft(
    db: Session,
    user_settings: UserSettings,
    user_job: UserJob,
    resumes: Sequence,
    drafter: EmailDrafter,
    tiebreaker: Optional[ResumeTiebreaker] = None,
    status: ApplicationStatus = ApplicationStatus.DRAFT,
    scheduled_send_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> tuple[JobApplication, ResumeChoice]:
    """Pick a résumé, draft the email and store it as the user job's application."""
    now = now or utcnow()
    job = user_job.global_job

    choice = await select_resume(job, resumes, tiebreaker=tiebreaker)
    if choice is None:
        raise NoResumeError()

    email = await drafter.generate_email(job, user_settings, choice.resume)

    application = user_job.application
    if application is None:
        application = JobApplication(user_id=user_job.user_id, user_job_id=user_job.id)
        db.add(application)
    elif application.status != ApplicationStatus.DRAFT:
        raise ApplicationLockedError(
            f"Application is already {ApplicationStatus(application.status).value}; it cannot be redrafted"
        )

    application.resume_id = choice.resume.id
    application.subject = email.subject
    application.body = email.body
    application.cover_letter = email.cover_letter
    application.sender_email = user_settings.application_email
    application.recipient_email = job.company_email
    application.status = status
    application.retry_count = 0
    application.error_message = None
    application.scheduled_send_at = scheduled_send_at

    add_activity(
        db,
        user_job.user_id,
        "application_drafted",
        f"Drafted application for {job.title} at {job.company} using '{choice.resume.name}' ({choice.tier})",
        user_job_id=user_job.id,
        now=now,
    )
    db.commit()
    db.refresh(application)
    return application, choice


async def generate_application(
    db: Session,
    user_id: int,
    user_job_id: int,
    drafter: Optional[EmailDrafter] = None,
    tiebreaker: Optional[ResumeTiebreaker] = None,
    limiter: Optional[RateLimiter] = None,
    now: Optional[datetime] = None,
) -> tuple[JobApplication, ResumeChoice]:
    """User-triggered drafting. Raises a domain error instead of half-creating anything."""
    limiter = limiter or rate_limiter
    check = limiter.check(user_id, "application-generate")
    if not check.allowed:
        raise RateLimitedError("application-generate", check.retry_after_seconds)

    user_job = (
        db.query(UserJob)
        .filter(UserJob.id == user_job_id, UserJob.user_id == user_id)
        .first()
    )
    if user_job is None:
        raise NotFoundError("Job not found")

    resumes = active_resumes(db, user_id)
    if not resumes:
        raise NoResumeError()

    user_settings = load_user_settings(db, user_id)
    if not (user_settings.full_name or "").strip():
        raise ProfileIncompleteError("Add your full name in settings before generating applications.")

    return await create_draft(
        db,
        user_settings,
        user_job,
        resumes,
        drafter or default_drafter(),
        tiebreaker=tiebreaker if tiebreaker is not None else default_tiebreaker(),
        now=now,
    )


async def regenerate_cover_letter(
    db: Session,
    user_id: int,
    application_id: int,
    drafter: Optional[EmailDrafter] = None,
    limiter: Optional[RateLimiter] = None,
    now: Optional[datetime] = None,
) -> JobApplication:
    """Write a fresh cover letter for a draft, using the résumé it was drafted with."""
    limiter = limiter or rate_limiter
    check = limiter.check(user_id, "cover-letter")
    if not check.allowed:
        raise RateLimitedError("cover-letter", check.retry_after_seconds)

    application = (
        db.query(JobApplication)
        .filter(JobApplication.id == application_id, JobApplication.user_id == user_id)
        .first()
    )
    if application is None:
        raise NotFoundError("Application not found")
    if application.status != ApplicationStatus.DRAFT:
        raise ApplicationLockedError(
            f"Application is already {ApplicationStatus(application.status).value}; its cover letter cannot change"
        )

    resumes = active_resumes(db, user_id)
    resume = next((r for r in resumes if r.id == application.resume_id), resumes[0] if resumes else None)
    if resume is None:
        raise NoResumeError()

    user_settings = load_user_settings(db, user_id)
    job = application.user_job.global_job
    application.cover_letter = await (drafter or default_drafter()).generate_cover_letter(job, user_settings, resume)
    application.updated_at = now or utcnow()
    db.commit()
    db.refresh(application)
    logger.info(f"Cover letter regenerated for application {application.id}", extra={"application_id": application.id})
    return application
