from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from job_pilot.config import settings
from job_pilot.models import ApplicationStatus, GlobalJob, JobApplication, UserJob
from job_pilot.utils.clock import utcnow


@dataclass
class DuplicateResult:
    is_duplicate: bool
    reason: Optional[str] = None


def _normalize_company(company: str) -> str:
    return re.sub(r"[^a-z0-9]", "", (company or "").lower())


def _normalize_title(title: str) -> str:
    title = re.sub(r"[^a-z0-9\s]", "", (title or "").lower())
    return re.sub(r"\s+", " ", title).strip()


def check_duplicate(
    db: Session,
    user_id: int,
    job: GlobalJob,
    exclude_application_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> DuplicateResult:
    """Same company with the same or a similar title already sent recently."""
    now = now or utcnow()
    since = now - timedelta(days=settings.duplicate_window_days)

    query = (
        db.query(JobApplication, GlobalJob)
        .join(UserJob, JobApplication.user_job_id == UserJob.id)
        .join(GlobalJob, UserJob.global_job_id == GlobalJob.id)
        .filter(
            JobApplication.user_id == user_id,
            JobApplication.status.in_([ApplicationStatus.SENT, ApplicationStatus.SENDING]),
            or_(JobApplication.sent_at >= since, JobApplication.sending_started_at >= since),
        )
    )
    if exclude_application_id is not None:
        query = query.filter(JobApplication.id != exclude_application_id)

    company = _normalize_company(job.company)
    title = _normalize_title(job.title)
    for application, other in query.all():
        if _normalize_company(other.company) != company:
            continue
        if other.id == job.id:
            return DuplicateResult(True, f"Already applied to this exact job at {job.company}")
        other_title = _normalize_title(other.title)
        if title == other_title or title in other_title or other_title in title:
            sent = application.sent_at or application.sending_started_at or now
            days_ago = max(0, (now - sent).days)
            return DuplicateResult(True, f"Similar role at {job.company} applied {days_ago} days ago")
    return DuplicateResult(False)
