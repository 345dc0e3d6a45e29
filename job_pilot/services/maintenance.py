from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, delete, or_, update
from sqlalchemy.orm import Session

from job_pilot.config import settings
from job_pilot.constants import DEFAULT_STALE_DAYS, LOG_CLEANUP, STALE_DAYS, STUCK_SENDING_MESSAGE
from job_pilot.models import ApplicationStatus, GlobalJob, JobApplication, JobStage, SystemLog, UserJob, UserSettings
from job_pilot.services.accounts import add_activity
from job_pilot.services.system_log import write_system_log
from job_pilot.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    deactivated: int = 0
    recovered_stuck: int = 0
    pruned_logs: int = 0

    def as_dict(self) -> dict:
        return {
            "deactivated": self.deactivated,
            "recovered_stuck": self.recovered_stuck,
            "pruned_logs": self.pruned_logs,
        }


def stale_days_for(source: str) -> int:
    return STALE_DAYS.get((source or "").lower(), DEFAULT_STALE_DAYS)


def deactivate_stale_jobs(db: Session, now: datetime) -> int:
    sources = [row[0] for row in db.query(GlobalJob.source).filter(GlobalJob.is_active == True).distinct().all()]  # noqa: E712
    total = 0
    for source in sources:
        cutoff = now - timedelta(days=stale_days_for(source))
        result = db.execute(
            update(GlobalJob)
            .where(GlobalJob.source == source, GlobalJob.is_active == True, GlobalJob.last_seen_at < cutoff)  # noqa: E712
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info(f"Deactivated {result.rowcount} stale {source} jobs")
        total += result.rowcount
    db.commit()
    return total


def recover_stuck_sending(db: Session, now: datetime, timeout: Optional[timedelta] = None) -> int:
    """Force SENDING rows older than the timeout to FAILED.

    Conditional on the row still being SENDING, so each row is recovered once
    even if two sweeps overlap.
    """
    cutoff = now - (timeout or timedelta(minutes=settings.stuck_sending_minutes))
    stuck_ids = [
        row[0]
        for row in db.query(JobApplication.id)
        .filter(
            JobApplication.status == ApplicationStatus.SENDING,
            or_(
                JobApplication.sending_started_at < cutoff,
                and_(JobApplication.sending_started_at.is_(None), JobApplication.updated_at < cutoff),
            ),
        )
        .all()
    ]
    recovered = 0
    for application_id in stuck_ids:
        result = db.execute(
            update(JobApplication)
            .where(JobApplication.id == application_id, JobApplication.status == ApplicationStatus.SENDING)
            .values(
                status=ApplicationStatus.FAILED,
                error_message=STUCK_SENDING_MESSAGE,
                retry_count=JobApplication.retry_count + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        recovered += result.rowcount
    db.commit()
    if recovered:
        logger.warning(f"Recovered {recovered} applications stuck in SENDING")
    return recovered


def prune_system_logs(db: Session, now: datetime, retention_days: Optional[int] = None) -> int:
    cutoff = now - timedelta(days=retention_days or settings.log_retention_days)
    result = db.execute(
        delete(SystemLog).where(SystemLog.created_at < cutoff).execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def run_staleness_sweep(db: Session, now: Optional[datetime] = None) -> SweepResult:
    now = now or utcnow()
    result = SweepResult(
        deactivated=deactivate_stale_jobs(db, now),
        recovered_stuck=recover_stuck_sending(db, now),
        pruned_logs=prune_system_logs(db, now),
    )
    write_system_log(
        db,
        LOG_CLEANUP,
        f"Deactivated {result.deactivated} jobs, recovered {result.recovered_stuck} stuck sends, "
        f"pruned {result.pruned_logs} log rows",
        source="cleanup-stale",
        details=result.as_dict(),
        now=now,
    )
    return result


def run_ghost_sweep(db: Session, now: Optional[datetime] = None) -> int:
    """APPLIED jobs with no progress after the user's ghost window become GHOSTED."""
    now = now or utcnow()
    rows = (
        db.query(UserJob, UserSettings.ghost_days)
        .join(UserSettings, UserSettings.user_id == UserJob.user_id)
        .filter(UserJob.stage == JobStage.APPLIED, UserJob.applied_at.isnot(None))
        .all()
    )
    ghosted = 0
    for user_job, ghost_days in rows:
        if ghost_days is None or ghost_days <= 0:
            continue
        if user_job.applied_at > now - timedelta(days=ghost_days):
            continue
        user_job.stage = JobStage.GHOSTED
        add_activity(db, user_job.user_id, "ghosted",
                     f"No response after {ghost_days} days; marked as ghosted",
                     user_job_id=user_job.id, now=now)
        ghosted += 1
    db.commit()
    if ghosted:
        logger.info(f"Marked {ghosted} applied jobs as ghosted")
    return ghosted
