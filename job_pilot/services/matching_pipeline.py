"""Turning pool postings into per-user board entries.

Two lanes share the scorer: the batch lane sweeps recently re-sighted jobs
for every configured user, and the instant lane handles postings that were
just inserted, drafting (and for full-auto users, queueing) applications
right away.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from job_pilot.config import settings
from job_pilot.constants import INSTANT_APPLY_LOCK, LOG_MATCH, SCRAPE_LOCK
from job_pilot.errors import JobPilotError
from job_pilot.models import AccountStatus, ApplicationMode, ApplicationStatus, GlobalJob, JobStage, UserJob, UserSettings
from job_pilot.services.accounts import active_resumes
from job_pilot.services.drafting import create_draft, default_drafter, default_tiebreaker
from job_pilot.services.duplicates import check_duplicate
from job_pilot.services.email_drafter import EmailDrafter
from job_pilot.services.match_scoring import MatchPreferences, MatchResult, compute_match_score
from job_pilot.services.resume_matcher import ResumeTiebreaker
from job_pilot.services.system_lock import acquire_lock, is_lock_held, release_lock
from job_pilot.services.system_log import write_system_log
from job_pilot.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class MatchRunResult:
    users: int = 0
    jobs: int = 0
    created: int = 0
    partial: bool = False

    def as_dict(self) -> dict:
        return {"users": self.users, "jobs": self.jobs, "created": self.created, "partial": self.partial}


@dataclass
class InstantLaneResult:
    skipped: bool = False
    reason: Optional[str] = None
    fresh_jobs: int = 0
    matched: int = 0
    drafted: int = 0
    queued: int = 0
    draft_errors: int = 0
    partial: bool = False
    queued_application_ids: list[int] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "skipped": self.skipped,
            "reason": self.reason,
            "fresh_jobs": self.fresh_jobs,
            "matched": self.matched,
            "drafted": self.drafted,
            "queued": self.queued,
            "draft_errors": self.draft_errors,
            "partial": self.partial,
        }


def create_user_job(
    db: Session,
    user_id: int,
    job: GlobalJob,
    result: MatchResult,
    now: Optional[datetime] = None,
) -> Optional[UserJob]:
    """Link a user to a job. Returns None if the pair already exists."""
    exists = (
        db.query(UserJob.id)
        .filter(UserJob.user_id == user_id, UserJob.global_job_id == job.id)
        .first()
    )
    if exists is not None:
        return None

    now = now or utcnow()
    user_job = UserJob(
        user_id=user_id,
        global_job_id=job.id,
        match_score=result.score,
        match_reasons=list(result.reasons),
        stage=JobStage.SAVED,
        created_at=now,
        updated_at=now,
    )
    db.add(user_job)
    try:
        db.commit()
    except IntegrityError:
        # Another run linked the same pair between the check and the insert.
        db.rollback()
        return None
    db.refresh(user_job)
    return user_job


def matchable_users(db: Session) -> list[UserSettings]:
    rows = (
        db.query(UserSettings)
        .filter(UserSettings.account_status == AccountStatus.ACTIVE)
        .order_by(UserSettings.user_id)
        .all()
    )
    return [s for s in rows if s.keywords]


def match_user_to_jobs(
    db: Session,
    user_settings: UserSettings,
    jobs: Sequence[GlobalJob],
    resumes: Optional[Sequence] = None,
    now: Optional[datetime] = None,
) -> list[tuple[UserJob, MatchResult]]:
    """Score ``jobs`` for one user and create board entries above the show threshold."""
    now = now or utcnow()
    if resumes is None:
        resumes = active_resumes(db, user_settings.user_id)
    prefs = MatchPreferences.from_settings(user_settings)

    linked = {
        row[0]
        for row in db.query(UserJob.global_job_id)
        .filter(UserJob.user_id == user_settings.user_id)
        .all()
    }

    created = []
    for job in jobs:
        if job.id in linked:
            continue
        result = compute_match_score(job, prefs, resumes, now=now)
        if not result.should_show:
            continue
        user_job = create_user_job(db, user_settings.user_id, job, result, now=now)
        if user_job is not None:
            created.append((user_job, result))
    return created


def match_jobs_for_all_users(
    db: Session,
    now: Optional[datetime] = None,
    include_fresh: bool = False,
    soft_limit_seconds: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
) -> MatchRunResult:
    """Batch lane: jobs re-sighted in the last day against every configured user.

    Fresh postings belong to the instant lane and are left out unless asked for.
    """
    started = clock()
    now = now or utcnow()
    soft_limit_seconds = settings.cron_soft_limit_seconds if soft_limit_seconds is None else soft_limit_seconds

    query = db.query(GlobalJob).filter(
        GlobalJob.is_active == True,  # noqa: E712
        GlobalJob.last_seen_at >= now - timedelta(days=1),
    )
    if not include_fresh:
        query = query.filter(GlobalJob.is_fresh == False)  # noqa: E712
    jobs = query.order_by(GlobalJob.last_seen_at.desc()).limit(settings.match_batch_jobs).all()
    users = matchable_users(db)[: settings.match_batch_users]

    result = MatchRunResult(jobs=len(jobs))
    if not jobs or not users:
        return result

    for user_settings in users:
        if clock() - started > soft_limit_seconds:
            result.partial = True
            break
        result.users += 1
        try:
            result.created += len(match_user_to_jobs(db, user_settings, jobs, now=now))
        except Exception as e:
            db.rollback()
            logger.exception(f"Matching failed for user {user_settings.user_id}: {e}")

    write_system_log(
        db,
        LOG_MATCH,
        f"Matched {result.jobs} jobs against {result.users} users, {result.created} new board entries",
        source="match-jobs",
        details=result.as_dict(),
        now=now,
    )
    return result


def _auto_send_eligible(user_settings: UserSettings, score: int, job: GlobalJob) -> bool:
    mode = ApplicationMode(user_settings.application_mode or ApplicationMode.MANUAL)
    if mode != ApplicationMode.FULL_AUTO:
        return False
    if not (user_settings.auto_apply_enabled or user_settings.instant_apply_enabled):
        return False
    threshold = user_settings.min_auto_apply_score or settings.default_min_auto_apply_score
    return score >= threshold and bool(job.company_email)


async def run_instant_lane(
    db: Session,
    drafter: Optional[EmailDrafter] = None,
    tiebreaker: Optional[ResumeTiebreaker] = None,
    now: Optional[datetime] = None,
    soft_limit_seconds: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
) -> InstantLaneResult:
    """Match fresh postings and draft for users who asked for automation.

    Full-auto users whose match clears their auto-apply bar get the draft
    queued as READY after their configured delay; everyone else gets a DRAFT
    to review. Fresh jobs are marked seen once every user has been through
    them. A run cut short by the soft time budget leaves them fresh; the next
    run skips the pairs already linked and picks up the remaining users.
    """
    started = clock()
    soft_limit_seconds = settings.cron_soft_limit_seconds if soft_limit_seconds is None else soft_limit_seconds
    now = now or utcnow()
    if is_lock_held(db, SCRAPE_LOCK, now=now):
        return InstantLaneResult(skipped=True, reason="global scrape in progress")
    if not acquire_lock(db, INSTANT_APPLY_LOCK, now=now):
        return InstantLaneResult(skipped=True, reason="instant lane already running")

    result = InstantLaneResult()
    try:
        jobs = (
            db.query(GlobalJob)
            .filter(GlobalJob.is_fresh == True, GlobalJob.is_active == True)  # noqa: E712
            .order_by(GlobalJob.first_seen_at)
            .all()
        )
        result.fresh_jobs = len(jobs)
        if not jobs:
            return result
        job_ids = [job.id for job in jobs]

        for user_settings in matchable_users(db):
            if clock() - started > soft_limit_seconds:
                result.partial = True
                break
            resumes = active_resumes(db, user_settings.user_id)
            try:
                matches = match_user_to_jobs(db, user_settings, jobs, resumes=resumes, now=now)
            except Exception as e:
                db.rollback()
                logger.exception(f"Instant matching failed for user {user_settings.user_id}: {e}")
                continue
            result.matched += len(matches)

            mode = ApplicationMode(user_settings.application_mode or ApplicationMode.MANUAL)
            if mode == ApplicationMode.MANUAL or not resumes or not (user_settings.full_name or "").strip():
                continue

            for user_job, match in matches:
                if not match.is_quality:
                    continue
                job = user_job.global_job
                status = ApplicationStatus.DRAFT
                scheduled = None
                if _auto_send_eligible(user_settings, match.score, job):
                    duplicate = check_duplicate(db, user_settings.user_id, job, now=now)
                    if not duplicate.is_duplicate:
                        status = ApplicationStatus.READY
                        scheduled = now + timedelta(minutes=user_settings.instant_apply_delay_minutes or 0)

                if drafter is None:
                    drafter = default_drafter()
                if tiebreaker is None:
                    tiebreaker = default_tiebreaker()
                try:
                    application, _ = await create_draft(
                        db,
                        user_settings,
                        user_job,
                        resumes,
                        drafter,
                        tiebreaker=tiebreaker,
                        status=status,
                        scheduled_send_at=scheduled,
                        now=now,
                    )
                except JobPilotError as e:
                    db.rollback()
                    result.draft_errors += 1
                    logger.warning(f"Instant draft skipped for user job {user_job.id}: {e.message}")
                    continue
                except Exception as e:
                    db.rollback()
                    result.draft_errors += 1
                    logger.exception(f"Unexpected error drafting user job {user_job.id}: {e}")
                    continue

                if status == ApplicationStatus.READY:
                    result.queued += 1
                    result.queued_application_ids.append(application.id)
                else:
                    result.drafted += 1

        if not result.partial:
            db.query(GlobalJob).filter(GlobalJob.id.in_(job_ids)).update(
                {GlobalJob.is_fresh: False}, synchronize_session=False
            )
            db.commit()
        write_system_log(
            db,
            LOG_MATCH,
            f"Instant lane: {result.fresh_jobs} fresh jobs, {result.matched} matches, "
            f"{result.drafted} drafted, {result.queued} queued",
            source="instant-apply",
            details=result.as_dict(),
            now=now,
        )
        return result
    finally:
        db.rollback()
        release_lock(db, INSTANT_APPLY_LOCK)
