from datetime import timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from job_pilot.database import get_db
from job_pilot.errors import JobPilotError, RateLimitedError
from job_pilot.models import GlobalJob, UserJob
from job_pilot.routes.deps import current_user_id, http_error
from job_pilot.schemas.job import ScanNowResponse, UserJobResponse
from job_pilot.services.accounts import load_user_settings
from job_pilot.services.matching_pipeline import match_user_to_jobs
from job_pilot.services.rate_limiter import rate_limiter
from job_pilot.utils.clock import utcnow

router = APIRouter()


@router.get("", response_model=list[UserJobResponse])
def list_board(
    include_dismissed: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    query = db.query(UserJob).filter(UserJob.user_id == user_id)
    if not include_dismissed:
        query = query.filter(UserJob.is_dismissed == False)  # noqa: E712
    return query.order_by(UserJob.match_score.desc(), UserJob.id.desc()).limit(limit).all()


@router.post("/scan-now", response_model=ScanNowResponse)
def scan_now(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    """Match the user against today's pool right away, at most once per cooldown."""
    check = rate_limiter.check(user_id, "scan-now")
    if not check.allowed:
        raise http_error(RateLimitedError("scan-now", check.retry_after_seconds))
    try:
        user_settings = load_user_settings(db, user_id)
    except JobPilotError as e:
        raise http_error(e)

    now = utcnow()
    jobs = (
        db.query(GlobalJob)
        .filter(GlobalJob.is_active == True, GlobalJob.last_seen_at >= now - timedelta(days=1))  # noqa: E712
        .all()
    )
    created = match_user_to_jobs(db, user_settings, jobs, now=now)
    return ScanNowResponse(matched=len(created), jobs_considered=len(jobs))
