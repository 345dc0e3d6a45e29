from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from job_pilot.database import get_db
from job_pilot.routes.deps import verify_cron_secret
from job_pilot.schemas.cron import CronRunResponse, ScrapeRunResponse, SourceSummary
from job_pilot.services.maintenance import run_ghost_sweep, run_staleness_sweep
from job_pilot.services.mailer import Mailer, get_mailer
from job_pilot.services.matching_pipeline import match_jobs_for_all_users, run_instant_lane
from job_pilot.services.notifications import notify_new_matches
from job_pilot.services.scrape_service import scrape_global
from job_pilot.services.send_orchestrator import run_send_batch

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


@router.post("/scrape-global", response_model=ScrapeRunResponse)
async def cron_scrape_global(db: Session = Depends(get_db)):
    result = await scrape_global(db)
    return ScrapeRunResponse(
        skipped=result.skipped,
        reason=result.reason,
        keywords=result.keywords,
        inserted=result.inserted,
        updated=result.updated,
        sources=[
            SourceSummary(source=s.source, error=s.error, **s.as_dict())
            for s in result.sources
        ],
    )


@router.post("/match-jobs", response_model=CronRunResponse)
def cron_match_jobs(db: Session = Depends(get_db)):
    result = match_jobs_for_all_users(db)
    return CronRunResponse(details=result.as_dict())


@router.post("/instant-apply", response_model=CronRunResponse)
async def cron_instant_apply(db: Session = Depends(get_db)):
    result = await run_instant_lane(db)
    return CronRunResponse(skipped=result.skipped, reason=result.reason, details=result.as_dict())


@router.post("/send-applications", response_model=CronRunResponse)
async def cron_send_applications(db: Session = Depends(get_db), mailer: Mailer = Depends(get_mailer)):
    result = await run_send_batch(db, mailer)
    return CronRunResponse(skipped=result.skipped, reason=result.reason, details=result.as_dict())


@router.post("/cleanup-stale", response_model=CronRunResponse)
def cron_cleanup_stale(db: Session = Depends(get_db)):
    result = run_staleness_sweep(db)
    return CronRunResponse(details=result.as_dict())


@router.post("/ghost-detect", response_model=CronRunResponse)
def cron_ghost_detect(db: Session = Depends(get_db)):
    ghosted = run_ghost_sweep(db)
    return CronRunResponse(details={"ghosted": ghosted})


@router.post("/notify-matches", response_model=CronRunResponse)
async def cron_notify_matches(db: Session = Depends(get_db), mailer: Mailer = Depends(get_mailer)):
    result = await notify_new_matches(db, mailer)
    return CronRunResponse(
        details={
            "users_checked": result.users_checked,
            "users_notified": result.users_notified,
            "throttled": result.throttled,
            "failed": result.failed,
        }
    )
