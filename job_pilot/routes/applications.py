from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from job_pilot.database import get_db
from job_pilot.errors import JobPilotError, RateLimitedError
from job_pilot.routes.deps import current_user_id, http_error
from job_pilot.schemas.application import (
    ApplicationResponse,
    ApproveApplicationRequest,
    GenerateApplicationRequest,
    GenerateApplicationResponse,
    SendResultResponse,
    SendStatsResponse,
)
from job_pilot.services.accounts import load_user_settings
from job_pilot.services.application_workflow import approve_application, cancel_application, retry_application
from job_pilot.services.drafting import generate_application, regenerate_cover_letter
from job_pilot.services.mailer import Mailer, get_mailer
from job_pilot.services.rate_limiter import rate_limiter
from job_pilot.services.send_limiter import get_send_stats
from job_pilot.services.send_orchestrator import send_single

router = APIRouter()


@router.get("/send-stats", response_model=SendStatsResponse)
def send_stats(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    try:
        user_settings = load_user_settings(db, user_id)
    except JobPilotError as e:
        raise http_error(e)
    stats = get_send_stats(db, user_settings)
    return SendStatsResponse(**stats.__dict__)


@router.post("/generate", response_model=GenerateApplicationResponse)
async def generate(
    request: GenerateApplicationRequest,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        application, choice = await generate_application(db, user_id, request.user_job_id)
    except JobPilotError as e:
        raise http_error(e)
    return GenerateApplicationResponse(
        application=ApplicationResponse.model_validate(application),
        resume_id=choice.resume.id,
        resume_name=choice.resume.name,
        match_tier=choice.tier,
        match_reason=choice.reason,
    )


@router.post("/{application_id}/cover-letter", response_model=ApplicationResponse)
async def cover_letter(
    application_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        return await regenerate_cover_letter(db, user_id, application_id)
    except JobPilotError as e:
        raise http_error(e)


@router.post("/{application_id}/approve", response_model=ApplicationResponse)
def approve(
    application_id: int,
    request: ApproveApplicationRequest,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        return approve_application(
            db,
            user_id,
            application_id,
            recipient_email=request.recipient_email,
            scheduled_send_at=request.scheduled_send_at,
        )
    except JobPilotError as e:
        raise http_error(e)


@router.post("/{application_id}/cancel", response_model=ApplicationResponse)
def cancel(application_id: int, user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    try:
        return cancel_application(db, user_id, application_id)
    except JobPilotError as e:
        raise http_error(e)


@router.post("/{application_id}/retry", response_model=ApplicationResponse)
def retry(application_id: int, user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    try:
        return retry_application(db, user_id, application_id)
    except JobPilotError as e:
        raise http_error(e)


@router.post("/{application_id}/send", response_model=SendResultResponse)
async def send(
    application_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    check = rate_limiter.check(user_id, "send-email")
    if not check.allowed:
        raise http_error(RateLimitedError("send-email", check.retry_after_seconds))
    try:
        outcome = await send_single(db, user_id, application_id, mailer)
    except JobPilotError as e:
        raise http_error(e)
    return SendResultResponse(application_id=outcome.application_id, status=outcome.status, reason=outcome.reason)
