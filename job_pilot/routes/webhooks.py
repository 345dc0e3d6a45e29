import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from job_pilot.config import settings
from job_pilot.database import get_db
from job_pilot.services.bounces import BounceEvent, handle_bounce_event, verify_signature
from job_pilot.services.mailer import Mailer, get_mailer

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/email-bounce")
async def email_bounce(
    request: Request,
    x_webhook_signature: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    body = await request.body()
    if not verify_signature(body, x_webhook_signature, settings.bounce_webhook_secret):
        logger.warning("Rejected bounce webhook with a bad signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        event = BounceEvent.model_validate_json(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid payload: {e.error_count()} error(s)")

    result = await handle_bounce_event(db, event, mailer=mailer)
    return {
        "ignored": result.ignored,
        "reason": result.reason,
        "bounced": result.bounced_application_ids,
        "cleared_jobs": result.cleared_jobs,
        "paused_users": result.paused_users,
    }
