from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from job_pilot.database import get_db
from job_pilot.errors import JobPilotError
from job_pilot.routes.deps import current_user_id, http_error
from job_pilot.schemas.settings import ReadinessCheckResponse, ReadinessResponse
from job_pilot.services.readiness import check_readiness

router = APIRouter()


@router.get("/readiness", response_model=ReadinessResponse)
def readiness(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    try:
        report = check_readiness(db, user_id)
    except JobPilotError as e:
        raise http_error(e)
    return ReadinessResponse(
        mode=report.mode.value,
        ready=report.ready,
        missing=report.missing,
        checks=[ReadinessCheckResponse.model_validate(c) for c in report.checks],
    )
