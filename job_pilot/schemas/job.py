from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from job_pilot.models import JobStage


class GlobalJobResponse(BaseModel):
    id: int
    title: str
    company: str
    location: Optional[str] = None
    salary: Optional[str] = None
    job_type: Optional[str] = None
    category: Optional[str] = None
    source: str
    apply_url: Optional[str] = None
    posted_date: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserJobResponse(BaseModel):
    id: int
    match_score: Optional[int] = None
    match_reasons: Optional[list[str]] = None
    stage: JobStage
    is_dismissed: bool = False
    applied_at: Optional[datetime] = None
    global_job: GlobalJobResponse

    model_config = {"from_attributes": True}


class ScanNowResponse(BaseModel):
    matched: int
    jobs_considered: int
