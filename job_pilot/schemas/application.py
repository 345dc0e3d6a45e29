from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from job_pilot.models import ApplicationStatus


class ApplicationResponse(BaseModel):
    id: int
    user_job_id: int
    resume_id: Optional[int] = None
    status: ApplicationStatus
    sender_email: Optional[str] = None
    recipient_email: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    cover_letter: Optional[str] = None
    retry_count: Optional[int] = 0
    scheduled_send_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class GenerateApplicationRequest(BaseModel):
    user_job_id: int


class GenerateApplicationResponse(BaseModel):
    application: ApplicationResponse
    resume_id: int
    resume_name: str
    match_tier: str
    match_reason: str


class ApproveApplicationRequest(BaseModel):
    recipient_email: Optional[str] = None
    scheduled_send_at: Optional[datetime] = None


class SendResultResponse(BaseModel):
    application_id: int
    status: str
    reason: Optional[str] = None


class SendStatsResponse(BaseModel):
    today_count: int
    hour_count: int
    max_per_day: int
    max_per_hour: int
    next_send_in_seconds: int
    is_paused: bool
    paused_until: Optional[datetime] = None
