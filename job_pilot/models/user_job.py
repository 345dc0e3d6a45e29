import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, JSON, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import relationship

from job_pilot.database import Base
from job_pilot.utils.clock import utcnow


class JobStage(str, enum.Enum):
    SAVED = "saved"
    APPLIED = "applied"
    INTERVIEW = "interview"
    OFFER = "offer"
    REJECTED = "rejected"
    GHOSTED = "ghosted"


class UserJob(Base):
    __tablename__ = "user_jobs"
    __table_args__ = (UniqueConstraint("user_id", "global_job_id", name="uq_user_jobs_user_job"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    global_job_id = Column(Integer, ForeignKey("global_jobs.id"), nullable=False)
    match_score = Column(Integer, nullable=True)
    match_reasons = Column(JSON, default=list)
    stage = Column(SAEnum(JobStage), default=JobStage.SAVED)
    is_dismissed = Column(Boolean, default=False)
    notes = Column(Text, nullable=True)
    follow_up_count = Column(Integer, default=0)
    last_follow_up_at = Column(DateTime, nullable=True)
    applied_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    global_job = relationship("GlobalJob")
    application = relationship("JobApplication", back_populates="user_job", uselist=False)
    activities = relationship("Activity", back_populates="user_job")


class Activity(Base):
    """Append-only per-user timeline entry."""

    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user_job_id = Column(Integer, ForeignKey("user_jobs.id"), nullable=True)
    type = Column(String(50), nullable=False)
    description = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    user_job = relationship("UserJob", back_populates="activities")
