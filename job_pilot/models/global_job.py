from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, JSON, UniqueConstraint

from job_pilot.database import Base
from job_pilot.utils.clock import utcnow


class GlobalJob(Base):
    """One row per distinct posting, shared by every user."""

    __tablename__ = "global_jobs"
    __table_args__ = (UniqueConstraint("source", "source_id", name="uq_global_jobs_source_id"),)

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(500), nullable=False)
    company = Column(String(300), nullable=False)
    location = Column(String(300), nullable=True)
    description = Column(Text, nullable=True)
    salary = Column(String(200), nullable=True)
    job_type = Column(String(50), nullable=True)
    experience_level = Column(String(50), nullable=True)
    category = Column(String(100), nullable=True, index=True)
    skills = Column(JSON, default=list)
    posted_date = Column(DateTime, nullable=True)

    source = Column(String(50), nullable=False, index=True)
    source_id = Column(String(300), nullable=False)
    source_url = Column(String(1000), nullable=True)
    apply_url = Column(String(1000), nullable=True)
    company_url = Column(String(1000), nullable=True)
    company_email = Column(String(200), nullable=True, index=True)

    is_active = Column(Boolean, default=True, index=True)
    is_fresh = Column(Boolean, default=True, index=True)
    first_seen_at = Column(DateTime, default=utcnow)
    last_seen_at = Column(DateTime, default=utcnow, index=True)
