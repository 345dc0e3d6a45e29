from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, JSON

from job_pilot.database import Base
from job_pilot.utils.clock import utcnow


class SystemLock(Base):
    """Named cluster-wide mutex row, reclaimable once older than its timeout."""

    __tablename__ = "system_locks"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True)
    is_running = Column(Boolean, default=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)


class SystemLog(Base):
    __tablename__ = "system_logs"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(50), nullable=False, index=True)
    source = Column(String(100), nullable=True, index=True)
    message = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)
