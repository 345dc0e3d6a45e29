import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from job_pilot.models import SystemLog
from job_pilot.utils.clock import utcnow

logger = logging.getLogger(__name__)


def write_system_log(
    db: Session,
    type: str,
    message: str,
    source: Optional[str] = None,
    details: Optional[dict] = None,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> SystemLog:
    """Append a durable event row; also mirrored to the process log."""
    entry = SystemLog(
        type=type,
        source=source,
        message=message,
        details=details or {},
        created_at=now or utcnow(),
    )
    db.add(entry)
    if commit:
        db.commit()
    logger.info(f"[{type}] {source or '-'}: {message}")
    return entry
