from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from job_pilot.errors import NotFoundError
from job_pilot.models import Activity, Resume, UserSettings
from job_pilot.utils.clock import utcnow


def load_user_settings(db: Session, user_id: int) -> UserSettings:
    row = db.query(UserSettings).filter(UserSettings.user_id == user_id).first()
    if row is None:
        raise NotFoundError(f"No settings found for user {user_id}")
    return row


def active_resumes(db: Session, user_id: int) -> list[Resume]:
    return (
        db.query(Resume)
        .filter(Resume.user_id == user_id, Resume.is_deleted == False)  # noqa: E712
        .order_by(Resume.id)
        .all()
    )


def add_activity(
    db: Session,
    user_id: int,
    type: str,
    description: str,
    user_job_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Activity:
    activity = Activity(
        user_id=user_id,
        user_job_id=user_job_id,
        type=type,
        description=description,
        created_at=now or utcnow(),
    )
    db.add(activity)
    return activity
