from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from job_pilot.constants import BOUNCES_PER_DAY_BEFORE_PAUSE
from job_pilot.models import AccountStatus, ApplicationStatus, JobApplication, UserSettings
from job_pilot.utils.clock import utcnow

logger = logging.getLogger(__name__)

DELIVERED = (ApplicationStatus.SENT, ApplicationStatus.BOUNCED)


@dataclass
class SendLimitResult:
    allowed: bool
    reason: Optional[str] = None
    wait_seconds: Optional[int] = None


@dataclass
class SendStats:
    today_count: int
    hour_count: int
    max_per_day: int
    max_per_hour: int
    next_send_in_seconds: int
    is_paused: bool
    paused_until: Optional[datetime]


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _sent_since(db: Session, user_id: int, since: datetime) -> int:
    return (
        db.query(func.count(JobApplication.id))
        .filter(
            JobApplication.user_id == user_id,
            JobApplication.status.in_(DELIVERED),
            JobApplication.sent_at >= since,
        )
        .scalar()
    )


def _last_sent_at(db: Session, user_id: int) -> Optional[datetime]:
    return (
        db.query(func.max(JobApplication.sent_at))
        .filter(JobApplication.user_id == user_id, JobApplication.status.in_(DELIVERED))
        .scalar()
    )


def can_send_now(db: Session, user_settings: UserSettings, now: Optional[datetime] = None) -> SendLimitResult:
    """Durable per-user throughput policy, counted from delivered applications."""
    now = now or utcnow()
    user_id = user_settings.user_id

    if user_settings.sending_paused_until and user_settings.sending_paused_until > now:
        wait = math.ceil((user_settings.sending_paused_until - now).total_seconds())
        return SendLimitResult(False, f"Sending paused. Resumes in {math.ceil(wait / 60)} minutes.", wait)

    if user_settings.account_status != AccountStatus.ACTIVE:
        return SendLimitResult(False, "Account is paused or disabled.")

    today_count = _sent_since(db, user_id, _start_of_day(now))
    if today_count >= user_settings.max_sends_per_day:
        return SendLimitResult(False, f"Daily limit reached ({today_count}/{user_settings.max_sends_per_day}).")

    hour_count = _sent_since(db, user_id, now - timedelta(hours=1))
    if hour_count >= user_settings.max_sends_per_hour:
        return SendLimitResult(False, f"Hourly limit reached ({hour_count}/{user_settings.max_sends_per_hour}).")

    last_sent = _last_sent_at(db, user_id)
    if last_sent is not None:
        elapsed = (now - last_sent).total_seconds()
        if elapsed < user_settings.send_delay_seconds:
            wait = math.ceil(user_settings.send_delay_seconds - elapsed)
            return SendLimitResult(False, f"Wait {wait}s before next send.", wait)

    bounces_today = (
        db.query(func.count(JobApplication.id))
        .filter(
            JobApplication.user_id == user_id,
            JobApplication.status == ApplicationStatus.BOUNCED,
            JobApplication.updated_at >= _start_of_day(now),
        )
        .scalar()
    )
    if bounces_today >= BOUNCES_PER_DAY_BEFORE_PAUSE:
        user_settings.sending_paused_until = now + timedelta(hours=user_settings.bounce_pause_hours)
        db.commit()
        logger.warning(f"User {user_id} paused after {bounces_today} bounces today")
        return SendLimitResult(
            False,
            f"{bounces_today} bounces today. Sending paused for {user_settings.bounce_pause_hours}h.",
        )

    return SendLimitResult(True)


def get_send_stats(db: Session, user_settings: UserSettings, now: Optional[datetime] = None) -> SendStats:
    now = now or utcnow()
    user_id = user_settings.user_id
    last_sent = _last_sent_at(db, user_id)
    next_send_in = 0
    if last_sent is not None:
        next_send_in = max(0, user_settings.send_delay_seconds - int((now - last_sent).total_seconds()))
    paused_until = user_settings.sending_paused_until
    return SendStats(
        today_count=_sent_since(db, user_id, _start_of_day(now)),
        hour_count=_sent_since(db, user_id, now - timedelta(hours=1)),
        max_per_day=user_settings.max_sends_per_day,
        max_per_hour=user_settings.max_sends_per_hour,
        next_send_in_seconds=next_send_in,
        is_paused=bool(paused_until and paused_until > now),
        paused_until=paused_until,
    )
