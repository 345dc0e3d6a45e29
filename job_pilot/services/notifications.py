"""Throttling for "new matches" and account emails sent to users.

Counts come straight from the append-only system log (type ``notification``,
source = user id), so recording a notification is just appending a row.
"""
from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from job_pilot.config import settings
from job_pilot.constants import LOG_NOTIFICATION, NOTIFICATIONS_PER_DAY, NOTIFICATIONS_PER_HOUR
from job_pilot.models import GlobalJob, NotificationFrequency, SystemLog, User, UserJob, UserSettings
from job_pilot.services.mailer import Mailer
from job_pilot.services.system_log import write_system_log
from job_pilot.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class NotificationDecision:
    allowed: bool
    reason: Optional[str] = None


@dataclass
class NotifyResult:
    users_checked: int = 0
    users_notified: int = 0
    throttled: int = 0
    failed: int = 0


def _count_since(db: Session, user_id: int, since: datetime) -> int:
    return (
        db.query(func.count(SystemLog.id))
        .filter(
            SystemLog.type == LOG_NOTIFICATION,
            SystemLog.source == str(user_id),
            SystemLog.created_at >= since,
        )
        .scalar()
    )


def check_notification_allowed(db: Session, user_settings: UserSettings, now: Optional[datetime] = None) -> NotificationDecision:
    now = now or utcnow()
    if not user_settings.email_notifications:
        return NotificationDecision(False, "notifications disabled")
    frequency = NotificationFrequency(user_settings.notification_frequency or NotificationFrequency.INSTANT)
    if frequency == NotificationFrequency.OFF:
        return NotificationDecision(False, "frequency is off")

    user_id = user_settings.user_id
    today = _count_since(db, user_id, now.replace(hour=0, minute=0, second=0, microsecond=0))
    if today >= NOTIFICATIONS_PER_DAY:
        return NotificationDecision(False, "daily cap reached")
    if _count_since(db, user_id, now - timedelta(hours=1)) >= NOTIFICATIONS_PER_HOUR:
        return NotificationDecision(False, "hourly cap reached")
    if frequency == NotificationFrequency.DAILY and today > 0:
        return NotificationDecision(False, "daily digest already sent")
    return NotificationDecision(True)


def record_notification(db: Session, user_id: int, message: str, now: Optional[datetime] = None):
    write_system_log(db, LOG_NOTIFICATION, message, source=str(user_id), now=now)


def notification_address(db: Session, user_settings: UserSettings) -> Optional[str]:
    if user_settings.notification_email:
        return user_settings.notification_email
    user = db.get(User, user_settings.user_id)
    return user.email if user else None


async def send_user_notification(
    db: Session,
    user_settings: UserSettings,
    subject: str,
    html_body: str,
    mailer: Mailer,
    now: Optional[datetime] = None,
) -> bool:
    """Email the user if the limiter allows it, and record the send."""
    now = now or utcnow()
    decision = check_notification_allowed(db, user_settings, now=now)
    if not decision.allowed:
        logger.info(f"Notification to user {user_settings.user_id} suppressed: {decision.reason}")
        return False

    to = notification_address(db, user_settings)
    if not to:
        return False

    result = await mailer.send(settings.notification_sender, to, subject, html_body)
    if not result.success:
        logger.warning(f"Notification to {to} failed: {result.error}")
        return False
    record_notification(db, user_settings.user_id, f"{subject} -> {to}", now=now)
    return True


def _matches_html(name: str, rows: list[tuple[UserJob, GlobalJob]]) -> str:
    items = "".join(
        f"<li><strong>{html.escape(job.title)}</strong> at {html.escape(job.company)}"
        f" ({uj.match_score}% match)"
        + (f' - <a href="{html.escape(job.apply_url)}">apply</a>' if job.apply_url else "")
        + "</li>"
        for uj, job in rows
    )
    return f"<p>Hi {html.escape(name)},</p><p>New jobs matching your profile:</p><ul>{items}</ul>"


async def notify_new_matches(db: Session, mailer: Mailer, now: Optional[datetime] = None) -> NotifyResult:
    """Email each user their quality matches from the last day, within the caps."""
    now = now or utcnow()
    since = now - timedelta(days=1)
    result = NotifyResult()

    users = db.query(UserSettings).filter(UserSettings.email_notifications == True).all()  # noqa: E712
    for user_settings in users:
        result.users_checked += 1
        rows = (
            db.query(UserJob, GlobalJob)
            .join(GlobalJob, UserJob.global_job_id == GlobalJob.id)
            .filter(
                UserJob.user_id == user_settings.user_id,
                UserJob.is_dismissed == False,  # noqa: E712
                UserJob.match_score >= settings.match_quality_threshold,
                UserJob.created_at >= since,
            )
            .order_by(UserJob.match_score.desc())
            .limit(20)
            .all()
        )
        if not rows:
            continue

        subject = f"{len(rows)} new job match{'es' if len(rows) != 1 else ''} for you"
        try:
            sent = await send_user_notification(
                db,
                user_settings,
                subject,
                _matches_html(user_settings.full_name or "there", rows),
                mailer,
                now=now,
            )
        except Exception as e:
            db.rollback()
            result.failed += 1
            logger.error(f"Failed to notify user {user_settings.user_id}: {e}")
            continue
        if sent:
            result.users_notified += 1
        else:
            result.throttled += 1

    logger.info(f"Match notifications: {result.users_notified} of {result.users_checked} users notified")
    return result
