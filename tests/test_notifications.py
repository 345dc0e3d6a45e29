from datetime import timedelta

import pytest

from job_pilot.models import NotificationFrequency
from job_pilot.services.mailer import LogMailer
from job_pilot.services.notifications import (
    check_notification_allowed,
    notify_new_matches,
    record_notification,
    send_user_notification,
)


def test_disabled_or_off_blocks(db, make_user, now):
    assert not check_notification_allowed(db, make_user(email_notifications=False), now=now).allowed
    off = make_user(notification_frequency=NotificationFrequency.OFF)
    assert check_notification_allowed(db, off, now=now).reason == "frequency is off"


def test_hourly_cap(db, make_user, now):
    user = make_user()
    record_notification(db, user.user_id, "first", now=now - timedelta(minutes=10))

    decision = check_notification_allowed(db, user, now=now)
    assert not decision.allowed
    assert decision.reason == "hourly cap reached"
    assert check_notification_allowed(db, user, now=now + timedelta(minutes=55)).allowed


def test_daily_cap(db, make_user, now):
    user = make_user()
    for hours in (9, 6, 3):
        record_notification(db, user.user_id, "n", now=now - timedelta(hours=hours))
    decision = check_notification_allowed(db, user, now=now)
    assert decision.reason == "daily cap reached"


def test_daily_digest_once_per_day(db, make_user, now):
    user = make_user(notification_frequency=NotificationFrequency.DAILY)
    record_notification(db, user.user_id, "digest", now=now - timedelta(hours=5))
    assert check_notification_allowed(db, user, now=now).reason == "daily digest already sent"


def test_caps_are_per_user(db, make_user, now):
    first, second = make_user(), make_user()
    record_notification(db, first.user_id, "n", now=now)
    assert check_notification_allowed(db, second, now=now).allowed


@pytest.mark.asyncio
async def test_send_records_and_throttles(db, make_user, now):
    user = make_user(notification_email="me@example.com")
    mailer = LogMailer()

    assert await send_user_notification(db, user, "Hello", "<p>hi</p>", mailer, now=now)
    assert not await send_user_notification(db, user, "Again", "<p>hi</p>", mailer, now=now + timedelta(minutes=1))
    assert [m["to"] for m in mailer.sent] == ["me@example.com"]


@pytest.mark.asyncio
async def test_notify_new_matches(db, make_user, make_job, make_user_job, now):
    user = make_user()
    make_user_job(user.user_id, make_job(title="Great Match"), match_score=85, created_at=now - timedelta(hours=2))
    make_user_job(user.user_id, make_job(title="Weak Match"), match_score=45, created_at=now - timedelta(hours=2))
    make_user()  # no matches
    mailer = LogMailer()

    result = await notify_new_matches(db, mailer, now=now)

    assert result.users_notified == 1
    assert len(mailer.sent) == 1
    assert "Great Match" in mailer.sent[0]["html"]
    assert "Weak Match" not in mailer.sent[0]["html"]
