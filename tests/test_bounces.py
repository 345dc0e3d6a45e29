import hashlib
import hmac
from datetime import timedelta

import pytest

from job_pilot.models import ApplicationStatus, GlobalJob, SystemLog, UserSettings
from job_pilot.services.bounces import BounceEvent, handle_bounce_event, verify_signature
from job_pilot.services.mailer import LogMailer


@pytest.fixture
def sent_application(db, make_user, make_job, make_user_job, make_application, now):
    user = make_user(notification_email="owner@example.com", bounce_pause_hours=24)
    job = make_job(company_email="hr@acme.example")
    return make_application(
        make_user_job(user.user_id, job),
        status=ApplicationStatus.SENT,
        recipient_email="hr@acme.example",
        sent_at=now - timedelta(hours=1),
        message_id="<msg-1@brevo>",
    )


@pytest.mark.asyncio
async def test_hard_bounce_marks_application_and_pauses_user(db, sent_application, now):
    event = BounceEvent(event="hard_bounce", email="HR@acme.example", reason="mailbox does not exist")
    mailer = LogMailer()

    result = await handle_bounce_event(db, event, mailer=mailer, now=now)

    assert result.bounced_application_ids == [sent_application.id]
    db.refresh(sent_application)
    assert sent_application.status == ApplicationStatus.BOUNCED
    job = db.query(GlobalJob).one()
    assert job.company_email is None
    user_settings = db.query(UserSettings).filter(UserSettings.user_id == sent_application.user_id).one()
    assert user_settings.sending_paused_until == now + timedelta(hours=24)
    assert db.query(SystemLog).filter(SystemLog.type == "bounce").count() == 1
    assert [m["to"] for m in mailer.sent] == ["owner@example.com"]


@pytest.mark.asyncio
async def test_replayed_bounce_changes_nothing(db, sent_application, now):
    event = BounceEvent(event="hard_bounce", email="hr@acme.example")
    await handle_bounce_event(db, event, now=now)

    replay = await handle_bounce_event(db, event, now=now + timedelta(minutes=1))

    assert replay.bounced_application_ids == []
    assert db.query(SystemLog).filter(SystemLog.type == "bounce").count() == 1


@pytest.mark.asyncio
async def test_other_events_are_ignored(db, sent_application, now):
    result = await handle_bounce_event(db, BounceEvent(event="delivered", email="hr@acme.example"), now=now)
    assert result.ignored
    db.refresh(sent_application)
    assert sent_application.status == ApplicationStatus.SENT


def test_event_accepts_provider_field_names():
    event = BounceEvent.model_validate({"event": "soft_bounce", "email": "a@b.example", "messageId": "<x>"})
    assert event.message_id == "<x>"


def test_signature_verification():
    body = b'{"event":"hard_bounce","email":"a@b.example"}'
    digest = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()

    assert verify_signature(body, digest, "s3cret")
    assert verify_signature(body, f"sha256={digest}", "s3cret")
    assert not verify_signature(body, "deadbeef", "s3cret")
    assert not verify_signature(body, None, "s3cret")
    assert verify_signature(body, None, None)
