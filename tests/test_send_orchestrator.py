from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from job_pilot.constants import LOG_SEND, SEND_LOCK
from job_pilot.models import Activity, ApplicationStatus, JobStage, SystemLog
from job_pilot.services.mailer import DeliveryResult, LogMailer, Mailer
from job_pilot.services.send_orchestrator import (
    SendInProgressError,
    run_send_batch,
    send_application,
    send_single,
)
from job_pilot.services.system_lock import acquire_lock, is_lock_held


class FailingMailer(Mailer):
    async def send(self, sender, to, subject, html_body):
        return DeliveryResult(success=False, error="550 mailbox unavailable")


class ExplodingMailer(Mailer):
    async def send(self, sender, to, subject, html_body):
        raise ConnectionError("connection reset")


@pytest.fixture
def queued(db, ready_user, make_resume, make_job, make_user_job, make_application):
    """A READY application for a fully set-up semi-auto user."""

    def _make(user=None, job=None, **fields):
        if user is None:
            user = ready_user()
            make_resume(user.user_id)
        job = job or make_job(company_email="jobs@acme.example")
        user_job = make_user_job(user.user_id, job)
        return make_application(user_job, **fields)

    return _make


@pytest.mark.asyncio
async def test_successful_send(db, queued, now):
    application = queued()
    mailer = LogMailer()

    outcome = await send_application(db, application.id, mailer, now=now)

    assert outcome.status == "sent"
    db.refresh(application)
    assert application.status == ApplicationStatus.SENT
    assert application.sent_at == now
    assert application.message_id.startswith("suppressed-")
    assert application.user_job.stage == JobStage.APPLIED
    assert application.user_job.applied_at == now
    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to"] == "jobs@company.example"
    assert db.query(Activity).filter(Activity.type == "application_sent").count() == 1


@pytest.mark.asyncio
async def test_failed_delivery_is_recorded(db, queued, now):
    application = queued()

    outcome = await send_application(db, application.id, FailingMailer(), now=now)

    assert outcome.status == "failed"
    db.refresh(application)
    assert application.status == ApplicationStatus.FAILED
    assert application.retry_count == 1
    assert application.error_message == "550 mailbox unavailable"


@pytest.mark.asyncio
async def test_mailer_exception_becomes_failure(db, queued, now):
    application = queued()
    outcome = await send_application(db, application.id, ExplodingMailer(), now=now)
    assert outcome.status == "failed"
    db.refresh(application)
    assert application.error_message == "connection reset"


@pytest.mark.asyncio
async def test_future_schedule_is_skipped(db, queued, now):
    application = queued(scheduled_send_at=now + timedelta(minutes=5))
    outcome = await send_application(db, application.id, LogMailer(), now=now)
    assert outcome.status == "skipped"
    db.refresh(application)
    assert application.status == ApplicationStatus.READY


@pytest.mark.asyncio
async def test_incomplete_setup_is_skipped(db, make_user, make_job, make_user_job, make_application, now):
    user = make_user(full_name=None)
    application = make_application(make_user_job(user.user_id, make_job()))
    outcome = await send_application(db, application.id, LogMailer(), now=now)
    assert outcome.status == "skipped"
    assert "full_name" in outcome.reason


@pytest.mark.asyncio
async def test_missing_recipient_cancels(db, queued, now):
    application = queued(recipient_email=None)
    outcome = await send_application(db, application.id, LogMailer(), now=now)
    assert outcome.status == "cancelled"
    db.refresh(application)
    assert application.status == ApplicationStatus.CANCELLED


@pytest.mark.asyncio
async def test_recent_similar_application_cancels(db, ready_user, make_resume, make_job, queued, now):
    user = ready_user()
    make_resume(user.user_id)
    queued(
        user=user,
        job=make_job(company="Acme", title="Python Developer"),
        status=ApplicationStatus.SENT,
        sent_at=now - timedelta(days=2),
    )
    second = queued(user=user, job=make_job(company="ACME", title="Senior Python Developer"))

    outcome = await send_application(db, second.id, LogMailer(), now=now)

    assert outcome.status == "cancelled"
    assert "Acme" in outcome.reason or "ACME" in outcome.reason


@pytest.mark.asyncio
async def test_daily_cap_defers(db, ready_user, make_resume, queued, now):
    user = ready_user(max_sends_per_day=1)
    make_resume(user.user_id)
    queued(user=user, status=ApplicationStatus.SENT, sent_at=now - timedelta(hours=2))
    application = queued(user=user)

    outcome = await send_application(db, application.id, LogMailer(), now=now)

    assert outcome.status == "skipped"
    assert outcome.rate_limited


@pytest.mark.asyncio
async def test_batch_skips_when_lock_held(db, queued, now):
    application = queued()
    assert acquire_lock(db, SEND_LOCK, now=now)
    mailer = LogMailer()

    result = await run_send_batch(db, mailer, now=now, sleep=AsyncMock())

    assert result.skipped
    assert mailer.sent == []
    db.refresh(application)
    assert application.status == ApplicationStatus.READY


@pytest.mark.asyncio
async def test_batch_sends_oldest_first_and_releases_lock(db, ready_user, make_resume, queued, now):
    first_user = ready_user()
    make_resume(first_user.user_id)
    second_user = ready_user()
    make_resume(second_user.user_id)
    newer = queued(user=first_user, created_at=now - timedelta(minutes=1))
    older = queued(user=second_user, created_at=now - timedelta(minutes=10))
    mailer = LogMailer()
    sleep = AsyncMock()

    result = await run_send_batch(db, mailer, now=now, inter_send_delay=2, sleep=sleep)

    assert (result.sent, result.failed, result.skipped) == (2, 0, False)
    assert [o.application_id for o in result.outcomes] == [older.id, newer.id]
    sleep.assert_awaited_once_with(2)
    assert not is_lock_held(db, SEND_LOCK, now=now)
    assert db.query(SystemLog).filter(SystemLog.type == LOG_SEND).count() == 1


@pytest.mark.asyncio
async def test_batch_defers_rate_limited_user(db, ready_user, make_resume, make_job, queued, now):
    user = ready_user(max_sends_per_day=1)
    make_resume(user.user_id)
    for _ in range(3):
        queued(user=user, job=make_job(company_email="jobs@acme.example", title="Unique role"))

    result = await run_send_batch(db, LogMailer(), now=now, sleep=AsyncMock())

    assert result.sent == 1
    assert result.deferred == 2


@pytest.mark.asyncio
async def test_batch_stops_at_soft_limit(db, ready_user, make_resume, queued, now):
    for _ in range(3):
        user = ready_user()
        make_resume(user.user_id)
        queued(user=user)
    ticks = iter([0.0, 1.0, 100.0, 100.0, 100.0])

    result = await run_send_batch(
        db, LogMailer(), now=now, soft_limit_seconds=8, clock=lambda: next(ticks), sleep=AsyncMock()
    )

    assert result.partial
    assert result.sent == 1


@pytest.mark.asyncio
async def test_send_single_refuses_while_batch_runs(db, queued, now):
    application = queued()
    acquire_lock(db, SEND_LOCK, now=now)
    with pytest.raises(SendInProgressError):
        await send_single(db, application.user_id, application.id, LogMailer(), now=now)
