import json

import pytest

from job_pilot.models import ApplicationStatus, JobApplication


def _user_headers(user):
    return {"X-User-Id": str(user.user_id)}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestCronAuth:
    def test_missing_secret_is_rejected(self, client):
        assert client.post("/api/cron/cleanup-stale").status_code == 401

    def test_wrong_secret_is_rejected(self, client):
        response = client.post("/api/cron/cleanup-stale", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"headers": {"Authorization": "Bearer test-cron-secret"}},
            {"headers": {"X-Cron-Secret": "test-cron-secret"}},
            {"params": {"secret": "test-cron-secret"}},
        ],
    )
    def test_secret_accepted_in_each_form(self, client, kwargs):
        response = client.post("/api/cron/cleanup-stale", **kwargs)
        assert response.status_code == 200
        assert set(response.json()["details"]) == {"deactivated", "recovered_stuck", "pruned_logs"}


def test_cron_match_jobs_reports_counts(client, cron_headers, make_user):
    make_user()
    response = client.post("/api/cron/match-jobs", headers=cron_headers)
    assert response.status_code == 200
    assert response.json()["details"]["created"] == 0


def test_user_endpoints_require_identity(client):
    assert client.get("/api/settings/readiness").status_code == 401
    assert client.get("/api/jobs", headers={"X-User-Id": "abc"}).status_code == 401


def test_readiness_endpoint(client, make_user):
    user = make_user(full_name="Grace Hopper")
    body = client.get("/api/settings/readiness", headers=_user_headers(user)).json()
    assert body["mode"] == "manual"
    assert body["ready"] is True
    assert {c["name"] for c in body["checks"]} >= {"full_name", "resume", "sender_verified"}


def test_generate_without_resume_returns_clear_error(client, make_user, make_job, make_user_job):
    user = make_user(full_name="Ada Lovelace")
    user_job = make_user_job(user.user_id, make_job())

    response = client.post(
        "/api/applications/generate", json={"user_job_id": user_job.id}, headers=_user_headers(user)
    )

    assert response.status_code == 400
    assert "No resume found" in response.json()["detail"]


def test_board_lists_only_own_jobs(client, make_user, make_job, make_user_job):
    owner, other = make_user(), make_user()
    make_user_job(owner.user_id, make_job(title="Mine"))
    make_user_job(other.user_id, make_job(title="Theirs"))

    body = client.get("/api/jobs", headers=_user_headers(owner)).json()

    assert [row["global_job"]["title"] for row in body] == ["Mine"]
    assert body[0]["stage"] == "saved"


def test_scan_now_is_throttled(client, make_user):
    user = make_user()
    first = client.post("/api/jobs/scan-now", headers=_user_headers(user))
    second = client.post("/api/jobs/scan-now", headers=_user_headers(user))

    assert first.status_code == 200
    assert second.status_code == 429
    assert int(second.headers["Retry-After"]) > 0


def test_cancel_while_sending_conflicts(client, make_user, make_job, make_user_job, make_application):
    user = make_user()
    application = make_application(make_user_job(user.user_id, make_job()), status=ApplicationStatus.SENDING)

    response = client.post(f"/api/applications/{application.id}/cancel", headers=_user_headers(user))

    assert response.status_code == 409


def test_approve_then_send(client, db, mailer, ready_user, make_resume, make_job, make_user_job, make_application):
    user = ready_user()
    make_resume(user.user_id)
    application = make_application(
        make_user_job(user.user_id, make_job(company_email="hr@acme.example")),
        status=ApplicationStatus.DRAFT,
        recipient_email=None,
    )

    approved = client.post(
        f"/api/applications/{application.id}/approve",
        json={"recipient_email": "hr@acme.example"},
        headers=_user_headers(user),
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "ready"

    sent = client.post(f"/api/applications/{application.id}/send", headers=_user_headers(user))
    assert sent.status_code == 200
    assert sent.json()["status"] == "sent"
    assert [m["to"] for m in mailer.sent] == ["hr@acme.example"]

    stats = client.get("/api/applications/send-stats", headers=_user_headers(user)).json()
    assert stats["today_count"] == 1


def test_bounce_webhook_marks_application_and_ignores_replay(
    client, db, make_user, make_job, make_user_job, make_application, now
):
    user = make_user()
    application = make_application(
        make_user_job(user.user_id, make_job(company_email="hr@acme.example")),
        status=ApplicationStatus.SENT,
        recipient_email="hr@acme.example",
        sent_at=now,
    )
    payload = json.dumps({"event": "hard_bounce", "email": "hr@acme.example"})

    first = client.post("/api/webhooks/email-bounce", content=payload)
    replay = client.post("/api/webhooks/email-bounce", content=payload)

    assert first.json()["bounced"] == [application.id]
    assert replay.json()["bounced"] == []
    db.expire_all()
    assert db.get(JobApplication, application.id).status == ApplicationStatus.BOUNCED


def test_bounce_webhook_rejects_garbage(client):
    response = client.post("/api/webhooks/email-bounce", content=b"not json")
    assert response.status_code == 400
