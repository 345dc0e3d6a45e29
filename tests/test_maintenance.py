from datetime import timedelta

from job_pilot.constants import LOG_CLEANUP, STUCK_SENDING_MESSAGE
from job_pilot.models import Activity, ApplicationStatus, GlobalJob, JobStage, SystemLog
from job_pilot.services.maintenance import recover_stuck_sending, run_ghost_sweep, run_staleness_sweep
from job_pilot.services.system_log import write_system_log


def test_stale_jobs_deactivated_per_source(db, make_job, now):
    old_remotive = make_job(source="remotive", last_seen_at=now - timedelta(days=22))
    recent_remotive = make_job(source="remotive", last_seen_at=now - timedelta(days=10))
    old_unknown = make_job(source="someboard", last_seen_at=now - timedelta(days=8))

    result = run_staleness_sweep(db, now=now)

    assert result.deactivated == 2
    assert db.get(GlobalJob, old_remotive.id).is_active is False
    assert db.get(GlobalJob, recent_remotive.id).is_active is True
    assert db.get(GlobalJob, old_unknown.id).is_active is False


def test_stuck_sending_recovered_exactly_once(db, make_user, make_job, make_user_job, make_application, now):
    user = make_user()
    stuck = make_application(
        make_user_job(user.user_id, make_job()),
        status=ApplicationStatus.SENDING,
        sending_started_at=now - timedelta(minutes=30),
    )
    in_flight = make_application(
        make_user_job(user.user_id, make_job()),
        status=ApplicationStatus.SENDING,
        sending_started_at=now - timedelta(minutes=2),
    )

    assert recover_stuck_sending(db, now) == 1
    assert recover_stuck_sending(db, now + timedelta(seconds=1)) == 0

    db.refresh(stuck)
    db.refresh(in_flight)
    assert stuck.status == ApplicationStatus.FAILED
    assert stuck.error_message == STUCK_SENDING_MESSAGE
    assert stuck.retry_count == 1
    assert in_flight.status == ApplicationStatus.SENDING


def test_old_logs_pruned_and_sweep_logged(db, now):
    write_system_log(db, "scrape", "ancient", now=now - timedelta(days=31))
    write_system_log(db, "scrape", "recent", now=now - timedelta(days=1))

    result = run_staleness_sweep(db, now=now)

    assert result.pruned_logs == 1
    messages = [row.message for row in db.query(SystemLog).all()]
    assert "ancient" not in messages
    assert "recent" in messages
    assert db.query(SystemLog).filter(SystemLog.type == LOG_CLEANUP).count() == 1


def test_ghost_sweep_marks_silent_applications(db, make_user, make_job, make_user_job, now):
    user = make_user(ghost_days=14)
    silent = make_user_job(user.user_id, make_job(), stage=JobStage.APPLIED, applied_at=now - timedelta(days=15))
    fresh = make_user_job(user.user_id, make_job(), stage=JobStage.APPLIED, applied_at=now - timedelta(days=3))
    interviewing = make_user_job(
        user.user_id, make_job(), stage=JobStage.INTERVIEW, applied_at=now - timedelta(days=30)
    )

    assert run_ghost_sweep(db, now=now) == 1

    db.refresh(silent)
    db.refresh(fresh)
    db.refresh(interviewing)
    assert silent.stage == JobStage.GHOSTED
    assert fresh.stage == JobStage.APPLIED
    assert interviewing.stage == JobStage.INTERVIEW
    assert db.query(Activity).filter(Activity.type == "ghosted").count() == 1
