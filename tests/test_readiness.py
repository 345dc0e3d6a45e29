from job_pilot.models import ApplicationMode
from job_pilot.services.readiness import check_readiness


def test_manual_mode_needs_only_a_name(db, make_user):
    user = make_user(full_name="Grace Hopper")
    report = check_readiness(db, user.user_id)
    assert report.mode == ApplicationMode.MANUAL
    assert report.ready
    assert report.missing == []


def test_semi_auto_requires_sender_and_resume(db, make_user, make_resume):
    user = make_user(full_name="Grace Hopper", application_mode=ApplicationMode.SEMI_AUTO)

    report = check_readiness(db, user.user_id)
    assert not report.ready
    assert set(report.missing) == {"sender_identity", "sender_verified", "resume"}

    user.application_email = "grace@example.com"
    user.sender_verified = True
    db.commit()
    make_resume(user.user_id)

    assert check_readiness(db, user.user_id).ready


def test_full_auto_adds_automation_checks(db, ready_user, make_resume):
    user = ready_user(application_mode=ApplicationMode.FULL_AUTO, keywords=["python"])
    make_resume(user.user_id)

    report = check_readiness(db, user.user_id)
    assert set(report.missing) == {"categories", "auto_apply_enabled", "min_auto_apply_score"}


def test_readiness_reflects_changes_from_other_sessions(db, session_factory, ready_user, make_resume):
    user = ready_user()
    make_resume(user.user_id)
    assert check_readiness(db, user.user_id).ready

    other = session_factory()
    try:
        other_settings = other.get(type(user), user.id)
        other_settings.sender_verified = False
        other.commit()
    finally:
        other.close()

    assert check_readiness(db, user.user_id).missing == ["sender_verified"]
