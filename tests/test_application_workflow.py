import pytest

from job_pilot.errors import InvalidTransitionError, JobPilotError, NotFoundError
from job_pilot.models import ALLOWED_TRANSITIONS, ApplicationStatus, can_transition
from job_pilot.services.application_workflow import (
    RetryLimitError,
    approve_application,
    cancel_application,
    retry_application,
)


@pytest.fixture
def draft(make_user, make_job, make_user_job, make_application):
    def _make(status=ApplicationStatus.DRAFT, **fields):
        user = make_user(full_name="Ada Lovelace")
        user_job = make_user_job(user.user_id, make_job())
        return make_application(user_job, status=status, **fields)

    return _make


def test_terminal_states_have_no_exits():
    assert ALLOWED_TRANSITIONS[ApplicationStatus.BOUNCED] == set()
    assert ALLOWED_TRANSITIONS[ApplicationStatus.CANCELLED] == set()


@pytest.mark.parametrize(
    "current,target",
    [
        (ApplicationStatus.DRAFT, ApplicationStatus.SENT),
        (ApplicationStatus.SENDING, ApplicationStatus.CANCELLED),
        (ApplicationStatus.SENT, ApplicationStatus.READY),
        (ApplicationStatus.FAILED, ApplicationStatus.SENT),
        (ApplicationStatus.CANCELLED, ApplicationStatus.READY),
    ],
)
def test_forbidden_transitions(current, target):
    assert not can_transition(current, target)


def test_transition_raises_and_keeps_status(draft):
    application = draft(status=ApplicationStatus.SENT)
    with pytest.raises(InvalidTransitionError):
        application.transition(ApplicationStatus.READY)
    assert application.status == ApplicationStatus.SENT


def test_approve_moves_draft_to_ready(db, draft):
    application = draft(recipient_email=None)
    approved = approve_application(db, application.user_id, application.id, recipient_email=" Jobs@Acme.example ")
    assert approved.status == ApplicationStatus.READY
    assert approved.recipient_email == "jobs@acme.example"
    assert approved.retry_count == 0


def test_approve_requires_recipient(db, draft):
    application = draft(recipient_email=None)
    with pytest.raises(JobPilotError):
        approve_application(db, application.user_id, application.id)
    db.refresh(application)
    assert application.status == ApplicationStatus.DRAFT


def test_other_users_application_is_not_found(db, draft):
    application = draft()
    with pytest.raises(NotFoundError):
        approve_application(db, application.user_id + 100, application.id)


@pytest.mark.parametrize("status", [ApplicationStatus.DRAFT, ApplicationStatus.READY])
def test_cancel_from_editable_states(db, draft, status):
    application = draft(status=status)
    cancelled = cancel_application(db, application.user_id, application.id)
    assert cancelled.status == ApplicationStatus.CANCELLED


def test_cancel_while_sending_is_refused(db, draft):
    application = draft(status=ApplicationStatus.SENDING)
    with pytest.raises(InvalidTransitionError):
        cancel_application(db, application.user_id, application.id)
    db.refresh(application)
    assert application.status == ApplicationStatus.SENDING


def test_retry_failed_application(db, draft):
    application = draft(status=ApplicationStatus.FAILED, retry_count=1, scheduled_send_at=None)
    retried = retry_application(db, application.user_id, application.id)
    assert retried.status == ApplicationStatus.READY
    assert retried.retry_count == 1


def test_retry_budget_is_enforced(db, draft):
    application = draft(status=ApplicationStatus.FAILED, retry_count=3)
    with pytest.raises(RetryLimitError):
        retry_application(db, application.user_id, application.id)


def test_retry_requires_failed_state(db, draft):
    application = draft(status=ApplicationStatus.SENT)
    with pytest.raises(InvalidTransitionError):
        retry_application(db, application.user_id, application.id)
