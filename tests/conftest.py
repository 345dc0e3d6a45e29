"""Shared fixtures: an isolated in-memory database per test plus row factories."""

import os

# Settings are read at import time, so point them at throwaway targets first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FILE"] = ""
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["MAIL_SUPPRESS_SEND"] = "true"
os.environ["BREVO_API_KEY"] = ""
os.environ["BOUNCE_WEBHOOK_SECRET"] = ""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from job_pilot.database import Base, get_db
from job_pilot.models import (
    ApplicationMode,
    ApplicationStatus,
    GlobalJob,
    JobApplication,
    JobStage,
    Resume,
    User,
    UserJob,
    UserSettings,
)
from job_pilot.services.mailer import LogMailer, get_mailer
from job_pilot.services.rate_limiter import rate_limiter

NOW = datetime(2026, 3, 2, 12, 0, 0)


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def mailer():
    return LogMailer()


@pytest.fixture
def client(session_factory, mailer):
    from job_pilot.app import create_app

    app = create_app()

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def cron_headers():
    return {"Authorization": "Bearer test-cron-secret"}


# --- factories ---


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(email=None, **settings_fields):
        counter["n"] += 1
        user = User(email=email or f"user{counter['n']}@example.com", name=f"User {counter['n']}")
        db.add(user)
        db.flush()
        fields = {"keywords": ["python"], "max_sends_per_day": 20, "max_sends_per_hour": 8, "send_delay_seconds": 0}
        fields.update(settings_fields)
        user_settings = UserSettings(user_id=user.id, **fields)
        db.add(user_settings)
        db.commit()
        return user_settings

    return _make


@pytest.fixture
def ready_user(make_user):
    """A semi-auto user who passes every sending check."""

    def _make(**overrides):
        fields = {
            "full_name": "Ada Lovelace",
            "application_email": "ada@example.com",
            "sender_verified": True,
            "application_mode": ApplicationMode.SEMI_AUTO,
        }
        fields.update(overrides)
        return make_user(**fields)

    return _make


@pytest.fixture
def make_job(db):
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        data = {
            "title": "Python Developer",
            "company": f"Company {counter['n']}",
            "location": "Remote",
            "description": "We build APIs with Python and FastAPI.",
            "source": "remotive",
            "source_id": f"job-{counter['n']}",
            "skills": ["python"],
            "is_active": True,
            "is_fresh": False,
            "first_seen_at": NOW,
            "last_seen_at": NOW,
        }
        data.update(fields)
        job = GlobalJob(**data)
        db.add(job)
        db.commit()
        return job

    return _make


@pytest.fixture
def make_resume(db):
    def _make(user_id, name="Main CV", **fields):
        data = {
            "content": "Python developer with FastAPI and PostgreSQL experience.",
            "detected_skills": ["python", "fastapi"],
            "created_at": NOW,
            "updated_at": NOW,
        }
        data.update(fields)
        resume = Resume(user_id=user_id, name=name, **data)
        db.add(resume)
        db.commit()
        return resume

    return _make


@pytest.fixture
def make_user_job(db):
    def _make(user_id, job, **fields):
        data = {"match_score": 80, "match_reasons": [], "stage": JobStage.SAVED, "created_at": NOW}
        data.update(fields)
        user_job = UserJob(user_id=user_id, global_job_id=job.id, **data)
        db.add(user_job)
        db.commit()
        return user_job

    return _make


@pytest.fixture
def make_application(db):
    def _make(user_job, status=ApplicationStatus.READY, **fields):
        data = {
            "sender_email": "ada@example.com",
            "recipient_email": "jobs@company.example",
            "subject": "Application for Python Developer",
            "body": "Hello,\n\nI would like to apply for the role.\n\nAda",
            "retry_count": 0,
            "created_at": NOW,
            "updated_at": NOW,
        }
        data.update(fields)
        application = JobApplication(
            user_id=user_job.user_id,
            user_job_id=user_job.id,
            status=status,
            **data,
        )
        db.add(application)
        db.commit()
        return application

    return _make


@pytest.fixture
def now():
    return NOW
