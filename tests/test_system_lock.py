from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from job_pilot.database import Base
from job_pilot.services.system_lock import acquire_lock, held_lock, is_lock_held, release_lock


@pytest.fixture
def file_sessions(tmp_path):
    """Two independent sessions over a file-backed database."""
    engine = create_engine(f"sqlite:///{tmp_path / 'locks.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False)
    first, second = factory(), factory()
    yield first, second
    first.close()
    second.close()
    engine.dispose()


def test_single_winner_across_sessions(file_sessions, now):
    first, second = file_sessions
    assert acquire_lock(first, "send-applications", now=now) is True
    assert acquire_lock(second, "send-applications", now=now) is False
    assert acquire_lock(first, "send-applications", now=now + timedelta(seconds=5)) is False


def test_release_allows_next_holder(file_sessions, now):
    first, second = file_sessions
    assert acquire_lock(first, "scrape-global", now=now)
    release_lock(first, "scrape-global", now=now)
    assert acquire_lock(second, "scrape-global", now=now + timedelta(seconds=1))


def test_stale_lock_is_reclaimed(file_sessions, now):
    first, second = file_sessions
    assert acquire_lock(first, "send-applications", now=now)
    later = now + timedelta(minutes=11)
    assert acquire_lock(second, "send-applications", timeout=timedelta(minutes=10), now=later)
    assert is_lock_held(first, "send-applications", now=later)


def test_is_lock_held_ignores_stale_holder(db, now):
    acquire_lock(db, "instant-apply", now=now)
    assert is_lock_held(db, "instant-apply", now=now)
    assert not is_lock_held(db, "instant-apply", now=now + timedelta(hours=1))
    assert not is_lock_held(db, "never-taken", now=now)


def test_held_lock_releases_on_error(db, now):
    with pytest.raises(RuntimeError):
        with held_lock(db, "send-applications", now=now) as acquired:
            assert acquired
            raise RuntimeError("boom")
    assert not is_lock_held(db, "send-applications", now=now)
