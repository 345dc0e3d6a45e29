"""Durable named locks backed by the ``system_locks`` table.

Acquisition is a single conditional UPDATE, so two callers racing for the same
name cannot both succeed. A holder that crashes without releasing is recovered
only by age: once ``started_at`` is older than the timeout the next caller
takes the lock over. There is no heartbeat.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from job_pilot.config import settings
from job_pilot.models import SystemLock
from job_pilot.utils.clock import utcnow

logger = logging.getLogger(__name__)


def _default_timeout() -> timedelta:
    return timedelta(minutes=settings.lock_timeout_minutes)


def acquire_lock(
    db: Session,
    name: str,
    timeout: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> bool:
    now = now or utcnow()
    cutoff = now - (timeout or _default_timeout())

    result = db.execute(
        update(SystemLock)
        .where(
            SystemLock.name == name,
            or_(
                SystemLock.is_running == False,  # noqa: E712
                SystemLock.started_at.is_(None),
                SystemLock.started_at < cutoff,
            ),
        )
        .values(is_running=True, started_at=now, completed_at=None)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount == 1:
        logger.info(f"Acquired lock '{name}'", extra={"lock": name})
        return True

    if db.query(SystemLock.id).filter(SystemLock.name == name).first() is not None:
        logger.info(f"Lock '{name}' is held by another run")
        return False

    # First use of this name; the unique constraint settles concurrent inserts.
    db.add(SystemLock(name=name, is_running=True, started_at=now))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Lock '{name}' was created concurrently by another run")
        return False
    logger.info(f"Acquired lock '{name}'", extra={"lock": name})
    return True


def release_lock(db: Session, name: str, now: Optional[datetime] = None):
    db.execute(
        update(SystemLock)
        .where(SystemLock.name == name)
        .values(is_running=False, completed_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Released lock '{name}'", extra={"lock": name})


def is_lock_held(
    db: Session,
    name: str,
    timeout: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> bool:
    """True while a non-stale holder owns ``name``."""
    now = now or utcnow()
    cutoff = now - (timeout or _default_timeout())
    lock = db.query(SystemLock).filter(SystemLock.name == name).first()
    if lock is None or not lock.is_running or lock.started_at is None:
        return False
    return lock.started_at >= cutoff


@contextmanager
def held_lock(
    db: Session,
    name: str,
    timeout: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> Iterator[bool]:
    """Yield whether the lock was acquired; release on exit only if it was."""
    acquired = acquire_lock(db, name, timeout=timeout, now=now)
    try:
        yield acquired
    finally:
        if acquired:
            # A failed statement inside the block may leave the session unusable.
            db.rollback()
            release_lock(db, name)
