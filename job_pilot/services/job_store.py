from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from job_pilot.constants import LOG_ERROR, LOG_SCRAPE
from job_pilot.models import GlobalJob
from job_pilot.services.categorizer import categorize_job
from job_pilot.services.scrapers.base import NormalizedJob
from job_pilot.services.system_log import write_system_log
from job_pilot.utils.clock import utcnow
from job_pilot.utils.text_processing import sanitize_text

logger = logging.getLogger(__name__)

# Fields that a re-sighting may refresh, but never blank out.
REFRESHABLE_FIELDS = ("description", "salary", "apply_url", "company_email")


class UpsertOutcome(str, enum.Enum):
    INSERTED = "inserted"
    UPDATED = "updated"


@dataclass
class UpsertSummary:
    source: str
    found: int = 0
    inserted: int = 0
    updated: int = 0
    failed: int = 0
    error: Optional[str] = None
    inserted_ids: list[int] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "found": self.found,
            "new": self.inserted,
            "updated": self.updated,
            "failed": self.failed,
        }


def prepare_job(job: NormalizedJob) -> dict:
    """Sanitize free text and fill in the category when the adapter left it out."""
    title = sanitize_text(job.title) or ""
    description = sanitize_text(job.description)
    skills = [s.strip() for s in job.skills if isinstance(s, str) and s.strip()]
    return {
        "title": title,
        "company": sanitize_text(job.company) or "Unknown",
        "location": sanitize_text(job.location),
        "description": description,
        "salary": sanitize_text(job.salary),
        "job_type": sanitize_text(job.job_type),
        "experience_level": sanitize_text(job.experience_level),
        "category": job.category or categorize_job(title, skills, description),
        "skills": list(dict.fromkeys(skills)),
        "posted_date": job.posted_date,
        "source": job.source,
        "source_id": str(job.source_id),
        "source_url": job.source_url,
        "apply_url": job.apply_url or job.source_url,
        "company_url": job.company_url,
        "company_email": (job.company_email or "").strip().lower() or None,
    }


def _refresh(existing: GlobalJob, data: dict, now: datetime):
    if existing.last_seen_at is None or now > existing.last_seen_at:
        existing.last_seen_at = now
    existing.is_active = True
    for name in REFRESHABLE_FIELDS:
        value = data.get(name)
        if value:
            setattr(existing, name, value)


def _find(db: Session, source: str, source_id: str) -> Optional[GlobalJob]:
    return (
        db.query(GlobalJob)
        .filter(GlobalJob.source == source, GlobalJob.source_id == source_id)
        .first()
    )


def upsert_job(db: Session, job: NormalizedJob, now: Optional[datetime] = None) -> tuple[UpsertOutcome, GlobalJob]:
    """Insert or refresh one posting keyed by (source, source_id)."""
    now = now or utcnow()
    data = prepare_job(job)
    if not data["title"] or not data["source_id"]:
        raise ValueError(f"{job.source} record is missing a title or source id")

    existing = _find(db, data["source"], data["source_id"])
    if existing is not None:
        _refresh(existing, data, now)
        db.commit()
        return UpsertOutcome.UPDATED, existing

    row = GlobalJob(**data, is_active=True, is_fresh=True, first_seen_at=now, last_seen_at=now)
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        # Another scrape inserted the same posting first.
        db.rollback()
        existing = _find(db, data["source"], data["source_id"])
        if existing is None:
            raise
        _refresh(existing, data, now)
        db.commit()
        return UpsertOutcome.UPDATED, existing
    return UpsertOutcome.INSERTED, row


def upsert_jobs(
    db: Session,
    source: str,
    jobs: list[NormalizedJob],
    now: Optional[datetime] = None,
    error: Optional[str] = None,
) -> UpsertSummary:
    """Upsert a source's batch, skipping bad records, then log the counts."""
    now = now or utcnow()
    summary = UpsertSummary(source=source, found=len(jobs), error=error)

    for job in jobs:
        try:
            outcome, row = upsert_job(db, job, now=now)
        except Exception as e:
            db.rollback()
            summary.failed += 1
            logger.warning(f"Skipping {source} record {job.source_id!r}: {e}", extra={"source": source})
            continue
        if outcome == UpsertOutcome.INSERTED:
            summary.inserted += 1
            summary.inserted_ids.append(row.id)
        else:
            summary.updated += 1

    details = summary.as_dict()
    if error:
        details["error"] = error
        write_system_log(db, LOG_ERROR, f"Source failed: {error}", source=source, details=details, now=now)
    else:
        message = f"Found {summary.found}, new {summary.inserted}, updated {summary.updated}"
        write_system_log(db, LOG_SCRAPE, message, source=source, details=details, now=now)
    return summary
