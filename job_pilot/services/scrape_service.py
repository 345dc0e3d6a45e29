from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from job_pilot.constants import SCRAPE_LOCK
from job_pilot.services.job_store import UpsertSummary, upsert_jobs
from job_pilot.services.keyword_aggregator import aggregate_search_queries
from job_pilot.services.scrapers import SourceAdapter, default_adapters, scrape_all
from job_pilot.services.system_lock import acquire_lock, release_lock
from job_pilot.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class ScrapeRunResult:
    skipped: bool = False
    reason: Optional[str] = None
    keywords: int = 0
    sources: list[UpsertSummary] = field(default_factory=list)

    @property
    def inserted(self) -> int:
        return sum(s.inserted for s in self.sources)

    @property
    def updated(self) -> int:
        return sum(s.updated for s in self.sources)


async def scrape_global(
    db: Session,
    adapters: Optional[list[SourceAdapter]] = None,
    now: Optional[datetime] = None,
) -> ScrapeRunResult:
    """Aggregate keywords, fan out to every source, and upsert into the shared pool."""
    now = now or utcnow()
    if not acquire_lock(db, SCRAPE_LOCK, now=now):
        return ScrapeRunResult(skipped=True, reason="scrape already running")

    try:
        queries = aggregate_search_queries(db)
        result = ScrapeRunResult(keywords=len(queries))
        if not queries:
            result.reason = "no active user keywords"
            return result

        if adapters is None:
            adapters = default_adapters()

        for source_result in await scrape_all(adapters, queries):
            summary = upsert_jobs(
                db,
                source_result.source,
                source_result.jobs,
                now=now,
                error=source_result.error,
            )
            result.sources.append(summary)

        logger.info(
            f"Global scrape: {len(queries)} keywords, {result.inserted} new, {result.updated} updated"
        )
        return result
    finally:
        db.rollback()
        release_lock(db, SCRAPE_LOCK)
