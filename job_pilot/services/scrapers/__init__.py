from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from job_pilot.config import settings
from job_pilot.services.keyword_aggregator import SearchQuery
from job_pilot.services.scrapers.adzuna import AdzunaAdapter
from job_pilot.services.scrapers.arbeitnow import ArbeitnowAdapter
from job_pilot.services.scrapers.base import NormalizedJob, SourceAdapter
from job_pilot.services.scrapers.remotive import RemotiveAdapter

logger = logging.getLogger(__name__)


@dataclass
class SourceResult:
    source: str
    jobs: list[NormalizedJob] = field(default_factory=list)
    error: Optional[str] = None


def default_adapters() -> list[SourceAdapter]:
    """Free sources always run; keyed sources only when credentials are set."""
    candidates: list[SourceAdapter] = [RemotiveAdapter(), ArbeitnowAdapter(), AdzunaAdapter()]
    selected = [a for a in candidates if a.is_configured()]
    skipped = [a.source for a in candidates if not a.is_configured()]
    if skipped:
        logger.info(f"Skipping unconfigured sources: {skipped}")
    return selected


async def scrape_all(
    adapters: list[SourceAdapter],
    queries: list[SearchQuery],
    quota_top_n: Optional[int] = None,
) -> list[SourceResult]:
    """Run every adapter concurrently; one failing source never affects the others."""
    if quota_top_n is None:
        quota_top_n = settings.adzuna_top_keywords

    def _queries_for(adapter: SourceAdapter) -> list[SearchQuery]:
        return queries[:quota_top_n] if adapter.quota_limited else queries

    results = await asyncio.gather(
        *(adapter.scrape(_queries_for(adapter)) for adapter in adapters),
        return_exceptions=True,
    )

    out: list[SourceResult] = []
    for adapter, result in zip(adapters, results):
        if isinstance(result, BaseException):
            logger.error(f"{adapter.source} raised exception: {result}")
            out.append(SourceResult(source=adapter.source, error=str(result) or type(result).__name__))
            continue
        out.append(SourceResult(source=adapter.source, jobs=list(result)))
    return out


__all__ = [
    "NormalizedJob",
    "SourceAdapter",
    "SourceResult",
    "RemotiveAdapter",
    "ArbeitnowAdapter",
    "AdzunaAdapter",
    "default_adapters",
    "scrape_all",
]
