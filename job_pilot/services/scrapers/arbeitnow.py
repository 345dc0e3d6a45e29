from __future__ import annotations

import logging

import httpx

from job_pilot.services.keyword_aggregator import SearchQuery
from job_pilot.services.scrapers.base import NormalizedJob, SourceAdapter, http_client, parse_posted_date
from job_pilot.utils.text_processing import strip_tags

logger = logging.getLogger(__name__)


class ArbeitnowAdapter(SourceAdapter):
    """Arbeitnow exposes one unfiltered board feed, so matching happens locally."""

    source = "arbeitnow"
    api_url = "https://www.arbeitnow.com/api/job-board-api"

    def __init__(self, max_pages: int = 2, client: httpx.AsyncClient | None = None):
        self.max_pages = max_pages
        self._client = client

    async def scrape(self, queries: list[SearchQuery]) -> list[NormalizedJob]:
        if not queries:
            return []
        keywords = [q.keyword for q in queries]

        raw_jobs: list[dict] = []
        async with http_client(self._client) as client:
            for page in range(1, self.max_pages + 1):
                resp = await client.get(self.api_url, params={"page": page})
                resp.raise_for_status()
                data = resp.json().get("data", [])
                raw_jobs.extend(data)
                if not data:
                    break

        matched = [j for j in raw_jobs if self._matches_any(j, keywords)]
        logger.info(f"Arbeitnow API: {len(matched)} of {len(raw_jobs)} postings match {len(keywords)} keywords")
        return [self._map_job(j) for j in matched]

    @staticmethod
    def _matches_any(j: dict, keywords: list[str]) -> bool:
        haystack = " ".join(
            [j.get("title", ""), " ".join(j.get("tags") or [])]
        ).lower()
        return any(keyword in haystack for keyword in keywords)

    @staticmethod
    def _map_job(j: dict) -> NormalizedJob:
        desc_html = j.get("description", "")
        job_types = j.get("job_types") or []
        return NormalizedJob(
            source="arbeitnow",
            source_id=str(j.get("slug", "")),
            title=j.get("title", ""),
            company=j.get("company_name") or "Unknown",
            location="Remote" if j.get("remote", False) else (j.get("location") or None),
            description=strip_tags(desc_html) if desc_html else None,
            job_type=job_types[0] if job_types else None,
            skills=[t for t in (j.get("tags") or []) if isinstance(t, str)],
            posted_date=parse_posted_date(j.get("created_at")),
            source_url=j.get("url"),
            apply_url=j.get("url"),
        )
