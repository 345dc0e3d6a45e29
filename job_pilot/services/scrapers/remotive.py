from __future__ import annotations

import logging

import httpx

from job_pilot.config import settings
from job_pilot.services.keyword_aggregator import SearchQuery
from job_pilot.services.scrapers.base import NormalizedJob, SourceAdapter, http_client, parse_posted_date
from job_pilot.utils.text_processing import strip_tags

logger = logging.getLogger(__name__)


class RemotiveAdapter(SourceAdapter):
    source = "remotive"
    api_url = "https://remotive.com/api/remote-jobs"

    def __init__(self, limit: int | None = None, client: httpx.AsyncClient | None = None):
        self.limit = limit or settings.scrape_results_per_query
        self._client = client

    async def scrape(self, queries: list[SearchQuery]) -> list[NormalizedJob]:
        jobs: list[NormalizedJob] = []
        async with http_client(self._client) as client:
            for query in queries:
                logger.info(f"Remotive API: searching for '{query.keyword}'")
                resp = await client.get(self.api_url, params={"search": query.keyword, "limit": self.limit})
                resp.raise_for_status()
                raw_jobs = resp.json().get("jobs", [])
                jobs.extend(self._map_job(j) for j in raw_jobs[: self.limit])
        return jobs

    @staticmethod
    def _map_job(j: dict) -> NormalizedJob:
        desc_html = j.get("description", "")
        return NormalizedJob(
            source="remotive",
            source_id=str(j.get("id", "")),
            title=j.get("title", ""),
            company=j.get("company_name") or "Unknown",
            location=j.get("candidate_required_location") or "Remote",
            description=strip_tags(desc_html) if desc_html else None,
            salary=j.get("salary") or None,
            job_type=(j.get("job_type") or "").replace("_", " ") or None,
            skills=[t for t in (j.get("tags") or []) if isinstance(t, str)],
            posted_date=parse_posted_date(j.get("publication_date")),
            source_url=j.get("url"),
            apply_url=j.get("url"),
        )
