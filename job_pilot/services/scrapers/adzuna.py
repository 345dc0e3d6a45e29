from __future__ import annotations

import logging
from typing import Optional

import httpx

from job_pilot.config import settings
from job_pilot.constants import REMOTE_LOCATION
from job_pilot.services.keyword_aggregator import SearchQuery
from job_pilot.services.scrapers.base import NormalizedJob, SourceAdapter, http_client, parse_posted_date

logger = logging.getLogger(__name__)


class AdzunaAdapter(SourceAdapter):
    source = "adzuna"
    quota_limited = True
    base_url = "https://api.adzuna.com/v1/api/jobs/{country}/search/1"

    def __init__(
        self,
        app_id: Optional[str] = None,
        api_key: Optional[str] = None,
        country: Optional[str] = None,
        results_per_page: int = 50,
        client: httpx.AsyncClient | None = None,
    ):
        self.app_id = app_id or settings.adzuna_app_id
        self.api_key = api_key or settings.adzuna_api_key
        self.country = country or settings.adzuna_country
        self.results_per_page = results_per_page
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.app_id and self.api_key)

    async def scrape(self, queries: list[SearchQuery]) -> list[NormalizedJob]:
        jobs: list[NormalizedJob] = []
        url = self.base_url.format(country=self.country)
        async with http_client(self._client, timeout=30.0) as client:
            for query in queries:
                params = {
                    "app_id": self.app_id,
                    "app_key": self.api_key,
                    "results_per_page": self.results_per_page,
                    "what": query.keyword,
                    "sort_by": "date",
                    "max_days_old": 30,
                }
                # One call per keyword keeps quota use predictable; pick a concrete place if any.
                where = next((loc for loc in query.candidate_locations if loc != REMOTE_LOCATION), None)
                if where:
                    params["where"] = where

                resp = await client.get(url, params=params)
                resp.raise_for_status()
                for result in resp.json().get("results", []):
                    job = self._parse_job(result)
                    if job:
                        jobs.append(job)
        return jobs

    def _parse_job(self, data: dict) -> Optional[NormalizedJob]:
        if not data.get("id") or not data.get("title"):
            return None

        salary = None
        if data.get("salary_min") and data.get("salary_max"):
            salary = f"{int(data['salary_min'])} - {int(data['salary_max'])}"
        elif data.get("salary_min"):
            salary = f"from {int(data['salary_min'])}"

        contract = data.get("contract_time") or data.get("contract_type")
        return NormalizedJob(
            source=self.source,
            source_id=str(data["id"]),
            title=data["title"],
            company=(data.get("company") or {}).get("display_name") or "Unknown",
            location=(data.get("location") or {}).get("display_name"),
            description=data.get("description"),
            salary=salary,
            job_type=contract.replace("_", " ") if contract else None,
            category=None,
            posted_date=parse_posted_date(data.get("created")),
            source_url=data.get("redirect_url"),
            apply_url=data.get("redirect_url"),
        )
