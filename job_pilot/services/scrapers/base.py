from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

import httpx
from pydantic import BaseModel, Field

from job_pilot.services.keyword_aggregator import SearchQuery

# Headers that mimic a real browser for HTTP requests
HTTP_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Accept": "application/json,text/html;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


class NormalizedJob(BaseModel):
    """Source-independent posting record produced by every adapter."""

    title: str
    company: str = "Unknown"
    location: Optional[str] = None
    description: Optional[str] = None
    salary: Optional[str] = None
    job_type: Optional[str] = None
    experience_level: Optional[str] = None
    category: Optional[str] = None
    skills: list[str] = Field(default_factory=list)
    posted_date: Optional[datetime] = None
    source: str
    source_id: str
    source_url: Optional[str] = None
    apply_url: Optional[str] = None
    company_url: Optional[str] = None
    company_email: Optional[str] = None


class SourceAdapter(ABC):
    """One job board. Adapters may raise; callers isolate failures per adapter."""

    source: str = "unknown"
    # Keyed sources with a request quota only get the most popular keywords.
    quota_limited: bool = False

    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def scrape(self, queries: list[SearchQuery]) -> list[NormalizedJob]:
        """Fetch postings for the given queries."""


def parse_posted_date(value) -> Optional[datetime]:
    """Accept ISO strings or unix timestamps; return naive UTC or None."""
    if value in (None, ""):
        return None
    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, OSError, OverflowError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class _BorrowedClient:
    """Async context wrapper that leaves an injected client open."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def __aenter__(self) -> httpx.AsyncClient:
        return self.client

    async def __aexit__(self, *exc):
        return False


def http_client(client: Optional[httpx.AsyncClient] = None, timeout: float = 20.0):
    """Yield ``client`` if one was injected, else a fresh AsyncClient."""
    if client is not None:
        return _BorrowedClient(client)
    return httpx.AsyncClient(timeout=timeout, headers=HTTP_HEADERS)
