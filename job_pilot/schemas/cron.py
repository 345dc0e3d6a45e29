from pydantic import BaseModel
from typing import Optional


class SourceSummary(BaseModel):
    source: str
    found: int = 0
    new: int = 0
    updated: int = 0
    failed: int = 0
    error: Optional[str] = None


class ScrapeRunResponse(BaseModel):
    skipped: bool = False
    reason: Optional[str] = None
    keywords: int = 0
    inserted: int = 0
    updated: int = 0
    sources: list[SourceSummary] = []


class CronRunResponse(BaseModel):
    """Generic cron result: a skip flag plus the job's own counters."""

    skipped: bool = False
    reason: Optional[str] = None
    details: dict = {}
