from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, Sequence

from job_pilot.config import settings
from job_pilot.services.match_scoring import resume_skill_set, skill_matches
from job_pilot.utils.text_processing import extract_tech_terms, normalize_skill

logger = logging.getLogger(__name__)

# Location markers that call for a dedicated language variant, keyed by locale.
LOCALE_MARKERS = {
    "de": {
        "job": ("germany", "deutschland", "german", "austria", "österreich", "berlin", "munich", "münchen", "hamburg", "frankfurt"),
        "resume": ("de", "german", "deutsch", "germany"),
    },
    "fr": {
        "job": ("france", "paris", "lyon", "french"),
        "resume": ("fr", "french", "français", "francais", "france"),
    },
    "nl": {
        "job": ("netherlands", "nederland", "amsterdam", "rotterdam", "dutch"),
        "resume": ("nl", "dutch", "nederlands", "netherlands"),
    },
}

MIN_AI_TIE = 2
MAX_AI_TIE = 4


@dataclass
class ResumeChoice:
    resume: object
    tier: str
    reason: str


class ResumeTiebreaker(Protocol):
    async def choose(self, job, resumes: Sequence) -> Optional[int]:
        """Return the index of the best résumé, or None when undecided."""


def _resume_locale(resume) -> Optional[str]:
    explicit = (resume.locale or "").strip().lower()
    # Two-letter codes only count in the locale field; in a name "de" is as likely a surname particle.
    words = [w.strip("()[]-_,") for w in (resume.name or "").lower().split()]
    for locale, markers in LOCALE_MARKERS.items():
        if explicit and explicit in markers["resume"]:
            return locale
    for locale, markers in LOCALE_MARKERS.items():
        if any(len(word) > 2 and word in markers["resume"] for word in words):
            return locale
    return None


def _job_locale(job) -> Optional[str]:
    location = (job.location or "").lower()
    if not location:
        return None
    for locale, markers in LOCALE_MARKERS.items():
        if any(marker in location for marker in markers["job"]):
            return locale
    return None


def job_skill_tokens(job) -> list[str]:
    explicit = [normalize_skill(s) for s in (job.skills or []) if isinstance(s, str) and s.strip()]
    if explicit:
        return list(dict.fromkeys(explicit))
    return extract_tech_terms(f"{job.title or ''} {job.description or ''}")


def skill_overlap(job_skills: Sequence[str], resume) -> int:
    resume_skills = resume_skill_set(resume)
    return sum(1 for skill in job_skills if skill_matches(skill, resume_skills))


def _fallback(candidates: Sequence, reason_prefix: str = "") -> ResumeChoice:
    default = next((r for r in candidates if r.is_default), None)
    if default is not None:
        return ResumeChoice(default, "fallback", f"{reason_prefix}default resume")
    # Stable sort keeps the first of equally recent résumés.
    ordered = sorted(candidates, key=lambda r: r.updated_at or datetime.min, reverse=True)
    return ResumeChoice(ordered[0], "fallback", f"{reason_prefix}most recently updated")


async def select_resume(
    job,
    resumes: Sequence,
    tiebreaker: Optional[ResumeTiebreaker] = None,
) -> Optional[ResumeChoice]:
    """Choose the résumé variant that best fits ``job``.

    Tiers run in order and stop at the first unique winner: locale, category,
    skill overlap, AI tiebreak (2-4 way ties only), then the default or most
    recently updated résumé. Soft-deleted résumés are never considered.
    """
    candidates = [r for r in resumes if not getattr(r, "is_deleted", False)]
    if not candidates:
        return None
    if len(candidates) == 1:
        return ResumeChoice(candidates[0], "fallback", "only resume on file")

    locale = _job_locale(job)
    if locale:
        localized = next((r for r in candidates if _resume_locale(r) == locale), None)
        if localized is not None:
            return ResumeChoice(localized, "locale", f"dedicated '{locale}' resume for {job.location}")

    if job.category:
        in_category = [r for r in candidates if job.category in (r.target_categories or [])]
        if len(in_category) == 1:
            return ResumeChoice(in_category[0], "category", f"only resume targeting {job.category}")
        if in_category:
            candidates = in_category

    job_skills = job_skill_tokens(job)
    scored = [(skill_overlap(job_skills, r), r) for r in candidates] if job_skills else []
    top = max((score for score, _ in scored), default=0)
    if top == 0:
        return _fallback(candidates, "no skill overlap; ")

    tied = [r for score, r in scored if score == top]
    if len(tied) == 1:
        return ResumeChoice(tied[0], "skill", f"{top} of {len(job_skills)} job skills matched")

    if tiebreaker is not None and MIN_AI_TIE <= len(tied) <= MAX_AI_TIE:
        try:
            index = await tiebreaker.choose(job, tied)
        except Exception as e:
            logger.warning(f"Resume tiebreak failed, using fallback: {e}")
            index = None
        if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(tied):
            return ResumeChoice(tied[index], "ai_tiebreak", f"AI picked among {len(tied)} tied resumes")

    return _fallback(tied, f"{len(tied)} resumes tied at {top} skills; ")


class LLMResumeTiebreaker:
    """Asks the configured model to pick one of a few equally scored résumés."""

    SYSTEM_PROMPT = "You pick the resume that best fits a job posting. Answer with the index only."

    def __init__(self, llm_client, timeout: Optional[float] = None):
        self.llm_client = llm_client
        self.timeout = timeout or settings.ai_timeout_seconds

    async def choose(self, job, resumes: Sequence) -> Optional[int]:
        summaries = "\n".join(
            f"[{i}] {r.name}: {(r.content or '')[:400]}" for i, r in enumerate(resumes)
        )
        prompt = (
            f"Job title: {job.title}\n"
            f"Job description: {(job.description or '')[:1500]}\n\n"
            f"Resumes:\n{summaries}\n\n"
            'Return JSON: {"index": <number of the best resume>}'
        )
        data = await asyncio.wait_for(
            self.llm_client.complete_json(prompt, system=self.SYSTEM_PROMPT),
            timeout=self.timeout,
        )
        index = data.get("index") if isinstance(data, dict) else None
        if isinstance(index, str) and index.strip().isdigit():
            index = int(index.strip())
        return index if isinstance(index, int) else None
