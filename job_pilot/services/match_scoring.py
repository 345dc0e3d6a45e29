from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from job_pilot.config import settings
from job_pilot.utils.text_processing import contains_term, extract_tech_terms, normalize_skill

logger = logging.getLogger(__name__)

REMOTE_MARKERS = ("remote", "anywhere", "worldwide")
UNKNOWN_LOCATIONS = {"", "n/a", "not specified", "unknown"}
LOCATION_MISMATCH_PENALTY = 20


@dataclass
class MatchPreferences:
    keywords: list[str] = field(default_factory=list)
    city: Optional[str] = None
    country: Optional[str] = None
    experience_level: Optional[str] = None
    work_type: list[str] = field(default_factory=list)
    job_type: list[str] = field(default_factory=list)
    preferred_categories: list[str] = field(default_factory=list)
    preferred_platforms: list[str] = field(default_factory=list)
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None

    @classmethod
    def from_settings(cls, user_settings) -> "MatchPreferences":
        return cls(
            keywords=list(user_settings.keywords or []),
            city=user_settings.city,
            country=user_settings.country,
            experience_level=user_settings.experience_level,
            work_type=list(user_settings.work_type or []),
            job_type=list(user_settings.job_type or []),
            preferred_categories=list(user_settings.preferred_categories or []),
            preferred_platforms=list(user_settings.preferred_platforms or []),
            salary_min=user_settings.salary_min,
            salary_max=user_settings.salary_max,
        )


@dataclass
class MatchResult:
    score: int = 0
    reasons: list[str] = field(default_factory=list)
    best_resume_id: Optional[int] = None

    @property
    def should_show(self) -> bool:
        return self.score >= settings.match_show_threshold

    @property
    def is_quality(self) -> bool:
        return self.score >= settings.match_quality_threshold


class MatchScorer:
    """Weighted 0-100 relevance of one posting for one user.

    Each component earns its full weight when the user's preference is set and
    satisfied, half its weight when the preference is unset (or the posting
    does not say), and less when the preference is set but unmet. Time only
    enters through the ``now`` argument, so identical inputs always score the
    same.
    """

    WEIGHTS = {
        "keyword": 30,
        "location": 20,
        "category": 15,
        "skills": 15,
        "experience": 8,
        "job_type": 4,
        "platform": 4,
        "salary": 4,
    }

    def score(self, job, prefs: MatchPreferences, resumes: Sequence = (), now: Optional[datetime] = None) -> MatchResult:
        title = (job.title or "").lower()
        description = (job.description or "").lower()
        combined = f"{title} {description}"
        reasons: list[str] = []

        earned = 0.0
        earned += self._score_keywords(title, description, prefs, reasons)
        location_points, mismatch = self._score_location((job.location or "").lower(), prefs, reasons)
        earned += location_points
        earned += self._score_category(job.category, combined, prefs, reasons)
        skill_points, best_resume_id = self._score_skills(job, combined, resumes, reasons)
        earned += skill_points
        earned += self._score_experience(job.experience_level, prefs, reasons)
        earned += self._score_job_type(job.job_type, prefs, reasons)
        earned += self._score_platform(job.source, prefs, reasons)
        earned += self._score_salary(job.salary, prefs, reasons)

        score = int(round(earned))

        if mismatch:
            score = max(score - LOCATION_MISMATCH_PENALTY, 0)
            reasons.append(f"location mismatch (-{LOCATION_MISMATCH_PENALTY})")

        score += self._freshness_bonus(job, now, reasons)
        score = max(0, min(score, 100))
        return MatchResult(score=score, reasons=reasons, best_resume_id=best_resume_id)

    def _score_keywords(self, title: str, description: str, prefs: MatchPreferences, reasons: list[str]) -> float:
        weight = self.WEIGHTS["keyword"]
        keywords = [k.strip().lower() for k in prefs.keywords if k and k.strip()]
        if not keywords:
            return weight * 0.5
        matched = [k for k in keywords if contains_term(title, k) or contains_term(description, k)]
        for keyword in matched[:5]:
            reasons.append(f"keyword match: {keyword}")
        return weight * len(matched) / len(keywords)

    def _score_location(self, location: str, prefs: MatchPreferences, reasons: list[str]) -> tuple[float, bool]:
        weight = self.WEIGHTS["location"]
        city = (prefs.city or "").strip().lower()
        country = (prefs.country or "").strip().lower()
        wants_remote = any(w.lower() == "remote" for w in prefs.work_type)

        if not city and not country and not wants_remote:
            return weight * 0.5, False
        if location.strip() in UNKNOWN_LOCATIONS:
            return weight * 0.5, False

        if city and city in location:
            reasons.append(f"location: {city}")
            return float(weight), False
        if wants_remote and any(marker in location for marker in REMOTE_MARKERS):
            reasons.append("location: remote")
            return float(weight), False
        if country and country in location:
            reasons.append(f"country: {country}")
            return weight * 0.7, False
        return 0.0, True

    def _score_category(self, category: Optional[str], combined: str, prefs: MatchPreferences, reasons: list[str]) -> float:
        weight = self.WEIGHTS["category"]
        preferred = [c for c in prefs.preferred_categories if c]
        if not preferred:
            return weight * 0.5
        if category and any(c.lower() == category.lower() for c in preferred):
            reasons.append(f"category: {category}")
            return float(weight)
        tokens = {t for c in preferred for t in re.split(r"[\s/]+", c.lower()) if len(t) > 2}
        if any(contains_term(combined, t) for t in tokens):
            reasons.append("category keywords in description")
            return weight * 0.6
        return 0.0

    def _score_skills(self, job, combined: str, resumes: Sequence, reasons: list[str]) -> tuple[float, Optional[int]]:
        weight = self.WEIGHTS["skills"]
        job_skills = [normalize_skill(s) for s in (job.skills or []) if s] or extract_tech_terms(combined)

        best_ratio = 0.0
        best = None
        for resume in resumes:
            resume_skills = resume_skill_set(resume)
            if not resume_skills:
                continue
            if job_skills:
                hits = sum(1 for s in job_skills if skill_matches(s, resume_skills))
                ratio = hits / len(job_skills)
            else:
                hits = sum(1 for s in resume_skills if contains_term(combined, s))
                ratio = min(hits / 10, 1.0)
            if ratio > best_ratio:
                best_ratio = ratio
                best = resume

        if best is None:
            return 0.0, None
        reasons.append(f"best resume: {best.name}")
        return weight * best_ratio, best.id

    def _score_experience(self, job_level: Optional[str], prefs: MatchPreferences, reasons: list[str]) -> float:
        weight = self.WEIGHTS["experience"]
        wanted = (prefs.experience_level or "").strip().lower()
        if not wanted or not job_level:
            return weight * 0.5
        if wanted in job_level.lower():
            reasons.append(f"experience: {job_level.lower()}")
            return float(weight)
        return 0.0

    def _score_job_type(self, job_type: Optional[str], prefs: MatchPreferences, reasons: list[str]) -> float:
        weight = self.WEIGHTS["job_type"]
        wanted = [t.lower() for t in prefs.job_type if t]
        if not wanted or not job_type:
            return weight * 0.5
        if any(t in job_type.lower() for t in wanted):
            reasons.append(f"job type: {job_type.lower()}")
            return float(weight)
        return 0.0

    def _score_platform(self, source: Optional[str], prefs: MatchPreferences, reasons: list[str]) -> float:
        weight = self.WEIGHTS["platform"]
        wanted = {p.lower() for p in prefs.preferred_platforms if p}
        if not wanted:
            return weight * 0.5
        if source and source.lower() in wanted:
            reasons.append(f"platform: {source.lower()}")
            return float(weight)
        return 0.0

    def _score_salary(self, salary: Optional[str], prefs: MatchPreferences, reasons: list[str]) -> float:
        weight = self.WEIGHTS["salary"]
        if prefs.salary_min is None and prefs.salary_max is None:
            return weight * 0.5
        offered = parse_salary_range(salary)
        if offered is None:
            return weight * 0.5
        low, high = offered
        above_min = prefs.salary_min is None or high >= prefs.salary_min
        below_max = prefs.salary_max is None or low <= prefs.salary_max
        if above_min and below_max:
            reasons.append("salary in range")
            return float(weight)
        return 0.0

    @staticmethod
    def _freshness_bonus(job, now: Optional[datetime], reasons: list[str]) -> int:
        first_seen = getattr(job, "first_seen_at", None)
        if first_seen is not None and now is not None:
            age_days = (now - first_seen).total_seconds() / 86400
            if age_days < 1:
                reasons.append("freshness: new today (+5)")
                return 5
            if age_days < 3:
                reasons.append("freshness: recent (+3)")
                return 3
            return 0
        if first_seen is None and getattr(job, "is_fresh", False):
            reasons.append("freshness: new posting (+5)")
            return 5
        return 0


def resume_skill_set(resume) -> set[str]:
    """Declared skills plus vocabulary terms found in the résumé text."""
    skills = {normalize_skill(s) for s in (resume.detected_skills or []) if isinstance(s, str) and s.strip()}
    skills.update(extract_tech_terms(resume.content or ""))
    return skills


def skill_matches(skill: str, resume_skills: set[str]) -> bool:
    """Exact, or substring either way for tokens long enough to be meaningful."""
    skill = normalize_skill(skill)
    if skill in resume_skills:
        return True
    if len(skill) < 3:
        return False
    return any(len(r) >= 3 and (skill in r or r in skill) for r in resume_skills)


_SALARY_NUMBER = re.compile(r"(\d{1,3}(?:[,.]\d{3})+|\d+(?:\.\d+)?)\s*([kK])?")


def parse_salary_range(text: Optional[str]) -> Optional[tuple[int, int]]:
    """Pull a (low, high) annual figure out of free salary text like '$80k - 100k'."""
    if not text:
        return None
    values = []
    for number, thousands in _SALARY_NUMBER.findall(text):
        value = float(re.sub(r"[,.](?=\d{3}\b)", "", number))
        if thousands:
            value *= 1000
        if value >= 1000:
            values.append(int(value))
    if not values:
        return None
    return min(values), max(values)


_scorer = MatchScorer()


def compute_match_score(job, prefs: MatchPreferences, resumes: Sequence = (), now: Optional[datetime] = None) -> MatchResult:
    return _scorer.score(job, prefs, resumes, now=now)
