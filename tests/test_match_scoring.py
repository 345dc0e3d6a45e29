from dataclasses import replace
from datetime import datetime, timedelta
from types import SimpleNamespace

from job_pilot.services.match_scoring import (
    MatchPreferences,
    compute_match_score,
    parse_salary_range,
    skill_matches,
)


def _job(**overrides):
    data = {
        "title": "Senior React Developer",
        "description": "Build UIs with React and TypeScript.",
        "location": "Berlin, Germany",
        "category": "Frontend Development",
        "skills": ["react", "typescript"],
        "experience_level": "Senior",
        "job_type": "full time",
        "source": "remotive",
        "salary": "€70k - €90k",
        "first_seen_at": None,
        "is_fresh": False,
    }
    data.update(overrides)
    return SimpleNamespace(**data)


def _resume(**overrides):
    data = {"id": 1, "name": "Frontend CV", "detected_skills": ["react", "typescript"], "content": ""}
    data.update(overrides)
    return SimpleNamespace(**data)


def test_score_is_bounded_and_explained():
    result = compute_match_score(_job(), MatchPreferences(keywords=["react"]), [_resume()])
    assert 0 <= result.score <= 100
    assert "keyword match: react" in result.reasons
    assert "best resume: Frontend CV" in result.reasons
    assert result.best_resume_id == 1


def test_scoring_is_deterministic():
    prefs = MatchPreferences(keywords=["react", "vue"], city="Berlin")
    first = compute_match_score(_job(), prefs, [_resume()])
    second = compute_match_score(_job(), prefs, [_resume()])
    assert first == second


def test_adding_satisfied_criterion_never_lowers_score():
    base = MatchPreferences(keywords=["react"])
    baseline = compute_match_score(_job(), base, [_resume()]).score

    satisfied = [
        replace(base, city="Berlin"),
        replace(base, country="Germany"),
        replace(base, preferred_categories=["Frontend Development"]),
        replace(base, experience_level="senior"),
        replace(base, job_type=["full time"]),
        replace(base, preferred_platforms=["remotive"]),
        replace(base, salary_min=60000),
    ]
    for prefs in satisfied:
        assert compute_match_score(_job(), prefs, [_resume()]).score >= baseline, prefs


def test_location_mismatch_is_penalised():
    prefs = MatchPreferences(keywords=["react"], city="Lahore", country="Pakistan")
    result = compute_match_score(_job(), prefs)
    assert "location mismatch (-20)" in result.reasons
    assert result.score < compute_match_score(_job(), MatchPreferences(keywords=["react"])).score


def test_remote_preference_matches_remote_jobs():
    prefs = MatchPreferences(keywords=["react"], work_type=["remote"])
    result = compute_match_score(_job(location="Remote"), prefs)
    assert "location: remote" in result.reasons


def test_freshness_only_applies_with_explicit_now():
    seen = datetime(2026, 3, 2, 8, 0)
    job = _job(first_seen_at=seen)
    prefs = MatchPreferences(keywords=["react"])

    without_now = compute_match_score(job, prefs)
    with_now = compute_match_score(job, prefs, now=seen + timedelta(hours=2))
    later = compute_match_score(job, prefs, now=seen + timedelta(days=2))

    assert with_now.score == min(without_now.score + 5, 100)
    assert later.score == min(without_now.score + 3, 100)


def test_skill_matching_allows_substrings():
    assert skill_matches("react", {"react.js"})
    assert skill_matches("postgres", {"postgresql"})
    assert skill_matches("go", {"golang"}) is False


def test_parse_salary_range():
    assert parse_salary_range("$80k - 100k") == (80000, 100000)
    assert parse_salary_range("from 45,000") == (45000, 45000)
    assert parse_salary_range("competitive") is None
