from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy.orm import Session

from job_pilot.models import ApplicationMode, UserSettings
from job_pilot.services.accounts import active_resumes, load_user_settings


@dataclass
class ReadinessCheck:
    name: str
    passed: bool
    required: bool
    hint: str


@dataclass
class ReadinessReport:
    mode: ApplicationMode
    checks: list[ReadinessCheck] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return all(c.passed for c in self.checks if c.required)

    @property
    def missing(self) -> list[str]:
        return [c.name for c in self.checks if c.required and not c.passed]


def _has_text(value) -> bool:
    return bool(value and str(value).strip())


# name -> (predicate over (settings, resume_count), remediation hint)
CHECKS: dict[str, tuple[Callable[[UserSettings, int], bool], str]] = {
    "full_name": (
        lambda s, n: _has_text(s.full_name),
        "Add your full name in settings.",
    ),
    "resume": (
        lambda s, n: n > 0,
        "Upload at least one resume.",
    ),
    "sender_identity": (
        lambda s, n: _has_text(s.application_email),
        "Set the email address applications are sent from.",
    ),
    "sender_verified": (
        lambda s, n: bool(s.sender_verified),
        "Verify your sending address before automatic sending.",
    ),
    "keywords": (
        lambda s, n: bool(s.keywords),
        "Add at least one job keyword.",
    ),
    "categories": (
        lambda s, n: bool(s.preferred_categories),
        "Pick at least one preferred job category.",
    ),
    "auto_apply_enabled": (
        lambda s, n: bool(s.auto_apply_enabled),
        "Turn on auto-apply.",
    ),
    "min_auto_apply_score": (
        lambda s, n: s.min_auto_apply_score is not None and 0 < s.min_auto_apply_score <= 100,
        "Set a minimum match score for auto-apply (1-100).",
    ),
}


def evaluate_readiness(user_settings: UserSettings, resume_count: int) -> ReadinessReport:
    mode = ApplicationMode(user_settings.application_mode or ApplicationMode.MANUAL)
    required = set(mode.required_checks)
    report = ReadinessReport(mode=mode)
    for name, (predicate, hint) in CHECKS.items():
        report.checks.append(
            ReadinessCheck(
                name=name,
                passed=bool(predicate(user_settings, resume_count)),
                required=name in required,
                hint=hint,
            )
        )
    return report


def check_readiness(db: Session, user_id: int) -> ReadinessReport:
    """Read settings fresh on every call; never cache between check and send."""
    user_settings = load_user_settings(db, user_id)
    db.refresh(user_settings)
    return evaluate_readiness(user_settings, len(active_resumes(db, user_id)))
