from job_pilot.services.llm_client import LLMClient, get_llm_client
from job_pilot.services.match_scoring import MatchPreferences, MatchResult, compute_match_score
from job_pilot.services.resume_matcher import ResumeChoice, select_resume
from job_pilot.services.rate_limiter import RateLimiter, rate_limiter
from job_pilot.services.system_lock import acquire_lock, release_lock
from job_pilot.services.mailer import Mailer, get_mailer

__all__ = [
    "LLMClient",
    "get_llm_client",
    "MatchPreferences",
    "MatchResult",
    "compute_match_score",
    "ResumeChoice",
    "select_resume",
    "RateLimiter",
    "rate_limiter",
    "acquire_lock",
    "release_lock",
    "Mailer",
    "get_mailer",
]
