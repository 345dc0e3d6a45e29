import hmac
from typing import Optional

from fastapi import Header, HTTPException, Query

from job_pilot.config import settings
from job_pilot.errors import JobPilotError, RateLimitedError


def current_user_id(x_user_id: Optional[str] = Header(default=None)) -> int:
    """The auth layer in front of the API forwards the signed-in user's id."""
    if not x_user_id or not x_user_id.strip().isdigit():
        raise HTTPException(status_code=401, detail="Not signed in")
    return int(x_user_id.strip())


def verify_cron_secret(
    authorization: Optional[str] = Header(default=None),
    x_cron_secret: Optional[str] = Header(default=None),
    secret: Optional[str] = Query(default=None),
):
    expected = settings.cron_secret
    if not expected:
        raise HTTPException(status_code=401, detail="Cron secret is not configured")

    provided = None
    if authorization and authorization.lower().startswith("bearer "):
        provided = authorization[len("bearer "):].strip()
    elif x_cron_secret:
        provided = x_cron_secret.strip()
    elif secret:
        provided = secret

    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


def http_error(error: JobPilotError) -> HTTPException:
    headers = None
    if isinstance(error, RateLimitedError):
        headers = {"Retry-After": str(error.retry_after_seconds)}
    return HTTPException(status_code=error.status_code, detail=error.message, headers=headers)
