class JobPilotError(Exception):
    """Base class for domain errors surfaced to callers."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(JobPilotError):
    status_code = 404


class NoResumeError(JobPilotError):
    status_code = 400

    def __init__(self, message: str = "No resume found. Upload a resume before generating applications."):
        super().__init__(message)


class ProfileIncompleteError(JobPilotError):
    status_code = 400


class InvalidTransitionError(JobPilotError):
    status_code = 409

    def __init__(self, current, target):
        super().__init__(f"Cannot move application from {current.value} to {target.value}")
        self.current = current
        self.target = target


class DraftingError(JobPilotError):
    status_code = 502


class RateLimitedError(JobPilotError):
    status_code = 429

    def __init__(self, action: str, retry_after_seconds: int):
        super().__init__(f"Too many '{action}' requests. Retry in {retry_after_seconds}s.")
        self.retry_after_seconds = retry_after_seconds
