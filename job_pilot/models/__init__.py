from job_pilot.models.user import User, UserSettings, ApplicationMode, AccountStatus, NotificationFrequency
from job_pilot.models.global_job import GlobalJob
from job_pilot.models.user_job import UserJob, Activity, JobStage
from job_pilot.models.resume import Resume
from job_pilot.models.application import JobApplication, ApplicationStatus, ALLOWED_TRANSITIONS, can_transition
from job_pilot.models.system import SystemLock, SystemLog

__all__ = [
    "User",
    "UserSettings",
    "ApplicationMode",
    "AccountStatus",
    "NotificationFrequency",
    "GlobalJob",
    "UserJob",
    "Activity",
    "JobStage",
    "Resume",
    "JobApplication",
    "ApplicationStatus",
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "SystemLock",
    "SystemLog",
]
