import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import relationship

from job_pilot.database import Base
from job_pilot.errors import InvalidTransitionError
from job_pilot.utils.clock import utcnow


class ApplicationStatus(str, enum.Enum):
    DRAFT = "draft"
    READY = "ready"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"
    BOUNCED = "bounced"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS = {
    ApplicationStatus.DRAFT: {ApplicationStatus.READY, ApplicationStatus.CANCELLED},
    ApplicationStatus.READY: {ApplicationStatus.SENDING, ApplicationStatus.CANCELLED},
    ApplicationStatus.SENDING: {ApplicationStatus.SENT, ApplicationStatus.FAILED},
    ApplicationStatus.SENT: {ApplicationStatus.BOUNCED},
    ApplicationStatus.FAILED: {ApplicationStatus.READY},
    ApplicationStatus.BOUNCED: set(),
    ApplicationStatus.CANCELLED: set(),
}


def can_transition(current: ApplicationStatus, target: ApplicationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


class JobApplication(Base):
    __tablename__ = "job_applications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user_job_id = Column(Integer, ForeignKey("user_jobs.id"), nullable=False, unique=True)
    resume_id = Column(Integer, ForeignKey("resumes.id"), nullable=True)

    sender_email = Column(String(200), nullable=True)
    recipient_email = Column(String(200), nullable=True, index=True)
    subject = Column(String(500), nullable=False, default="")
    body = Column(Text, nullable=False, default="")
    cover_letter = Column(Text, nullable=True)

    status = Column(SAEnum(ApplicationStatus), default=ApplicationStatus.DRAFT, index=True)
    retry_count = Column(Integer, default=0)
    scheduled_send_at = Column(DateTime, nullable=True)
    sending_started_at = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)
    message_id = Column(String(300), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user_job = relationship("UserJob", back_populates="application")
    resume = relationship("Resume")

    def transition(self, target: ApplicationStatus):
        """Move to ``target`` or raise if the state machine forbids it."""
        current = ApplicationStatus(self.status)
        if not can_transition(current, target):
            raise InvalidTransitionError(current, target)
        self.status = target
