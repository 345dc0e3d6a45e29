import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, JSON, Enum as SAEnum
from sqlalchemy.orm import relationship

from job_pilot.database import Base
from job_pilot.utils.clock import utcnow


class ApplicationMode(str, enum.Enum):
    """Automation level; each mode lists the readiness checks it requires."""

    MANUAL = "manual"
    SEMI_AUTO = "semi_auto"
    FULL_AUTO = "full_auto"

    @property
    def required_checks(self) -> tuple[str, ...]:
        return _MODE_REQUIREMENTS[self]


_MANUAL_CHECKS = ("full_name",)
_SEMI_AUTO_CHECKS = _MANUAL_CHECKS + ("sender_identity", "sender_verified", "resume")
_FULL_AUTO_CHECKS = _SEMI_AUTO_CHECKS + (
    "keywords",
    "categories",
    "auto_apply_enabled",
    "min_auto_apply_score",
)

_MODE_REQUIREMENTS = {
    ApplicationMode.MANUAL: _MANUAL_CHECKS,
    ApplicationMode.SEMI_AUTO: _SEMI_AUTO_CHECKS,
    ApplicationMode.FULL_AUTO: _FULL_AUTO_CHECKS,
}


class AccountStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    DISABLED = "disabled"


class NotificationFrequency(str, enum.Enum):
    INSTANT = "instant"
    DAILY = "daily"
    OFF = "off"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(200), nullable=False, unique=True)
    name = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    settings = relationship("UserSettings", back_populates="user", uselist=False)
    resumes = relationship("Resume", back_populates="user")


class UserSettings(Base):
    __tablename__ = "user_settings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)

    # Identity
    full_name = Column(String(200), nullable=True)
    phone = Column(String(50), nullable=True)
    application_email = Column(String(200), nullable=True)
    sender_verified = Column(Boolean, default=False)
    notification_email = Column(String(200), nullable=True)
    linkedin_url = Column(String(500), nullable=True)
    github_url = Column(String(500), nullable=True)
    portfolio_url = Column(String(500), nullable=True)
    include_linkedin = Column(Boolean, default=True)
    include_github = Column(Boolean, default=True)
    include_portfolio = Column(Boolean, default=True)

    # Targeting
    keywords = Column(JSON, default=list)
    city = Column(String(200), nullable=True)
    country = Column(String(200), nullable=True)
    experience_level = Column(String(50), nullable=True)
    work_type = Column(JSON, default=list)
    job_type = Column(JSON, default=list)
    preferred_categories = Column(JSON, default=list)
    preferred_platforms = Column(JSON, default=list)
    salary_min = Column(Integer, nullable=True)
    salary_max = Column(Integer, nullable=True)

    # Automation
    account_status = Column(SAEnum(AccountStatus), default=AccountStatus.ACTIVE)
    application_mode = Column(SAEnum(ApplicationMode), default=ApplicationMode.MANUAL)
    auto_apply_enabled = Column(Boolean, default=False)
    instant_apply_enabled = Column(Boolean, default=False)
    instant_apply_delay_minutes = Column(Integer, default=5)
    min_auto_apply_score = Column(Integer, nullable=True)

    # Send throughput
    max_sends_per_day = Column(Integer, default=20)
    max_sends_per_hour = Column(Integer, default=8)
    send_delay_seconds = Column(Integer, default=120)
    bounce_pause_hours = Column(Integer, default=24)
    sending_paused_until = Column(DateTime, nullable=True)

    # Notifications and pipeline hygiene
    email_notifications = Column(Boolean, default=True)
    notification_frequency = Column(SAEnum(NotificationFrequency), default=NotificationFrequency.INSTANT)
    ghost_days = Column(Integer, default=14)

    # Drafting style
    preferred_tone = Column(String(50), default="professional")
    email_language = Column(String(50), default="English")
    custom_closing = Column(String(200), nullable=True)
    custom_signature = Column(Text, nullable=True)
    custom_system_prompt = Column(Text, nullable=True)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="settings")
