from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # App
    app_name: str = "Job Pilot"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_file: Optional[str] = "data/app.log"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///data/job_pilot.db"

    # LLM
    llm_provider: str = "ollama"  # "claude", "openai", "groq" or "ollama"
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    groq_base_url: str = "https://api.groq.com/openai/v1"
    llm_model: Optional[str] = None
    ollama_base_url: str = "http://localhost:11434"
    ai_timeout_seconds: float = 15.0

    # Cron / webhooks
    cron_secret: Optional[str] = None
    bounce_webhook_secret: Optional[str] = None

    # Mail delivery
    brevo_api_key: Optional[str] = None
    brevo_api_url: str = "https://api.brevo.com/v3/smtp/email"
    notification_sender: str = "notifications@jobpilot.local"
    mail_suppress_send: bool = False
    send_timeout_seconds: float = 20.0

    # Scraper adapters
    adzuna_app_id: Optional[str] = None
    adzuna_api_key: Optional[str] = None
    adzuna_country: str = "gb"
    adzuna_top_keywords: int = 10
    scrape_results_per_query: int = 50

    # Matching
    match_show_threshold: int = 40
    match_quality_threshold: int = 55
    default_min_auto_apply_score: int = 75
    match_batch_jobs: int = 200
    match_batch_users: int = 50

    # Sending
    send_batch_size: int = 50
    inter_send_delay_seconds: float = 2.0
    cron_soft_limit_seconds: float = 8.0
    lock_timeout_minutes: int = 10
    stuck_sending_minutes: int = 10
    max_send_attempts: int = 3
    duplicate_window_days: int = 7

    # Maintenance
    log_retention_days: int = 30

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
