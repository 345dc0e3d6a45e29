"""Fixed pipeline policy shared across services."""

# Days without a re-sighting before a posting from this source is considered gone.
STALE_DAYS = {
    "linkedin": 14,
    "indeed": 10,
    "remotive": 21,
    "arbeitnow": 21,
    "adzuna": 14,
    "rozee": 14,
    "jsearch": 14,
    "google": 14,
    "manual": 30,
}
DEFAULT_STALE_DAYS = 7

KEYWORD_MIN_LENGTH = 2
KEYWORD_MAX_LENGTH = 60

# Keywords that only ever produce junk results from job boards.
BANNED_KEYWORDS = {
    "job",
    "jobs",
    "work",
    "hiring",
    "career",
    "careers",
    "vacancy",
    "test",
    "asdf",
    "none",
    "n/a",
    "any",
    "anything",
}

REMOTE_LOCATION = "Remote"

# Lock names
SEND_LOCK = "send-applications"
SCRAPE_LOCK = "scrape-global"
INSTANT_APPLY_LOCK = "instant-apply"

# SystemLog types
LOG_SCRAPE = "scrape"
LOG_MATCH = "match"
LOG_SEND = "send"
LOG_BOUNCE = "bounce"
LOG_NOTIFICATION = "notification"
LOG_CLEANUP = "cleanup"
LOG_ERROR = "error"

STUCK_SENDING_MESSAGE = "Stuck in SENDING state; recovered by staleness sweep"

# Notification caps
NOTIFICATIONS_PER_HOUR = 1
NOTIFICATIONS_PER_DAY = 3

# Bounce auto-pause
BOUNCES_PER_DAY_BEFORE_PAUSE = 3
