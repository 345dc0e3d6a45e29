import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

# Structured fields callers may attach with ``extra={...}``.
CONTEXT_FIELDS = ("user_id", "application_id", "job_id", "source", "lock")

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per line for the log file."""

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": f"{record.module}:{record.lineno}",
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(log_file: Optional[str] = None, level: Union[int, str] = logging.INFO):
    root = logging.getLogger()
    root.setLevel(level.upper() if isinstance(level, str) else level)

    # create_app() may run more than once per process (tests, reloads).
    if getattr(root, "_job_pilot_configured", False):
        return

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    # Per-request access lines drown out the pipeline logs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    root._job_pilot_configured = True
