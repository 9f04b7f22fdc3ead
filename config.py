"""Settings loaded from environment variables (+ optional .env).

One Settings object for the bot, scheduler and workers.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()
logger = logging.getLogger(__name__)

DEFAULT_REMINDER_TIME = (9, 0)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {raw!r}, using {default}")
        return default


@dataclass
class Settings:
    database_path: str = "task_manager.db"
    slack_bot_token: Optional[str] = None
    slack_webhook_url: Optional[str] = None
    daily_reminder_time: str = "09:00"
    timezone: str = "America/New_York"
    overdue_threshold: int = 5
    retention_days: int = 30
    list_limit: int = 50
    celery_broker_url: str = "redis://localhost:6379/0"
    reminder_delivery: str = "direct"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_path=os.getenv("DATABASE_PATH", "task_manager.db"),
            slack_bot_token=os.getenv("SLACK_BOT_TOKEN"),
            slack_webhook_url=os.getenv("SLACK_WEBHOOK_URL"),
            daily_reminder_time=os.getenv("DAILY_REMINDER_TIME", "09:00"),
            timezone=os.getenv("TIMEZONE", "America/New_York"),
            overdue_threshold=_env_int("OVERDUE_THRESHOLD", 5),
            retention_days=_env_int("RETENTION_DAYS", 30),
            list_limit=_env_int("LIST_LIMIT", 50),
            celery_broker_url=os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0"),
            reminder_delivery=os.getenv("REMINDER_DELIVERY", "direct").strip().lower(),
        )


def parse_reminder_time(value: Optional[str]) -> Tuple[int, int]:
    """Parse an ``HH:MM`` string into (hour, minute).

    Malformed values fall back to 09:00 with a warning.
    """
    if not value:
        return DEFAULT_REMINDER_TIME
    try:
        hour_str, minute_str = value.strip().split(":")
        hour, minute = int(hour_str), int(minute_str)
    except ValueError:
        logger.warning(f"Invalid DAILY_REMINDER_TIME {value!r}, using 09:00")
        return DEFAULT_REMINDER_TIME
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        logger.warning(f"DAILY_REMINDER_TIME {value!r} out of range, using 09:00")
        return DEFAULT_REMINDER_TIME
    return hour, minute


_settings: Optional[Settings] = None


def get_settings(reload: bool = False) -> Settings:
    """Get or create the process-wide Settings instance."""
    global _settings
    if _settings is None or reload:
        _settings = Settings.from_env()
    return _settings
