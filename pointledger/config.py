import logging
import os
from datetime import timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    self_score_daily_limit: int = 5
    timezone: str = "UTC"
    stats_window_days: int = 7
    history_page_size: int = 20
    log_level: str = "INFO"
    seed_demo_data: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            self_score_daily_limit=int(os.getenv("SELF_SCORE_DAILY_LIMIT", "5")),
            timezone=os.getenv("POINTS_TIMEZONE", "UTC"),
            stats_window_days=int(os.getenv("STATS_WINDOW_DAYS", "7")),
            history_page_size=int(os.getenv("HISTORY_PAGE_SIZE", "20")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            seed_demo_data=_env_bool("SEED_DEMO_DATA", True),
        )

    @property
    def tz(self) -> tzinfo:
        if self.timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.timezone)


def configure_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
