import logging
from datetime import timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Streak engine
    STREAK_TIMEZONE: str = "UTC"  # reference timezone for calendar days
    STREAK_FREEZE_CAP: int = 3
    STREAK_FREEZE_STRIDE: int = 7  # one token per N-day milestone
    BATCH_RECALC_LIMIT: int = 0  # 0 = no limit

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()


def resolve_timezone(name: str) -> tzinfo:
    """Map a timezone name to a tzinfo; UTC never needs tz data."""
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate streak configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("readquest")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    try:
        resolve_timezone(cfg.STREAK_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        problems.append(f"STREAK_TIMEZONE={cfg.STREAK_TIMEZONE!r} is not a known timezone")
    if cfg.STREAK_FREEZE_CAP < 0:
        problems.append("STREAK_FREEZE_CAP must be >= 0")
    if cfg.STREAK_FREEZE_STRIDE < 1:
        problems.append("STREAK_FREEZE_STRIDE must be >= 1")
    if cfg.ENV.lower() == "production" and not cfg.DATABASE_URL:
        problems.append("Missing required configuration: DATABASE_URL")

    if problems:
        message = "; ".join(problems)
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)
        return False

    return True
