import logging
from datetime import tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic_settings import BaseSettings, SettingsConfigDict

STORE_BACKENDS = ("memory", "sql")


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Persistence
    STORE_BACKEND: str = "memory"  # memory | sql
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Daily quota resets follow this calendar (IANA name, unset = host local time)
    LOCAL_TIMEZONE: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def get_local_timezone(settings_obj: Optional[Settings] = None) -> Optional[tzinfo]:
    """Resolve LOCAL_TIMEZONE, falling back to host local time (None)."""
    cfg = settings_obj or settings
    if not cfg.LOCAL_TIMEZONE:
        return None
    try:
        return ZoneInfo(cfg.LOCAL_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logging.getLogger("paygate").warning(
            "Unknown LOCAL_TIMEZONE, using host local time",
            extra={"timezone": cfg.LOCAL_TIMEZONE},
        )
        return None


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Database URLs are not logged, only which keys are problematic.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("paygate")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    if cfg.STORE_BACKEND not in STORE_BACKENDS:
        problems.append(f"STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}")
    if cfg.STORE_BACKEND == "sql" and not (cfg.DATABASE_URL or cfg.TEST_DATABASE_URL):
        problems.append("DATABASE_URL is required when STORE_BACKEND=sql")
    if cfg.LOCAL_TIMEZONE:
        try:
            ZoneInfo(cfg.LOCAL_TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            problems.append("LOCAL_TIMEZONE is not a known IANA timezone")

    if problems:
        message = f"Invalid configuration: {'; '.join(problems)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)
        return False

    return True
