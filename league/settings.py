import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

MEMORY_DATABASE_URL = "memory://"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass(frozen=True)
class Settings:
    database_url: str
    admin_pin: str
    default_par: int = 72
    leaderboard_debounce_seconds: float = 0.5
    season_standings_limit: int = 50
    handicap_history_limit: int = 30
    log_level: str = "info"
    app_host: str = "0.0.0.0"
    app_port: int = 8000


def _normalize_database_url(value: Optional[str]) -> str:
    if not value:
        return MEMORY_DATABASE_URL
    normalized = value.strip()
    if normalized.startswith(("memory:", "postgres://", "postgresql://")):
        return normalized
    if Path(normalized).suffix:
        logger.warning("DATABASE_URL=%s looks like a file path, using the in-memory store", normalized)
        return MEMORY_DATABASE_URL
    return normalized


def _int_from_env(key: str, default: int) -> int:
    value = os.getenv(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring %s=%s (not an integer)", key, value)
        return default


def _float_from_env(key: str, default: float) -> float:
    value = os.getenv(key)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring %s=%s (not a number)", key, value)
        return default


def load_settings() -> Settings:
    return Settings(
        database_url=_normalize_database_url(os.getenv("DATABASE_URL")),
        admin_pin=os.getenv("ADMIN_PIN", "1234"),
        default_par=_int_from_env("DEFAULT_PAR", 72),
        leaderboard_debounce_seconds=_float_from_env("LEADERBOARD_DEBOUNCE_SECONDS", 0.5),
        season_standings_limit=_int_from_env("SEASON_STANDINGS_LIMIT", 50),
        handicap_history_limit=_int_from_env("HANDICAP_HISTORY_LIMIT", 30),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        app_host=os.getenv("APP_HOST", "0.0.0.0"),
        app_port=_int_from_env("APP_PORT", _int_from_env("PORT", 8000)),
    )


def configure_logging(level: str = "info") -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
