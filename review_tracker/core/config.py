"""Application configuration helpers."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when configuration is missing or malformed."""


class ReviewSourceMode(str, Enum):
    API = "api"
    SCRAPING = "scraping"

    @classmethod
    def parse(cls, raw: str) -> "ReviewSourceMode":
        value = (raw or "").strip().lower()
        for mode in cls:
            if mode.value == value:
                return mode
        raise ConfigError(f"Unknown review source mode: {raw!r}. Use 'api' or 'scraping'.")


@dataclass(frozen=True)
class Settings:
    source_mode: ReviewSourceMode = ReviewSourceMode.API
    google_api_key: str = ""
    places_timeout_seconds: int = 10
    scrape_headless: bool = True
    scrape_delay_ms: int = 2000
    scrape_navigation_timeout_ms: int = 30000
    data_dir: Path = Path("Data")
    database_url: str = ""
    google_docs_document_id: str = ""
    google_service_account_file: str = ""
    check_interval_seconds: int = 7 * 24 * 60 * 60
    error_cooldown_seconds: int = 30 * 60
    port: int = 8080
    log_level: str = "INFO"


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    source_mode = ReviewSourceMode.parse(os.getenv("REVIEW_SOURCE_MODE", "api"))
    google_api_key = os.getenv("GOOGLE_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")
    google_docs_document_id = os.getenv("GOOGLE_DOCS_DOCUMENT_ID", "")

    if source_mode is ReviewSourceMode.API and not google_api_key:
        logger.warning("GOOGLE_API_KEY is not configured; the Places API source cannot start.")
    if not google_docs_document_id:
        logger.warning("GOOGLE_DOCS_DOCUMENT_ID is not configured; change reports will only be logged.")

    return Settings(
        source_mode=source_mode,
        google_api_key=google_api_key,
        places_timeout_seconds=_get_int("PLACES_TIMEOUT_SECONDS", 10),
        scrape_headless=_get_bool("SCRAPE_HEADLESS", True),
        scrape_delay_ms=_get_int("SCRAPE_DELAY_MS", 2000),
        scrape_navigation_timeout_ms=_get_int("SCRAPE_NAVIGATION_TIMEOUT_MS", 30000),
        data_dir=Path(os.getenv("DATA_DIR") or "Data"),
        database_url=database_url,
        google_docs_document_id=google_docs_document_id,
        google_service_account_file=os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE", ""),
        check_interval_seconds=_get_int("CHECK_INTERVAL_SECONDS", 7 * 24 * 60 * 60),
        error_cooldown_seconds=_get_int("ERROR_COOLDOWN_SECONDS", 30 * 60),
        port=_get_int("PORT", 8080),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )
