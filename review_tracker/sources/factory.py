"""
Source factory - picks the review source from configuration.
"""
import logging

from review_tracker.core.config import ConfigError, ReviewSourceMode, Settings
from review_tracker.sources.base import ReviewSource
from review_tracker.sources.browser import BrowserSession
from review_tracker.sources.maps_scraper import MapsScrapeSource
from review_tracker.sources.places_api import PlacesApiSource

logger = logging.getLogger(__name__)


def create_review_source(settings: Settings) -> ReviewSource:
    """
    Create the review source selected by ``settings.source_mode``.

    Raises:
        ConfigError: if the mode is unknown or the API mode lacks a key
    """
    mode = settings.source_mode

    if mode is ReviewSourceMode.API:
        if not settings.google_api_key:
            raise ConfigError("GOOGLE_API_KEY must be set when REVIEW_SOURCE_MODE=api")
        source: ReviewSource = PlacesApiSource(settings.google_api_key, timeout=settings.places_timeout_seconds)

    elif mode is ReviewSourceMode.SCRAPING:
        session = BrowserSession(
            headless=settings.scrape_headless,
            settle_delay_ms=settings.scrape_delay_ms,
            timeout_ms=settings.scrape_navigation_timeout_ms,
        )
        source = MapsScrapeSource(session)

    else:
        raise ConfigError(f"Unknown review source mode: {mode}")

    logger.info("Using %s review source", source.name)
    return source
