"""Review source that scrapes the public Google Maps page of a business."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from bs4.element import Tag
from playwright.sync_api import Error as PlaywrightError

from review_tracker.core.models import Company, Review, ReviewSnapshot, utcnow
from review_tracker.sources import extraction
from review_tracker.sources.base import ReviewSource
from review_tracker.sources.browser import BrowserSession, BrowserUnavailableError

logger = logging.getLogger(__name__)

MAPS_PLACE_URL = "https://maps.google.com/maps?place_id={place_id}&hl=en"


def build_target_url(company: Company) -> Optional[str]:
    url = (company.google_maps_url or "").strip()
    if url:
        return url
    place_id = (company.place_id or "").strip()
    if place_id:
        return MAPS_PLACE_URL.format(place_id=place_id)
    return None


def extract_review(node: Tag, company_id: str, index: int, *, now: datetime) -> Review:
    author = extraction.run_chain(node, extraction.AUTHOR_CHAIN, label="author")
    rating = extraction.run_chain(node, extraction.REVIEW_RATING_CHAIN, label="review rating")
    text = extraction.run_chain(node, extraction.REVIEW_TEXT_CHAIN, label="review text")
    time_text = extraction.run_chain(node, extraction.REVIEW_TIME_CHAIN, label="review time")
    return Review(
        id=f"{company_id}_scraped_{index}",
        company_id=company_id,
        author_name=author or "Anonymous",
        rating=rating or 0,
        text=text,
        time=extraction.parse_relative_time(time_text, now=now),
    )


def extract_snapshot(html: str, company: Company, *, now: Optional[datetime] = None) -> ReviewSnapshot:
    """Build a snapshot from rendered HTML; every field degrades on its own."""
    now = now or utcnow()
    soup = extraction.parse_html(html)

    name = extraction.run_chain(soup, extraction.BUSINESS_NAME_CHAIN, label="business name")
    rating = extraction.run_chain(soup, extraction.RATING_CHAIN, label="rating")
    total = extraction.run_chain(soup, extraction.TOTAL_REVIEWS_CHAIN, label="total reviews")

    reviews: List[Review] = []
    containers = extraction.select_first(soup, extraction.REVIEW_CONTAINER_SELECTORS, label="review elements")
    if not containers:
        logger.warning("No review elements found for %s", company.name)
    for index, node in enumerate(containers):
        if len(reviews) >= extraction.MAX_REVIEWS:
            break
        try:
            reviews.append(extract_review(node, company.id, index, now=now))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Error extracting review %d for %s: %s", index, company.name, exc)

    return ReviewSnapshot(
        company_id=company.id,
        company_name=name or company.name,
        rating=rating or 0.0,
        user_ratings_total=total or 0,
        reviews=reviews,
        last_updated=now,
    )


class MapsScrapeSource(ReviewSource):
    """Extraction source: reviews have no stable id, so identity is structural."""

    name = "scraping"

    def __init__(self, session: BrowserSession) -> None:
        self.session = session

    def fetch_snapshot(self, company: Company) -> Optional[ReviewSnapshot]:
        url = build_target_url(company)
        if not url:
            logger.warning("No Google Maps URL or place_id provided for company %s", company.name)
            return None

        logger.info("Scraping reviews for %s from %s", company.name, url)
        try:
            html = self.session.load(url)
        except BrowserUnavailableError as exc:
            logger.error("Browser unavailable while scraping %s: %s", company.name, exc)
            return None
        except PlaywrightError as exc:
            logger.warning("Failed to load %s for %s: %s", url, company.name, exc)
            return None

        snapshot = extract_snapshot(html, company)
        logger.info(
            "Scraped %d reviews for %s, rating=%.1f total=%d",
            len(snapshot.reviews),
            snapshot.company_name,
            snapshot.rating,
            snapshot.user_ratings_total,
        )
        return snapshot

    def review_key(self, review: Review) -> Tuple[str, int, Optional[str]]:
        return review.author_name, review.rating, review.text

    def close(self) -> None:
        self.session.close()
