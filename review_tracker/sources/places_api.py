"""Review source backed by the Google Places API."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from review_tracker.core.models import Company, Review, ReviewSnapshot, utcnow
from review_tracker.sources.base import ReviewSource
from review_tracker.vendors import google_places

logger = logging.getLogger(__name__)

_FRACTION = re.compile(r"\.(\d+)")


def parse_publish_time(raw: Any, *, now: Optional[datetime] = None) -> datetime:
    """Parse an RFC 3339 ``publishTime``; anything unparseable maps to ``now``."""
    fallback = now or utcnow()
    if not isinstance(raw, str) or not raw.strip():
        return fallback
    value = raw.strip().replace("Z", "+00:00")
    # fromisoformat on 3.10 only accepts 3 or 6 fraction digits
    value = _FRACTION.sub(lambda match: f".{match.group(1)[:6].ljust(6, '0')}", value, count=1)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.debug("Unparseable publishTime %r; using acquisition time", raw)
        return fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def build_review_id(company_id: str, publish_time: str, author_name: str) -> str:
    return f"{company_id}_{publish_time}_{author_name.replace(' ', '')}"


def _text_of(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        text = value.get("text")
        return text if text else None
    return None


def to_review(raw: Dict[str, Any], company_id: str, *, now: Optional[datetime] = None) -> Review:
    attribution = raw.get("authorAttribution") or {}
    display_name = attribution.get("displayName") or ""
    publish_time = raw.get("publishTime") or ""
    return Review(
        id=build_review_id(company_id, publish_time, display_name),
        company_id=company_id,
        author_name=display_name or "Anonymous",
        rating=int(raw.get("rating") or 0),
        text=_text_of(raw.get("text")) or _text_of(raw.get("originalText")),
        time=parse_publish_time(publish_time, now=now),
        author_url=attribution.get("uri"),
        profile_photo_url=attribution.get("photoUri"),
    )


def to_snapshot(payload: Dict[str, Any], company: Company, *, now: Optional[datetime] = None) -> ReviewSnapshot:
    now = now or utcnow()
    display_name = _text_of(payload.get("displayName")) or company.name
    reviews: List[Review] = [
        to_review(raw, company.id, now=now) for raw in payload.get("reviews") or [] if isinstance(raw, dict)
    ]
    return ReviewSnapshot(
        company_id=company.id,
        company_name=display_name,
        rating=float(payload.get("rating") or 0.0),
        user_ratings_total=int(payload.get("userRatingCount") or 0),
        reviews=reviews,
        last_updated=now,
    )


class PlacesApiSource(ReviewSource):
    """Structured source: reviews keyed by a deterministic id."""

    name = "api"

    def __init__(self, api_key: str, *, timeout: int = 10) -> None:
        self.api_key = api_key
        self.timeout = timeout

    def fetch_snapshot(self, company: Company) -> Optional[ReviewSnapshot]:
        place_id = (company.place_id or "").strip()
        if not place_id:
            logger.warning("No place_id provided for company %s", company.name)
            return None

        logger.info("Fetching reviews for %s from Google Places API", company.name)
        try:
            payload = google_places.place_details(place_id, self.api_key, timeout=self.timeout)
        except (requests.RequestException, google_places.GooglePlacesError, ValueError) as exc:
            logger.warning("Places API request failed for %s (place_id=%s): %s", company.name, place_id, exc)
            return None

        try:
            snapshot = to_snapshot(payload, company)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("Unable to map Places payload for %s: %s keys=%s", company.name, exc, list(payload)[:10])
            return None

        if not snapshot.reviews:
            logger.warning("No individual reviews returned by API for %s", company.name)
        logger.info(
            "Fetched %s: rating=%.1f total=%d sampled_reviews=%d",
            snapshot.company_name,
            snapshot.rating,
            snapshot.user_ratings_total,
            len(snapshot.reviews),
        )
        return snapshot

    def review_key(self, review: Review) -> str:
        return review.id
