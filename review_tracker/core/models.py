"""Core data models shared by the review sources, the change detector and the stores."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return utcnow()
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return utcnow()


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value)
    return value_str or None


@dataclass(slots=True)
class Company:
    """A monitored business and the locators used to look it up."""

    id: str
    name: str
    place_id: Optional[str] = None
    google_maps_url: Optional[str] = None
    is_active: bool = True
    last_updated: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "place_id": self.place_id,
            "google_maps_url": self.google_maps_url,
            "is_active": self.is_active,
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Company":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            place_id=_optional_str(data.get("place_id")),
            google_maps_url=_optional_str(data.get("google_maps_url")),
            is_active=bool(data.get("is_active", True)),
            last_updated=_parse_timestamp(data.get("last_updated")),
        )


@dataclass(slots=True)
class Review:
    """A single user review as observed by one of the sources."""

    id: str
    company_id: str
    author_name: str = "Anonymous"
    rating: int = 0
    text: Optional[str] = None
    time: datetime = field(default_factory=utcnow)
    author_url: Optional[str] = None
    profile_photo_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "author_name": self.author_name,
            "rating": self.rating,
            "text": self.text,
            "time": self.time.isoformat(),
            "author_url": self.author_url,
            "profile_photo_url": self.profile_photo_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Review":
        try:
            rating = int(data.get("rating") or 0)
        except (TypeError, ValueError):
            rating = 0
        return cls(
            id=str(data.get("id") or ""),
            company_id=str(data.get("company_id") or ""),
            author_name=str(data.get("author_name") or "Anonymous"),
            rating=rating,
            text=data.get("text"),
            time=_parse_timestamp(data.get("time")),
            author_url=_optional_str(data.get("author_url")),
            profile_photo_url=_optional_str(data.get("profile_photo_url")),
        )


@dataclass(slots=True)
class ReviewSnapshot:
    """One observation of a company's review state.

    ``user_ratings_total`` is the population reported by the source while
    ``reviews`` only ever holds a recent sample, so the two are unrelated.
    """

    company_id: str
    company_name: str
    rating: float = 0.0
    user_ratings_total: int = 0
    reviews: List[Review] = field(default_factory=list)
    last_updated: datetime = field(default_factory=utcnow)

    def sorted_reviews(self) -> List[Review]:
        return sorted(self.reviews, key=lambda review: review.time, reverse=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "company_id": self.company_id,
            "company_name": self.company_name,
            "rating": self.rating,
            "user_ratings_total": self.user_ratings_total,
            "reviews": [review.to_dict() for review in self.reviews],
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReviewSnapshot":
        try:
            rating = float(data.get("rating") or 0.0)
        except (TypeError, ValueError):
            rating = 0.0
        try:
            total = int(data.get("user_ratings_total") or 0)
        except (TypeError, ValueError):
            total = 0
        return cls(
            company_id=str(data.get("company_id") or ""),
            company_name=str(data.get("company_name") or ""),
            rating=rating,
            user_ratings_total=total,
            reviews=[Review.from_dict(raw) for raw in data.get("reviews") or [] if isinstance(raw, dict)],
            last_updated=_parse_timestamp(data.get("last_updated")),
        )


class ChangeType(str, Enum):
    RATING_CHANGED = "RatingChanged"
    NEW_REVIEWS = "NewReviews"
    BOTH = "Both"


@dataclass(frozen=True)
class ReviewChange:
    """Delta between a stored baseline and the latest snapshot."""

    company_id: str
    company_name: str
    previous_rating: float
    current_rating: float
    previous_total_reviews: int
    current_total_reviews: int
    new_reviews: List[Review]
    change_type: ChangeType
    detected_at: datetime = field(default_factory=utcnow)

    @property
    def rating_delta(self) -> float:
        return self.current_rating - self.previous_rating

    def to_summary(self) -> Dict[str, Any]:
        return {
            "company_name": self.company_name,
            "change_type": self.change_type.value,
            "previous_rating": self.previous_rating,
            "current_rating": self.current_rating,
            "new_reviews_count": len(self.new_reviews),
        }


_SLUG_REPLACEMENTS = (
    (" ", "-"),
    ("å", "a"),
    ("ä", "a"),
    ("ö", "o"),
    (".", ""),
    (",", ""),
    ("&", "and"),
)


def generate_company_id(name: str) -> str:
    slug = name.strip().lower()
    for old, new in _SLUG_REPLACEMENTS:
        slug = slug.replace(old, new)
    return slug.strip("-")


def star_display(rating: float) -> str:
    rating = max(0.0, min(5.0, rating or 0.0))
    full_stars = int(math.floor(rating))
    has_half_star = rating - full_stars >= 0.5
    empty_stars = 5 - full_stars - (1 if has_half_star else 0)
    return "★" * full_stars + ("☆" if has_half_star else "") + "☆" * empty_stars
