"""Selector fallback chains used to pull review data out of rendered Maps pages."""

from __future__ import annotations

import calendar
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional, Pattern, Sequence

from bs4 import BeautifulSoup
from bs4.element import Tag

from review_tracker.core.models import utcnow

logger = logging.getLogger(__name__)

MAX_REVIEWS = 10


def parse_decimal(value: str) -> float:
    rating = float(value.replace(",", "."))
    if not 0.0 <= rating <= 5.0:
        raise ValueError(f"rating out of range: {rating}")
    return rating


def parse_count(value: str) -> int:
    digits = "".join(ch for ch in value if ch.isdigit())
    if not digits:
        raise ValueError(f"no digits in {value!r}")
    return int(digits)


def parse_stars(value: str) -> int:
    stars = int(value)
    if not 0 <= stars <= 5:
        raise ValueError(f"star rating out of range: {stars}")
    return stars


def clean_text(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


@dataclass(frozen=True)
class Extractor:
    """One step of a fallback chain.

    ``selector`` picks a descendant of the node (the node itself when None),
    ``attribute`` reads an attribute instead of the text, ``pattern`` keeps the
    first capture group and ``cast`` converts the result (raising rejects it).
    """

    selector: Optional[str] = None
    attribute: Optional[str] = None
    pattern: Optional[Pattern[str]] = None
    cast: Callable[[str], Any] = clean_text

    def extract(self, node: Tag) -> Any:
        target = node.select_one(self.selector) if self.selector else node
        if target is None:
            return None
        if self.attribute:
            raw = target.get(self.attribute)
            if isinstance(raw, list):
                raw = " ".join(raw)
        else:
            raw = target.get_text(" ", strip=True)
        if not raw:
            return None
        if self.pattern is not None:
            match = self.pattern.search(raw)
            if not match:
                return None
            raw = match.group(1)
        return self.cast(raw)


def run_chain(node: Tag, chain: Sequence[Extractor], *, label: str = "field") -> Any:
    """Evaluate extractors in order and return the first non-empty result."""
    for position, extractor in enumerate(chain):
        try:
            value = extractor.extract(node)
        except Exception as exc:  # noqa: BLE001
            logger.debug("%s extractor %d (%s) failed: %s", label, position, extractor.selector, exc)
            continue
        if value is None or value == "":
            continue
        return value
    logger.debug("%s: every extractor in the chain came up empty", label)
    return None


def select_first(node: Tag, selectors: Sequence[str], *, label: str = "elements") -> List[Tag]:
    """Return the matches of the first selector that finds anything."""
    for selector in selectors:
        try:
            found = node.select(selector)
        except Exception as exc:  # noqa: BLE001
            logger.debug("%s selector %s failed: %s", label, selector, exc)
            continue
        if found:
            logger.debug("Found %d %s using selector %s", len(found), label, selector)
            return found
    return []


BUSINESS_NAME_CHAIN = (
    Extractor("h1[data-attrid='title']"),
    Extractor("h1.DUwDvf"),
    Extractor("[data-attrid='title'] span"),
    Extractor("h1"),
)

_RATING_NUMBER = re.compile(r"([0-5](?:[.,]\d)?)")

RATING_CHAIN = (
    Extractor("[data-attrid='kc:/collection/knowledge_panels/local_reviewable:star_score'] span", pattern=_RATING_NUMBER, cast=parse_decimal),
    Extractor("div.fontDisplayLarge", pattern=_RATING_NUMBER, cast=parse_decimal),
    Extractor(".ceNzKf", attribute="aria-label", pattern=_RATING_NUMBER, cast=parse_decimal),
    Extractor(".ceNzKf", pattern=_RATING_NUMBER, cast=parse_decimal),
    Extractor("[jsaction*='rating'] span", pattern=_RATING_NUMBER, cast=parse_decimal),
    Extractor("span[role='img'][aria-label*='stars']", attribute="aria-label", pattern=_RATING_NUMBER, cast=parse_decimal),
)

TOTAL_REVIEWS_CHAIN = (
    Extractor("span[role='img'][aria-label*='reviews']", attribute="aria-label", pattern=re.compile(r"(\d[\d,.]*)\s*reviews?", re.I), cast=parse_count),
    Extractor("div.fontBodySmall", pattern=re.compile(r"([\d,.]+)\s+reviews?", re.I), cast=parse_count),
    Extractor(pattern=re.compile(r"\(([\d,.]+)\s+reviews?\)", re.I), cast=parse_count),
    Extractor(pattern=re.compile(r"\(([\d,.]+)\s+recensioner\)", re.I), cast=parse_count),
    Extractor(pattern=re.compile(r"([\d,.]+)\s+reviews?\b", re.I), cast=parse_count),
    Extractor(pattern=re.compile(r"([\d,.]+)\s+recensioner\b", re.I), cast=parse_count),
    Extractor(pattern=re.compile(r"Based on ([\d,.]+) reviews?", re.I), cast=parse_count),
)

REVIEW_CONTAINER_SELECTORS = (
    ".jftiEf",
    ".ODSEW-ShBeI-content",
    "[data-review-id]",
    ".review-item",
)

AUTHOR_CHAIN = (
    Extractor(".d4r55"),
    Extractor(".a-profile-name"),
    Extractor("[data-attrid='title']"),
)

_LEADING_INT = re.compile(r"(\d+)")

REVIEW_RATING_CHAIN = (
    Extractor("[role='img'][aria-label*='star']", attribute="aria-label", pattern=_LEADING_INT, cast=parse_stars),
    Extractor(".kvMYJc", attribute="aria-label", pattern=_LEADING_INT, cast=parse_stars),
    Extractor("[aria-label*='star']", attribute="aria-label", pattern=_LEADING_INT, cast=parse_stars),
    Extractor("[aria-label*='stjärn']", attribute="aria-label", pattern=_LEADING_INT, cast=parse_stars),
)

REVIEW_TEXT_CHAIN = (
    Extractor(".wiI7pd"),
    Extractor(".MyEned"),
    Extractor(".review-text"),
    Extractor("[data-attrid='review_text']"),
)

REVIEW_TIME_CHAIN = (
    Extractor(".rsqaWe"),
    Extractor(".review-date"),
    Extractor(".review-time"),
)


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


_RELATIVE_TIME = re.compile(r"\b(\d+|an?|one)\s+(day|week|month|year)s?\b", re.IGNORECASE)


def _subtract_months(moment: datetime, months: int) -> datetime:
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def parse_relative_time(text: Optional[str], *, now: Optional[datetime] = None) -> datetime:
    """Turn "2 months ago" style descriptions into an absolute timestamp."""
    now = now or utcnow()
    if not text:
        return now
    match = _RELATIVE_TIME.search(text)
    if not match:
        return now
    amount_raw, unit = match.group(1).lower(), match.group(2).lower()
    amount = int(amount_raw) if amount_raw.isdigit() else 1
    if unit == "day":
        return now - timedelta(days=amount)
    if unit == "week":
        return now - timedelta(weeks=amount)
    if unit == "month":
        return _subtract_months(now, amount)
    return _subtract_months(now, amount * 12)
