"""Plain-text change reports and the sink interface."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from review_tracker.core.models import ChangeType, ReviewChange, utcnow

logger = logging.getLogger(__name__)

MAX_REVIEWS_IN_REPORT = 3
MAX_TEXT_LENGTH = 100
SEPARATOR = "-" * 50


class ReportError(RuntimeError):
    """Raised when a report could not be delivered."""


class ReportSink(ABC):
    name: str

    @abstractmethod
    def report(self, changes: List[ReviewChange]) -> None:
        """Deliver the changes. Raises ReportError on failure."""
        raise NotImplementedError


def _truncate(text: str) -> str:
    if len(text) > MAX_TEXT_LENGTH:
        return f"{text[:MAX_TEXT_LENGTH - 3]}..."
    return text


def format_change(change: ReviewChange) -> List[str]:
    lines = [f"Company: {change.company_name}"]

    if change.change_type in (ChangeType.RATING_CHANGED, ChangeType.BOTH):
        delta = change.rating_delta
        trend = "up" if delta > 0 else "down"
        lines.append(f"Previous rating: {change.previous_rating:.1f}")
        lines.append(f"Current rating: {change.current_rating:.1f}")
        lines.append(f"Change: {delta:+.1f} ({trend})")

    if change.change_type in (ChangeType.NEW_REVIEWS, ChangeType.BOTH):
        lines.append(f"Total reviews: {change.previous_total_reviews} -> {change.current_total_reviews}")
        lines.append(f"New reviews: {len(change.new_reviews)}")
        if change.new_reviews:
            lines.append("")
            lines.append("Latest new reviews:")
            for review in change.new_reviews[:MAX_REVIEWS_IN_REPORT]:
                stars = "★" * max(review.rating, 0)
                lines.append(f"  * {stars} by {review.author_name} ({review.time:%Y-%m-%d})")
                if review.text:
                    lines.append(f'    "{_truncate(review.text)}"')
            remaining = len(change.new_reviews) - MAX_REVIEWS_IN_REPORT
            if remaining > 0:
                lines.append(f"  ... and {remaining} more new reviews")

    lines.append(f"Detected: {change.detected_at:%Y-%m-%d %H:%M}")
    lines.append(SEPARATOR)
    lines.append("")
    return lines


def format_report(changes: List[ReviewChange], *, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    lines = ["", f"--- Google Reviews Report - {now:%Y-%m-%d %H:%M:%S} ---", ""]
    for change in changes:
        lines.extend(format_change(change))
    return "\n".join(lines) + "\n"


class LogReporter(ReportSink):
    """Writes the report to the log; used when no document is configured."""

    name = "log"

    def report(self, changes: List[ReviewChange]) -> None:
        if not changes:
            logger.info("No changes to report")
            return
        logger.info("Review change report:%s", format_report(changes))
