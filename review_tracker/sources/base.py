"""
Base class for review sources.
"""
from abc import ABC, abstractmethod
from typing import Hashable, Optional

from review_tracker.core.models import Company, Review, ReviewSnapshot


class ReviewSource(ABC):
    """
    Common acquisition contract for the Places API and the Maps scraper.
    """

    name: str

    @abstractmethod
    def fetch_snapshot(self, company: Company) -> Optional[ReviewSnapshot]:
        """
        Return the current review snapshot for a company, or None when no
        data could be acquired. Must NEVER raise for acquisition failures.
        """
        raise NotImplementedError

    @abstractmethod
    def review_key(self, review: Review) -> Hashable:
        """
        Identity used to decide whether a review was already seen.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release any resources held by the source."""

    def __enter__(self) -> "ReviewSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
