"""Comparison of a stored baseline against a freshly acquired snapshot."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Hashable, List, Optional, Set

from review_tracker.core.models import ChangeType, Review, ReviewChange, ReviewSnapshot, utcnow

RATING_TOLERANCE = 0.01
# keeps |4.01 - 4.00| (0.0100000000000002 in binary) inside the tolerance
_FLOAT_EPSILON = 1e-9

ReviewKey = Callable[[Review], Hashable]


def rating_changed(previous: float, current: float) -> bool:
    return abs(current - previous) > RATING_TOLERANCE + _FLOAT_EPSILON


def find_new_reviews(previous: ReviewSnapshot, current: ReviewSnapshot, review_key: ReviewKey) -> List[Review]:
    """Reviews in ``current`` whose identity is absent from ``previous``, newest first."""
    seen: Set[Hashable] = {review_key(review) for review in previous.reviews}
    new_reviews: List[Review] = []
    for review in current.sorted_reviews():
        key = review_key(review)
        if key in seen:
            continue
        seen.add(key)
        new_reviews.append(review)
    return new_reviews


def compare_snapshots(
    previous: ReviewSnapshot,
    current: ReviewSnapshot,
    review_key: ReviewKey,
    *,
    now: Optional[datetime] = None,
) -> Optional[ReviewChange]:
    """Return a change record, or None when neither rating nor total moved."""
    has_rating_changed = rating_changed(previous.rating, current.rating)
    has_total_changed = previous.user_ratings_total != current.user_ratings_total
    if not has_rating_changed and not has_total_changed:
        return None

    new_reviews = find_new_reviews(previous, current, review_key)
    if has_rating_changed and new_reviews:
        change_type = ChangeType.BOTH
    elif has_rating_changed:
        change_type = ChangeType.RATING_CHANGED
    else:
        change_type = ChangeType.NEW_REVIEWS

    return ReviewChange(
        company_id=current.company_id,
        company_name=current.company_name,
        previous_rating=previous.rating,
        current_rating=current.rating,
        previous_total_reviews=previous.user_ratings_total,
        current_total_reviews=current.user_ratings_total,
        new_reviews=new_reviews,
        change_type=change_type,
        detected_at=now or utcnow(),
    )
