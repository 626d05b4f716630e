from datetime import datetime, timezone

from review_tracker.core.models import ChangeType, Review, ReviewChange
from review_tracker.reporting import report

DETECTED = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


def _change(change_type, reviews=(), previous=4.0, current=4.0):
    return ReviewChange(
        company_id="acme",
        company_name="Acme",
        previous_rating=previous,
        current_rating=current,
        previous_total_reviews=50,
        current_total_reviews=50 + len(reviews),
        new_reviews=list(reviews),
        change_type=change_type,
        detected_at=DETECTED,
    )


def _review(index, text="Great place"):
    return Review(
        id=f"r{index}",
        company_id="acme",
        author_name=f"User {index}",
        rating=4,
        text=text,
        time=datetime(2024, 4, index + 1, tzinfo=timezone.utc),
    )


def test_rating_change_lines():
    lines = report.format_change(_change(ChangeType.RATING_CHANGED, previous=4.5, current=4.2))

    assert "Previous rating: 4.5" in lines
    assert "Current rating: 4.2" in lines
    assert "Change: -0.3 (down)" in lines
    assert not any(line.startswith("New reviews") for line in lines)
    assert "Detected: 2024-05-01 09:30" in lines


def test_new_reviews_are_capped_and_truncated():
    reviews = [_review(0, text="x" * 150)] + [_review(i) for i in range(1, 5)]

    lines = report.format_change(_change(ChangeType.NEW_REVIEWS, reviews))

    assert "New reviews: 5" in lines
    assert "  * ★★★★ by User 0 (2024-04-01)" in lines
    assert f'    "{"x" * 97}..."' in lines
    assert "  ... and 2 more new reviews" in lines
    assert not any("User 3" in line for line in lines)


def test_format_report_header_and_separator():
    text = report.format_report([_change(ChangeType.BOTH, [_review(0)], previous=4.0, current=4.3)], now=DETECTED)

    assert "--- Google Reviews Report - 2024-05-01 09:30:00 ---" in text
    assert "Change: +0.3 (up)" in text
    assert "-" * 50 in text


def test_log_reporter_logs_report(caplog):
    with caplog.at_level("INFO"):
        report.LogReporter().report([_change(ChangeType.RATING_CHANGED, previous=4.0, current=3.0)])

    assert "Company: Acme" in caplog.text
