"""HTTP entrypoint that triggers review checks and exposes tracker status."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from review_tracker.core.config import get_settings
from review_tracker.core.models import Review, star_display, utcnow
from review_tracker.core.monitor import CheckInProgressError, DuplicateCompanyError, ReviewMonitor
from review_tracker.core.scheduler import ReviewScheduler
from review_tracker.jobs.run_check import LOG_FORMAT, build_monitor

# ---------- Logging ----------
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

# ---------- App & monitor ----------
app = Flask(__name__)
_monitor: Optional[ReviewMonitor] = None
_monitor_lock = threading.Lock()

MAX_REVIEWS_RETURNED = 10


def get_monitor() -> ReviewMonitor:
    global _monitor
    with _monitor_lock:
        if _monitor is None:
            _monitor = build_monitor(get_settings())
        return _monitor


def _error(message: str, status: int, exc: Optional[Exception] = None) -> Any:
    body: Dict[str, Any] = {"success": False, "message": message}
    if exc is not None:
        body["error"] = str(exc)
    return jsonify(body), status


def _review_payload(review: Review) -> Dict[str, Any]:
    return {
        "id": review.id,
        "author_name": review.author_name,
        "rating": review.rating,
        "text": review.text,
        "time": review.time.isoformat(),
        "author_url": review.author_url,
    }


# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    return jsonify({"status": "healthy", "timestamp": utcnow().isoformat()}), 200


@app.post("/api/reviews/check")
def trigger_check() -> Any:
    """Run one check cycle synchronously and summarise the changes."""
    logger.info("Manual review check triggered via API")
    try:
        result = get_monitor().run_check()
    except CheckInProgressError as exc:
        return _error("A review check is already running. Try again later.", 409, exc)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error during manual review check: %s", exc)
        return _error("An error occurred during the review check.", 500, exc)

    return (
        jsonify(
            {
                "success": result.success,
                "message": result.message,
                "changes": [change.to_summary() for change in result.changes],
            }
        ),
        200,
    )


@app.get("/api/reviews/companies")
def list_companies() -> Any:
    try:
        companies = get_monitor().store.get_companies()
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error retrieving companies: %s", exc)
        return _error("An error occurred while retrieving companies.", 500, exc)
    return jsonify({"success": True, "companies": [company.to_dict() for company in companies]}), 200


@app.post("/api/reviews/companies")
def create_company() -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    name = str(payload.get("name") or "").strip()
    if not name:
        return _error("Company name is required.", 400)

    try:
        company = get_monitor().add_company(
            name,
            place_id=payload.get("place_id"),
            google_maps_url=payload.get("google_maps_url"),
            is_active=bool(payload.get("is_active", True)),
        )
    except DuplicateCompanyError as exc:
        return _error(str(exc), 409)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error adding company: %s", exc)
        return _error("An error occurred while adding the company.", 500, exc)

    return (
        jsonify(
            {
                "success": True,
                "message": f"Company '{company.name}' added successfully.",
                "company": company.to_dict(),
            }
        ),
        200,
    )


@app.get("/api/reviews/companies/<company_id>/reviews")
def company_reviews(company_id: str) -> Any:
    monitor = get_monitor()
    try:
        company = monitor.find_company(company_id)
        if company is None:
            return _error(f"Company with ID '{company_id}' not found.", 404)
        snapshot = monitor.fetch_current(company)
    except CheckInProgressError as exc:
        return _error("A review check is already running. Try again later.", 409, exc)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error retrieving reviews for company %s: %s", company_id, exc)
        return _error("An error occurred while retrieving company reviews.", 500, exc)

    if snapshot is None:
        return jsonify({"success": True, "message": "No review data available for this company.", "data": None}), 200

    reviews = snapshot.sorted_reviews()[:MAX_REVIEWS_RETURNED]
    return (
        jsonify(
            {
                "success": True,
                "data": {
                    "company_id": snapshot.company_id,
                    "company_name": snapshot.company_name,
                    "rating": snapshot.rating,
                    "total_reviews": snapshot.user_ratings_total,
                    "last_updated": snapshot.last_updated.isoformat(),
                    "reviews": [_review_payload(review) for review in reviews],
                },
            }
        ),
        200,
    )


@app.get("/api/reviews/companies/<company_id>/rating")
def company_rating(company_id: str) -> Any:
    monitor = get_monitor()
    try:
        company = monitor.find_company(company_id)
        if company is None:
            return _error(f"Company with ID '{company_id}' not found.", 404)
        snapshot = monitor.store.get_snapshot(company_id)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error retrieving company rating for %s: %s", company_id, exc)
        return _error("An error occurred while retrieving company rating.", 500, exc)

    rating = snapshot.rating if snapshot else 0.0
    return (
        jsonify(
            {
                "success": True,
                "data": {
                    "company_id": company.id,
                    "company_name": snapshot.company_name if snapshot else company.name,
                    "rating": rating,
                    "total_reviews": snapshot.user_ratings_total if snapshot else 0,
                    "stars": star_display(rating),
                    "last_updated": snapshot.last_updated.isoformat() if snapshot else None,
                },
            }
        ),
        200,
    )


@app.get("/api/reviews/status")
def tracker_status() -> Any:
    try:
        status = get_monitor().status()
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error retrieving status: %s", exc)
        return _error("An error occurred while retrieving status.", 500, exc)
    return jsonify({"success": True, "status": status}), 200


def main() -> None:
    settings = get_settings()
    monitor = get_monitor()
    scheduler = ReviewScheduler(
        monitor,
        interval_seconds=settings.check_interval_seconds,
        cooldown_seconds=settings.error_cooldown_seconds,
    )
    scheduler.start()

    logger.info("[BOOT] Binding on 0.0.0.0:%d", settings.port)
    try:
        app.run(host="0.0.0.0", port=settings.port)
    finally:
        scheduler.stop(timeout=5)
        monitor.source.close()


if __name__ == "__main__":
    main()
