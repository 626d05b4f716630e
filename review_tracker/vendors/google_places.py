"""Client utilities for the Google Places API (New)."""

import logging
from typing import Any, Dict

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://places.googleapis.com/v1/places"
_FIELD_MASK = "displayName,rating,userRatingCount,reviews"


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns an error payload."""


def place_details(place_id: str, api_key: str, timeout: int = 10) -> Dict[str, Any]:
    """Fetch rating, review count and the most relevant reviews for a place."""
    headers = {"X-Goog-Api-Key": api_key, "X-Goog-FieldMask": _FIELD_MASK}
    response = _SESSION.get(f"{_BASE_URL}/{place_id}", headers=headers, timeout=timeout)
    response.raise_for_status()
    payload = response.json()
    if not isinstance(payload, dict):
        raise GooglePlacesError(f"unexpected payload type {type(payload).__name__}")
    error = payload.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        status = error.get("status") if isinstance(error, dict) else None
        logger.error("place_details failed: status=%s, error_message=%s", status, message)
        raise GooglePlacesError(message or status or "unknown error")
    return payload
