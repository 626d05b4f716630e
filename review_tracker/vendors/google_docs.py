"""Client utilities for the Google Docs REST API."""

import logging
from typing import Any, Dict

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://docs.googleapis.com/v1/documents"


class GoogleDocsError(RuntimeError):
    """Raised when the Docs API rejects a request."""


def _headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _check(response: requests.Response, action: str) -> Dict[str, Any]:
    if response.status_code >= 400:
        logger.error("%s failed: status=%s body=%s", action, response.status_code, response.text[:500])
        raise GoogleDocsError(f"{action} failed with HTTP {response.status_code}")
    return response.json()


def get_document(document_id: str, token: str, timeout: int = 10) -> Dict[str, Any]:
    response = _SESSION.get(f"{_BASE_URL}/{document_id}", headers=_headers(token), timeout=timeout)
    return _check(response, "get_document")


def document_end_index(document: Dict[str, Any]) -> int:
    """Index just before the trailing newline of the body, where appends go."""
    content = (document.get("body") or {}).get("content") or []
    if not content:
        return 1
    return max(int(content[-1].get("endIndex", 2)) - 1, 1)


def append_text(document_id: str, text: str, token: str, timeout: int = 10) -> Dict[str, Any]:
    """Insert ``text`` at the end of the document body."""
    document = get_document(document_id, token, timeout=timeout)
    body = {
        "requests": [
            {
                "insertText": {
                    "location": {"index": document_end_index(document)},
                    "text": text,
                }
            }
        ]
    }
    response = _SESSION.post(
        f"{_BASE_URL}/{document_id}:batchUpdate",
        headers=_headers(token),
        json=body,
        timeout=timeout,
    )
    return _check(response, "batch_update")
