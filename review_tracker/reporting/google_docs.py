"""Report sink that appends change reports to a Google Doc."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional

import google.auth
import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from review_tracker.core.models import ReviewChange
from review_tracker.reporting.report import LogReporter, ReportError, ReportSink, format_report
from review_tracker.vendors import google_docs

logger = logging.getLogger(__name__)

DOCS_SCOPES = ["https://www.googleapis.com/auth/documents"]


class GoogleDocsReporter(ReportSink):
    name = "google_docs"

    def __init__(self, document_id: str, credentials_path: str = "", *, credentials: Optional[Any] = None) -> None:
        if not document_id:
            raise ValueError("document_id is required")
        self.document_id = document_id
        self.credentials_path = credentials_path
        self._credentials = credentials

    def _load_credentials(self) -> Any:
        if self.credentials_path and Path(self.credentials_path).exists():
            logger.debug("Using service account file %s", self.credentials_path)
            return service_account.Credentials.from_service_account_file(self.credentials_path, scopes=DOCS_SCOPES)
        credentials, _ = google.auth.default(scopes=DOCS_SCOPES)
        return credentials

    def _access_token(self) -> str:
        if self._credentials is None:
            self._credentials = self._load_credentials()
        if not self._credentials.valid:
            self._credentials.refresh(Request())
        return self._credentials.token

    def report(self, changes: List[ReviewChange]) -> None:
        if not changes:
            logger.info("No changes to report to Google Docs")
            return

        content = format_report(changes)
        try:
            token = self._access_token()
            google_docs.append_text(self.document_id, content, token)
        except (GoogleAuthError, ValueError, requests.RequestException, google_docs.GoogleDocsError) as exc:
            raise ReportError(f"Failed to append report to document {self.document_id}: {exc}") from exc
        logger.info("Reported %d changes to Google Docs", len(changes))


def create_reporter(settings) -> ReportSink:
    if settings.google_docs_document_id:
        return GoogleDocsReporter(settings.google_docs_document_id, settings.google_service_account_file)
    return LogReporter()
