"""Change detection across all monitored companies and the check cycle around it."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from review_tracker.core.diff import compare_snapshots
from review_tracker.core.models import Company, ReviewChange, ReviewSnapshot, generate_company_id, utcnow
from review_tracker.core.storage import ReviewStore, StorageError
from review_tracker.reporting.report import ReportError, ReportSink
from review_tracker.sources.base import ReviewSource

logger = logging.getLogger(__name__)


class CheckInProgressError(RuntimeError):
    """Raised when a check is requested while another one is running."""


class DuplicateCompanyError(ValueError):
    """Raised when adding a company whose id already exists."""


def add_company(
    store: ReviewStore,
    name: str,
    *,
    place_id: Optional[str] = None,
    google_maps_url: Optional[str] = None,
    is_active: bool = True,
) -> Company:
    """Register a company under an id derived from its name."""
    if not name or not name.strip():
        raise ValueError("Company name is required.")
    companies = store.get_companies()
    company_id = generate_company_id(name)
    if any(existing.id == company_id for existing in companies):
        raise DuplicateCompanyError("A company with this name already exists.")

    company = Company(
        id=company_id,
        name=name.strip(),
        place_id=(place_id or "").strip(),
        google_maps_url=(google_maps_url or "").strip() or None,
        is_active=is_active,
    )
    companies.append(company)
    store.save_companies(companies)
    logger.info("Added new company: %s (ID: %s)", company.name, company.id)
    return company


class ChangeDetector:
    """Compares each company's current snapshot with its stored baseline."""

    def __init__(self, source: ReviewSource, store: ReviewStore) -> None:
        self.source = source
        self.store = store

    def _load_baseline(self, company: Company) -> Optional[ReviewSnapshot]:
        try:
            return self.store.get_snapshot(company.id)
        except StorageError as exc:
            logger.error("Unable to load baseline for %s, treating as first observation: %s", company.name, exc)
            return None

    def check_company(self, company: Company) -> Optional[ReviewChange]:
        current = self.source.fetch_snapshot(company)
        if current is None:
            logger.info("No review data for %s this cycle; baseline left untouched", company.name)
            return None

        baseline = self._load_baseline(company)
        change = None
        if baseline is None:
            logger.info("First observation of %s; recording baseline", company.name)
        else:
            change = compare_snapshots(baseline, current, self.source.review_key)

        try:
            self.store.save_snapshot(current)
        except StorageError as exc:
            logger.error("Unable to save baseline for %s: %s", company.name, exc)
        return change

    def detect_changes(self, companies: List[Company]) -> List[ReviewChange]:
        changes: List[ReviewChange] = []
        for company in companies:
            if not company.is_active:
                continue
            try:
                change = self.check_company(company)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Error processing company %s: %s", company.name, exc)
                continue
            if change is not None:
                logger.info("Company %s: %s", change.company_name, change.change_type.value)
                changes.append(change)
        return changes


@dataclass(frozen=True)
class CheckResult:
    success: bool
    message: str
    changes: List[ReviewChange] = field(default_factory=list)


class ReviewMonitor:
    """Runs check cycles and serves the read operations of the trigger API."""

    def __init__(self, source: ReviewSource, store: ReviewStore, reporter: ReportSink) -> None:
        self.source = source
        self.store = store
        self.reporter = reporter
        self.detector = ChangeDetector(source, store)
        self._cycle_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._cycle_lock.locked()

    def run_check(self) -> CheckResult:
        """Run one cycle now. Raises CheckInProgressError if one is already running."""
        if not self._cycle_lock.acquire(blocking=False):
            raise CheckInProgressError("A review check is already running")
        try:
            return self._run_cycle()
        finally:
            self._cycle_lock.release()

    def _run_cycle(self) -> CheckResult:
        logger.info("Starting review check at %s", utcnow().isoformat())
        companies = self.store.get_companies()
        active = [company for company in companies if company.is_active]
        logger.info("Checking reviews for %d active companies", len(active))

        changes = self.detector.detect_changes(active)
        if not changes:
            logger.info("No changes detected in any company reviews")
            return CheckResult(True, "No changes detected in any company reviews.", [])

        logger.info("Found %d companies with changes", len(changes))
        try:
            self.reporter.report(changes)
        except ReportError as exc:
            logger.error("Failed to deliver change report via %s: %s", self.reporter.name, exc)
            return CheckResult(True, f"Found changes in {len(changes)} companies. Report delivery failed.", changes)
        return CheckResult(True, f"Found changes in {len(changes)} companies. Report sent via {self.reporter.name}.", changes)

    def find_company(self, company_id: str) -> Optional[Company]:
        for company in self.store.get_companies():
            if company.id == company_id:
                return company
        return None

    def fetch_current(self, company: Company) -> Optional[ReviewSnapshot]:
        """Acquire a snapshot without touching the stored baseline."""
        if not self._cycle_lock.acquire(blocking=False):
            raise CheckInProgressError("A review check is already running")
        try:
            return self.source.fetch_snapshot(company)
        finally:
            self._cycle_lock.release()

    def add_company(self, name: str, **kwargs: Any) -> Company:
        return add_company(self.store, name, **kwargs)

    def status(self) -> Dict[str, Any]:
        companies = self.store.get_companies()
        snapshots = self.store.get_all_snapshots()
        last_update = max((snapshot.last_updated for snapshot in snapshots), default=None)
        return {
            "total_companies": len(companies),
            "active_companies": sum(1 for company in companies if company.is_active),
            "companies_with_data": len(snapshots),
            "last_data_update": last_update.isoformat() if last_update else None,
            "check_running": self.is_running,
            "server_time": utcnow().isoformat(),
        }
