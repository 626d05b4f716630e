import json
import threading

import pytest

from review_tracker.core import monitor
from review_tracker.core.models import ChangeType, Company, Review, ReviewSnapshot
from review_tracker.core.storage import JsonFileStore, ReviewStore, StorageError
from review_tracker.reporting.report import ReportError, ReportSink
from review_tracker.sources.base import ReviewSource


class MemoryStore(ReviewStore):
    def __init__(self, companies=(), snapshots=None):
        self.companies = list(companies)
        self.snapshots = dict(snapshots or {})
        self.saved = []
        self.fail_reads = set()
        self.fail_writes = False

    def get_companies(self):
        return list(self.companies)

    def save_companies(self, companies):
        self.companies = list(companies)

    def get_snapshot(self, company_id):
        if company_id in self.fail_reads:
            raise StorageError("corrupt")
        return self.snapshots.get(company_id)

    def save_snapshot(self, snapshot):
        if self.fail_writes:
            raise StorageError("disk full")
        self.saved.append(snapshot)
        self.snapshots[snapshot.company_id] = snapshot

    def get_all_snapshots(self):
        return list(self.snapshots.values())


class DummySource(ReviewSource):
    name = "dummy"

    def __init__(self, results=None):
        self.results = dict(results or {})
        self.calls = []

    def fetch_snapshot(self, company):
        self.calls.append(company.id)
        result = self.results.get(company.id)
        if isinstance(result, Exception):
            raise result
        return result

    def review_key(self, review):
        return review.id


class DummyReporter(ReportSink):
    name = "dummy"

    def __init__(self, error=None):
        self.error = error
        self.reports = []

    def report(self, changes):
        self.reports.append(list(changes))
        if self.error is not None:
            raise self.error


def _company(company_id, **kwargs):
    return Company(id=company_id, name=company_id.title(), place_id=f"pid-{company_id}", **kwargs)


def _snapshot(company_id, rating, total, review_ids=()):
    reviews = [Review(id=review_id, company_id=company_id) for review_id in review_ids]
    return ReviewSnapshot(company_id=company_id, company_name=company_id.title(), rating=rating, user_ratings_total=total, reviews=reviews)


def test_first_observation_saves_baseline_without_change():
    store = MemoryStore([_company("acme")])
    source = DummySource({"acme": _snapshot("acme", 4.0, 50, ["A"])})
    reporter = DummyReporter()

    result = monitor.ReviewMonitor(source, store, reporter).run_check()

    assert result.success is True
    assert result.changes == []
    assert result.message == "No changes detected in any company reviews."
    assert store.snapshots["acme"].user_ratings_total == 50
    assert reporter.reports == []


def test_repeated_identical_snapshot_is_idempotent():
    store = MemoryStore([_company("acme")], {"acme": _snapshot("acme", 4.0, 50, ["A"])})
    source = DummySource({"acme": _snapshot("acme", 4.0, 50, ["A"])})
    review_monitor = monitor.ReviewMonitor(source, store, DummyReporter())

    first = review_monitor.run_check()
    second = review_monitor.run_check()

    assert first.changes == [] and second.changes == []
    assert len(store.saved) == 2


def test_change_is_reported_and_baseline_replaced():
    store = MemoryStore([_company("acme")], {"acme": _snapshot("acme", 4.0, 50, ["A"])})
    source = DummySource({"acme": _snapshot("acme", 4.3, 51, ["A", "B"])})
    reporter = DummyReporter()

    result = monitor.ReviewMonitor(source, store, reporter).run_check()

    assert len(result.changes) == 1
    assert result.changes[0].change_type is ChangeType.BOTH
    assert [review.id for review in result.changes[0].new_reviews] == ["B"]
    assert result.message == "Found changes in 1 companies. Report sent via dummy."
    assert reporter.reports == [result.changes]
    assert store.snapshots["acme"].rating == 4.3


def test_failing_company_does_not_stop_the_others():
    companies = [_company("alpha"), _company("beta"), _company("gamma")]
    store = MemoryStore(
        companies,
        {
            "alpha": _snapshot("alpha", 4.0, 10),
            "beta": _snapshot("beta", 4.0, 10),
            "gamma": _snapshot("gamma", 4.0, 10),
        },
    )
    source = DummySource(
        {
            "alpha": _snapshot("alpha", 4.5, 10),
            "beta": RuntimeError("unexpected"),
            "gamma": _snapshot("gamma", 4.0, 12),
        }
    )

    result = monitor.ReviewMonitor(source, store, DummyReporter()).run_check()

    assert [change.company_id for change in result.changes] == ["alpha", "gamma"]
    assert store.snapshots["beta"].rating == 4.0
    assert source.calls == ["alpha", "beta", "gamma"]


def test_acquisition_failure_leaves_baseline_untouched():
    baseline = _snapshot("acme", 4.0, 50)
    store = MemoryStore([_company("acme")], {"acme": baseline})

    result = monitor.ReviewMonitor(DummySource({"acme": None}), store, DummyReporter()).run_check()

    assert result.changes == []
    assert store.saved == []
    assert store.snapshots["acme"] is baseline


def test_inactive_companies_are_skipped():
    store = MemoryStore([_company("acme", is_active=False)])
    source = DummySource({"acme": _snapshot("acme", 4.0, 50)})

    monitor.ReviewMonitor(source, store, DummyReporter()).run_check()

    assert source.calls == []


def test_unreadable_baseline_is_treated_as_first_observation():
    store = MemoryStore([_company("acme")])
    store.fail_reads.add("acme")
    source = DummySource({"acme": _snapshot("acme", 4.5, 60)})

    result = monitor.ReviewMonitor(source, store, DummyReporter()).run_check()

    assert result.changes == []
    assert store.snapshots["acme"].rating == 4.5


def test_save_failure_still_reports_change(caplog):
    store = MemoryStore([_company("acme")], {"acme": _snapshot("acme", 4.0, 50)})
    store.fail_writes = True
    source = DummySource({"acme": _snapshot("acme", 3.0, 50)})

    with caplog.at_level("ERROR"):
        result = monitor.ReviewMonitor(source, store, DummyReporter()).run_check()

    assert result.changes[0].change_type is ChangeType.RATING_CHANGED
    assert "Unable to save baseline" in " ".join(caplog.messages)


def test_report_failure_keeps_cycle_successful():
    store = MemoryStore([_company("acme")], {"acme": _snapshot("acme", 4.0, 50)})
    source = DummySource({"acme": _snapshot("acme", 3.0, 50)})

    result = monitor.ReviewMonitor(source, store, DummyReporter(error=ReportError("offline"))).run_check()

    assert result.success is True
    assert result.message == "Found changes in 1 companies. Report delivery failed."
    assert store.snapshots["acme"].rating == 3.0


def test_concurrent_check_is_rejected():
    store = MemoryStore([_company("acme")])
    review_monitor = monitor.ReviewMonitor(DummySource(), store, DummyReporter())
    entered = threading.Event()
    release = threading.Event()

    def blocking_fetch(company):
        entered.set()
        release.wait(5)
        return None

    review_monitor.source.fetch_snapshot = blocking_fetch
    worker = threading.Thread(target=review_monitor.run_check)
    worker.start()
    try:
        assert entered.wait(5)
        assert review_monitor.is_running is True
        with pytest.raises(monitor.CheckInProgressError):
            review_monitor.run_check()
        with pytest.raises(monitor.CheckInProgressError):
            review_monitor.fetch_current(_company("acme"))
    finally:
        release.set()
        worker.join(5)
    assert review_monitor.is_running is False


def test_add_company_generates_id_and_rejects_duplicates():
    store = MemoryStore([_company("acme")])

    company = monitor.add_company(store, "Beta Bakery", place_id=" pid ", google_maps_url="")

    assert company.id == "beta-bakery"
    assert company.place_id == "pid"
    assert company.google_maps_url is None
    assert [existing.id for existing in store.companies] == ["acme", "beta-bakery"]

    with pytest.raises(monitor.DuplicateCompanyError):
        monitor.add_company(store, "beta bakery")
    with pytest.raises(ValueError):
        monitor.add_company(store, "   ")


def test_status_summarises_store():
    store = MemoryStore(
        [_company("acme"), _company("beta", is_active=False)],
        {"acme": _snapshot("acme", 4.0, 50)},
    )

    status = monitor.ReviewMonitor(DummySource(), store, DummyReporter()).status()

    assert status["total_companies"] == 2
    assert status["active_companies"] == 1
    assert status["companies_with_data"] == 1
    assert status["last_data_update"] == store.snapshots["acme"].last_updated.isoformat()
    assert status["check_running"] is False


def test_find_company_and_fetch_current_do_not_save():
    store = MemoryStore([_company("acme")])
    source = DummySource({"acme": _snapshot("acme", 4.0, 50)})
    review_monitor = monitor.ReviewMonitor(source, store, DummyReporter())

    company = review_monitor.find_company("acme")
    snapshot = review_monitor.fetch_current(company)

    assert snapshot.rating == 4.0
    assert store.saved == []
    assert review_monitor.find_company("missing") is None


def test_malformed_baseline_file_is_replaced(tmp_path):
    store = JsonFileStore(tmp_path)
    (tmp_path / "reviews" / "acme.json").write_text(json.dumps({"rating": 4.0, "reviews": 7}), encoding="utf-8")
    source = DummySource({"acme": _snapshot("acme", 4.5, 60, ["A"])})

    changes = monitor.ChangeDetector(source, store).detect_changes([_company("acme")])

    assert changes == []
    replaced = store.get_snapshot("acme")
    assert replaced.rating == 4.5
    assert [review.id for review in replaced.reviews] == ["A"]
