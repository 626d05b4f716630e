import json

import pytest

from review_tracker.core.config import ConfigError, Settings
from review_tracker.core.monitor import CheckResult
from review_tracker.jobs import run_check


class DummySource:
    name = "dummy"

    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class DummyMonitor:
    def __init__(self, result=None, error=None):
        self.source = DummySource()
        self.result = result
        self.error = error

    def run_check(self):
        if self.error is not None:
            raise self.error
        return self.result


def test_parser_add_command():
    args = run_check.build_parser().parse_args(["add", "--name", "Acme", "--place-id", "pid", "--inactive"])

    assert args.command == "add"
    assert args.name == "Acme"
    assert args.place_id == "pid"
    assert args.url is None
    assert args.inactive is True


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        run_check.build_parser().parse_args([])


def test_run_check_job_closes_source(monkeypatch):
    dummy = DummyMonitor(result=CheckResult(True, "No changes detected in any company reviews."))
    monkeypatch.setattr(run_check, "build_monitor", lambda settings: dummy)

    assert run_check.run_check_job(Settings()) == 0
    assert dummy.source.closed is True


def test_run_check_job_closes_source_on_error(monkeypatch):
    dummy = DummyMonitor(error=RuntimeError("boom"))
    monkeypatch.setattr(run_check, "build_monitor", lambda settings: dummy)

    with pytest.raises(RuntimeError):
        run_check.run_check_job(Settings())
    assert dummy.source.closed is True


def test_main_add_writes_company(monkeypatch, tmp_path):
    monkeypatch.setattr(run_check, "get_settings", lambda: Settings(data_dir=tmp_path))

    with pytest.raises(SystemExit) as exc_info:
        run_check.main(["add", "--name", "Beta Bakery", "--url", "https://maps.app/beta"])

    assert exc_info.value.code == 0
    companies = json.loads((tmp_path / "companies.json").read_text(encoding="utf-8"))
    beta = next(company for company in companies if company["id"] == "beta-bakery")
    assert beta["google_maps_url"] == "https://maps.app/beta"


def test_main_add_duplicate_exits_with_error(monkeypatch, tmp_path):
    monkeypatch.setattr(run_check, "get_settings", lambda: Settings(data_dir=tmp_path))

    with pytest.raises(SystemExit) as exc_info:
        run_check.main(["add", "--name", "ICA Maxi Kalmar"])

    assert exc_info.value.code == 1


def test_main_config_error_exits_with_2(monkeypatch):
    def broken():
        raise ConfigError("bad mode")

    monkeypatch.setattr(run_check, "get_settings", broken)

    with pytest.raises(SystemExit) as exc_info:
        run_check.main(["check"])

    assert exc_info.value.code == 2
