"""Company registry and baseline snapshot storage."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional

from review_tracker.core.models import Company, ReviewSnapshot

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when a store cannot read or write its records."""


class ReviewStore(ABC):
    """Registry of monitored companies plus the last known snapshot of each."""

    @abstractmethod
    def get_companies(self) -> List[Company]:
        raise NotImplementedError

    @abstractmethod
    def save_companies(self, companies: List[Company]) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_snapshot(self, company_id: str) -> Optional[ReviewSnapshot]:
        raise NotImplementedError

    @abstractmethod
    def save_snapshot(self, snapshot: ReviewSnapshot) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_all_snapshots(self) -> List[ReviewSnapshot]:
        raise NotImplementedError


def snapshot_from_payload(payload: Any, origin: str) -> ReviewSnapshot:
    """Decode a stored snapshot; malformed records raise StorageError."""
    if not isinstance(payload, dict):
        raise StorageError(f"{origin} must contain a JSON object")
    try:
        return ReviewSnapshot.from_dict(payload)
    except (TypeError, ValueError, AttributeError) as exc:
        raise StorageError(f"Malformed snapshot in {origin}: {exc}") from exc


def default_companies() -> List[Company]:
    """Placeholder registry written on first start; locators must be filled in."""
    return [
        Company(id="ica-maxi-kalmar", name="ICA Maxi Kalmar", place_id=""),
        Company(id="sample-restaurant", name="Sample Restaurant", place_id=""),
    ]


class JsonFileStore(ReviewStore):
    """Stores ``companies.json`` and one ``reviews/<company_id>.json`` per company."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)
        self.companies_file = self.data_dir / "companies.json"
        self.reviews_dir = self.data_dir / "reviews"
        self.reviews_dir.mkdir(parents=True, exist_ok=True)

    def _snapshot_path(self, company_id: str) -> Path:
        return self.reviews_dir / f"{company_id}.json"

    @staticmethod
    def _write_json(path: Path, payload) -> None:
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
            tmp_path.replace(path)
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc

    @staticmethod
    def _read_json(path: Path):
        try:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    def get_companies(self) -> List[Company]:
        if not self.companies_file.exists():
            logger.info("Companies file not found, creating default at %s", self.companies_file)
            companies = default_companies()
            self.save_companies(companies)
            return companies

        payload = self._read_json(self.companies_file)
        if not isinstance(payload, list):
            raise StorageError(f"{self.companies_file} must contain a JSON list")
        companies = [Company.from_dict(raw) for raw in payload if isinstance(raw, dict)]
        logger.info("Loaded %d companies from file", len(companies))
        return companies

    def save_companies(self, companies: List[Company]) -> None:
        self._write_json(self.companies_file, [company.to_dict() for company in companies])
        logger.info("Saved %d companies to file", len(companies))

    def get_snapshot(self, company_id: str) -> Optional[ReviewSnapshot]:
        path = self._snapshot_path(company_id)
        if not path.exists():
            logger.debug("No historical data found for company %s", company_id)
            return None
        return snapshot_from_payload(self._read_json(path), str(path))

    def save_snapshot(self, snapshot: ReviewSnapshot) -> None:
        self._write_json(self._snapshot_path(snapshot.company_id), snapshot.to_dict())
        logger.debug("Saved historical data for company %s", snapshot.company_id)

    def get_all_snapshots(self) -> List[ReviewSnapshot]:
        snapshots: List[ReviewSnapshot] = []
        for path in sorted(self.reviews_dir.glob("*.json")):
            try:
                snapshots.append(snapshot_from_payload(self._read_json(path), str(path)))
            except StorageError as exc:
                logger.warning("Skipping unreadable snapshot %s: %s", path.name, exc)
        logger.info("Loaded historical data for %d companies", len(snapshots))
        return snapshots


def create_store(settings) -> ReviewStore:
    """Postgres when ``DATABASE_URL`` is configured, JSON files otherwise."""
    if settings.database_url:
        from review_tracker.core.db import PostgresStore

        store = PostgresStore(settings.database_url)
        store.ensure_schema()
        return store
    return JsonFileStore(settings.data_dir)
