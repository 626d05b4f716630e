"""Postgres-backed company registry and snapshot store."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import extras, pool

from review_tracker.core.models import Company, ReviewSnapshot
from review_tracker.core.storage import ReviewStore, StorageError, snapshot_from_payload

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None


def init_pool(database_url: str, minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        if not database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


def close_pool() -> None:
    global _connection_pool
    if _connection_pool is not None:
        _connection_pool.closeall()
        _connection_pool = None


@contextmanager
def get_connection(database_url: str):
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool(database_url)
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS companies (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    place_id TEXT,
    google_maps_url TEXT,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    last_updated TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE TABLE IF NOT EXISTS review_snapshots (
    company_id TEXT PRIMARY KEY,
    payload JSONB NOT NULL,
    observed_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_UPSERT_COMPANY = """
INSERT INTO companies (
    id,
    name,
    place_id,
    google_maps_url,
    is_active,
    last_updated
) VALUES (
    %(id)s,
    %(name)s,
    %(place_id)s,
    %(google_maps_url)s,
    %(is_active)s,
    %(last_updated)s
)
ON CONFLICT (id) DO UPDATE SET
    name = EXCLUDED.name,
    place_id = EXCLUDED.place_id,
    google_maps_url = EXCLUDED.google_maps_url,
    is_active = EXCLUDED.is_active,
    last_updated = EXCLUDED.last_updated;
"""

_UPSERT_SNAPSHOT = """
INSERT INTO review_snapshots (
    company_id,
    payload,
    observed_at,
    updated_at
) VALUES (
    %(company_id)s,
    %(payload)s,
    %(observed_at)s,
    NOW()
)
ON CONFLICT (company_id) DO UPDATE SET
    payload = EXCLUDED.payload,
    observed_at = EXCLUDED.observed_at,
    updated_at = NOW();
"""

_SELECT_COMPANIES = "SELECT id, name, place_id, google_maps_url, is_active, last_updated FROM companies ORDER BY id;"
_SELECT_SNAPSHOT = "SELECT payload FROM review_snapshots WHERE company_id = %(company_id)s;"
_SELECT_SNAPSHOTS = "SELECT payload FROM review_snapshots ORDER BY company_id;"


def _company_params(company: Company) -> Dict[str, Any]:
    return {
        "id": company.id,
        "name": company.name,
        "place_id": company.place_id,
        "google_maps_url": company.google_maps_url,
        "is_active": company.is_active,
        "last_updated": company.last_updated,
    }


def _snapshot_params(snapshot: ReviewSnapshot) -> Dict[str, Any]:
    return {
        "company_id": snapshot.company_id,
        "payload": extras.Json(snapshot.to_dict()),
        "observed_at": snapshot.last_updated,
    }


class PostgresStore(ReviewStore):
    """Same contract as the JSON store, one row per company and per baseline."""

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("database_url is required")
        self.database_url = database_url

    def _execute(self, sql: str, params: Optional[Dict[str, Any]] = None, *, fetch: bool = False) -> List[Any]:
        try:
            with get_connection(self.database_url) as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    rows = cur.fetchall() if fetch else []
                conn.commit()
                return rows
        except psycopg2.Error as exc:
            raise StorageError(f"Database operation failed: {exc}") from exc

    def ensure_schema(self) -> None:
        self._execute(_SCHEMA)
        logger.info("Database schema ensured")

    def get_companies(self) -> List[Company]:
        rows = self._execute(_SELECT_COMPANIES, fetch=True)
        return [
            Company.from_dict(
                {
                    "id": row[0],
                    "name": row[1],
                    "place_id": row[2],
                    "google_maps_url": row[3],
                    "is_active": row[4],
                    "last_updated": row[5],
                }
            )
            for row in rows
        ]

    def save_companies(self, companies: List[Company]) -> None:
        for company in companies:
            self._execute(_UPSERT_COMPANY, _company_params(company))
        logger.info("Upserted %d companies", len(companies))

    def get_snapshot(self, company_id: str) -> Optional[ReviewSnapshot]:
        rows = self._execute(_SELECT_SNAPSHOT, {"company_id": company_id}, fetch=True)
        if not rows:
            return None
        return snapshot_from_payload(rows[0][0], f"review_snapshots row {company_id}")

    def save_snapshot(self, snapshot: ReviewSnapshot) -> None:
        self._execute(_UPSERT_SNAPSHOT, _snapshot_params(snapshot))
        logger.debug("Upserted snapshot for %s", snapshot.company_id)

    def get_all_snapshots(self) -> List[ReviewSnapshot]:
        rows = self._execute(_SELECT_SNAPSHOTS, fetch=True)
        snapshots: List[ReviewSnapshot] = []
        for row in rows:
            try:
                snapshots.append(snapshot_from_payload(row[0], "review_snapshots row"))
            except StorageError as exc:
                logger.warning("Skipping unreadable snapshot: %s", exc)
        return snapshots
