"""SQLite job store: schema, seeding helpers, and the JobStore implementation."""

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from src.core.errors import JobStoreError
from src.core.schemas import ACTIVE_STATUS, JobRecord, SalaryRange
from src.core.store import JobPredicate, JobStore

logger = logging.getLogger(__name__)

_JOBS_TABLE = """
CREATE TABLE IF NOT EXISTS jobs (
    id                  TEXT    PRIMARY KEY,
    title               TEXT    NOT NULL,
    professional_role   TEXT    NOT NULL DEFAULT '',
    location            TEXT    NOT NULL DEFAULT '',
    description         TEXT    NOT NULL DEFAULT '',
    salary_min          INTEGER,
    salary_max          INTEGER,
    status              TEXT    NOT NULL DEFAULT 'ACTIVE',
    expires_at          TEXT,
    created_at          TEXT    NOT NULL,
    url_slug            TEXT    NOT NULL DEFAULT '',
    employer            TEXT    NOT NULL DEFAULT ''
);
"""

_JOBS_INDEX = "CREATE INDEX IF NOT EXISTS idx_jobs_status_created ON jobs (status, created_at)"

# Predicate fields map onto these columns only.
_COLUMNS = {
    "title": "title",
    "professional_role": "professional_role",
    "location": "location",
}


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_JOBS_TABLE)
    conn.execute(_JOBS_INDEX)
    conn.commit()
    return conn


def upsert_job(conn: sqlite3.Connection, job: JobRecord) -> None:
    """Insert a job, replacing any existing row with the same id."""
    salary = job.salary or SalaryRange()
    conn.execute(
        """
        INSERT INTO jobs
            (id, title, professional_role, location, description, salary_min,
             salary_max, status, expires_at, created_at, url_slug, employer)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            title = excluded.title,
            professional_role = excluded.professional_role,
            location = excluded.location,
            description = excluded.description,
            salary_min = excluded.salary_min,
            salary_max = excluded.salary_max,
            status = excluded.status,
            expires_at = excluded.expires_at,
            created_at = excluded.created_at,
            url_slug = excluded.url_slug,
            employer = excluded.employer
        """,
        (
            job.id,
            job.title,
            job.professional_role,
            job.location,
            job.description,
            salary.min,
            salary.max,
            job.status,
            _to_text(job.expires_at) if job.expires_at else None,
            _to_text(job.created_at),
            job.url_slug,
            job.employer,
        ),
    )
    conn.commit()


def load_jobs_file(path: str | Path) -> list[JobRecord]:
    """Read a YAML list of job records (camelCase or snake_case keys)."""
    path = Path(path)
    if not path.exists():
        msg = f"Jobs file not found: {path}"
        raise FileNotFoundError(msg)
    raw: Any = yaml.safe_load(path.read_text()) or []
    if not isinstance(raw, list):
        msg = f"Jobs file must contain a list of jobs: {path}"
        raise ValueError(msg)
    return [JobRecord.model_validate(item) for item in raw]


def _to_text(value: datetime) -> str:
    """UTC ISO text of fixed width, so SQL string comparison orders by time."""
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_job(row: sqlite3.Row) -> JobRecord:
    salary = None
    if row["salary_min"] is not None or row["salary_max"] is not None:
        salary = SalaryRange(min=row["salary_min"], max=row["salary_max"])
    return JobRecord(
        id=row["id"],
        title=row["title"],
        professional_role=row["professional_role"],
        location=row["location"],
        description=row["description"],
        salary=salary,
        status=row["status"],
        expires_at=datetime.fromisoformat(row["expires_at"]) if row["expires_at"] else None,
        created_at=datetime.fromisoformat(row["created_at"]),
        url_slug=row["url_slug"],
        employer=row["employer"],
    )


class SQLiteJobStore(JobStore):
    """JobStore backed by the ``jobs`` table.

    Usage::

        store = SQLiteJobStore(init_db("data/jobs.db"))
        jobs = store.find_active_jobs(predicate, limit=50)
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def find_active_jobs(self, predicate: JobPredicate, limit: int) -> list[JobRecord]:
        sql = (
            "SELECT * FROM jobs WHERE status = ? "
            "AND (expires_at IS NULL OR expires_at >= ?)"
        )
        params: list[Any] = [ACTIVE_STATUS, _to_text(datetime.now(timezone.utc))]

        if not predicate.is_empty:
            clauses = []
            for condition in predicate.conditions:
                column = _COLUMNS[condition.field]
                clauses.append(f"LOWER({column}) LIKE ? ESCAPE '\\'")
                params.append(f"%{_escape_like(condition.contains)}%")
            sql += " AND (" + " OR ".join(clauses) + ")"

        sql += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)

        try:
            rows = self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            msg = f"Job store query failed: {e}"
            raise JobStoreError(msg) from e

        logger.debug("Job store returned %d rows (%d conditions)", len(rows), len(predicate.conditions))
        return [_row_to_job(row) for row in rows]
