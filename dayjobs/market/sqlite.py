"""SQLite storage backend for the jobs marketplace.

Durable implementation of JobRepository:
- One short-lived connection per operation, closed on exit
- atomic() opens a BEGIN IMMEDIATE transaction on a per-thread connection;
  repository calls made inside it reuse that connection
- (job_id, worker_id) uniqueness and the application cascade are enforced
  by the schema
"""

import contextlib
import json
import logging
import sqlite3
import threading
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from dayjobs.errors import DuplicateError
from dayjobs.market.models import (
    ApplicationStatus,
    Job,
    JobApplication,
    JobStateTransition,
    JobStatus,
    WorkerProfile,
)
from dayjobs.market.storage import CONFLICT, NOT_FOUND, _status_value

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    poster_id TEXT NOT NULL,
    role TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    daily_rate TEXT NOT NULL,
    service_date TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    benefits TEXT NOT NULL DEFAULT '[]',
    city TEXT,
    neighborhood TEXT,
    company_name TEXT,
    required_gender TEXT,
    required_license TEXT,
    status TEXT NOT NULL DEFAULT 'open',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    filled_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_jobs_status_date ON jobs(status, service_date);
CREATE INDEX IF NOT EXISTS idx_jobs_poster ON jobs(poster_id);

CREATE TABLE IF NOT EXISTS job_applications (
    id TEXT PRIMARY KEY,
    job_id TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    worker_id TEXT NOT NULL,
    worker_name TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (job_id, worker_id)
);
CREATE INDEX IF NOT EXISTS idx_job_applications_worker ON job_applications(worker_id);

CREATE TABLE IF NOT EXISTS worker_profiles (
    worker_id TEXT PRIMARY KEY,
    name TEXT,
    gender TEXT,
    license_category TEXT,
    rating REAL,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS job_state_transitions (
    id TEXT PRIMARY KEY,
    job_id TEXT NOT NULL,
    from_status TEXT,
    to_status TEXT NOT NULL,
    actor_id TEXT NOT NULL,
    reason TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_job_state_transitions_job ON job_state_transitions(job_id);
"""


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _row_to_job(row: sqlite3.Row) -> Job:
    return Job(
        id=row["id"],
        poster_id=row["poster_id"],
        role=row["role"],
        description=row["description"] or "",
        daily_rate=Decimal(row["daily_rate"]),
        service_date=date.fromisoformat(row["service_date"]),
        start_time=row["start_time"],
        end_time=row["end_time"],
        benefits=json.loads(row["benefits"] or "[]"),
        city=row["city"],
        neighborhood=row["neighborhood"],
        company_name=row["company_name"],
        required_gender=row["required_gender"],
        required_license=row["required_license"],
        status=row["status"],
        created_at=_parse_dt(row["created_at"]),
        updated_at=_parse_dt(row["updated_at"]),
        filled_at=_parse_dt(row["filled_at"]),
    )


def _row_to_application(row: sqlite3.Row) -> JobApplication:
    return JobApplication(
        id=row["id"],
        job_id=row["job_id"],
        worker_id=row["worker_id"],
        worker_name=row["worker_name"],
        status=row["status"],
        created_at=_parse_dt(row["created_at"]),
        updated_at=_parse_dt(row["updated_at"]),
    )


def _row_to_profile(row: sqlite3.Row) -> WorkerProfile:
    return WorkerProfile(
        worker_id=row["worker_id"],
        name=row["name"],
        gender=row["gender"],
        license_category=row["license_category"],
        rating=row["rating"],
        updated_at=_parse_dt(row["updated_at"]),
    )


def _row_to_transition(row: sqlite3.Row) -> JobStateTransition:
    return JobStateTransition(
        id=row["id"],
        job_id=row["job_id"],
        from_status=row["from_status"],
        to_status=row["to_status"],
        actor_id=row["actor_id"],
        reason=row["reason"],
        created_at=_parse_dt(row["created_at"]),
    )


class SQLiteJobRepository:
    """SQLite-backed JobRepository."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._init_db()

    def _utc_now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _get_conn(self) -> sqlite3.Connection:
        """Open a configured connection. Callers are responsible for closing it."""
        conn = sqlite3.connect(self.db_path, timeout=5.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Yield the current transaction's connection, or a fresh one.

        A fresh connection is committed on success, rolled back on
        exception, and closed in all cases.
        """
        active = getattr(self._local, "conn", None)
        if active is not None:
            yield active
            return

        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextlib.contextmanager
    def atomic(self):
        if getattr(self._local, "conn", None) is not None:
            yield self
            return

        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error:
            conn.close()
            raise
        self._local.conn = conn
        try:
            yield self
            conn.commit()
        except Exception as e:
            logger.debug(f"Atomic block failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            self._local.conn = None
            conn.close()

    def _init_db(self):
        with contextlib.closing(self._get_conn()) as conn:
            conn.executescript(SCHEMA)
            conn.execute(f"PRAGMA user_version={SCHEMA_VERSION}")
            conn.commit()

    # === Jobs ===

    def save_job(self, job: Job) -> str:
        now = self._utc_now()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO jobs (
                    id, poster_id, role, description, daily_rate, service_date,
                    start_time, end_time, benefits, city, neighborhood, company_name,
                    required_gender, required_license, status, created_at, updated_at,
                    filled_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job.id,
                    job.poster_id,
                    job.role,
                    job.description,
                    str(job.daily_rate),
                    job.service_date.isoformat(),
                    job.start_time.isoformat(),
                    job.end_time.isoformat(),
                    json.dumps(job.benefits),
                    job.city,
                    job.neighborhood,
                    job.company_name,
                    job.required_gender,
                    job.required_license,
                    job.status,
                    _iso(job.created_at or now),
                    _iso(job.updated_at or now),
                    _iso(job.filled_at),
                ),
            )
        return job.id

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return _row_to_job(row) if row else None

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        poster_id: Optional[str] = None,
        service_date_before: Optional[date] = None,
    ) -> List[Job]:
        query = "SELECT * FROM jobs WHERE 1=1"
        params: list = []

        status_val = _status_value(status)
        if status_val is not None:
            query += " AND status = ?"
            params.append(status_val)
        if poster_id is not None:
            query += " AND poster_id = ?"
            params.append(poster_id)
        if service_date_before is not None:
            query += " AND service_date < ?"
            params.append(service_date_before.isoformat())

        query += " ORDER BY created_at DESC, rowid DESC"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_job(r) for r in rows]

    def update_job_status(
        self,
        job_id: str,
        expected_status: JobStatus,
        new_status: JobStatus,
    ) -> Tuple[Optional[Job], Optional[str]]:
        expected = _status_value(expected_status)
        new = _status_value(new_status)
        now = _iso(self._utc_now())
        filled_at = now if new == JobStatus.FILLED.value else None

        with self._connect() as conn:
            # UPDATE ... WHERE status = expected is the optimistic lock
            cursor = conn.execute(
                """
                UPDATE jobs SET status = ?, updated_at = ?, filled_at = COALESCE(?, filled_at)
                WHERE id = ? AND status = ?
                """,
                (new, now, filled_at, job_id, expected),
            )
            row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()

        if row is None:
            return None, NOT_FOUND
        if cursor.rowcount == 0:
            logger.warning(
                f"Race condition detected on job {job_id}: "
                f"expected status '{expected}', found '{row['status']}'"
            )
            return None, CONFLICT
        return _row_to_job(row), None

    def delete_job(self, job_id: str) -> bool:
        with self._connect() as conn:
            conn.execute("DELETE FROM job_applications WHERE job_id = ?", (job_id,))
            cursor = conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
        return cursor.rowcount > 0

    # === Applications ===

    def save_application(self, application: JobApplication) -> str:
        now = self._utc_now()
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO job_applications (
                        id, job_id, worker_id, worker_name, status, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        application.id,
                        application.job_id,
                        application.worker_id,
                        application.worker_name,
                        application.status,
                        _iso(application.created_at or now),
                        _iso(application.updated_at or now),
                    ),
                )
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e).upper() and "WORKER_ID" in str(e).upper():
                raise DuplicateError(application.job_id, application.worker_id) from e
            raise
        return application.id

    def get_application(self, application_id: str) -> Optional[JobApplication]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM job_applications WHERE id = ?", (application_id,)
            ).fetchone()
        return _row_to_application(row) if row else None

    def list_applications(
        self,
        job_id: Optional[str] = None,
        worker_id: Optional[str] = None,
        status: Optional[ApplicationStatus] = None,
    ) -> List[JobApplication]:
        query = "SELECT * FROM job_applications WHERE 1=1"
        params: list = []

        if job_id is not None:
            query += " AND job_id = ?"
            params.append(job_id)
        if worker_id is not None:
            query += " AND worker_id = ?"
            params.append(worker_id)
        status_val = _status_value(status)
        if status_val is not None:
            query += " AND status = ?"
            params.append(status_val)

        query += " ORDER BY created_at ASC, rowid ASC"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_application(r) for r in rows]

    def update_application_status(
        self,
        application_id: str,
        expected_status: ApplicationStatus,
        new_status: ApplicationStatus,
    ) -> Tuple[Optional[JobApplication], Optional[str]]:
        expected = _status_value(expected_status)
        new = _status_value(new_status)

        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE job_applications SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
                (new, _iso(self._utc_now()), application_id, expected),
            )
            row = conn.execute(
                "SELECT * FROM job_applications WHERE id = ?", (application_id,)
            ).fetchone()

        if row is None:
            return None, NOT_FOUND
        if cursor.rowcount == 0:
            logger.warning(
                f"Race condition detected on application {application_id}: "
                f"expected status '{expected}', found '{row['status']}'"
            )
            return None, CONFLICT
        return _row_to_application(row), None

    def count_applications(self, job_ids: Iterable[str]) -> Dict[str, int]:
        ids = list(job_ids)
        counts = {job_id: 0 for job_id in ids}
        if not ids:
            return counts
        placeholders = ", ".join("?" for _ in ids)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT job_id, COUNT(*) AS n FROM job_applications "
                f"WHERE job_id IN ({placeholders}) GROUP BY job_id",
                ids,
            ).fetchall()
        for row in rows:
            counts[row["job_id"]] = row["n"]
        return counts

    # === Profiles ===

    def get_profile(self, worker_id: str) -> Optional[WorkerProfile]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM worker_profiles WHERE worker_id = ?", (worker_id,)
            ).fetchone()
        return _row_to_profile(row) if row else None

    def save_profile(self, profile: WorkerProfile) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO worker_profiles (
                    worker_id, name, gender, license_category, rating, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    profile.worker_id,
                    profile.name,
                    profile.gender,
                    profile.license_category,
                    profile.rating,
                    _iso(profile.updated_at or self._utc_now()),
                ),
            )

    def update_rating(self, worker_id: str, rating: float) -> WorkerProfile:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO worker_profiles (worker_id, rating, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(worker_id) DO UPDATE SET
                    rating = excluded.rating,
                    updated_at = excluded.updated_at
                """,
                (worker_id, rating, _iso(self._utc_now())),
            )
            row = conn.execute(
                "SELECT * FROM worker_profiles WHERE worker_id = ?", (worker_id,)
            ).fetchone()
        return _row_to_profile(row)

    # === Transitions ===

    def save_transition(self, transition: JobStateTransition) -> str:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO job_state_transitions (
                    id, job_id, from_status, to_status, actor_id, reason, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    transition.id,
                    transition.job_id,
                    transition.from_status,
                    transition.to_status,
                    transition.actor_id,
                    transition.reason,
                    _iso(transition.created_at or self._utc_now()),
                ),
            )
        return transition.id

    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM job_state_transitions WHERE job_id = ? "
                "ORDER BY created_at ASC, rowid ASC",
                (job_id,),
            ).fetchall()
        return [_row_to_transition(r) for r in rows]
