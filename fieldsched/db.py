import json
import sqlite3
import uuid
from datetime import datetime

from config.settings import DB_PATH
from fieldsched.errors import PersistenceError


def _connect():
    return sqlite3.connect(DB_PATH)


def init_db():
    """
    Initialize the database and ensure the schedule tables exist.
    Tables:
      - jobs: one row per job; assigned_to / assigned_to_name hold JSON lists,
        scheduled_date is YYYY-MM-DD, scheduled_time is HH:MM
      - technician_leave: absolute ISO start/end timestamps per technician
      - business_closed_periods: business-wide ISO start/end timestamps
    """
    with _connect() as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS jobs (
                id TEXT PRIMARY KEY,
                job_number TEXT,
                customer_name TEXT,
                assigned_to TEXT NOT NULL DEFAULT '[]',
                assigned_to_name TEXT NOT NULL DEFAULT '[]',
                scheduled_date TEXT,
                scheduled_time TEXT,
                expected_duration REAL,
                status TEXT NOT NULL DEFAULT 'scheduled',
                deleted_at TEXT,
                updated_at TEXT
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS technician_leave (
                id TEXT PRIMARY KEY,
                technician_email TEXT NOT NULL,
                technician_name TEXT,
                start_time TEXT NOT NULL,
                end_time TEXT NOT NULL,
                reason TEXT,
                leave_type TEXT NOT NULL DEFAULT 'unavailable'
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS business_closed_periods (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                start_time TEXT NOT NULL,
                end_time TEXT NOT NULL
            )
        """)


# -------------------
# JOBS
# -------------------
def add_job(job_id: str = None, assigned_to=None, scheduled_date: str = None, scheduled_time: str = None,
            expected_duration: float = None, status: str = "scheduled", job_number: str = None,
            customer_name: str = None, assigned_to_name=None, deleted_at: str = None) -> str:
    """
    Insert a job row. Returns the job id (generated when not given).
    """
    job_id = job_id or uuid.uuid4().hex
    with _connect() as conn:
        conn.execute(
            """INSERT INTO jobs (id, job_number, customer_name, assigned_to, assigned_to_name,
                                 scheduled_date, scheduled_time, expected_duration, status, deleted_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (job_id, job_number, customer_name, json.dumps(list(assigned_to or [])),
             json.dumps(list(assigned_to_name or [])), scheduled_date, scheduled_time,
             expected_duration, status, deleted_at),
        )
        conn.commit()
    return job_id


def list_jobs():
    """
    Fetch every job row, deleted and cancelled ones included.
    Returns: list of dicts keyed by column name
    """
    with _connect() as conn:
        conn.row_factory = sqlite3.Row
        cursor = conn.execute("""
            SELECT id, job_number, customer_name, assigned_to, assigned_to_name, scheduled_date,
                   scheduled_time, expected_duration, status, deleted_at
            FROM jobs
        """)
        rows = []
        for row in cursor.fetchall():
            record = dict(row)
            record["assigned_to"] = json.loads(record["assigned_to"] or "[]")
            record["assigned_to_name"] = json.loads(record["assigned_to_name"] or "[]")
            rows.append(record)
        return rows


def get_job(job_id: str):
    return next((job for job in list_jobs() if job["id"] == job_id), None)


def update_job_schedule(job_id: str, new_date: str, new_time: str) -> bool:
    """
    Set scheduled_date / scheduled_time on one job in a single transaction.
    Raises PersistenceError if the job does not exist or the write fails.
    """
    try:
        with _connect() as conn:
            cursor = conn.execute(
                """UPDATE jobs SET scheduled_date = ?, scheduled_time = ?, updated_at = ?
                   WHERE id = ? AND deleted_at IS NULL""",
                (str(new_date), new_time, datetime.now().isoformat(), job_id),
            )
            conn.commit()
    except sqlite3.Error as e:
        raise PersistenceError(f"Could not update schedule for job {job_id}: {e}") from e

    if cursor.rowcount != 1:
        raise PersistenceError(f"Job {job_id} not found")
    return True


# -------------------
# LEAVE / CLOSED PERIODS
# -------------------
def add_leave(technician_email: str, start_time: str, end_time: str, leave_type: str = "unavailable",
              technician_name: str = None, reason: str = None, leave_id: str = None) -> str:
    leave_id = leave_id or uuid.uuid4().hex
    with _connect() as conn:
        conn.execute(
            """INSERT INTO technician_leave (id, technician_email, technician_name, start_time, end_time,
                                             reason, leave_type)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (leave_id, technician_email, technician_name, start_time, end_time, reason, leave_type),
        )
        conn.commit()
    return leave_id


def list_technician_leave():
    with _connect() as conn:
        conn.row_factory = sqlite3.Row
        cursor = conn.execute("""
            SELECT id, technician_email, technician_name, start_time, end_time, reason, leave_type
            FROM technician_leave
            ORDER BY start_time DESC
        """)
        return [dict(row) for row in cursor.fetchall()]


def add_closed_period(name: str, start_time: str, end_time: str, period_id: str = None) -> str:
    period_id = period_id or uuid.uuid4().hex
    with _connect() as conn:
        conn.execute(
            "INSERT INTO business_closed_periods (id, name, start_time, end_time) VALUES (?, ?, ?, ?)",
            (period_id, name, start_time, end_time),
        )
        conn.commit()
    return period_id


def list_business_closed_periods():
    with _connect() as conn:
        conn.row_factory = sqlite3.Row
        cursor = conn.execute(
            "SELECT id, name, start_time, end_time FROM business_closed_periods ORDER BY start_time DESC"
        )
        return [dict(row) for row in cursor.fetchall()]


def clear_all():
    """
    Remove every job, leave and closed period (testing only).
    """
    with _connect() as conn:
        conn.execute("DELETE FROM jobs")
        conn.execute("DELETE FROM technician_leave")
        conn.execute("DELETE FROM business_closed_periods")
        conn.commit()
