# testing/test_schedule_db.py
"""
Tests for the sqlite schedule store and the record adapters built on its rows.
"""

import os
import pytest
from datetime import date

# Set required environment variables before importing
os.environ.setdefault("TEST_MODE", "True")
os.environ.setdefault("DB_PATH", "test_fieldsched.db")

from fieldsched.db import (
    add_closed_period,
    add_job,
    add_leave,
    clear_all,
    get_job,
    init_db,
    list_business_closed_periods,
    list_jobs,
    list_technician_leave,
    update_job_schedule,
)
from fieldsched.errors import PersistenceError, ValidationError
from fieldsched.models import BusinessClosedPeriod, Job, JobStatus, LeaveType, TechnicianLeave


@pytest.fixture(autouse=True)
def clean_database():
    """Clean database before each test to ensure isolation."""
    init_db()
    clear_all()
    yield
    clear_all()


def test_add_and_list_job_round_trips_technicians():
    add_job("J1", ["tom@example.com", "uma@example.com", "tom@example.com"], "2024-03-04", "09:00", 2.0,
            job_number="1001", customer_name="Smith", assigned_to_name=["Tom", "Uma"])

    rows = list_jobs()
    assert len(rows) == 1
    job = Job.from_record(rows[0])
    assert job.assigned_technician_ids == ("tom@example.com", "uma@example.com")
    assert job.scheduled_date == date(2024, 3, 4)
    assert job.expected_duration_hours == 2.0
    assert job.status is JobStatus.SCHEDULED
    assert job.label == "Job #1001"


def test_missing_duration_defaults_to_one_hour():
    add_job("J1", ["tom@example.com"], "2024-03-04", "09:00")
    job = Job.from_record(get_job("J1"))
    assert job.expected_duration_hours == 1.0


def test_update_job_schedule_changes_one_row():
    add_job("J1", ["tom@example.com"], "2024-03-04", "09:00")
    add_job("J2", ["tom@example.com"], "2024-03-04", "11:00")

    assert update_job_schedule("J1", "2024-03-06", "14:00") is True

    assert get_job("J1")["scheduled_date"] == "2024-03-06"
    assert get_job("J1")["scheduled_time"] == "14:00"
    assert get_job("J2")["scheduled_date"] == "2024-03-04"


def test_update_unknown_job_raises():
    with pytest.raises(PersistenceError):
        update_job_schedule("NOPE", "2024-03-06", "14:00")


def test_update_deleted_job_raises():
    add_job("J1", ["tom@example.com"], "2024-03-04", "09:00", deleted_at="2024-03-01T10:00:00")
    with pytest.raises(PersistenceError):
        update_job_schedule("J1", "2024-03-06", "14:00")


def test_leave_rows_parse_into_records():
    add_leave("tom@example.com", "2024-03-01T00:00:00", "2024-03-03T00:00:00", "sick",
              technician_name="Tom", leave_id="L1")

    leaves = [TechnicianLeave.from_record(row) for row in list_technician_leave()]
    assert len(leaves) == 1
    assert leaves[0].technician_id == "tom@example.com"
    assert leaves[0].leave_type is LeaveType.SICK
    assert leaves[0].start_time.tzinfo is not None


def test_closed_period_rows_parse_into_records():
    add_closed_period("Christmas Day", "2024-12-25T00:00:00", "2024-12-26T00:00:00", period_id="X1")

    periods = [BusinessClosedPeriod.from_record(row) for row in list_business_closed_periods()]
    assert [p.name for p in periods] == ["Christmas Day"]


def test_inverted_leave_is_rejected():
    add_leave("tom@example.com", "2024-03-03T00:00:00", "2024-03-01T00:00:00", leave_id="L1")
    with pytest.raises(ValidationError):
        TechnicianLeave.from_record(list_technician_leave()[0])


def test_status_parsing():
    assert JobStatus.parse("Cancelled") is JobStatus.CANCELLED
    assert JobStatus.parse("In Progress") is JobStatus.IN_PROGRESS
    assert JobStatus.parse(None) is JobStatus.SCHEDULED
    with pytest.raises(ValidationError):
        JobStatus.parse("exploded")


def test_unknown_leave_type_becomes_other():
    assert LeaveType.parse("jury duty") is LeaveType.OTHER
    assert LeaveType.parse(None) is LeaveType.UNAVAILABLE


def test_non_positive_duration_is_rejected():
    with pytest.raises(ValidationError):
        Job(id="J1", expected_duration_hours=0)


def test_malformed_duration_is_a_validation_error():
    add_job("J1", ["tom@example.com"], "2024-03-04", "09:00", "a couple of hours")
    with pytest.raises(ValidationError, match="duration"):
        Job.from_record(get_job("J1"))
