# fieldsched/models.py
#
# Records read from the schedule store and the conflict values produced by a scan.
# Store rows are plain dicts; from_record() turns them into typed, immutable snapshots.

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import ClassVar, Iterable, Optional, Tuple

from config.settings import DEFAULT_DURATION_HOURS
from fieldsched.errors import ValidationError
from fieldsched.timezone_utils import make_aware, parse_iso_with_tz


class JobStatus(Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value) -> "JobStatus":
        if isinstance(value, cls):
            return value
        if not value:
            return cls.SCHEDULED
        key = str(value).strip().lower().replace(" ", "_").replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            raise ValidationError(f"Unknown job status: {value!r}")


class LeaveType(Enum):
    UNAVAILABLE = "unavailable"
    VACATION = "vacation"
    SICK = "sick"
    PERSONAL = "personal"
    OTHER = "other"

    @classmethod
    def parse(cls, value) -> "LeaveType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "unavailable").strip().lower())
        except ValueError:
            return cls.OTHER


def unique_ids(values: Optional[Iterable]) -> Tuple[str, ...]:
    """Collapse duplicates while keeping first-seen order; drops blanks."""
    seen = []
    for value in values or ():
        if value and str(value) not in seen:
            seen.append(str(value))
    return tuple(seen)


def parse_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}")


def _parse_timestamp(value, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return make_aware(value)
    if not value:
        raise ValidationError(f"Missing {field_name}")
    try:
        return parse_iso_with_tz(str(value))
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: {value!r}")


def _parse_duration(value) -> float:
    if value is None or value == "":
        return DEFAULT_DURATION_HOURS
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid expected duration: {value!r}")


@dataclass(frozen=True)
class Job:
    id: str
    assigned_technician_ids: Tuple[str, ...] = ()
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = None
    expected_duration_hours: float = DEFAULT_DURATION_HOURS
    status: JobStatus = JobStatus.SCHEDULED
    deleted_at: Optional[datetime] = None
    job_number: Optional[str] = None
    customer_name: Optional[str] = None
    assigned_technician_names: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "assigned_technician_ids", unique_ids(self.assigned_technician_ids))
        if self.expected_duration_hours is None:
            object.__setattr__(self, "expected_duration_hours", DEFAULT_DURATION_HOURS)
        if self.expected_duration_hours <= 0:
            raise ValidationError(f"Job {self.id} has a non-positive duration")

    @property
    def is_active(self) -> bool:
        """Deleted and cancelled jobs never take part in conflict scans."""
        return self.deleted_at is None and self.status is not JobStatus.CANCELLED

    @property
    def label(self) -> str:
        return f"Job #{self.job_number or self.id}"

    @classmethod
    def from_record(cls, record: dict) -> "Job":
        """
        Build a Job from a store row.
        Accepts the store's column names (assigned_to, expected_duration, ...)
        as well as the attribute names used here.
        """
        technicians = record.get("assigned_technician_ids", record.get("assigned_to"))
        if isinstance(technicians, str):
            technicians = [technicians]
        names = record.get("assigned_technician_names", record.get("assigned_to_name")) or ()
        if isinstance(names, str):
            names = [names]
        duration = record.get("expected_duration_hours", record.get("expected_duration"))
        deleted_at = record.get("deleted_at")

        return cls(
            id=str(record["id"]),
            assigned_technician_ids=unique_ids(technicians),
            scheduled_date=parse_date(record.get("scheduled_date")),
            scheduled_time=record.get("scheduled_time") or None,
            expected_duration_hours=_parse_duration(duration),
            status=JobStatus.parse(record.get("status")),
            deleted_at=_parse_timestamp(deleted_at, "deleted_at") if deleted_at else None,
            job_number=str(record["job_number"]) if record.get("job_number") is not None else None,
            customer_name=record.get("customer_name"),
            assigned_technician_names=tuple(names),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_number": self.job_number,
            "customer_name": self.customer_name,
            "assigned_technician_ids": list(self.assigned_technician_ids),
            "assigned_technician_names": list(self.assigned_technician_names),
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "scheduled_time": self.scheduled_time,
            "expected_duration_hours": self.expected_duration_hours,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class TechnicianLeave:
    id: str
    technician_id: str
    start_time: datetime
    end_time: datetime
    leave_type: LeaveType = LeaveType.UNAVAILABLE
    technician_name: Optional[str] = None
    reason: Optional[str] = None

    def __post_init__(self):
        if not self.start_time < self.end_time:
            raise ValidationError(f"Leave {self.id} must start before it ends")

    @classmethod
    def from_record(cls, record: dict) -> "TechnicianLeave":
        return cls(
            id=str(record["id"]),
            technician_id=str(record.get("technician_id") or record.get("technician_email")),
            start_time=_parse_timestamp(record.get("start_time"), "start_time"),
            end_time=_parse_timestamp(record.get("end_time"), "end_time"),
            leave_type=LeaveType.parse(record.get("leave_type")),
            technician_name=record.get("technician_name"),
            reason=record.get("reason"),
        )


@dataclass(frozen=True)
class BusinessClosedPeriod:
    id: str
    name: str
    start_time: datetime
    end_time: datetime

    def __post_init__(self):
        if not self.start_time < self.end_time:
            raise ValidationError(f"Closed period {self.id} must start before it ends")

    @classmethod
    def from_record(cls, record: dict) -> "BusinessClosedPeriod":
        return cls(
            id=str(record["id"]),
            name=record.get("name") or "Closed",
            start_time=_parse_timestamp(record.get("start_time"), "start_time"),
            end_time=_parse_timestamp(record.get("end_time"), "end_time"),
        )


# -------------------
# CONFLICTS
# -------------------
@dataclass(frozen=True)
class Conflict:
    """An advisory finding; rendered to the user, never raised."""

    kind: ClassVar[str] = "conflict"

    @property
    def entity_id(self) -> str:
        raise NotImplementedError

    @property
    def title(self) -> str:
        raise NotImplementedError

    @property
    def reason(self) -> str:
        raise NotImplementedError

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "entity_id": self.entity_id,
            "title": self.title,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class JobOverlap(Conflict):
    other_job: Job
    shared_technician_ids: Tuple[str, ...] = field(default=())

    kind: ClassVar[str] = "job"

    @property
    def entity_id(self) -> str:
        return self.other_job.id

    @property
    def title(self) -> str:
        if self.other_job.customer_name:
            return f"{self.other_job.label} - {self.other_job.customer_name}"
        return self.other_job.label

    @property
    def reason(self) -> str:
        job = self.other_job
        who = ", ".join(job.assigned_technician_names) or ", ".join(self.shared_technician_ids)
        return (f"{who} already booked at {job.scheduled_time or 'no time'} "
                f"for {job.expected_duration_hours:g}h")


@dataclass(frozen=True)
class LeaveOverlap(Conflict):
    leave: TechnicianLeave

    kind: ClassVar[str] = "leave"

    @property
    def entity_id(self) -> str:
        return self.leave.id

    @property
    def title(self) -> str:
        return "Technician on Leave"

    @property
    def reason(self) -> str:
        leave = self.leave
        who = leave.technician_name or leave.technician_id
        return (f"{who} is unavailable ({leave.leave_type.value}) "
                f"{leave.start_time:%b %d %I:%M %p} - {leave.end_time:%b %d %I:%M %p}")


@dataclass(frozen=True)
class ClosedPeriodOverlap(Conflict):
    period: BusinessClosedPeriod

    kind: ClassVar[str] = "closed"

    @property
    def entity_id(self) -> str:
        return self.period.id

    @property
    def title(self) -> str:
        return "Business Closed"

    @property
    def reason(self) -> str:
        period = self.period
        return f"{period.name} ({period.start_time:%b %d} - {period.end_time:%b %d})"
