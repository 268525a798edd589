# conflicts.py
#
# Conflict scanning for a candidate schedule change:
# - Other jobs sharing a technician on the same date
# - Approved leave of any assigned technician
# - Business-wide closed periods (apply to everyone)
# Works purely on in-memory snapshots; never touches the store.

import logging
from datetime import date
from typing import Iterable, List, Optional

from fieldsched.api.time_window import compute_window, overlaps
from fieldsched.errors import ValidationError
from fieldsched.models import (
    BusinessClosedPeriod,
    ClosedPeriodOverlap,
    Conflict,
    Job,
    JobOverlap,
    LeaveOverlap,
    TechnicianLeave,
)

logger = logging.getLogger(__name__)


def job_overlaps(job: Job, target_date: date, job_window, all_jobs: Iterable[Job]) -> List[JobOverlap]:
    """
    One JobOverlap per colliding job, however many technicians the pair shares.
    Other jobs keep their own stored time and duration.
    """
    technicians = set(job.assigned_technician_ids)
    if not technicians:
        return []

    found = []
    for other in all_jobs:
        if other.id == job.id or not other.is_active:
            continue
        if other.scheduled_date != target_date:
            continue
        shared = [t for t in other.assigned_technician_ids if t in technicians]
        if not shared:
            continue

        other_start, other_end = compute_window(
            other.scheduled_date, other.scheduled_time, other.expected_duration_hours
        )
        if overlaps(job_window[0], job_window[1], other_start, other_end):
            found.append(JobOverlap(other_job=other, shared_technician_ids=tuple(shared)))
    return found


def leave_overlaps(job: Job, job_window, all_leaves: Iterable[TechnicianLeave]) -> List[LeaveOverlap]:
    """
    One LeaveOverlap per leave record. Leave is compared on absolute
    timestamps, so multi-day leave needs no per-day handling.
    """
    technicians = set(job.assigned_technician_ids)
    found = []
    seen = set()
    for leave in all_leaves:
        if leave.id in seen or leave.technician_id not in technicians:
            continue
        if overlaps(job_window[0], job_window[1], leave.start_time, leave.end_time):
            seen.add(leave.id)
            found.append(LeaveOverlap(leave=leave))
    return found


def closed_period_overlaps(job_window, all_closed_periods: Iterable[BusinessClosedPeriod]) -> List[ClosedPeriodOverlap]:
    return [
        ClosedPeriodOverlap(period=period)
        for period in all_closed_periods
        if overlaps(job_window[0], job_window[1], period.start_time, period.end_time)
    ]


def scan(job: Job, target_date: Optional[date], target_time: Optional[str],
         all_jobs: Iterable[Job], all_leaves: Iterable[TechnicianLeave],
         all_closed_periods: Iterable[BusinessClosedPeriod]) -> List[Conflict]:
    """
    Find everything a move of `job` to (target_date, target_time) would collide with.
    Args:
        job (Job): the job being moved
        target_date (date): new date, required
        target_time (str): new "HH:MM" start; falls back to the job's stored time, then 09:00
        all_jobs, all_leaves, all_closed_periods: snapshots from the store
    Returns:
        list[Conflict]: unordered; empty means the move is clear
    Raises:
        ValidationError: no target date to scan against
    """
    if target_date is None:
        raise ValidationError(f"{job.label} needs a target date before it can be scanned")

    job_window = compute_window(
        target_date, target_time, job.expected_duration_hours, fallback_time=job.scheduled_time
    )

    jobs_found = job_overlaps(job, target_date, job_window, all_jobs)
    leave_found = leave_overlaps(job, job_window, all_leaves)
    closed_found = closed_period_overlaps(job_window, all_closed_periods)

    logger.debug(
        f"Scanned {job.label} at {job_window[0].isoformat()}: "
        f"{len(jobs_found)} job, {len(leave_found)} leave, {len(closed_found)} closed conflicts"
    )
    return [*jobs_found, *leave_found, *closed_found]
