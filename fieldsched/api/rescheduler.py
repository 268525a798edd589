# fieldsched/api/rescheduler.py
#
# Drives a manual reschedule from drop to saved change:
# 1. A drop or "reschedule" action picks a candidate date/time and scans it
# 2. No conflicts: plain old -> new summary, confirm only if something changes
# 3. Conflicts: each one listed, confirm needs an explicit "Proceed Anyway"
# 4. Confirm snaps the time to the hour and makes exactly one store update
# 5. Optional technician notification afterwards, best-effort
#
# States:
#   IDLE -> PENDING_CHANGE -> SCANNING -> PENDING_CONFIRM | PENDING_CONFIRM_WITH_CONFLICTS
#        -> APPLYING -> IDLE
#   cancel() from any pending state -> IDLE
#   failed save -> back to the pending state it came from (never IDLE)

import asyncio
import inspect
import logging
from dataclasses import replace
from datetime import date
from enum import Enum
from typing import Callable, Iterable, List, Optional

from config.settings import NOTIFY_TIMEOUT_SECONDS, PERSIST_TIMEOUT_SECONDS
from fieldsched.api import conflicts
from fieldsched.api.notifier import build_reschedule_message, notify_assigned_technicians
from fieldsched.api.time_window import parse_time_of_day, resolve_time_of_day, snap_to_hour
from fieldsched.errors import InvalidTransition, PersistenceError, ValidationError
from fieldsched.models import BusinessClosedPeriod, Conflict, Job, TechnicianLeave, parse_date

logger = logging.getLogger(__name__)


class RescheduleState(Enum):
    IDLE = "idle"
    PENDING_CHANGE = "pending_change"
    SCANNING = "scanning"
    PENDING_CONFIRM = "pending_confirm"
    PENDING_CONFIRM_WITH_CONFLICTS = "pending_confirm_with_conflicts"
    APPLYING = "applying"


PENDING_STATES = {
    RescheduleState.PENDING_CHANGE,
    RescheduleState.PENDING_CONFIRM,
    RescheduleState.PENDING_CONFIRM_WITH_CONFLICTS,
}
CONFIRMABLE_STATES = {
    RescheduleState.PENDING_CONFIRM,
    RescheduleState.PENDING_CONFIRM_WITH_CONFLICTS,
}


async def _invoke(func, *args):
    """
    Call a store method that may be sync or async. Sync methods run in a worker
    thread so a hung call can still be timed out.
    """
    if inspect.iscoroutinefunction(func):
        return await func(*args)
    result = await asyncio.to_thread(func, *args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _as_records(rows: Iterable, record_type):
    return [row if isinstance(row, record_type) else record_type.from_record(row) for row in rows or ()]


class RescheduleController:
    """
    One reschedule at a time over a snapshot of the schedule.

    `store` supplies list_jobs(), list_technician_leave(),
    list_business_closed_periods() and update_job_schedule(job_id, date, time);
    each may be a plain function or a coroutine function.
    `notifier` is an async callable (job_id, message); it gets `notify_timeout`
    seconds before the saved change is reported without it.
    """

    def __init__(self, store, notifier: Callable = None, persist_timeout: float = PERSIST_TIMEOUT_SECONDS,
                 notify_timeout: float = NOTIFY_TIMEOUT_SECONDS):
        self.store = store
        self.notifier = notifier or notify_assigned_technicians
        self.persist_timeout = persist_timeout
        self.notify_timeout = notify_timeout

        self.jobs = {}
        self.leaves: List[TechnicianLeave] = []
        self.closed_periods: List[BusinessClosedPeriod] = []

        self.state = RescheduleState.IDLE
        self.job: Optional[Job] = None
        self.target_date: Optional[date] = None
        self.target_time: Optional[str] = None
        self.conflicts: List[Conflict] = []
        self.last_error: Optional[str] = None
        self.notification_error: Optional[str] = None

    # -------------------
    # SNAPSHOTS
    # -------------------
    async def load(self):
        """Fetch jobs, leave and closed periods from the store."""
        if self.state is not RescheduleState.IDLE:
            raise InvalidTransition(f"Cannot reload snapshots while {self.state.value}")

        jobs = await _invoke(self.store.list_jobs)
        leaves = await _invoke(self.store.list_technician_leave)
        closed = await _invoke(self.store.list_business_closed_periods)
        self.set_snapshots(jobs, leaves, closed)

    def set_snapshots(self, jobs, leaves=(), closed_periods=()):
        """Replace the in-memory snapshots; accepts store rows or model instances."""
        self.jobs = {job.id: job for job in _as_records(jobs, Job)}
        self.leaves = _as_records(leaves, TechnicianLeave)
        self.closed_periods = _as_records(closed_periods, BusinessClosedPeriod)
        logger.info(
            f"Loaded {len(self.jobs)} jobs, {len(self.leaves)} leave records, "
            f"{len(self.closed_periods)} closed periods"
        )

    # -------------------
    # CANDIDATE CHANGE
    # -------------------
    def request_reschedule(self, job_id: str, target_date=None, target_time: Optional[str] = None) -> List[Conflict]:
        """
        Start a reschedule and scan it straight away.
        Args:
            job_id (str): job to move
            target_date (date | str): new date; None keeps the job's current date
            target_time (str): new "HH:MM"; None keeps the job's time, else 09:00
        Returns:
            list[Conflict]: what the move collides with (may be empty)
        Raises:
            InvalidTransition: another reschedule is already in progress
            ValidationError: unknown job, or no date to move it to
        """
        if self.state is not RescheduleState.IDLE:
            raise InvalidTransition(f"A reschedule is already {self.state.value}")

        job = self.jobs.get(str(job_id))
        if job is None:
            raise ValidationError(f"Job {job_id} is not in the loaded schedule")

        resolved_date = parse_date(target_date) or job.scheduled_date
        if resolved_date is None:
            raise ValidationError(f"{job.label} has no date to reschedule to")
        resolved_time = resolve_time_of_day(target_time, job.scheduled_time)

        self.job = job
        self.target_date = resolved_date
        self.target_time = resolved_time
        self.last_error = None
        self.notification_error = None
        self.state = RescheduleState.PENDING_CHANGE
        logger.info(f"{job.label}: candidate move to {resolved_date.isoformat()} {resolved_time}")

        return self._scan()

    def drop_job(self, job_id: str, target_date, target_time: Optional[str] = None) -> List[Conflict]:
        """
        Calendar drop. Dropping on a day cell passes no time, so the job keeps
        its current time of day; dropping on an hour slot passes that slot.
        """
        return self.request_reschedule(job_id, target_date, target_time)

    def rescan(self) -> List[Conflict]:
        """Re-run the scan for the pending change against the current snapshots."""
        if self.state not in CONFIRMABLE_STATES:
            raise InvalidTransition(f"Nothing to rescan while {self.state.value}")
        return self._scan()

    def _scan(self) -> List[Conflict]:
        self.state = RescheduleState.SCANNING
        try:
            found = conflicts.scan(
                self.job, self.target_date, self.target_time,
                self.jobs.values(), self.leaves, self.closed_periods,
            )
        except Exception:
            self._reset()
            raise

        self.conflicts = found
        if found:
            self.state = RescheduleState.PENDING_CONFIRM_WITH_CONFLICTS
            logger.warning(f"{self.job.label}: {len(found)} conflict(s) need acknowledgement")
        else:
            self.state = RescheduleState.PENDING_CONFIRM
        return found

    # -------------------
    # CONFIRMATION
    # -------------------
    @property
    def new_time(self) -> Optional[str]:
        """Time that will be saved: the candidate time snapped to the hour."""
        return snap_to_hour(self.target_time) if self.target_time else None

    @property
    def has_changes(self) -> bool:
        """
        The requested date/time must differ from the job's current values, and so
        must the snapped values that would be saved.
        """
        if self.job is None:
            return False
        current_minutes = parse_time_of_day(self.job.scheduled_time)
        if current_minutes is None:
            return True
        if self.target_date != self.job.scheduled_date:
            return True
        requested_minutes = parse_time_of_day(self.target_time)
        return (requested_minutes != current_minutes
                and parse_time_of_day(self.new_time) != current_minutes)

    @property
    def can_confirm(self) -> bool:
        return self.state in CONFIRMABLE_STATES and self.has_changes

    @property
    def requires_acknowledgement(self) -> bool:
        return self.state is RescheduleState.PENDING_CONFIRM_WITH_CONFLICTS

    @property
    def notify_available(self) -> bool:
        return self.job is not None and bool(self.job.assigned_technician_ids)

    async def confirm(self, notify: bool = False, acknowledge: bool = False) -> dict:
        """
        Save the pending change.
        Args:
            notify (bool): also notify the assigned technicians (best-effort)
            acknowledge (bool): the user chose "Proceed Anyway" on the conflict list
        Returns:
            dict: job_id, scheduled_date, scheduled_time, notified, notification_error
        Raises:
            InvalidTransition: nothing pending, or conflicts not acknowledged
            ValidationError: neither date nor time would change
            PersistenceError: store rejected the update or timed out; state returns to pending
        """
        if self.state not in CONFIRMABLE_STATES:
            raise InvalidTransition(f"Nothing to confirm while {self.state.value}")
        if not self.has_changes:
            raise ValidationError(f"{self.job.label} is already scheduled for that date and time")
        if self.requires_acknowledgement and not acknowledge:
            raise InvalidTransition("Conflicts must be acknowledged before proceeding")

        origin = self.state
        job = self.job
        new_date, new_time = self.target_date, self.new_time
        self.state = RescheduleState.APPLYING
        self.last_error = None

        try:
            saved = await asyncio.wait_for(
                _invoke(self.store.update_job_schedule, job.id, new_date.isoformat(), new_time),
                timeout=self.persist_timeout,
            )
            if saved is False:
                raise PersistenceError(f"Store refused the schedule update for {job.label}")
        except asyncio.TimeoutError:
            error = PersistenceError(f"Saving {job.label} timed out after {self.persist_timeout:g}s")
            self._fail(origin, error)
            raise error
        except PersistenceError as e:
            self._fail(origin, e)
            raise
        except Exception as e:
            error = PersistenceError(f"Saving {job.label} failed: {e}")
            self._fail(origin, error)
            raise error from e

        updated = replace(job, scheduled_date=new_date, scheduled_time=new_time)
        self.jobs[job.id] = updated
        logger.info(f"{job.label} moved to {new_date.isoformat()} {new_time}")
        self._reset()

        notified = False
        notification_error = None
        if notify and updated.assigned_technician_ids:
            try:
                await asyncio.wait_for(
                    self.notifier(job.id, build_reschedule_message(updated, new_date, new_time)),
                    timeout=self.notify_timeout,
                )
                notified = True
            except asyncio.TimeoutError:
                notification_error = f"Notification timed out after {self.notify_timeout:g}s"
                logger.warning(f"Technician notification timed out for {job.label}")
            except Exception as e:
                notification_error = str(e)
                logger.warning(f"Technician notification failed for {job.label}: {e}")
        elif notify:
            logger.info(f"{job.label} has no assigned technicians; skipping notification")
        self.notification_error = notification_error

        return {
            "job_id": job.id,
            "scheduled_date": new_date.isoformat(),
            "scheduled_time": new_time,
            "notified": notified,
            "notification_error": notification_error,
        }

    def cancel(self):
        """Drop the pending change without touching the store."""
        if self.state not in PENDING_STATES:
            raise InvalidTransition(f"Nothing to cancel while {self.state.value}")
        logger.info(f"{self.job.label}: reschedule cancelled")
        self._reset()

    def _fail(self, origin: RescheduleState, error: Exception):
        # conflicts from the first scan are kept as-is
        self.state = origin
        self.last_error = str(error)
        logger.error(f"{self.job.label}: {error}")

    def _reset(self):
        self.state = RescheduleState.IDLE
        self.job = None
        self.target_date = None
        self.target_time = None
        self.conflicts = []

    # -------------------
    # VIEW
    # -------------------
    def view(self) -> dict:
        """Everything a confirmation dialog needs to render the current state."""
        job = self.job
        return {
            "state": self.state.value,
            "job": job.to_dict() if job else None,
            "old_date": job.scheduled_date.isoformat() if job and job.scheduled_date else None,
            "old_time": job.scheduled_time if job else None,
            "new_date": self.target_date.isoformat() if self.target_date else None,
            "new_time": self.new_time,
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
            "can_confirm": self.can_confirm,
            "requires_acknowledgement": self.requires_acknowledgement,
            "notify_available": self.notify_available,
            "last_error": self.last_error,
            "notification_error": self.notification_error,
        }
