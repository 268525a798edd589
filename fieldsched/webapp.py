import secrets
import logging
import time
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from config.settings import MAX_SESSIONS, SESSION_TTL_SECONDS
from fieldsched import db
from fieldsched.api import conflicts
from fieldsched.api.rescheduler import RescheduleController
from fieldsched.api.time_window import resolve_time_of_day
from fieldsched.errors import InvalidTransition, PersistenceError, SchedulingError, ValidationError
from fieldsched.logging_config import setup_logging
from fieldsched.models import BusinessClosedPeriod, Job, TechnicianLeave, parse_date

setup_logging()
logger = logging.getLogger(__name__)

db.init_db()

# -------------------
# CONFIG / GLOBALS
# -------------------
app = FastAPI(title="fieldsched")
SESSIONS = {}  # session_id -> RescheduleController, one pending reschedule each
SESSION_OPENED = {}  # session_id -> time.monotonic() when opened


async def _read_json(request: Request) -> dict:
    try:
        data = await request.json()
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Invalid JSON payload: {e}")
    if not data or not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Empty or invalid payload")
    return data


def _drop_session(session_id: str):
    SESSIONS.pop(session_id, None)
    SESSION_OPENED.pop(session_id, None)


def _prune_sessions():
    """
    Evict sessions older than SESSION_TTL_SECONDS, then the oldest ones until
    there is room for one more under MAX_SESSIONS.
    """
    cutoff = time.monotonic() - SESSION_TTL_SECONDS
    expired = [sid for sid, opened in SESSION_OPENED.items() if opened < cutoff]
    for sid in expired:
        _drop_session(sid)

    overflow = len(SESSIONS) - MAX_SESSIONS + 1
    if overflow > 0:
        oldest = sorted(SESSION_OPENED, key=SESSION_OPENED.get)[:overflow]
        for sid in oldest:
            _drop_session(sid)
        expired += oldest

    if expired:
        logger.info(f"Evicted {len(expired)} stale reschedule session(s)")


def _get_session(session_id: str) -> RescheduleController:
    controller = SESSIONS.get(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail=f"Unknown reschedule session {session_id}")
    return controller


def _to_http(error: SchedulingError, controller: RescheduleController = None) -> HTTPException:
    if isinstance(error, ValidationError):
        status = 400
    elif isinstance(error, InvalidTransition):
        status = 409
    elif isinstance(error, PersistenceError):
        status = 502
    else:
        status = 500
    detail = {"error": str(error)}
    if controller is not None:
        detail["view"] = controller.view()
    return HTTPException(status_code=status, detail=detail)


# -------------------
# CONFLICT PREVIEW
# -------------------
@app.get("/jobs/{job_id}/conflicts")
async def preview_conflicts(job_id: str, date: str = None, time: str = None):
    """
    Scan a candidate move without starting a reschedule.
    Query params: date (YYYY-MM-DD, defaults to the job's date), time (HH:MM)
    """
    try:
        jobs = [Job.from_record(row) for row in db.list_jobs()]
        job = next((j for j in jobs if j.id == job_id), None)
        if job is None:
            raise HTTPException(status_code=404, detail=f"Job {job_id} not found")

        target_date = parse_date(date) or job.scheduled_date
        found = conflicts.scan(
            job, target_date, time, jobs,
            [TechnicianLeave.from_record(row) for row in db.list_technician_leave()],
            [BusinessClosedPeriod.from_record(row) for row in db.list_business_closed_periods()],
        )
    except SchedulingError as e:
        raise _to_http(e)

    return JSONResponse({
        "job_id": job_id,
        "target_date": target_date.isoformat(),
        "target_time": resolve_time_of_day(time, job.scheduled_time),
        "conflict_count": len(found),
        "conflicts": [conflict.to_dict() for conflict in found],
    })


# -------------------
# RESCHEDULE SESSIONS
# -------------------
@app.post("/reschedule")
async def start_reschedule(request: Request):
    """
    Open a reschedule session and scan the candidate move.
    Payload example:
    {
        "job_id": "J100",
        "target_date": "2024-03-02",
        "target_time": "10:00",
        "via_drop": true
    }
    """
    data = await _read_json(request)
    job_id = data.get("job_id")
    if not job_id:
        raise HTTPException(status_code=400, detail="Missing job_id")

    controller = RescheduleController(db)
    try:
        await controller.load()
        if str(job_id) not in controller.jobs:
            raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
        if data.get("via_drop"):
            controller.drop_job(job_id, data.get("target_date"), data.get("target_time"))
        else:
            controller.request_reschedule(job_id, data.get("target_date"), data.get("target_time"))
    except SchedulingError as e:
        raise _to_http(e)

    _prune_sessions()
    session_id = secrets.token_urlsafe(16)
    SESSIONS[session_id] = controller
    SESSION_OPENED[session_id] = time.monotonic()
    logger.info(f"Opened reschedule session {session_id} for job {job_id} ({controller.state.value})")
    return JSONResponse({"session_id": session_id, **controller.view()})


@app.get("/reschedule/{session_id}")
async def get_reschedule(session_id: str):
    return JSONResponse({"session_id": session_id, **_get_session(session_id).view()})


@app.post("/reschedule/{session_id}/confirm")
async def confirm_reschedule(session_id: str, request: Request):
    """
    Confirm the pending change.
    Payload: {"notify": bool, "acknowledge": bool}; acknowledge is required
    when the scan found conflicts. A failed save keeps the session open.
    """
    controller = _get_session(session_id)
    try:
        data = await request.json()
    except Exception:
        data = {}
    data = data if isinstance(data, dict) else {}

    try:
        result = await controller.confirm(
            notify=bool(data.get("notify", False)),
            acknowledge=bool(data.get("acknowledge", False)),
        )
    except SchedulingError as e:
        raise _to_http(e, controller)

    _drop_session(session_id)
    return JSONResponse({"status": "Rescheduled", **result})


@app.post("/reschedule/{session_id}/cancel")
async def cancel_reschedule(session_id: str):
    controller = _get_session(session_id)
    try:
        controller.cancel()
    except SchedulingError as e:
        raise _to_http(e, controller)

    _drop_session(session_id)
    return JSONResponse({"status": "Cancelled", "session_id": session_id})
