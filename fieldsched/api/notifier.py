# fieldsched/api/notifier.py
#
#   best-effort notification of a job's assigned technicians after a reschedule
#   sent as a GraphQL mutation; TEST_MODE simulates the call

import asyncio
import logging
from datetime import date
from typing import Optional

from gql import Client, gql
from gql.transport.httpx import HTTPXAsyncTransport

from config.settings import NOTIFY_API_BASE, NOTIFY_API_KEY, NOTIFY_MAX_RETRIES, in_test_mode
from fieldsched.api.retry import retry_with_backoff
from fieldsched.errors import NotificationError
from fieldsched.models import Job

logger = logging.getLogger(__name__)

NOTIFY_MUTATION = gql("""
    mutation NotifyTechnicians($input: NotifyTechniciansInput!) {
        notifyTechnicians(input: $input) {
            success
            message
        }
    }
""")


def build_reschedule_message(job: Job, new_date: date, new_time: str) -> str:
    """Plain-text message telling technicians where the job moved to."""
    title = job.label
    if job.customer_name:
        title += f" ({job.customer_name})"
    return f"{title} has been rescheduled to {new_date:%a %b %d, %Y} at {new_time}"


async def notify_assigned_technicians(job_id: str, message: str, access_token: Optional[str] = None) -> dict:
    """
    Notify every technician assigned to a job.
    Args:
        job_id (str): ID of the rescheduled job
        message (str): Message content
        access_token (str): bearer token, defaults to NOTIFY_API_KEY
    Returns:
        dict: {"success": bool, "message": str}
    Raises:
        NotificationError: the API could not be reached or refused the message
    """
    variables = {"input": {"jobId": job_id, "message": message}}

    if in_test_mode():
        await asyncio.sleep(0.01)  # Mock delay
        return {"success": True, "message": f"Technicians notified for job {job_id}"}

    token = access_token or NOTIFY_API_KEY
    if not token:
        raise NotificationError("NOTIFY_API_KEY is not configured")

    async def _send():
        transport = HTTPXAsyncTransport(
            url=NOTIFY_API_BASE + '/graphql',
            headers={'Authorization': f'Bearer {token}'},
            timeout=10,
        )
        async with Client(transport=transport, fetch_schema_from_transport=False) as session:
            return await session.execute(NOTIFY_MUTATION, variable_values=variables)

    try:
        result = await retry_with_backoff(_send, max_retries=NOTIFY_MAX_RETRIES, initial_delay=0.5)
    except Exception as e:
        raise NotificationError(f"Could not notify technicians for job {job_id}: {e}") from e

    payload = result.get("notifyTechnicians") or {}
    if not payload.get("success"):
        raise NotificationError(payload.get("message") or f"Notification rejected for job {job_id}")
    return payload
