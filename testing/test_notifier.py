# testing/test_notifier.py
"""
Tests for technician notifications and the retry helper behind them.
"""

import asyncio
import os
import pytest
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

# Set required environment variables before importing
os.environ.setdefault("TEST_MODE", "True")
os.environ.setdefault("DB_PATH", "test_fieldsched.db")

from fieldsched.api import notifier
from fieldsched.api.retry import retry_with_backoff
from fieldsched.errors import NotificationError
from fieldsched.models import Job


@pytest.fixture
def no_test_mode():
    """
    temporarily disables TEST_MODE so the real GraphQL path runs
    """
    original_value = os.environ.get("TEST_MODE", "True")
    os.environ["TEST_MODE"] = "False"
    yield
    os.environ["TEST_MODE"] = original_value  # Restore original value


def test_build_reschedule_message():
    job = Job(id="J1", job_number="1001", customer_name="Smith")
    message = notifier.build_reschedule_message(job, date(2024, 3, 6), "14:00")
    assert message == "Job #1001 (Smith) has been rescheduled to Wed Mar 06, 2024 at 14:00"


def test_notify_in_test_mode_is_simulated():
    result = asyncio.run(notifier.notify_assigned_technicians("J1", "moved"))
    assert result["success"] is True
    assert "J1" in result["message"]


def test_notify_without_api_key_fails(no_test_mode):
    with patch("fieldsched.api.notifier.NOTIFY_API_KEY", None):
        with pytest.raises(NotificationError):
            asyncio.run(notifier.notify_assigned_technicians("J1", "moved"))


def test_notify_sends_graphql_mutation(no_test_mode):
    session = MagicMock()
    session.execute = AsyncMock(return_value={"notifyTechnicians": {"success": True, "message": "ok"}})
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=session)
    client.__aexit__ = AsyncMock(return_value=False)

    with patch("fieldsched.api.notifier.Client", return_value=client):
        result = asyncio.run(notifier.notify_assigned_technicians("J1", "moved", access_token="tok"))

    assert result == {"success": True, "message": "ok"}
    _, kwargs = session.execute.call_args
    assert kwargs["variable_values"] == {"input": {"jobId": "J1", "message": "moved"}}


def test_notify_rejection_raises(no_test_mode):
    session = MagicMock()
    session.execute = AsyncMock(return_value={"notifyTechnicians": {"success": False, "message": "no phone"}})
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=session)
    client.__aexit__ = AsyncMock(return_value=False)

    with patch("fieldsched.api.notifier.Client", return_value=client):
        with pytest.raises(NotificationError, match="no phone"):
            asyncio.run(notifier.notify_assigned_technicians("J1", "moved", access_token="tok"))


def test_retry_with_backoff_recovers():
    func = AsyncMock(side_effect=[ConnectionError("blip"), "done"])
    with patch("fieldsched.api.retry.asyncio.sleep", new=AsyncMock()):
        result = asyncio.run(retry_with_backoff(func, max_retries=2, initial_delay=0.01))
    assert result == "done"
    assert func.await_count == 2


def test_retry_with_backoff_gives_up():
    func = AsyncMock(side_effect=ConnectionError("down"))
    on_retry = MagicMock()
    with patch("fieldsched.api.retry.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(ConnectionError):
            asyncio.run(retry_with_backoff(func, max_retries=2, initial_delay=0.01, on_retry=on_retry))
    assert func.await_count == 3
    assert on_retry.call_count == 2


def test_retry_ignores_unlisted_exceptions():
    func = AsyncMock(side_effect=ValueError("bad input"))
    with pytest.raises(ValueError):
        asyncio.run(retry_with_backoff(func, max_retries=3, exceptions=(ConnectionError,)))
    assert func.await_count == 1
