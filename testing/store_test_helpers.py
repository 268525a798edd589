# testing/store_test_helpers.py
"""
Helper functions for testing the reschedule workflow without a real store.
These helpers mirror the store contract the controller relies on:
1. list_jobs / list_technician_leave / list_business_closed_periods return rows
2. update_job_schedule is awaited once per confirmed change
"""

from unittest.mock import AsyncMock, MagicMock


def create_mock_store(jobs=None, leaves=None, closed_periods=None, update_error=None, update_result=True):
    """
    Create a mock schedule store.

    Args:
        jobs: job rows (from generate_mock_job)
        leaves: leave rows (from generate_mock_leave)
        closed_periods: closed period rows (from generate_mock_closed_period)
        update_error: Exception to raise from update_job_schedule (for failure testing)
        update_result: value update_job_schedule returns when it does not raise

    Returns:
        MagicMock configured as a schedule store
    """
    store = MagicMock()
    store.list_jobs = AsyncMock(return_value=list(jobs or []))
    store.list_technician_leave = AsyncMock(return_value=list(leaves or []))
    store.list_business_closed_periods = AsyncMock(return_value=list(closed_periods or []))

    if update_error:
        store.update_job_schedule = AsyncMock(side_effect=update_error)
    else:
        store.update_job_schedule = AsyncMock(return_value=update_result)

    return store


def create_mock_notifier(error=None):
    """Async notifier mock; raises `error` when given."""
    if error:
        return AsyncMock(side_effect=error)
    return AsyncMock(return_value={"success": True, "message": "Technicians notified"})
