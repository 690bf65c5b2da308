"""
Tests for the background scheduler.

WHY: Auto-close is off by default; when it is on, exactly one interval job
must be registered and the health endpoint must be able to describe it.
"""

import pytest

from helpdesk.core.config import settings
from helpdesk.services import scheduler


@pytest.fixture(autouse=True)
async def reset_scheduler():
    yield
    await scheduler.shutdown_scheduler()


@pytest.mark.asyncio
async def test_not_started_when_disabled(monkeypatch):
    monkeypatch.setattr(settings, "AUTO_CLOSE_ENABLED", False)

    await scheduler.start_scheduler()

    assert scheduler.get_scheduler() is None
    assert scheduler.get_scheduler_status()["running"] is False


@pytest.mark.asyncio
async def test_registers_auto_close_job(monkeypatch):
    monkeypatch.setattr(settings, "AUTO_CLOSE_ENABLED", True)
    monkeypatch.setattr(settings, "AUTO_CLOSE_INTERVAL_SECONDS", 600)

    await scheduler.start_scheduler()
    status = scheduler.get_scheduler_status()

    assert status["running"] is True
    assert [job["id"] for job in status["jobs"]] == [scheduler.AUTO_CLOSE_JOB_ID]


@pytest.mark.asyncio
async def test_start_twice_keeps_one_scheduler(monkeypatch):
    monkeypatch.setattr(settings, "AUTO_CLOSE_ENABLED", True)

    await scheduler.start_scheduler()
    first = scheduler.get_scheduler()
    await scheduler.start_scheduler()

    assert scheduler.get_scheduler() is first
