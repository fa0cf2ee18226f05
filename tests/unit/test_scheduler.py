"""Tests for the APScheduler-backed schedulers."""

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from hearth.core.scheduler import DailyScheduler, IntervalScheduler
from hearth.core.scheduler_tracker import JobTracker


TOKYO = ZoneInfo("Asia/Tokyo")


async def _noop() -> None:
    return None


@pytest.fixture
def tracker() -> JobTracker:
    return JobTracker()


def _daily(tracker, run_at=time(19, 0)) -> DailyScheduler:
    return DailyScheduler(name="daily", job=_noop, tracker=tracker, run_at=run_at, timezone="Asia/Tokyo")


@pytest.mark.unit
class TestNextRun:
    """Tests for next_run_after."""

    def test_daily_later_today(self, tracker):
        now = datetime(2024, 1, 1, 18, 30, tzinfo=TOKYO)

        assert _daily(tracker).next_run_after(now) == datetime(2024, 1, 1, 19, 0, tzinfo=TOKYO)

    def test_daily_already_passed_runs_tomorrow(self, tracker):
        now = datetime(2024, 1, 1, 20, 0, tzinfo=TOKYO)

        assert _daily(tracker).next_run_after(now) == datetime(2024, 1, 2, 19, 0, tzinfo=TOKYO)

    def test_daily_exact_time_runs_tomorrow(self, tracker):
        now = datetime(2024, 1, 1, 19, 0, tzinfo=TOKYO)

        assert _daily(tracker).next_run_after(now) == datetime(2024, 1, 2, 19, 0, tzinfo=TOKYO)

    def test_daily_uses_household_time_zone(self, tracker):
        """12:00 UTC is 21:00 in Tokyo, so 00:05 falls on the next local day."""
        now = datetime(2024, 1, 1, 12, 0, tzinfo=ZoneInfo("UTC"))

        next_run = _daily(tracker, run_at=time(0, 5)).next_run_after(now)

        assert next_run == datetime(2024, 1, 2, 0, 5, tzinfo=TOKYO)

    @pytest.mark.parametrize("interval", [timedelta(0), timedelta(seconds=-1)])
    def test_non_positive_interval_rejected(self, tracker, interval):
        with pytest.raises(ValueError, match="must be positive"):
            IntervalScheduler(name="tick", job=_noop, tracker=tracker, interval=interval)


@pytest.mark.unit
class TestRunOnce:
    """Tests for run_once outcome tracking."""

    async def test_success_recorded(self, tracker):
        scheduler = IntervalScheduler(name="tick", job=_noop, tracker=tracker, interval=timedelta(seconds=1))

        assert await scheduler.run_once() is True

        status = await tracker.get_job_status("tick")
        assert status["success_count"] == 1
        assert status["currently_running"] is False

    async def test_failure_recorded_not_raised(self, tracker):
        async def failing() -> None:
            raise RuntimeError("database locked")

        scheduler = IntervalScheduler(name="tick", job=failing, tracker=tracker, interval=timedelta(seconds=1))

        assert await scheduler.run_once() is False
        assert await scheduler.run_once() is False

        status = await tracker.get_job_status("tick")
        assert status["consecutive_failures"] == 2
        assert status["last_error"] == "database locked"


@pytest.fixture
async def job_scheduler() -> AsyncIterator[AsyncIOScheduler]:
    """A running APScheduler bound to the test event loop."""
    scheduler = AsyncIOScheduler(timezone="Asia/Tokyo")
    scheduler.start()
    yield scheduler
    scheduler.shutdown(wait=False)


@pytest.mark.unit
class TestLifecycle:
    """Tests for registering, running and stopping scheduled jobs."""

    async def test_failing_job_stays_scheduled(self, tracker, job_scheduler):
        async def failing() -> None:
            raise RuntimeError("boom")

        scheduler = IntervalScheduler(
            name="tick", job=failing, tracker=tracker, interval=timedelta(milliseconds=50)
        )

        scheduler.start(job_scheduler)
        await asyncio.sleep(0.5)
        assert scheduler.is_running
        await scheduler.stop()

        status = await tracker.get_job_status("tick")
        assert status["failure_count"] >= 2
        assert scheduler.is_running is False

    async def test_stop_waits_for_in_flight_job(self, tracker, job_scheduler):
        started = asyncio.Event()
        finished = []

        async def slow_job() -> None:
            started.set()
            await asyncio.sleep(0.2)
            finished.append(True)

        scheduler = IntervalScheduler(
            name="slow", job=slow_job, tracker=tracker, interval=timedelta(milliseconds=50)
        )

        scheduler.start(job_scheduler)
        await asyncio.wait_for(started.wait(), timeout=2)
        await scheduler.stop()

        assert finished == [True]
        status = await tracker.get_job_status("slow")
        assert status["success_count"] == 1

    async def test_runs_never_overlap(self, tracker):
        active = []
        overlaps = []

        async def job() -> None:
            if active:
                overlaps.append(True)
            active.append(True)
            await asyncio.sleep(0.05)
            active.pop()

        scheduler = IntervalScheduler(name="tick", job=job, tracker=tracker, interval=timedelta(hours=1))

        await asyncio.gather(scheduler.run_once(), scheduler.run_once())

        assert overlaps == []
        assert (await tracker.get_job_status("tick"))["success_count"] == 2

    async def test_stop_removes_pending_job(self, tracker, job_scheduler):
        calls = []

        async def job() -> None:
            calls.append(True)

        scheduler = IntervalScheduler(name="hourly", job=job, tracker=tracker, interval=timedelta(hours=1))

        scheduler.start(job_scheduler)
        await asyncio.wait_for(scheduler.stop(), timeout=1)

        assert calls == []
        assert job_scheduler.get_job("hourly") is None
        assert scheduler.is_running is False

    async def test_start_twice_is_noop(self, tracker, job_scheduler):
        scheduler = IntervalScheduler(name="hourly", job=_noop, tracker=tracker, interval=timedelta(hours=1))

        scheduler.start(job_scheduler)
        scheduler.start(job_scheduler)

        assert len(job_scheduler.get_jobs()) == 1
        await scheduler.stop()

    async def test_stop_without_start(self, tracker):
        scheduler = IntervalScheduler(name="idle", job=_noop, tracker=tracker, interval=timedelta(hours=1))

        await scheduler.stop()

        assert scheduler.is_running is False

    def test_triggers(self, tracker):
        daily = _daily(tracker, run_at=time(0, 5)).trigger()
        interval = IntervalScheduler(
            name="tick", job=_noop, tracker=tracker, interval=timedelta(seconds=10)
        ).trigger()

        assert isinstance(daily, CronTrigger)
        assert isinstance(interval, IntervalTrigger)
        assert interval.interval == timedelta(seconds=10)
