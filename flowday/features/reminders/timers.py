"""
Timer backends for the reminder scheduler.

A backend hands out string handles for one-shot and repeating timers and
cancels them by handle. The production backend is APScheduler running on the
asyncio event loop.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger("reminders.timers")

TimerHandle = str
TimerCallback = Callable[..., Awaitable[Any]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimerBackend(Protocol):
    def start(self) -> None:
        ...

    def shutdown(self) -> None:
        ...

    def call_later(self, delay: timedelta, callback: TimerCallback, *args: Any) -> TimerHandle:
        ...

    def call_every(self, period: timedelta, callback: TimerCallback) -> TimerHandle:
        ...

    def cancel(self, handle: TimerHandle) -> None:
        ...


class APSchedulerTimers:
    """Timer backend on top of an ``AsyncIOScheduler``.

    Jobs added before ``start()`` are held by APScheduler as pending jobs and
    armed once the scheduler starts.
    """

    def __init__(
        self,
        scheduler: Optional[AsyncIOScheduler] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._clock = clock

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        if self._scheduler.running:
            logger.warning("Timer scheduler already running")
            return
        self._scheduler.start()
        logger.info("Timer scheduler started")

    def shutdown(self) -> None:
        if not self._scheduler.running:
            return
        self._scheduler.shutdown(wait=False)
        logger.info("Timer scheduler stopped")

    def call_later(self, delay: timedelta, callback: TimerCallback, *args: Any) -> TimerHandle:
        job_id = f"timer-{uuid.uuid4().hex}"
        self._scheduler.add_job(
            callback,
            trigger=DateTrigger(run_date=self._clock() + delay),
            args=list(args),
            id=job_id,
            misfire_grace_time=None,  # late reminders still fire
        )
        return job_id

    def call_every(self, period: timedelta, callback: TimerCallback) -> TimerHandle:
        job_id = f"interval-{uuid.uuid4().hex}"
        self._scheduler.add_job(
            callback,
            trigger=IntervalTrigger(seconds=period.total_seconds()),
            id=job_id,
            max_instances=1,  # Prevent overlapping runs
            coalesce=True,
        )
        return job_id

    def cancel(self, handle: TimerHandle) -> None:
        try:
            self._scheduler.remove_job(handle)
        except JobLookupError:
            # Already fired (one-shot jobs are removed after running) or never existed
            logger.debug("Timer %s already gone", handle)
