from __future__ import annotations

import asyncio
import datetime as dt
import logging
import re
import signal
from typing import Awaitable, Callable, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES, JobEvent, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from gator.core.errors import InvalidDurationError, StoreError

logger = logging.getLogger(__name__)

DURATION_RE = re.compile(r"^([0-9]+)(ms|s|m|h)$")
_UNIT_MS = {"ms": 1, "s": 1_000, "m": 60_000, "h": 3_600_000}

JOB_ID = "scrape_feeds"

def parse_duration(s: str) -> dt.timedelta:
    """Parse ``<integer><unit>`` with unit one of ms, s, m, h."""
    match = DURATION_RE.match(s)
    if not match:
        raise InvalidDurationError(f"Invalid duration: {s!r} (expected <integer><ms|s|m|h>, e.g. 30s)")
    value, unit = int(match.group(1)), match.group(2)
    if value == 0:
        # IntervalTrigger needs a positive interval
        raise InvalidDurationError(f"Invalid duration: {s!r} (interval must be at least 1ms)")
    return dt.timedelta(milliseconds=value * _UNIT_MS[unit])

class FeedScheduler:
    """Runs ``job`` now and then every ``interval`` until stopped.

    At most one run is in flight: a trigger that fires while the previous run
    is still going is dropped. A StoreError raised by ``job`` stops the
    scheduler and is re-raised by :meth:`run_until_stopped`.
    """

    def __init__(self, job: Callable[[], Awaitable[object]], interval: dt.timedelta, shutdown_grace_s: float = 30.0):
        self._job = job
        self.interval = interval
        self.shutdown_grace_s = shutdown_grace_s
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stopped: Optional[asyncio.Event] = None
        self._idle: Optional[asyncio.Event] = None
        self._failure: Optional[BaseException] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def _run_cycle(self) -> None:
        self._idle.clear()
        try:
            await self._job()
        finally:
            self._idle.set()

    def _on_job_error(self, event: JobExecutionEvent) -> None:
        # APScheduler has already logged the traceback
        if isinstance(event.exception, StoreError):
            logger.critical("Store failure, stopping aggregator: %s", event.exception)
            self._failure = event.exception
            self.stop()

    def _on_max_instances(self, event: JobEvent) -> None:
        logger.warning("Previous cycle still running, skipping this trigger")

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._stopped = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._failure = None

        self._scheduler = AsyncIOScheduler(event_loop=self._loop, timezone=dt.timezone.utc)
        self._scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self._scheduler.add_listener(self._on_max_instances, EVENT_JOB_MAX_INSTANCES)
        self._scheduler.add_job(
            self._run_cycle,
            IntervalTrigger(seconds=self.interval.total_seconds(), timezone=dt.timezone.utc),
            id=JOB_ID,
            replace_existing=True,
            next_run_time=dt.datetime.now(dt.timezone.utc),
            coalesce=True,
            max_instances=1,
        )
        self._scheduler.start()
        logger.info("Aggregator started, collecting feeds every %s", self.interval)

    def stop(self) -> None:
        """Ask :meth:`run_until_stopped` to return. Safe from signal handlers and other threads."""
        if self._loop is None or self._stopped is None:
            return
        self._loop.call_soon_threadsafe(self._stopped.set)

    async def shutdown(self) -> None:
        """Stop triggering, give an in-flight cycle time to finish, release the scheduler."""
        if not self.running:
            return
        self._scheduler.pause()
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=self.shutdown_grace_s)
        except asyncio.TimeoutError:
            logger.warning("Cycle still running after %.0fs, cancelling it", self.shutdown_grace_s)
        self._scheduler.shutdown(wait=False)
        logger.info("Aggregator stopped")

    async def run_until_stopped(self) -> None:
        """Run until SIGINT/SIGTERM or :meth:`stop`."""
        self.start()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.add_signal_handler(sig, self.stop)
                installed.append(sig)
            except (NotImplementedError, RuntimeError):
                # Windows, or not running in the main thread
                pass
        try:
            await self._stopped.wait()
        finally:
            for sig in installed:
                self._loop.remove_signal_handler(sig)
            await self.shutdown()
        if self._failure is not None:
            raise self._failure
