"""TimerEngine — APScheduler lifecycle and scoped timer jobs."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from apscheduler.job import Job

logger = logging.getLogger(__name__)


class TimerEngine:
    """Runs the engine's interval and one-shot timers on one AsyncIOScheduler.

    Every job id is ``"<scope>:<name>"``. A scope (e.g. the selected
    conversation) is torn down as a unit with :meth:`cancel_scope`, so no tick
    outlives the state it was started for.
    """

    def __init__(self, scheduler: AsyncIOScheduler | None = None) -> None:
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # -- Lifecycle -------------------------------------------------------------

    def start(self) -> None:
        """Start the scheduler. Must be called from a running event loop."""
        if not self._running:
            self._scheduler.start()
            self._running = True
            logger.info("Timer engine started")

    def stop(self) -> None:
        """Shut down the scheduler and drop every job."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Timer engine stopped")

    # -- Jobs ------------------------------------------------------------------

    def every(
        self,
        scope: str,
        name: str,
        seconds: float,
        callback: Callable[[], Awaitable[None]],
    ) -> Job:
        """Run *callback* every *seconds*, replacing any job with the same id."""
        return self._add(scope, name, IntervalTrigger(seconds=seconds), callback)

    def once(
        self,
        scope: str,
        name: str,
        delay_seconds: float,
        callback: Callable[[], Awaitable[None]],
    ) -> Job:
        """Run *callback* once after *delay_seconds*, replacing any job with the same id."""
        run_date = datetime.now(UTC) + timedelta(seconds=max(0.0, delay_seconds))
        return self._add(scope, name, DateTrigger(run_date=run_date), callback)

    def cancel(self, scope: str, name: str) -> bool:
        """Remove one job. Returns True if it existed."""
        try:
            self._scheduler.remove_job(_job_id(scope, name))
        except JobLookupError:
            return False
        return True

    def cancel_scope(self, scope: str) -> int:
        """Remove every job of *scope*. Returns the number removed."""
        prefix = f"{scope}:"
        removed = 0
        for job in self._scheduler.get_jobs():
            if job.id.startswith(prefix):
                self._scheduler.remove_job(job.id)
                removed += 1
        if removed:
            logger.debug("Cancelled %d timer(s) in scope %s", removed, scope)
        return removed

    def job_ids(self, scope: str | None = None) -> list[str]:
        ids = [job.id for job in self._scheduler.get_jobs()]
        if scope is None:
            return ids
        return [i for i in ids if i.startswith(f"{scope}:")]

    # -- Internal --------------------------------------------------------------

    def _add(
        self,
        scope: str,
        name: str,
        trigger: Any,
        callback: Callable[[], Awaitable[None]],
    ) -> Job:
        job_id = _job_id(scope, name)
        return self._scheduler.add_job(
            _run_timer,
            trigger=trigger,
            id=job_id,
            name=job_id,
            args=[job_id, callback],
            misfire_grace_time=None,
            coalesce=True,
            max_instances=1,
            replace_existing=True,
        )


def _job_id(scope: str, name: str) -> str:
    return f"{scope}:{name}"


async def _run_timer(job_id: str, callback: Callable[[], Awaitable[None]]) -> None:
    """Callback invoked by APScheduler. Timer failures are logged, never raised."""
    try:
        await callback()
    except Exception:
        logger.exception("Timer failed: %s", job_id)
