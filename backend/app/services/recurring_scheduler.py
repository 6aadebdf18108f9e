from __future__ import annotations

import asyncio
import enum
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from app.core.config import settings
from app.utils.timezone import now_utc

logger = logging.getLogger(__name__)


class SchedulerState(str, enum.Enum):
    idle = "idle"
    running = "running"
    stopped = "stopped"


class StopHandle:
    """Calling the handle asks the loop to exit; an active run still completes."""

    def __init__(self, scheduler: RecurringScheduler, task: asyncio.Task):
        self._scheduler = scheduler
        self._task = task

    def __call__(self) -> None:
        self._scheduler.request_stop()

    async def wait(self) -> None:
        await self._task


class RecurringScheduler:
    def __init__(self, run_once: Callable[[], Any], interval_seconds: float = 3600):
        self._run_once = run_once
        self.interval = max(0.0, float(interval_seconds))
        self.state = SchedulerState.idle
        self.runs = 0
        self.last_run_at: Optional[datetime] = None
        self.last_summary: Any = None
        self.last_error: Optional[str] = None
        self._mu = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    def start(self) -> StopHandle:
        if self._task is not None and not self._task.done():
            raise RuntimeError("recurring scheduler already started")
        self._loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        self._set(state=SchedulerState.idle)
        self._task = self._loop.create_task(self._main(), name="recurring-scheduler")
        return StopHandle(self, self._task)

    def request_stop(self) -> None:
        if self._loop is None or self._stop is None:
            return
        self._loop.call_soon_threadsafe(self._stop.set)

    def status(self) -> Dict[str, Any]:
        with self._mu:
            summary = self.last_summary
            if summary is not None and hasattr(summary, "to_dict"):
                summary = summary.to_dict()
            return {
                "state": self.state.value,
                "interval_seconds": self.interval,
                "runs": self.runs,
                "last_run_at": self.last_run_at,
                "last_summary": summary,
                "last_error": self.last_error,
            }

    def _set(self, **kwargs) -> None:
        with self._mu:
            for k, v in kwargs.items():
                setattr(self, k, v)

    async def _main(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            while True:
                next_at = loop.time() + self.interval
                await self._run()

                if self._stop.is_set():
                    break
                # an overrunning run gets one immediate follow-up, never a backlog
                timeout = max(0.0, next_at - loop.time())
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    continue
                break
        finally:
            self._set(state=SchedulerState.stopped)
            logger.info("recurring scheduler stopped", extra={"runs": self.runs})

    async def _run(self) -> None:
        self._set(state=SchedulerState.running)
        summary = None
        error = None
        try:
            summary = await asyncio.to_thread(self._run_once)
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.exception("recurring job failed", exc_info=e)
        finally:
            with self._mu:
                self.runs += 1
                self.last_run_at = now_utc()
                if summary is not None:
                    self.last_summary = summary
                self.last_error = error
                self.state = SchedulerState.idle


_scheduler: Optional[RecurringScheduler] = None


def get_scheduler() -> RecurringScheduler:
    global _scheduler
    if _scheduler is None:
        from app.services.recurring import process_recurring_once

        _scheduler = RecurringScheduler(
            process_recurring_once,
            interval_seconds=settings.recurring_job_interval_seconds,
        )
    return _scheduler
