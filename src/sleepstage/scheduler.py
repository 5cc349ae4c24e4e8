"""One-shot scheduling of the prediction window before a wake deadline.

Prediction starts ``lead_minutes`` before the wake deadline.  The scheduler
keeps a single timer handle on the owning event loop: arming again cancels
whatever was pending, so there is never more than one trigger outstanding.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Schedule:
    """A confirmed alarm: wake deadline and prediction lead time."""

    wake_deadline: datetime
    lead_minutes: int

    @property
    def prediction_start(self) -> datetime:
        return self.wake_deadline - timedelta(minutes=self.lead_minutes)

    def __repr__(self) -> str:
        return (
            f"Schedule(deadline={self.wake_deadline:%Y-%m-%d %H:%M:%S}, "
            f"lead={self.lead_minutes}min, "
            f"start={self.prediction_start:%Y-%m-%d %H:%M:%S})"
        )


class WakeWindowScheduler:
    """Arms a single-shot callback at the start of the prediction window.

    Args:
        loop: Event loop that owns the timer and runs the callback.
        clock: Returns the current local time (injectable for tests and replay).
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._loop = loop
        self._clock = clock
        self._handle: asyncio.TimerHandle | None = None
        self._callback: Callable[[], None] | None = None
        self.schedule: Schedule | None = None

    @property
    def pending(self) -> bool:
        """True while a trigger is waiting to fire."""
        return self._handle is not None and not self._handle.cancelled()

    @property
    def prediction_start(self) -> datetime | None:
        return self.schedule.prediction_start if self.schedule else None

    def is_due(self, now: datetime | None = None) -> bool:
        """True once an armed schedule's prediction window has started."""
        if self.schedule is None:
            return False
        if now is None:
            now = self._clock()
        return now >= self.schedule.prediction_start

    def arm(
        self,
        wake_deadline: datetime,
        lead_minutes: int,
        callback: Callable[[], None],
    ) -> Schedule:
        """Replace any pending schedule and arm a new trigger.

        If the prediction start is already reached the callback runs
        synchronously before this method returns.

        Raises:
            ValueError: *lead_minutes* is not positive.
        """
        if lead_minutes <= 0:
            raise ValueError(f"lead_minutes must be > 0, got {lead_minutes}")

        if self.cancel():
            logger.info("Schedule replaced; previous pending trigger discarded")

        schedule = Schedule(wake_deadline=wake_deadline, lead_minutes=lead_minutes)
        self.schedule = schedule
        self._callback = callback

        delay = (schedule.prediction_start - self._clock()).total_seconds()
        if delay > 0:
            self._handle = self._loop.call_later(delay, self._fire)
            logger.info("Prediction scheduled in %.0fs: %r", delay, schedule)
        else:
            logger.info("Prediction start already passed, predicting now: %r", schedule)
            self._fire()
        return schedule

    def retry_in(self, delay_sec: float) -> None:
        """Run the armed callback again after *delay_sec* seconds.

        Uses the same handle slot as :meth:`arm`, so a later ``arm`` or
        ``cancel`` discards it.
        """
        if self._callback is None:
            raise RuntimeError("retry_in() called before arm()")
        self.cancel()
        self._handle = self._loop.call_later(delay_sec, self._fire)

    def cancel(self) -> bool:
        """Cancel the pending trigger, if any. Returns True if one was pending."""
        was_pending = self.pending
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        return was_pending

    def disarm(self) -> None:
        """Cancel the pending trigger and forget the schedule."""
        self.cancel()
        self.schedule = None
        self._callback = None

    def _fire(self) -> None:
        self._handle = None
        logger.debug("Scheduled prediction trigger fired")
        if self._callback is not None:
            self._callback()
