"""Scheduled sleep-stage prediction.

The :class:`PredictionManager` ties the pieces together:

  1. The user confirms an alarm → the scheduler arms a trigger at
     ``wake deadline - lead minutes``.
  2. Sample batches arrive from the watch and are buffered.
  3. Once the prediction window has started and at least 90 samples are
     buffered, the last 90 / last 30 samples are turned into a feature
     vector and classified.
  4. Each successful classification appends a :class:`PredictionResult`
     and drains the buffer.

All state is owned by one asyncio event loop.  Producers on other threads
hand samples over with :meth:`PredictionManager.deliver`, which marshals
onto the loop; the scheduler's timer fires on the same loop.

If the trigger fires but classification is refused, the manager rechecks
every ``recheck_interval_sec`` until the wake deadline, and every batch
delivered after the window opens triggers a check as well.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable

from sleepstage.analytics.classifier import Classifier, ClassifierError
from sleepstage.analytics.features import (
    LONG_WINDOW,
    SHORT_WINDOW,
    feature_vector,
    tail_windows,
)
from sleepstage.buffer import SampleBuffer
from sleepstage.config import AlarmPreferences
from sleepstage.results import PredictionResult, ResultLog, ResultRows
from sleepstage.samples import Sample, format_timestamp
from sleepstage.scheduler import WakeWindowScheduler

logger = logging.getLogger(__name__)


class ClassifyStatus(str, Enum):
    """Outcome of one classification attempt."""

    CLASSIFIED = "classified"
    INSUFFICIENT_DATA = "insufficient_data"
    NOT_SCHEDULED = "not_scheduled"
    NOT_YET_DUE = "not_yet_due"
    CLASSIFIER_ERROR = "classifier_error"


class PredictionManager:
    """Buffers samples and runs the classifier inside the prediction window.

    Args:
        classifier: Object with ``predict(features) -> StagePrediction``.
        loop: Event loop that owns all manager state. Defaults to the
            running loop.
        clock: Returns the current local time.
        recheck_interval_sec: Delay between rechecks after a refused
            scheduled attempt; 0 disables rechecks.
        on_result: Called with each new result.
    """

    def __init__(
        self,
        classifier: Classifier,
        loop: asyncio.AbstractEventLoop | None = None,
        clock: Callable[[], datetime] = datetime.now,
        recheck_interval_sec: float = 60.0,
        min_samples: int = LONG_WINDOW,
        short_window: int = SHORT_WINDOW,
        on_result: Callable[[PredictionResult], None] | None = None,
    ) -> None:
        self.classifier = classifier
        self.loop = loop if loop is not None else asyncio.get_running_loop()
        self.clock = clock
        self.recheck_interval_sec = recheck_interval_sec
        self.min_samples = min_samples
        self.short_window = short_window
        self.on_result = on_result

        self.buffer = SampleBuffer()
        self.results = ResultLog()
        self.scheduler = WakeWindowScheduler(self.loop, clock)

    def __repr__(self) -> str:
        return (f"PredictionManager(buffer={len(self.buffer)}, "
                f"results={len(self.results)}, schedule={self.scheduler.schedule!r})")

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def set_alarm_time(self, wake_deadline: datetime, lead_minutes: int) -> bool:
        """Arm prediction ``lead_minutes`` before *wake_deadline*.

        Returns False if *lead_minutes* is not positive. Any earlier
        schedule is dropped in that case too.
        """
        if lead_minutes <= 0:
            logger.warning("Wake-up buffer must be positive (got %d); not scheduling",
                           lead_minutes)
            self.scheduler.disarm()
            return False
        self.scheduler.arm(wake_deadline, lead_minutes, self._on_trigger)
        return True

    def apply_preferences(self, prefs: AlarmPreferences) -> bool:
        """Confirm an alarm from saved preferences."""
        self.recheck_interval_sec = prefs.recheck_interval_sec
        if not prefs.smart_alarm:
            logger.info("Smart alarm disabled; prediction not scheduled")
            self.scheduler.disarm()
            return False
        deadline = prefs.next_deadline(self.clock())
        return self.set_alarm_time(deadline, prefs.wake_up_buffer_min)

    def cancel(self) -> None:
        self.scheduler.cancel()

    def _on_trigger(self) -> None:
        logger.info("Running scheduled prediction")
        status = self.try_classify()
        if status is ClassifyStatus.CLASSIFIED or self.recheck_interval_sec <= 0:
            return
        schedule = self.scheduler.schedule
        if schedule is not None and self.clock() < schedule.wake_deadline:
            logger.debug("Prediction refused (%s); rechecking in %.0fs",
                         status.value, self.recheck_interval_sec)
            self.scheduler.retry_in(self.recheck_interval_sec)

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------

    def append_samples(self, samples: Iterable[Sample]) -> ClassifyStatus | None:
        """Buffer a batch; attempt classification if the window is open.

        Must run on the manager's loop. Returns the attempt's status, or
        None if no attempt was made.
        """
        size = self.buffer.append(samples)
        logger.debug("Buffered samples, %d pending", size)
        if self.scheduler.is_due():
            return self.try_classify()
        return None

    def deliver(self, samples: Iterable[Sample]) -> None:
        """Thread-safe hand-off of a batch from the receiving channel."""
        self.loop.call_soon_threadsafe(self.append_samples, tuple(samples))

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def try_classify(self) -> ClassifyStatus:
        """Classify the buffered samples if possible.

        The buffer is drained only after a successful classification; on
        a classifier error it is left intact for the next attempt.
        """
        if len(self.buffer) == 0:
            logger.info("No samples received yet")
            return ClassifyStatus.INSUFFICIENT_DATA

        now = self.clock()
        start = self.scheduler.prediction_start
        if start is None:
            logger.info("No alarm confirmed; prediction not scheduled")
            return ClassifyStatus.NOT_SCHEDULED
        if now < start:
            logger.info("Not yet time to predict (now %s, start %s)",
                        format_timestamp(now), format_timestamp(start))
            return ClassifyStatus.NOT_YET_DUE

        pending = self.buffer.tail(self.min_samples)
        if len(pending) < self.min_samples:
            logger.info("Insufficient data for prediction (%d/%d samples)",
                        len(pending), self.min_samples)
            return ClassifyStatus.INSUFFICIENT_DATA

        long_window, short_window = tail_windows(pending, self.min_samples, self.short_window)
        features = feature_vector(long_window, short_window)

        try:
            prediction = self.classifier.predict(features)
        except ClassifierError as e:
            logger.warning("Prediction failed: %s", e)
            return ClassifyStatus.CLASSIFIER_ERROR
        except Exception:
            logger.exception("Classifier raised an unexpected error")
            return ClassifyStatus.CLASSIFIER_ERROR

        result = PredictionResult(
            timestamp=format_timestamp(self.clock()),
            predicted_label=prediction.label,
            probabilities=prediction.probabilities,
        )
        self.results.append(result)
        self.buffer.drain_all()
        # Nothing left to recheck once a prediction landed
        self.scheduler.cancel()
        logger.info("Stage prediction: %d (p=%.2f)", result.predicted_label, result.probability)

        if self.on_result is not None:
            self.on_result(result)
        return ClassifyStatus.CLASSIFIED

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def export_rows(self, header: bool = True) -> ResultRows:
        return self.results.rows(header)

    def clear_predictions(self) -> None:
        self.results.clear()
