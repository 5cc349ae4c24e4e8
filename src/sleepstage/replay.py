"""Replay captured sample batches through the prediction manager offline.

A capture is a JSONL file with one received watch message per line, either
the bare JSON array the watch sends or an envelope recording when the phone
received it::

    [{"heartRate": 58, ...}, ...]
    {"received_at": "2024-02-13T06:31:02", "samples": [{"heartRate": 57, ...}]}

The replay runs on a private event loop with a simulated clock that jumps
to each batch's receive time (or its last sample's timestamp when the line
has no envelope).
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Sequence

from sleepstage.analytics.classifier import Classifier
from sleepstage.manager import PredictionManager
from sleepstage.samples import Sample, SampleDecoder

logger = logging.getLogger(__name__)


@dataclass
class SampleBatch:
    """One received watch message."""

    samples: list[Sample]
    received_at: datetime | None = None

    @property
    def time(self) -> datetime | None:
        """When the batch arrived, falling back to its newest sample."""
        if self.received_at is not None:
            return self.received_at
        if self.samples:
            return self.samples[-1].time
        return None

    def __repr__(self) -> str:
        return f"SampleBatch({len(self.samples)} samples @ {self.time})"


def _parse_line(entry: object) -> SampleBatch | None:
    received_at = None
    items = entry
    if isinstance(entry, dict):
        items = entry.get("samples")
        if entry.get("received_at"):
            try:
                received_at = datetime.fromisoformat(str(entry["received_at"]))
            except ValueError:
                return None
    samples = SampleDecoder.decode_items(items)
    if samples is None:
        return None
    return SampleBatch(samples=samples, received_at=received_at)


def load_batches(capture_path: str | Path) -> list[SampleBatch]:
    """Read a JSONL capture. Undecodable lines are logged and skipped.

    Raises:
        FileNotFoundError: the capture does not exist.
    """
    path = Path(capture_path)
    batches: list[SampleBatch] = []
    skipped = 0

    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("[line %d] Invalid JSON, skipping", line_num)
                skipped += 1
                continue
            batch = _parse_line(entry)
            if batch is None:
                logger.warning("[line %d] Not a sample batch, skipping", line_num)
                skipped += 1
                continue
            batches.append(batch)

    logger.info("Loaded %d batches from %s (%d skipped)", len(batches), path.name, skipped)
    return batches


class SimulatedClock:
    """A settable clock for deterministic replays."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance_to(self, moment: datetime) -> None:
        # Time never runs backwards, even if a capture is out of order
        if moment > self.now:
            self.now = moment


def replay_batches(
    batches: Sequence[SampleBatch],
    classifier: Classifier,
    wake_deadline: datetime,
    lead_minutes: int,
    start: datetime | None = None,
) -> PredictionManager:
    """Feed *batches* through a fresh manager and return it.

    Args:
        batches: Batches in arrival order.
        classifier: Stage classifier to use.
        wake_deadline: Confirmed wake deadline.
        lead_minutes: Prediction lead time before the deadline.
        start: Simulated time at which the alarm is confirmed. Defaults to
            the first batch's time.
    """
    if start is None:
        first = next((b.time for b in batches if b.time is not None), None)
        start = first if first is not None else wake_deadline

    clock = SimulatedClock(start)

    async def _run() -> PredictionManager:
        manager = PredictionManager(classifier, clock=clock, recheck_interval_sec=0)
        manager.set_alarm_time(wake_deadline, lead_minutes)
        for batch in batches:
            if batch.time is not None:
                clock.advance_to(batch.time)
            manager.append_samples(batch.samples)
        manager.cancel()
        return manager

    return asyncio.run(_run())
