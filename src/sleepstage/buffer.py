"""Ordered buffer of samples awaiting classification."""

from __future__ import annotations

import threading
from typing import Iterable

from sleepstage.samples import Sample


class SampleBuffer:
    """Append-only sample queue that is drained as a whole.

    Growth is unbounded: the manager drains the buffer after every
    successful classification, so it never spans more than one prediction.
    """

    def __init__(self) -> None:
        self._samples: list[Sample] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._samples)

    def __repr__(self) -> str:
        return f"SampleBuffer({len(self._samples)} samples)"

    def append(self, samples: Iterable[Sample]) -> int:
        """Add samples to the tail in arrival order. Returns the new length."""
        with self._lock:
            self._samples.extend(samples)
            return len(self._samples)

    def tail(self, n: int) -> list[Sample]:
        """The most recent *n* samples (fewer if the buffer is shorter)."""
        if n <= 0:
            return []
        with self._lock:
            return self._samples[-n:]

    def drain_all(self) -> list[Sample]:
        """Return every buffered sample and leave the buffer empty."""
        with self._lock:
            drained, self._samples = self._samples, []
            return drained

    def clear(self) -> None:
        with self._lock:
            self._samples = []
