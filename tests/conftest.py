"""Shared fixtures and helpers for the sleepstage test suite."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from sleepstage.analytics.classifier import ClassifierError, StagePrediction
from sleepstage.samples import Sample, format_timestamp

BASE_TIME = datetime(2024, 2, 13, 5, 0, 0)


# ---------------------------------------------------------------------------
# Sample helpers
# ---------------------------------------------------------------------------


def make_sample(
    i: int = 0,
    heart_rate: float = 58.0,
    sound_level: float = 30.0,
    accel: tuple[float, float, float] = (0.0, 0.0, -1.0),
    start: datetime = BASE_TIME,
) -> Sample:
    """One sample *i* seconds after *start*."""
    return Sample(
        heart_rate=heart_rate,
        sound_level=sound_level,
        accel_x=accel[0],
        accel_y=accel[1],
        accel_z=accel[2],
        timestamp=format_timestamp(start + timedelta(seconds=i)),
    )


def make_samples(n: int, offset: int = 0, **kwargs) -> list[Sample]:
    return [make_sample(offset + i, **kwargs) for i in range(n)]


def wire_batch(samples: list[Sample]) -> list[dict]:
    return [s.to_dict() for s in samples]


def write_jsonl(path: Path, entries: list) -> Path:
    """Write a list of JSON values as JSONL to the given path."""
    with open(path, "w") as f:
        for entry in entries:
            f.write(json.dumps(entry) + "\n")
    return path


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Settable clock."""

    def __init__(self, now: datetime = BASE_TIME) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


class StubClassifier:
    """Returns a fixed prediction, or raises ClassifierError when told to fail."""

    def __init__(self, label: int = 3, fail: bool = False) -> None:
        self.label = label
        self.fail = fail
        self.calls: list[dict] = []

    def predict(self, features):
        self.calls.append(dict(features))
        if self.fail:
            raise ClassifierError("model exploded")
        others = [lbl for lbl in (2, 3, 4, 5) if lbl != self.label]
        probs = {self.label: 0.7}
        probs.update({lbl: 0.1 for lbl in others})
        return StagePrediction(label=self.label, probabilities=probs)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def loop():
    lp = asyncio.new_event_loop()
    yield lp
    lp.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def classifier() -> StubClassifier:
    return StubClassifier()
