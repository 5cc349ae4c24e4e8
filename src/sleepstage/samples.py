"""Biometric samples received from the paired watch.

The watch sends each batch as a JSON array of measurement objects::

    [{"heartRate": 58.0, "decibelLevel": 31.5,
      "accelerationX": 0.01, "accelerationY": -0.02, "accelerationZ": -0.99,
      "timestamp": "2024-02-13 03:12:44"}, ...]
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Iterator

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Wire key → Sample field
WIRE_FIELDS = {
    "heartRate": "heart_rate",
    "decibelLevel": "sound_level",
    "accelerationX": "accel_x",
    "accelerationY": "accel_y",
    "accelerationZ": "accel_z",
}

SAMPLE_CSV_HEADER = (
    "Timestamp,Heart Rate,Decibel Level,Acceleration X,Acceleration Y,Acceleration Z"
)


@dataclass(frozen=True)
class Sample:
    """A single timestamped biometric reading."""

    heart_rate: float  # bpm
    sound_level: float  # dB
    accel_x: float  # g
    accel_y: float  # g
    accel_z: float  # g
    timestamp: str  # local time, second precision

    @property
    def time(self) -> datetime:
        """The timestamp parsed as a naive local datetime."""
        return datetime.strptime(self.timestamp, TIMESTAMP_FORMAT)

    @property
    def accel(self) -> tuple[float, float, float]:
        return (self.accel_x, self.accel_y, self.accel_z)

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> Sample:
        """Build a sample from a wire-format dict.

        Raises:
            KeyError: a required key is missing.
            ValueError: a value cannot be converted or the timestamp is malformed.
        """
        values = {field: float(obj[key]) for key, field in WIRE_FIELDS.items()}
        timestamp = str(obj["timestamp"])
        datetime.strptime(timestamp, TIMESTAMP_FORMAT)
        return cls(timestamp=timestamp, **values)

    def to_dict(self) -> dict[str, Any]:
        """Convert back to the wire format."""
        out: dict[str, Any] = {key: getattr(self, field) for key, field in WIRE_FIELDS.items()}
        out["timestamp"] = self.timestamp
        return out


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


class SampleDecoder:
    """Decode watch message payloads into samples."""

    @staticmethod
    def decode_batch(payload: bytes | str) -> list[Sample] | None:
        """Decode one message payload.

        Returns None (and logs a warning) if the payload is not a JSON array
        of well-formed measurement objects.
        """
        try:
            items = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Failed to decode received data: %s", e)
            return None
        return SampleDecoder.decode_items(items)

    @staticmethod
    def decode_items(items: Any) -> list[Sample] | None:
        """Decode an already-parsed list of measurement objects."""
        if not isinstance(items, list):
            logger.warning("Failed to decode received data: expected a list, got %s",
                           type(items).__name__)
            return None
        samples: list[Sample] = []
        for i, item in enumerate(items):
            if not isinstance(item, dict):
                logger.warning("Failed to decode received data: item %d is not an object", i)
                return None
            try:
                samples.append(Sample.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Failed to decode received data: item %d: %r", i, e)
                return None
        return samples


def sample_rows(samples: Iterable[Sample], header: bool = True) -> Iterator[str]:
    """Yield the received-data report as CSV text rows."""
    if header:
        yield SAMPLE_CSV_HEADER
    for s in samples:
        yield (f"{s.timestamp},{s.heart_rate},{s.sound_level},"
               f"{s.accel_x},{s.accel_y},{s.accel_z}")


def samples_filename(user: str, day: date) -> str:
    """File name used when exporting received samples, e.g. ``ana(2024-02-13).csv``."""
    return f"{user}({day.isoformat()}).csv"
