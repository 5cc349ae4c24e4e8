"""Persisted alarm preferences.

Preferences are stored as a small JSON document and handed explicitly to
the prediction manager when the user confirms an alarm.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from datetime import datetime, time, timedelta
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

WAKE_UP_BUFFER_CHOICES = (30, 45, 60)
REALARM_CHOICES = (0, 5, 10, 15, 30)  # 0 = off

HOME_ENV = "SLEEPSTAGE_HOME"
PREFERENCES_FILE = "preferences.json"


def default_path() -> Path:
    """``$SLEEPSTAGE_HOME/preferences.json`` or ``~/.sleepstage/preferences.json``."""
    home = os.environ.get(HOME_ENV)
    base = Path(home) if home else Path.home() / ".sleepstage"
    return base / PREFERENCES_FILE


def parse_clock_time(value: str) -> time:
    """Parse ``"HH:MM"``.

    Raises:
        ValueError: not a valid 24-hour clock time.
    """
    try:
        return datetime.strptime(value, "%H:%M").time()
    except (TypeError, ValueError) as e:
        raise ValueError(f"expected HH:MM, got {value!r}") from e


@dataclass
class AlarmPreferences:
    """User alarm settings."""

    alarm_time: str = "07:00"  # wake deadline, HH:MM
    bed_time: str = "23:00"  # HH:MM
    wake_up_buffer_min: int = 30  # prediction lead time
    realarm_min: int = 0  # snooze delay, 0 = off
    smart_alarm: bool = True
    bedtime_reminder: bool = True
    recheck_interval_sec: float = 60.0  # 0 disables periodic rechecks

    def validate(self) -> None:
        """Raise ValueError on out-of-range settings."""
        parse_clock_time(self.alarm_time)
        parse_clock_time(self.bed_time)
        if self.wake_up_buffer_min not in WAKE_UP_BUFFER_CHOICES:
            raise ValueError(
                f"wake_up_buffer_min must be one of {WAKE_UP_BUFFER_CHOICES}, "
                f"got {self.wake_up_buffer_min}"
            )
        if self.realarm_min not in REALARM_CHOICES:
            raise ValueError(
                f"realarm_min must be one of {REALARM_CHOICES}, got {self.realarm_min}"
            )
        if self.recheck_interval_sec < 0:
            raise ValueError("recheck_interval_sec cannot be negative")

    def next_deadline(self, now: datetime) -> datetime:
        """Next occurrence of :attr:`alarm_time` at or after *now*."""
        at = parse_clock_time(self.alarm_time)
        deadline = datetime.combine(now.date(), at)
        if deadline < now.replace(second=0, microsecond=0):
            deadline += timedelta(days=1)
        return deadline

    def snooze_deadline(self, deadline: datetime) -> datetime | None:
        """When the alarm sounds again, or None if re-alarm is off."""
        if self.realarm_min <= 0:
            return None
        return deadline + timedelta(minutes=self.realarm_min)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> AlarmPreferences:
        known = {f.name for f in fields(cls)}
        unknown = set(obj) - known
        if unknown:
            logger.warning("Ignoring unknown preference keys: %s", ", ".join(sorted(unknown)))
        prefs = cls(**{k: v for k, v in obj.items() if k in known})
        prefs.validate()
        return prefs


def load_preferences(path: str | Path | None = None) -> AlarmPreferences:
    """Load preferences, falling back to defaults if the file does not exist.

    Raises:
        ValueError: the file is not valid JSON or holds invalid settings.
    """
    p = Path(path) if path is not None else default_path()
    if not p.exists():
        return AlarmPreferences()
    try:
        obj = json.loads(p.read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid preferences file {p}: {e}") from e
    if not isinstance(obj, dict):
        raise ValueError(f"invalid preferences file {p}: expected an object")
    return AlarmPreferences.from_dict(obj)


def save_preferences(prefs: AlarmPreferences, path: str | Path | None = None) -> Path:
    """Validate and write preferences. Returns the path written."""
    prefs.validate()
    p = Path(path) if path is not None else default_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(prefs.to_dict(), indent=2))
    return p
