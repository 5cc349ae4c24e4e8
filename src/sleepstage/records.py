"""Sleep-analysis and heart-rate records from an Apple Health export.

Reads ``export.xml`` from the Health app's "Export All Health Data" archive.
Times are kept as the naive wall-clock time the device recorded (the
export's UTC offset is dropped), which is what the reports display.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator

from sleepstage.levels import HEALTH_EXPORT_VALUES, SleepLevel, describe

logger = logging.getLogger(__name__)

SLEEP_ANALYSIS_TYPE = "HKCategoryTypeIdentifierSleepAnalysis"
HEART_RATE_TYPE = "HKQuantityTypeIdentifierHeartRate"

EXPORT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"
REPORT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class SleepRecord:
    """One sleep-analysis interval."""

    start: datetime
    end: datetime
    level: int

    @property
    def duration_sec(self) -> float:
        return (self.end - self.start).total_seconds()

    @property
    def description(self) -> str:
        return describe(self.level)

    def __repr__(self) -> str:
        return (f"SleepRecord({self.start:%Y-%m-%d %H:%M:%S} - {self.end:%H:%M:%S}, "
                f"{self.description})")


@dataclass
class LevelSummary:
    """Aggregate of all intervals at one sleep level."""

    count: int = 0
    total_sec: float = 0.0
    description: str = ""


class ReportMode(str, Enum):
    ALL = "all"
    TIME_SORTED = "time"
    LEVEL_SORTED = "level"


# ---------------------------------------------------------------------------
# Export parsing
# ---------------------------------------------------------------------------


def _parse_export_date(value: str) -> datetime:
    return datetime.strptime(value, EXPORT_DATE_FORMAT).replace(tzinfo=None)


def _iter_records(path: str | Path, record_type: str) -> Iterator[ET.Element]:
    for _event, elem in ET.iterparse(str(path), events=("end",)):
        if elem.tag == "Record" and elem.get("type") == record_type:
            yield elem
        # Exports run to hundreds of MB; drop parsed elements as we go
        if elem.tag in ("Record", "Workout", "ActivitySummary"):
            elem.clear()


def _sleep_level(value: str | None) -> int | None:
    if value is None:
        return None
    if value in HEALTH_EXPORT_VALUES:
        return int(HEALTH_EXPORT_VALUES[value])
    try:
        return int(value)
    except ValueError:
        return None


def load_sleep_records(
    path: str | Path,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[SleepRecord]:
    """Load sleep-analysis intervals whose start lies in ``[start, end)``.

    Records with an unrecognised value or unparseable dates are skipped.

    Raises:
        FileNotFoundError: the export does not exist.
        xml.etree.ElementTree.ParseError: the file is not XML.
    """
    if not Path(path).exists():
        raise FileNotFoundError(path)

    records: list[SleepRecord] = []
    skipped = 0
    for elem in _iter_records(path, SLEEP_ANALYSIS_TYPE):
        level = _sleep_level(elem.get("value"))
        try:
            rec_start = _parse_export_date(elem.get("startDate", ""))
            rec_end = _parse_export_date(elem.get("endDate", ""))
        except ValueError:
            skipped += 1
            continue
        if level is None:
            skipped += 1
            continue
        if start is not None and rec_start < start:
            continue
        if end is not None and rec_start >= end:
            continue
        records.append(SleepRecord(start=rec_start, end=rec_end, level=level))

    if skipped:
        logger.warning("Skipped %d malformed sleep-analysis records", skipped)
    return records


def load_heart_rates(path: str | Path) -> list[tuple[datetime, float]]:
    """Heart-rate samples as ``(start time, bpm)``, sorted by time."""
    if not Path(path).exists():
        raise FileNotFoundError(path)

    samples: list[tuple[datetime, float]] = []
    for elem in _iter_records(path, HEART_RATE_TYPE):
        try:
            samples.append((_parse_export_date(elem.get("startDate", "")),
                            float(elem.get("value", ""))))
        except ValueError:
            continue
    samples.sort(key=lambda s: s[0])
    return samples


def latest_heart_rate(path: str | Path) -> float:
    """Most recent heart rate in bpm, or 0.0 if the export has none."""
    samples = load_heart_rates(path)
    if not samples:
        logger.warning("No heart rate samples found in %s", path)
        return 0.0
    return samples[-1][1]


# ---------------------------------------------------------------------------
# Views and aggregation
# ---------------------------------------------------------------------------


def recent_records(
    records: Iterable[SleepRecord],
    now: datetime,
    days: int = 7,
) -> list[SleepRecord]:
    """The last *days* of asleep/awake intervals, newest first (In Bed excluded)."""
    since = now - timedelta(days=days)
    recent = [
        r for r in records
        if r.level != SleepLevel.IN_BED and since <= r.start and r.end <= now
    ]
    recent.sort(key=lambda r: r.end, reverse=True)
    return recent


def group_by_level(records: Iterable[SleepRecord]) -> dict[int, LevelSummary]:
    """Count intervals and total their duration per sleep level."""
    groups: dict[int, LevelSummary] = {}
    for r in records:
        summary = groups.setdefault(r.level, LevelSummary(description=r.description))
        summary.count += 1
        summary.total_sec += r.duration_sec
    return groups


def format_duration(seconds: float) -> str:
    """``HH:MM:SS`` for a duration in seconds."""
    total = int(seconds)
    return f"{total // 3600:02d}:{(total % 3600) // 60:02d}:{total % 60:02d}"


def report_rows(records: Iterable[SleepRecord], mode: ReportMode = ReportMode.ALL) -> Iterator[str]:
    """CSV text rows for one of the three report views.

    ALL lists every interval sorted by start; TIME_SORTED does the same
    without In Bed; LEVEL_SORTED drops Awake and aggregates per level.
    """
    records = list(records)

    if mode is ReportMode.LEVEL_SORTED:
        yield "level,interval,total time"
        groups = group_by_level(r for r in records if r.level != SleepLevel.AWAKE)
        for level in sorted(groups):
            g = groups[level]
            yield f"{g.description},{g.count},{format_duration(g.total_sec)}"
        return

    if mode is ReportMode.TIME_SORTED:
        records = [r for r in records if r.level != SleepLevel.IN_BED]
    records.sort(key=lambda r: r.start)

    yield "start,end,level,level(Int)"
    for r in records:
        yield (f"{r.start.strftime(REPORT_DATE_FORMAT)},{r.end.strftime(REPORT_DATE_FORMAT)},"
               f"{r.description},{r.level}")
