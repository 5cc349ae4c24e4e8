"""HealthKit sleep-analysis level labels.

The integer values match ``HKCategoryValueSleepAnalysis`` so that classifier
labels, Apple Health exports and the delimited reports all agree.
"""

from __future__ import annotations

from enum import IntEnum


class SleepLevel(IntEnum):
    """Sleep-analysis category value."""

    IN_BED = 0
    UNSPECIFIED = 1
    AWAKE = 2
    CORE = 3
    DEEP = 4
    REM = 5

    @property
    def description(self) -> str:
        return LEVEL_DESCRIPTIONS[self]


LEVEL_DESCRIPTIONS = {
    SleepLevel.IN_BED: "In Bed",
    SleepLevel.UNSPECIFIED: "Unspecified",
    SleepLevel.AWAKE: "Awake",
    SleepLevel.CORE: "Core",
    SleepLevel.DEEP: "Deep",
    SleepLevel.REM: "REM",
}

# Apple Health export.xml value names → category value
HEALTH_EXPORT_VALUES = {
    "HKCategoryValueSleepAnalysisInBed": SleepLevel.IN_BED,
    "HKCategoryValueSleepAnalysisAsleepUnspecified": SleepLevel.UNSPECIFIED,
    "HKCategoryValueSleepAnalysisAsleep": SleepLevel.UNSPECIFIED,
    "HKCategoryValueSleepAnalysisAwake": SleepLevel.AWAKE,
    "HKCategoryValueSleepAnalysisAsleepCore": SleepLevel.CORE,
    "HKCategoryValueSleepAnalysisAsleepDeep": SleepLevel.DEEP,
    "HKCategoryValueSleepAnalysisAsleepREM": SleepLevel.REM,
}


def describe(value: int) -> str:
    """Human-readable name for a level value; "Unknown" if out of range."""
    try:
        return SleepLevel(value).description
    except ValueError:
        return "Unknown"
