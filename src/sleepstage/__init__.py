"""Scheduled sleep-stage prediction from wearable biometric samples."""

from sleepstage.samples import Sample, SampleDecoder
from sleepstage.buffer import SampleBuffer
from sleepstage.scheduler import Schedule, WakeWindowScheduler
from sleepstage.results import PredictionResult, ResultLog
from sleepstage.manager import ClassifyStatus, PredictionManager
from sleepstage.config import AlarmPreferences, load_preferences, save_preferences
from sleepstage.levels import SleepLevel

__all__ = [
    "Sample",
    "SampleDecoder",
    "SampleBuffer",
    "Schedule",
    "WakeWindowScheduler",
    "PredictionResult",
    "ResultLog",
    "ClassifyStatus",
    "PredictionManager",
    "AlarmPreferences",
    "load_preferences",
    "save_preferences",
    "SleepLevel",
]
