"""Window feature extraction for sleep-stage classification.

The classifier sees two overlapping tail windows of the sample buffer: a
long window (the last 90 samples) and a short one (the last 30).  Each
window contributes:
  - Heart rate statistics (mean, std, min, max)
  - Per-axis acceleration mean and variance
  - Acceleration magnitude features (mean, std, zero-crossing rate, activity counts)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np

from sleepstage.samples import Sample

LONG_WINDOW = 90
SHORT_WINDOW = 30


# ---------------------------------------------------------------------------
# Windowing
# ---------------------------------------------------------------------------


def tail_windows(
    samples: Sequence[Sample],
    long_size: int = LONG_WINDOW,
    short_size: int = SHORT_WINDOW,
) -> tuple[list[Sample], list[Sample]]:
    """Slice the most recent *long_size* and *short_size* samples.

    Both windows come from the same sequence in arrival order, so the short
    window is the tail of the long one.

    Raises:
        ValueError: fewer than *long_size* samples are available.
    """
    if short_size > long_size:
        raise ValueError("short window cannot be longer than the long window")
    if len(samples) < long_size:
        raise ValueError(f"need {long_size} samples, got {len(samples)}")
    seq = list(samples)
    return seq[-long_size:], seq[-short_size:]


# ---------------------------------------------------------------------------
# Heart rate features
# ---------------------------------------------------------------------------


@dataclass
class HRFeatures:
    """Aggregated heart rate features for a window."""

    mean_hr: float
    std_hr: float
    min_hr: float
    max_hr: float


def hr_features(hr_values: Sequence[float]) -> HRFeatures:
    """Compute HR features for a single window (bpm)."""
    arr = np.asarray(hr_values, dtype=np.float64)
    if len(arr) == 0:
        return HRFeatures(mean_hr=0.0, std_hr=0.0, min_hr=0.0, max_hr=0.0)

    return HRFeatures(
        mean_hr=round(float(np.mean(arr)), 2),
        std_hr=round(float(np.std(arr, ddof=0)), 2) if len(arr) > 1 else 0.0,
        min_hr=float(np.min(arr)),
        max_hr=float(np.max(arr)),
    )


# ---------------------------------------------------------------------------
# Accelerometer features
# ---------------------------------------------------------------------------


@dataclass
class AccelFeatures:
    """Aggregated accelerometer features for a window."""

    mean_x: float
    mean_y: float
    mean_z: float
    var_x: float
    var_y: float
    var_z: float
    mean_magnitude: float
    std_magnitude: float
    zero_crossing_rate: float  # fraction of steps where magnitude crosses its mean
    activity_counts: float  # sum of |delta-magnitude| above threshold


def accel_features(
    samples: Sequence[tuple[float, float, float]],
    threshold: float = 0.05,
) -> AccelFeatures:
    """Compute accelerometer features for a single window.

    Args:
        samples: List of (x, y, z) tuples in g.
        threshold: Minimum |delta-magnitude| to count as activity.
    """
    if len(samples) == 0:
        return AccelFeatures(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    arr = np.asarray(samples, dtype=np.float64)  # shape (N, 3)
    means = np.mean(arr, axis=0)
    variances = np.var(arr, axis=0, ddof=0)
    magnitudes = np.sqrt(np.sum(arr ** 2, axis=1))

    mean_mag = float(np.mean(magnitudes))
    std_mag = float(np.std(magnitudes, ddof=0)) if len(magnitudes) > 1 else 0.0

    centered = magnitudes - mean_mag
    if len(centered) > 1:
        sign_changes = np.sum(np.diff(np.sign(centered)) != 0)
        zcr = float(sign_changes) / (len(centered) - 1)
    else:
        zcr = 0.0

    if len(magnitudes) > 1:
        delta_mag = np.abs(np.diff(magnitudes))
        counts = float(np.sum(delta_mag[delta_mag > threshold]))
    else:
        counts = 0.0

    return AccelFeatures(
        mean_x=round(float(means[0]), 4),
        mean_y=round(float(means[1]), 4),
        mean_z=round(float(means[2]), 4),
        var_x=round(float(variances[0]), 6),
        var_y=round(float(variances[1]), 6),
        var_z=round(float(variances[2]), 6),
        mean_magnitude=round(mean_mag, 4),
        std_magnitude=round(std_mag, 4),
        zero_crossing_rate=round(zcr, 4),
        activity_counts=round(counts, 4),
    )


# ---------------------------------------------------------------------------
# Classifier input
# ---------------------------------------------------------------------------

_WINDOW_KEYS = (
    "hr_mean", "hr_std", "hr_min", "hr_max",
    "accel_mean_x", "accel_mean_y", "accel_mean_z",
    "accel_var_x", "accel_var_y", "accel_var_z",
    "mag_mean", "mag_std", "mag_zcr", "activity_counts",
)

FEATURE_NAMES: tuple[str, ...] = tuple(
    f"{key}_{size}" for size in (LONG_WINDOW, SHORT_WINDOW) for key in _WINDOW_KEYS
)


def window_features(window: Sequence[Sample]) -> list[float]:
    """Feature values for one window, in ``_WINDOW_KEYS`` order."""
    hr = hr_features([s.heart_rate for s in window])
    acc = accel_features([s.accel for s in window])
    return [
        hr.mean_hr, hr.std_hr, hr.min_hr, hr.max_hr,
        acc.mean_x, acc.mean_y, acc.mean_z,
        acc.var_x, acc.var_y, acc.var_z,
        acc.mean_magnitude, acc.std_magnitude,
        acc.zero_crossing_rate, acc.activity_counts,
    ]


def feature_vector(
    long_window: Sequence[Sample],
    short_window: Sequence[Sample],
) -> dict[str, float]:
    """Combined classifier input for the long and short windows.

    Keys follow :data:`FEATURE_NAMES`, e.g. ``hr_mean_90`` / ``hr_mean_30``.
    """
    values = window_features(long_window) + window_features(short_window)
    return dict(zip(FEATURE_NAMES, values))


def as_array(features: Mapping[str, float], names: Sequence[str] = FEATURE_NAMES) -> np.ndarray:
    """Order a feature mapping into a (1, n) float array for estimators.

    Raises:
        KeyError: a named feature is missing.
    """
    return np.asarray([[float(features[n]) for n in names]], dtype=np.float64)
