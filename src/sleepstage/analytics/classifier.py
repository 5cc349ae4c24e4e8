"""Sleep-stage classifiers.

A classifier maps the window feature vector to a predicted integer label and
a probability distribution over all labels.  The manager treats it as an
opaque, swappable scoring function: any object with a compatible
``predict`` method works.

Two implementations ship here:
  - :class:`EstimatorClassifier` wraps a trained scikit-learn style model
    (``predict_proba`` + ``classes_``) persisted with joblib.
  - :class:`HeuristicStageClassifier` scores Awake / Core / Deep / REM from
    activity and heart-rate features.  It needs no trained model and is the
    default for replays.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

import joblib
import numpy as np
from scipy.special import softmax

from sleepstage.analytics.features import FEATURE_NAMES, as_array
from sleepstage.levels import SleepLevel


class ClassifierError(Exception):
    """The classifier rejected its input or failed internally."""


@dataclass(frozen=True)
class StagePrediction:
    """Classifier output for one feature vector."""

    label: int
    probabilities: dict[int, float] = field(default_factory=dict)

    @property
    def probability(self) -> float:
        """Probability of the predicted label."""
        return self.probabilities.get(self.label, 0.0)


class Classifier(Protocol):
    def predict(self, features: Mapping[str, float]) -> StagePrediction:
        ...


def _check_finite(features: Mapping[str, float], names: Sequence[str]) -> np.ndarray:
    try:
        x = as_array(features, names)
    except KeyError as e:
        raise ClassifierError(f"missing feature {e.args[0]!r}") from e
    except (TypeError, ValueError) as e:
        raise ClassifierError(f"malformed feature vector: {e}") from e
    if not np.all(np.isfinite(x)):
        raise ClassifierError("feature vector contains non-finite values")
    return x


def _normalize(labels: Sequence[int], probs: Sequence[float]) -> dict[int, float]:
    arr = np.asarray(probs, dtype=np.float64)
    total = float(np.sum(arr))
    if not math.isfinite(total) or total <= 0:
        raise ClassifierError("classifier returned an invalid probability distribution")
    return {int(lbl): float(p) / total for lbl, p in zip(labels, arr)}


# ---------------------------------------------------------------------------
# Trained estimator
# ---------------------------------------------------------------------------


class EstimatorClassifier:
    """Adapter for a fitted estimator exposing ``predict_proba`` and ``classes_``.

    Args:
        estimator: The fitted model.
        feature_names: Column order the model was trained with.
    """

    def __init__(self, estimator: Any, feature_names: Sequence[str] = FEATURE_NAMES) -> None:
        if not hasattr(estimator, "predict_proba"):
            raise TypeError(f"{type(estimator).__name__} has no predict_proba()")
        self.estimator = estimator
        self.feature_names = tuple(feature_names)

    @classmethod
    def from_path(cls, path: str | Path, feature_names: Sequence[str] = FEATURE_NAMES) -> EstimatorClassifier:
        """Load a joblib-persisted estimator."""
        return cls(joblib.load(path), feature_names)

    def predict(self, features: Mapping[str, float]) -> StagePrediction:
        x = _check_finite(features, self.feature_names)
        try:
            proba = self.estimator.predict_proba(x)
        except Exception as e:
            raise ClassifierError(f"model prediction failed: {e}") from e

        row = np.asarray(proba, dtype=np.float64).reshape(-1)
        classes = getattr(self.estimator, "classes_", None)
        if classes is None:
            classes = range(len(row))
        try:
            classes = [int(c) for c in classes]
        except (TypeError, ValueError) as e:
            raise ClassifierError(f"model class labels are not sleep levels: {e}") from e
        if len(classes) != len(row):
            raise ClassifierError(
                f"model returned {len(row)} probabilities for {len(classes)} classes"
            )

        probabilities = _normalize(classes, row)
        label = max(probabilities, key=probabilities.get)
        return StagePrediction(label=label, probabilities=probabilities)


# ---------------------------------------------------------------------------
# Heuristic stage scoring
# ---------------------------------------------------------------------------

HEURISTIC_LABELS = (SleepLevel.AWAKE, SleepLevel.CORE, SleepLevel.DEEP, SleepLevel.REM)

# Activity counts (g, summed over the long window) treated as "fully active"
ACTIVITY_SCALE = 1.0


class HeuristicStageClassifier:
    """Rule-of-thumb stage scoring from movement and heart rate.

    Awake favours movement and HR above resting; Deep favours stillness with
    HR below resting and steady; REM favours stillness with irregular,
    slightly elevated HR; Core is the baseline.  Scores are turned into
    probabilities with a temperature-scaled softmax.
    """

    def __init__(self, resting_hr: float = 60.0, temperature: float = 1.0) -> None:
        if temperature <= 0:
            raise ValueError("temperature must be positive")
        self.resting_hr = resting_hr
        self.temperature = temperature

    def scores(self, features: Mapping[str, float]) -> np.ndarray:
        names = ("hr_mean_90", "hr_std_90", "activity_counts_90", "mag_std_30")
        hr_mean, hr_std, counts, recent_std = _check_finite(features, names)[0]

        activity = min(counts / ACTIVITY_SCALE, 5.0) + 10.0 * recent_std
        hr_delta = hr_mean - self.resting_hr

        awake = 4.0 * activity + 0.10 * hr_delta
        core = 1.0
        deep = 1.5 - 6.0 * activity - 0.08 * hr_delta - 0.30 * hr_std
        rem = 0.5 - 4.0 * activity + 0.40 * hr_std + 0.03 * hr_delta
        return np.array([awake, core, deep, rem], dtype=np.float64)

    def predict(self, features: Mapping[str, float]) -> StagePrediction:
        probs = softmax(self.scores(features) / self.temperature)
        probabilities = _normalize([int(lbl) for lbl in HEURISTIC_LABELS], probs)
        label = max(probabilities, key=probabilities.get)
        return StagePrediction(label=label, probabilities=probabilities)
