"""Feature extraction and classification for sleep-stage prediction.

Modules:
    features   -- Tail windowing and per-window HR / accelerometer features
    classifier -- Classifier contract, joblib estimator adapter, heuristic scorer
"""

from sleepstage.analytics.features import (
    FEATURE_NAMES,
    LONG_WINDOW,
    SHORT_WINDOW,
    tail_windows,
    hr_features,
    accel_features,
    feature_vector,
)
from sleepstage.analytics.classifier import (
    Classifier,
    ClassifierError,
    StagePrediction,
    EstimatorClassifier,
    HeuristicStageClassifier,
)

__all__ = [
    # features
    "FEATURE_NAMES",
    "LONG_WINDOW",
    "SHORT_WINDOW",
    "tail_windows",
    "hr_features",
    "accel_features",
    "feature_vector",
    # classifier
    "Classifier",
    "ClassifierError",
    "StagePrediction",
    "EstimatorClassifier",
    "HeuristicStageClassifier",
]
