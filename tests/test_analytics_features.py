"""Tests for sleepstage.analytics.features -- windowing and window features."""

import numpy as np
import pytest

from sleepstage.analytics.features import (
    FEATURE_NAMES,
    LONG_WINDOW,
    SHORT_WINDOW,
    AccelFeatures,
    HRFeatures,
    accel_features,
    as_array,
    feature_vector,
    hr_features,
    tail_windows,
    window_features,
)

from tests.conftest import make_samples


# ========================== Windowing ==========================


class TestTailWindows:
    def test_exact_length(self):
        samples = make_samples(90)
        long_w, short_w = tail_windows(samples)
        assert long_w == samples
        assert short_w == samples[-30:]

    def test_takes_most_recent(self):
        samples = make_samples(120)
        long_w, short_w = tail_windows(samples)
        assert long_w == samples[30:]
        assert short_w == samples[90:]

    def test_short_is_tail_of_long(self):
        long_w, short_w = tail_windows(make_samples(100))
        assert long_w[-SHORT_WINDOW:] == short_w

    def test_too_few_samples(self):
        with pytest.raises(ValueError):
            tail_windows(make_samples(89))

    def test_short_longer_than_long(self):
        with pytest.raises(ValueError):
            tail_windows(make_samples(90), long_size=10, short_size=20)


# ========================== HR features ==========================


class TestHRFeatures:
    def test_empty(self):
        f = hr_features([])
        assert f == HRFeatures(mean_hr=0.0, std_hr=0.0, min_hr=0.0, max_hr=0.0)

    def test_single_value(self):
        f = hr_features([72.0])
        assert f.mean_hr == 72.0
        assert f.std_hr == 0.0

    def test_known_values(self):
        f = hr_features([60.0, 70.0, 80.0])
        assert f.mean_hr == 70.0
        assert f.min_hr == 60.0
        assert f.max_hr == 80.0
        assert abs(f.std_hr - 8.16) < 0.01


# ========================== Accel features ==========================


class TestAccelFeatures:
    def test_empty(self):
        f = accel_features([])
        assert isinstance(f, AccelFeatures)
        assert f.mean_magnitude == 0.0
        assert f.activity_counts == 0.0

    def test_still_device(self):
        f = accel_features([(0.0, 0.0, -1.0)] * 20)
        assert f.mean_z == -1.0
        assert f.var_x == 0.0
        assert f.mean_magnitude == 1.0
        assert f.std_magnitude == 0.0
        assert f.activity_counts == 0.0

    def test_per_axis_variance(self):
        f = accel_features([(1.0, 0.0, 0.0), (-1.0, 0.0, 0.0)])
        assert f.mean_x == 0.0
        assert f.var_x == 1.0
        assert f.var_y == 0.0

    def test_movement_counts(self):
        samples = [(0.0, 0.0, 1.0), (0.0, 0.0, 2.0)] * 5
        f = accel_features(samples)
        # 9 deltas of 1g each, all above threshold
        assert f.activity_counts == 9.0
        assert f.zero_crossing_rate == 1.0

    def test_small_jitter_below_threshold(self):
        samples = [(0.0, 0.0, 1.0), (0.0, 0.0, 1.01)] * 5
        assert accel_features(samples).activity_counts == 0.0


# ========================== Classifier input ==========================


class TestFeatureVector:
    def test_names(self):
        assert len(FEATURE_NAMES) == 28
        assert FEATURE_NAMES[0] == "hr_mean_90"
        assert "activity_counts_30" in FEATURE_NAMES

    def test_keys_match_names(self):
        long_w, short_w = tail_windows(make_samples(LONG_WINDOW))
        fv = feature_vector(long_w, short_w)
        assert tuple(fv) == FEATURE_NAMES

    def test_windows_contribute_separately(self):
        samples = make_samples(60, heart_rate=50.0) + make_samples(30, offset=60, heart_rate=80.0)
        long_w, short_w = tail_windows(samples)
        fv = feature_vector(long_w, short_w)
        assert fv["hr_mean_30"] == 80.0
        assert fv["hr_mean_90"] == 60.0
        assert fv["hr_min_90"] == 50.0

    def test_window_features_length(self):
        assert len(window_features(make_samples(5))) * 2 == len(FEATURE_NAMES)

    def test_as_array_order(self):
        fv = {name: float(i) for i, name in enumerate(FEATURE_NAMES)}
        arr = as_array(fv)
        assert arr.shape == (1, len(FEATURE_NAMES))
        assert np.array_equal(arr[0], np.arange(len(FEATURE_NAMES), dtype=float))

    def test_as_array_missing_key(self):
        with pytest.raises(KeyError):
            as_array({"hr_mean_90": 1.0})
