"""Tests for the QC statistics functions.

Hand-computed reference values plus cross-validation against raw numpy.
"""

import math
from dataclasses import FrozenInstanceError

import numpy as np
import pytest

from labqc.core.exceptions import EmptyDatasetError
from labqc.utils.statistics import (
    basic_statistics,
    calculate_limit_bounds,
    capability_indices,
    detect_trend,
    filter_in_control,
    moving_averages,
    qc_statistics,
    sigma_metric,
    sufficiency_check,
    z_score,
    z_scores,
)


class TestZScore:

    def test_z_score(self):
        assert z_score(116.0, 100.0, 5.0) == pytest.approx(3.2)
        assert z_score(90.0, 100.0, 5.0) == pytest.approx(-2.0)

    def test_zero_sd(self):
        assert z_score(116.0, 100.0, 0.0) == 0.0

    def test_vectorised(self):
        assert z_scores([95.0, 100.0, 110.0], 100.0, 5.0) == pytest.approx([-1.0, 0.0, 2.0])

    def test_vectorised_zero_sd(self):
        assert z_scores([95.0, 110.0], 100.0, 0.0) == [0.0, 0.0]


class TestBasicStatistics:

    def test_reference_values(self):
        stats = basic_statistics([95.0, 100.0, 105.0])

        assert stats.mean == 100.0
        assert stats.standard_deviation == pytest.approx(5.0)
        assert stats.variance == pytest.approx(25.0)
        assert stats.count == 3
        assert stats.min == 95.0
        assert stats.max == 105.0
        assert stats.range == 10.0
        assert stats.cv == pytest.approx(5.0)

    def test_single_value(self):
        stats = basic_statistics([42.0])
        assert stats.mean == 42.0
        assert stats.standard_deviation == 0.0
        assert stats.cv == 0.0

    def test_zero_mean_cv(self):
        assert basic_statistics([-1.0, 1.0]).cv == 0.0

    def test_empty_raises(self):
        with pytest.raises(EmptyDatasetError, match="empty dataset"):
            basic_statistics([])

    def test_empty_is_value_error(self):
        with pytest.raises(ValueError):
            basic_statistics([])

    def test_matches_numpy(self):
        rng = np.random.default_rng(42)
        data = rng.normal(250.0, 12.0, size=60)

        stats = basic_statistics(data.tolist())

        assert stats.mean == pytest.approx(np.mean(data))
        assert stats.standard_deviation == pytest.approx(np.std(data, ddof=1))
        assert stats.variance == pytest.approx(np.var(data, ddof=1))
        assert stats.cv == pytest.approx(np.std(data, ddof=1) / np.mean(data) * 100)


class TestQCStatistics:

    def test_limits_from_data(self):
        stats = qc_statistics([95.0, 100.0, 105.0])
        limits = stats.control_limits

        assert limits.limit_1s_lower == pytest.approx(95.0)
        assert limits.limit_1s_upper == pytest.approx(105.0)
        assert limits.limit_2s_upper == pytest.approx(110.0)
        assert limits.limit_3s_lower == pytest.approx(85.0)
        assert stats.outliers == []
        assert stats.in_control_count == 3

    def test_limits_from_target(self):
        stats = qc_statistics([100.0, 101.0, 120.0], target_mean=100.0, target_sd=5.0)

        assert stats.control_limits.limit_3s_upper == 115.0
        assert stats.outliers == [120.0]
        assert stats.in_control_count == 2
        assert stats.out_of_control_count == 1

    def test_value_on_3sd_bound_not_outlier(self):
        stats = qc_statistics([115.0, 100.0], target_mean=100.0, target_sd=5.0)
        assert stats.outliers == []

    def test_empty_raises(self):
        with pytest.raises(EmptyDatasetError):
            qc_statistics([])

    def test_bounds_helper(self):
        bounds = calculate_limit_bounds(10.0, 0.5)
        assert (bounds.limit_2s_lower, bounds.limit_2s_upper) == (9.0, 11.0)

    def test_bounds_are_immutable(self):
        bounds = calculate_limit_bounds(100.0, 5.0)
        with pytest.raises(FrozenInstanceError):
            bounds.limit_3s_upper = 0.0


class TestSufficiencyCheck:

    def test_below_minimum(self):
        report = sufficiency_check([100.0] * 19)
        assert report.sufficient is False
        assert report.points_count == 19
        assert report.required_points == 20
        assert report.message == "Need 1 more data points"

    def test_at_minimum(self):
        report = sufficiency_check([100.0] * 20)
        assert report.sufficient is True
        assert report.message == "Sufficient data for establishing limits"
        assert report.days_count is None

    def test_custom_minimum(self):
        assert sufficiency_check([1.0] * 5, min_points=5).sufficient is True

    def test_days_estimated_two_runs_per_day(self):
        report = sufficiency_check([100.0] * 21, min_days=11)
        assert report.days_count == 11
        assert report.required_days == 11
        assert report.sufficient is True

    def test_days_insufficient(self):
        report = sufficiency_check([100.0] * 20, min_days=15)
        assert report.sufficient is False
        assert report.message == "Need data from 5 more days"

    def test_points_reported_before_days(self):
        report = sufficiency_check([100.0] * 4, min_days=15)
        assert report.message == "Need 16 more data points"

    def test_empty_never_raises(self):
        assert sufficiency_check([]).sufficient is False


class TestFilterInControl:

    def test_filters_beyond_max_z(self):
        result = filter_in_control([100.0, 111.0, 89.0, 102.0], [0.0, 2.2, -2.2, 0.4])

        assert result.in_control_values == [100.0, 102.0]
        assert result.filtered_count == 2
        assert result.original_count == 4

    def test_boundary_kept(self):
        result = filter_in_control([110.0, 90.0], [2.0, -2.0])
        assert result.filtered_count == 0

    def test_custom_max_z(self):
        result = filter_in_control([100.0, 111.0], [0.0, 2.2], max_z=3.0)
        assert result.in_control_values == [100.0, 111.0]

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="same length"):
            filter_in_control([1.0, 2.0], [0.0])


class TestCapabilityIndices:

    def test_centred_process(self):
        idx = capability_indices([95.0, 100.0, 105.0], lsl=85.0, usl=115.0)
        assert idx.cp == pytest.approx(1.0)
        assert idx.cpk == pytest.approx(1.0)
        assert idx.pp == idx.cp
        assert idx.ppk == idx.cpk
        assert idx.cpm is None

    def test_off_centre_process(self):
        idx = capability_indices([95.0, 100.0, 105.0], lsl=90.0, usl=115.0)
        assert idx.cp == pytest.approx(25.0 / 30.0)
        assert idx.cpk == pytest.approx(10.0 / 15.0)

    def test_cpm_on_target(self):
        idx = capability_indices([95.0, 100.0, 105.0], lsl=85.0, usl=115.0, target=100.0)
        assert idx.cpm == pytest.approx(1.0)

    def test_cpm_off_target(self):
        idx = capability_indices([95.0, 100.0, 105.0], lsl=85.0, usl=115.0, target=105.0)
        assert idx.cpm == pytest.approx(30.0 / (6 * math.sqrt(50.0)))

    def test_zero_sd_is_infinite(self):
        idx = capability_indices([100.0, 100.0], lsl=90.0, usl=110.0)
        assert math.isinf(idx.cp)
        assert math.isinf(idx.cpk)


    def test_zero_sd_mean_on_limit_is_nan(self):
        idx = capability_indices([110.0, 110.0], lsl=90.0, usl=110.0)
        assert math.isinf(idx.cp)
        assert math.isnan(idx.cpk)
        assert math.isnan(idx.ppk)

class TestSigmaMetric:

    @pytest.mark.parametrize("tea, bias, cv, expected", [
        (10.0, 2.0, 2.0, 4.0),
        (10.0, -2.0, 2.0, 4.0),
        (20.0, 0.0, 2.5, 8.0),
        (6.0, 1.5, 1.5, 3.0),
    ])
    def test_reference_values(self, tea, bias, cv, expected):
        assert sigma_metric(tea, bias, cv) == pytest.approx(expected)

    @pytest.mark.parametrize("cv", [0.0, -1.0])
    def test_non_positive_cv(self, cv):
        with pytest.raises(ValueError, match="CV must be positive"):
            sigma_metric(10.0, 1.0, cv)


class TestTrendDetection:

    def test_moving_averages(self):
        assert moving_averages([1.0, 2.0, 3.0, 4.0, 5.0], 3) == pytest.approx([2.0, 3.0, 4.0])

    def test_moving_averages_short_series(self):
        assert moving_averages([1.0, 2.0], 3) == []

    def test_moving_averages_invalid_window(self):
        with pytest.raises(ValueError):
            moving_averages([1.0], 0)

    @pytest.mark.parametrize("window_size", [0, -3])
    def test_invalid_window_rejected(self, window_size):
        with pytest.raises(ValueError, match="Window size must be at least 1"):
            detect_trend([100.0] * 10, window_size=window_size)

    def test_insufficient_data(self):
        result = detect_trend([100.0] * 6)
        assert result.has_upward_trend is False
        assert result.has_downward_trend is False
        assert result.trend_strength == 0.0
        assert result.message == "Insufficient data for trend analysis"

    def test_single_window_has_no_slope(self):
        result = detect_trend([float(v) for v in range(7)])
        assert result.trend_strength == 0.0
        assert result.message == "No significant trend detected"

    def test_flat_series(self):
        result = detect_trend([100.0, 101.0, 99.0] * 6)
        assert result.has_upward_trend is False
        assert result.has_downward_trend is False

    def test_upward_trend(self):
        result = detect_trend([100.0 + i for i in range(20)])
        assert result.has_upward_trend is True
        assert result.trend_strength == pytest.approx(1.0)
        assert result.message == "Upward trend detected"

    def test_downward_trend(self):
        result = detect_trend([100.0 - 0.5 * i for i in range(20)])
        assert result.has_downward_trend is True
        assert result.trend_strength == pytest.approx(0.5)
        assert result.message == "Downward trend detected"

    def test_custom_threshold(self):
        values = [100.0 + 0.05 * i for i in range(20)]
        assert detect_trend(values).has_upward_trend is False
        assert detect_trend(values, slope_threshold=0.01).has_upward_trend is True


class TestStatisticalProperties:

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_sd_non_negative_and_mean_bounded(self, seed: int):
        rng = np.random.default_rng(seed)
        data = rng.normal(0.0, 50.0, size=int(rng.integers(1, 40))).tolist()

        stats = basic_statistics(data)

        assert stats.standard_deviation >= 0
        assert stats.min <= stats.mean <= stats.max

    @pytest.mark.parametrize("mean, sd", [(100.0, 5.0), (-3.2, 0.4), (0.0, 12.0)])
    def test_z_of_mean_is_zero(self, mean: float, sd: float):
        assert z_score(mean, mean, sd) == 0.0
