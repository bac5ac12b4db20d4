"""Tests for ppistream.analytics.smoothing -- MA, median, cascaded filters, EMA."""

import math

import pytest

from ppistream.analytics.smoothing import (
    moving_average,
    median_filter,
    cascaded_median_filter,
    exponential_moving_average,
    cascaded_smoothing_filter,
    moving_average_aggregate,
    median_filter_aggregate,
    cascaded_median_aggregate,
    ema_aggregate,
    cascaded_smoothing_aggregate,
)
from ppistream.buffer import WindowedBuffer
from ppistream.errors import ContractViolation

from tests.conftest import value_buffer


# ========================== moving average ==========================


class TestMovingAverage:
    def test_last_window(self):
        buf = value_buffer([800, 850, 820])
        assert moving_average(buf, 3) == pytest.approx(823.3333333333)

    def test_only_last_values(self):
        buf = value_buffer([100, 800, 850, 820])
        assert moving_average(buf, 2) == 835.0

    def test_insufficient_data(self):
        assert moving_average(value_buffer([800, 850]), 3) is None

    def test_after_wraparound(self):
        buf = value_buffer([1, 2, 3, 4, 5, 6, 7], capacity=4)
        assert moving_average(buf, 4) == 5.5

    def test_window_larger_than_capacity(self):
        buf = value_buffer([800] * 10, capacity=3)
        assert moving_average(buf, 4) is None

    @pytest.mark.parametrize("window", [0, -1, 2.5, True])
    def test_invalid_window(self, window):
        with pytest.raises(ContractViolation):
            moving_average(value_buffer([800, 850, 820]), window)

    def test_missing_column(self):
        with pytest.raises(ContractViolation):
            moving_average(value_buffer([800, 850, 820]), 2, "other")

    def test_non_numeric_column(self):
        buf = WindowedBuffer.create({"PpInMs": "string"}, 5)
        for v in ("800", "850"):
            buf = buf.insert({"PpInMs": v})
        with pytest.raises(ContractViolation):
            moving_average(buf, 2)


# ========================== median filter ==========================


class TestMedianFilter:
    def test_odd_window(self):
        buf = value_buffer([810, 1500, 820, 830])
        assert median_filter(buf, 3) == 830.0

    def test_odd_window_suppresses_outlier(self):
        buf = value_buffer([800, 1200, 820])
        assert median_filter(buf, 3) == 820.0

    def test_even_window_upper_middle(self):
        # sorted [810, 820, 830, 1500], index 2
        buf = value_buffer([810, 1500, 820, 830])
        assert median_filter(buf, 4) == 830.0

    def test_even_window_is_not_mean(self):
        buf = value_buffer([10, 20])
        assert median_filter(buf, 2) == 20.0

    def test_window_one(self):
        assert median_filter(value_buffer([800, 900]), 1) == 900.0

    def test_insufficient_data(self):
        assert median_filter(value_buffer([800, 850]), 3) is None

    def test_invalid_window(self):
        with pytest.raises(ContractViolation):
            median_filter(value_buffer([800]), 0)


# ========================== cascaded median ==========================


class TestCascadedMedianFilter:
    def test_two_outliers_suppressed(self):
        buf = value_buffer([800, 1500, 810, 2000, 820])
        result = cascaded_median_filter(buf)
        assert 800 <= result <= 830
        # stage one -> [800, 810, 1500, 820, 820]
        assert result == 820.0

    def test_uses_last_five(self):
        buf = value_buffer([5000, 5000, 800, 810, 820, 830, 840])
        assert cascaded_median_filter(buf) == 820.0

    def test_clean_signal(self):
        buf = value_buffer([800, 810, 820, 830, 840])
        assert cascaded_median_filter(buf) == 820.0

    def test_insufficient_data(self):
        assert cascaded_median_filter(value_buffer([800, 810, 820, 830])) is None

    def test_capacity_below_five(self):
        assert cascaded_median_filter(value_buffer([800] * 8, capacity=4)) is None


# ========================== EMA ==========================


class TestExponentialMovingAverage:
    def test_alpha_one_ignores_history(self):
        assert exponential_moving_average(value_buffer([800, 900]), 1.0) == 900.0

    def test_single_value_is_seed(self):
        assert exponential_moving_average(value_buffer([812]), 0.3) == 812.0

    def test_fold_from_oldest(self):
        # 800 -> 0.3*850 + 0.7*800 = 815 -> 0.3*820 + 0.7*815 = 816.5
        result = exponential_moving_average(value_buffer([800, 850, 820]), 0.3)
        assert result == pytest.approx(816.5)

    def test_only_buffered_values(self):
        buf = value_buffer([5000, 800, 900], capacity=2)
        assert exponential_moving_average(buf, 0.5) == 850.0

    def test_empty_buffer(self):
        assert exponential_moving_average(value_buffer([]), 0.3) is None

    @pytest.mark.parametrize("alpha", [0.0, -0.1, 1.5, math.nan])
    def test_invalid_alpha(self, alpha):
        with pytest.raises(ContractViolation):
            exponential_moving_average(value_buffer([800, 900]), alpha)

    @pytest.mark.parametrize("alpha", ["0.3", None, True])
    def test_non_numeric_alpha(self, alpha):
        with pytest.raises(ContractViolation):
            exponential_moving_average(value_buffer([800, 900]), alpha)
        with pytest.raises(ContractViolation):
            ema_aggregate(alpha)

    def test_invalid_alpha_reported_before_data_check(self):
        with pytest.raises(ContractViolation):
            exponential_moving_average(value_buffer([]), 2.0)


# ========================== cascaded smoothing ==========================


class TestCascadedSmoothingFilter:
    def test_median_then_average(self):
        # last 6 values; median width 3 fills positions 1..4, edges pass through
        # values   [800, 1500, 810, 820, 830, 840]
        # filtered [800,  810, 820, 820, 830, 840]
        buf = value_buffer([800, 1500, 810, 820, 830, 840])
        assert cascaded_smoothing_filter(buf, 3, 3) == pytest.approx((820 + 830 + 840) / 3)

    def test_outlier_removed_from_average(self):
        buf = value_buffer([800, 810, 2000, 820, 830, 840])
        # filtered [800, 810, 820, 830, 830, 840] -> mean of last 3
        assert cascaded_smoothing_filter(buf, 3, 3) == pytest.approx((830 + 830 + 840) / 3)

    def test_edge_passes_through(self):
        # The newest value has no full centered window and is kept as is
        buf = value_buffer([800, 800, 800, 800, 2000])
        assert cascaded_smoothing_filter(buf, 3, 1) == 2000.0

    def test_even_median_window(self):
        # width 4, half 2: windows start at 0..3 -> positions 2..5, 6 is an edge
        # values   [10, 50, 20, 40, 30, 35, 45]
        # filtered [10, 50, 40, 40, 35, 40, 45] (upper middle of each window)
        buf = value_buffer([10, 50, 20, 40, 30, 35, 45])
        assert cascaded_smoothing_filter(buf, 4, 3) == pytest.approx(40.0)

    def test_uses_only_needed_values(self):
        buf = value_buffer([9999, 800, 800, 800, 800])
        assert cascaded_smoothing_filter(buf, 3, 1) == 800.0

    def test_insufficient_data(self):
        assert cascaded_smoothing_filter(value_buffer([800] * 5), 3, 3) is None

    @pytest.mark.parametrize("median_window, ma_window", [(0, 3), (3, 0), (-1, 2)])
    def test_invalid_windows(self, median_window, ma_window):
        with pytest.raises(ContractViolation):
            cascaded_smoothing_filter(value_buffer([800] * 10), median_window, ma_window)


# ========================== aggregate factories ==========================


class TestAggregateFactories:
    @pytest.fixture
    def buf(self):
        return value_buffer([800, 1500, 810, 2000, 820, 830, 840])

    def test_factories_match_functions(self, buf):
        assert moving_average_aggregate(3)(buf) == moving_average(buf, 3)
        assert median_filter_aggregate(3)(buf) == median_filter(buf, 3)
        assert cascaded_median_aggregate()(buf) == cascaded_median_filter(buf)
        assert ema_aggregate(0.3)(buf) == exponential_moving_average(buf, 0.3)
        assert cascaded_smoothing_aggregate(3, 2)(buf) == cascaded_smoothing_filter(buf, 3, 2)

    def test_factories_validate_eagerly(self):
        with pytest.raises(ContractViolation):
            moving_average_aggregate(0)
        with pytest.raises(ContractViolation):
            median_filter_aggregate(-2)
        with pytest.raises(ContractViolation):
            ema_aggregate(0.0)
        with pytest.raises(ContractViolation):
            cascaded_smoothing_aggregate(3, 0)

    def test_custom_column(self):
        buf = WindowedBuffer.create({"rr": "float"}, 5)
        for v in (800, 900):
            buf = buf.insert({"rr": v})
        assert moving_average_aggregate(2, "rr")(buf) == 850.0

    def test_names(self):
        assert moving_average_aggregate(4).__name__ == "moving_average_4"
        assert cascaded_median_aggregate().__name__ == "cascaded_median"
