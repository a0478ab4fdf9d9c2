"""Tests for the statistical summary and threshold anomaly detection."""

import pytest

from constituent_analytics.anomalies import (
    calculate_statistics,
    classify_point,
    detect_anomalies,
    severity_for,
    thresholds,
)
from constituent_analytics.errors import NoDataError
from constituent_analytics.models import TimeSeriesPoint


def _series(values):
    return [TimeSeriesPoint(period=f"p{index:02d}", value=value) for index, value in enumerate(values)]


class TestStatistics:
    def test_population_statistics(self):
        stats = calculate_statistics([2, 4, 4, 4, 5, 5, 7, 9])
        assert stats.mean == 5
        assert stats.std_deviation == pytest.approx(2.0)
        assert stats.median == 4.5
        assert stats.min == 2
        assert stats.max == 9

    def test_odd_length_median(self):
        assert calculate_statistics([3, 1, 2]).median == 2

    def test_empty_sample(self):
        with pytest.raises(NoDataError):
            calculate_statistics([])


class TestClassification:
    def test_five_deviations_above_is_high_spike(self):
        assert classify_point(20, mean=10, std_deviation=2, sensitivity=2.0) == ("spike", "high")

    def test_inside_band_is_not_anomalous(self):
        assert classify_point(13.9, mean=10, std_deviation=2, sensitivity=2.0) is None
        assert classify_point(14, mean=10, std_deviation=2, sensitivity=2.0) is None

    def test_drop_below_lower_threshold(self):
        assert classify_point(70, mean=100, std_deviation=10, sensitivity=2.0) == ("drop", "medium")

    @pytest.mark.parametrize("std_devs,severity", [(3.1, "high"), (3.0, "medium"), (2.6, "medium"), (2.5, "low")])
    def test_severity_cutoffs(self, std_devs, severity):
        assert severity_for(std_devs) == severity

    def test_lower_threshold_floors_at_zero(self):
        lower, upper = thresholds(mean=3, std_deviation=5, sensitivity=2.0)
        assert lower == 0
        assert upper == 13


class TestDetectAnomalies:
    def test_spike_five_deviations_above_population_mean(self):
        # 25 x 9.6 plus one 20: population mean 10, standard deviation 2
        result = detect_anomalies("Total Donations", _series([9.6] * 25 + [20]))
        summary = result.statistical_summary

        assert summary.mean == pytest.approx(10)
        assert summary.std_deviation == pytest.approx(2)
        assert summary.threshold_upper == pytest.approx(14)
        assert result.anomalies_detected == 1
        anomaly = result.anomalies[0]
        assert (anomaly.period, anomaly.value) == ("p25", 20)
        assert (anomaly.anomaly_type, anomaly.severity) == ("spike", "high")
        assert anomaly.expected_value == 10.0
        assert anomaly.deviation == 10.0
        assert anomaly.deviation_percent == 100.0

    def test_single_spike_in_steady_series(self):
        result = detect_anomalies("Volunteer Hours", _series([10] * 23 + [40]))

        assert result.total_periods == 24
        assert result.anomalies_detected == 1
        anomaly = result.anomalies[0]
        assert anomaly.period == "p23"
        assert anomaly.anomaly_type == "spike"
        assert anomaly.severity == "high"
        assert anomaly.expected_value == 11.25
        assert anomaly.deviation == 28.75
        assert anomaly.deviation_percent == pytest.approx(255.6)

    def test_thresholds_bracket_the_mean(self):
        values = [120, 80, 95, 400, 110, 0, 105, 90]
        result = detect_anomalies("Total Donations", _series(values), sensitivity=1.5)
        summary = result.statistical_summary

        assert 0 <= summary.threshold_lower <= summary.mean <= summary.threshold_upper
        for anomaly in result.anomalies:
            assert anomaly.value > summary.threshold_upper or anomaly.value < summary.threshold_lower
        assert result.sensitivity == 1.5

    def test_constant_series_has_no_anomalies(self):
        result = detect_anomalies("Event Attendance", _series([5, 5, 5, 5]))
        assert result.anomalies_detected == 0
        assert result.statistical_summary.std_deviation == 0

    def test_empty_series_fails(self):
        with pytest.raises(NoDataError):
            detect_anomalies("Total Donations", [])

    def test_serialised_anomaly_uses_type_key(self):
        payload = detect_anomalies("Volunteer Hours", _series([10] * 23 + [40])).as_dict()
        anomaly = payload["anomalies"][0]
        assert anomaly["type"] == "spike"
        assert "anomaly_type" not in anomaly
        assert payload["statistical_summary"]["threshold_upper"] > payload["statistical_summary"]["mean"]
