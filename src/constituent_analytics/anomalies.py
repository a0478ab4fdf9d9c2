"""
Threshold-based anomaly detection over a monthly series.

A point is anomalous when it falls outside ``mean ± k * stddev`` (the lower
bound floored at zero). Statistics are population statistics.
"""

from __future__ import annotations

from statistics import fmean, median, pstdev
from typing import Optional, Sequence, Tuple

from .errors import NoDataError
from .models import (
    Anomaly,
    AnomalyDetectionResult,
    AnomalyType,
    AnalysisPeriod,
    Severity,
    StatisticalSummary,
    TimeSeriesPoint,
)

DEFAULT_SENSITIVITY = 2.0
HIGH_SEVERITY_STD_DEVS = 3.0
MEDIUM_SEVERITY_STD_DEVS = 2.5


def calculate_statistics(values: Sequence[float]) -> StatisticalSummary:
    if not values:
        raise NoDataError("statistical summary")
    return StatisticalSummary(
        mean=fmean(values),
        median=float(median(values)),
        std_deviation=pstdev(values),
        min=float(min(values)),
        max=float(max(values)),
    )


def thresholds(mean: float, std_deviation: float, sensitivity: float) -> Tuple[float, float]:
    """Return ``(lower, upper)``."""
    band = sensitivity * std_deviation
    return max(0.0, mean - band), mean + band


def severity_for(std_devs_away: float) -> Severity:
    if std_devs_away > HIGH_SEVERITY_STD_DEVS:
        return "high"
    if std_devs_away > MEDIUM_SEVERITY_STD_DEVS:
        return "medium"
    return "low"


def classify_point(
    value: float, mean: float, std_deviation: float, sensitivity: float = DEFAULT_SENSITIVITY
) -> Optional[Tuple[AnomalyType, Severity]]:
    """Classify one observation against the band, or ``None`` when it lies inside it."""
    lower, upper = thresholds(mean, std_deviation, sensitivity)
    if lower <= value <= upper:
        return None
    anomaly_type: AnomalyType = "spike" if value > upper else "drop"
    std_devs_away = abs(value - mean) / std_deviation if std_deviation else 0.0
    return anomaly_type, severity_for(std_devs_away)


def detect_anomalies(
    metric_name: str, series: Sequence[TimeSeriesPoint], sensitivity: float = DEFAULT_SENSITIVITY
) -> AnomalyDetectionResult:
    if not series:
        raise NoDataError("anomaly detection")

    values = [point.value for point in series]
    stats = calculate_statistics(values)
    lower, upper = thresholds(stats.mean, stats.std_deviation, sensitivity)

    anomalies = []
    for point in series:
        classification = classify_point(point.value, stats.mean, stats.std_deviation, sensitivity)
        if classification is None:
            continue
        anomaly_type, severity = classification
        deviation = point.value - stats.mean
        anomalies.append(
            Anomaly(
                period=point.period,
                value=point.value,
                expected_value=round(stats.mean, 2),
                deviation=round(deviation, 2),
                deviation_percent=round(deviation / stats.mean * 100, 1) if stats.mean else 0.0,
                severity=severity,
                anomaly_type=anomaly_type,
            )
        )

    return AnomalyDetectionResult(
        metric_name=metric_name,
        total_periods=len(series),
        anomalies_detected=len(anomalies),
        anomalies=tuple(anomalies),
        statistical_summary=StatisticalSummary(
            mean=stats.mean,
            median=stats.median,
            std_deviation=stats.std_deviation,
            min=stats.min,
            max=stats.max,
            threshold_upper=upper,
            threshold_lower=lower,
        ),
        analysis_period=AnalysisPeriod(
            start_date=series[0].period,
            end_date=series[-1].period,
            period_count=len(series),
        ),
        sensitivity=sensitivity,
    )
