from __future__ import annotations

from dataclasses import dataclass
from statistics import fmean
from typing import List, Sequence

from .errors import NoDataError
from .models import AnalysisPeriod, TimeSeriesPoint, TrendAnalysis, TrendDataPoint, TrendDirection

STABLE_SLOPE = 0.01
SHORT_WINDOW = 7
LONG_WINDOW = 30


@dataclass(frozen=True)
class LinearFit:
    slope: float
    intercept: float
    r_squared: float


def moving_average(values: Sequence[float], window: int) -> List[float]:
    """
    Trailing mean over ``window`` points.

    Points before the first full window keep their raw value; there is no
    partial-window averaging.
    """
    if window < 1:
        raise ValueError("window must be at least 1")
    averages: List[float] = []
    for index, value in enumerate(values):
        if index < window - 1:
            averages.append(value)
        else:
            averages.append(fmean(values[index - window + 1 : index + 1]))
    return averages


def linear_regression(values: Sequence[float]) -> LinearFit:
    """Ordinary least squares of ``values`` against their index."""
    n = len(values)
    if n < 2:
        return LinearFit(slope=0.0, intercept=values[0] if values else 0.0, r_squared=0.0)

    mean_x = (n - 1) / 2
    mean_y = fmean(values)
    ss_xx = sum((x - mean_x) ** 2 for x in range(n))
    ss_xy = sum((x - mean_x) * (y - mean_y) for x, y in enumerate(values))
    slope = ss_xy / ss_xx
    intercept = mean_y - slope * mean_x

    ss_total = sum((y - mean_y) ** 2 for y in values)
    ss_residual = sum((y - (intercept + slope * x)) ** 2 for x, y in enumerate(values))
    r_squared = 1 - ss_residual / ss_total if ss_total else 0.0
    return LinearFit(slope=slope, intercept=intercept, r_squared=r_squared)


def classify_direction(slope: float) -> TrendDirection:
    if abs(slope) < STABLE_SLOPE:
        return "stable"
    return "increasing" if slope > 0 else "decreasing"


def analyze_trend(metric_name: str, series: Sequence[TimeSeriesPoint]) -> TrendAnalysis:
    if not series:
        raise NoDataError("trend analysis")

    values = [point.value for point in series]
    count = len(values)
    short = moving_average(values, min(SHORT_WINDOW, count))
    long = moving_average(values, min(LONG_WINDOW, count))
    fit = linear_regression(values)

    data_points = tuple(
        TrendDataPoint(
            period=point.period,
            value=point.value,
            moving_average=point.value,
            moving_average_7=short[index],
            moving_average_30=long[index],
        )
        for index, point in enumerate(series)
    )

    return TrendAnalysis(
        metric_name=metric_name,
        data_points=data_points,
        trend_direction=classify_direction(fit.slope),
        trend_strength=round(min(100.0, abs(fit.r_squared) * 100)),
        velocity=fit.slope,
        prediction_next_period=max(0, round(values[-1] + fit.slope)),
        analysis_period=AnalysisPeriod(
            start_date=series[0].period,
            end_date=series[-1].period,
            period_count=count,
        ),
    )
