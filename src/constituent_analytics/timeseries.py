"""
Month-bucketed, organisation-wide series.

Every builder returns exactly ``months`` points, one per calendar month ending
at the month of ``now``. Months without activity are filled with zeros.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import ComputationError, InvalidParameterError
from .models import (
    METRIC_TYPES,
    DonationTrendPoint,
    EventAttendanceTrendPoint,
    TimeSeriesPoint,
    VolunteerHoursTrendPoint,
)
from .store import AnalyticsStore
from .utils import month_key, to_float, to_int

logger = logging.getLogger(__name__)

# metric type -> (display name, projected field)
METRIC_SERIES: Dict[str, Tuple[str, str]] = {
    "donations": ("Total Donations", "amount"),
    "volunteer_hours": ("Volunteer Hours", "hours"),
    "event_attendance": ("Event Attendance", "total_attendance"),
}


def shift_month(year: int, month: int, offset: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def window_start(months: int, now: datetime) -> datetime:
    """First instant of the earliest month in an ``months``-long window ending at ``now``."""
    if months < 1:
        raise InvalidParameterError("months must be at least 1", field="months")
    year, month = shift_month(now.year, now.month, -(months - 1))
    return now.replace(year=year, month=month, day=1, hour=0, minute=0, second=0, microsecond=0)


def month_keys(months: int, now: datetime) -> List[str]:
    if months < 1:
        raise InvalidParameterError("months must be at least 1", field="months")
    return [month_key(*shift_month(now.year, now.month, offset)) for offset in range(-(months - 1), 1)]


def _index_rows(rows: Sequence[Mapping[str, Any]]) -> Dict[str, Mapping[str, Any]]:
    return {month_key(row["year"], row["month"]): row for row in rows}


def _percent(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def build_donation_trend(
    rows: Sequence[Mapping[str, Any]], months: int, now: datetime
) -> List[DonationTrendPoint]:
    indexed = _index_rows(rows)
    points = []
    for key in month_keys(months, now):
        row = indexed.get(key, {})
        points.append(
            DonationTrendPoint(
                month=key,
                amount=to_float(row.get("amount")),
                count=to_int(row.get("count")),
            )
        )
    return points


def build_event_attendance_trend(
    rows: Sequence[Mapping[str, Any]], months: int, now: datetime
) -> List[EventAttendanceTrendPoint]:
    indexed = _index_rows(rows)
    points = []
    for key in month_keys(months, now):
        row = indexed.get(key, {})
        registrations = to_int(row.get("total_registrations"))
        attendance = to_int(row.get("total_attendance"))
        capacity = to_int(row.get("total_capacity"))
        points.append(
            EventAttendanceTrendPoint(
                month=key,
                total_events=to_int(row.get("total_events")),
                total_registrations=registrations,
                total_attendance=attendance,
                capacity_utilization=_percent(registrations, capacity),
                attendance_rate=_percent(attendance, registrations),
            )
        )
    return points


def build_volunteer_hours_trend(
    rows: Sequence[Mapping[str, Any]], months: int, now: datetime
) -> List[VolunteerHoursTrendPoint]:
    indexed = _index_rows(rows)
    points = []
    for key in month_keys(months, now):
        row = indexed.get(key, {})
        points.append(
            VolunteerHoursTrendPoint(
                month=key,
                hours=to_float(row.get("hours")),
                active_volunteers=to_int(row.get("active_volunteers")),
            )
        )
    return points


_SERIES_SOURCES: Dict[str, Tuple[str, str, Callable[..., List[Any]]]] = {
    "donations": ("donation trends", "monthly_donation_totals", build_donation_trend),
    "event_attendance": ("event attendance trends", "monthly_event_attendance", build_event_attendance_trend),
    "volunteer_hours": ("volunteer hours trends", "monthly_volunteer_hours", build_volunteer_hours_trend),
}


def _check_metric_type(metric_type: str) -> None:
    if metric_type not in METRIC_TYPES:
        raise InvalidParameterError(f"Unsupported metric type: {metric_type}", field="metric_type")


async def get_series(
    store: AnalyticsStore, metric_type: str, months: int, now: Optional[datetime] = None
) -> List[Any]:
    """Query and gap-fill the full-row series for ``metric_type``."""
    _check_metric_type(metric_type)
    now = now or datetime.now()
    subject, query_name, builder = _SERIES_SOURCES[metric_type]
    since = window_start(months, now)
    try:
        rows = await asyncio.to_thread(getattr(store, query_name), since)
        return builder(rows, months, now)
    except Exception as exc:
        logger.error("Error building %s for %s months: %s", subject, months, exc, exc_info=True)
        raise ComputationError(subject, details={"metric_type": metric_type, "months": months}) from exc


async def get_donation_trends(
    store: AnalyticsStore, months: int = 12, now: Optional[datetime] = None
) -> List[DonationTrendPoint]:
    return await get_series(store, "donations", months, now)


async def get_event_attendance_trends(
    store: AnalyticsStore, months: int = 12, now: Optional[datetime] = None
) -> List[EventAttendanceTrendPoint]:
    return await get_series(store, "event_attendance", months, now)


async def get_volunteer_hours_trends(
    store: AnalyticsStore, months: int = 12, now: Optional[datetime] = None
) -> List[VolunteerHoursTrendPoint]:
    return await get_series(store, "volunteer_hours", months, now)


def project(metric_type: str, rows: Sequence[Any]) -> List[TimeSeriesPoint]:
    """
    Reduce full series rows to the single value the trend and anomaly engines read.

    Accepts either the point records or their ``as_dict()`` form, so cached
    series can be fed back in unchanged.
    """
    _check_metric_type(metric_type)
    _, value_field = METRIC_SERIES[metric_type]
    points = []
    for row in rows:
        data = row if isinstance(row, Mapping) else row.as_dict()
        points.append(TimeSeriesPoint(period=data["month"], value=to_float(data.get(value_field))))
    return points


def metric_display_name(metric_type: str) -> str:
    _check_metric_type(metric_type)
    return METRIC_SERIES[metric_type][0]
