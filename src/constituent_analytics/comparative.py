from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from .errors import ComputationError, InvalidParameterError
from .models import PERIOD_TYPES, ComparativeAnalytics, PeriodBounds, PeriodComparison, PeriodTrend
from .store import AnalyticsStore
from .timeseries import shift_month
from .utils import to_float, to_int

logger = logging.getLogger(__name__)

STABLE_CHANGE_PERCENT = 5.0


def _month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1)


def _month_end(year: int, month: int) -> datetime:
    next_year, next_month = shift_month(year, month, 1)
    return _month_start(next_year, next_month) - timedelta(microseconds=1)


def period_bounds(period_type: str, now: datetime) -> PeriodBounds:
    """Calendar-aligned current and previous periods containing ``now``."""
    if period_type == "month":
        prev_year, prev_month = shift_month(now.year, now.month, -1)
        return PeriodBounds(
            period_type="month",
            current_start=_month_start(now.year, now.month),
            current_end=_month_end(now.year, now.month),
            previous_start=_month_start(prev_year, prev_month),
            previous_end=_month_end(prev_year, prev_month),
            current_label=f"{now.year:04d}-{now.month:02d}",
            previous_label=f"{prev_year:04d}-{prev_month:02d}",
        )
    if period_type == "quarter":
        quarter = (now.month - 1) // 3
        first_month = quarter * 3 + 1
        prev_year, prev_first = shift_month(now.year, first_month, -3)
        return PeriodBounds(
            period_type="quarter",
            current_start=_month_start(now.year, first_month),
            current_end=_month_end(now.year, first_month + 2),
            previous_start=_month_start(prev_year, prev_first),
            previous_end=_month_end(prev_year, prev_first + 2),
            current_label=f"{now.year:04d}-Q{quarter + 1}",
            previous_label=f"{prev_year:04d}-Q{(prev_first - 1) // 3 + 1}",
        )
    if period_type == "year":
        return PeriodBounds(
            period_type="year",
            current_start=_month_start(now.year, 1),
            current_end=_month_end(now.year, 12),
            previous_start=_month_start(now.year - 1, 1),
            previous_end=_month_end(now.year - 1, 12),
            current_label=f"{now.year:04d}",
            previous_label=f"{now.year - 1:04d}",
        )
    raise InvalidParameterError(f"Unsupported period type: {period_type}", field="period_type")


def compare(current: float, previous: float) -> PeriodComparison:
    change = current - previous
    change_percent = round(change / previous * 100, 2) if previous else 0.0
    trend: PeriodTrend = "stable"
    if change_percent > STABLE_CHANGE_PERCENT:
        trend = "up"
    elif change_percent < -STABLE_CHANGE_PERCENT:
        trend = "down"
    return PeriodComparison(
        current=current,
        previous=previous,
        change=round(change, 2),
        change_percent=change_percent,
        trend=trend,
    )


def _by_period(rows: List[Mapping[str, Any]]) -> Dict[str, Mapping[str, Any]]:
    return {row["period"]: row for row in rows if row.get("period")}


async def get_comparative_analytics(
    store: AnalyticsStore, period_type: str, now: Optional[datetime] = None
) -> ComparativeAnalytics:
    if period_type not in PERIOD_TYPES:
        raise InvalidParameterError(f"Unsupported period type: {period_type}", field="period_type")
    bounds = period_bounds(period_type, now or datetime.now())

    try:
        donation_rows, contact_rows, event_rows, hour_rows = await asyncio.gather(
            asyncio.to_thread(store.donations_by_period, bounds),
            asyncio.to_thread(store.new_contacts_by_period, bounds),
            asyncio.to_thread(store.events_by_period, bounds),
            asyncio.to_thread(store.volunteer_hours_by_period, bounds),
        )
        donations = _by_period(donation_rows)
        contacts = _by_period(contact_rows)
        events = _by_period(event_rows)
        hours = _by_period(hour_rows)

        def pair(rows: Dict[str, Mapping[str, Any]], column: str, parse=to_float) -> PeriodComparison:
            current = parse(rows.get("current", {}).get(column))
            previous = parse(rows.get("previous", {}).get(column))
            return compare(current, previous)

        metrics = {
            "total_donations": pair(donations, "total_amount"),
            "donation_count": pair(donations, "count", to_int),
            "average_donation": pair(donations, "average_amount"),
            "new_contacts": pair(contacts, "count", to_int),
            "total_events": pair(events, "count", to_int),
            "volunteer_hours": pair(hours, "hours"),
        }
    except Exception as exc:
        logger.error("Error getting comparative analytics for %s: %s", period_type, exc, exc_info=True)
        raise ComputationError("comparative analytics", details={"period_type": period_type}) from exc

    return ComparativeAnalytics(
        period_type=bounds.period_type,
        current_period=bounds.current_label,
        previous_period=bounds.previous_label,
        metrics=metrics,
    )
