"""
Per-entity metric collectors.

Each collector runs its store queries in a worker thread and turns the raw
rows into a frozen metrics record. Driver values are coerced here, once, so
nothing downstream sees textual or ``Decimal`` numerics.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

from .errors import ComputationError, InvalidParameterError
from .models import (
    ENTITY_TYPES,
    AmountBreakdown,
    DonationMetrics,
    EventMetrics,
    RecentDonation,
    RecentEvent,
    TaskMetrics,
    VolunteerActivity,
    VolunteerMetrics,
)
from .store import TASK_PRIORITIES, TASK_STATUSES, AnalyticsStore
from .timeseries import window_start
from .utils import month_key, to_date, to_datetime, to_float, to_int, to_str_list

logger = logging.getLogger(__name__)

RECENT_ITEMS = 5
VOLUNTEER_HISTORY_MONTHS = 12

T = TypeVar("T")


def _check_entity_type(entity_type: str) -> None:
    if entity_type not in ENTITY_TYPES:
        raise InvalidParameterError(f"Unsupported entity type: {entity_type}", field="entity_type")


async def _collect(subject: str, builder: Callable[..., T], *args: Any, **context: Any) -> T:
    try:
        return await asyncio.to_thread(builder, *args)
    except Exception as exc:
        logger.error("Error getting %s for %s: %s", subject, context, exc, exc_info=True)
        raise ComputationError(subject, details=context) from exc


def _build_donation_metrics(store: AnalyticsStore, entity_type: str, entity_id: str) -> DonationMetrics:
    stats = store.donation_stats(entity_type, entity_id)
    by_method = store.donations_by_payment_method(entity_type, entity_id)
    by_year = store.donations_by_year(entity_type, entity_id)
    recent = store.recent_donations(entity_type, entity_id, limit=RECENT_ITEMS)

    return DonationMetrics(
        total_amount=to_float(stats.get("total_amount")),
        total_count=to_int(stats.get("total_count")),
        average_amount=to_float(stats.get("average_amount")),
        first_donation_date=to_datetime(stats.get("first_donation_date")),
        last_donation_date=to_datetime(stats.get("last_donation_date")),
        largest_donation=to_float(stats.get("largest_donation")),
        recurring_donations=to_int(stats.get("recurring_donations")),
        recurring_amount=to_float(stats.get("recurring_amount")),
        by_payment_method={
            row.get("payment_method") or "unknown": AmountBreakdown(
                count=to_int(row.get("count")), amount=to_float(row.get("amount"))
            )
            for row in by_method
        },
        by_year={
            str(to_int(row.get("year"))): AmountBreakdown(
                count=to_int(row.get("count")), amount=to_float(row.get("amount"))
            )
            for row in by_year
        },
        recent_donations=tuple(
            RecentDonation(
                donation_id=str(row["donation_id"]),
                amount=to_float(row.get("amount")),
                donation_date=to_datetime(row.get("donation_date")),
                payment_method=row.get("payment_method"),
            )
            for row in recent
        ),
    )


def _build_event_metrics(store: AnalyticsStore, entity_type: str, entity_id: str) -> EventMetrics:
    stats = store.registration_stats(entity_type, entity_id)
    by_type = store.registrations_by_event_type(entity_type, entity_id)
    recent = store.recent_registrations(entity_type, entity_id, limit=RECENT_ITEMS)

    registrations = to_int(stats.get("total_registrations"))
    attended = to_int(stats.get("events_attended"))
    return EventMetrics(
        total_registrations=registrations,
        events_attended=attended,
        no_shows=to_int(stats.get("no_shows")),
        attendance_rate=attended / registrations if registrations else 0.0,
        by_event_type={row.get("event_type") or "unknown": to_int(row.get("count")) for row in by_type},
        recent_events=tuple(
            RecentEvent(
                event_id=str(row["event_id"]),
                event_name=row.get("event_name"),
                event_date=to_datetime(row.get("event_date")),
                status=row.get("status"),
            )
            for row in recent
        ),
    )


def _build_volunteer_metrics(store: AnalyticsStore, contact_id: str, now: datetime) -> Optional[VolunteerMetrics]:
    volunteer = store.active_volunteer(contact_id)
    if volunteer is None:
        return None

    volunteer_id = str(volunteer["volunteer_id"])
    assignments = store.volunteer_assignment_stats(volunteer_id)
    hours = store.volunteer_total_hours(volunteer_id)
    monthly = store.volunteer_hours_by_month(volunteer_id, window_start(VOLUNTEER_HISTORY_MONTHS, now))
    recent = store.recent_volunteer_activities(volunteer_id, limit=RECENT_ITEMS)

    return VolunteerMetrics(
        volunteer_id=volunteer_id,
        total_hours=to_float(hours.get("total_hours")),
        total_assignments=to_int(assignments.get("total_assignments")),
        completed_assignments=to_int(assignments.get("completed_assignments")),
        active_assignments=to_int(assignments.get("active_assignments")),
        skills=tuple(to_str_list(volunteer.get("skills"))),
        availability_status=volunteer.get("availability_status"),
        volunteer_status=volunteer.get("volunteer_status"),
        volunteer_since=to_datetime(volunteer.get("volunteer_since")),
        hours_by_month={
            month_key(row["year"], row["month"]): to_float(row.get("hours"))
            for row in sorted(monthly, key=lambda item: (to_int(item["year"]), to_int(item["month"])))
        },
        recent_activities=tuple(
            VolunteerActivity(
                activity_id=str(row["activity_id"]),
                activity_date=to_date(row.get("activity_date")),
                hours=to_float(row.get("hours")),
                description=row.get("description"),
                is_verified=bool(row.get("is_verified")),
            )
            for row in recent
        ),
    )


def _build_task_metrics(store: AnalyticsStore, entity_type: str, entity_id: str, now: datetime) -> TaskMetrics:
    stats = store.task_stats(entity_type, entity_id, now)
    return TaskMetrics(
        total_tasks=to_int(stats.get("total_tasks")),
        completed_tasks=to_int(stats.get("completed_tasks")),
        pending_tasks=to_int(stats.get("pending_tasks")),
        overdue_tasks=to_int(stats.get("overdue_tasks")),
        by_priority={name: to_int(stats.get(f"priority_{name}")) for name in TASK_PRIORITIES},
        by_status={name: to_int(stats.get(f"status_{name}")) for name in TASK_STATUSES},
    )


async def get_donation_metrics(store: AnalyticsStore, entity_type: str, entity_id: str) -> DonationMetrics:
    _check_entity_type(entity_type)
    return await _collect(
        "donation metrics",
        _build_donation_metrics,
        store,
        entity_type,
        entity_id,
        entity_type=entity_type,
        entity_id=entity_id,
    )


async def get_event_metrics(store: AnalyticsStore, entity_type: str, entity_id: str) -> EventMetrics:
    _check_entity_type(entity_type)
    return await _collect(
        "event metrics",
        _build_event_metrics,
        store,
        entity_type,
        entity_id,
        entity_type=entity_type,
        entity_id=entity_id,
    )


async def get_volunteer_metrics(
    store: AnalyticsStore, contact_id: str, now: Optional[datetime] = None
) -> Optional[VolunteerMetrics]:
    """Return ``None`` when the contact has no active volunteer record."""
    return await _collect(
        "volunteer metrics",
        _build_volunteer_metrics,
        store,
        contact_id,
        now or datetime.now(),
        contact_id=contact_id,
    )


async def get_task_metrics(
    store: AnalyticsStore, entity_type: str, entity_id: str, now: Optional[datetime] = None
) -> TaskMetrics:
    _check_entity_type(entity_type)
    return await _collect(
        "task metrics",
        _build_task_metrics,
        store,
        entity_type,
        entity_id,
        now or datetime.now(),
        entity_type=entity_type,
        entity_id=entity_id,
    )
