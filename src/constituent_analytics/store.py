from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, case, create_engine, extract, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.sql import ColumnElement, Select
from sqlalchemy.sql.selectable import FromClause

from .config import DatabaseConfig, load_config
from .models import PeriodBounds
from .tables import (
    accounts,
    contact_role_assignments,
    contact_roles,
    contacts,
    donations,
    event_registrations,
    events,
    tasks,
    volunteer_assignments,
    volunteer_hours,
    volunteers,
)

COMPLETED_PAYMENT = "completed"
ATTENDED_STATUSES = ("confirmed", "registered")
NO_SHOW_STATUS = "no_show"
ACTIVE_VOLUNTEER_STATUS = "active"
ACTIVE_ASSIGNMENT_STATUSES = ("scheduled", "in_progress")
TASK_PRIORITIES = ("low", "normal", "high", "urgent")
TASK_STATUSES = ("not_started", "in_progress", "waiting", "completed", "deferred", "cancelled")
PENDING_TASK_STATUSES = ("not_started", "in_progress", "waiting")
TERMINAL_TASK_STATUSES = ("completed", "cancelled")
PRIMARY_CONTACT_ROLE = "Primary Contact"


class AnalyticsStore:
    """
    Read-only aggregate queries the analytics engine runs against the CRM.

    Methods return plain mappings keyed by column label. Numeric values may be
    ``Decimal``, ``str`` or native numbers depending on the driver, so callers
    coerce them once after the query. Single-row aggregates always return a
    mapping; lookups that can miss (profiles, volunteer records) return
    ``None``.
    """

    # Donations
    def donation_stats(self, entity_type: str, entity_id: str) -> Dict[str, Any]:
        raise NotImplementedError

    def donations_by_payment_method(self, entity_type: str, entity_id: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def donations_by_year(self, entity_type: str, entity_id: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def recent_donations(self, entity_type: str, entity_id: str, limit: int = 5) -> List[Dict[str, Any]]:
        raise NotImplementedError

    # Event registrations
    def registration_stats(self, entity_type: str, entity_id: str) -> Dict[str, Any]:
        raise NotImplementedError

    def registrations_by_event_type(self, entity_type: str, entity_id: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def recent_registrations(self, entity_type: str, entity_id: str, limit: int = 5) -> List[Dict[str, Any]]:
        raise NotImplementedError

    # Volunteering
    def active_volunteer(self, contact_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def volunteer_assignment_stats(self, volunteer_id: str) -> Dict[str, Any]:
        raise NotImplementedError

    def volunteer_total_hours(self, volunteer_id: str) -> Dict[str, Any]:
        raise NotImplementedError

    def volunteer_hours_by_month(self, volunteer_id: str, since: datetime) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def recent_volunteer_activities(self, volunteer_id: str, limit: int = 5) -> List[Dict[str, Any]]:
        raise NotImplementedError

    # Tasks
    def task_stats(self, entity_type: str, entity_id: str, now: datetime) -> Dict[str, Any]:
        raise NotImplementedError

    # Profiles
    def account_profile(self, account_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def primary_contact(self, account_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def contact_profile(self, contact_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def contact_roles(self, contact_id: str) -> List[str]:
        raise NotImplementedError

    # Monthly series
    def monthly_donation_totals(self, since: datetime) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def monthly_event_attendance(self, since: datetime) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def monthly_volunteer_hours(self, since: datetime) -> List[Dict[str, Any]]:
        raise NotImplementedError

    # Current vs previous period, one row per ``period`` tag
    def donations_by_period(self, bounds: PeriodBounds) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def new_contacts_by_period(self, bounds: PeriodBounds) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def events_by_period(self, bounds: PeriodBounds) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def volunteer_hours_by_period(self, bounds: PeriodBounds) -> List[Dict[str, Any]]:
        raise NotImplementedError

    # Organisation summary
    def account_counts(self) -> Dict[str, Any]:
        raise NotImplementedError

    def contact_counts(self) -> Dict[str, Any]:
        raise NotImplementedError

    def donation_totals(self, start: datetime, end: datetime) -> Dict[str, Any]:
        raise NotImplementedError

    def event_count(self, start: datetime, end: datetime) -> Dict[str, Any]:
        raise NotImplementedError

    def volunteer_totals(self, start: datetime, end: datetime) -> Dict[str, Any]:
        raise NotImplementedError

    def engagement_distribution(self) -> List[Dict[str, Any]]:
        raise NotImplementedError


def _count_if(condition: ColumnElement) -> ColumnElement:
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def _as_date(value: datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def _month_columns(column: ColumnElement) -> Tuple[ColumnElement, ColumnElement]:
    return extract("year", column), extract("month", column)


class SQLAnalyticsStore(AnalyticsStore):
    """
    ``AnalyticsStore`` backed by SQLAlchemy Core statements.

    Statements stay within what PostgreSQL and SQLite both compile: conditional
    counts are ``SUM(CASE ...)`` and month buckets use ``EXTRACT``. Where a
    grouping key needs bound parameters (period tags, engagement levels) the
    key is computed in a subquery and the outer query groups on the plain
    column.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    # -- execution helpers ---------------------------------------------------

    def _fetch_all(self, stmt: Select) -> List[Dict[str, Any]]:
        with self.engine.connect() as connection:
            rows = connection.execute(stmt).mappings().all()
        return [dict(row) for row in rows]

    def _fetch_one(self, stmt: Select) -> Optional[Dict[str, Any]]:
        rows = self._fetch_all(stmt)
        return rows[0] if rows else None

    def _fetch_aggregate(self, stmt: Select) -> Dict[str, Any]:
        return self._fetch_one(stmt) or {}

    # -- scopes ----------------------------------------------------------------

    @staticmethod
    def _donation_scope(entity_type: str, entity_id: str) -> ColumnElement:
        owner = donations.c.account_id if entity_type == "account" else donations.c.contact_id
        return and_(owner == entity_id, donations.c.payment_status == COMPLETED_PAYMENT)

    @staticmethod
    def _registration_scope(entity_type: str, entity_id: str) -> Tuple[FromClause, ColumnElement]:
        if entity_type == "account":
            source = event_registrations.join(contacts, event_registrations.c.contact_id == contacts.c.id)
            return source, contacts.c.account_id == entity_id
        return event_registrations, event_registrations.c.contact_id == entity_id

    @staticmethod
    def _task_scope(entity_type: str, entity_id: str) -> ColumnElement:
        if entity_type == "account":
            account_contacts = select(contacts.c.id).where(contacts.c.account_id == entity_id)
            return or_(
                and_(tasks.c.related_to_type == "account", tasks.c.related_to_id == entity_id),
                and_(tasks.c.related_to_type == "contact", tasks.c.related_to_id.in_(account_contacts)),
            )
        return and_(tasks.c.related_to_type == "contact", tasks.c.related_to_id == entity_id)

    # -- donations -------------------------------------------------------------

    def donation_stats(self, entity_type: str, entity_id: str) -> Dict[str, Any]:
        recurring = donations.c.is_recurring.is_(True)
        stmt = select(
            func.coalesce(func.sum(donations.c.amount), 0).label("total_amount"),
            func.count(donations.c.id).label("total_count"),
            func.coalesce(func.avg(donations.c.amount), 0).label("average_amount"),
            func.min(donations.c.donation_date).label("first_donation_date"),
            func.max(donations.c.donation_date).label("last_donation_date"),
            func.coalesce(func.max(donations.c.amount), 0).label("largest_donation"),
            _count_if(recurring).label("recurring_donations"),
            func.coalesce(func.sum(case((recurring, donations.c.amount), else_=0)), 0).label("recurring_amount"),
        ).where(self._donation_scope(entity_type, entity_id))
        return self._fetch_aggregate(stmt)

    def donations_by_payment_method(self, entity_type: str, entity_id: str) -> List[Dict[str, Any]]:
        stmt = (
            select(
                donations.c.payment_method,
                func.count(donations.c.id).label("count"),
                func.coalesce(func.sum(donations.c.amount), 0).label("amount"),
            )
            .where(self._donation_scope(entity_type, entity_id))
            .group_by(donations.c.payment_method)
        )
        return self._fetch_all(stmt)

    def donations_by_year(self, entity_type: str, entity_id: str) -> List[Dict[str, Any]]:
        year = extract("year", donations.c.donation_date)
        stmt = (
            select(
                year.label("year"),
                func.count(donations.c.id).label("count"),
                func.coalesce(func.sum(donations.c.amount), 0).label("amount"),
            )
            .where(self._donation_scope(entity_type, entity_id))
            .group_by(year)
            .order_by(year.desc())
        )
        return self._fetch_all(stmt)

    def recent_donations(self, entity_type: str, entity_id: str, limit: int = 5) -> List[Dict[str, Any]]:
        stmt = (
            select(
                donations.c.id.label("donation_id"),
                donations.c.amount,
                donations.c.donation_date,
                donations.c.payment_method,
            )
            .where(self._donation_scope(entity_type, entity_id))
            .order_by(donations.c.donation_date.desc())
            .limit(limit)
        )
        return self._fetch_all(stmt)

    # -- event registrations ---------------------------------------------------

    def registration_stats(self, entity_type: str, entity_id: str) -> Dict[str, Any]:
        source, scope = self._registration_scope(entity_type, entity_id)
        attended = and_(
            event_registrations.c.registration_status.in_(ATTENDED_STATUSES),
            event_registrations.c.checked_in.is_(True),
        )
        stmt = (
            select(
                func.count(event_registrations.c.id).label("total_registrations"),
                _count_if(attended).label("events_attended"),
                _count_if(event_registrations.c.registration_status == NO_SHOW_STATUS).label("no_shows"),
            )
            .select_from(source)
            .where(scope)
        )
        return self._fetch_aggregate(stmt)

    def registrations_by_event_type(self, entity_type: str, entity_id: str) -> List[Dict[str, Any]]:
        source, scope = self._registration_scope(entity_type, entity_id)
        stmt = (
            select(events.c.event_type, func.count(event_registrations.c.id).label("count"))
            .select_from(source.join(events, event_registrations.c.event_id == events.c.id))
            .where(scope)
            .group_by(events.c.event_type)
        )
        return self._fetch_all(stmt)

    def recent_registrations(self, entity_type: str, entity_id: str, limit: int = 5) -> List[Dict[str, Any]]:
        source, scope = self._registration_scope(entity_type, entity_id)
        stmt = (
            select(
                events.c.id.label("event_id"),
                events.c.name.label("event_name"),
                events.c.start_date.label("event_date"),
                event_registrations.c.registration_status.label("status"),
            )
            .select_from(source.join(events, event_registrations.c.event_id == events.c.id))
            .where(scope)
            .order_by(events.c.start_date.desc())
            .limit(limit)
        )
        return self._fetch_all(stmt)

    # -- volunteering ----------------------------------------------------------

    def active_volunteer(self, contact_id: str) -> Optional[Dict[str, Any]]:
        stmt = (
            select(
                volunteers.c.id.label("volunteer_id"),
                volunteers.c.skills,
                volunteers.c.availability_status,
                volunteers.c.volunteer_status,
                volunteers.c.created_at.label("volunteer_since"),
            )
            .where(
                volunteers.c.contact_id == contact_id,
                volunteers.c.volunteer_status == ACTIVE_VOLUNTEER_STATUS,
            )
            .order_by(volunteers.c.created_at.asc())
            .limit(1)
        )
        return self._fetch_one(stmt)

    def volunteer_assignment_stats(self, volunteer_id: str) -> Dict[str, Any]:
        status = volunteer_assignments.c.status
        stmt = select(
            func.count(volunteer_assignments.c.id).label("total_assignments"),
            _count_if(status == "completed").label("completed_assignments"),
            _count_if(status.in_(ACTIVE_ASSIGNMENT_STATUSES)).label("active_assignments"),
        ).where(volunteer_assignments.c.volunteer_id == volunteer_id)
        return self._fetch_aggregate(stmt)

    def volunteer_total_hours(self, volunteer_id: str) -> Dict[str, Any]:
        stmt = select(
            func.coalesce(func.sum(volunteer_hours.c.hours_logged), 0).label("total_hours"),
        ).where(volunteer_hours.c.volunteer_id == volunteer_id)
        return self._fetch_aggregate(stmt)

    def volunteer_hours_by_month(self, volunteer_id: str, since: datetime) -> List[Dict[str, Any]]:
        year, month = _month_columns(volunteer_hours.c.activity_date)
        stmt = (
            select(
                year.label("year"),
                month.label("month"),
                func.coalesce(func.sum(volunteer_hours.c.hours_logged), 0).label("hours"),
            )
            .where(
                volunteer_hours.c.volunteer_id == volunteer_id,
                volunteer_hours.c.activity_date >= _as_date(since),
            )
            .group_by(year, month)
        )
        return self._fetch_all(stmt)

    def recent_volunteer_activities(self, volunteer_id: str, limit: int = 5) -> List[Dict[str, Any]]:
        stmt = (
            select(
                volunteer_hours.c.id.label("activity_id"),
                volunteer_hours.c.activity_date,
                volunteer_hours.c.hours_logged.label("hours"),
                volunteer_hours.c.description,
                volunteer_hours.c.is_verified,
            )
            .where(volunteer_hours.c.volunteer_id == volunteer_id)
            .order_by(volunteer_hours.c.activity_date.desc())
            .limit(limit)
        )
        return self._fetch_all(stmt)

    # -- tasks -----------------------------------------------------------------

    def task_stats(self, entity_type: str, entity_id: str, now: datetime) -> Dict[str, Any]:
        overdue = and_(
            tasks.c.status.notin_(TERMINAL_TASK_STATUSES),
            tasks.c.due_date.isnot(None),
            tasks.c.due_date < now,
        )
        columns = [
            func.count(tasks.c.id).label("total_tasks"),
            _count_if(tasks.c.status == "completed").label("completed_tasks"),
            _count_if(tasks.c.status.in_(PENDING_TASK_STATUSES)).label("pending_tasks"),
            _count_if(overdue).label("overdue_tasks"),
        ]
        columns.extend(_count_if(tasks.c.priority == name).label(f"priority_{name}") for name in TASK_PRIORITIES)
        columns.extend(_count_if(tasks.c.status == name).label(f"status_{name}") for name in TASK_STATUSES)
        stmt = select(*columns).where(self._task_scope(entity_type, entity_id))
        return self._fetch_aggregate(stmt)

    # -- profiles --------------------------------------------------------------

    def account_profile(self, account_id: str) -> Optional[Dict[str, Any]]:
        active_contacts = and_(contacts.c.account_id == accounts.c.id, contacts.c.is_active.is_(True))
        stmt = (
            select(
                accounts.c.id.label("account_id"),
                accounts.c.name.label("account_name"),
                accounts.c.account_type,
                accounts.c.created_at,
                func.count(contacts.c.id).label("contact_count"),
            )
            .select_from(accounts.outerjoin(contacts, active_contacts))
            .where(accounts.c.id == account_id)
            .group_by(accounts.c.id, accounts.c.name, accounts.c.account_type, accounts.c.created_at)
        )
        return self._fetch_one(stmt)

    def primary_contact(self, account_id: str) -> Optional[Dict[str, Any]]:
        primary_role = and_(
            contact_roles.c.id == contact_role_assignments.c.role_id,
            contact_roles.c.name == PRIMARY_CONTACT_ROLE,
        )
        source = contacts.outerjoin(
            contact_role_assignments, contact_role_assignments.c.contact_id == contacts.c.id
        ).outerjoin(contact_roles, primary_role)
        stmt = (
            select(
                contacts.c.id.label("contact_id"),
                contacts.c.first_name,
                contacts.c.last_name,
                contacts.c.email,
            )
            .select_from(source)
            .where(contacts.c.account_id == account_id, contacts.c.is_active.is_(True))
            .order_by(case((contact_roles.c.id.isnot(None), 0), else_=1), contacts.c.created_at.asc())
            .limit(1)
        )
        return self._fetch_one(stmt)

    def contact_profile(self, contact_id: str) -> Optional[Dict[str, Any]]:
        stmt = (
            select(
                contacts.c.id.label("contact_id"),
                contacts.c.first_name,
                contacts.c.last_name,
                contacts.c.email,
                contacts.c.account_id,
                accounts.c.name.label("account_name"),
                contacts.c.created_at,
            )
            .select_from(contacts.outerjoin(accounts, contacts.c.account_id == accounts.c.id))
            .where(contacts.c.id == contact_id)
        )
        return self._fetch_one(stmt)

    def contact_roles(self, contact_id: str) -> List[str]:
        stmt = (
            select(contact_roles.c.name)
            .select_from(
                contact_role_assignments.join(contact_roles, contact_roles.c.id == contact_role_assignments.c.role_id)
            )
            .where(contact_role_assignments.c.contact_id == contact_id)
            .distinct()
            .order_by(contact_roles.c.name)
        )
        return [row["name"] for row in self._fetch_all(stmt)]

    # -- monthly series --------------------------------------------------------

    def monthly_donation_totals(self, since: datetime) -> List[Dict[str, Any]]:
        year, month = _month_columns(donations.c.donation_date)
        stmt = (
            select(
                year.label("year"),
                month.label("month"),
                func.coalesce(func.sum(donations.c.amount), 0).label("amount"),
                func.count(donations.c.id).label("count"),
            )
            .where(donations.c.payment_status == COMPLETED_PAYMENT, donations.c.donation_date >= since)
            .group_by(year, month)
        )
        return self._fetch_all(stmt)

    def monthly_event_attendance(self, since: datetime) -> List[Dict[str, Any]]:
        per_event = (
            select(
                event_registrations.c.event_id.label("event_id"),
                func.count(event_registrations.c.id).label("registrations"),
                _count_if(event_registrations.c.checked_in.is_(True)).label("attended"),
            )
            .group_by(event_registrations.c.event_id)
            .subquery()
        )
        year, month = _month_columns(events.c.start_date)
        stmt = (
            select(
                year.label("year"),
                month.label("month"),
                func.count(events.c.id).label("total_events"),
                func.coalesce(func.sum(per_event.c.registrations), 0).label("total_registrations"),
                func.coalesce(func.sum(per_event.c.attended), 0).label("total_attendance"),
                func.coalesce(func.sum(events.c.capacity), 0).label("total_capacity"),
            )
            .select_from(events.outerjoin(per_event, per_event.c.event_id == events.c.id))
            .where(events.c.start_date >= since)
            .group_by(year, month)
        )
        return self._fetch_all(stmt)

    def monthly_volunteer_hours(self, since: datetime) -> List[Dict[str, Any]]:
        year, month = _month_columns(volunteer_hours.c.activity_date)
        stmt = (
            select(
                year.label("year"),
                month.label("month"),
                func.coalesce(func.sum(volunteer_hours.c.hours_logged), 0).label("hours"),
                func.count(func.distinct(volunteer_hours.c.volunteer_id)).label("active_volunteers"),
            )
            .where(volunteer_hours.c.activity_date >= _as_date(since))
            .group_by(year, month)
        )
        return self._fetch_all(stmt)

    # -- period comparisons ----------------------------------------------------

    @staticmethod
    def _period_tag(
        column: ColumnElement, bounds: PeriodBounds, dates_only: bool = False
    ) -> Tuple[ColumnElement, ColumnElement]:
        edges: Sequence[Any] = (bounds.current_start, bounds.current_end, bounds.previous_start, bounds.previous_end)
        if dates_only:
            edges = [_as_date(edge) for edge in edges]
        current_start, current_end, previous_start, previous_end = edges
        in_current = column.between(current_start, current_end)
        in_previous = column.between(previous_start, previous_end)
        tag = case((in_current, "current"), (in_previous, "previous"))
        return tag, or_(in_current, in_previous)

    def donations_by_period(self, bounds: PeriodBounds) -> List[Dict[str, Any]]:
        tag, in_range = self._period_tag(donations.c.donation_date, bounds)
        tagged = (
            select(tag.label("period"), donations.c.amount.label("amount"))
            .where(donations.c.payment_status == COMPLETED_PAYMENT, in_range)
            .subquery()
        )
        stmt = select(
            tagged.c.period,
            func.coalesce(func.sum(tagged.c.amount), 0).label("total_amount"),
            func.count().label("count"),
            func.coalesce(func.avg(tagged.c.amount), 0).label("average_amount"),
        ).group_by(tagged.c.period)
        return self._fetch_all(stmt)

    def new_contacts_by_period(self, bounds: PeriodBounds) -> List[Dict[str, Any]]:
        tag, in_range = self._period_tag(contacts.c.created_at, bounds)
        tagged = select(tag.label("period")).where(in_range).subquery()
        stmt = select(tagged.c.period, func.count().label("count")).group_by(tagged.c.period)
        return self._fetch_all(stmt)

    def events_by_period(self, bounds: PeriodBounds) -> List[Dict[str, Any]]:
        tag, in_range = self._period_tag(events.c.start_date, bounds)
        tagged = select(tag.label("period")).where(in_range).subquery()
        stmt = select(tagged.c.period, func.count().label("count")).group_by(tagged.c.period)
        return self._fetch_all(stmt)

    def volunteer_hours_by_period(self, bounds: PeriodBounds) -> List[Dict[str, Any]]:
        tag, in_range = self._period_tag(volunteer_hours.c.activity_date, bounds, dates_only=True)
        tagged = (
            select(tag.label("period"), volunteer_hours.c.hours_logged.label("hours"))
            .where(in_range)
            .subquery()
        )
        stmt = select(
            tagged.c.period,
            func.coalesce(func.sum(tagged.c.hours), 0).label("hours"),
        ).group_by(tagged.c.period)
        return self._fetch_all(stmt)

    # -- organisation summary --------------------------------------------------

    def account_counts(self) -> Dict[str, Any]:
        stmt = select(
            func.count(accounts.c.id).label("total_accounts"),
            _count_if(accounts.c.is_active.is_(True)).label("active_accounts"),
        )
        return self._fetch_aggregate(stmt)

    def contact_counts(self) -> Dict[str, Any]:
        stmt = select(
            func.count(contacts.c.id).label("total_contacts"),
            _count_if(contacts.c.is_active.is_(True)).label("active_contacts"),
        )
        return self._fetch_aggregate(stmt)

    def donation_totals(self, start: datetime, end: datetime) -> Dict[str, Any]:
        stmt = select(
            func.coalesce(func.sum(donations.c.amount), 0).label("total_donations"),
            func.count(donations.c.id).label("donation_count"),
            func.coalesce(func.avg(donations.c.amount), 0).label("average_donation"),
        ).where(
            donations.c.payment_status == COMPLETED_PAYMENT,
            donations.c.donation_date.between(start, end),
        )
        return self._fetch_aggregate(stmt)

    def event_count(self, start: datetime, end: datetime) -> Dict[str, Any]:
        stmt = select(func.count(events.c.id).label("total_events")).where(events.c.start_date.between(start, end))
        return self._fetch_aggregate(stmt)

    def volunteer_totals(self, start: datetime, end: datetime) -> Dict[str, Any]:
        hours_in_window = and_(
            volunteer_hours.c.volunteer_id == volunteers.c.id,
            volunteer_hours.c.activity_date.between(_as_date(start), _as_date(end)),
        )
        stmt = (
            select(
                func.count(func.distinct(volunteers.c.id)).label("total_volunteers"),
                func.coalesce(func.sum(volunteer_hours.c.hours_logged), 0).label("total_hours"),
            )
            .select_from(volunteers.outerjoin(volunteer_hours, hours_in_window))
            .where(volunteers.c.volunteer_status == ACTIVE_VOLUNTEER_STATUS)
        )
        return self._fetch_aggregate(stmt)

    def engagement_distribution(self) -> List[Dict[str, Any]]:
        donation_counts = (
            select(
                donations.c.contact_id.label("contact_id"),
                func.count(donations.c.id).label("donation_count"),
            )
            .where(donations.c.payment_status == COMPLETED_PAYMENT, donations.c.contact_id.isnot(None))
            .group_by(donations.c.contact_id)
            .subquery()
        )
        hour_totals = (
            select(
                volunteers.c.contact_id.label("contact_id"),
                func.sum(volunteer_hours.c.hours_logged).label("hours_logged"),
            )
            .select_from(volunteers.join(volunteer_hours, volunteer_hours.c.volunteer_id == volunteers.c.id))
            .group_by(volunteers.c.contact_id)
            .subquery()
        )
        donation_count = func.coalesce(donation_counts.c.donation_count, 0)
        hours = func.coalesce(hour_totals.c.hours_logged, 0)
        level = case(
            (or_(donation_count >= 3, hours >= 20), "high"),
            (or_(donation_count >= 1, hours >= 5), "medium"),
            (hours > 0, "low"),
            else_="inactive",
        )
        per_contact = (
            select(level.label("engagement_level"))
            .select_from(
                contacts.outerjoin(donation_counts, donation_counts.c.contact_id == contacts.c.id).outerjoin(
                    hour_totals, hour_totals.c.contact_id == contacts.c.id
                )
            )
            .where(contacts.c.is_active.is_(True))
            .subquery()
        )
        stmt = select(per_contact.c.engagement_level, func.count().label("count")).group_by(
            per_contact.c.engagement_level
        )
        return self._fetch_all(stmt)


def build_store(config: DatabaseConfig) -> Optional[AnalyticsStore]:
    if config.url:
        engine = create_engine(config.url, echo=config.echo, future=True)
        return SQLAnalyticsStore(engine)
    return None


def build_store_from_env(config: Optional[DatabaseConfig] = None) -> Optional[AnalyticsStore]:
    return build_store(config or load_config().database)
