"""Shared fixtures: a fixed clock, a recording fake store and a seeded SQLite store."""

import copy
import functools
import os
import threading
from datetime import date, datetime

import pytest
from sqlalchemy import create_engine

from constituent_analytics.cache import CachePort
from constituent_analytics.store import AnalyticsStore, SQLAnalyticsStore
from constituent_analytics.tables import (
    accounts,
    contact_role_assignments,
    contact_roles,
    contacts,
    donations,
    event_registrations,
    events,
    metadata,
    tasks,
    volunteer_assignments,
    volunteer_hours,
    volunteers,
)

FIXED_NOW = datetime(2026, 6, 15, 12, 0)

STORE_METHODS = frozenset(
    name for name, value in vars(AnalyticsStore).items() if callable(value) and not name.startswith("_")
)

DEFAULT_RESPONSES = {
    name: []
    for name in STORE_METHODS
    if name.startswith(("donations_by", "recent_", "registrations_by", "monthly_", "volunteer_hours_by"))
    or name.endswith("_by_period")
    or name in {"contact_roles", "engagement_distribution"}
}
DEFAULT_RESPONSES.update(
    {name: None for name in ("active_volunteer", "account_profile", "primary_contact", "contact_profile")}
)
DEFAULT_RESPONSES.update({name: {} for name in STORE_METHODS if name not in DEFAULT_RESPONSES})


class FakeStore(AnalyticsStore):
    """
    In-memory ``AnalyticsStore`` that records every query.

    A response may be a value (returned as a deep copy), a callable (invoked
    with the query arguments) or an exception instance (raised).
    """

    def __init__(self, **responses):
        unknown = set(responses) - STORE_METHODS
        if unknown:
            raise AttributeError(f"Unknown store methods: {sorted(unknown)}")
        self.responses = {**DEFAULT_RESPONSES, **responses}
        self.calls = []
        self._lock = threading.Lock()

    def __getattribute__(self, name):
        if name in STORE_METHODS:
            return functools.partial(object.__getattribute__(self, "_respond"), name)
        return object.__getattribute__(self, name)

    def _respond(self, name, *args, **kwargs):
        with self._lock:
            self.calls.append((name, args, kwargs))
        response = self.responses[name]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(*args, **kwargs)
        return copy.deepcopy(response)

    def count(self, name):
        return sum(1 for call, _, _ in self.calls if call == name)

    def args_for(self, name):
        return [args for call, args, _ in self.calls if call == name]


class FakeClock:
    """Monotonic seconds for cache TTL tests."""

    def __init__(self, start=1_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class BrokenCache(CachePort):
    def __init__(self):
        self.attempts = 0

    def get(self, key):
        self.attempts += 1
        raise ConnectionError("cache backend unavailable")

    def set(self, key, value, ttl_seconds):
        self.attempts += 1
        raise ConnectionError("cache backend unavailable")

    def clear(self):
        raise ConnectionError("cache backend unavailable")


@pytest.fixture(autouse=True)
def _clean_analytics_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("ANALYTICS_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def fake_store():
    return FakeStore()


def _seed(engine):
    with engine.begin() as conn:
        conn.execute(
            accounts.insert(),
            [
                {"id": "acc-1", "name": "Harbor Foundation", "account_type": "foundation", "is_active": True,
                 "created_at": datetime(2024, 1, 10, 9, 0)},
                {"id": "acc-2", "name": "Quiet Co", "account_type": "business", "is_active": False,
                 "created_at": datetime(2023, 1, 5, 9, 0)},
            ],
        )
        conn.execute(
            contacts.insert(),
            [
                {"id": "c-1", "account_id": "acc-1", "first_name": "Ada", "last_name": "Lovelace",
                 "email": "ada@example.org", "is_active": True, "created_at": datetime(2024, 1, 11, 9, 0)},
                {"id": "c-2", "account_id": "acc-1", "first_name": "Grace", "last_name": "Hopper",
                 "email": "grace@example.org", "is_active": True, "created_at": datetime(2025, 3, 1, 9, 0)},
                {"id": "c-3", "account_id": None, "first_name": "Alan", "last_name": "Turing",
                 "email": "alan@example.org", "is_active": True, "created_at": datetime(2026, 6, 2, 9, 0)},
                {"id": "c-4", "account_id": "acc-2", "first_name": "Old", "last_name": "Record",
                 "email": None, "is_active": False, "created_at": datetime(2026, 5, 10, 9, 0)},
                {"id": "c-5", "account_id": None, "first_name": "Katherine", "last_name": "Johnson",
                 "email": None, "is_active": True, "created_at": datetime(2023, 8, 1, 9, 0)},
                {"id": "c-6", "account_id": "acc-2", "first_name": "Mary", "last_name": "Jackson",
                 "email": None, "is_active": True, "created_at": datetime(2023, 2, 1, 9, 0)},
            ],
        )
        conn.execute(
            contact_roles.insert(),
            [{"id": "role-1", "name": "Primary Contact"}, {"id": "role-2", "name": "Board Member"}],
        )
        conn.execute(
            contact_role_assignments.insert(),
            [
                {"id": "cra-1", "contact_id": "c-2", "role_id": "role-1"},
                {"id": "cra-2", "contact_id": "c-1", "role_id": "role-2"},
            ],
        )
        conn.execute(
            donations.insert(),
            [
                {"id": "d-1", "account_id": "acc-1", "contact_id": "c-1", "amount": 1500,
                 "donation_date": datetime(2026, 6, 3, 10, 0), "payment_method": "credit_card",
                 "payment_status": "completed", "is_recurring": True},
                {"id": "d-2", "account_id": "acc-1", "contact_id": "c-1", "amount": 500,
                 "donation_date": datetime(2026, 5, 20, 10, 0), "payment_method": "check",
                 "payment_status": "completed", "is_recurring": False},
                {"id": "d-3", "account_id": "acc-1", "contact_id": "c-2", "amount": 250,
                 "donation_date": datetime(2025, 11, 5, 10, 0), "payment_method": "credit_card",
                 "payment_status": "completed", "is_recurring": False},
                {"id": "d-4", "account_id": "acc-1", "contact_id": "c-1", "amount": 100,
                 "donation_date": datetime(2026, 6, 10, 10, 0), "payment_method": "credit_card",
                 "payment_status": "pending", "is_recurring": False},
                {"id": "d-5", "account_id": None, "contact_id": "c-3", "amount": 75,
                 "donation_date": datetime(2026, 6, 12, 10, 0), "payment_method": "ach",
                 "payment_status": "completed", "is_recurring": False},
                {"id": "d-6", "account_id": "acc-1", "contact_id": "c-1", "amount": 50,
                 "donation_date": datetime(2024, 12, 1, 10, 0), "payment_method": "credit_card",
                 "payment_status": "completed", "is_recurring": False},
            ],
        )
        conn.execute(
            events.insert(),
            [
                {"id": "e-1", "name": "Spring Gala", "event_type": "gala",
                 "start_date": datetime(2026, 5, 15, 18, 0), "capacity": 100},
                {"id": "e-2", "name": "Park Cleanup", "event_type": "volunteer",
                 "start_date": datetime(2026, 6, 5, 9, 0), "capacity": 20},
                {"id": "e-3", "name": "Board Retreat", "event_type": "meeting",
                 "start_date": datetime(2025, 9, 10, 9, 0), "capacity": 10},
            ],
        )
        conn.execute(
            event_registrations.insert(),
            [
                {"id": "er-1", "event_id": "e-1", "contact_id": "c-1", "registration_status": "confirmed",
                 "checked_in": True},
                {"id": "er-2", "event_id": "e-2", "contact_id": "c-1", "registration_status": "registered",
                 "checked_in": True},
                {"id": "er-3", "event_id": "e-1", "contact_id": "c-2", "registration_status": "no_show",
                 "checked_in": False},
                {"id": "er-4", "event_id": "e-2", "contact_id": "c-3", "registration_status": "registered",
                 "checked_in": False},
            ],
        )
        conn.execute(
            volunteers.insert(),
            [
                {"id": "v-1", "contact_id": "c-3", "volunteer_status": "active",
                 "skills": ["gardening", "first_aid"], "availability_status": "weekends",
                 "created_at": datetime(2025, 1, 5, 9, 0)},
                {"id": "v-2", "contact_id": "c-2", "volunteer_status": "inactive", "skills": [],
                 "availability_status": None, "created_at": datetime(2024, 4, 1, 9, 0)},
                {"id": "v-3", "contact_id": "c-5", "volunteer_status": "active", "skills": ["driving"],
                 "availability_status": "weekdays", "created_at": datetime(2024, 2, 1, 9, 0)},
            ],
        )
        conn.execute(
            volunteer_assignments.insert(),
            [
                {"id": "va-1", "volunteer_id": "v-1", "event_id": "e-2", "task_id": None, "status": "completed",
                 "start_time": datetime(2026, 6, 5, 9, 0)},
                {"id": "va-2", "volunteer_id": "v-1", "event_id": None, "task_id": None, "status": "scheduled",
                 "start_time": datetime(2026, 7, 1, 9, 0)},
                {"id": "va-3", "volunteer_id": "v-1", "event_id": None, "task_id": None, "status": "cancelled",
                 "start_time": datetime(2026, 3, 1, 9, 0)},
            ],
        )
        conn.execute(
            volunteer_hours.insert(),
            [
                {"id": "vh-1", "volunteer_id": "v-1", "hours_logged": 4.5, "activity_date": date(2026, 6, 5),
                 "description": "Park cleanup", "is_verified": True},
                {"id": "vh-2", "volunteer_id": "v-1", "hours_logged": 3, "activity_date": date(2026, 5, 20),
                 "description": "Gala setup", "is_verified": False},
                {"id": "vh-3", "volunteer_id": "v-1", "hours_logged": 2.5, "activity_date": date(2025, 2, 1),
                 "description": None, "is_verified": True},
                {"id": "vh-4", "volunteer_id": "v-2", "hours_logged": 6, "activity_date": date(2026, 4, 2),
                 "description": None, "is_verified": True},
                {"id": "vh-5", "volunteer_id": "v-3", "hours_logged": 2, "activity_date": date(2024, 3, 3),
                 "description": "Deliveries", "is_verified": True},
            ],
        )
        conn.execute(
            tasks.insert(),
            [
                {"id": "t-1", "subject": "Thank-you call", "status": "completed", "priority": "high",
                 "due_date": datetime(2026, 5, 1, 9, 0), "related_to_type": "account", "related_to_id": "acc-1"},
                {"id": "t-2", "subject": "Renewal letter", "status": "not_started", "priority": "normal",
                 "due_date": datetime(2026, 6, 1, 9, 0), "related_to_type": "account", "related_to_id": "acc-1"},
                {"id": "t-3", "subject": "Board prep", "status": "in_progress", "priority": "urgent",
                 "due_date": datetime(2026, 7, 1, 9, 0), "related_to_type": "contact", "related_to_id": "c-1"},
                {"id": "t-4", "subject": "Old follow-up", "status": "cancelled", "priority": "low",
                 "due_date": datetime(2026, 1, 1, 9, 0), "related_to_type": "contact", "related_to_id": "c-1"},
                {"id": "t-5", "subject": "Welcome pack", "status": "completed", "priority": "normal",
                 "due_date": datetime(2026, 6, 3, 9, 0), "related_to_type": "contact", "related_to_id": "c-3"},
            ],
        )


@pytest.fixture
def sqlite_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'crm.db'}"
    engine = create_engine(url, future=True)
    metadata.create_all(engine)
    _seed(engine)
    engine.dispose()
    return url


@pytest.fixture
def sqlite_store(sqlite_url):
    engine = create_engine(sqlite_url, connect_args={"check_same_thread": False}, future=True)
    yield SQLAnalyticsStore(engine)
    engine.dispose()
