"""
Read-only table shapes for the CRM records the analytics engine aggregates.

Only the columns the queries touch are declared. The engine never issues DDL
against the production database; ``metadata.create_all`` is used by tests to
build a throwaway SQLite copy.
"""

from __future__ import annotations

from sqlalchemy import JSON as SAJSON
from sqlalchemy import Boolean, Column, Date, DateTime, Integer, MetaData, Numeric, String, Table
from sqlalchemy.dialects.postgresql import ARRAY

metadata = MetaData()

skills_type = SAJSON().with_variant(ARRAY(String), "postgresql")

accounts = Table(
    "accounts",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("account_type", String(50)),
    Column("is_active", Boolean, default=True),
    Column("created_at", DateTime(timezone=True)),
)

contacts = Table(
    "contacts",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("account_id", String(36), index=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("email", String(255)),
    Column("is_active", Boolean, default=True),
    Column("created_at", DateTime(timezone=True)),
)

contact_roles = Table(
    "contact_roles",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(100), nullable=False),
)

contact_role_assignments = Table(
    "contact_role_assignments",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("contact_id", String(36), index=True),
    Column("role_id", String(36)),
)

donations = Table(
    "donations",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("account_id", String(36), index=True),
    Column("contact_id", String(36), index=True),
    Column("amount", Numeric(15, 2), nullable=False),
    Column("donation_date", DateTime(timezone=True), nullable=False),
    Column("payment_method", String(50)),
    Column("payment_status", String(50), default="pending"),
    Column("is_recurring", Boolean, default=False),
)

events = Table(
    "events",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("event_type", String(50)),
    Column("start_date", DateTime(timezone=True), nullable=False),
    Column("capacity", Integer),
)

event_registrations = Table(
    "event_registrations",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("event_id", String(36), index=True),
    Column("contact_id", String(36), index=True),
    Column("registration_status", String(50), default="registered"),
    Column("checked_in", Boolean, default=False),
)

volunteers = Table(
    "volunteers",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("contact_id", String(36), index=True),
    Column("volunteer_status", String(50), default="active"),
    Column("skills", skills_type),
    Column("availability_status", String(50)),
    Column("created_at", DateTime(timezone=True)),
)

volunteer_assignments = Table(
    "volunteer_assignments",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("volunteer_id", String(36), index=True),
    Column("event_id", String(36)),
    Column("task_id", String(36)),
    Column("status", String(50)),
    Column("start_time", DateTime(timezone=True)),
)

volunteer_hours = Table(
    "volunteer_hours",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("volunteer_id", String(36), index=True),
    Column("hours_logged", Numeric(10, 2), nullable=False),
    Column("activity_date", Date, nullable=False),
    Column("description", String(255)),
    Column("is_verified", Boolean, default=False),
)

tasks = Table(
    "tasks",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("subject", String(255)),
    Column("status", String(50), default="not_started"),
    Column("priority", String(50), default="normal"),
    Column("due_date", DateTime(timezone=True)),
    Column("related_to_type", String(50)),
    Column("related_to_id", String(36)),
)
