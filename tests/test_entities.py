"""Tests for the account and contact analytics aggregators."""

from datetime import datetime

import pytest

from conftest import FakeStore

from constituent_analytics.entities import get_account_analytics, get_contact_analytics
from constituent_analytics.errors import (
    AccountNotFoundError,
    ComputationError,
    ContactNotFoundError,
    NotFoundError,
)


class TestAccountAnalytics:
    @pytest.mark.asyncio
    async def test_missing_account_propagates_not_found(self, now):
        store = FakeStore()
        with pytest.raises(AccountNotFoundError) as excinfo:
            await get_account_analytics(store, "acc-404", now)

        assert excinfo.value.code == "NOT_FOUND"
        assert excinfo.value.message == "Account not found"
        assert store.count("donation_stats") == 0

    @pytest.mark.asyncio
    async def test_assembles_record_without_volunteer_term(self, now):
        store = FakeStore(
            account_profile={
                "account_id": "acc-1",
                "account_name": "Harbor Foundation",
                "account_type": "foundation",
                "created_at": datetime(2024, 1, 10),
                "contact_count": "2",
            },
            primary_contact={"contact_id": "c-2", "first_name": "Grace", "last_name": "Hopper",
                             "email": "grace@example.org"},
            donation_stats={"total_count": 4, "total_amount": "2300", "recurring_donations": 1},
            task_stats={"total_tasks": 2, "completed_tasks": 2},
        )

        analytics = await get_account_analytics(store, "acc-1", now)

        assert analytics.account_name == "Harbor Foundation"
        assert analytics.contact_count == 2
        assert analytics.primary_contact.name == "Grace Hopper"
        # 12 + 15 + 2 donation points, 10 task points
        assert analytics.engagement_score == 39
        assert analytics.engagement_level == "medium"
        assert store.count("active_volunteer") == 0

    @pytest.mark.asyncio
    async def test_account_without_contacts(self, now):
        store = FakeStore(account_profile={"account_id": "acc-2", "account_name": "Quiet Co", "contact_count": 0})
        analytics = await get_account_analytics(store, "acc-2", now)
        assert analytics.primary_contact is None
        assert analytics.engagement_level == "inactive"
        assert analytics.as_dict()["primary_contact"] is None

    @pytest.mark.asyncio
    async def test_collector_failure_is_wrapped(self, now):
        store = FakeStore(
            account_profile={"account_id": "acc-1", "account_name": "Harbor Foundation", "contact_count": 1},
            registration_stats=RuntimeError("deadlock detected"),
        )
        with pytest.raises(ComputationError) as excinfo:
            await get_account_analytics(store, "acc-1", now)
        assert excinfo.value.message == "Failed to retrieve account analytics"
        assert not isinstance(excinfo.value, NotFoundError)


class TestContactAnalytics:
    @pytest.mark.asyncio
    async def test_missing_contact_propagates_not_found(self, now):
        with pytest.raises(ContactNotFoundError):
            await get_contact_analytics(FakeStore(), "c-404", now)

    @pytest.mark.asyncio
    async def test_non_volunteer_contact(self, now):
        store = FakeStore(
            contact_profile={"contact_id": "c-1", "first_name": "Ada", "last_name": "Lovelace",
                             "email": "ada@example.org", "account_id": "acc-1", "account_name": "Harbor Foundation"},
            contact_roles=["Board Member"],
            donation_stats={"total_count": 1, "total_amount": "75"},
            task_stats={"total_tasks": 1, "completed_tasks": 1},
        )

        analytics = await get_contact_analytics(store, "c-1", now)

        assert analytics.volunteer_metrics is None
        assert analytics.contact_name == "Ada Lovelace"
        assert analytics.contact_roles == ("Board Member",)
        assert analytics.engagement_score == 13
        assert analytics.engagement_level == "low"
        assert analytics.as_dict()["volunteer_metrics"] is None

    @pytest.mark.asyncio
    async def test_inactive_contact_scores_zero(self, now):
        store = FakeStore(contact_profile={"contact_id": "c-6", "first_name": "Mary", "last_name": "Jackson"})
        analytics = await get_contact_analytics(store, "c-6", now)
        assert analytics.engagement_score == 0
        assert analytics.engagement_level == "inactive"
