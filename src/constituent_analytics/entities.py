from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from .collectors import get_donation_metrics, get_event_metrics, get_task_metrics, get_volunteer_metrics
from .errors import AccountNotFoundError, ComputationError, ContactNotFoundError, NotFoundError
from .models import AccountAnalytics, ContactAnalytics, PrimaryContact
from .scoring import calculate_engagement_score, get_engagement_level
from .store import AnalyticsStore
from .utils import to_datetime, to_int

logger = logging.getLogger(__name__)


def _full_name(row: Mapping[str, Any]) -> str:
    return f"{row.get('first_name') or ''} {row.get('last_name') or ''}".strip()


async def get_account_analytics(
    store: AnalyticsStore, account_id: str, now: Optional[datetime] = None
) -> AccountAnalytics:
    """
    Assemble the analytics record for one account.

    Raises ``AccountNotFoundError`` unchanged when the account does not exist;
    any other failure becomes a ``ComputationError``.
    """
    now = now or datetime.now()
    try:
        profile = await asyncio.to_thread(store.account_profile, account_id)
        if profile is None:
            raise AccountNotFoundError(account_id)

        primary, donation, event, task = await asyncio.gather(
            asyncio.to_thread(store.primary_contact, account_id),
            get_donation_metrics(store, "account", account_id),
            get_event_metrics(store, "account", account_id),
            get_task_metrics(store, "account", account_id, now),
        )
        score = calculate_engagement_score(donation, event, None, task)

        return AccountAnalytics(
            account_id=str(profile["account_id"]),
            account_name=profile.get("account_name"),
            account_type=profile.get("account_type"),
            created_at=to_datetime(profile.get("created_at")),
            contact_count=to_int(profile.get("contact_count")),
            primary_contact=(
                PrimaryContact(
                    contact_id=str(primary["contact_id"]),
                    name=_full_name(primary),
                    email=primary.get("email"),
                )
                if primary
                else None
            ),
            donation_metrics=donation,
            event_metrics=event,
            task_metrics=task,
            engagement_score=score,
            engagement_level=get_engagement_level(score),
        )
    except NotFoundError:
        raise
    except Exception as exc:
        logger.error("Error getting account analytics for %s: %s", account_id, exc, exc_info=True)
        raise ComputationError("account analytics", details={"account_id": account_id}) from exc


async def get_contact_analytics(
    store: AnalyticsStore, contact_id: str, now: Optional[datetime] = None
) -> ContactAnalytics:
    now = now or datetime.now()
    try:
        profile = await asyncio.to_thread(store.contact_profile, contact_id)
        if profile is None:
            raise ContactNotFoundError(contact_id)

        roles, donation, event, volunteer, task = await asyncio.gather(
            asyncio.to_thread(store.contact_roles, contact_id),
            get_donation_metrics(store, "contact", contact_id),
            get_event_metrics(store, "contact", contact_id),
            get_volunteer_metrics(store, contact_id, now),
            get_task_metrics(store, "contact", contact_id, now),
        )
        score = calculate_engagement_score(donation, event, volunteer, task)

        return ContactAnalytics(
            contact_id=str(profile["contact_id"]),
            contact_name=_full_name(profile),
            email=profile.get("email"),
            account_id=profile.get("account_id"),
            account_name=profile.get("account_name"),
            contact_roles=tuple(roles),
            created_at=to_datetime(profile.get("created_at")),
            donation_metrics=donation,
            event_metrics=event,
            volunteer_metrics=volunteer,
            task_metrics=task,
            engagement_score=score,
            engagement_level=get_engagement_level(score),
        )
    except NotFoundError:
        raise
    except Exception as exc:
        logger.error("Error getting contact analytics for %s: %s", contact_id, exc, exc_info=True)
        raise ComputationError("contact analytics", details={"contact_id": contact_id}) from exc
