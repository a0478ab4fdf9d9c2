from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from .errors import ComputationError
from .models import AnalyticsSummary, EngagementDistribution
from .store import AnalyticsStore
from .utils import to_float, to_int

logger = logging.getLogger(__name__)


def year_start(now: datetime) -> datetime:
    return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)


async def get_analytics_summary(
    store: AnalyticsStore,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> AnalyticsSummary:
    """Organisation snapshot; the window defaults to the current year to date."""
    now = now or datetime.now()
    start = start or year_start(now)
    end = end or now

    try:
        accounts, contacts, donations, events, volunteers, distribution = await asyncio.gather(
            asyncio.to_thread(store.account_counts),
            asyncio.to_thread(store.contact_counts),
            asyncio.to_thread(store.donation_totals, start, end),
            asyncio.to_thread(store.event_count, start, end),
            asyncio.to_thread(store.volunteer_totals, start, end),
            asyncio.to_thread(store.engagement_distribution),
        )
        levels = {row["engagement_level"]: to_int(row.get("count")) for row in distribution}

        return AnalyticsSummary(
            total_accounts=to_int(accounts.get("total_accounts")),
            active_accounts=to_int(accounts.get("active_accounts")),
            total_contacts=to_int(contacts.get("total_contacts")),
            active_contacts=to_int(contacts.get("active_contacts")),
            total_donations_ytd=to_float(donations.get("total_donations")),
            donation_count_ytd=to_int(donations.get("donation_count")),
            average_donation_ytd=to_float(donations.get("average_donation")),
            total_events_ytd=to_int(events.get("total_events")),
            total_volunteers=to_int(volunteers.get("total_volunteers")),
            total_volunteer_hours_ytd=to_float(volunteers.get("total_hours")),
            engagement_distribution=EngagementDistribution(
                high=levels.get("high", 0),
                medium=levels.get("medium", 0),
                low=levels.get("low", 0),
                inactive=levels.get("inactive", 0),
            ),
        )
    except Exception as exc:
        logger.error("Error getting analytics summary for %s..%s: %s", start, end, exc, exc_info=True)
        raise ComputationError("analytics summary", details={"start": start.isoformat(), "end": end.isoformat()}) from exc
