from __future__ import annotations

import math
from typing import Optional

from .models import DonationMetrics, EngagementLevel, EventMetrics, TaskMetrics, VolunteerMetrics

MAX_SCORE = 100
DONATION_CAP = 40
EVENT_CAP = 30
VOLUNTEER_CAP = 20
TASK_CAP = 10


def donation_score(metrics: DonationMetrics) -> int:
    score = min(15, metrics.total_count * 3)
    score += 15 if metrics.has_recurring else 0
    score += min(10, math.floor(metrics.total_amount / 1000))
    return min(DONATION_CAP, score)


def event_score(metrics: EventMetrics) -> int:
    score = min(15, metrics.events_attended * 3)
    score += min(15, math.floor(metrics.attendance_rate * 15))
    return min(EVENT_CAP, score)


def volunteer_score(metrics: Optional[VolunteerMetrics]) -> int:
    if metrics is None:
        return 0
    score = min(10, math.floor(metrics.total_hours / 10))
    score += min(10, metrics.completed_assignments * 2)
    return min(VOLUNTEER_CAP, score)


def task_score(metrics: TaskMetrics) -> int:
    return min(TASK_CAP, math.floor(metrics.completion_rate * 10))


def calculate_engagement_score(
    donation: DonationMetrics,
    event: EventMetrics,
    volunteer: Optional[VolunteerMetrics],
    task: TaskMetrics,
) -> int:
    """
    Weighted engagement score in ``[0, 100]``.

    Donations contribute up to 40 points, events 30, volunteering 20 and task
    completion 10. A missing volunteer record contributes nothing.
    """
    total = donation_score(donation) + event_score(event) + volunteer_score(volunteer) + task_score(task)
    return max(0, min(MAX_SCORE, total))


def get_engagement_level(score: int) -> EngagementLevel:
    if score >= 60:
        return "high"
    if score >= 30:
        return "medium"
    if score > 0:
        return "low"
    return "inactive"
