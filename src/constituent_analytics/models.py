from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Literal, Mapping, Optional, Sequence

EntityType = Literal["account", "contact"]
MetricType = Literal["donations", "volunteer_hours", "event_attendance"]
PeriodType = Literal["month", "quarter", "year"]
EngagementLevel = Literal["high", "medium", "low", "inactive"]
TrendDirection = Literal["increasing", "decreasing", "stable"]
PeriodTrend = Literal["up", "down", "stable"]
Severity = Literal["low", "medium", "high"]
AnomalyType = Literal["spike", "drop", "unusual_pattern"]

ENTITY_TYPES = ("account", "contact")
METRIC_TYPES = ("donations", "volunteer_hours", "event_attendance")
PERIOD_TYPES = ("month", "quarter", "year")


def _serialize(obj: Any) -> Any:
    """
    Convert records into JSON-friendly values.

    Dataclass fields are emitted under their name unless the field carries a
    ``json`` metadata entry, which lets the trend points keep the camelCase
    keys the charts already consume.
    """

    if is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.metadata.get("json", f.name): _serialize(getattr(obj, f.name))
            for f in fields(obj)
        }
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, Mapping):
        return {str(key): _serialize(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(item) for item in obj]
    return obj


def to_jsonable(obj: Any) -> Any:
    return _serialize(obj)


class _Record:
    def as_dict(self) -> Dict[str, Any]:
        return _serialize(self)


# ---------------------------------------------------------------------------
# Per-entity metric records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AmountBreakdown(_Record):
    count: int
    amount: float


@dataclass(frozen=True)
class RecentDonation(_Record):
    donation_id: str
    amount: float
    donation_date: Optional[datetime]
    payment_method: Optional[str] = None


@dataclass(frozen=True)
class DonationMetrics(_Record):
    """
    Completed-payment donations attributed to one account or contact.

    ``by_payment_method`` and ``by_year`` map the category to a count/amount
    pair; ``recent_donations`` holds at most the five latest gifts.
    """

    total_amount: float = 0.0
    total_count: int = 0
    average_amount: float = 0.0
    first_donation_date: Optional[datetime] = None
    last_donation_date: Optional[datetime] = None
    largest_donation: float = 0.0
    recurring_donations: int = 0
    recurring_amount: float = 0.0
    by_payment_method: Dict[str, AmountBreakdown] = field(default_factory=dict)
    by_year: Dict[str, AmountBreakdown] = field(default_factory=dict)
    recent_donations: Sequence[RecentDonation] = field(default_factory=tuple)

    @property
    def has_recurring(self) -> bool:
        return self.recurring_donations > 0


@dataclass(frozen=True)
class RecentEvent(_Record):
    event_id: str
    event_name: Optional[str]
    event_date: Optional[datetime]
    status: Optional[str]


@dataclass(frozen=True)
class EventMetrics(_Record):
    total_registrations: int = 0
    events_attended: int = 0
    no_shows: int = 0
    attendance_rate: float = 0.0
    by_event_type: Dict[str, int] = field(default_factory=dict)
    recent_events: Sequence[RecentEvent] = field(default_factory=tuple)


@dataclass(frozen=True)
class VolunteerActivity(_Record):
    activity_id: str
    activity_date: Optional[date]
    hours: float
    description: Optional[str] = None
    is_verified: bool = False


@dataclass(frozen=True)
class VolunteerMetrics(_Record):
    """
    Volunteer profile for a contact with an active volunteer record.

    Contacts that never volunteered have no ``VolunteerMetrics`` at all; the
    collectors return ``None`` for them instead of a zero-valued record.
    """

    volunteer_id: str
    total_hours: float = 0.0
    total_assignments: int = 0
    completed_assignments: int = 0
    active_assignments: int = 0
    skills: Sequence[str] = field(default_factory=tuple)
    availability_status: Optional[str] = None
    volunteer_status: Optional[str] = None
    volunteer_since: Optional[datetime] = None
    hours_by_month: Dict[str, float] = field(default_factory=dict)
    recent_activities: Sequence[VolunteerActivity] = field(default_factory=tuple)


@dataclass(frozen=True)
class TaskMetrics(_Record):
    total_tasks: int = 0
    completed_tasks: int = 0
    pending_tasks: int = 0
    overdue_tasks: int = 0
    by_priority: Dict[str, int] = field(default_factory=dict)
    by_status: Dict[str, int] = field(default_factory=dict)

    @property
    def completion_rate(self) -> float:
        return self.completed_tasks / self.total_tasks if self.total_tasks else 0.0


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DonationTrendPoint(_Record):
    month: str
    amount: float = 0.0
    count: int = 0


@dataclass(frozen=True)
class EventAttendanceTrendPoint(_Record):
    month: str
    total_events: int = 0
    total_registrations: int = 0
    total_attendance: int = 0
    capacity_utilization: float = 0.0
    attendance_rate: float = 0.0


@dataclass(frozen=True)
class VolunteerHoursTrendPoint(_Record):
    month: str
    hours: float = 0.0
    active_volunteers: int = 0


@dataclass(frozen=True)
class TimeSeriesPoint(_Record):
    period: str
    value: float


@dataclass(frozen=True)
class TrendDataPoint(_Record):
    period: str
    value: float
    moving_average: float = field(metadata={"json": "movingAverage"})
    moving_average_7: float = field(metadata={"json": "movingAverage7"})
    moving_average_30: float = field(metadata={"json": "movingAverage30"})


@dataclass(frozen=True)
class AnalysisPeriod(_Record):
    start_date: str
    end_date: str
    period_count: int


@dataclass(frozen=True)
class TrendAnalysis(_Record):
    metric_name: str
    data_points: Sequence[TrendDataPoint]
    trend_direction: TrendDirection
    trend_strength: int
    velocity: float
    prediction_next_period: int
    analysis_period: AnalysisPeriod


@dataclass(frozen=True)
class StatisticalSummary(_Record):
    """
    Population statistics over a sample.

    The anomaly detector attaches the band it used through the two
    ``threshold_*`` fields; they stay ``None`` for a bare summary.
    """

    mean: float
    median: float
    std_deviation: float
    min: float
    max: float
    threshold_upper: Optional[float] = None
    threshold_lower: Optional[float] = None


@dataclass(frozen=True)
class Anomaly(_Record):
    period: str
    value: float
    expected_value: float
    deviation: float
    deviation_percent: float
    severity: Severity
    anomaly_type: AnomalyType = field(metadata={"json": "type"})


@dataclass(frozen=True)
class AnomalyDetectionResult(_Record):
    metric_name: str
    total_periods: int
    anomalies_detected: int
    anomalies: Sequence[Anomaly]
    statistical_summary: StatisticalSummary
    analysis_period: AnalysisPeriod
    sensitivity: float


# ---------------------------------------------------------------------------
# Period comparisons
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PeriodBounds:
    """Inclusive current/previous ranges plus their display labels."""

    period_type: PeriodType
    current_start: datetime
    current_end: datetime
    previous_start: datetime
    previous_end: datetime
    current_label: str
    previous_label: str


@dataclass(frozen=True)
class PeriodComparison(_Record):
    current: float
    previous: float
    change: float
    change_percent: float
    trend: PeriodTrend


@dataclass(frozen=True)
class ComparativeAnalytics(_Record):
    period_type: PeriodType
    current_period: str
    previous_period: str
    metrics: Dict[str, PeriodComparison]


# ---------------------------------------------------------------------------
# Entity analytics and organisation summary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PrimaryContact(_Record):
    contact_id: str
    name: str
    email: Optional[str] = None


@dataclass(frozen=True)
class AccountAnalytics(_Record):
    account_id: str
    account_name: Optional[str]
    account_type: Optional[str]
    created_at: Optional[datetime]
    contact_count: int
    primary_contact: Optional[PrimaryContact]
    donation_metrics: DonationMetrics
    event_metrics: EventMetrics
    task_metrics: TaskMetrics
    engagement_score: int
    engagement_level: EngagementLevel


@dataclass(frozen=True)
class ContactAnalytics(_Record):
    contact_id: str
    contact_name: str
    email: Optional[str]
    account_id: Optional[str]
    account_name: Optional[str]
    contact_roles: Sequence[str]
    created_at: Optional[datetime]
    donation_metrics: DonationMetrics
    event_metrics: EventMetrics
    volunteer_metrics: Optional[VolunteerMetrics]
    task_metrics: TaskMetrics
    engagement_score: int
    engagement_level: EngagementLevel


@dataclass(frozen=True)
class EngagementDistribution(_Record):
    high: int = 0
    medium: int = 0
    low: int = 0
    inactive: int = 0


@dataclass(frozen=True)
class AnalyticsSummary(_Record):
    total_accounts: int
    active_accounts: int
    total_contacts: int
    active_contacts: int
    total_donations_ytd: float
    donation_count_ytd: int
    average_donation_ytd: float
    total_events_ytd: int
    total_volunteers: int
    total_volunteer_hours_ytd: float
    engagement_distribution: EngagementDistribution
