"""
Constituent engagement analytics.

Turns donation, event, volunteer and task records into per-entity engagement
scores, monthly trend and anomaly analyses, period-over-period comparisons and
an organisation-wide summary, with a read-through cache in front of the
expensive reports.
"""

from .cache import (  # noqa: F401
    CachePort,
    LocalFileCache,
    MemoryCache,
    NullCache,
    SafeCache,
    build_cache,
    cached,
    read_through,
)
from .config import AnalyticsConfig, load_config  # noqa: F401
from .errors import (  # noqa: F401
    AccountNotFoundError,
    AnalyticsError,
    CacheError,
    ComputationError,
    ContactNotFoundError,
    InvalidParameterError,
    NoDataError,
    NotFoundError,
)
from .models import (  # noqa: F401
    AccountAnalytics,
    AnalyticsSummary,
    Anomaly,
    AnomalyDetectionResult,
    ComparativeAnalytics,
    ContactAnalytics,
    DonationMetrics,
    EventMetrics,
    PeriodComparison,
    StatisticalSummary,
    TaskMetrics,
    TimeSeriesPoint,
    TrendAnalysis,
    TrendDataPoint,
    VolunteerMetrics,
)
from .scoring import calculate_engagement_score, get_engagement_level  # noqa: F401
from .service import AnalyticsService  # noqa: F401
from .store import AnalyticsStore, SQLAnalyticsStore, build_store, build_store_from_env  # noqa: F401
