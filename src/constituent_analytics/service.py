from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from . import collectors
from .anomalies import detect_anomalies as run_anomaly_detection
from .cache import CachePort, build_cache, cache_key, read_through
from .comparative import get_comparative_analytics as run_comparative
from .config import AnalyticsConfig, load_config
from .entities import get_account_analytics as run_account_analytics
from .entities import get_contact_analytics as run_contact_analytics
from .errors import ComputationError, NoDataError
from .queries import (
    AnomalyQuery,
    ComparativeQuery,
    EntityQuery,
    SeriesQuery,
    SummaryQuery,
    TrendQuery,
    validate_query,
)
from .store import AnalyticsStore
from .summary import get_analytics_summary as run_summary
from .summary import year_start
from .timeseries import get_series, metric_display_name, project
from .trends import analyze_trend

logger = logging.getLogger(__name__)


class AnalyticsService:
    """
    Query surface of the analytics engine.

    Every coroutine validates its parameters, runs the computation and returns
    a JSON-serialisable value. Organisation-wide reports (series, trend and
    anomaly analyses, comparisons, the summary) are read through the cache;
    per-entity analytics are always computed fresh.
    """

    def __init__(
        self,
        store: AnalyticsStore,
        cache: Optional[CachePort] = None,
        config: Optional[AnalyticsConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.config = config or load_config()
        self.cache = cache if cache is not None else build_cache(self.config.cache)
        self.clock = clock or datetime.now

    def _key(self, *parts: Any) -> str:
        return cache_key(self.config.cache.namespace, *parts)

    def _months(self, months: Optional[int]) -> int:
        return months if months is not None else self.config.trends.default_months

    def _limits(self) -> Dict[str, Any]:
        return {
            "max_series_months": self.config.trends.max_series_months,
            "max_months": self.config.trends.max_months,
            "min_anomaly_months": self.config.anomalies.min_months,
            "min_sensitivity": self.config.anomalies.min_sensitivity,
            "max_sensitivity": self.config.anomalies.max_sensitivity,
        }

    # -- per-entity metrics ----------------------------------------------------

    async def get_donation_metrics(self, entity_type: str, entity_id: str) -> Dict[str, Any]:
        query = validate_query(EntityQuery, entity_type=entity_type, entity_id=entity_id)
        metrics = await collectors.get_donation_metrics(self.store, query.entity_type, query.entity_id)
        return metrics.as_dict()

    async def get_event_metrics(self, entity_type: str, entity_id: str) -> Dict[str, Any]:
        query = validate_query(EntityQuery, entity_type=entity_type, entity_id=entity_id)
        metrics = await collectors.get_event_metrics(self.store, query.entity_type, query.entity_id)
        return metrics.as_dict()

    async def get_volunteer_metrics(self, contact_id: str) -> Optional[Dict[str, Any]]:
        query = validate_query(EntityQuery, entity_type="contact", entity_id=contact_id)
        metrics = await collectors.get_volunteer_metrics(self.store, query.entity_id, self.clock())
        return metrics.as_dict() if metrics is not None else None

    async def get_task_metrics(self, entity_type: str, entity_id: str) -> Dict[str, Any]:
        query = validate_query(EntityQuery, entity_type=entity_type, entity_id=entity_id)
        metrics = await collectors.get_task_metrics(self.store, query.entity_type, query.entity_id, self.clock())
        return metrics.as_dict()

    async def get_account_analytics(self, account_id: str) -> Dict[str, Any]:
        query = validate_query(EntityQuery, entity_type="account", entity_id=account_id)
        analytics = await run_account_analytics(self.store, query.entity_id, self.clock())
        return analytics.as_dict()

    async def get_contact_analytics(self, contact_id: str) -> Dict[str, Any]:
        query = validate_query(EntityQuery, entity_type="contact", entity_id=contact_id)
        analytics = await run_contact_analytics(self.store, query.entity_id, self.clock())
        return analytics.as_dict()

    # -- monthly series --------------------------------------------------------

    async def _series_rows(self, metric_type: str, months: int) -> List[Dict[str, Any]]:
        now = self.clock()

        async def compute() -> List[Dict[str, Any]]:
            points = await get_series(self.store, metric_type, months, now)
            return [point.as_dict() for point in points]

        return await read_through(
            self.cache,
            self._key("trend-series", metric_type, months),
            self.config.cache.series_ttl_seconds,
            compute,
        )

    async def get_donation_trends(self, months: Optional[int] = None) -> List[Dict[str, Any]]:
        query = validate_query(SeriesQuery, self._limits(), months=self._months(months))
        return await self._series_rows("donations", query.months)

    async def get_event_attendance_trends(self, months: Optional[int] = None) -> List[Dict[str, Any]]:
        query = validate_query(SeriesQuery, self._limits(), months=self._months(months))
        return await self._series_rows("event_attendance", query.months)

    async def get_volunteer_hours_trends(self, months: Optional[int] = None) -> List[Dict[str, Any]]:
        query = validate_query(SeriesQuery, self._limits(), months=self._months(months))
        return await self._series_rows("volunteer_hours", query.months)

    # -- derived analyses ------------------------------------------------------

    async def get_trend_analysis(
        self, metric_type: Optional[str] = None, months: Optional[int] = None
    ) -> Dict[str, Any]:
        query = validate_query(TrendQuery, self._limits(), metric_type=metric_type, months=self._months(months))

        async def compute() -> Dict[str, Any]:
            rows = await self._series_rows(query.metric_type, query.months)
            try:
                analysis = analyze_trend(metric_display_name(query.metric_type), project(query.metric_type, rows))
            except NoDataError as exc:
                logger.error("No data for %s trend analysis over %s months", query.metric_type, query.months)
                raise ComputationError("trend analysis", details=query.model_dump()) from exc
            return analysis.as_dict()

        return await read_through(
            self.cache,
            self._key("trend-analysis", query.metric_type, query.months),
            self.config.cache.analysis_ttl_seconds,
            compute,
        )

    async def detect_anomalies(
        self,
        metric_type: Optional[str] = None,
        months: Optional[int] = None,
        sensitivity: Optional[float] = None,
    ) -> Dict[str, Any]:
        query = validate_query(
            AnomalyQuery,
            self._limits(),
            metric_type=metric_type,
            months=self._months(months),
            sensitivity=sensitivity if sensitivity is not None else self.config.anomalies.default_sensitivity,
        )

        async def compute() -> Dict[str, Any]:
            rows = await self._series_rows(query.metric_type, query.months)
            try:
                result = run_anomaly_detection(
                    metric_display_name(query.metric_type),
                    project(query.metric_type, rows),
                    query.sensitivity,
                )
            except NoDataError as exc:
                logger.error("No data for %s anomaly detection over %s months", query.metric_type, query.months)
                raise ComputationError("anomaly detection", details=query.model_dump()) from exc
            return result.as_dict()

        return await read_through(
            self.cache,
            self._key("anomalies", query.metric_type, query.months, repr(query.sensitivity)),
            self.config.cache.analysis_ttl_seconds,
            compute,
        )

    async def get_comparative_analytics(self, period_type: Optional[str] = None) -> Dict[str, Any]:
        query = validate_query(ComparativeQuery, period_type=period_type)
        now = self.clock()

        async def compute() -> Dict[str, Any]:
            analytics = await run_comparative(self.store, query.period_type, now)
            return analytics.as_dict()

        return await read_through(
            self.cache,
            self._key("comparative", query.period_type),
            self.config.cache.comparative_ttl_seconds,
            compute,
        )

    async def get_analytics_summary(
        self, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None
    ) -> Dict[str, Any]:
        now = self.clock()
        query = validate_query(
            SummaryQuery,
            start_date=start_date or year_start(now),
            end_date=end_date or now,
        )

        async def compute() -> Dict[str, Any]:
            summary = await run_summary(self.store, query.start_date, query.end_date, now)
            return summary.as_dict()

        return await read_through(
            self.cache,
            self._key("summary", query.start_date.isoformat(), query.end_date.isoformat()),
            self.config.cache.summary_ttl_seconds,
            compute,
        )
