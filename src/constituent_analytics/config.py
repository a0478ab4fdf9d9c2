"""
Runtime configuration for the analytics engine.

Values come from the defaults below, then an optional mapping supplied by the
caller, then ``ANALYTICS_*`` environment variables.
"""

from __future__ import annotations

import os
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel


class DatabaseConfig(BaseModel):
    url: Optional[str] = None
    echo: bool = False


class CacheConfig(BaseModel):
    enable: bool = True
    backend: Literal["memory", "local", "none"] = "memory"
    directory: str = os.path.expanduser("~/.constituent_analytics/cache")
    namespace: str = "analytics"
    max_entries: int = 1000
    series_ttl_seconds: int = 600
    analysis_ttl_seconds: int = 3600
    comparative_ttl_seconds: int = 600
    summary_ttl_seconds: int = 300


class TrendConfig(BaseModel):
    default_months: int = 12
    max_months: int = 36
    max_series_months: int = 24


class AnomalyConfig(BaseModel):
    default_sensitivity: float = 2.0
    min_sensitivity: float = 1.0
    max_sensitivity: float = 4.0
    min_months: int = 3


class AnalyticsConfig(BaseModel):
    database: DatabaseConfig = DatabaseConfig()
    cache: CacheConfig = CacheConfig()
    trends: TrendConfig = TrendConfig()
    anomalies: AnomalyConfig = AnomalyConfig()
    log_level: str = "INFO"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_config(overrides: Optional[Mapping[str, Any]] = None) -> AnalyticsConfig:
    cfg = AnalyticsConfig()
    overrides = overrides or {}

    db_cfg = overrides.get("database", {})
    cfg.database = DatabaseConfig(
        url=os.getenv("ANALYTICS_DATABASE_URL", db_cfg.get("url", cfg.database.url)),
        echo=_env_bool("ANALYTICS_DATABASE_ECHO", db_cfg.get("echo", cfg.database.echo)),
    )

    cache_cfg = overrides.get("cache", {})
    defaults = cfg.cache
    cfg.cache = CacheConfig(
        enable=_env_bool("ANALYTICS_CACHE_ENABLE", cache_cfg.get("enable", defaults.enable)),
        backend=os.getenv("ANALYTICS_CACHE_BACKEND", cache_cfg.get("backend", defaults.backend)),
        directory=os.getenv("ANALYTICS_CACHE_DIR", cache_cfg.get("directory", defaults.directory)),
        namespace=os.getenv("ANALYTICS_CACHE_NAMESPACE", cache_cfg.get("namespace", defaults.namespace)),
        max_entries=_env_int("ANALYTICS_CACHE_MAX_ENTRIES", cache_cfg.get("max_entries", defaults.max_entries)),
        series_ttl_seconds=_env_int(
            "ANALYTICS_CACHE_SERIES_TTL", cache_cfg.get("series_ttl_seconds", defaults.series_ttl_seconds)
        ),
        analysis_ttl_seconds=_env_int(
            "ANALYTICS_CACHE_ANALYSIS_TTL", cache_cfg.get("analysis_ttl_seconds", defaults.analysis_ttl_seconds)
        ),
        comparative_ttl_seconds=_env_int(
            "ANALYTICS_CACHE_COMPARATIVE_TTL",
            cache_cfg.get("comparative_ttl_seconds", defaults.comparative_ttl_seconds),
        ),
        summary_ttl_seconds=_env_int(
            "ANALYTICS_CACHE_SUMMARY_TTL", cache_cfg.get("summary_ttl_seconds", defaults.summary_ttl_seconds)
        ),
    )

    trend_cfg = overrides.get("trends", {})
    cfg.trends = TrendConfig(
        default_months=_env_int("ANALYTICS_TREND_MONTHS", trend_cfg.get("default_months", cfg.trends.default_months)),
        max_months=trend_cfg.get("max_months", cfg.trends.max_months),
        max_series_months=trend_cfg.get("max_series_months", cfg.trends.max_series_months),
    )

    anomaly_cfg = overrides.get("anomalies", {})
    cfg.anomalies = AnomalyConfig(
        default_sensitivity=_env_float(
            "ANALYTICS_ANOMALY_SENSITIVITY",
            anomaly_cfg.get("default_sensitivity", cfg.anomalies.default_sensitivity),
        ),
        min_sensitivity=anomaly_cfg.get("min_sensitivity", cfg.anomalies.min_sensitivity),
        max_sensitivity=anomaly_cfg.get("max_sensitivity", cfg.anomalies.max_sensitivity),
        min_months=anomaly_cfg.get("min_months", cfg.anomalies.min_months),
    )

    cfg.log_level = os.getenv("ANALYTICS_LOG_LEVEL", overrides.get("log_level", cfg.log_level))
    return cfg
