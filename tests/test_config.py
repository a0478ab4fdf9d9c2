"""Tests for configuration precedence: defaults, caller overrides, then environment."""

from constituent_analytics.config import AnalyticsConfig, load_config


class TestLoadConfig:
    def test_defaults(self):
        cfg = load_config()
        assert cfg.database.url is None
        assert cfg.cache.enable is True
        assert cfg.cache.backend == "memory"
        assert cfg.cache.namespace == "analytics"
        assert (cfg.cache.series_ttl_seconds, cfg.cache.analysis_ttl_seconds) == (600, 3600)
        assert (cfg.cache.comparative_ttl_seconds, cfg.cache.summary_ttl_seconds) == (600, 300)
        assert cfg.trends.default_months == 12
        assert cfg.anomalies.default_sensitivity == 2.0
        assert cfg.log_level == "INFO"

    def test_overrides_apply_without_environment(self):
        cfg = load_config(
            {
                "database": {"url": "sqlite:///crm.db"},
                "cache": {"backend": "local", "summary_ttl_seconds": 30},
                "trends": {"default_months": 6},
                "log_level": "DEBUG",
            }
        )
        assert cfg.database.url == "sqlite:///crm.db"
        assert cfg.cache.backend == "local"
        assert cfg.cache.summary_ttl_seconds == 30
        assert cfg.cache.series_ttl_seconds == 600
        assert cfg.trends.default_months == 6
        assert cfg.log_level == "DEBUG"

    def test_environment_wins_over_overrides(self, monkeypatch):
        monkeypatch.setenv("ANALYTICS_DATABASE_URL", "postgresql+psycopg://crm@db/crm")
        monkeypatch.setenv("ANALYTICS_CACHE_BACKEND", "local")
        monkeypatch.setenv("ANALYTICS_CACHE_SUMMARY_TTL", "60")
        monkeypatch.setenv("ANALYTICS_CACHE_ENABLE", "false")
        monkeypatch.setenv("ANALYTICS_ANOMALY_SENSITIVITY", "3")

        cfg = load_config({"database": {"url": "sqlite:///crm.db"}, "cache": {"summary_ttl_seconds": 30}})

        assert cfg.database.url == "postgresql+psycopg://crm@db/crm"
        assert cfg.cache.backend == "local"
        assert cfg.cache.summary_ttl_seconds == 60
        assert cfg.cache.enable is False
        assert cfg.anomalies.default_sensitivity == 3.0

    def test_malformed_numbers_fall_back(self, monkeypatch):
        monkeypatch.setenv("ANALYTICS_CACHE_MAX_ENTRIES", "lots")
        monkeypatch.setenv("ANALYTICS_ANOMALY_SENSITIVITY", "high")
        cfg = load_config({"cache": {"max_entries": 50}})
        assert cfg.cache.max_entries == 50
        assert cfg.anomalies.default_sensitivity == 2.0

    def test_models_construct_directly(self):
        cfg = AnalyticsConfig()
        assert cfg.trends.max_months == 36
        assert cfg.trends.max_series_months == 24
        assert cfg.anomalies.min_months == 3
