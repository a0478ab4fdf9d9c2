"""Tests for the command-line entry point against a seeded SQLite database."""

import json
from datetime import datetime
from decimal import Decimal

import pytest

from constituent_analytics.cli import build_parser, main
from constituent_analytics.models import to_jsonable


@pytest.fixture(autouse=True)
def _no_dotenv(monkeypatch):
    monkeypatch.setattr("constituent_analytics.cli.load_dotenv", lambda: False)


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["anomalies"])
        assert args.metric == "donations"
        assert args.months is None
        assert args.sensitivity is None
        assert args.no_cache is False

    def test_rejects_unknown_metric(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["trend", "--metric", "pledges"])


class TestMain:
    def test_comparative_prints_json(self, sqlite_url, capsys):
        assert main(["--database-url", sqlite_url, "--no-cache", "comparative", "--period", "year"]) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["period_type"] == "year"
        assert set(report["metrics"]) == {
            "total_donations",
            "donation_count",
            "average_donation",
            "new_contacts",
            "total_events",
            "volunteer_hours",
        }

    def test_contact_report(self, sqlite_url, capsys):
        assert main(["--database-url", sqlite_url, "--no-cache", "contact", "c-3"]) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["contact_name"] == "Alan Turing"
        assert report["volunteer_metrics"]["volunteer_id"] == "v-1"

    def test_series_command(self, sqlite_url, capsys):
        assert main(["--database-url", sqlite_url, "series", "--metric", "volunteer_hours", "--months", "3"]) == 0

        points = json.loads(capsys.readouterr().out)
        assert len(points) == 3

    def test_missing_database_configuration(self, capsys):
        assert main(["summary"]) == 2

    def test_unknown_contact(self, sqlite_url, capsys):
        assert main(["--database-url", sqlite_url, "--no-cache", "contact", "c-404"]) == 3

        error = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert error == {"error": "Contact not found", "code": "NOT_FOUND"}

    def test_invalid_parameter(self, sqlite_url, capsys):
        assert main(["--database-url", sqlite_url, "--no-cache", "trend", "--months", "40"]) == 1

        error = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert error["code"] == "INVALID_PARAMETER"
        assert error["details"] == {"field": "months"}


class TestJsonPayload:
    def test_error_details_are_serialisable(self):
        payload = to_jsonable({"details": {"start": datetime(2026, 1, 1), "amount": Decimal("12.50")}})
        assert json.loads(json.dumps(payload)) == {"details": {"start": "2026-01-01T00:00:00", "amount": 12.5}}
