from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from typing import Any, List, Optional

from dotenv import load_dotenv

from .config import load_config
from .errors import AnalyticsError, NotFoundError
from .models import METRIC_TYPES, PERIOD_TYPES, to_jsonable
from .service import AnalyticsService
from .store import build_store

logger = logging.getLogger("constituent_analytics.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="constituent-analytics",
        description="Engagement analytics over the constituent CRM database",
    )
    parser.add_argument("--database-url", default=None, help="SQLAlchemy URL (default: ANALYTICS_DATABASE_URL)")
    parser.add_argument("--log-level", default=None, help="Logging level (default: ANALYTICS_LOG_LEVEL or INFO)")
    parser.add_argument("--no-cache", action="store_true", help="Bypass the report cache")
    commands = parser.add_subparsers(dest="command", required=True)

    summary = commands.add_parser("summary", help="Organisation snapshot (year to date by default)")
    summary.add_argument("--start", type=datetime.fromisoformat, default=None)
    summary.add_argument("--end", type=datetime.fromisoformat, default=None)

    series = commands.add_parser("series", help="Gap-filled monthly series")
    series.add_argument("--metric", choices=METRIC_TYPES, default="donations")
    series.add_argument("--months", type=int, default=None)

    trend = commands.add_parser("trend", help="Trend analysis of a monthly metric")
    trend.add_argument("--metric", choices=METRIC_TYPES, default="donations")
    trend.add_argument("--months", type=int, default=None)

    anomalies = commands.add_parser("anomalies", help="Anomaly detection on a monthly metric")
    anomalies.add_argument("--metric", choices=METRIC_TYPES, default="donations")
    anomalies.add_argument("--months", type=int, default=None)
    anomalies.add_argument("--sensitivity", type=float, default=None)

    comparative = commands.add_parser("comparative", help="Current vs previous period")
    comparative.add_argument("--period", choices=PERIOD_TYPES, default="month")

    account = commands.add_parser("account", help="Analytics for one account")
    account.add_argument("account_id")

    contact = commands.add_parser("contact", help="Analytics for one contact")
    contact.add_argument("contact_id")
    return parser


async def run_command(service: AnalyticsService, args: argparse.Namespace) -> Any:
    if args.command == "summary":
        return await service.get_analytics_summary(args.start, args.end)
    if args.command == "series":
        loaders = {
            "donations": service.get_donation_trends,
            "event_attendance": service.get_event_attendance_trends,
            "volunteer_hours": service.get_volunteer_hours_trends,
        }
        return await loaders[args.metric](args.months)
    if args.command == "trend":
        return await service.get_trend_analysis(args.metric, args.months)
    if args.command == "anomalies":
        return await service.detect_anomalies(args.metric, args.months, args.sensitivity)
    if args.command == "comparative":
        return await service.get_comparative_analytics(args.period)
    if args.command == "account":
        return await service.get_account_analytics(args.account_id)
    if args.command == "contact":
        return await service.get_contact_analytics(args.contact_id)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    config = load_config()
    if args.database_url:
        config.database = config.database.model_copy(update={"url": args.database_url})
    if args.no_cache:
        config.cache = config.cache.model_copy(update={"enable": False})

    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    store = build_store(config.database)
    if store is None:
        logger.error("No database configured; set ANALYTICS_DATABASE_URL or pass --database-url")
        return 2

    service = AnalyticsService(store, config=config)
    try:
        result = asyncio.run(run_command(service, args))
    except NotFoundError as exc:
        print(json.dumps({"error": exc.message, "code": exc.code}), file=sys.stderr)
        return 3
    except AnalyticsError as exc:
        logger.error("%s failed: %s", args.command, exc.message)
        payload = to_jsonable({"error": exc.message, "code": exc.code, "details": exc.details})
        print(json.dumps(payload), file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
