#!/usr/bin/env python3
"""
Xtock Forecast CLI

Command-line interface for loading sales and generating next-day forecasts.

Usage:
    # Load clean sales rows from a CSV file
    xtock-forecast --db xtock.db import --csv sales.csv

    # Forecast tomorrow for a sunny day
    xtock-forecast --db xtock.db generate --weather sunny

    # Let Open-Meteo decide tomorrow's weather
    xtock-forecast --db xtock.db generate --auto-weather --lat 40.71 --lon -74.01

    # Show stored forecasts
    xtock-forecast --db xtock.db list --limit 20
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional, Tuple

import httpx
import pandas as pd

from xtock_forecast.config import Settings
from xtock_forecast.core.errors import InvalidSalesRecordError, NoSalesDataError
from xtock_forecast.core.models import Forecast, SalesRecord, Weather
from xtock_forecast.core.weather import WeatherClient
from xtock_forecast.service import ForecastService, build_service

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["date", "item", "quantity"]


def _optional(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def load_sales_csv(path: str) -> Tuple[List[SalesRecord], List[str]]:
    """Read already-clean sales rows from a CSV file.

    Expected columns: date, item, quantity, and optionally unit,
    price_in_cents, supplier, category.

    Returns:
        (records, errors) where errors describe rows that were skipped.
    """
    df = pd.read_csv(path, dtype={"item": str, "unit": str, "supplier": str, "category": str})
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"CSV is missing required columns: {', '.join(missing)}")

    records = []
    errors = []
    for i, row in enumerate(df.to_dict("records"), start=2):  # header is line 1
        price = row.get("price_in_cents")
        try:
            records.append(SalesRecord(
                date=str(row["date"]),
                item=str(row["item"]).strip() if pd.notna(row["item"]) else "",
                quantity=row["quantity"],
                unit=_optional(row.get("unit")) or "units",
                price_in_cents=price if price is not None and pd.notna(price) else 0,
                supplier=_optional(row.get("supplier")),
                category=_optional(row.get("category")),
            ))
        except InvalidSalesRecordError as e:
            errors.append(f"line {i}: {e}")

    logger.info(f"Loaded {len(records):,} sales records from {path} ({len(errors)} skipped)")
    return records, errors


def resolve_weather(args) -> Weather:
    """Weather from the command line, or from Open-Meteo with --auto-weather."""
    if not args.auto_weather:
        return Weather.coerce(args.weather)

    if args.lat is None or args.lon is None:
        logger.warning("--auto-weather needs --lat and --lon; using cloudy")
        return Weather.CLOUDY

    try:
        with WeatherClient(latitude=args.lat, longitude=args.lon) as client:
            return client.get_tomorrow_condition()
    except httpx.HTTPError as e:
        logger.warning(f"Could not fetch weather forecast: {e}; using cloudy")
        return Weather.CLOUDY


def print_forecasts(forecasts: List[Forecast], output: str) -> None:
    if output == "json":
        print(json.dumps([f.to_dict() for f in forecasts], indent=2))
        return

    if not forecasts:
        print("No forecasts.")
        return

    df = pd.DataFrame([
        {
            "item": f.item,
            "for": f.forecast_date.strftime("%Y-%m-%d"),
            "predicted": f.predicted_quantity,
            "order": f.based_on_data.get("recommendedOrderQuantity"),
            "confidence": f.confidence,
            "weather": f.based_on_data.get("weather"),
        }
        for f in forecasts
    ])
    print(df.to_string(index=False))


def cmd_import(args, service: ForecastService) -> int:
    """Load sales rows from CSV into storage."""
    try:
        records, errors = load_sales_csv(args.csv)
    except (OSError, ValueError) as e:
        logger.error(f"Could not read {args.csv}: {e}")
        return 1

    for error in errors:
        logger.warning(f"Skipped {error}")

    stored = service.add_sales(records)
    print(f"Imported {len(stored)} sales records")
    return 0


def cmd_generate(args, service: ForecastService) -> int:
    """Generate and store next-day forecasts."""
    weather = resolve_weather(args)
    logger.info(f"Generating next-day forecasts (weather: {weather.value})")

    try:
        run = service.generate(weather)
    except NoSalesDataError as e:
        logger.error(f"{e}. Import sales data first.")
        return 1

    if args.output == "table":
        print(f"\n{'='*60}")
        print(f"NEXT-DAY FORECAST (weather: {run.weather.value})")
        print(f"{'='*60}")
        print(f"Sales records used: {run.data_points_used}")
        print()
    print_forecasts(run.forecasts, args.output)
    return 0


def cmd_list(args, service: ForecastService) -> int:
    """Show stored forecasts, newest first."""
    print_forecasts(service.recent_forecasts(args.limit), args.output)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Xtock Forecast CLI - next-day produce demand forecasting"
    )
    parser.add_argument(
        "--db",
        default="xtock.db",
        help="Path to SQLite database (default: xtock.db)"
    )
    parser.add_argument(
        "--output",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)"
    )
    parser.add_argument(
        "--no-llm",
        action="store_true",
        help="Skip the LLM and use the statistical forecaster only"
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Also forecast items with 3-29 days of history"
    )
    parser.add_argument(
        "--confidence",
        choices=["fixed", "variance"],
        default=None,
        help="Confidence scoring mode"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    import_parser = subparsers.add_parser("import", help="Import sales from CSV")
    import_parser.add_argument("--csv", required=True, help="CSV file with clean sales rows")
    import_parser.set_defaults(func=cmd_import)

    generate_parser = subparsers.add_parser("generate", help="Generate next-day forecasts")
    generate_parser.add_argument(
        "--weather",
        choices=[w.value for w in Weather],
        default=Weather.CLOUDY.value,
        help="Tomorrow's weather (default: cloudy)"
    )
    generate_parser.add_argument(
        "--auto-weather",
        action="store_true",
        help="Look up tomorrow's weather on Open-Meteo"
    )
    generate_parser.add_argument("--lat", type=float, help="Latitude for --auto-weather")
    generate_parser.add_argument("--lon", type=float, help="Longitude for --auto-weather")
    generate_parser.set_defaults(func=cmd_generate)

    list_parser = subparsers.add_parser("list", help="List stored forecasts")
    list_parser.add_argument("--limit", type=int, default=50, help="Max rows (default: 50)")
    list_parser.set_defaults(func=cmd_list)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if not args.command:
        parser.print_help()
        return 1

    settings = Settings(storage_backend="sqlite", database_path=args.db)
    if args.no_llm:
        settings.use_llm = False
    if args.lenient:
        settings.lenient_fallback = True
    if args.confidence:
        settings.confidence_mode = args.confidence

    return args.func(args, build_service(settings))


if __name__ == "__main__":
    sys.exit(main())
