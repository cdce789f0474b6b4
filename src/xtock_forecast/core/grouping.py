"""
Grouping and daily aggregation of sales records.

Day keys come from the wall-clock calendar components of each sale's
timestamp as recorded. Aware timestamps are never shifted to UTC first,
so a sale logged at 23:30 local time stays on its local day.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Union

from .models import DailyAggregate, SalesRecord


def group_by_item(records: Iterable[SalesRecord]) -> dict[str, list[SalesRecord]]:
    """Group records by exact item name, preserving input order within each group."""
    groups: dict[str, list[SalesRecord]] = {}
    for record in records:
        groups.setdefault(record.item, []).append(record)
    return groups


def date_key(value: Union[datetime, date]) -> str:
    """Return the ``YYYY-MM-DD`` key for a timestamp's local calendar day."""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def _sort_key(record: SalesRecord) -> tuple:
    # Mixed naive/aware timestamps cannot be compared directly; sort on
    # wall-clock components instead.
    d = record.date
    return (d.year, d.month, d.day, d.hour, d.minute, d.second, d.microsecond)


def aggregate_daily(records: Iterable[SalesRecord]) -> dict[str, int]:
    """Sum quantities per calendar day for one item's records.

    Args:
        records: Sales records belonging to a single item.

    Returns:
        Mapping of day key to total quantity, in ascending day order.
    """
    totals: dict[str, int] = {}
    for record in sorted(records, key=_sort_key):
        key = date_key(record.date)
        totals[key] = totals.get(key, 0) + record.quantity
    return totals


def daily_aggregates(item: str, records: Iterable[SalesRecord]) -> list[DailyAggregate]:
    """Same as :func:`aggregate_daily` but as DailyAggregate values."""
    return [
        DailyAggregate(item=item, date_key=key, total_quantity=total)
        for key, total in aggregate_daily(records).items()
    ]
