"""Shared fixtures for forecasting tests."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List

import pytest

from xtock_forecast.core.models import SalesRecord


START = datetime(2024, 1, 1, 10, 0)


def make_history(
    item: str,
    daily_quantities: Iterable[int],
    start: datetime = START,
    step_days: int = 1,
) -> List[SalesRecord]:
    """One sale per day for ``item``, oldest first."""
    return [
        SalesRecord(
            date=start + timedelta(days=i * step_days),
            item=item,
            quantity=q,
            unit="kg",
            price_in_cents=250,
        )
        for i, q in enumerate(daily_quantities)
    ]


def block_history(item: str = "Tomatoes", levels=(10, 20, 30, 40)) -> List[SalesRecord]:
    """30 days whose 7/7/7/9 blocks average exactly ``levels``."""
    quantities = [levels[0]] * 7 + [levels[1]] * 7 + [levels[2]] * 7 + [levels[3]] * 9
    return make_history(item, quantities)


class FakeStrategy:
    """External strategy stub that returns or raises whatever it is given."""

    name = "fake"

    def __init__(self, response=None, error: Exception = None):
        self.response = response
        self.error = error
        self.calls = []

    def predict(self, tabular_summary, weather):
        self.calls.append((tabular_summary, weather))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def tomatoes_history():
    return block_history()


@pytest.fixture
def mixed_history():
    """Tomatoes with 30 days, Basil with only 10."""
    return block_history() + make_history("Basil", [4] * 10)
