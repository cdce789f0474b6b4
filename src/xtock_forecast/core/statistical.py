"""
Statistical next-day demand forecasting.

The primary method takes the most recent 30 days that have sales for an
item, splits them into four contiguous blocks (7/7/7/9 days, oldest to
newest), averages each block and combines the averages with fixed weights
(0.50/0.30/0.10/0.10). The oldest block carries the most weight: the
long-run level is treated as more predictive of tomorrow than the last
week's noise. The weighted level is then scaled by a weather multiplier.

Items with fewer than 30 distinct sales days are skipped rather than
extrapolated. A separate, lenient RecencyWeightedForecaster exists for
callers that explicitly want a number for items with 3-29 days of history.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .grouping import aggregate_daily, group_by_item
from .models import ForecastResult, SalesRecord, Weather

logger = logging.getLogger(__name__)


DEFAULT_WEATHER_MULTIPLIERS: Dict[Weather, float] = {
    Weather.SUNNY: 1.2,
    Weather.CLOUDY: 1.0,
    Weather.RAINY: 0.8,
}


@dataclass(frozen=True)
class BlockWeightingConfig:
    """Constants for the block-weighted forecaster.

    These values are part of the forecast contract. Changing them changes
    every prediction the system makes.
    """

    window_days: int = 30
    block_sizes: Tuple[int, ...] = (7, 7, 7, 9)
    block_weights: Tuple[float, ...] = (0.50, 0.30, 0.10, 0.10)
    weather_multipliers: Dict[Weather, float] = field(
        default_factory=lambda: dict(DEFAULT_WEATHER_MULTIPLIERS)
    )
    decimals: int = 2

    def __post_init__(self):
        if sum(self.block_sizes) != self.window_days:
            raise ValueError(
                f"Block sizes {self.block_sizes} must sum to window_days={self.window_days}"
            )
        if len(self.block_sizes) != len(self.block_weights):
            raise ValueError("Need exactly one weight per block")
        missing = [w for w in Weather if w not in self.weather_multipliers]
        if missing:
            raise ValueError(f"Missing weather multipliers for: {[w.value for w in missing]}")

    def multiplier_for(self, weather: Weather) -> float:
        return self.weather_multipliers[weather]


def finalize_quantity(value: float, decimals: int = 2) -> float:
    """Clamp a raw prediction at zero and round it."""
    if not np.isfinite(value):
        return 0.0
    return round(max(0.0, float(value)), decimals)


def recent_daily_totals(records: Iterable[SalesRecord], window_days: int) -> List[int]:
    """Daily totals for the most recent ``window_days`` days with sales, oldest first."""
    totals = list(aggregate_daily(records).values())
    return totals[-window_days:]


class StatisticalForecaster:
    """Deterministic block-weighted forecaster.

    Holds only its configuration, so one instance can serve concurrent
    callers.

    Usage:
        forecaster = StatisticalForecaster()
        results = forecaster.forecast(records, Weather.SUNNY)
    """

    source = "statistical"

    def __init__(self, config: Optional[BlockWeightingConfig] = None):
        self.config = config or BlockWeightingConfig()

    @property
    def min_days(self) -> int:
        return self.config.window_days

    def weighted_level(self, daily_totals: Sequence[float]) -> float:
        """Weighted sum of block averages, before weather.

        ``daily_totals`` must hold exactly ``window_days`` values, oldest
        first. Days without sales are absent from the aggregate rather
        than zero, so a block averages over the days it actually has.
        """
        cfg = self.config
        if len(daily_totals) != cfg.window_days:
            raise ValueError(
                f"Expected {cfg.window_days} daily totals, got {len(daily_totals)}"
            )

        values = np.asarray(daily_totals, dtype=float)
        weighted = 0.0
        start = 0
        for size, weight in zip(cfg.block_sizes, cfg.block_weights):
            block = values[start:start + size]
            start += size
            if block.size == 0:
                continue
            weighted += float(block.mean()) * weight
        return weighted

    def forecast_item(
        self,
        item: str,
        records: Sequence[SalesRecord],
        weather: Weather = Weather.CLOUDY,
    ) -> Optional[ForecastResult]:
        """Forecast one item, or return None if its history is too short."""
        totals = recent_daily_totals(records, self.config.window_days)
        if len(totals) < self.config.window_days:
            logger.debug(
                f"Skipping {item!r}: {len(totals)} days of history, need {self.config.window_days}"
            )
            return None

        weather = Weather.coerce(weather)
        raw = self.weighted_level(totals) * self.config.multiplier_for(weather)
        return ForecastResult(
            item=item,
            predicted_quantity=finalize_quantity(raw, self.config.decimals),
            source=self.source,
        )

    def forecast(
        self,
        records: Iterable[SalesRecord],
        weather: Weather = Weather.CLOUDY,
    ) -> List[ForecastResult]:
        """Forecast every item in ``records`` that has enough history."""
        weather = Weather.coerce(weather)
        results = []
        for item, item_records in group_by_item(records).items():
            result = self.forecast_item(item, item_records, weather)
            if result is not None:
                results.append(result)
        return results


class RecencyWeightedForecaster(StatisticalForecaster):
    """Lenient forecaster for items with short histories.

    Uses linear recency weights (1 for the oldest day up to n for the
    newest) over the most recent days with sales, up to ``window_days``.
    Needs at least ``min_history_days`` distinct days.
    """

    source = "recency"

    def __init__(
        self,
        config: Optional[BlockWeightingConfig] = None,
        min_history_days: int = 3,
    ):
        super().__init__(config)
        if min_history_days < 1:
            raise ValueError("min_history_days must be at least 1")
        self.min_history_days = min_history_days

    @property
    def min_days(self) -> int:
        return self.min_history_days

    def weighted_level(self, daily_totals: Sequence[float]) -> float:
        values = np.asarray(daily_totals, dtype=float)
        if values.size == 0:
            return 0.0
        weights = np.arange(1, values.size + 1, dtype=float)
        return float(np.average(values, weights=weights))

    def forecast_item(
        self,
        item: str,
        records: Sequence[SalesRecord],
        weather: Weather = Weather.CLOUDY,
    ) -> Optional[ForecastResult]:
        totals = recent_daily_totals(records, self.config.window_days)
        if len(totals) < self.min_history_days:
            logger.debug(
                f"Skipping {item!r}: {len(totals)} days of history, need {self.min_history_days}"
            )
            return None

        weather = Weather.coerce(weather)
        raw = self.weighted_level(totals) * self.config.multiplier_for(weather)
        return ForecastResult(
            item=item,
            predicted_quantity=finalize_quantity(raw, self.config.decimals),
            source=self.source,
        )
