"""
Turns forecast results into stored Forecast entities.

Adds the metadata order generation relies on (confidence, reasoning,
recommended order quantity) and writes one row per item. Writes are
sequential and not transactional across the batch: forecasts can always
be regenerated, so a partial batch is recoverable.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence

import numpy as np
from scipy import stats

from .grouping import group_by_item
from .models import Forecast, ForecastResult, SalesRecord, Weather
from .repository import ForecastRepository
from .statistical import BlockWeightingConfig, recent_daily_totals

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 75
MIN_VARIANCE_CONFIDENCE = 0.3
MAX_VARIANCE_CONFIDENCE = 0.8


class ConfidenceMode(str, Enum):
    """How the confidence score of a stored forecast is derived."""

    FIXED = "fixed"
    """Same score for every forecast (75 by default)."""

    VARIANCE = "variance"
    """1 - coefficient of variation of daily totals, clamped to [0.3, 0.8]."""


def variance_confidence(daily_totals: Sequence[float]) -> int:
    """Confidence (0-100) from how steady an item's daily sales are."""
    values = np.asarray(daily_totals, dtype=float)
    if values.size < 2 or values.mean() <= 0:
        return int(round(MIN_VARIANCE_CONFIDENCE * 100))

    cv = float(stats.variation(values))
    score = min(MAX_VARIANCE_CONFIDENCE, max(MIN_VARIANCE_CONFIDENCE, 1.0 - cv))
    return int(round(score * 100))


def format_reasoning(predicted_quantity: float, weather: Weather) -> str:
    return f"1-day prediction for tomorrow: {predicted_quantity} units (weather: {weather.value})"


class ForecastPersister:
    """Builds and saves Forecast entities.

    Args:
        forecast_repo: Where forecasts are stored.
        confidence_mode: FIXED or VARIANCE.
        fixed_confidence: Score used in FIXED mode.
        window_days: History window used for VARIANCE confidence.
        clock: Returns "now"; injectable for tests.
    """

    def __init__(
        self,
        forecast_repo: ForecastRepository,
        confidence_mode: ConfidenceMode = ConfidenceMode.FIXED,
        fixed_confidence: int = DEFAULT_CONFIDENCE,
        window_days: int = BlockWeightingConfig().window_days,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not 0 <= fixed_confidence <= 100:
            raise ValueError(f"fixed_confidence must be within 0-100, got {fixed_confidence}")
        self.forecast_repo = forecast_repo
        self.confidence_mode = ConfidenceMode(confidence_mode)
        self.fixed_confidence = fixed_confidence
        self.window_days = window_days
        self.clock = clock or datetime.now

    def _confidence(self, item_records: Sequence[SalesRecord]) -> int:
        if self.confidence_mode is ConfidenceMode.VARIANCE:
            return variance_confidence(recent_daily_totals(item_records, self.window_days))
        return self.fixed_confidence

    def build(
        self,
        result: ForecastResult,
        item_records: Sequence[SalesRecord],
        weather: Weather = Weather.CLOUDY,
    ) -> Forecast:
        """Create an unsaved Forecast for one result."""
        weather = Weather.coerce(weather)
        return Forecast(
            forecast_date=self.clock() + timedelta(days=1),
            item=result.item,
            predicted_quantity=result.predicted_quantity,
            confidence=self._confidence(item_records),
            current_stock=None,
            predicted_savings_in_cents=0,
            based_on_data={
                "dataPoints": len(item_records),
                "forecastPeriod": 1,
                "reasoning": format_reasoning(result.predicted_quantity, weather),
                "recommendedOrderQuantity": result.predicted_quantity,
                "forecastType": "daily",
                "weather": weather.value,
            },
        )

    def persist(
        self,
        results: Iterable[ForecastResult],
        sales_records: Sequence[SalesRecord],
        weather: Weather = Weather.CLOUDY,
    ) -> List[Forecast]:
        """Save one Forecast per result and return the stored entities."""
        groups = group_by_item(sales_records)
        saved = []
        for result in results:
            forecast = self.build(result, groups.get(result.item, []), weather)
            saved.append(self.forecast_repo.save(forecast))
        logger.info(f"Persisted {len(saved)} forecasts")
        return saved
