"""
Forecast orchestration: external strategy first, statistics as fallback.

Per request:

    AttemptPrimary --ok--------------------------------> Done
        |  schema error / empty / any exception
        v
    Fallback (StatisticalForecaster [+ recency]) -------> Done

If no external strategy is configured the primary attempt is skipped and
the run goes straight to the statistical path. The only error that reaches
the caller is NoSalesDataError, raised before either strategy runs.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from .errors import NoSalesDataError
from .grouping import date_key, group_by_item
from .models import ForecastResult, SalesRecord, Weather
from .statistical import (
    RecencyWeightedForecaster,
    StatisticalForecaster,
    finalize_quantity,
)
from .strategy import (
    ExternalPredictionStrategy,
    PredictionOk,
    PredictionSchemaError,
    validate_prediction_payload,
)

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_ROW_LIMIT = 200


def build_tabular_summary(
    records: Iterable[SalesRecord],
    row_limit: int = DEFAULT_SUMMARY_ROW_LIMIT,
) -> str:
    """Render the most recent ``row_limit`` sales as ``date,item,quantity`` rows.

    Rows are written oldest first so the newest sales end the table.
    """
    ordered = sorted(
        records,
        key=lambda r: (r.date.year, r.date.month, r.date.day, r.date.hour, r.date.minute, r.date.second),
    )
    if row_limit > 0:
        ordered = ordered[-row_limit:]
    lines = ["date,item,quantity"]
    for record in ordered:
        item = record.item.replace(",", " ")
        lines.append(f"{date_key(record.date)},{item},{record.quantity}")
    return "\n".join(lines)


def classify_failure(error: BaseException) -> str:
    """Bucket a strategy exception as auth, rate_limit, server_error or unknown."""
    status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)

    if isinstance(status, int):
        if status in (401, 403):
            return "auth"
        if status == 429:
            return "rate_limit"
        if status >= 500:
            return "server_error"

    name = type(error).__name__
    if "Authentication" in name or "PermissionDenied" in name:
        return "auth"
    if "RateLimit" in name:
        return "rate_limit"
    if "InternalServer" in name or "ServiceUnavailable" in name:
        return "server_error"
    return "unknown"


class ForecastOrchestrator:
    """Chooses which strategy produces the forecast for a request.

    Args:
        strategy: Optional external prediction strategy (e.g. an LLM).
            None means the primary attempt is skipped.
        statistical: Block-weighted forecaster used as the terminal fallback.
        recency: Lenient forecaster for short histories.
        lenient_fallback: When True, items the block-weighted forecaster
            skips are forecast by ``recency`` instead of being omitted.
        summary_row_limit: Cap on rows sent to the external strategy.
    """

    def __init__(
        self,
        strategy: Optional[ExternalPredictionStrategy] = None,
        statistical: Optional[StatisticalForecaster] = None,
        recency: Optional[RecencyWeightedForecaster] = None,
        lenient_fallback: bool = False,
        summary_row_limit: int = DEFAULT_SUMMARY_ROW_LIMIT,
    ):
        self.strategy = strategy
        self.statistical = statistical or StatisticalForecaster()
        self.recency = recency or RecencyWeightedForecaster(self.statistical.config)
        self.lenient_fallback = lenient_fallback
        self.summary_row_limit = summary_row_limit

    def generate(
        self,
        sales_records: Sequence[SalesRecord],
        weather: Weather = Weather.CLOUDY,
    ) -> List[ForecastResult]:
        """Produce next-day forecasts for every item with enough history.

        Raises:
            NoSalesDataError: if ``sales_records`` is empty.
        """
        records = list(sales_records or [])
        if not records:
            raise NoSalesDataError()

        weather = Weather.coerce(weather)

        if self.strategy is None:
            logger.info("No external prediction strategy configured; using statistical forecaster")
        else:
            results = self._attempt_primary(records, weather)
            if results is not None:
                return results

        return self._fallback(records, weather)

    def _attempt_primary(
        self,
        records: List[SalesRecord],
        weather: Weather,
    ) -> Optional[List[ForecastResult]]:
        name = getattr(self.strategy, "name", type(self.strategy).__name__)
        summary = build_tabular_summary(records, self.summary_row_limit)

        try:
            raw = self.strategy.predict(summary, weather)
        except Exception as e:
            logger.warning(
                f"Prediction strategy {name} failed ({classify_failure(e)}): {e}; "
                "falling back to statistical forecast"
            )
            return None

        outcome = validate_prediction_payload(raw)
        if isinstance(outcome, PredictionSchemaError):
            logger.warning(f"Prediction strategy {name} returned malformed output: {outcome.reason}")
            return None
        if isinstance(outcome, PredictionOk) and not outcome.predictions:
            logger.warning(f"Prediction strategy {name} returned no predictions")
            return None

        known_items = {r.item for r in records}
        results = []
        seen = set()
        for p in outcome.predictions:
            if p.item not in known_items:
                logger.warning(f"Prediction strategy {name} invented item {p.item!r}; dropped")
                continue
            if p.item in seen:
                logger.warning(f"Prediction strategy {name} repeated item {p.item!r}; keeping the first")
                continue
            seen.add(p.item)
            results.append(ForecastResult(
                item=p.item,
                predicted_quantity=finalize_quantity(p.predicted_quantity),
                source="ai",
            ))

        if not results:
            logger.warning(f"Prediction strategy {name} returned no items from the sales history")
            return None

        logger.info(f"Prediction strategy {name} produced {len(results)} forecasts")
        return results

    def _fallback(self, records: List[SalesRecord], weather: Weather) -> List[ForecastResult]:
        results = []
        skipped = 0
        for item, item_records in group_by_item(records).items():
            result = self.statistical.forecast_item(item, item_records, weather)
            if result is None and self.lenient_fallback:
                result = self.recency.forecast_item(item, item_records, weather)
            if result is None:
                skipped += 1
                continue
            results.append(result)

        logger.info(
            f"Statistical forecast produced {len(results)} forecasts "
            f"({skipped} items skipped for insufficient history)"
        )
        return results


def generate_forecasts(
    sales_records: Sequence[SalesRecord],
    weather: Weather = Weather.CLOUDY,
    strategy: Optional[ExternalPredictionStrategy] = None,
    lenient_fallback: bool = False,
) -> List[ForecastResult]:
    """Convenience wrapper around :class:`ForecastOrchestrator`."""
    orchestrator = ForecastOrchestrator(strategy=strategy, lenient_fallback=lenient_fallback)
    return orchestrator.generate(sales_records, weather)
