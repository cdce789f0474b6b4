"""
Xtock Forecast - next-day produce demand forecasting.

Turns a stream of per-sale records into a per-item quantity for tomorrow,
scaled by the weather. An LLM is asked first when one is configured; any
failure falls back to a deterministic block-weighted statistical forecast.

Usage:
    from xtock_forecast import SalesRecord, Weather, generate_forecasts

    results = generate_forecasts(records, Weather.SUNNY)
"""

__version__ = "1.0.0"

from .config import Settings
from .core import (
    BlockWeightingConfig,
    ConfidenceMode,
    DailyAggregate,
    Forecast,
    ForecastOrchestrator,
    ForecastPersister,
    ForecastResult,
    NoSalesDataError,
    RecencyWeightedForecaster,
    SalesRecord,
    StatisticalForecaster,
    Weather,
    XtockError,
    aggregate_daily,
    build_repositories,
    generate_forecasts,
    group_by_item,
)

__all__ = [
    "__version__",
    "Settings",
    "SalesRecord",
    "DailyAggregate",
    "ForecastResult",
    "Forecast",
    "Weather",
    "XtockError",
    "NoSalesDataError",
    "group_by_item",
    "aggregate_daily",
    "BlockWeightingConfig",
    "StatisticalForecaster",
    "RecencyWeightedForecaster",
    "ForecastOrchestrator",
    "generate_forecasts",
    "ConfidenceMode",
    "ForecastPersister",
    "build_repositories",
]
