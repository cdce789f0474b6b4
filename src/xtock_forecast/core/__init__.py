"""
Core forecasting modules.

- models: sales records, forecast results and stored forecasts
- grouping: per-item grouping and daily aggregation
- statistical: block-weighted forecaster (and the lenient recency variant)
- strategy: contract and schema validation for external predictors
- orchestrator: external-first, statistics-fallback coordination
- persister: forecast results -> stored Forecast entities
- repository: in-memory and SQLite storage
- weather: tomorrow's condition from Open-Meteo
"""

from .errors import InvalidSalesRecordError, NoSalesDataError, XtockError
from .grouping import aggregate_daily, daily_aggregates, date_key, group_by_item
from .models import DailyAggregate, Forecast, ForecastResult, SalesRecord, Weather
from .orchestrator import (
    ForecastOrchestrator,
    build_tabular_summary,
    classify_failure,
    generate_forecasts,
)
from .persister import ConfidenceMode, ForecastPersister, variance_confidence
from .repository import (
    ForecastRepository,
    InMemoryForecastRepository,
    InMemorySalesRepository,
    SalesRepository,
    SqliteForecastRepository,
    SqliteSalesRepository,
    build_repositories,
)
from .statistical import (
    BlockWeightingConfig,
    RecencyWeightedForecaster,
    StatisticalForecaster,
)
from .strategy import (
    ExternalPredictionStrategy,
    PredictionOk,
    PredictionSchemaError,
    validate_prediction_payload,
)
from .weather import WeatherClient, condition_for_code

__all__ = [
    # Errors
    "XtockError",
    "NoSalesDataError",
    "InvalidSalesRecordError",
    # Models
    "SalesRecord",
    "DailyAggregate",
    "ForecastResult",
    "Forecast",
    "Weather",
    # Grouping
    "group_by_item",
    "aggregate_daily",
    "daily_aggregates",
    "date_key",
    # Statistical
    "BlockWeightingConfig",
    "StatisticalForecaster",
    "RecencyWeightedForecaster",
    # Strategy contract
    "ExternalPredictionStrategy",
    "PredictionOk",
    "PredictionSchemaError",
    "validate_prediction_payload",
    # Orchestration
    "ForecastOrchestrator",
    "generate_forecasts",
    "build_tabular_summary",
    "classify_failure",
    # Persistence
    "ConfidenceMode",
    "ForecastPersister",
    "variance_confidence",
    "SalesRepository",
    "ForecastRepository",
    "InMemorySalesRepository",
    "InMemoryForecastRepository",
    "SqliteSalesRepository",
    "SqliteForecastRepository",
    "build_repositories",
    # Weather
    "WeatherClient",
    "condition_for_code",
]
