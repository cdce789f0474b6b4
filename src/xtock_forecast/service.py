"""
Wiring of storage, orchestration and persistence.

The API server and the CLI both build one ForecastService at startup from
Settings and call it per request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .config import Settings
from .core.models import Forecast, SalesRecord, Weather
from .core.orchestrator import ForecastOrchestrator
from .core.persister import ConfidenceMode, ForecastPersister
from .core.repository import ForecastRepository, SalesRepository, build_repositories
from .llm.prediction import build_prediction_strategy

logger = logging.getLogger(__name__)


@dataclass
class GenerationRun:
    """Outcome of one forecast generation request."""
    forecasts: List[Forecast]
    weather: Weather
    data_points_used: int


class ForecastService:
    """Loads recent sales, forecasts tomorrow and stores the forecasts."""

    def __init__(
        self,
        sales_repo: SalesRepository,
        forecast_repo: ForecastRepository,
        orchestrator: Optional[ForecastOrchestrator] = None,
        persister: Optional[ForecastPersister] = None,
        sales_limit: int = 1000,
    ):
        self.sales_repo = sales_repo
        self.forecast_repo = forecast_repo
        self.orchestrator = orchestrator or ForecastOrchestrator()
        self.persister = persister or ForecastPersister(forecast_repo)
        self.sales_limit = sales_limit

    def add_sales(self, records: Iterable[SalesRecord]) -> List[SalesRecord]:
        return self.sales_repo.add_many(records)

    def generate(self, weather: Weather = Weather.CLOUDY) -> GenerationRun:
        """Forecast tomorrow for every item with enough recent history.

        Raises:
            NoSalesDataError: if the store holds no sales at all.
        """
        weather = Weather.coerce(weather)
        sales = self.sales_repo.get_recent(self.sales_limit)
        logger.info(f"Found {len(sales)} sales records")

        results = self.orchestrator.generate(sales, weather)
        forecasts = self.persister.persist(results, sales, weather)
        return GenerationRun(forecasts=forecasts, weather=weather, data_points_used=len(sales))

    def recent_forecasts(self, limit: int = 50) -> List[Forecast]:
        return self.forecast_repo.get_recent(limit)


def build_service(settings: Optional[Settings] = None) -> ForecastService:
    """Create a ForecastService from configuration."""
    settings = settings or Settings()
    sales_repo, forecast_repo = build_repositories(settings)

    orchestrator = ForecastOrchestrator(
        strategy=build_prediction_strategy(settings),
        lenient_fallback=settings.lenient_fallback,
        summary_row_limit=settings.summary_row_limit,
    )
    persister = ForecastPersister(
        forecast_repo,
        confidence_mode=ConfidenceMode(settings.confidence_mode),
    )
    return ForecastService(
        sales_repo,
        forecast_repo,
        orchestrator=orchestrator,
        persister=persister,
        sales_limit=settings.sales_limit,
    )
