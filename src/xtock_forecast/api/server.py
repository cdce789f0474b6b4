"""
Xtock Forecast REST API Server.

A thin FastAPI wrapper around ForecastService: accept clean sales rows,
generate next-day forecasts and list stored forecasts. CSV parsing,
authentication and UI live elsewhere.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .. import __version__
from ..config import Settings
from ..core.errors import InvalidSalesRecordError, NoSalesDataError
from ..core.models import SalesRecord, Weather
from ..service import ForecastService, build_service

logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic Models for API
# =============================================================================


class SalesRow(BaseModel):
    """One validated sales row."""

    date: datetime = Field(..., description="Timestamp of the sale")
    item: str = Field(..., min_length=1, description="Item name")
    quantity: int = Field(..., gt=0, description="Units sold")
    unit: str = Field("units", description="Unit of measure")
    priceInCents: int = Field(0, ge=0, description="Unit price in cents")
    supplier: Optional[str] = Field(None)
    category: Optional[str] = Field(None)

    def to_record(self) -> SalesRecord:
        return SalesRecord(
            date=self.date,
            item=self.item,
            quantity=self.quantity,
            unit=self.unit,
            price_in_cents=self.priceInCents,
            supplier=self.supplier,
            category=self.category,
        )


class SalesUploadResponse(BaseModel):
    success: bool
    count: int
    records: list[dict[str, Any]]


class ForecastRequest(BaseModel):
    """Request to generate next-day forecasts."""

    weather: Weather = Field(Weather.CLOUDY, description="Tomorrow's weather")


class GenerateResponse(BaseModel):
    success: bool
    message: str
    forecasts: list[dict[str, Any]]
    forecastPeriod: int = 1
    forecastType: str = "daily"
    weather: str
    dataPointsUsed: int


class ForecastListResponse(BaseModel):
    success: bool
    forecasts: list[dict[str, Any]]
    weather: str
    count: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    storage_backend: str
    ai_enabled: bool


# =============================================================================
# Dependencies
# =============================================================================


def get_service(request: Request) -> ForecastService:
    return request.app.state.service


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[ForecastService] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Configuration; read from the environment if omitted.
        service: Prebuilt service (tests); built from settings if omitted.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or Settings()

    app = FastAPI(
        title="Xtock Forecast API",
        description="Next-day produce demand forecasting",
        version=__version__,
    )
    app.state.settings = settings
    app.state.service = service or build_service(settings)

    # CORS for browser-based clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(sales_router)
    app.include_router(forecast_router)

    logger.info(f"Xtock Forecast API created with {settings.storage_backend} storage")
    return app


# =============================================================================
# Routers
# =============================================================================

health_router = APIRouter(tags=["health"])
sales_router = APIRouter(prefix="/api/sales", tags=["sales"])
forecast_router = APIRouter(prefix="/api/forecasts", tags=["forecasts"])


@health_router.get("/health", response_model=HealthResponse)
def health_check(request: Request, service: ForecastService = Depends(get_service)):
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        storage_backend=request.app.state.settings.storage_backend,
        ai_enabled=service.orchestrator.strategy is not None,
    )


# =============================================================================
# Sales Endpoints
# =============================================================================


@sales_router.post("", response_model=SalesUploadResponse)
def upload_sales(rows: list[SalesRow], service: ForecastService = Depends(get_service)):
    """Store already-validated sales rows."""
    try:
        stored = service.add_sales(row.to_record() for row in rows)
    except InvalidSalesRecordError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"Sales upload error: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return SalesUploadResponse(
        success=True,
        count=len(stored),
        records=[r.to_dict() for r in stored],
    )


@sales_router.get("")
def list_sales(
    limit: int = Query(100, ge=1, le=10000),
    service: ForecastService = Depends(get_service),
):
    """Most recent sales, newest first."""
    records = service.sales_repo.get_recent(limit)
    return {"success": True, "records": [r.to_dict() for r in records], "count": len(records)}


# =============================================================================
# Forecast Endpoints
# =============================================================================


@forecast_router.post("/generate", response_model=GenerateResponse)
def generate_forecasts(
    request: Optional[ForecastRequest] = None,
    service: ForecastService = Depends(get_service),
):
    """Generate and store next-day forecasts for every item with enough history."""
    weather = request.weather if request else Weather.CLOUDY

    try:
        run = service.generate(weather)
    except NoSalesDataError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "No sales data available for forecasting",
                "message": "Please upload sales data first before generating forecasts",
                "code": e.code,
            },
        )
    except Exception as e:
        logger.error(f"Forecast generation error: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return GenerateResponse(
        success=True,
        message=f"Generated {len(run.forecasts)} next-day forecasts",
        forecasts=[f.to_dict() for f in run.forecasts],
        weather=run.weather.value,
        dataPointsUsed=run.data_points_used,
    )


@forecast_router.get("", response_model=ForecastListResponse)
def list_forecasts(
    limit: int = Query(50, ge=1, le=1000),
    service: ForecastService = Depends(get_service),
):
    """Stored forecasts, newest first, with the weather of the latest run."""
    forecasts = service.recent_forecasts(limit)
    weather = (forecasts[0].weather if forecasts else None) or Weather.CLOUDY.value

    return ForecastListResponse(
        success=True,
        forecasts=[f.to_dict() for f in forecasts],
        weather=weather,
        count=len(forecasts),
    )


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """CLI entry point for xtock-server command."""
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Xtock Forecast API Server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8081, help="Port to listen on")
    parser.add_argument("--db", default=None, help="SQLite database file (enables sqlite storage)")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    settings = Settings()
    if args.db:
        settings.storage_backend = "sqlite"
        settings.database_path = args.db

    uvicorn.run(create_app(settings), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
