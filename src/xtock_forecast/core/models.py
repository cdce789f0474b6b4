"""
Domain records for the forecasting core.

SalesRecord is the only input the core accepts. DailyAggregate and
ForecastResult are transient values built on every run, and Forecast is
the persisted entity handed to order generation and reporting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from .errors import InvalidSalesRecordError


class Weather(str, Enum):
    """Next-day weather condition used to scale a prediction."""

    SUNNY = "sunny"
    CLOUDY = "cloudy"
    RAINY = "rainy"

    @classmethod
    def coerce(cls, value: Optional[Any]) -> "Weather":
        """Accept a Weather, a string, or None (cloudy)."""
        if value is None:
            return cls.CLOUDY
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


def _coerce_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        # fromisoformat on 3.10 does not accept a trailing Z
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidSalesRecordError(f"Unparseable sale date: {value!r}") from e
    raise InvalidSalesRecordError(f"Unparseable sale date: {value!r}")


@dataclass(frozen=True)
class SalesRecord:
    """A single validated sale observation.

    Attributes:
        date: When the sale happened. Only the calendar day matters.
        item: Free-text item name, grouped by exact match.
        quantity: Units sold, always positive.
        unit: Unit-of-measure label (display only).
        price_in_cents: Unit price, never negative.
        supplier: Optional supplier tag.
        category: Optional category tag.
        id: Storage identifier, None until stored.
        uploaded_at: When storage accepted the record.
    """

    date: datetime
    item: str
    quantity: int
    unit: str = "units"
    price_in_cents: int = 0
    supplier: Optional[str] = None
    category: Optional[str] = None
    id: Optional[str] = None
    uploaded_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "date", _coerce_datetime(self.date))

        if not isinstance(self.item, str) or not self.item.strip():
            raise InvalidSalesRecordError("Sales record item must be a non-empty string")

        try:
            quantity = int(self.quantity)
            price = int(self.price_in_cents)
        except (TypeError, ValueError) as e:
            raise InvalidSalesRecordError(f"Non-numeric quantity or price for {self.item!r}") from e

        if float(self.quantity) != quantity or float(self.price_in_cents) != price:
            raise InvalidSalesRecordError(f"Quantity and price must be whole numbers for {self.item!r}")
        if quantity <= 0:
            raise InvalidSalesRecordError(f"Quantity must be positive for {self.item!r}, got {quantity}")
        if price < 0:
            raise InvalidSalesRecordError(f"Price must be non-negative for {self.item!r}, got {price}")

        object.__setattr__(self, "quantity", quantity)
        object.__setattr__(self, "price_in_cents", price)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "item": self.item,
            "quantity": self.quantity,
            "unit": self.unit,
            "priceInCents": self.price_in_cents,
            "supplier": self.supplier,
            "category": self.category,
            "uploadedAt": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }


@dataclass(frozen=True)
class DailyAggregate:
    """Total quantity of one item sold on one calendar day."""

    item: str
    date_key: str
    total_quantity: int


@dataclass(frozen=True)
class ForecastResult:
    """Next-day prediction for one item.

    ``source`` records which strategy produced the value. It is used for
    logging only and is not persisted.
    """

    item: str
    predicted_quantity: float
    source: str = "statistical"


@dataclass
class Forecast:
    """Persisted next-day forecast for one item."""

    forecast_date: datetime
    item: str
    predicted_quantity: float
    confidence: int
    current_stock: Optional[int] = None
    predicted_savings_in_cents: Optional[int] = 0
    based_on_data: dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def weather(self) -> Optional[str]:
        return self.based_on_data.get("weather")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "forecastDate": self.forecast_date.isoformat(),
            "item": self.item,
            "predictedQuantity": self.predicted_quantity,
            "confidence": self.confidence,
            "currentStock": self.current_stock,
            "predictedSavingsInCents": self.predicted_savings_in_cents,
            "basedOnData": self.based_on_data,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
