"""
Contract for external (non-statistical) prediction strategies.

A strategy receives a compact tabular summary of recent sales and the
weather value, and returns predictions. Its output is never trusted as-is:
every response passes through :func:`validate_prediction_payload`, which
returns a tagged result the orchestrator branches on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Protocol, Union, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models import Weather


class PredictedItem(BaseModel):
    """One prediction as returned by an external strategy."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    item: str = Field(..., min_length=1)
    predicted_quantity: float = Field(
        ..., alias="predictedQuantity", allow_inf_nan=False, strict=True
    )


class PredictionPayload(BaseModel):
    """Top-level response shape: ``{"forecasts": [...]}``."""

    model_config = ConfigDict(extra="ignore")

    forecasts: List[PredictedItem]


@dataclass(frozen=True)
class PredictionOk:
    """Well-formed predictions."""

    predictions: List[PredictedItem] = field(default_factory=list)


@dataclass(frozen=True)
class PredictionSchemaError:
    """The strategy answered, but not in the agreed shape."""

    reason: str


PredictionResult = Union[PredictionOk, PredictionSchemaError]


def validate_prediction_payload(payload: Any) -> PredictionResult:
    """Validate a raw strategy response.

    Accepts either ``{"forecasts": [...]}`` or a bare list of
    ``{"item", "predictedQuantity"}`` objects.
    """
    if isinstance(payload, (PredictionOk, PredictionSchemaError)):
        return payload
    if isinstance(payload, list):
        payload = {"forecasts": payload}
    if not isinstance(payload, dict):
        return PredictionSchemaError(f"Expected an object or array, got {type(payload).__name__}")

    try:
        parsed = PredictionPayload.model_validate(payload)
    except ValidationError as e:
        return PredictionSchemaError(f"Invalid prediction response: {e.error_count()} error(s): {e.errors()[0]['msg']}")
    return PredictionOk(predictions=parsed.forecasts)


@runtime_checkable
class ExternalPredictionStrategy(Protocol):
    """Anything that can predict next-day quantities from a sales summary.

    ``predict`` may raise; the orchestrator absorbs every failure.
    """

    name: str

    def predict(self, tabular_summary: str, weather: Weather) -> Any:
        ...
