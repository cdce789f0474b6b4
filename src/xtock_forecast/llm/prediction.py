"""
LLM-backed next-day prediction strategy.

Sends the tabular sales summary and tomorrow's weather to an LLM and
validates the JSON it returns. Transport and API errors are left to
propagate; the orchestrator classifies them and falls back.
"""

import logging
from typing import Optional

from ..core.models import Weather
from ..core.strategy import PredictionResult, validate_prediction_payload
from .client import LLMClient, LLMConfig, detect_provider, get_llm_client

logger = logging.getLogger(__name__)


PREDICTION_SYSTEM_PROMPT = """You are a procurement analyst for a restaurant that buys fresh produce daily.
You predict how many units of each item will sell TOMORROW so the owner can place
an order that avoids both waste and stockouts.

Base your prediction on the sales history you are given:
1. The typical daily level of each item over the whole period
2. Day-to-day variation and recent shifts
3. The weather tomorrow: sunny days sell more, rainy days sell less

Only predict items that appear in the history. Never invent items.

Respond with JSON in this exact format:
{
  "forecasts": [
    {"item": "string", "predictedQuantity": number}
  ]
}"""


PREDICTION_PROMPT_TEMPLATE = """Sales history (one row per sale, CSV):

{summary}

Tomorrow's weather: {weather}

Predict tomorrow's quantity for every item above."""


class LLMPredictionStrategy:
    """External prediction strategy backed by an LLM client.

    Usage:
        strategy = LLMPredictionStrategy(get_llm_client())
        outcome = strategy.predict(summary, Weather.SUNNY)
    """

    def __init__(self, client: LLMClient):
        self.client = client

    @property
    def name(self) -> str:
        return getattr(self.client, "name", type(self.client).__name__)

    def predict(self, tabular_summary: str, weather: Weather) -> PredictionResult:
        prompt = PREDICTION_PROMPT_TEMPLATE.format(
            summary=tabular_summary,
            weather=Weather.coerce(weather).value,
        )
        payload = self.client.complete_json(prompt, system=PREDICTION_SYSTEM_PROMPT)
        return validate_prediction_payload(payload)


def build_prediction_strategy(settings) -> Optional[LLMPredictionStrategy]:
    """Create the LLM strategy described by settings, or None if unavailable.

    Args:
        settings: A :class:`xtock_forecast.config.Settings` instance.
    """
    if not settings.use_llm:
        logger.info("LLM forecasting disabled by configuration")
        return None

    provider = settings.llm_provider or detect_provider()
    if provider is None:
        logger.info("No LLM credentials found; AI forecasting disabled")
        return None

    client = get_llm_client(LLMConfig(
        provider=provider,
        model=settings.llm_model,
        timeout=settings.llm_timeout,
    ))
    if client is None:
        return None

    logger.info(f"LLM forecasting enabled via {client.name}")
    return LLMPredictionStrategy(client)
