"""
LLM-powered prediction layer.

This module provides:
- A provider-agnostic LLM client (OpenAI, Anthropic, Ollama, OpenRouter)
- The LLM prediction strategy used ahead of the statistical forecaster

Without API keys nothing here is used and forecasting runs on statistics
alone.
"""

from .client import (
    AnthropicClient,
    LLMClient,
    LLMConfig,
    OllamaClient,
    OpenAIClient,
    detect_provider,
    get_llm_client,
)
from .prediction import LLMPredictionStrategy, build_prediction_strategy

__all__ = [
    "LLMClient",
    "LLMConfig",
    "OpenAIClient",
    "AnthropicClient",
    "OllamaClient",
    "detect_provider",
    "get_llm_client",
    "LLMPredictionStrategy",
    "build_prediction_strategy",
]
