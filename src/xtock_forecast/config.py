"""
Runtime configuration, read from environment variables.

    XTOCK_STORAGE_BACKEND     memory | sqlite            (memory)
    XTOCK_DATABASE_PATH       SQLite file                (xtock.db)
    XTOCK_SALES_LIMIT         rows loaded per run        (1000)
    XTOCK_SUMMARY_ROW_LIMIT   rows sent to the LLM       (200)
    XTOCK_CONFIDENCE_MODE     fixed | variance           (fixed)
    XTOCK_LENIENT_FALLBACK    forecast 3-29 day items    (false)
    XTOCK_LLM_PROVIDER        openai | anthropic | ollama | openrouter
    XTOCK_LLM_MODEL           model override
    XTOCK_LLM_TIMEOUT         seconds                    (30)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass
class Settings:
    """Configuration for the forecasting service."""

    storage_backend: str = field(
        default_factory=lambda: os.getenv("XTOCK_STORAGE_BACKEND", "memory")
    )
    database_path: str = field(
        default_factory=lambda: os.getenv("XTOCK_DATABASE_PATH", "xtock.db")
    )
    sales_limit: int = field(default_factory=lambda: _env_int("XTOCK_SALES_LIMIT", 1000))
    summary_row_limit: int = field(
        default_factory=lambda: _env_int("XTOCK_SUMMARY_ROW_LIMIT", 200)
    )
    confidence_mode: str = field(
        default_factory=lambda: os.getenv("XTOCK_CONFIDENCE_MODE", "fixed")
    )
    lenient_fallback: bool = field(
        default_factory=lambda: _env_bool("XTOCK_LENIENT_FALLBACK")
    )
    llm_provider: Optional[str] = field(default_factory=lambda: os.getenv("XTOCK_LLM_PROVIDER"))
    llm_model: Optional[str] = field(default_factory=lambda: os.getenv("XTOCK_LLM_MODEL"))
    llm_timeout: float = field(default_factory=lambda: _env_float("XTOCK_LLM_TIMEOUT", 30.0))
    use_llm: bool = field(default_factory=lambda: _env_bool("XTOCK_USE_LLM", True))

    def __post_init__(self):
        self.storage_backend = self.storage_backend.strip().lower()
        if self.storage_backend not in ("memory", "sqlite"):
            raise ValueError(f"Unknown storage backend: {self.storage_backend}")
        if self.sales_limit <= 0:
            raise ValueError("sales_limit must be positive")
