"""
LLM client abstraction supporting multiple providers.

Supports:
- OpenAI (gpt-4o-mini by default)
- Anthropic (Claude)
- Ollama (local models)
- OpenRouter (OpenAI-compatible)

Every client call is bounded by ``LLMConfig.timeout``.
"""

import os
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal, Optional

import httpx

logger = logging.getLogger(__name__)

Provider = Literal["openai", "anthropic", "ollama", "openrouter"]

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-haiku-20240307",
    "openrouter": "openai/gpt-4o-mini",
    "ollama": "llama3.2",
}


@dataclass
class LLMConfig:
    """Configuration for LLM client."""

    provider: Provider = "openai"
    model: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.1
    max_tokens: int = 2048
    timeout: float = 30.0

    def __post_init__(self):
        if self.provider not in DEFAULT_MODELS:
            raise ValueError(f"Unknown provider: {self.provider}")

        if self.model is None:
            self.model = DEFAULT_MODELS[self.provider]

        # Auto-detect API keys from environment
        if self.api_key is None:
            if self.provider == "openai":
                self.api_key = os.getenv("OPENAI_API_KEY")
            elif self.provider == "anthropic":
                self.api_key = os.getenv("ANTHROPIC_API_KEY")
            elif self.provider == "openrouter":
                self.api_key = os.getenv("OPENROUTER_API_KEY")

        # Set default base URLs
        if self.base_url is None:
            if self.provider == "ollama":
                self.base_url = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
            elif self.provider == "openrouter":
                self.base_url = "https://openrouter.ai/api/v1"

    @property
    def has_credentials(self) -> bool:
        """Ollama needs no key; hosted providers do."""
        return self.provider == "ollama" or bool(self.api_key)


def parse_json_content(content: str) -> dict:
    """Parse a JSON object from model output, tolerating markdown fences."""
    text = (content or "").strip()
    if text.startswith("```"):
        text = text.split("```")[1]
        if text.startswith("json"):
            text = text[4:]
    if "{" in text:
        start = text.index("{")
        end = text.rindex("}") + 1
        text = text[start:end]
    return json.loads(text.strip())


class LLMClient(ABC):
    """Abstract base class for LLM clients."""

    def __init__(self, config: LLMConfig):
        self.config = config

    @property
    def name(self) -> str:
        return f"{self.config.provider}:{self.config.model}"

    @abstractmethod
    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        """Generate a completion for the given prompt."""
        pass

    def complete_json(self, prompt: str, system: Optional[str] = None) -> dict:
        """Generate a JSON completion for the given prompt."""
        json_prompt = f"{prompt}\n\nRespond with valid JSON only, no markdown or explanation."
        return parse_json_content(self.complete(json_prompt, system))


class OpenAIClient(LLMClient):
    """OpenAI API client (also used for OpenRouter)."""

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        from openai import OpenAI

        self._client = OpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=0,
        )

    def _messages(self, prompt: str, system: Optional[str]) -> list:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages

    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        response = self._client.chat.completions.create(
            model=self.config.model,
            messages=self._messages(prompt, system),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        return response.choices[0].message.content or ""

    def complete_json(self, prompt: str, system: Optional[str] = None) -> dict:
        response = self._client.chat.completions.create(
            model=self.config.model,
            messages=self._messages(prompt, system),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            response_format={"type": "json_object"},
        )
        return json.loads(response.choices[0].message.content or "{}")


class AnthropicClient(LLMClient):
    """Anthropic Claude API client."""

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        import anthropic

        self._client = anthropic.Anthropic(
            api_key=config.api_key,
            timeout=config.timeout,
            max_retries=0,
        )

    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        kwargs = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        response = self._client.messages.create(**kwargs)
        return response.content[0].text


class OllamaClient(LLMClient):
    """Ollama local LLM client."""

    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        full_prompt = f"{system}\n\n{prompt}" if system else prompt

        response = httpx.post(
            f"{self.config.base_url}/api/generate",
            json={
                "model": self.config.model,
                "prompt": full_prompt,
                "stream": False,
                "format": "json",
                "options": {
                    "temperature": self.config.temperature,
                    "num_predict": self.config.max_tokens,
                },
            },
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        return response.json()["response"]


CLIENTS = {
    "openai": OpenAIClient,
    "anthropic": AnthropicClient,
    "ollama": OllamaClient,
    "openrouter": OpenAIClient,  # OpenRouter uses OpenAI-compatible API
}


def detect_provider() -> Optional[str]:
    """Pick a hosted provider from whichever API key is set."""
    if os.getenv("OPENAI_API_KEY"):
        return "openai"
    if os.getenv("ANTHROPIC_API_KEY"):
        return "anthropic"
    if os.getenv("OPENROUTER_API_KEY"):
        return "openrouter"
    return None


def get_llm_client(config: Optional[LLMConfig] = None) -> Optional[LLMClient]:
    """Build an LLM client, or return None when no provider is configured.

    Without an explicit config the provider is inferred from API keys in
    the environment. A local Ollama is only used when asked for by name.
    """
    if config is None:
        provider = detect_provider()
        if provider is None:
            logger.info("No LLM credentials found; AI forecasting disabled")
            return None
        config = LLMConfig(provider=provider)

    if not config.has_credentials:
        logger.info(f"No API key for {config.provider}; AI forecasting disabled")
        return None

    return CLIENTS[config.provider](config)
