"""Explanation capability: multi-provider LLM adapter (Ollama, OpenAI, Anthropic)."""

from __future__ import annotations

import logging
from typing import Optional

import requests

from .config import ProviderConfig
from .config_manager import DEFAULT_MODELS
from .errors import ExplainFailure

logger = logging.getLogger(__name__)

OLLAMA_ENDPOINT = "http://localhost:11434/api/generate"
OPENAI_CHAT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_ENDPOINT = "https://api.anthropic.com/v1/messages"


class LLMProvider:
    """Base class for LLM providers."""

    last_error: str = ""

    def generate(self, prompt: str) -> Optional[str]:
        """Generate a response from the LLM, or None on failure."""
        raise NotImplementedError

    def _post(self, url: str, headers: dict, payload: dict, timeout: float) -> Optional[dict]:
        try:
            response = requests.post(url, headers=headers, json=payload, timeout=timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            self.last_error = str(exc)
            logger.debug("%s request failed: %s", type(self).__name__, exc)
            return None


class OllamaProvider(LLMProvider):
    """Ollama local LLM provider."""

    def __init__(self, model: str, endpoint: str = OLLAMA_ENDPOINT):
        self.model = model
        self.endpoint = endpoint or OLLAMA_ENDPOINT

    def generate(self, prompt: str) -> Optional[str]:
        parsed = self._post(
            self.endpoint,
            headers={"Content-Type": "application/json"},
            payload={
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "options": {"temperature": 0.1},
            },
            timeout=60,
        )
        if parsed is None:
            return None
        return parsed.get("response")


class OpenAIProvider(LLMProvider):
    """OpenAI API provider (also works with other OpenAI-compatible APIs)."""

    def __init__(self, model: str, api_key: str, endpoint: str = OPENAI_CHAT_ENDPOINT):
        self.model = model
        self.api_key = api_key
        self.endpoint = endpoint or OPENAI_CHAT_ENDPOINT

    def generate(self, prompt: str) -> Optional[str]:
        if not self.api_key:
            self.last_error = "no API key configured"
            return None
        parsed = self._post(
            self.endpoint,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
            payload={
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": 0.1,
                "max_tokens": 1024,
            },
            timeout=30,
        )
        if parsed is None:
            return None
        try:
            return parsed["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            self.last_error = "unexpected response shape"
            return None


class AnthropicProvider(LLMProvider):
    """Anthropic Claude API provider."""

    def __init__(self, model: str, api_key: str, endpoint: str = ANTHROPIC_ENDPOINT):
        self.model = model
        self.api_key = api_key
        self.endpoint = endpoint or ANTHROPIC_ENDPOINT

    def generate(self, prompt: str) -> Optional[str]:
        if not self.api_key:
            self.last_error = "no API key configured"
            return None
        parsed = self._post(
            self.endpoint,
            headers={
                "Content-Type": "application/json",
                "x-api-key": self.api_key,
                "anthropic-version": "2023-06-01",
            },
            payload={
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": 1024,
                "temperature": 0.1,
            },
            timeout=30,
        )
        if parsed is None:
            return None
        try:
            return parsed["content"][0]["text"]
        except (KeyError, IndexError, TypeError):
            self.last_error = "unexpected response shape"
            return None


class LocalLLM:
    """Provider-agnostic front for the explanation capability."""

    def __init__(
        self,
        provider: str = "ollama",
        model: Optional[str] = None,
        api_key: str = "",
        endpoint: str = "",
    ):
        self.provider_name = provider.lower()
        self.model = model or DEFAULT_MODELS["llm"].get(self.provider_name, "")
        self.api_key = api_key
        self.endpoint = endpoint
        self.provider = self._create_provider()

    def _create_provider(self) -> LLMProvider:
        if self.provider_name == "openai":
            return OpenAIProvider(self.model, self.api_key, self.endpoint)
        if self.provider_name == "anthropic":
            return AnthropicProvider(self.model, self.api_key, self.endpoint)
        if self.provider_name == "ollama":
            return OllamaProvider(self.model, self.endpoint)
        raise ValueError(
            f"Unknown LLM provider '{self.provider_name}'. "
            "Available: ollama, openai, anthropic"
        )

    def explain(self, prompt: str) -> str:
        """Return the model's answer to *prompt*.

        Raises:
            ExplainFailure: the provider returned nothing usable.
        """
        response = self.provider.generate(prompt)
        if response:
            return response
        reason = self.provider.last_error or "empty response"
        raise ExplainFailure(f"LLM provider '{self.provider_name}' failed: {reason}")


def get_llm(config: ProviderConfig) -> Optional[LocalLLM]:
    """Return the configured explanation capability, or None."""
    if not config.configured:
        return None
    try:
        return LocalLLM(
            provider=config.provider,
            model=config.model or None,
            api_key=config.api_key,
            endpoint=config.endpoint,
        )
    except ValueError as exc:
        logger.warning("%s; explanations disabled.", exc)
        return None
