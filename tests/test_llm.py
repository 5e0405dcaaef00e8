"""Tests for the explanation (LLM) providers."""

import pytest
import requests

from codesift.config import ProviderConfig
from codesift.errors import ExplainFailure
from codesift.llm import (
    AnthropicProvider,
    LocalLLM,
    OllamaProvider,
    OpenAIProvider,
    get_llm,
)


class _Response:

    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


@pytest.fixture
def captured(monkeypatch):
    """Replace ``requests.post`` with a recorder returning ``captured['response']``."""
    calls = {"requests": [], "response": _Response({})}

    def _post(url, headers=None, json=None, timeout=None):
        calls["requests"].append({"url": url, "headers": headers, "json": json})
        return calls["response"]

    monkeypatch.setattr("codesift.llm.requests.post", _post)
    return calls


class TestProviders:

    def test_ollama(self, captured):
        captured["response"] = _Response({"response": "It adds."})

        assert OllamaProvider("qwen2.5-coder:7b").generate("explain") == "It adds."
        sent = captured["requests"][0]
        assert sent["url"] == "http://localhost:11434/api/generate"
        assert sent["json"]["stream"] is False

    def test_openai(self, captured):
        captured["response"] = _Response({"choices": [{"message": {"content": "Sums two numbers."}}]})
        provider = OpenAIProvider("gpt-4", "sk-test")

        assert provider.generate("explain") == "Sums two numbers."
        assert captured["requests"][0]["headers"]["Authorization"] == "Bearer sk-test"

    def test_openai_without_key(self, captured):
        provider = OpenAIProvider("gpt-4", "")

        assert provider.generate("explain") is None
        assert provider.last_error == "no API key configured"
        assert captured["requests"] == []

    def test_anthropic(self, captured):
        captured["response"] = _Response({"content": [{"type": "text", "text": "Adds a and b."}]})
        provider = AnthropicProvider("claude-3-5-sonnet-20241022", "key")

        assert provider.generate("explain") == "Adds a and b."
        assert captured["requests"][0]["headers"]["x-api-key"] == "key"

    def test_unexpected_shape(self, captured):
        captured["response"] = _Response({"choices": []})
        provider = OpenAIProvider("gpt-4", "sk-test")

        assert provider.generate("explain") is None
        assert provider.last_error == "unexpected response shape"

    def test_http_error(self, captured):
        captured["response"] = _Response({}, status=500)
        provider = OllamaProvider("m")

        assert provider.generate("explain") is None
        assert "500" in provider.last_error


class TestLocalLLM:

    def test_default_model(self):
        assert LocalLLM("ollama").model == "qwen2.5-coder:7b"

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            LocalLLM("gemini")

    def test_explain_returns_text(self, captured):
        captured["response"] = _Response({"response": "Explained."})

        assert LocalLLM("ollama").explain("prompt") == "Explained."

    def test_explain_failure(self):
        # conftest disables outgoing requests
        with pytest.raises(ExplainFailure, match="ollama"):
            LocalLLM("ollama").explain("prompt")


class TestGetLLM:

    def test_none(self):
        assert get_llm(ProviderConfig(provider="none")) is None

    def test_configured(self):
        llm = get_llm(ProviderConfig(provider="anthropic", api_key="key"))

        assert isinstance(llm, LocalLLM)
        assert isinstance(llm.provider, AnthropicProvider)

    def test_unknown_provider_disables_explanations(self):
        assert get_llm(ProviderConfig(provider="gemini")) is None
