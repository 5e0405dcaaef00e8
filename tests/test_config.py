"""Tests for TOML configuration loading and saving."""

import os

import pytest
import toml

from codesift import config_manager
from codesift.config import SKIP_DIRS, Settings


def _write_config(data):
    path = config_manager.config_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(toml.dumps(data), encoding="utf-8")


def test_defaults_without_file():
    settings = Settings.load()

    assert settings.max_depth == 10
    assert settings.max_file_bytes == 100_000
    assert settings.default_threshold == 0.7
    assert settings.embeddings.provider == "none"
    assert settings.llm.provider == "none"
    assert settings.vector_uri == str(config_manager.base_dir() / "lancedb")


def test_home_follows_environment(tmp_path):
    assert config_manager.base_dir() == tmp_path / "codesift-home"


def test_sections_are_read():
    _write_config({
        "index": {"max_depth": 3, "skip_dirs": ["vendor"], "embed_backoff": 0.1, "embed_cache_size": 50},
        "vector": {"enabled": False, "collection": "mine"},
        "search": {"threshold": 0.4, "limit": 3},
        "embeddings": {"provider": "hash", "dim": 64},
        "llm": {"provider": "ollama"},
    })
    settings = Settings.load()

    assert settings.max_depth == 3
    assert "vendor" in settings.skip_dirs
    assert settings.embed_backoff == 0.1
    assert settings.embed_cache_size == 50
    assert SKIP_DIRS <= settings.skip_dirs
    assert settings.vector_enabled is False
    assert settings.collection == "mine"
    assert settings.default_threshold == 0.4
    assert settings.default_limit == 3
    assert settings.embeddings.provider == "hash"
    assert settings.embeddings.dim == 64
    assert settings.llm.model == "qwen2.5-coder:7b"


def test_openai_key_from_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    settings = Settings.load()

    assert settings.embeddings.provider == "openai"
    assert settings.embeddings.api_key == "sk-env"
    assert settings.embeddings.model == "text-embedding-3-small"
    assert settings.llm.provider == "openai"
    assert settings.llm.model == "gpt-4"


def test_file_provider_wins_over_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    _write_config({"embeddings": {"provider": "none"}})

    assert Settings.load().embeddings.provider == "none"


def test_malformed_file_falls_back_to_defaults():
    path = config_manager.config_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("[index\nmax_depth = ", encoding="utf-8")

    assert config_manager.load_full_config() == {}
    assert Settings.load().max_depth == 10


def test_save_section_preserves_others():
    config_manager.save_section("search", {"threshold": 0.5})
    config_manager.save_embedding_config("openai", api_key="sk-file")

    data = config_manager.load_full_config()
    assert data["search"] == {"threshold": 0.5}
    assert data["embeddings"] == {
        "provider": "openai",
        "model": "text-embedding-3-small",
        "api_key": "sk-file",
    }
    assert os.path.exists(config_manager.config_file())


def test_save_unknown_section():
    with pytest.raises(ValueError, match="Unknown config section"):
        config_manager.save_section("plugins", {"x": 1})


def test_load_section():
    config_manager.save_llm_config("anthropic", api_key="key")

    assert config_manager.load_section("llm")["provider"] == "anthropic"
    assert config_manager.load_section("index") == {}
