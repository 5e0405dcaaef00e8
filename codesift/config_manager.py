"""Configuration manager for codesift using TOML files."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import toml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.toml"

# Sections understood by :class:`codesift.config.Settings`.
KNOWN_SECTIONS = ("embeddings", "llm", "index", "vector", "search")

# Default model per provider, used when a section names a provider but no model.
DEFAULT_MODELS: Dict[str, Dict[str, str]] = {
    "embeddings": {
        "openai": "text-embedding-3-small",
        "hash": "hash",
    },
    "llm": {
        "openai": "gpt-4",
        "anthropic": "claude-3-5-sonnet-20241022",
        "ollama": "qwen2.5-coder:7b",
    },
}


def base_dir() -> Path:
    """Return the codesift home directory (``$CODESIFT_HOME`` or ``~/.codesift``)."""
    return Path(os.environ.get("CODESIFT_HOME", str(Path.home() / ".codesift"))).expanduser()


def config_file() -> Path:
    return base_dir() / CONFIG_FILENAME


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections).

    A missing or unreadable file yields an empty dict; a malformed file is
    logged and ignored so the engine still starts with defaults.
    """
    path = config_file()
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", path, exc)
        return {}


def load_section(section: str) -> Dict[str, Any]:
    """Return one ``[section]`` table, or an empty dict."""
    value = load_full_config().get(section, {})
    return dict(value) if isinstance(value, dict) else {}


def _save_full_config(config: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    path = config_file()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config file %s: %s", path, exc)
        return False


def save_section(section: str, values: Dict[str, Any]) -> bool:
    """Replace one ``[section]`` table, keeping every other section.

    Empty values are dropped so the file only records what was set.

    Returns:
        True if saved successfully, False otherwise.
    """
    if section not in KNOWN_SECTIONS:
        raise ValueError(
            f"Unknown config section '{section}'. "
            f"Available: {', '.join(KNOWN_SECTIONS)}"
        )
    config = load_full_config()
    config[section] = {k: v for k, v in values.items() if v not in ("", None)}
    return _save_full_config(config)


def save_embedding_config(provider: str, model: str = "", api_key: str = "", endpoint: str = "") -> bool:
    """Save the embedding provider choice to ``[embeddings]``."""
    return save_section("embeddings", {
        "provider": provider,
        "model": model or DEFAULT_MODELS["embeddings"].get(provider, ""),
        "api_key": api_key,
        "endpoint": endpoint,
    })


def save_llm_config(provider: str, model: str = "", api_key: str = "", endpoint: str = "") -> bool:
    """Save the explanation (LLM) provider choice to ``[llm]``."""
    return save_section("llm", {
        "provider": provider,
        "model": model or DEFAULT_MODELS["llm"].get(provider, ""),
        "api_key": api_key,
        "endpoint": endpoint,
    })
