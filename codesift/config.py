"""Configuration defaults and the typed settings view for codesift.

Values come from three layers, later ones winning:

1. The defaults below.
2. ``~/.codesift/config.toml`` (see :mod:`codesift.config_manager`).
3. ``OPENAI_API_KEY`` in the environment, which selects OpenAI for the
   embedding and explanation capabilities when the TOML file does not name a
   provider.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

from .config_manager import DEFAULT_MODELS, base_dir, load_full_config

DEFAULT_MAX_DEPTH = 10
DEFAULT_MAX_FILE_BYTES = 100_000
DEFAULT_CONTEXT_RADIUS = 3
DEFAULT_PARSE_WORKERS = 4
DEFAULT_EMBED_WORKERS = 8
DEFAULT_EMBED_RETRIES = 2
DEFAULT_EMBED_BACKOFF = 0.5
DEFAULT_EMBED_CACHE_SIZE = 20_000
DEFAULT_COLLECTION = "codebase_embeddings"
DEFAULT_THRESHOLD = 0.7
DEFAULT_LIMIT = 10
EXPLAIN_THRESHOLD = 0.6
EXPLAIN_LIMIT = 5
INSIGHT_THRESHOLD = 0.5
INSIGHT_LIMIT = 10

SKIP_DIRS: FrozenSet[str] = frozenset({
    "node_modules", ".git", "dist", "build", ".next", "coverage", ".nyc_output",
    ".venv", "venv", "__pycache__", ".tox", ".pytest_cache", ".mypy_cache",
    ".ruff_cache", "site-packages", ".eggs", "lancedb",
})

OPENAI_ENV_KEY = "OPENAI_API_KEY"


@dataclass
class ProviderConfig:
    """One external capability: which provider, which model, how to reach it."""

    provider: str = "none"
    model: str = ""
    api_key: str = ""
    endpoint: str = ""
    dim: int = 256

    @property
    def configured(self) -> bool:
        return self.provider not in ("", "none")


@dataclass
class Settings:
    max_depth: int = DEFAULT_MAX_DEPTH
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    context_radius: int = DEFAULT_CONTEXT_RADIUS
    skip_dirs: FrozenSet[str] = SKIP_DIRS
    parse_workers: int = DEFAULT_PARSE_WORKERS
    embed_workers: int = DEFAULT_EMBED_WORKERS
    embed_retries: int = DEFAULT_EMBED_RETRIES
    embed_backoff: float = DEFAULT_EMBED_BACKOFF
    embed_cache_size: int = DEFAULT_EMBED_CACHE_SIZE
    vector_enabled: bool = True
    vector_uri: str = ""
    collection: str = DEFAULT_COLLECTION
    default_threshold: float = DEFAULT_THRESHOLD
    default_limit: int = DEFAULT_LIMIT
    ready_timeout: Optional[float] = None
    embeddings: ProviderConfig = field(default_factory=ProviderConfig)
    llm: ProviderConfig = field(default_factory=ProviderConfig)

    def __post_init__(self) -> None:
        if not self.vector_uri:
            self.vector_uri = str(base_dir() / "lancedb")

    @classmethod
    def load(cls) -> "Settings":
        """Build settings from ``config.toml`` and the environment."""
        raw = load_full_config()
        index = raw.get("index", {})
        vector = raw.get("vector", {})
        search = raw.get("search", {})
        extra_skips = frozenset(index.get("skip_dirs", []))
        return cls(
            max_depth=int(index.get("max_depth", DEFAULT_MAX_DEPTH)),
            max_file_bytes=int(index.get("max_file_bytes", DEFAULT_MAX_FILE_BYTES)),
            context_radius=int(index.get("context_radius", DEFAULT_CONTEXT_RADIUS)),
            skip_dirs=SKIP_DIRS | extra_skips,
            parse_workers=int(index.get("parse_workers", DEFAULT_PARSE_WORKERS)),
            embed_workers=int(index.get("embed_workers", DEFAULT_EMBED_WORKERS)),
            embed_retries=int(index.get("embed_retries", DEFAULT_EMBED_RETRIES)),
            embed_backoff=float(index.get("embed_backoff", DEFAULT_EMBED_BACKOFF)),
            embed_cache_size=int(index.get("embed_cache_size", DEFAULT_EMBED_CACHE_SIZE)),
            vector_enabled=bool(vector.get("enabled", True)),
            vector_uri=str(vector.get("uri", "")),
            collection=str(vector.get("collection", DEFAULT_COLLECTION)),
            default_threshold=float(search.get("threshold", DEFAULT_THRESHOLD)),
            default_limit=int(search.get("limit", DEFAULT_LIMIT)),
            ready_timeout=search.get("ready_timeout"),
            embeddings=_provider_config("embeddings", raw.get("embeddings", {})),
            llm=_provider_config("llm", raw.get("llm", {})),
        )


def _provider_config(section: str, table: Dict[str, Any]) -> ProviderConfig:
    env_key = os.environ.get(OPENAI_ENV_KEY, "")
    provider = str(table.get("provider", "")).lower()
    if not provider:
        provider = "openai" if env_key else "none"
    api_key = str(table.get("api_key", ""))
    if not api_key and provider == "openai":
        api_key = env_key
    return ProviderConfig(
        provider=provider,
        model=str(table.get("model", "")) or DEFAULT_MODELS[section].get(provider, ""),
        api_key=api_key,
        endpoint=str(table.get("endpoint", "")),
        dim=int(table.get("dim", 256)),
    )
