"""Embedding capability: turn one text into one fixed-length vector.

Supported providers (configure in ``[embeddings]`` of ``config.toml``):

========== ============================ ====== ============================
Provider   Model                        Dim    Notes
========== ============================ ====== ============================
openai     text-embedding-3-small       1536   Needs ``OPENAI_API_KEY``
hash       (none)                       256    No network, keyword-level only
none       (none)                       -      Lexical-only mode
========== ============================ ====== ============================

Every embedder exposes ``model_key``, ``dim`` and ``embed_text(text)``.
``embed_text`` raises :class:`~codesift.errors.EmbedFailure` when the text
cannot be embedded; callers decide whether that is recoverable.
"""

from __future__ import annotations

import logging
import math
import re
from hashlib import blake2b
from typing import List, Optional, Union

import requests

from .config import ProviderConfig
from .errors import EmbedFailure

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

OPENAI_EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"
OPENAI_DIMS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class HashEmbeddingModel:
    """Deterministic token-hashing embedder with no model download.

    Provides keyword-level similarity only, but needs no network and no
    credentials, which makes it a good default for offline indexing.
    """

    def __init__(self, dim: int = 256) -> None:
        self.dim = dim
        self.model_key = f"hash{dim}"

    def embed_text(self, text: str) -> List[float]:
        vec = [0.0] * self.dim
        tokens = _TOKEN_RE.findall(text.lower())
        if not tokens:
            raise EmbedFailure("text has no tokens to embed")
        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "big") % self.dim
            sign = 1.0 if (digest[4] & 1) == 0 else -1.0
            vec[idx] += sign
        return _l2_normalize(vec)


class OpenAIEmbedder:
    """OpenAI embeddings over HTTPS (one request per text)."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        endpoint: str = "",
        timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.endpoint = endpoint or OPENAI_EMBEDDINGS_URL
        self.timeout = timeout
        self.model_key = model.replace("-", "_")
        self.dim = OPENAI_DIMS.get(model, 1536)
        self._session = requests.Session()

    def embed_text(self, text: str) -> List[float]:
        try:
            response = self._session.post(
                self.endpoint,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
                json={"model": self.model, "input": text},
                timeout=self.timeout,
            )
            response.raise_for_status()
            vector = response.json()["data"][0]["embedding"]
        except requests.RequestException as exc:
            raise EmbedFailure(f"OpenAI embeddings request failed: {exc}") from exc
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise EmbedFailure(f"Unexpected OpenAI embeddings response: {exc}") from exc
        if not vector:
            raise EmbedFailure("OpenAI returned an empty embedding")
        return [float(x) for x in vector]


Embedder = Union[HashEmbeddingModel, OpenAIEmbedder]


# ===================================================================
# Factory
# ===================================================================

def get_embedder(config: ProviderConfig) -> Optional[Embedder]:
    """Return the configured embedder, or None for lexical-only mode."""
    provider = config.provider.lower()
    if not config.configured:
        return None
    if provider == "hash":
        return HashEmbeddingModel(dim=config.dim)
    if provider == "openai":
        if not config.api_key:
            logger.warning(
                "OpenAI embeddings selected but no API key is set; "
                "continuing in lexical-only mode."
            )
            return None
        return OpenAIEmbedder(
            api_key=config.api_key,
            model=config.model or "text-embedding-3-small",
            endpoint=config.endpoint,
        )
    logger.warning("Unknown embedding provider '%s'; continuing in lexical-only mode.", provider)
    return None


# ===================================================================
# Utility
# ===================================================================

def cosine_similarity(vec_a: List[float], vec_b: List[float]) -> float:
    """Cosine similarity between two vectors.

    Returns a value in ``[-1, 1]``.  Zero-length or mismatched vectors
    return ``0.0``.
    """
    if not vec_a or not vec_b or len(vec_a) != len(vec_b):
        return 0.0
    dot = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))
    if norm_a < 1e-12 or norm_b < 1e-12:
        return 0.0
    return dot / (norm_a * norm_b)


def _l2_normalize(vec: List[float]) -> List[float]:
    norm = math.sqrt(sum(v * v for v in vec))
    if norm < 1e-12:
        return vec
    return [v / norm for v in vec]
