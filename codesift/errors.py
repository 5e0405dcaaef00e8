"""Exception taxonomy shared by indexing, storage, and retrieval layers.

Every error raised by the engine derives from :class:`CodeSiftError` so that
callers (the CLI, an agent tool) can catch one type.  Most of these are
*recovered* inside the engine and only surface as log lines or as fields of
an :class:`~codesift.models.IndexSummary`; ``InvalidPath``, ``InvalidQuery``
and ``NotIndexed`` are the caller-facing ones.

Per-file parse problems are not exceptions at all: the parser adapter returns
a :class:`~codesift.models.ParseFailure` value instead.
"""

from __future__ import annotations


class CodeSiftError(Exception):
    """Base class for all codesift errors."""


class InvalidPath(CodeSiftError):
    """The path given to ``index()`` does not exist or is not a directory."""


class InvalidQuery(CodeSiftError):
    """A query was rejected before reaching any backend."""


class NotIndexed(CodeSiftError):
    """A query arrived before any index generation was ready."""


class EmbedFailure(CodeSiftError):
    """The embedding capability could not embed one text."""


class BackendUnavailable(CodeSiftError):
    """The vector backend could not be reached or rejected a request."""


class ExplainFailure(CodeSiftError):
    """The explanation (LLM) capability failed to produce text."""
