"""Parser adapter built on Tree-sitter.

Turns file text into a :class:`SyntaxTree` or a :class:`ParseFailure`.  The
adapter never raises for malformed input: Tree-sitter always produces a
tree, and a tree containing ``ERROR`` / ``MISSING`` nodes is reported as a
failure so the caller can log it and skip the file.

Grammars come from the per-language ``tree-sitter-*`` wheels (tree-sitter
>= 0.22), which expose a ``language()`` style function returning the
Language capsule.
"""

from __future__ import annotations

import importlib
import logging
import threading
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Tuple, Union

from tree_sitter import Language, Parser as TSParser

from .models import ParseFailure

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".py": "python",
}

# language -> (grammar module, factory function)
_GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
    "javascript": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),
    "python": ("tree_sitter_python", "language"),
}

SUPPORTED_EXTENSIONS = frozenset(LANGUAGE_MAP)


def language_for(file_path: str) -> Optional[str]:
    """Return the grammar name for *file_path*, or None if unsupported."""
    return LANGUAGE_MAP.get(PurePosixPath(file_path).suffix.lower())


@dataclass
class SyntaxTree:
    """A parsed file.  Ephemeral: dropped once its chunks are extracted."""

    file_path: str
    language: str
    text: str
    root: Any

    @property
    def lines(self) -> List[str]:
        return self.text.split("\n")


class SourceParser:
    """Error-reporting, multi-language parser built on Tree-sitter.

    ``Language`` objects are loaded once and shared.  Tree-sitter parser
    objects are not safe to share between threads, so each worker thread
    gets its own set.
    """

    def __init__(self) -> None:
        self._languages: Dict[str, Language] = {}
        self._unavailable: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._local = threading.local()

    # ------------------------------------------------------------------
    # Grammar loading
    # ------------------------------------------------------------------

    def _language(self, lang: str) -> Optional[Language]:
        with self._lock:
            if lang in self._languages:
                return self._languages[lang]
            if lang in self._unavailable:
                return None
            mod_name, factory = _GRAMMAR_MODULES[lang]
            try:
                mod = importlib.import_module(mod_name)
                ts_lang = Language(getattr(mod, factory)())
            except (ImportError, AttributeError, ValueError) as exc:
                reason = (
                    f"grammar package '{mod_name}' unavailable for {lang}: {exc}. "
                    f"Install with: pip install {mod_name.replace('_', '-')}"
                )
                logger.warning("%s", reason)
                self._unavailable[lang] = reason
                return None
            self._languages[lang] = ts_lang
            logger.debug("Loaded tree-sitter grammar for %s", lang)
            return ts_lang

    def _parser(self, lang: str) -> Optional[TSParser]:
        parsers: Dict[str, TSParser] = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = {}
            self._local.parsers = parsers
        if lang not in parsers:
            ts_lang = self._language(lang)
            if ts_lang is None:
                return None
            parsers[lang] = TSParser(ts_lang)
        return parsers[lang]

    def supports(self, file_path: str) -> bool:
        lang = language_for(file_path)
        return lang is not None and self._language(lang) is not None

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, text: str, file_path: str) -> Union[SyntaxTree, ParseFailure]:
        """Parse *text* as the language implied by *file_path*."""
        lang = language_for(file_path)
        if lang is None:
            return ParseFailure(file_path, "unsupported file extension")

        parser = self._parser(lang)
        if parser is None:
            return ParseFailure(file_path, self._unavailable.get(lang, f"no grammar for {lang}"))

        tree = parser.parse(text.encode("utf-8"))
        root = tree.root_node
        if root.has_error:
            return ParseFailure(file_path, _describe_error(root))
        return SyntaxTree(file_path=file_path, language=lang, text=text, root=root)


def _describe_error(root: Any) -> str:
    """Locate the first ``ERROR`` or missing node and describe it."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            row, col = node.start_point[0] + 1, node.start_point[1] + 1
            what = f"missing '{node.type}'" if node.is_missing else "syntax error"
            return f"{what} at line {row}, column {col}"
        stack.extend(reversed([ch for ch in node.children if ch.has_error or ch.is_missing]))
    return "syntax error"
