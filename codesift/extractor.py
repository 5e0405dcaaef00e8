"""Chunk extraction: directory walking and syntax-tree traversal.

A chunk is a function, class, interface, import or variable declaration.
Each one carries its location, source text, a ±N line context window, a
complexity score and the set of names it references.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Set, Tuple, Union

from .annotator import complexity, context_window
from .config import DEFAULT_CONTEXT_RADIUS, DEFAULT_MAX_DEPTH, DEFAULT_MAX_FILE_BYTES, SKIP_DIRS
from .models import CodeChunk, ParseFailure
from .parser import SUPPORTED_EXTENSIONS, SourceParser, SyntaxTree
from .syntax import (
    GRAMMARS,
    ClassNode,
    FunctionNode,
    Grammar,
    ImportNode,
    InterfaceNode,
    OtherNode,
    VariableNode,
    callee_name,
    classify,
    is_reference,
    node_line,
    node_text,
)

logger = logging.getLogger(__name__)


# ===================================================================
# Directory walking
# ===================================================================

def walk_source_files(
    root: Path,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
    skip_dirs: FrozenSet[str] = SKIP_DIRS,
) -> List[Path]:
    """Return indexable files under *root* in a stable (sorted) order.

    Directories named in *skip_dirs* are never entered, nothing deeper than
    *max_depth* levels below *root* is visited, and files larger than
    *max_file_bytes* are skipped whole rather than truncated.
    """
    found: List[Path] = []

    def _walk(directory: Path, depth: int) -> None:
        if depth > max_depth:
            return
        try:
            entries = sorted(directory.iterdir())
        except OSError as exc:
            logger.warning("Cannot list %s: %s", directory, exc)
            return
        for entry in entries:
            if entry.is_dir():
                if entry.name not in skip_dirs:
                    _walk(entry, depth + 1)
                continue
            if entry.suffix.lower() not in SUPPORTED_EXTENSIONS:
                continue
            try:
                size = entry.stat().st_size
            except OSError:
                continue
            if size > max_file_bytes:
                logger.debug("Skipping %s: %d bytes exceeds %d", entry, size, max_file_bytes)
                continue
            found.append(entry)

    _walk(root, 0)
    return found


# ===================================================================
# Extraction
# ===================================================================

class ChunkExtractor:
    """Turn parsed files into :class:`CodeChunk` lists, in source order."""

    def __init__(self, parser: Optional[SourceParser] = None, context_radius: int = DEFAULT_CONTEXT_RADIUS) -> None:
        self.parser = parser or SourceParser()
        self.context_radius = context_radius

    def extract_file(self, path: Path, root: Path) -> Union[List[CodeChunk], ParseFailure]:
        """Read, parse and extract one file; failures come back as values."""
        rel_path = path.relative_to(root).as_posix()
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return ParseFailure(rel_path, f"unreadable: {exc}")

        result = self.parser.parse(text, rel_path)
        if isinstance(result, ParseFailure):
            return result
        return self.extract(result)

    def extract(self, tree: SyntaxTree) -> List[CodeChunk]:
        grammar = GRAMMARS[tree.language]
        lines = tree.lines
        chunks: List[CodeChunk] = []
        seen: Dict[str, int] = {}

        for node in _preorder(tree.root):
            variant = classify(node, grammar)
            if isinstance(variant, OtherNode):
                continue
            for kind, name, deps in _chunk_specs(variant, grammar):
                line = node_line(node)
                chunks.append(CodeChunk(
                    id=_unique_id(seen, tree.file_path, line, name),
                    kind=kind,
                    name=name,
                    source_text=node_text(node),
                    file_path=tree.file_path,
                    line=line,
                    context_window=context_window(lines, line, self.context_radius),
                    dependencies=deps,
                    complexity=complexity(node, grammar),
                ))
        return chunks


def _chunk_specs(variant: Any, grammar: Grammar) -> Iterator[Tuple[str, str, FrozenSet[str]]]:
    """Yield ``(kind, name, dependencies)`` for each chunk *variant* produces."""
    if isinstance(variant, FunctionNode):
        yield "function", variant.name, dependencies(variant.node, grammar)
    elif isinstance(variant, ClassNode):
        yield "class", variant.name, dependencies(variant.node, grammar)
    elif isinstance(variant, InterfaceNode):
        yield "interface", variant.name, dependencies(variant.node, grammar)
    elif isinstance(variant, ImportNode):
        yield "import", variant.name, frozenset(variant.modules)
    elif isinstance(variant, VariableNode):
        deps = dependencies(variant.node, grammar)
        for name in variant.names:
            yield "variable", name, deps


def dependencies(node: Any, grammar: Grammar) -> FrozenSet[str]:
    """Call targets and referenced (non-binding) identifiers under *node*."""
    found: Set[str] = set()
    for current in _preorder(node):
        if current.type == grammar.call_type:
            name = callee_name(current, grammar)
            if name:
                found.add(name)
        elif is_reference(current, grammar):
            found.add(node_text(current))
    return frozenset(found)


def _preorder(root: Any) -> Iterator[Any]:
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def _unique_id(seen: Dict[str, int], file_path: str, line: int, name: str) -> str:
    base = f"{file_path}:{line}:{name}"
    count = seen.get(base, 0) + 1
    seen[base] = count
    return base if count == 1 else f"{base}#{count}"
