"""Complexity score and surrounding-lines context for a chunk.

Both functions are pure and hold no shared state, so they are safe to call
from parse workers in parallel.
"""

from __future__ import annotations

from typing import Any, List

from .config import DEFAULT_CONTEXT_RADIUS
from .syntax import Grammar, is_logical


def complexity(node: Any, grammar: Grammar) -> int:
    """Cyclomatic-style count over the subtree rooted at *node*.

    Base 1, plus one per branch node (if / loop / case / catch / ternary)
    and one per short-circuit logical operator.  Purely structural.
    """
    score = 1
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type in grammar.branch_types or is_logical(current, grammar):
            score += 1
        stack.extend(current.children)
    return score


def context_window(lines: List[str], line: int, radius: int = DEFAULT_CONTEXT_RADIUS) -> str:
    """Return *radius* lines either side of 1-based *line*, clamped to the file."""
    start = max(0, line - radius - 1)
    end = min(len(lines), line + radius)
    return "\n".join(lines[start:end])
