"""Tests for complexity scoring and context windows."""

from codesift.annotator import complexity, context_window
from codesift.parser import SourceParser
from codesift.syntax import JAVASCRIPT, PYTHON


def _root(source: str, path: str):
    return SourceParser().parse(source, path).root


def test_straight_line_code_scores_one():
    assert complexity(_root("const x = 1 + 2;\n", "a.js"), JAVASCRIPT) == 1


def test_do_while_and_for_in_count():
    source = "do { i++; } while (i < 3);\nfor (const k in obj) { use(k); }\n"
    assert complexity(_root(source, "a.js"), JAVASCRIPT) == 3


def test_python_branches():
    source = (
        "def f(x):\n"
        "    if x:\n"
        "        return 1\n"
        "    elif x is None or x == 0:\n"
        "        return 2\n"
        "    try:\n"
        "        g()\n"
        "    except ValueError:\n"
        "        pass\n"
        "    return 3 if x else 4\n"
    )
    # if, elif, or, except, conditional expression
    assert complexity(_root(source, "f.py"), PYTHON) == 6


def test_context_window_clamps_at_start():
    lines = ["a", "b", "c", "d", "e", "f", "g", "h"]

    assert context_window(lines, 1) == "a\nb\nc\nd"


def test_context_window_clamps_at_end():
    lines = ["a", "b", "c", "d", "e", "f", "g", "h"]

    assert context_window(lines, 8) == "e\nf\ng\nh"


def test_context_window_middle_and_radius():
    lines = [str(i) for i in range(1, 21)]

    assert context_window(lines, 10) == "7\n8\n9\n10\n11\n12\n13"
    assert context_window(lines, 10, radius=1) == "9\n10\n11"
