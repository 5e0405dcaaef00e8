"""Tests for the Tree-sitter parser adapter."""

import pytest

from codesift.models import ParseFailure
from codesift.parser import SourceParser, SyntaxTree, language_for


@pytest.fixture
def parser() -> SourceParser:
    return SourceParser()


@pytest.mark.parametrize("path,expected", [
    ("src/app.js", "javascript"),
    ("src/App.JSX", "javascript"),
    ("lib/index.mjs", "javascript"),
    ("src/cart.ts", "typescript"),
    ("src/View.tsx", "tsx"),
    ("app/orders.py", "python"),
    ("README.md", None),
    ("Makefile", None),
])
def test_language_for(path, expected):
    assert language_for(path) == expected


def test_parse_valid_javascript(parser: SourceParser, add_source: str):
    result = parser.parse(add_source, "math.js")

    assert isinstance(result, SyntaxTree)
    assert result.language == "javascript"
    assert result.file_path == "math.js"
    assert result.root.type == "program"


def test_parse_typescript_interface(parser: SourceParser):
    source = "interface Point { x: number; y: number; }\n"
    result = parser.parse(source, "point.ts")

    assert isinstance(result, SyntaxTree)
    assert result.root.named_children[0].type == "interface_declaration"


def test_parse_tsx(parser: SourceParser):
    source = "export const View = () => <div className=\"box\">hi</div>;\n"
    result = parser.parse(source, "View.tsx")

    assert isinstance(result, SyntaxTree)
    assert result.language == "tsx"


def test_parse_python(parser: SourceParser):
    result = parser.parse("def hello(name):\n    return name\n", "hello.py")

    assert isinstance(result, SyntaxTree)
    assert result.root.type == "module"


def test_malformed_source_is_a_failure_not_an_exception(parser: SourceParser):
    result = parser.parse("function broken( {\n  return ;;\n", "broken.js")

    assert isinstance(result, ParseFailure)
    assert result.file_path == "broken.js"
    assert "line" in result.reason


def test_malformed_python(parser: SourceParser):
    result = parser.parse("def nope(:\n    pass\n", "nope.py")

    assert isinstance(result, ParseFailure)


def test_unsupported_extension(parser: SourceParser):
    result = parser.parse("# Title", "README.md")

    assert isinstance(result, ParseFailure)
    assert "unsupported" in result.reason


def test_tree_lines_keep_file_layout(parser: SourceParser):
    result = parser.parse("const a = 1;\n\nconst b = 2;\n", "vars.js")

    assert isinstance(result, SyntaxTree)
    assert result.lines[:3] == ["const a = 1;", "", "const b = 2;"]


def test_parser_reusable_across_languages(parser: SourceParser, add_source: str):
    assert isinstance(parser.parse(add_source, "a.js"), SyntaxTree)
    assert isinstance(parser.parse("x = 1\n", "a.py"), SyntaxTree)
    assert isinstance(parser.parse(add_source, "b.js"), SyntaxTree)
    assert parser.supports("a.ts")
    assert not parser.supports("a.rb")
