"""Typer-based CLI for codesift.

Every command indexes the given path in process and then runs one query
against it; nothing is persisted between invocations.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__, config_manager
from .config import Settings
from .engine import CodeIndexEngine
from .errors import CodeSiftError
from .models import CHUNK_KINDS, IndexSummary, SearchResult

console = Console()

app = typer.Typer(
    help="codesift: index a codebase and search it by meaning.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"codesift v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", help="Show log output."),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
):
    """Index JavaScript, TypeScript and Python code and query it."""
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


@contextmanager
def _indexed(path: Path) -> Iterator[CodeIndexEngine]:
    """Build an engine from config, index *path*, and clean up afterwards."""
    engine = CodeIndexEngine.from_config()
    try:
        try:
            engine.index(str(path))
        except CodeSiftError as exc:
            raise typer.BadParameter(str(exc))
        yield engine
    finally:
        engine.close()


def _fail(exc: CodeSiftError) -> None:
    console.print(f"[red]Error:[/red] {exc}")
    raise typer.Exit(code=1)


def _print_summary(summary: IndexSummary) -> None:
    table = Table(title="Index summary", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Path", summary.path)
    table.add_row("Files", str(summary.file_count))
    table.add_row("Chunks", str(summary.chunk_count))
    table.add_row("Embedded", f"{summary.embedded_count} ({summary.coverage * 100:.1f}%)")
    table.add_row("Backend", summary.backend_mode)
    table.add_row("Parse failures", str(len(summary.failures)))
    console.print(table)
    for failure in summary.failures:
        console.print(f"  [yellow]skipped[/yellow] {failure.file_path}: {failure.reason}")


def _print_results(results: List[SearchResult]) -> None:
    if not results:
        console.print("[yellow]No matching code found.[/yellow]")
        return
    table = Table(title=f"{len(results)} result(s)")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Kind", style="magenta")
    table.add_column("Name", style="bold")
    table.add_column("Location", style="cyan")
    table.add_column("Backend", style="dim")
    for r in results:
        table.add_row(
            f"{r.similarity * 100:.1f}%",
            r.chunk.kind,
            r.chunk.name,
            f"{r.chunk.file_path}:{r.chunk.line}",
            r.backend,
        )
    console.print(table)


def _check_kind(kind: Optional[str]) -> Optional[str]:
    if kind is not None and kind not in CHUNK_KINDS:
        raise typer.BadParameter(f"Kind must be one of: {', '.join(CHUNK_KINDS)}")
    return kind


# ===================================================================
# Commands
# ===================================================================

@app.command("index")
def index_project(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
):
    """Index a project and print what was found."""
    engine = CodeIndexEngine.from_config()
    try:
        summary = engine.index(str(project_path))
    except CodeSiftError as exc:
        _fail(exc)
    finally:
        engine.close()
    _print_summary(summary)


@app.command("search")
def search(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    query: str = typer.Argument(..., help="Natural-language or code query."),
    threshold: Optional[float] = typer.Option(None, "--threshold", "-t", min=0.0, max=1.0, help="Minimum similarity."),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", min=1, help="Maximum number of results."),
    kind: Optional[str] = typer.Option(None, "--kind", "-k", callback=_check_kind, help="Only this chunk kind."),
):
    """Search a project for code matching a query."""
    with _indexed(project_path) as engine:
        try:
            results = engine.search(query, threshold=threshold, limit=limit, kind=kind)
        except CodeSiftError as exc:
            _fail(exc)
        _print_results(results)


@app.command("similar")
def similar(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    snippet: str = typer.Argument(..., help="Code snippet to compare against."),
    threshold: Optional[float] = typer.Option(None, "--threshold", "-t", min=0.0, max=1.0, help="Minimum similarity."),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", min=1, help="Maximum number of results."),
):
    """Find code similar to a snippet."""
    with _indexed(project_path) as engine:
        try:
            results = engine.find_similar(snippet, threshold=threshold, limit=limit)
        except CodeSiftError as exc:
            _fail(exc)
        _print_results(results)


@app.command("explain")
def explain(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    question: str = typer.Argument(..., help="What to explain."),
    no_context: bool = typer.Option(False, "--no-context", help="Leave surrounding lines out of the prompt."),
):
    """Explain code relevant to a question."""
    with _indexed(project_path) as engine:
        try:
            text = engine.explain(question, include_context=not no_context)
        except CodeSiftError as exc:
            _fail(exc)
        console.print(Panel(text, title="Explanation", border_style="cyan"))


@app.command("ask")
def ask(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    question: str = typer.Argument(..., help="Question about the codebase."),
):
    """Answer a question from search results plus the code structure summary."""
    with _indexed(project_path) as engine:
        try:
            text = engine.intelligent_query(question)
        except CodeSiftError as exc:
            _fail(exc)
        console.print(Panel(text, title="Analysis", border_style="cyan"))


@app.command("patterns")
def patterns(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
):
    """Show chunk counts, complexity distribution and embedding coverage."""
    with _indexed(project_path) as engine:
        summary = engine.patterns()
        report = engine.embedding_report()

    table = Table(title="Code structure")
    table.add_column("Kind", style="magenta")
    table.add_column("Count", justify="right")
    for kind in CHUNK_KINDS:
        table.add_row(kind, str(summary.kind_counts.get(kind, 0)))
    console.print(table)

    hist = Table(title="Complexity distribution")
    hist.add_column("Range", style="cyan")
    hist.add_column("Chunks", justify="right")
    for label, count in summary.complexity_histogram.items():
        hist.add_row(label, str(count))
    console.print(hist)
    console.print(f"High complexity functions: [bold]{summary.high_complexity}[/bold]")
    console.print(
        f"Embedding coverage: {report.embedded_chunks}/{report.total_chunks} "
        f"({report.coverage * 100:.1f}%)"
    )


@app.command("deps")
def deps(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    symbol: Optional[str] = typer.Option(None, "--symbol", "-s", help="Only show this name."),
    max_deps: int = typer.Option(10, "--max", help="Dependencies listed per name."),
):
    """Print the name -> referenced names dependency graph."""
    with _indexed(project_path) as engine:
        graph = engine.dependency_graph()

    names = [symbol] if symbol else sorted(graph)
    shown = 0
    for name in names:
        targets = sorted(graph.get(name, ()))
        if not targets:
            continue
        shown += 1
        console.print(f"[bold]{name}[/bold]")
        for dep in targets[:max_deps]:
            console.print(f"  ├─ {dep}")
        if len(targets) > max_deps:
            console.print(f"  └─ ... and {len(targets) - max_deps} more")
    if not shown:
        console.print("[yellow]No dependencies found.[/yellow]")


@app.command("config")
def show_config(
    embeddings: Optional[str] = typer.Option(None, "--embeddings", help="Set embedding provider: none, hash, openai."),
    llm: Optional[str] = typer.Option(None, "--llm", help="Set explanation provider: none, ollama, openai, anthropic."),
    model: str = typer.Option("", "--model", help="Model for the provider being set."),
    api_key: str = typer.Option("", "--api-key", help="API key for the provider being set."),
):
    """Show the effective configuration, or set a provider."""
    if embeddings:
        if config_manager.save_embedding_config(embeddings.lower(), model=model, api_key=api_key):
            console.print(f"[green]Embedding provider set to {embeddings}.[/green]")
    if llm:
        if config_manager.save_llm_config(llm.lower(), model=model, api_key=api_key):
            console.print(f"[green]Explanation provider set to {llm}.[/green]")

    settings = Settings.load()
    table = Table(title=f"Configuration ({config_manager.config_file()})", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Embeddings", f"{settings.embeddings.provider} {settings.embeddings.model}".strip())
    table.add_row("Explanations", f"{settings.llm.provider} {settings.llm.model}".strip())
    table.add_row("Vector store", settings.vector_uri if settings.vector_enabled else "disabled")
    table.add_row("Collection", settings.collection)
    table.add_row("Max depth", str(settings.max_depth))
    table.add_row("Max file size", f"{settings.max_file_bytes} bytes")
    table.add_row("Default threshold", str(settings.default_threshold))
    table.add_row("Default limit", str(settings.default_limit))
    console.print(table)


if __name__ == "__main__":
    app()
