"""Typer-based CLI for CodeTrace code search, log tracing and dependency resolution."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__, config_manager
from .config import configure_logging, load_settings
from .errors import InvalidArgumentError, InvalidPathError
from .interceptors import GuardedCodeTraceService

app = typer.Typer(
    help="🔎 CodeTrace CLI — search a codebase, trace error logs to source, resolve data dependencies.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    help="⚙️  Configuration — allowed roots and search limits.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(config_app, name="config")

console = Console()


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"CodeTrace CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log progress to stderr."),
):
    """CodeTrace CLI: local code search and error-to-source tracing."""
    configure_logging("DEBUG" if verbose else None)


def _service() -> GuardedCodeTraceService:
    return GuardedCodeTraceService(load_settings())


def _search_options(
    file_types: Optional[List[str]],
    case_sensitive: bool,
    max_results: Optional[int],
    max_files: Optional[int],
    context: Optional[int],
    exclude: Optional[List[str]],
) -> dict:
    return {
        "file_types": file_types or None,
        "case_sensitive": case_sensitive,
        "max_results": max_results,
        "max_files": max_files,
        "context_lines": context,
        "exclude_patterns": exclude or None,
    }


def _usage_error(exc: Exception) -> typer.BadParameter:
    """Turn core argument/path errors into CLI usage errors."""
    if isinstance(exc, InvalidPathError):
        return typer.BadParameter(f"Root not allowed: {exc.path} ({exc.reason})")
    return typer.BadParameter(str(exc))


def _display_path(path: str) -> str:
    try:
        return os.path.relpath(path)
    except ValueError:
        return path


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------

@app.command("search")
def search(
    query: str = typer.Argument(..., help="Pattern to search for (regex; literal if malformed)."),
    roots: List[Path] = typer.Argument(..., help="Root directories to search."),
    file_types: Optional[List[str]] = typer.Option(None, "--type", "-t", help="File type filter (repeatable)."),
    case_sensitive: bool = typer.Option(False, "--case-sensitive", help="Match case exactly."),
    max_results: Optional[int] = typer.Option(None, min=0, help="Maximum number of matches."),
    max_files: Optional[int] = typer.Option(None, min=0, help="Maximum number of files searched."),
    context: Optional[int] = typer.Option(None, "--context", min=0, help="Context lines around each match."),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", help="Path regex to exclude (repeatable)."),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON."),
):
    """Search ROOTS for QUERY with type-aware strategies."""
    service = _service()
    try:
        response = service.search(
            query,
            [str(r) for r in roots],
            **_search_options(file_types, case_sensitive, max_results, max_files, context, exclude),
        )
    except (InvalidArgumentError, InvalidPathError) as exc:
        raise _usage_error(exc) from exc

    if as_json:
        typer.echo(json.dumps(response.to_dict(), indent=2))
        return

    summary = response.summary
    if not response.results:
        typer.echo(summary.message or f"No matches for '{query}'.")
    else:
        table = Table(title=f"Matches for '{query}'")
        table.add_column("File", style="cyan")
        table.add_column("Line", justify="right")
        table.add_column("Strategy")
        table.add_column("Score", justify="right")
        table.add_column("Match", style="green")
        for match in response.results:
            table.add_row(
                match.file.relative_path,
                str(match.line),
                match.strategy,
                f"{match.score:g}",
                match.match_text[:80],
            )
        console.print(table)

    typer.echo(
        f"Files: {summary.total_files} found | {summary.filtered_files} filtered | "
        f"{summary.processed_files} searched | {summary.match_count} matches"
    )
    if summary.errors:
        typer.echo(f"{len(summary.errors)} files or directories could not be read.", err=True)


# ---------------------------------------------------------------------------
# trace
# ---------------------------------------------------------------------------

@app.command("trace")
def trace(
    log: Optional[str] = typer.Argument(None, help="Error log text (or use --file / stdin)."),
    roots: List[Path] = typer.Option(..., "--root", "-r", help="Root directory to search (repeatable)."),
    log_file: Optional[Path] = typer.Option(None, "--file", "-f", exists=True, dir_okay=False, help="Read the log from a file."),
    file_types: Optional[List[str]] = typer.Option(None, "--type", "-t", help="File type filter (repeatable)."),
    case_sensitive: bool = typer.Option(False, "--case-sensitive", help="Match case exactly."),
    as_json: bool = typer.Option(False, "--json", help="Print the scored hits as JSON."),
):
    """Trace an error LOG back to the source lines most likely to have produced it."""
    if log_file is not None:
        log = log_file.read_text(encoding="utf-8", errors="replace")
    elif log is None and not sys.stdin.isatty():
        log = sys.stdin.read()
    if not log or not log.strip():
        raise typer.BadParameter("Provide the log text, --file, or pipe it on stdin.")

    service = _service()
    options = {"file_types": file_types or None, "case_sensitive": case_sensitive}
    try:
        if as_json:
            report = service.trace_report(log, [str(r) for r in roots], **options)
        else:
            text = service.trace(log, [str(r) for r in roots], **options)
    except (InvalidArgumentError, InvalidPathError) as exc:
        raise _usage_error(exc) from exc

    if as_json:
        payload = {
            "queries_tried": report.queries_tried,
            "hits": [
                {**hit.match.to_dict(), "relevance": hit.score, "search_context": hit.search_context, "query": hit.query}
                for hit in report.hits
            ],
        }
        typer.echo(json.dumps(payload, indent=2))
        return
    typer.echo(text)


# ---------------------------------------------------------------------------
# resolve
# ---------------------------------------------------------------------------

@app.command("resolve")
def resolve(
    snippet: Optional[str] = typer.Argument(None, help="Code snippet to analyse."),
    root: Path = typer.Option(..., "--root", "-r", help="Root directory searched for definitions."),
    primary_file: Optional[str] = typer.Option(None, "--file", help="File the snippet was taken from."),
    snippet_file: Optional[Path] = typer.Option(None, "--snippet-file", exists=True, dir_okay=False, help="Read the snippet from a file."),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON."),
):
    """Resolve the variables, constants and configuration used by SNIPPET to their sources."""
    if snippet_file is not None:
        snippet = snippet_file.read_text(encoding="utf-8", errors="replace")
    if not snippet or not snippet.strip():
        raise typer.BadParameter("Provide a snippet or --snippet-file.")

    service = _service()
    try:
        result = service.resolve_dependencies(snippet, str(root), primary_file=primary_file)
    except (InvalidArgumentError, InvalidPathError) as exc:
        raise _usage_error(exc) from exc

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, default=str))
        return

    if result.trace_steps:
        lines = [f"{s.step}. {escape(s.description)}  [dim]({escape(s.location)})[/dim]" for s in result.trace_steps]
        console.print(Panel("\n".join(lines), title="Trace", border_style="cyan"))

    resolved = [d for d in result.dependencies if d.resolved]
    if resolved:
        table = Table(title="Dependencies")
        table.add_column("Type", style="magenta")
        table.add_column("Name", style="cyan")
        table.add_column("Location")
        table.add_column("Detail", style="green")
        for dep in resolved:
            first = dep.sources[0]
            detail = ""
            if dep.configuration is not None and dep.configuration.table_name:
                detail = f"table {dep.configuration.table_name}"
            elif first.value is not None:
                detail = f"= {first.value}"
            elif first.query:
                detail = first.query[:60]
            table.add_row(dep.dep_type, dep.name, f"{_display_path(first.file)}:{first.line}", detail)
        console.print(table)
    else:
        typer.echo("No dependencies resolved.")

    unresolved = [d.name for d in result.dependencies if not d.resolved]
    if unresolved:
        typer.echo(f"Unresolved: {', '.join(unresolved)}")

    for rec in result.recommendations:
        console.print(f"[bold]{rec.priority.upper()}[/bold] {rec.type}: {escape(rec.message)}\n   → {escape(rec.suggestion)}")


# ---------------------------------------------------------------------------
# stats
# ---------------------------------------------------------------------------

@app.command("stats")
def stats(
    roots: List[Path] = typer.Argument(..., help="Root directories to summarize."),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON."),
):
    """Show file counts by type and extension, plus Path Guard violations."""
    service = _service()
    try:
        result = service.directory_stats([str(r) for r in roots])
    except (InvalidArgumentError, InvalidPathError) as exc:
        raise _usage_error(exc) from exc

    if as_json:
        payload = {
            "directories": result.directories,
            "total_files": result.total_files,
            "files_by_type": result.files_by_type,
            "files_by_extension": result.files_by_extension,
            "security": service.security_stats(),
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    table = Table(title=f"{result.total_files} files")
    table.add_column("Type", style="cyan")
    table.add_column("Files", justify="right")
    for file_type, count in sorted(result.files_by_type.items(), key=lambda kv: -kv[1]):
        table.add_row(file_type, str(count))
    console.print(table)

    for directory in result.directories:
        if not directory["accessible"]:
            typer.echo(f"Inaccessible: {directory['path']} ({directory['error']})", err=True)

    violations = service.security_stats()["total_violations"]
    if violations:
        typer.echo(f"Path Guard violations: {violations}")


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------

@config_app.command("show")
def config_show():
    """Show the effective settings (defaults < config.toml < environment)."""
    settings = load_settings()
    table = Table(title=f"Settings ({config_manager.CONFIG_FILE})")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in asdict(settings).items():
        if isinstance(value, tuple):
            value = ", ".join(value)
        table.add_row(key, str(value))
    console.print(table)


@config_app.command("set-roots")
def config_set_roots(
    paths: List[Path] = typer.Argument(..., help="Directories the Path Guard should allow."),
):
    """Persist the allowed search roots to config.toml."""
    resolved = [str(p.expanduser().resolve()) for p in paths]
    if not config_manager.save_search_config(allowed_paths=resolved):
        typer.echo(f"Could not write {config_manager.CONFIG_FILE}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Allowed roots saved: {', '.join(resolved)}")


@config_app.command("reset")
def config_reset():
    """Remove saved search settings and fall back to defaults."""
    if not config_manager.clear_search_config():
        typer.echo(f"Could not write {config_manager.CONFIG_FILE}", err=True)
        raise typer.Exit(code=1)
    typer.echo("Search settings reset to defaults.")


if __name__ == "__main__":
    app()
