"""tsqlchunks CLI application -- Typer-based inspection interface.

Provides commands for extracting statement chunks, dumping the token
stream, resolving a cursor position, and listing the temp tables a script
creates.  Human-readable output goes to *stderr* via Rich; machine-readable
output (``--json``) goes to *stdout* so that pipelines can compose cleanly.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape

from chunk_engine import (
    EngineSettings,
    analyze,
    chunk_at_position,
    clause_at_position,
    extract,
    load_settings,
    resolve_alias,
    subquery_at_position,
    tables_in_scope,
    tokenize,
)
from chunk_engine.models.chunk import CTE, Subquery, TableReference
from chunk_engine.telemetry.logging_setup import configure_logging
from chunk_engine.telemetry.profiling import ProfileCollector
from cli.display import (
    display_chunks,
    display_profile,
    display_resolution,
    display_temp_tables,
    display_tokens,
)

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="tsqlchunks",
    help="tsqlchunks - tolerant T-SQL reference extraction",
    no_args_is_help=True,
)
console = Console(stderr=True)

# Mutable global options populated by the Typer callback.
_json_output: bool = False
_settings: EngineSettings | None = None

_SOURCE_HELP = "Path to a .sql file, or '-' to read standard input."


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    ctx: typer.Context,
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of human-readable output.",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Engine log level (DEBUG, INFO, WARNING, ERROR).",
    ),
    profile: bool = typer.Option(
        False,
        "--profile",
        help="Print per-stage timings to stderr when the command finishes.",
    ),
) -> None:
    """Global options applied to every command."""
    global _json_output, _settings  # noqa: PLW0603
    _json_output = json_mode

    overrides: dict[str, Any] = {}
    if log_level is not None:
        overrides["log_level"] = log_level
    try:
        _settings = load_settings(**overrides)
    except ValueError as exc:
        console.print(f"[red]Invalid settings: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    configure_logging(_settings)

    if profile:
        collector = ProfileCollector.get_instance()
        collector.enabled = True
        collector.clear()
        ctx.call_on_close(lambda: display_profile(console, collector.get_all_stats()))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _read_source(source: str) -> str:
    """Read script text from *source* (a path, or ``-`` for stdin)."""
    if source == "-":
        return sys.stdin.read()
    path = Path(source)
    try:
        return path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        console.print(f"[red]Cannot read {escape(source)}: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc


def _write_json(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + "\n")


def _dump(node: TableReference | Subquery | CTE | None) -> dict[str, Any] | None:
    if node is None:
        return None
    return node.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# extract
# ---------------------------------------------------------------------------


@app.command("extract")
def extract_command(
    source: str = typer.Argument(..., help=_SOURCE_HELP),
) -> None:
    """Extract one structural summary per statement."""
    chunks = extract(_read_source(source), settings=_settings)

    if _json_output:
        _write_json([c.model_dump(mode="json", by_alias=True) for c in chunks])
    else:
        display_chunks(console, chunks)


# ---------------------------------------------------------------------------
# tokens
# ---------------------------------------------------------------------------


@app.command("tokens")
def tokens_command(
    source: str = typer.Argument(..., help=_SOURCE_HELP),
) -> None:
    """Dump the lexer's token stream."""
    tokens = tokenize(_read_source(source))

    if _json_output:
        _write_json(
            [
                {
                    "kind": t.kind.value,
                    "text": t.text,
                    "value": t.value,
                    "line": t.line,
                    "col": t.col,
                    "offset": t.offset,
                    "repeat_count": t.repeat_count,
                }
                for t in tokens
            ]
        )
    else:
        display_tokens(console, tokens)


# ---------------------------------------------------------------------------
# resolve
# ---------------------------------------------------------------------------


@app.command("resolve")
def resolve_command(
    source: str = typer.Argument(..., help=_SOURCE_HELP),
    line: int = typer.Option(..., "--line", "-l", help="1-based cursor line.", min=1),
    col: int = typer.Option(..., "--col", "-c", help="1-based cursor column.", min=1),
    alias: str | None = typer.Option(
        None,
        "--alias",
        "-a",
        help="Qualifier typed before a '.', resolved against the statement.",
    ),
) -> None:
    """Show the statement, clause, scope and visible tables at a cursor position."""
    chunks = extract(_read_source(source), settings=_settings)
    chunk = chunk_at_position(chunks, line, col)

    clause = scope = resolved = None
    tables: list[TableReference] = []
    if chunk is not None:
        clause = clause_at_position(chunk, line, col)
        scope = subquery_at_position(chunk, line, col)
        tables = tables_in_scope(chunk, line, col)
        if alias is not None:
            resolved = resolve_alias(chunk, alias)

    if _json_output:
        _write_json(
            {
                "line": line,
                "col": col,
                "statement_type": chunk.statement_type.value if chunk is not None else None,
                "go_batch_index": chunk.go_batch_index if chunk is not None else None,
                "clause": clause,
                "scope": _dump(scope),
                "tables": [_dump(t) for t in tables],
                "alias": alias,
                "resolved": _dump(resolved),
            }
        )
    else:
        display_resolution(console, line, col, chunk, clause, scope, tables, alias, resolved)

    if chunk is None:
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# temp-tables
# ---------------------------------------------------------------------------


@app.command("temp-tables")
def temp_tables_command(
    source: str = typer.Argument(..., help=_SOURCE_HELP),
) -> None:
    """List the temp tables a script creates and has not dropped."""
    analysis = analyze(_read_source(source), settings=_settings)
    temp_tables = list(analysis.temp_tables.values())

    if _json_output:
        _write_json(
            {
                "batch_count": analysis.batch_count,
                "temp_tables": [t.model_dump(mode="json") for t in temp_tables],
            }
        )
    else:
        display_temp_tables(console, temp_tables)
