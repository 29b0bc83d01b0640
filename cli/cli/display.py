"""Rich output formatting for the tsqlchunks CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that machine-readable output on *stdout* is never
polluted with human-readable decoration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from chunk_engine.models.chunk import CTE, TableReference

if TYPE_CHECKING:
    from chunk_engine.models.chunk import (
        Chunk,
        Parameter,
        Position,
        Subquery,
        TempTableInfo,
    )
    from chunk_engine.models.token import Token


# ---------------------------------------------------------------------------
# Reference kind colour mapping
# ---------------------------------------------------------------------------

_KIND_COLOURS: dict[str, str] = {
    "TABLE": "cyan",
    "TEMP_TABLE": "yellow",
    "GLOBAL_TEMP_TABLE": "bold yellow",
    "TABLE_VARIABLE": "magenta",
    "CTE": "green",
    "DERIVED_TABLE": "blue",
    "PARAMETER": "white",
    "SYSTEM_VARIABLE": "dim",
}


def _coloured_kind(kind: str) -> str:
    """Return a Rich markup string with the reference kind colour-coded."""
    colour = _KIND_COLOURS.get(kind, "white")
    return f"[{colour}]{kind}[/{colour}]"


def _fmt_pos(pos: Position | None) -> str:
    return f"{pos.line}:{pos.col}" if pos is not None else "-"


def _table_label(ref: TableReference) -> str:
    label = f"{escape(ref.qualified_name)} {_coloured_kind(ref.kind.value)}"
    if ref.alias:
        label += f" [dim]AS[/dim] [bold]{escape(ref.alias)}[/bold]"
    return label


def _param_label(param: Parameter) -> str:
    return f"{escape(param.full_name)} {_coloured_kind(param.kind.value)}"


def _add_scope(branch: Tree, node: Subquery | CTE) -> None:
    """Add tables, parameters and nested subqueries of *node* to *branch*."""
    for ref in node.tables:
        branch.add(_table_label(ref))
    for param in node.parameters:
        branch.add(_param_label(param))
    for sub in node.subqueries:
        _add_scope(branch.add(_subquery_label(sub)), sub)


def _subquery_label(sub: Subquery) -> str:
    alias = f" [bold]{escape(sub.alias)}[/bold]" if sub.alias else ""
    clause = f" [dim]in {sub.clause}[/dim]" if sub.clause else ""
    return f"[blue]subquery[/blue]{alias}{clause} [dim]{_fmt_pos(sub.start_pos)}-{_fmt_pos(sub.end_pos)}[/dim]"


# ---------------------------------------------------------------------------
# Chunks
# ---------------------------------------------------------------------------


def display_chunks(console: Console, chunks: list[Chunk]) -> None:
    """Render each chunk as a tree of its references.

    Parameters
    ----------
    console:
        Rich console to write to (typically stderr).
    chunks:
        Output of :func:`chunk_engine.extract`.
    """
    if not chunks:
        console.print("[dim]No statements found.[/dim]")
        return

    for idx, chunk in enumerate(chunks, start=1):
        tree = Tree(
            f"[bold]#{idx}[/bold] [bold yellow]{chunk.statement_type.value}[/bold yellow] "
            f"[dim]batch {chunk.go_batch_index}, {_fmt_pos(chunk.start_pos)}-{_fmt_pos(chunk.end_pos)}[/dim]",
            guide_style="dim",
        )
        if chunk.temp_table_name:
            tree.add(f"creates [yellow]{escape(chunk.temp_table_name)}[/yellow]")
        if chunk.ddl_object is not None:
            tree.add(f"{chunk.ddl_object.object_type} [bold]{escape(chunk.ddl_object.name)}[/bold]")
        if chunk.exec_procedure is not None:
            tree.add(f"exec [bold]{escape(chunk.exec_procedure.qualified_name)}[/bold]")

        if chunk.tables:
            tables_branch = tree.add("[bold cyan]tables[/bold cyan]")
            for ref in chunk.tables:
                tables_branch.add(_table_label(ref))
        for cte in chunk.ctes:
            cols = f" ({', '.join(cte.columns)})" if cte.columns else ""
            _add_scope(tree.add(f"[green]cte[/green] [bold]{escape(cte.name)}[/bold]{escape(cols)}"), cte)
        for sub in chunk.subqueries:
            _add_scope(tree.add(_subquery_label(sub)), sub)
        if chunk.parameters:
            params_branch = tree.add("[bold]parameters[/bold]")
            for param in chunk.parameters:
                params_branch.add(_param_label(param))
        if chunk.insert_columns:
            tree.add(f"columns [dim]{escape(', '.join(chunk.insert_columns))}[/dim]")

        console.print(tree)

    batches = len({c.go_batch_index for c in chunks})
    console.print(f"\n[bold]{len(chunks)}[/bold] statement(s) in [bold]{batches}[/bold] batch(es)")


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def display_tokens(console: Console, tokens: list[Token]) -> None:
    """Render the token stream as a table.

    Parameters
    ----------
    console:
        Rich console to write to.
    tokens:
        Output of :func:`chunk_engine.tokenize`.
    """
    if not tokens:
        console.print("[dim]No tokens.[/dim]")
        return

    table = Table(
        title="Tokens",
        show_lines=False,
        pad_edge=True,
        expand=False,
    )
    table.add_column("#", style="dim", width=5, justify="right")
    table.add_column("Pos", justify="right")
    table.add_column("Kind")
    table.add_column("Text", style="bold")
    table.add_column("Value")

    for idx, tok in enumerate(tokens, start=1):
        kind_style = "dim" if tok.kind.value == "comment" else "white"
        table.add_row(
            str(idx),
            f"{tok.line}:{tok.col}",
            f"[{kind_style}]{tok.kind.value}[/{kind_style}]",
            escape(tok.text),
            escape(tok.value) if tok.value != tok.text else "",
        )

    console.print(table)


# ---------------------------------------------------------------------------
# Cursor resolution
# ---------------------------------------------------------------------------


def display_resolution(
    console: Console,
    line: int,
    col: int,
    chunk: Chunk | None,
    clause: str | None,
    scope: Subquery | CTE | None,
    tables: list[TableReference],
    alias: str | None = None,
    resolved: TableReference | Subquery | CTE | None = None,
) -> None:
    """Render what the engine knows about a cursor position.

    Parameters
    ----------
    console:
        Rich console to write to.
    line, col:
        The cursor position.
    chunk:
        Chunk under the cursor, if any.
    clause:
        Top-level clause under the cursor.
    scope:
        Innermost subquery or CTE body around the cursor.
    tables:
        Tables visible from the cursor.
    alias:
        Qualifier that was looked up, if one was given.
    resolved:
        What *alias* resolved to.
    """
    if chunk is None:
        console.print(f"[yellow]No statement at {line}:{col}.[/yellow]")
        return

    lines = [
        f"[bold]Statement:[/bold] {chunk.statement_type.value} "
        f"({_fmt_pos(chunk.start_pos)}-{_fmt_pos(chunk.end_pos)})",
        f"[bold]Batch:[/bold]     {chunk.go_batch_index}",
        f"[bold]Clause:[/bold]    {clause or '-'}",
    ]
    if scope is not None:
        if isinstance(scope, CTE):
            lines.append(f"[bold]Scope:[/bold]     cte {escape(scope.name)}")
        else:
            lines.append(f"[bold]Scope:[/bold]     subquery {escape(scope.alias or '(unaliased)')}")
    if alias is not None:
        if resolved is None:
            target = "[red]unresolved[/red]"
        elif isinstance(resolved, TableReference):
            target = _table_label(resolved)
        elif isinstance(resolved, CTE):
            target = f"[green]cte[/green] {escape(resolved.name)}"
        else:
            target = "[blue]derived table[/blue]"
        lines.append(f"[bold]{escape(alias)}:[/bold] {target}")

    console.print(Panel("\n".join(lines), title=f"Cursor {line}:{col}", border_style="blue"))

    if tables:
        table = Table(title="Tables in scope", show_lines=False, pad_edge=True, expand=False)
        table.add_column("Name", style="bold")
        table.add_column("Alias")
        table.add_column("Kind")
        for ref in tables:
            table.add_row(escape(ref.qualified_name), escape(ref.alias or "-"), _coloured_kind(ref.kind.value))
        console.print(table)
    else:
        console.print("[dim]No tables in scope.[/dim]")


# ---------------------------------------------------------------------------
# Temp tables
# ---------------------------------------------------------------------------


def display_temp_tables(console: Console, temp_tables: list[TempTableInfo]) -> None:
    """Render the script's temp-table registry.

    Parameters
    ----------
    console:
        Rich console to write to.
    temp_tables:
        Registry entries in creation order.
    """
    if not temp_tables:
        console.print("[dim]No temp tables created.[/dim]")
        return

    table = Table(title="Temp Tables", show_lines=False, pad_edge=True, expand=False)
    table.add_column("Name", style="bold")
    table.add_column("Scope")
    table.add_column("Batch", justify="right")
    table.add_column("Created At", justify="right")

    for info in temp_tables:
        scope = "[bold yellow]global[/bold yellow]" if info.is_global else "[yellow]session[/yellow]"
        table.add_row(escape(info.name), scope, str(info.created_in_batch), _fmt_pos(info.position))

    console.print(table)


# ---------------------------------------------------------------------------
# Profiling
# ---------------------------------------------------------------------------


def display_profile(console: Console, stats: list[dict[str, Any]]) -> None:
    """Render per-stage timing statistics.

    Parameters
    ----------
    console:
        Rich console to write to.
    stats:
        Output of :meth:`ProfileCollector.get_all_stats`.
    """
    if not stats:
        console.print("[dim]No timings recorded.[/dim]")
        return

    table = Table(title="Timings", show_lines=False, pad_edge=True, expand=False)
    table.add_column("Operation", style="bold")
    table.add_column("Calls", justify="right")
    table.add_column("Mean (ms)", justify="right")
    table.add_column("p95 (ms)", justify="right")
    table.add_column("Max (ms)", justify="right")

    for row in stats:
        table.add_row(
            row["operation"],
            str(row["count"]),
            f"{row['mean_ms']:.3f}",
            f"{row['p95_ms']:.3f}",
            f"{row['max_ms']:.3f}",
        )

    console.print(table)
