"""Cursor-position lookups over extracted chunks.

These helpers are what an autocomplete layer calls after :func:`extract`:
find the statement under the cursor, the innermost subquery or CTE body
around it, the clause it sits in, and what a typed ``alias.`` prefix
refers to.  All positions are 1-based ``(line, col)`` pairs.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from chunk_engine.models.chunk import (
    CTE,
    Chunk,
    Subquery,
    TableReference,
    position_in_span,
)


def chunk_at_position(chunks: Sequence[Chunk], line: int, col: int) -> Chunk | None:
    """Return the chunk under the cursor.

    When the cursor is between two statements (on a blank line, after a
    ``;``) the closest preceding chunk is returned, since that is the
    statement being typed.  Returns None before the first chunk.
    """
    cursor = (line, col)
    preceding: Chunk | None = None
    for chunk in chunks:
        if chunk.contains(line, col):
            return chunk
        if chunk.start_pos is not None and chunk.start_pos.as_tuple() <= cursor:
            preceding = chunk
    return preceding


def _scopes(nodes: Sequence[Subquery | CTE]) -> Iterator[tuple[Subquery | CTE, int]]:
    """Yield every nested subquery/CTE with its nesting depth."""
    stack: list[tuple[Subquery | CTE, int]] = [(node, 1) for node in reversed(nodes)]
    while stack:
        node, depth = stack.pop()
        yield node, depth
        stack.extend((sub, depth + 1) for sub in reversed(node.subqueries))


def subquery_at_position(chunk: Chunk, line: int, col: int) -> Subquery | CTE | None:
    """Return the innermost subquery or CTE body whose parentheses contain the cursor."""
    best: Subquery | CTE | None = None
    best_depth = 0
    for node, depth in _scopes([*chunk.ctes, *chunk.subqueries]):
        if depth > best_depth and position_in_span(node.start_pos, node.end_pos, line, col):
            best, best_depth = node, depth
    return best


def clause_at_position(chunk: Chunk, line: int, col: int) -> str | None:
    """Return the top-level clause (``FROM``, ``WHERE`` ...) under the cursor.

    A cursor past the last token of a clause but before the next clause
    keyword still belongs to the earlier clause.
    """
    if not chunk.clause_positions:
        return None
    if chunk.end_pos is not None and (line, col) > chunk.end_pos.as_tuple():
        return chunk.clause_positions[-1].clause
    current: str | None = None
    for span in chunk.clause_positions:
        if span.start.as_tuple() <= (line, col):
            current = span.clause
        else:
            break
    return current


def resolve_alias(chunk: Chunk, name: str) -> TableReference | Subquery | CTE | None:
    """Resolve the qualifier typed before a ``.`` to what it names.

    Lookup order: the alias registry, aliased tables of nested subqueries
    and CTE bodies, derived-table aliases, CTE names, then unaliased table
    names.  Matching is case-insensitive.
    """
    key = name.lower()
    if key in chunk.aliases:
        return chunk.aliases[key]
    nested = list(_scopes([*chunk.ctes, *chunk.subqueries]))
    for node, _ in nested:
        for ref in node.tables:
            if ref.alias and ref.alias.lower() == key:
                return ref
    for node, _ in nested:
        if isinstance(node, Subquery) and node.alias and node.alias.lower() == key:
            return node
    for cte in chunk.ctes:
        if cte.name.lower() == key:
            return cte
    for ref in chunk.tables:
        if ref.name.lower() == key:
            return ref
    return None


def tables_in_scope(chunk: Chunk, line: int, col: int) -> list[TableReference]:
    """Tables visible at the cursor: the innermost scope's first, then the chunk's."""
    scope = subquery_at_position(chunk, line, col)
    inner = list(scope.tables) if scope is not None else []
    return inner + [ref for ref in chunk.tables if ref not in inner]
