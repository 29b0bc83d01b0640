"""Cursor-position lookups used by autocomplete consumers."""

from chunk_engine.navigation.positions import (
    chunk_at_position,
    clause_at_position,
    resolve_alias,
    subquery_at_position,
    tables_in_scope,
)

__all__ = [
    "chunk_at_position",
    "clause_at_position",
    "resolve_alias",
    "subquery_at_position",
    "tables_in_scope",
]
