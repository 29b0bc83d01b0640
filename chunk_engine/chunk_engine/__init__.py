"""Tolerant T-SQL reference extraction.

Quick start::

    from chunk_engine import extract

    for chunk in extract("SELECT * FROM dbo.Employees e"):
        print(chunk.statement_type, [t.qualified_name for t in chunk.tables])

:func:`extract` never raises for any input string; malformed SQL degrades
to partial results.
"""

from chunk_engine.config import EngineSettings, get_settings, load_settings
from chunk_engine.models import (
    CTE,
    Chunk,
    ClausePosition,
    DdlObject,
    Parameter,
    Position,
    ReferenceKind,
    ScriptAnalysis,
    StatementType,
    Subquery,
    TableReference,
    TempTableInfo,
    Token,
    TokenKind,
)
from chunk_engine.navigation import (
    chunk_at_position,
    clause_at_position,
    resolve_alias,
    subquery_at_position,
    tables_in_scope,
)
from chunk_engine.parser import (
    analyze,
    assemble,
    build_aliases,
    extract,
    segment,
    tokenize,
    walk,
)

__version__ = "0.1.0"

__all__ = [
    "CTE",
    "Chunk",
    "ClausePosition",
    "DdlObject",
    "EngineSettings",
    "Parameter",
    "Position",
    "ReferenceKind",
    "ScriptAnalysis",
    "StatementType",
    "Subquery",
    "TableReference",
    "TempTableInfo",
    "Token",
    "TokenKind",
    "analyze",
    "assemble",
    "build_aliases",
    "chunk_at_position",
    "clause_at_position",
    "extract",
    "get_settings",
    "load_settings",
    "resolve_alias",
    "segment",
    "subquery_at_position",
    "tables_in_scope",
    "tokenize",
    "walk",
]
