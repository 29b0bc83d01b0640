"""Domain models for the T-SQL chunk engine."""

from chunk_engine.models.chunk import (
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
)
from chunk_engine.models.token import Token, TokenKind

__all__ = [
    "CTE",
    "Chunk",
    "ClausePosition",
    "DdlObject",
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
]
