"""Structural summary models returned by the extraction engine.

A script is reduced to an ordered list of :class:`Chunk` records, one per
logical statement.  Each chunk owns its table references, CTEs, subqueries
and parameters outright: nested :class:`Subquery` and :class:`CTE` nodes
form a tree with no back-references, so chunks can be serialized with
``model_dump()`` and compared by value.

All models are frozen.  The engine builds them bottom-up and never mutates
them after construction.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class StatementType(str, Enum):
    """Closed set of statement classifications, with ``OTHER`` as fallback."""

    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    MERGE = "MERGE"
    WITH = "WITH"
    DECLARE = "DECLARE"
    SET = "SET"
    EXEC = "EXEC"
    CREATE = "CREATE"
    ALTER = "ALTER"
    DROP = "DROP"
    TRUNCATE = "TRUNCATE"
    GRANT = "GRANT"
    REVOKE = "REVOKE"
    DENY = "DENY"
    BEGIN = "BEGIN"
    IF = "IF"
    WHILE = "WHILE"
    PRINT = "PRINT"
    RETURN = "RETURN"
    USE = "USE"
    OTHER = "OTHER"


class ReferenceKind(str, Enum):
    """The kinds of reference the engine tells apart."""

    TABLE = "TABLE"
    TEMP_TABLE = "TEMP_TABLE"
    GLOBAL_TEMP_TABLE = "GLOBAL_TEMP_TABLE"
    TABLE_VARIABLE = "TABLE_VARIABLE"
    CTE = "CTE"
    DERIVED_TABLE = "DERIVED_TABLE"
    PARAMETER = "PARAMETER"
    SYSTEM_VARIABLE = "SYSTEM_VARIABLE"
    BATCH_SEPARATOR = "BATCH_SEPARATOR"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------


class Position(_Frozen):
    """A 1-based line/column location in the source text."""

    line: int = Field(..., ge=1, description="1-based line number.")
    col: int = Field(..., ge=1, description="1-based column number.")

    def as_tuple(self) -> tuple[int, int]:
        return (self.line, self.col)


def position_in_span(start: Position | None, end: Position | None, line: int, col: int) -> bool:
    """Return True if (*line*, *col*) lies within the inclusive span."""
    if start is None or end is None:
        return False
    return start.as_tuple() <= (line, col) <= end.as_tuple()


class ClausePosition(_Frozen):
    """Span of one top-level clause (``FROM``, ``WHERE`` ...) in a statement."""

    clause: str = Field(..., description="Clause name, upper-cased (e.g. 'GROUP BY').")
    start: Position = Field(..., description="Position of the clause keyword.")
    end: Position = Field(..., description="Position of the clause's last token.")


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


class TableReference(_Frozen):
    """A direct reference to a table-like object.

    ``name`` keeps its sigils (``#Temp``, ``##Global``, ``@TableVar``) so
    that consumers can match it against what the user typed.  At most one
    of ``is_temp`` / ``is_table_variable`` / ``is_cte`` is true.
    """

    name: str = Field(..., description="Object name, sigils included, brackets removed.")
    schema_name: str | None = Field(
        default=None,
        alias="schema",
        description="Schema part of a qualified name.",
    )
    database: str | None = Field(default=None, description="Database part of a qualified name.")
    server: str | None = Field(default=None, description="Linked-server part of a four-part name.")
    alias: str | None = Field(default=None, description="Alias as written (original case).")
    is_temp: bool = Field(default=False, description="True for #local and ##global temp tables.")
    is_global_temp: bool = Field(default=False, description="True for ##global temp tables.")
    is_table_variable: bool = Field(default=False, description="True for @table variables.")
    is_cte: bool = Field(default=False, description="True when the name matches a visible CTE.")
    position: Position | None = Field(default=None, description="Where the reference starts.")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @property
    def schema(self) -> str | None:  # type: ignore[override]
        return self.schema_name

    @property
    def kind(self) -> ReferenceKind:
        if self.is_cte:
            return ReferenceKind.CTE
        if self.is_table_variable:
            return ReferenceKind.TABLE_VARIABLE
        if self.is_global_temp:
            return ReferenceKind.GLOBAL_TEMP_TABLE
        if self.is_temp:
            return ReferenceKind.TEMP_TABLE
        return ReferenceKind.TABLE

    @property
    def qualified_name(self) -> str:
        """Dotted name built from the parts that are present."""
        parts = [p for p in (self.server, self.database, self.schema_name, self.name) if p]
        return ".".join(parts)


class Parameter(_Frozen):
    """A ``@name`` variable or ``@@name`` system variable."""

    name: str = Field(..., description="Name without sigils.")
    full_name: str = Field(..., description="Name with sigils, e.g. '@Foo' or '@@ROWCOUNT'.")
    is_system: bool = Field(default=False, description="True for @@system variables.")
    position: Position | None = Field(default=None, description="First occurrence.")

    @property
    def kind(self) -> ReferenceKind:
        return ReferenceKind.SYSTEM_VARIABLE if self.is_system else ReferenceKind.PARAMETER


class Subquery(_Frozen):
    """A parenthesized query nested in a statement, CTE or another subquery."""

    alias: str | None = Field(default=None, description="Derived-table alias, if any.")
    tables: list[TableReference] = Field(default_factory=list)
    subqueries: list[Subquery] = Field(default_factory=list)
    parameters: list[Parameter] = Field(default_factory=list)
    clause: str | None = Field(default=None, description="Clause the subquery appeared in.")
    start_pos: Position | None = Field(default=None, description="Opening parenthesis.")
    end_pos: Position | None = Field(default=None, description="Closing parenthesis.")

    @property
    def kind(self) -> ReferenceKind:
        return ReferenceKind.DERIVED_TABLE


class CTE(_Frozen):
    """A common table expression declared in a ``WITH`` list."""

    name: str = Field(..., description="CTE name as written.")
    columns: list[str] | None = Field(default=None, description="Declared column list.")
    tables: list[TableReference] = Field(
        default_factory=list,
        description="External tables referenced by the body (sibling CTEs excluded).",
    )
    subqueries: list[Subquery] = Field(default_factory=list)
    parameters: list[Parameter] = Field(default_factory=list)
    start_pos: Position | None = Field(default=None, description="Body opening parenthesis.")
    end_pos: Position | None = Field(default=None, description="Body closing parenthesis.")


class DdlObject(_Frozen):
    """The object a CREATE / ALTER / DROP statement acts on."""

    object_type: str = Field(..., description="TABLE, VIEW, PROCEDURE, FUNCTION, ...")
    name: str
    schema_name: str | None = Field(default=None, alias="schema")
    database: str | None = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @property
    def schema(self) -> str | None:  # type: ignore[override]
        return self.schema_name


# ---------------------------------------------------------------------------
# Chunk
# ---------------------------------------------------------------------------


class Chunk(_Frozen):
    """Structural summary of one logical statement."""

    statement_type: StatementType = Field(..., description="Statement classification.")
    go_batch_index: int = Field(default=0, ge=0, description="Batch separators seen before.")
    temp_table_name: str | None = Field(
        default=None,
        description="Table created as a side effect (SELECT ... INTO, CREATE TABLE #x).",
    )
    tables: list[TableReference] = Field(default_factory=list)
    aliases: dict[str, TableReference] = Field(default_factory=dict)
    ctes: list[CTE] = Field(default_factory=list)
    subqueries: list[Subquery] = Field(default_factory=list)
    parameters: list[Parameter] = Field(default_factory=list)
    insert_columns: list[str] | None = Field(default=None, description="INSERT column list.")
    exec_procedure: TableReference | None = Field(default=None, description="EXEC target.")
    ddl_object: DdlObject | None = Field(default=None, description="CREATE/ALTER/DROP target.")
    clause_positions: list[ClausePosition] = Field(default_factory=list)
    start_pos: Position | None = Field(default=None, description="First token of the statement.")
    end_pos: Position | None = Field(default=None, description="Last token of the statement.")

    def contains(self, line: int, col: int) -> bool:
        return position_in_span(self.start_pos, self.end_pos, line, col)


# ---------------------------------------------------------------------------
# Script-level analysis
# ---------------------------------------------------------------------------


class TempTableInfo(_Frozen):
    """A temp table created somewhere in the script."""

    name: str
    created_in_batch: int = Field(..., ge=0)
    is_global: bool = False
    position: Position | None = None


class ScriptAnalysis(_Frozen):
    """Chunks plus the script-wide temp-table registry."""

    chunks: list[Chunk] = Field(default_factory=list)
    temp_tables: dict[str, TempTableInfo] = Field(
        default_factory=dict,
        description="Keyed by lower-cased temp table name.",
    )
    batch_count: int = Field(default=0, ge=0, description="Number of batches in the script.")
