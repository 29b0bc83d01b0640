"""Reference walker: the recursive core of extraction.

Given one statement's tokens, the walker scans for a fixed set of syntactic
anchors (``FROM``, ``JOIN``, ``APPLY``, ``UPDATE``, ``INTO``, ``MERGE``,
``USING``, ``DELETE``, DDL keywords, ``EXEC`` and ``WITH``) and collects the
table references, CTE definitions, subqueries and parameters they
introduce.  It is not a grammar: anything it does not recognize is stepped
over.

Parenthesized ranges are the only recursion.  A range that opens with
``SELECT`` or ``WITH`` becomes a :class:`Subquery`; any other range is
scanned in expression mode, where only nested subqueries are collected.
Parentheses are matched once up front; an unterminated ``(`` extends to
the end of the statement and a stray ``)`` is ignored.  Recursion depth is
capped by ``EngineSettings.max_nesting_depth``.

The walker never raises for any token sequence.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from chunk_engine.config import get_settings
from chunk_engine.models.chunk import (
    CTE,
    ClausePosition,
    DdlObject,
    Parameter,
    Position,
    StatementType,
    Subquery,
    TableReference,
)
from chunk_engine.models.token import Token, TokenKind
from chunk_engine.parser.keywords import (
    CLAUSE_KEYWORDS,
    DDL_OBJECT_TYPES,
    NON_ALIAS_WORDS,
    QUERY_OPENERS,
    STATEMENT_TYPES,
    TABLE_HINTS,
)
from chunk_engine.parser.segmenter import is_cte_start

logger = logging.getLogger(__name__)

_CTE_MAIN_TYPES = frozenset({"SELECT", "INSERT", "UPDATE", "DELETE", "MERGE"})
_PRIVILEGE_STATEMENTS = frozenset({"GRANT", "REVOKE", "DENY"})
_SUBQUERY_CLAUSES = {
    "SELECT": "SELECT",
    "FROM": "FROM",
    "WHERE": "WHERE",
    "HAVING": "HAVING",
    "SET": "SET",
    "ON": "ON",
    "VALUES": "VALUES",
    "GROUP": "GROUP BY",
    "ORDER": "ORDER BY",
    "OUTPUT": "OUTPUT",
    "RETURN": "RETURN",
    "IF": "IF",
    "WHILE": "WHILE",
    "DECLARE": "DECLARE",
    "EXEC": "EXEC",
    "EXECUTE": "EXEC",
    "PIVOT": "PIVOT",
    "UNPIVOT": "PIVOT",
}


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class WalkResult:
    """Everything the walker extracted from one statement."""

    statement_type: StatementType
    tables: list[TableReference] = field(default_factory=list)
    ctes: list[CTE] = field(default_factory=list)
    subqueries: list[Subquery] = field(default_factory=list)
    parameters: list[Parameter] = field(default_factory=list)
    temp_table_name: str | None = None
    insert_columns: list[str] | None = None
    exec_procedure: TableReference | None = None
    ddl_object: DdlObject | None = None
    clause_positions: list[ClausePosition] = field(default_factory=list)


@dataclass(slots=True)
class _Scope:
    """Accumulator for one query scope (statement, subquery or CTE body)."""

    cte_names: tuple[str, ...] = ()
    keep_cte_refs: bool = True
    tables: list[TableReference] = field(default_factory=list)
    subqueries: list[Subquery] = field(default_factory=list)
    ctes: list[CTE] = field(default_factory=list)

    def child(self, *, cte_names: tuple[str, ...] | None = None, keep_cte_refs: bool = True) -> _Scope:
        return _Scope(
            cte_names=self.cte_names if cte_names is None else cte_names,
            keep_cte_refs=keep_cte_refs,
        )


# ---------------------------------------------------------------------------
# Open-question decision point
# ---------------------------------------------------------------------------


def classify_cte_statement(main_keyword: str | None) -> StatementType:
    """Classify a statement that starts with a ``WITH`` CTE list.

    The statement is reported as its main statement (``WITH c AS (...)
    SELECT`` is a SELECT, ``... INSERT`` an INSERT), so CTE-bearing queries
    are treated like their plain counterparts.  When no recognizable main
    statement follows the CTE list the statement stays ``WITH``.

    This is the single place that decides the classification.
    """
    if main_keyword in _CTE_MAIN_TYPES:
        return STATEMENT_TYPES[main_keyword]
    return StatementType.WITH


# ---------------------------------------------------------------------------
# Position helpers
# ---------------------------------------------------------------------------


def start_position(tok: Token) -> Position:
    return Position(line=tok.line, col=tok.col)


def end_position(tok: Token) -> Position:
    """Position of the last character of *tok*."""
    newlines = tok.text.count("\n")
    if not newlines:
        return Position(line=tok.line, col=tok.col + max(len(tok.text), 1) - 1)
    tail = tok.text[tok.text.rfind("\n") + 1 :]
    return Position(line=tok.line + newlines, col=max(len(tail), 1))


def _name_text(tok: Token) -> str:
    """Object-name text of a token: keywords keep their written case."""
    return tok.text if tok.kind is TokenKind.KEYWORD else tok.value


def _is_alias_token(tok: Token | None) -> bool:
    if tok is None:
        return False
    if tok.kind is TokenKind.QUOTED_IDENTIFIER:
        return True
    return tok.kind is TokenKind.IDENTIFIER and tok.value.upper() not in NON_ALIAS_WORDS


def clause_positions(tokens: Sequence[Token]) -> list[ClausePosition]:
    """Spans of the top-level clauses of a statement, in source order."""
    spans: list[ClausePosition] = []
    current: tuple[str, Token] | None = None
    depth = 0
    case_depth = 0

    def close(last: int) -> None:
        if current is not None and last >= 0:
            spans.append(
                ClausePosition(
                    clause=current[0],
                    start=start_position(current[1]),
                    end=end_position(tokens[last]),
                )
            )

    for idx, tok in enumerate(tokens):
        if tok.is_punct("("):
            depth += 1
        elif tok.is_punct(")"):
            depth = max(0, depth - 1)
        elif depth == 0 and tok.kind is TokenKind.KEYWORD:
            if tok.value == "CASE":
                case_depth += 1
            elif tok.value == "END" and case_depth:
                case_depth -= 1
            elif tok.value in CLAUSE_KEYWORDS and not case_depth:
                second = CLAUSE_KEYWORDS[tok.value]
                name = tok.value
                if second is not None:
                    nxt = tokens[idx + 1] if idx + 1 < len(tokens) else None
                    if nxt is None or not nxt.is_keyword(second):
                        continue
                    name = f"{tok.value} {second}"
                close(idx - 1)
                current = (name, tok)
    close(len(tokens) - 1)
    return spans


# ---------------------------------------------------------------------------
# Walker
# ---------------------------------------------------------------------------


class _Walker:
    """Single-statement walker.  One instance per :func:`walk` call."""

    def __init__(self, tokens: tuple[Token, ...], max_depth: int) -> None:
        self._tokens = tokens
        self._max_depth = max_depth
        self._match = self._match_parens(tokens)
        self._table_var_indices: set[int] = set()
        self._leader = tokens[0].value if tokens and tokens[0].kind is TokenKind.KEYWORD else ""
        self._depth_warned = False
        self._after_output = False
        self._cte_main_keyword: str | None = None
        self._pending_target: TableReference | None = None
        self.temp_table_name: str | None = None
        self.insert_columns: list[str] | None = None
        self.exec_procedure: TableReference | None = None
        self.ddl_object: DdlObject | None = None
        self._handlers = {
            "FROM": self._on_from,
            "JOIN": self._on_join,
            "APPLY": self._on_apply,
            "USING": self._on_using,
            "INTO": self._on_into,
            "UPDATE": self._on_update,
            "DELETE": self._on_delete,
            "INSERT": self._on_insert,
            "MERGE": self._on_merge,
            "TRUNCATE": self._on_truncate,
            "CREATE": self._on_ddl,
            "ALTER": self._on_ddl,
            "DROP": self._on_ddl,
            "EXEC": self._on_exec,
            "EXECUTE": self._on_exec,
            "WITH": self._on_with,
            "OUTPUT": self._on_output,
        }

    @staticmethod
    def _match_parens(tokens: Sequence[Token]) -> dict[int, int]:
        matches: dict[int, int] = {}
        stack: list[int] = []
        for idx, tok in enumerate(tokens):
            if tok.is_punct("("):
                stack.append(idx)
            elif tok.is_punct(")"):
                if stack:
                    matches[stack.pop()] = idx
                else:
                    logger.debug("Ignoring unmatched ')' at line %d col %d", tok.line, tok.col)
        if stack:
            logger.debug("%d unterminated '(' closed at end of statement", len(stack))
        return matches

    # -- entry --------------------------------------------------------------

    def run(self, enclosing_ctes: Iterable[str]) -> WalkResult:
        scope = _Scope(cte_names=tuple(name.lower() for name in enclosing_ctes))
        end = len(self._tokens)
        self._walk_range(0, end, scope, 0)
        return WalkResult(
            statement_type=self._statement_type(),
            tables=self._with_pending_target(scope.tables),
            ctes=scope.ctes,
            subqueries=scope.subqueries,
            parameters=self._parameters(0, end),
            temp_table_name=self.temp_table_name,
            insert_columns=self.insert_columns,
            exec_procedure=self.exec_procedure,
            ddl_object=self.ddl_object,
            clause_positions=clause_positions(self._tokens),
        )

    def _statement_type(self) -> StatementType:
        if not self._leader:
            return StatementType.OTHER
        if self._leader == "WITH":
            return classify_cte_statement(self._cte_main_keyword)
        return STATEMENT_TYPES.get(self._leader, StatementType.OTHER)

    # -- token access -------------------------------------------------------

    def _at(self, idx: int, end: int) -> Token | None:
        return self._tokens[idx] if 0 <= idx < end else None

    def _close_of(self, open_idx: int, end: int) -> int | None:
        """Index of the ``)`` matching ``(`` at *open_idx*, if inside the range."""
        close = self._match.get(open_idx)
        if close is None or close >= end:
            return None
        return close

    def _skip_group(self, open_idx: int, end: int) -> int:
        """Index just past the parenthesis group opening at *open_idx*."""
        close = self._close_of(open_idx, end)
        return end if close is None else close + 1

    def _unwrap(self, open_idx: int, end: int) -> int:
        """Innermost group that alone fills the group at *open_idx*, as in ``((SELECT ...))``."""
        close = self._close_of(open_idx, end)
        while close is not None and (inner := self._at(open_idx + 1, end)) is not None and inner.is_punct("("):
            if self._close_of(open_idx + 1, end) != close - 1:
                break
            open_idx, close = open_idx + 1, close - 1
        return open_idx

    def _opens_query(self, j: int, end: int) -> bool:
        """True if the tokens at *j*, past any run of ``(``, start a query."""
        while (tok := self._at(j, end)) is not None and tok.is_punct("("):
            j += 1
        return tok is not None and tok.is_keyword(*QUERY_OPENERS)

    def _skip_top(self, j: int, end: int) -> int:
        """Skip ``TOP (n) [PERCENT]`` / ``TOP n``."""
        tok = self._at(j, end)
        if tok is None or not tok.is_keyword("TOP"):
            return j
        j += 1
        nxt = self._at(j, end)
        if nxt is not None and nxt.is_punct("("):
            j = self._skip_group(j, end)
        elif nxt is not None:
            j += 1
        if (pct := self._at(j, end)) is not None and pct.is_keyword("PERCENT"):
            j += 1
        return j

    def _depth_exceeded(self, depth: int, tok: Token) -> bool:
        if depth <= self._max_depth:
            return False
        if not self._depth_warned:
            logger.warning(
                "Nesting depth limit %d reached at line %d col %d; deeper scopes skipped",
                self._max_depth,
                tok.line,
                tok.col,
            )
            self._depth_warned = True
        return True

    # -- main scan ----------------------------------------------------------

    def _walk_range(self, start: int, end: int, scope: _Scope, depth: int, expression: bool = False) -> None:
        clause: str | None = _SUBQUERY_CLAUSES.get(self._leader)
        i = start
        while i < end:
            tok = self._tokens[i]
            if tok.is_punct("("):
                i = self._parenthesized(i, end, scope, depth, clause)
                continue
            if tok.kind is not TokenKind.KEYWORD or expression:
                i += 1
                continue
            word = tok.value
            clause = _SUBQUERY_CLAUSES.get(word, clause)
            handler = self._handlers.get(word)
            if handler is None or self._leader in _PRIVILEGE_STATEMENTS:
                i += 1
                continue
            i = max(handler(i, end, scope, depth), i + 1)

    def _parenthesized(self, i: int, end: int, scope: _Scope, depth: int, clause: str | None) -> int:
        """Handle a ``(`` met outside a table-source position."""
        after = self._skip_group(i, end)
        if self._opens_query(i + 1, end):
            inner = self._unwrap(i, end)
            sub = self._subquery(inner, end, scope, depth + inner - i, clause)
            if sub is not None:
                scope.subqueries.append(sub)
            return after
        if not self._depth_exceeded(depth + 1, self._tokens[i]):
            close = self._close_of(i, end)
            self._walk_range(i + 1, end if close is None else close, scope, depth + 1, expression=True)
        return after

    def _subquery(
        self,
        i: int,
        end: int,
        scope: _Scope,
        depth: int,
        clause: str | None,
        alias: str | None = None,
        expression: bool = False,
    ) -> Subquery | None:
        """Walk the query in the parenthesis group at *i* into a Subquery."""
        if self._depth_exceeded(depth + 1, self._tokens[i]):
            return None
        close = self._close_of(i, end)
        inner_end = end if close is None else close
        child = scope.child()
        self._walk_range(i + 1, inner_end, child, depth + 1, expression=expression)
        last = self._tokens[close] if close is not None else self._tokens[max(inner_end - 1, i)]
        return Subquery(
            alias=alias,
            tables=child.tables,
            subqueries=child.subqueries,
            parameters=self._parameters(i + 1, inner_end),
            clause=clause,
            start_pos=start_position(self._tokens[i]),
            end_pos=end_position(last),
        )

    # -- names and aliases --------------------------------------------------

    def _read_name(self, j: int, end: int) -> tuple[list[str], Token, int] | None:
        """Read a dotted name starting at *j*.

        Returns the parts (empty strings for skipped parts as in ``db..t``),
        the first token and the index after the name.
        """
        first = self._at(j, end)
        if first is None or not first.is_name:
            return None
        parts = [first.value]
        j += 1
        while (dot := self._at(j, end)) is not None and dot.is_punct("."):
            nxt = self._at(j + 1, end)
            if nxt is not None and nxt.is_punct("."):
                parts.append("")
                j += 1
                continue
            if nxt is None or not (nxt.is_name or nxt.kind is TokenKind.KEYWORD):
                parts.append("")
                j += 1
                break
            parts.append(_name_text(nxt))
            j += 2
        return parts, first, j

    def _make_reference(self, parts: list[str], first: Token, scope: _Scope, index: int) -> TableReference | None:
        parts = parts[-4:]
        name = parts[-1]
        if not name:
            return None
        qualifiers = [p or None for p in parts[:-1]]
        server, database, schema = ([None] * (3 - len(qualifiers)) + qualifiers)[-3:]
        is_temp = name.startswith("#")
        is_table_variable = first.kind is TokenKind.VARIABLE and len(parts) == 1
        if is_table_variable:
            self._table_var_indices.add(index)
        is_cte = (
            not is_temp
            and not is_table_variable
            and len(parts) == 1
            and name.lower() in scope.cte_names
        )
        return TableReference(
            name=name,
            schema=schema,
            database=database,
            server=server,
            is_temp=is_temp,
            is_global_temp=is_temp and name.startswith("##"),
            is_table_variable=is_table_variable,
            is_cte=is_cte,
            position=start_position(first),
        )

    def _read_alias(self, j: int, end: int) -> tuple[str | None, int]:
        tok = self._at(j, end)
        if tok is not None and tok.is_keyword("AS"):
            nxt = self._at(j + 1, end)
            if nxt is not None and (nxt.kind in (TokenKind.IDENTIFIER, TokenKind.QUOTED_IDENTIFIER)):
                return nxt.value, j + 2
            return None, j + 1
        if tok is not None and _is_alias_token(tok):
            return tok.value, j + 1
        return None, j

    def _skip_hints(self, j: int, end: int) -> int:
        """Skip ``WITH (hint, ...)``, old-style ``(NOLOCK)`` and TABLESAMPLE."""
        while True:
            tok = self._at(j, end)
            if tok is None:
                return j
            nxt = self._at(j + 1, end)
            if tok.is_keyword("WITH") and nxt is not None and nxt.is_punct("("):
                j = self._skip_group(j + 1, end)
            elif tok.is_punct("(") and self._is_hint_group(j, end):
                j = self._skip_group(j, end)
            elif tok.is_keyword("TABLESAMPLE"):
                j += 1
                while (t := self._at(j, end)) is not None and not t.is_punct("("):
                    j += 1
                j = self._skip_group(j, end) if self._at(j, end) is not None else j
            else:
                return j

    def _is_hint_group(self, open_idx: int, end: int) -> bool:
        first = self._at(open_idx + 1, end)
        return first is not None and first.value.upper() in TABLE_HINTS

    # -- table sources ------------------------------------------------------

    def _table_source(self, j: int, end: int, scope: _Scope, depth: int, clause: str) -> int:
        """Read one table source (table, derived table, TVF) starting at *j*."""
        tok = self._at(j, end)
        if tok is None:
            return j

        if tok.is_punct("("):
            after = self._skip_group(j, end)
            alias, after_alias = self._read_alias(after, end)
            inner = self._unwrap(j, end)
            first = self._at(inner + 1, end)
            if self._opens_query(inner + 1, end) or (first is not None and first.is_keyword("VALUES")):
                # Derived table, or a VALUES table constructor whose rows are expressions.
                values = first is not None and first.is_keyword("VALUES")
                sub = self._subquery(inner, end, scope, depth + inner - j, clause, alias=alias, expression=values)
                if sub is not None:
                    scope.subqueries.append(sub)
            elif not self._depth_exceeded(depth + 1, tok):
                close = self._close_of(j, end)
                inner_end = end if close is None else close
                # Parenthesized join: its first operand is a table source too.
                k = self._table_source(j + 1, inner_end, scope, depth + 1, clause)
                self._walk_range(k, inner_end, scope, depth + 1)
            if alias is not None and (col_list := self._at(after_alias, end)) is not None and col_list.is_punct("("):
                after_alias = self._skip_group(after_alias, end)
            return after_alias

        named = self._read_name(j, end)
        if named is None:
            return j
        parts, first_tok, k = named

        nxt = self._at(k, end)
        if nxt is not None and nxt.is_punct("(") and not self._is_hint_group(k, end):
            # Table-valued function: no reference, only its alias is consumed.
            k = self._skip_group(k, end)
            fn_alias, k = self._read_alias(k, end)
            if fn_alias is not None and (cols := self._at(k, end)) is not None and cols.is_punct("("):
                k = self._skip_group(k, end)
            return k

        ref = self._make_reference(parts, first_tok, scope, j)
        k = self._skip_hints(k, end)
        alias, k = self._read_alias(k, end)
        k = self._skip_hints(k, end)
        if ref is not None:
            if alias is not None:
                ref = ref.model_copy(update={"alias": alias})
            self._add_table(scope, ref)
        return k

    def _table_list(self, j: int, end: int, scope: _Scope, depth: int, clause: str) -> int:
        j = self._table_source(j, end, scope, depth, clause)
        while (comma := self._at(j, end)) is not None and comma.is_punct(","):
            j = self._table_source(j + 1, end, scope, depth, clause)
        return j

    def _add_table(self, scope: _Scope, ref: TableReference) -> None:
        if ref.is_cte and not scope.keep_cte_refs:
            return
        scope.tables.append(ref)

    def _target(self, j: int, end: int, scope: _Scope) -> tuple[TableReference | None, int]:
        """Read a DML target name plus hints, without registering it."""
        named = self._read_name(j, end)
        if named is None:
            return None, j
        parts, first_tok, k = named
        ref = self._make_reference(parts, first_tok, scope, j)
        return ref, self._skip_hints(k, end)

    # -- anchors ------------------------------------------------------------

    def _on_from(self, i: int, end: int, scope: _Scope, depth: int) -> int:
        if self._leader == "FETCH":
            return i + 2
        prev = self._at(i - 1, end)
        if prev is not None and prev.is_keyword("DISTINCT"):
            # ``IS [NOT] DISTINCT FROM`` comparison.
            return i + 1
        return self._table_list(i + 1, end, scope, depth, "FROM")

    def _on_join(self, i: int, end: int, scope: _Scope, depth: int) -> int:
        return self._table_source(i + 1, end, scope, depth, "JOIN")

    def _on_using(self, i: int, end: int, scope: _Scope, depth: int) -> int:
        return self._table_source(i + 1, end, scope, depth, "USING")

    def _on_apply(self, i: int, end: int, scope: _Scope, depth: int) -> int:
        j = i + 1
        tok = self._at(j, end)
        if tok is None:
            return j
        if tok.is_punct("("):
            return self._table_source(j, end, scope, depth, "APPLY")
        named = self._read_name(j, end)
        if named is None:
            return j
        k = named[2]
        if (args := self._at(k, end)) is not None and args.is_punct("("):
            k = self._skip_group(k, end)
        _, k = self._read_alias(k, end)
        return k

    def _on_into(self, i: int, end: int, scope: _Scope, depth: int) -> int:
        j = i + 1
        if self._leader == "FETCH":
            return j
        if self._after_output:
            self._after_output = False
            _, k = self._target(j, end, scope)
            if (cols := self._at(k, end)) is not None and cols.is_punct("("):
                k = self._skip_group(k, end)
            return k
        ref, k = self._target(j, end, scope)
        if ref is not None and depth == 0 and self.temp_table_name is None:
            self.temp_table_name = ref.qualified_name
        return k

    def _on_output(self, i: int, end: int, scope: _Scope, depth: int) -> int:
        self._after_output = True
        return i + 1

    def _on_update(self, i: int, end: int, scope: _Scope, depth: int) -> int:
        j = self._skip_top(i + 1, end)
        ref, k = self._target(j, end, scope)
        if ref is not None and depth == 0 and self._pending_target is None:
            self._pending_target = ref
        return k

    def _on_delete(self, i: int, end: int, scope: _Scope, depth: int) -> int:
        j = self._skip_top(i + 1, end)
        nxt = self._at(j, end)
        if nxt is not None and nxt.is_keyword("FROM"):
            return j
        ref, k = self._target(j, end, scope)
        if ref is not None and depth == 0 and self._pending_target is None:
            self._pending_target = ref
        return k

    def _on_insert(self, i: int, end: int, scope: _Scope, depth: int) -> int:
        j = self._skip_top(i + 1, end)
        if (into := self._at(j, end)) is not None and into.is_keyword("INTO"):
            j += 1
        ref, k = self._target(j, end, scope)
        if ref is None:
            return j
        self._add_table(scope, ref)
        cols = self._at(k, end)
        if cols is not None and cols.is_punct("("):
            first = self._at(k + 1, end)
            if first is not None and first.is_keyword(*QUERY_OPENERS):
                return k
            close = self._close_of(k, end)
            names = [
                t.value
                for t in self._tokens[k + 1 : end if close is None else close]
                if t.kind in (TokenKind.IDENTIFIER, TokenKind.QUOTED_IDENTIFIER)
            ]
            if depth == 0 and self.insert_columns is None:
                self.insert_columns = names
            k = self._skip_group(k, end)
        return k

    def _on_merge(self, i: int, end: int, scope: _Scope, depth: int) -> int:
        j = self._skip_top(i + 1, end)
        if (into := self._at(j, end)) is not None and into.is_keyword("INTO"):
            j += 1
        return self._table_source(j, end, scope, depth, "MERGE")

    def _on_truncate(self, i: int, end: int, scope: _Scope, depth: int) -> int:
        j = i + 1
        if (table := self._at(j, end)) is not None and table.is_keyword("TABLE"):
            j += 1
        ref, k = self._target(j, end, scope)
        if ref is not None:
            self._add_table(scope, ref)
        return k

    def _on_ddl(self, i: int, end: int, scope: _Scope, depth: int) -> int:
        verb = self._tokens[i].value
        j = i + 1
        if verb == "CREATE" and (o := self._at(j, end)) is not None and o.is_keyword("OR"):
            j += 2  # OR ALTER
        while (mod := self._at(j, end)) is not None and mod.value.upper() in (
            "UNIQUE",
            "CLUSTERED",
            "NONCLUSTERED",
            "COLUMNSTORE",
        ):
            j += 1
        kind_tok = self._at(j, end)
        if kind_tok is None or kind_tok.kind not in (TokenKind.KEYWORD, TokenKind.IDENTIFIER):
            return j
        object_type = DDL_OBJECT_TYPES.get(kind_tok.value.upper())
        if object_type is None:
            return j
        j += 1
        if (if_tok := self._at(j, end)) is not None and if_tok.is_keyword("IF"):
            j += 2 if (ex := self._at(j + 1, end)) is not None and ex.is_keyword("EXISTS") else 1

        first_name: TableReference | None = None
        while True:
            ref, k = self._target(j, end, scope)
            if ref is None:
                break
            first_name = first_name or ref
            if object_type == "TABLE":
                self._add_table(scope, ref)
            j = k
            comma = self._at(j, end)
            if verb != "DROP" or comma is None or not comma.is_punct(","):
                break
            j += 1

        if first_name is not None and depth == 0 and self.ddl_object is None:
            self.ddl_object = DdlObject(
                object_type=object_type,
                name=first_name.name,
                schema=first_name.schema_name,
                database=first_name.database,
            )
            if verb == "CREATE" and object_type == "TABLE" and first_name.is_temp:
                self.temp_table_name = self.temp_table_name or first_name.name

        if object_type in ("INDEX", "TRIGGER") and (on := self._at(j, end)) is not None and on.is_keyword("ON"):
            ref, j = self._target(j + 1, end, scope)
            if ref is not None:
                self._add_table(scope, ref)
        return j

    def _on_exec(self, i: int, end: int, scope: _Scope, depth: int) -> int:
        j = i + 1
        tok = self._at(j, end)
        if tok is not None and tok.kind is TokenKind.VARIABLE:
            eq = self._at(j + 1, end)
            if eq is None or not eq.is_punct("="):
                return j
            j += 2
        named = self._read_name(j, end)
        if named is None:
            return j
        parts, first_tok, k = named
        if first_tok.kind is TokenKind.VARIABLE:
            return j
        ref = self._make_reference(parts, first_tok, scope, j)
        if ref is not None and depth == 0 and self.exec_procedure is None:
            self.exec_procedure = ref
        return k

    def _on_with(self, i: int, end: int, scope: _Scope, depth: int) -> int:
        if not is_cte_start(self._tokens[:end], i):
            return i + 1
        j = self._cte_list(i + 1, end, scope, depth)
        if depth == 0 and i == 0:
            main = self._at(j, end)
            self._cte_main_keyword = main.value if main is not None and main.kind is TokenKind.KEYWORD else None
        return j

    def _cte_list(self, j: int, end: int, scope: _Scope, depth: int) -> int:
        """Walk ``name [ (cols) ] AS ( body ) [, ...]`` starting at *j*."""
        while True:
            name_tok = self._at(j, end)
            if name_tok is None or not name_tok.is_name:
                return j
            name = name_tok.value
            j += 1
            columns: list[str] | None = None
            if (cols := self._at(j, end)) is not None and cols.is_punct("("):
                close = self._close_of(j, end)
                columns = [
                    t.value
                    for t in self._tokens[j + 1 : end if close is None else close]
                    if t.kind in (TokenKind.IDENTIFIER, TokenKind.QUOTED_IDENTIFIER)
                ]
                j = self._skip_group(j, end)
            as_tok = self._at(j, end)
            open_tok = self._at(j + 1, end)
            if as_tok is None or not as_tok.is_keyword("AS") or open_tok is None or not open_tok.is_punct("("):
                return j
            body = j + 1
            visible = (*scope.cte_names, name.lower())
            child = scope.child(cte_names=visible, keep_cte_refs=False)
            close = self._close_of(body, end)
            inner_end = end if close is None else close
            if not self._depth_exceeded(depth + 1, open_tok):
                self._walk_range(body + 1, inner_end, child, depth + 1)
            last = self._tokens[close] if close is not None else self._tokens[max(inner_end - 1, body)]
            scope.ctes.append(
                CTE(
                    name=name,
                    columns=columns,
                    tables=child.tables,
                    subqueries=child.subqueries,
                    parameters=self._parameters(body + 1, inner_end),
                    start_pos=start_position(open_tok),
                    end_pos=end_position(last),
                )
            )
            scope.cte_names = visible
            j = self._skip_group(body, end)
            comma = self._at(j, end)
            if comma is None or not comma.is_punct(",") or not is_cte_start(self._tokens[:end], j):
                return j
            j += 1

    # -- post-processing ----------------------------------------------------

    def _with_pending_target(self, tables: list[TableReference]) -> list[TableReference]:
        """Fold an UPDATE/DELETE target into the table list.

        A target that names an alias or table already present in ``FROM``
        refers to that entry; otherwise it is the first table of the
        statement.
        """
        target = self._pending_target
        if target is None:
            return tables
        key = target.qualified_name.lower()
        for ref in tables:
            if (ref.alias and ref.alias.lower() == key) or ref.qualified_name.lower() == key or (
                target.schema_name is None and ref.name.lower() == key
            ):
                return tables
        return [target, *tables]

    def _parameters(self, start: int, end: int) -> list[Parameter]:
        """Distinct ``@x`` / ``@@x`` references in ``[start, end)``, first wins."""
        seen: dict[str, Parameter] = {}
        for idx in range(start, end):
            tok = self._tokens[idx]
            if tok.kind not in (TokenKind.VARIABLE, TokenKind.SYSTEM_VARIABLE):
                continue
            if idx in self._table_var_indices:
                continue
            key = tok.text.lower()
            if key in seen:
                continue
            is_system = tok.kind is TokenKind.SYSTEM_VARIABLE
            seen[key] = Parameter(
                name=tok.text[2:] if is_system else tok.text[1:],
                full_name=tok.text,
                is_system=is_system,
                position=start_position(tok),
            )
        return list(seen.values())


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def _unwrap_query(tokens: tuple[Token, ...]) -> tuple[Token, ...]:
    """Drop the parentheses around a query that leads its statement.

    A set operation with parenthesized branches, ``(SELECT ...) UNION
    (SELECT ...)``, reaches the walker one branch at a time, each still
    wrapped.
    """
    while tokens and tokens[0].is_punct("("):
        j = 0
        while j < len(tokens) and tokens[j].is_punct("("):
            j += 1
        if j == len(tokens) or not tokens[j].is_keyword(*QUERY_OPENERS):
            break
        depth = 0
        close = None
        for idx, tok in enumerate(tokens):
            if tok.is_punct("("):
                depth += 1
            elif tok.is_punct(")"):
                depth -= 1
                if depth == 0:
                    close = idx
                    break
        tokens = tokens[1:] if close is None else tokens[1:close] + tokens[close + 1 :]
    return tokens


def walk(
    tokens: Sequence[Token],
    enclosing_ctes: Iterable[str] = (),
    *,
    max_depth: int | None = None,
) -> WalkResult:
    """Extract the structural facts of one statement.

    Parameters
    ----------
    tokens:
        The statement's tokens with comments removed (one
        :class:`~chunk_engine.parser.segmenter.Segment`).
    enclosing_ctes:
        CTE names visible from an outer scope.  References to them are
        classified ``is_cte``.
    max_depth:
        Nesting limit for subqueries and CTE bodies; defaults to
        ``EngineSettings.max_nesting_depth``.

    Returns
    -------
    WalkResult
        Best-effort structure.  Malformed input yields partial results,
        never an exception.
    """
    toks = _unwrap_query(tuple(tokens))
    if not toks:
        return WalkResult(statement_type=StatementType.OTHER)
    if max_depth is None:
        max_depth = get_settings().max_nesting_depth
    return _Walker(toks, max_depth).run(enclosing_ctes)
