"""Batch and statement segmentation.

Groups the lexer's token stream into per-statement token runs.  A new
statement begins at a ``;``, at a ``GO`` line, at a top-level set operator
(``UNION`` / ``INTERSECT`` / ``EXCEPT``), or at a statement-leading
keyword that appears outside parentheses.  A handful of shapes continue
the current statement even though they contain a statement keyword
(``INSERT ... SELECT``, ``WITH <ctes> SELECT``, ``UPDATE ... SET``,
``MERGE ... THEN UPDATE``, cursor ``FOR SELECT``, ``CASE ... ELSE ... END``
and so on); :func:`_continues_statement` decides those.

Comment tokens are dropped here.  The set-operator keywords themselves are
not part of either neighbouring statement.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from chunk_engine.models.token import Token, TokenKind
from chunk_engine.parser.keywords import (
    DDL_OBJECT_TYPES,
    SET_OPERATORS,
    STATEMENT_STARTERS,
)
from chunk_engine.telemetry.profiling import profile_operation

logger = logging.getLogger(__name__)

# Keywords that may follow ``WITH <ctes>`` as the statement proper.
_CTE_MAIN_KEYWORDS = frozenset({"SELECT", "INSERT", "UPDATE", "DELETE", "MERGE"})
_INSERT_BODY_KEYWORDS = frozenset({"SELECT", "EXEC", "EXECUTE", "VALUES", "DEFAULT"})
_DML_ACTIONS = frozenset({"INSERT", "UPDATE", "DELETE"})
_PRIVILEGE_STATEMENTS = frozenset({"GRANT", "REVOKE", "DENY"})


@dataclass(frozen=True, slots=True)
class Segment:
    """One statement's tokens (comments removed) and its batch index."""

    batch_index: int
    tokens: tuple[Token, ...]


@dataclass(slots=True)
class _StatementState:
    """Facts about the statement being accumulated, reset at each boundary."""

    leader: str | None = None
    main: str | None = None
    awaiting_cte_main: bool = False
    awaiting_insert_body: bool = False
    update_set_seen: bool = False
    privilege_open: bool = False
    case_depth: int = 0
    tokens: list[Token] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Shape helpers
# ---------------------------------------------------------------------------


def is_cte_start(tokens: Sequence[Token], index: int) -> bool:
    """Return True if ``tokens[index]`` is a ``WITH`` opening a CTE list.

    The shape is ``WITH name [ ( col, ... ) ] AS (``.  Table hints
    (``WITH (NOLOCK)``) and options (``WITH CHECK``, ``WITH SCHEMABINDING``)
    do not match.
    """
    i = index + 1
    if i >= len(tokens) or not tokens[i].is_name:
        return False
    i += 1
    if i < len(tokens) and tokens[i].is_punct("("):
        i = _skip_parens(tokens, i)
    return i + 1 < len(tokens) and tokens[i].is_keyword("AS") and tokens[i + 1].is_punct("(")


def _skip_parens(tokens: Sequence[Token], index: int) -> int:
    """Return the index just past the parenthesis group opening at *index*."""
    depth = 0
    for i in range(index, len(tokens)):
        if tokens[i].is_punct("("):
            depth += 1
        elif tokens[i].is_punct(")"):
            depth -= 1
            if depth == 0:
                return i + 1
    return len(tokens)


def _continues_statement(
    word: str,
    state: _StatementState,
    prev: Token | None,
    tokens: Sequence[Token],
    index: int,
) -> bool:
    """Decide whether a statement keyword at depth 0 continues the statement."""
    prev_word = prev.value.upper() if prev is not None and prev.kind is not TokenKind.STRING else ""
    nxt = tokens[index + 1] if index + 1 < len(tokens) else None
    next_word = nxt.value.upper() if nxt is not None else ""

    if word == "WITH":
        return not is_cte_start(tokens, index)
    if state.case_depth and word in ("ELSE", "END"):
        return True
    if state.awaiting_cte_main and word in _CTE_MAIN_KEYWORDS:
        return True
    if state.awaiting_insert_body and word in ("SELECT", "EXEC", "EXECUTE"):
        return True
    if word == "SET" and state.main == "UPDATE" and not state.update_set_seen:
        return True
    if state.main == "MERGE" and word in ("UPDATE", "DELETE", "INSERT", "SET"):
        return True
    if state.leader in _PRIVILEGE_STATEMENTS and state.privilege_open:
        return True
    if word == "ALTER" and prev_word == "OR" and state.leader == "CREATE":
        return True
    if state.leader == "ALTER":
        if word == "SET" or (word in ("ALTER", "DROP") and next_word in ("COLUMN", "CONSTRAINT")):
            return True
    if prev_word == "FOR" and word in ("SELECT", "UPDATE"):
        return True
    if prev_word in ("AFTER", "FOR", "OF", ",", "ON") and word in _DML_ACTIONS:
        return True
    if word == "SET" and prev_word == "UPDATE":
        return True
    if word in ("EXEC", "EXECUTE") and prev_word == "WITH":
        return True
    if word == "IF" and (prev_word in DDL_OBJECT_TYPES or prev_word in ("COLUMN", "CONSTRAINT")):
        return True
    if word == "FETCH" and prev_word in ("ROW", "ROWS"):
        return True
    return False


def _observe(word: str, state: _StatementState) -> None:
    """Update *state* after a depth-0 keyword has been added to the statement."""
    if state.leader is None:
        state.leader = state.main = word
        state.awaiting_cte_main = word == "WITH"
        state.awaiting_insert_body = word == "INSERT"
        state.privilege_open = word in _PRIVILEGE_STATEMENTS
    elif state.awaiting_cte_main and word in _CTE_MAIN_KEYWORDS:
        state.awaiting_cte_main = False
        state.main = word
        state.awaiting_insert_body = word == "INSERT"
    elif state.awaiting_insert_body and word in _INSERT_BODY_KEYWORDS:
        state.awaiting_insert_body = False
    elif word == "SET" and state.main == "UPDATE":
        state.update_set_seen = True
    elif state.privilege_open and word in ("TO", "FROM"):
        state.privilege_open = False

    if word == "CASE":
        state.case_depth += 1
    elif word == "END" and state.case_depth:
        state.case_depth -= 1


# ---------------------------------------------------------------------------
# Segmentation
# ---------------------------------------------------------------------------


@profile_operation("sql.segment")
def segment(tokens: Sequence[Token]) -> list[Segment]:
    """Split a token stream into statements.

    Parameters
    ----------
    tokens:
        Output of :func:`chunk_engine.parser.lexer.tokenize`.

    Returns
    -------
    list[Segment]
        Non-empty statements in source order.  Empty, whitespace-only and
        comment-only input produce an empty list.
    """
    code = [t for t in tokens if t.kind is not TokenKind.COMMENT]
    segments: list[Segment] = []
    batch_index = 0
    depth = 0
    state = _StatementState()

    def flush() -> None:
        nonlocal state
        if state.tokens:
            segments.append(Segment(batch_index, tuple(state.tokens)))
        state = _StatementState()

    i = 0
    while i < len(code):
        tok = code[i]

        if tok.kind is TokenKind.BATCH_SEPARATOR:
            if depth:
                logger.debug("Batch separator at line %d closes %d open parenthesis", tok.line, depth)
            flush()
            batch_index += 1
            depth = 0
            i += 1
            continue

        if tok.is_punct(";"):
            flush()
            depth = 0
            i += 1
            continue

        if tok.is_punct("("):
            depth += 1
        elif tok.is_punct(")"):
            if depth == 0:
                logger.debug("Unmatched ')' at line %d col %d ignored", tok.line, tok.col)
            depth = max(0, depth - 1)
        elif depth == 0 and tok.kind is TokenKind.KEYWORD:
            word = tok.value
            if word in SET_OPERATORS:
                flush()
                i += 1
                while i < len(code) and code[i].is_keyword("ALL", "DISTINCT"):
                    i += 1
                continue
            if (
                word in STATEMENT_STARTERS
                and state.tokens
                and not _continues_statement(word, state, state.tokens[-1], code, i)
            ):
                flush()
            _observe(word, state)
        elif depth == 0 and not state.tokens:
            # Statement led by something other than a keyword.
            state.leader = state.main = ""

        state.tokens.append(tok)
        i += 1

    flush()
    return segments
