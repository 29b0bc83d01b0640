"""Lexical token types produced by :mod:`chunk_engine.parser.lexer`.

Tokens are created once per lexeme on the hot path, so they are plain
frozen dataclasses rather than pydantic models.  Everything downstream of
the lexer reads tokens and never mutates them.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Token kinds
# ---------------------------------------------------------------------------


class TokenKind(str, enum.Enum):
    """Lexical category of a token."""

    KEYWORD = "keyword"
    IDENTIFIER = "identifier"
    QUOTED_IDENTIFIER = "quoted_identifier"
    STRING = "string"
    NUMBER = "number"
    PUNCTUATION = "punctuation"
    COMMENT = "comment"
    VARIABLE = "variable"
    SYSTEM_VARIABLE = "system_variable"
    TEMP_TABLE = "temp_table"
    BATCH_SEPARATOR = "batch_separator"


# Kinds that can name an object (table, alias, column, CTE).
NAME_KINDS = frozenset(
    {
        TokenKind.IDENTIFIER,
        TokenKind.QUOTED_IDENTIFIER,
        TokenKind.TEMP_TABLE,
        TokenKind.VARIABLE,
    }
)


# ---------------------------------------------------------------------------
# Token
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Token:
    """A single lexeme with its source position.

    Attributes
    ----------
    kind:
        Lexical category.
    text:
        The raw source text, exactly as written.
    value:
        Normalized value: upper-cased for keywords, the unescaped inner
        content for bracket- or double-quoted identifiers, the raw text
        otherwise.
    line, col:
        1-based position of the first character.
    offset:
        0-based character offset of the first character.
    repeat_count:
        ``GO <n>`` repeat count on batch separators; 1 for everything else.
    """

    kind: TokenKind
    text: str
    value: str
    line: int
    col: int
    offset: int
    repeat_count: int = 1

    @property
    def upper(self) -> str:
        """Upper-cased value, used for case-insensitive keyword checks."""
        return self.value.upper()

    @property
    def end_offset(self) -> int:
        return self.offset + len(self.text)

    def is_keyword(self, *words: str) -> bool:
        """Return True if this is a keyword token matching any of *words*."""
        return self.kind is TokenKind.KEYWORD and self.value in words

    def is_punct(self, *symbols: str) -> bool:
        return self.kind is TokenKind.PUNCTUATION and self.text in symbols

    @property
    def is_name(self) -> bool:
        return self.kind in NAME_KINDS
