"""Tolerant T-SQL tokenizer.

Lexing is delegated to sqlglot's T-SQL tokenizer, which knows the
dialect's quoting rules (``[bracket]`` and ``"double"`` identifiers,
``N'...'`` strings, doubled-quote escapes, ``0x`` literals).  This module
adapts its output to :class:`Token` objects and adds what a script editor
needs on top:

* comments become ``COMMENT`` tokens (sqlglot attaches them to
  neighbouring tokens), recovered from the gaps between lexemes so every
  position stays exact;
* ``@``/``@@`` and ``#``/``##`` sigils are fused with the following name
  into variable and temp-table tokens;
* anything sqlglot refuses to lex (an unterminated string or quoted
  identifier) becomes one token running to the end of the input, so
  tokenization never fails;
* ``GO`` is a batch separator only when it is the first code token on its
  line and is followed by nothing but an optional repeat count and an
  optional line comment.
"""

from __future__ import annotations

import bisect
import logging
import re
from collections.abc import Iterator
from typing import NamedTuple

from sqlglot.dialects.tsql import TSQL
from sqlglot.errors import TokenError
from sqlglot.tokens import TokenType

from chunk_engine.models.token import Token, TokenKind
from chunk_engine.parser.keywords import KEYWORDS
from chunk_engine.telemetry.profiling import profile_operation

logger = logging.getLogger(__name__)


class _ScriptTokenizer(TSQL.Tokenizer):
    """T-SQL tokenizer tuned for whole scripts.

    Commands (``GO``, ``PRINT``, ``END`` ...) stay ordinary words instead
    of swallowing the rest of their statement as one string, and block
    comments do not nest.
    """

    COMMANDS: set[TokenType] = set()
    NESTED_COMMENTS = False


class _Piece(NamedTuple):
    """A lexeme before positions are resolved.

    ``kind`` is ``None`` for bare words, which are split into keywords and
    identifiers only once sigils have been fused.
    """

    kind: TokenKind | None
    start: int
    end: int
    value: str


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

# Whitespace and comments between two sqlglot lexemes.
_GAP_RE = re.compile(
    r"(?P<ws>\s+)|(?P<comment>--[^\r\n]*|/\*(?:.*?\*/|.*\Z))|(?P<other>\S+)",
    re.DOTALL,
)

_RUN_RE = re.compile(r"\S+")
_WORD_START_RE = re.compile(r"[^\W\d]|\$\w")
_NEWLINE_RE = re.compile(r"\n")

# What may follow ``GO`` on its line: an optional count and line comment.
_GO_TAIL_RE = re.compile(r"[ \t]*(\d+)?[ \t]*(?:--[^\n]*)?(?=\r?\n|\Z)")

_OPERATORS = frozenset(
    {"<>", "!=", "!<", "!>", ">=", "<=", "::", "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "||"}
)
_SINGLE_CHARS = frozenset(_ScriptTokenizer.SINGLE_TOKENS)
_STRING_TYPES = frozenset({TokenType.STRING, TokenType.NATIONAL_STRING})
_NUMBER_TYPES = frozenset({TokenType.NUMBER, TokenType.HEX_STRING})

_SIGIL_KINDS: dict[str, TokenKind] = {
    "@": TokenKind.VARIABLE,
    "@@": TokenKind.SYSTEM_VARIABLE,
    "#": TokenKind.TEMP_TABLE,
    "##": TokenKind.TEMP_TABLE,
}


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


@profile_operation("sql.tokenize")
def tokenize(text: str) -> list[Token]:
    """Split *text* into tokens.

    Parameters
    ----------
    text:
        Arbitrary T-SQL script text.

    Returns
    -------
    list[Token]
        Every lexeme in source order, comments included.  Whitespace is
        not emitted.
    """
    if not isinstance(text, str):
        raise TypeError(f"tokenize() expects str, got {type(text).__name__}")
    if not text:
        return []

    # sqlglot does not treat a byte order mark as whitespace.
    source = text.replace("\ufeff", " ")
    code = _fuse(_scan(text, source), text)

    line_starts = [0] + [m.end() for m in _NEWLINE_RE.finditer(text)]
    tokens: list[Token] = []
    last_code_line = 0
    skip_until = -1

    for piece in _with_comments(code, text, source):
        if piece.start < skip_until:
            continue
        line = bisect.bisect_right(line_starts, piece.start)
        col = piece.start - line_starts[line - 1] + 1

        if piece.kind is None and piece.value.upper() == "GO" and line > last_code_line:
            go_tail = _GO_TAIL_RE.match(text, piece.end)
            if go_tail is not None:
                count_text = go_tail.group(1)
                end = go_tail.end(1) if count_text else piece.end
                tokens.append(
                    Token(
                        kind=TokenKind.BATCH_SEPARATOR,
                        text=text[piece.start : end],
                        value="GO",
                        line=line,
                        col=col,
                        offset=piece.start,
                        repeat_count=int(count_text) if count_text else 1,
                    )
                )
                skip_until = end
                last_code_line = line
                continue

        kind, value = piece.kind, piece.value
        if kind is None:
            upper = value.upper()
            kind, value = (TokenKind.KEYWORD, upper) if upper in KEYWORDS else (TokenKind.IDENTIFIER, value)
        raw = text[piece.start : piece.end]
        tokens.append(Token(kind, raw, value, line, col, piece.start))
        if kind is not TokenKind.COMMENT:
            last_code_line = line + raw.count("\n")

    return tokens


# ---------------------------------------------------------------------------
# sqlglot adaptation
# ---------------------------------------------------------------------------


def _scan(text: str, source: str) -> list[_Piece]:
    """Run sqlglot over *source*, resuming after anything it cannot lex."""
    tokenizer = _ScriptTokenizer(dialect="tsql")
    pieces: list[_Piece] = []
    base = 0

    while base < len(source):
        try:
            produced = tokenizer.tokenize(source[base:])
            failed = False
        except TokenError:
            produced = list(tokenizer.tokens)
            failed = True

        for tok in produced:
            pieces.extend(_split(text, base + tok.start, base + tok.end + 1, tok.token_type, tok.text))
        if not failed:
            break

        start = _skip_gap(source, base + produced[-1].end + 1 if produced else base)
        if start >= len(source):
            break
        tail = _unterminated(text, start)
        if tail is not None:
            pieces.append(tail)
            break
        # Nothing recognisable starts here; step over one character.
        pieces.append(_Piece(TokenKind.PUNCTUATION, start, start + 1, text[start]))
        base = start + 1

    return pieces


def _split(text: str, start: int, end: int, token_type: TokenType, token_text: str) -> Iterator[_Piece]:
    raw = text[start:end]
    if token_type in _STRING_TYPES:
        yield _Piece(TokenKind.STRING, start, end, raw)
        return
    if token_type in _NUMBER_TYPES or raw[:2].lower() == "0x":
        yield _Piece(TokenKind.NUMBER, start, end, raw)
        return
    if token_type == TokenType.IDENTIFIER and raw[:1] in ("[", '"'):
        yield _Piece(TokenKind.QUOTED_IDENTIFIER, start, end, token_text)
        return

    # Multi-word keywords ("ORDER BY") and operator keywords come back as
    # one sqlglot token; split them into words and known operators.
    for run in _RUN_RE.finditer(raw):
        piece = run.group()
        offset = start + run.start()
        if _WORD_START_RE.match(piece):
            yield _Piece(None, offset, offset + len(piece), piece)
        elif piece in _OPERATORS or not set(piece) <= _SINGLE_CHARS:
            yield _Piece(TokenKind.PUNCTUATION, offset, offset + len(piece), piece)
        else:
            for i, char in enumerate(piece):
                yield _Piece(TokenKind.PUNCTUATION, offset + i, offset + i + 1, char)


def _fuse(pieces: list[_Piece], text: str) -> list[_Piece]:
    """Join sigils with their names, ``.5`` numbers and split operators."""
    fused: list[_Piece] = []
    i = 0
    count = len(pieces)

    while i < count:
        piece = pieces[i]
        if piece.kind is TokenKind.PUNCTUATION:
            nxt = pieces[i + 1] if i + 1 < count else None
            adjacent = nxt is not None and nxt.start == piece.end

            if piece.value in ("@", "#") and adjacent:
                j = i + 1
                sigil = piece.value
                if pieces[j].kind is TokenKind.PUNCTUATION and pieces[j].value == piece.value:
                    sigil += piece.value
                    j += 1
                if j < count and pieces[j].kind is None and pieces[j].start == pieces[j - 1].end:
                    fused.append(
                        _Piece(_SIGIL_KINDS[sigil], piece.start, pieces[j].end, text[piece.start : pieces[j].end])
                    )
                    i = j + 1
                    continue

            if adjacent and nxt is not None:
                if piece.value == "." and nxt.kind is TokenKind.NUMBER and not _continues_name(fused, piece):
                    fused.append(_Piece(TokenKind.NUMBER, piece.start, nxt.end, text[piece.start : nxt.end]))
                    i += 2
                    continue
                if nxt.kind is TokenKind.PUNCTUATION and piece.value + nxt.value in _OPERATORS:
                    fused.append(_Piece(TokenKind.PUNCTUATION, piece.start, nxt.end, piece.value + nxt.value))
                    i += 2
                    continue

        fused.append(piece)
        i += 1

    return fused


def _continues_name(fused: list[_Piece], dot: _Piece) -> bool:
    if not fused or fused[-1].end != dot.start:
        return False
    return fused[-1].kind is not TokenKind.PUNCTUATION or fused[-1].value in (")", "]")


def _with_comments(code: list[_Piece], text: str, source: str) -> Iterator[_Piece]:
    """Interleave *code* with the comments found in the gaps around it."""
    pos = 0
    for piece in code:
        yield from _gap(text, source, pos, piece.start)
        yield piece
        pos = piece.end
    yield from _gap(text, source, pos, len(source))


def _gap(text: str, source: str, start: int, end: int) -> Iterator[_Piece]:
    for match in _GAP_RE.finditer(source, start, end):
        group = match.lastgroup
        if group == "ws":
            continue
        raw = text[match.start() : match.end()]
        if group == "comment":
            if raw.startswith("/*") and not raw.endswith("*/"):
                logger.debug("Unterminated block comment at offset %d", match.start())
            yield _Piece(TokenKind.COMMENT, match.start(), match.end(), raw)
        else:
            yield _Piece(TokenKind.PUNCTUATION, match.start(), match.end(), raw)


def _skip_gap(source: str, pos: int) -> int:
    """Return the first offset at or after *pos* that is not whitespace or a comment."""
    for match in _GAP_RE.finditer(source, pos):
        if match.lastgroup == "other":
            return match.start()
    return len(source)


def _unterminated(text: str, start: int) -> _Piece | None:
    """Build the run-to-end token for a literal sqlglot could not close."""
    raw = text[start:]
    head = raw[:2].upper()
    if raw[0] == "'" or head in ("N'", 'N"'):
        kind, value, what = TokenKind.STRING, raw, "string literal"
    elif raw[0] == "[":
        kind, value, what = TokenKind.QUOTED_IDENTIFIER, raw[1:].replace("]]", "]"), "bracket identifier"
    elif raw[0] == '"':
        kind, value, what = TokenKind.QUOTED_IDENTIFIER, raw[1:].replace('""', '"'), "quoted identifier"
    else:
        return None
    logger.debug("Unterminated %s at offset %d", what, start)
    return _Piece(kind, start, len(text), value)
