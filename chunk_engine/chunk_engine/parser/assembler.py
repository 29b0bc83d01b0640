"""Chunk assembly and the public extraction entry points.

:func:`extract` runs the whole pipeline::

    text -> tokenize -> segment -> walk (per statement) -> build_aliases -> assemble

and returns one :class:`Chunk` per statement in source order.
:func:`analyze` additionally tracks temp tables across the script.
"""

from __future__ import annotations

import logging

from chunk_engine.config import EngineSettings, get_settings
from chunk_engine.models.chunk import (
    Chunk,
    ScriptAnalysis,
    StatementType,
    TableReference,
    TempTableInfo,
)
from chunk_engine.models.token import TokenKind
from chunk_engine.parser.aliases import build_aliases
from chunk_engine.parser.lexer import tokenize
from chunk_engine.parser.segmenter import Segment, segment
from chunk_engine.parser.walker import WalkResult, end_position, start_position, walk
from chunk_engine.telemetry.profiling import profile_operation

logger = logging.getLogger(__name__)


def assemble(
    batch_index: int,
    result: WalkResult,
    aliases: dict[str, TableReference] | None = None,
    *,
    segment_: Segment | None = None,
) -> Chunk:
    """Combine walker output, aliases and position metadata into a Chunk.

    Parameters
    ----------
    batch_index:
        Number of batch separators before the statement.
    result:
        Walker output for the statement.
    aliases:
        Alias map from :func:`build_aliases`; built from *result* when
        omitted.
    segment_:
        The statement's segment, used for its start and end positions.
    """
    if aliases is None:
        aliases = build_aliases(result.tables, result.ctes)
    start_pos = end_pos = None
    if segment_ is not None and segment_.tokens:
        start_pos = start_position(segment_.tokens[0])
        end_pos = end_position(segment_.tokens[-1])
    return Chunk(
        statement_type=result.statement_type,
        go_batch_index=batch_index,
        temp_table_name=result.temp_table_name,
        tables=result.tables,
        aliases=aliases,
        ctes=result.ctes,
        subqueries=result.subqueries,
        parameters=result.parameters,
        insert_columns=result.insert_columns,
        exec_procedure=result.exec_procedure,
        ddl_object=result.ddl_object,
        clause_positions=result.clause_positions,
        start_pos=start_pos,
        end_pos=end_pos,
    )


def _chunks_from_segments(segments: list[Segment], settings: EngineSettings) -> list[Chunk]:
    chunks: list[Chunk] = []
    for seg in segments:
        result = walk(seg.tokens, max_depth=settings.max_nesting_depth)
        chunks.append(
            assemble(
                seg.batch_index,
                result,
                build_aliases(result.tables, result.ctes),
                segment_=seg,
            )
        )
    return chunks


@profile_operation("sql.extract")
def extract(text: str, *, settings: EngineSettings | None = None) -> list[Chunk]:
    """Extract one structural summary per statement of *text*.

    Parameters
    ----------
    text:
        Arbitrary T-SQL script text, possibly malformed or incomplete.
    settings:
        Engine limits; defaults to the process-wide settings.

    Returns
    -------
    list[Chunk]
        Chunks in source order.  Empty, whitespace-only and comment-only
        input yield an empty list.  No input string raises.
    """
    settings = settings or get_settings()
    segments = segment(tokenize(text))
    chunks = _chunks_from_segments(segments, settings)
    logger.debug("Extracted %d chunk(s) from %d character(s)", len(chunks), len(text))
    return chunks


@profile_operation("sql.analyze")
def analyze(text: str, *, settings: EngineSettings | None = None) -> ScriptAnalysis:
    """Extract chunks and the script-wide temp-table registry.

    A temp table is registered by the first ``SELECT ... INTO #x`` or
    ``CREATE TABLE #x`` that creates it and removed by ``DROP TABLE #x``.
    """
    settings = settings or get_settings()
    tokens = tokenize(text)
    chunks = _chunks_from_segments(segment(tokens), settings)

    separators = sum(1 for t in tokens if t.kind is TokenKind.BATCH_SEPARATOR)
    has_code = any(t.kind not in (TokenKind.COMMENT, TokenKind.BATCH_SEPARATOR) for t in tokens)
    batch_count = separators + 1 if has_code else 0

    temp_tables: dict[str, TempTableInfo] = {}
    for chunk in chunks:
        if chunk.statement_type is StatementType.DROP:
            for ref in chunk.tables:
                if ref.is_temp:
                    temp_tables.pop(ref.name.lower(), None)
            continue
        name = chunk.temp_table_name
        if not name or not name.startswith("#"):
            continue
        key = name.lower()
        if key not in temp_tables:
            temp_tables[key] = TempTableInfo(
                name=name,
                created_in_batch=chunk.go_batch_index,
                is_global=name.startswith("##"),
                position=chunk.start_pos,
            )
    return ScriptAnalysis(chunks=chunks, temp_tables=temp_tables, batch_count=batch_count)
