"""Tokenizing, segmentation and reference extraction for T-SQL scripts."""

from chunk_engine.parser.aliases import build_aliases
from chunk_engine.parser.assembler import analyze, assemble, extract
from chunk_engine.parser.lexer import tokenize
from chunk_engine.parser.segmenter import Segment, segment
from chunk_engine.parser.walker import WalkResult, classify_cte_statement, walk

__all__ = [
    "Segment",
    "WalkResult",
    "analyze",
    "assemble",
    "build_aliases",
    "classify_cte_statement",
    "extract",
    "segment",
    "tokenize",
    "walk",
]
