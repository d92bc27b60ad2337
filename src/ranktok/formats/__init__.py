"""Vocabulary file formats."""

from .tekken import (
    Multimodal,
    SpecialTokenEntry,
    TekkenConfig,
    TekkenModel,
    VocabEntry,
    parse_tekken,
)
from .tiktoken import TokenFormat, dump_rank_table, load_rank_table, parse_rank_table

__all__ = [
    "Multimodal",
    "SpecialTokenEntry",
    "TekkenConfig",
    "TekkenModel",
    "VocabEntry",
    "parse_tekken",
    "TokenFormat",
    "dump_rank_table",
    "load_rank_table",
    "parse_rank_table",
]
