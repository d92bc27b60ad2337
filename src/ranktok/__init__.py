"""ranktok: byte pair encoding for tiktoken and Mistral Tekken vocabularies."""

from .codec import Codec
from .factory import (
    encoding_for_model,
    encoding_name_for_model,
    get_encoding,
    list_encodings,
    list_models,
)
from .formats.tekken import TekkenModel, parse_tekken
from .formats.tiktoken import TokenFormat, dump_rank_table, load_rank_table, parse_rank_table
from .pattern import Splitter, TokenPattern, get_pattern, list_patterns
from .schemes import EncodingSpec, mistral_tekken_codec
from .special import LiteralSegment, SpecialTokenScanner, TextSegment
from .strategy import (
    AllowAllStrategy,
    AllowCustomStrategy,
    AllowNoneRaiseStrategy,
    AllowNoneStrategy,
    SpecialTokenStrategy,
    get_strategy,
    list_strategies,
)
from .vocab import LazyVocabulary, Vocabulary

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ranktok")
except PackageNotFoundError:
    __version__ = "dev"

__all__ = [
    "Codec",
    "Vocabulary",
    "LazyVocabulary",
    "TokenPattern",
    "Splitter",
    "SpecialTokenScanner",
    "LiteralSegment",
    "TextSegment",
    "SpecialTokenStrategy",
    "AllowAllStrategy",
    "AllowNoneStrategy",
    "AllowNoneRaiseStrategy",
    "AllowCustomStrategy",
    "TekkenModel",
    "TokenFormat",
    "EncodingSpec",
    "get_encoding",
    "encoding_for_model",
    "encoding_name_for_model",
    "get_strategy",
    "get_pattern",
    "list_encodings",
    "list_models",
    "list_patterns",
    "list_strategies",
    "parse_tekken",
    "parse_rank_table",
    "load_rank_table",
    "dump_rank_table",
    "mistral_tekken_codec",
]
