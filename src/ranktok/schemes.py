"""
Built-in tokenization schemes.

A scheme is data: a split pattern, a special-token table and the file its
vocabulary lives in. Every scheme runs on the same :class:`~ranktok.codec.Codec`.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Final

from .codec import Codec
from .formats.tekken import TekkenModel, parse_tekken
from .formats.tiktoken import load_rank_table, parse_rank_table
from .pattern import TokenPattern
from .types import SpecialTokens, Token
from .vocab import Vocabulary

log = logging.getLogger(__name__)

ENDOFTEXT: Final[str] = "<|endoftext|>"
FIM_PREFIX: Final[str] = "<|fim_prefix|>"
FIM_MIDDLE: Final[str] = "<|fim_middle|>"
FIM_SUFFIX: Final[str] = "<|fim_suffix|>"
ENDOFPROMPT: Final[str] = "<|endofprompt|>"

MISTRAL_SPECIAL_TOKENS: Final[MappingProxyType[str, Token]] = MappingProxyType(
    {
        "<unk>": 0,
        "<s>": 1,
        "</s>": 2,
        "[INST]": 3,
        "[/INST]": 4,
        "[AVAILABLE_TOOLS]": 5,
        "[/AVAILABLE_TOOLS]": 6,
        "[TOOL_RESULTS]": 7,
        "[/TOOL_RESULTS]": 8,
        "[TOOL_CALLS]": 9,
        "<pad>": 10,
        "[PREFIX]": 11,
        "[MIDDLE]": 12,
        "[SUFFIX]": 13,
    }
)


class VocabFormat(str, Enum):
    """On-disk layout of a scheme's vocabulary file."""

    TIKTOKEN = "tiktoken"
    TEKKEN = "tekken"


@dataclass(frozen=True)
class EncodingSpec:
    """Everything needed to build a codec except the vocabulary bytes."""

    name: str
    pattern: TokenPattern
    special_tokens: MappingProxyType[str, Token]
    vocab_file: str
    vocab_format: VocabFormat = VocabFormat.TIKTOKEN

    def build(self, data: bytes) -> Codec:
        """Build the codec from the raw contents of :attr:`vocab_file`."""
        if self.vocab_format is VocabFormat.TEKKEN:
            return mistral_tekken_codec(parse_tekken(data), self.name, self.special_tokens)
        return Codec(self.name, load_rank_table(data), self.pattern, self.special_tokens)


def _spec(
    name: str,
    pattern: TokenPattern,
    special_tokens: dict[str, Token],
    vocab_file: str,
    vocab_format: VocabFormat = VocabFormat.TIKTOKEN,
) -> EncodingSpec:
    return EncodingSpec(
        name=name,
        pattern=pattern,
        special_tokens=MappingProxyType(special_tokens),
        vocab_file=vocab_file,
        vocab_format=vocab_format,
    )


ENCODING_SPECS: Final[dict[str, EncodingSpec]] = {
    spec.name: spec
    for spec in (
        # gpt2 ships as encoder.json + vocab.bpe upstream but holds the r50k ranks
        _spec("gpt2", TokenPattern.R50K, {ENDOFTEXT: 50256}, "r50k_base.tiktoken"),
        _spec("r50k_base", TokenPattern.R50K, {ENDOFTEXT: 50256}, "r50k_base.tiktoken"),
        _spec("p50k_base", TokenPattern.R50K, {ENDOFTEXT: 50256}, "p50k_base.tiktoken"),
        _spec(
            "p50k_edit",
            TokenPattern.R50K,
            {ENDOFTEXT: 50256, FIM_PREFIX: 50281, FIM_MIDDLE: 50282, FIM_SUFFIX: 50283},
            "p50k_base.tiktoken",
        ),
        _spec(
            "cl100k_base",
            TokenPattern.CL100K,
            {
                ENDOFTEXT: 100257,
                FIM_PREFIX: 100258,
                FIM_MIDDLE: 100259,
                FIM_SUFFIX: 100260,
                ENDOFPROMPT: 100276,
            },
            "cl100k_base.tiktoken",
        ),
        _spec(
            "o200k_base",
            TokenPattern.O200K,
            {ENDOFTEXT: 199999, ENDOFPROMPT: 200018},
            "o200k_base.tiktoken",
        ),
        _spec(
            "mistral_tekken",
            TokenPattern.MISTRAL_TEKKEN,
            dict(MISTRAL_SPECIAL_TOKENS),
            "tekken.json",
            VocabFormat.TEKKEN,
        ),
    )
}


def tekken_special_tokens(
    tekken: TekkenModel, default: Mapping[str, Token] = MISTRAL_SPECIAL_TOKENS
) -> SpecialTokens:
    """Special tokens declared by the file, or ``default`` when it declares none."""
    if tekken.special_tokens:
        return {entry.token_str: entry.rank for entry in tekken.special_tokens}
    return dict(default)


def tekken_vocabulary(tekken: TekkenModel, special_tokens: SpecialTokens) -> Vocabulary:
    """
    Build the merge vocabulary of a Tekken model.

    Ranks are shifted past the reserved special-token ids, so both id spaces
    stay disjoint, and entries beyond the declared vocabulary size are dropped.
    """
    offset = max(
        tekken.config.default_num_special_tokens, max(special_tokens.values(), default=-1) + 1
    )
    inner_size = tekken.inner_vocab_size(offset)
    if inner_size < len(tekken.vocab):
        log.info(f"using {inner_size} of {len(tekken.vocab)} tekken vocab entries")

    return Vocabulary.build(
        (token, rank + offset)
        for token, rank in parse_rank_table(tekken.to_tiktoken())
        if rank < inner_size
    )


def mistral_tekken_codec(
    tekken: TekkenModel,
    name: str = "mistral_tekken",
    default_special_tokens: Mapping[str, Token] = MISTRAL_SPECIAL_TOKENS,
) -> Codec:
    """
    Build the Mistral Tekken codec from a decoded Tekken document.

    The file's own ``special_tokens`` array wins over ``default_special_tokens``.
    """
    if tekken.config.pattern and tekken.config.pattern != TokenPattern.MISTRAL_TEKKEN.value:
        log.warning(
            f"tekken file pattern differs from the built-in Mistral pattern, "
            f"using the built-in one (file version {tekken.config.version})"
        )
    special_tokens = tekken_special_tokens(tekken, default_special_tokens)
    return Codec(
        name,
        tekken_vocabulary(tekken, special_tokens),
        TokenPattern.MISTRAL_TEKKEN,
        special_tokens,
    )
