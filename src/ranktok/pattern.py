"""Pre-tokenization: split text into chunks that are byte-pair merged independently."""

import logging
from collections.abc import Iterator
from enum import Enum

import regex as re

from .errors import PatternError

log = logging.getLogger(__name__)


class TokenPattern(str, Enum):
    """
    Pre-defined split patterns for the supported tokenizer families.

    Sources:
    - OpenAI: https://github.com/openai/tiktoken/blob/main/tiktoken_ext/openai_public.py
    - Mistral: the ``pattern`` field of Tekken vocabulary files
    - Others: https://github.com/ggerganov/llama.cpp
    """

    # OpenAI models
    R50K = (
        r"'(?:[sdmt]|ll|ve|re)|"
        r" ?\p{L}++|"
        r" ?\p{N}++|"
        r" ?[^\s\p{L}\p{N}]++|"
        r"\s++$|"
        r"\s+(?!\S)|"
        r"\s"
    )
    GPT2 = R50K

    CL100K = (
        r"'(?i:[sdmt]|ll|ve|re)|"
        r"[^\r\n\p{L}\p{N}]?+\p{L}++|"
        r"\p{N}{1,3}+|"
        r" ?[^\s\p{L}\p{N}]++[\r\n]*+|"
        r"\s++$|"
        r"\s*[\r\n]|"
        r"\s+(?!\S)|"
        r"\s"
    )
    GPT4 = CL100K

    O200K = (
        r"[^\r\n\p{L}\p{N}]?[\p{Lu}\p{Lt}\p{Lm}\p{Lo}\p{M}]*[\p{Ll}\p{Lm}\p{Lo}\p{M}]+(?i:'s|'t|'re|'ve|'m|'ll|'d)?|"
        r"[^\r\n\p{L}\p{N}]?[\p{Lu}\p{Lt}\p{Lm}\p{Lo}\p{M}]+[\p{Ll}\p{Lm}\p{Lo}\p{M}]*(?i:'s|'t|'re|'ve|'m|'ll|'d)?|"
        r"\p{N}{1,3}|"
        r" ?[^\s\p{L}\p{N}]+[\r\n/]*|"
        r"\s*[\r\n]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )
    GPT4O = O200K

    # Mistral models: like o200k but single digits and no contractions
    MISTRAL_TEKKEN = (
        r"[^\r\n\p{L}\p{N}]?[\p{Lu}\p{Lt}\p{Lm}\p{Lo}\p{M}]*[\p{Ll}\p{Lm}\p{Lo}\p{M}]+|"
        r"[^\r\n\p{L}\p{N}]?[\p{Lu}\p{Lt}\p{Lm}\p{Lo}\p{M}]+[\p{Ll}\p{Lm}\p{Lo}\p{M}]*|"
        r"\p{N}|"
        r" ?[^\s\p{L}\p{N}]+[\r\n/]*|"
        r"\s*[\r\n]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    # Meta models
    LLAMA3 = (
        r"(?:'[sS]|'[tT]|'[rR][eE]|'[vV][eE]|'[mM]|'[lL][lL]|'[dD])|"
        r"[^\r\n\p{L}\p{N}]?\p{L}+|"
        r"\p{N}{1,3}|"
        r" ?[^\s\p{L}\p{N}]+[\r\n]*|"
        r"\s*[\r\n]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    # Alibaba models
    QWEN2 = (
        r"(?:'[sS]|'[tT]|'[rR][eE]|'[vV][eE]|'[mM]|'[lL][lL]|'[dD])|"
        r"[^\r\n\p{L}\p{N}]?\p{L}+|"
        r"\p{N}|"  # single digits (different from LLAMA3)
        r" ?[^\s\p{L}\p{N}]+[\r\n]*|"
        r"\s*[\r\n]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    @classmethod
    def get(cls, name: str) -> str:
        """Get patterns by name (case-insensitive)."""
        try:
            return cls[name.upper().replace("-", "_")].value
        except KeyError:
            raise PatternError(
                f"Unknown pattern: {name!r}. "
                f"Valid patterns: {', '.join(pat.name for pat in cls)}"
            )


def list_patterns() -> list[str]:
    """Return names of all built-in split patterns, aliases included."""
    return list(TokenPattern.__members__)


def get_pattern(name: str) -> str:
    return TokenPattern.get(name)


class Splitter:
    """
    Compiled split pattern.

    At every position the leftmost alternative of the pattern that matches
    wins, and the scan continues right after the match, so chunking is a
    single deterministic pass. Instances hold no per-call state and are safe
    to share between threads.
    """

    __slots__ = ("pattern", "_compiled")

    def __init__(self, pattern: str | TokenPattern) -> None:
        self.pattern: str = pattern.value if isinstance(pattern, TokenPattern) else pattern
        self._compiled: re.Pattern[str] = _compile_pattern(self.pattern)

    def split(self, text: str) -> Iterator[str]:
        """
        Lazily yield the chunks of ``text`` in order.

        Text the pattern does not match is yielded as a chunk of its own, so
        the chunks always concatenate back to ``text``. Empty matches carry no
        bytes and are skipped.
        """
        pos = 0
        for m in self._compiled.finditer(text):
            start, end = m.span()
            if start > pos:
                yield text[pos:start]
            if end > start:
                yield m.group(0)
            pos = max(pos, end)
        if pos < len(text):
            yield text[pos:]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.pattern!r})"


def _compile_pattern(pattern: str) -> re.Pattern[str]:
    """
    Compile and validate a regex pattern.

    :param pattern: Regex pattern string to compile.
    :return: Compiled regex pattern.
    :raises PatternError: If pattern is invalid.
    """
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        raise PatternError("invalid regex pattern", pattern=pattern, regex_err=e) from e
    log.debug(f"compiled split pattern {pattern!r}")
    return compiled
