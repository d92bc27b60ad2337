"""Locate special-token literals in text ahead of byte-pair encoding."""

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

import regex as re

from .types import Token

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LiteralSegment:
    """A special token matched verbatim."""

    token: Token
    text: str


@dataclass(frozen=True, slots=True)
class TextSegment:
    """Ordinary text that goes through pre-tokenization and merging."""

    text: str


type Segment = LiteralSegment | TextSegment


class SpecialTokenScanner:
    """
    Split text into special-token literals and the plain text around them.

    Literals are matched as exact substrings. When several literals start at
    the same position the longest one is taken, so ``[INST]`` never shadows a
    longer marker that shares its prefix.
    """

    __slots__ = ("special_toks", "_compiled")

    def __init__(self, special_toks: Mapping[str, Token]) -> None:
        self.special_toks: dict[str, Token] = dict(special_toks)
        self._compiled: re.Pattern[str] | None = None
        # empty strings would match everywhere
        seqs = [seq for seq in self.special_toks if seq]
        if seqs:
            # alternation is tried in order, so longest first gives longest match
            seqs.sort(key=len, reverse=True)
            self._compiled = re.compile("|".join(re.escape(seq) for seq in seqs))
            log.debug(f"compiled scanner for {len(seqs)} special tokens")

    def scan(self, text: str) -> Iterator[Segment]:
        """
        Yield segments covering ``text`` exactly once, in order.

        Empty text segments are never produced.
        """
        if self._compiled is None:
            if text:
                yield TextSegment(text)
            return

        pos = 0
        for m in self._compiled.finditer(text):
            if m.start() > pos:
                yield TextSegment(text[pos : m.start()])
            seq = m.group(0)
            yield LiteralSegment(self.special_toks[seq], seq)
            pos = m.end()
        if pos < len(text):
            yield TextSegment(text[pos:])
