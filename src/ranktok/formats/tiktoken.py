"""
Flat rank-table format: one ``<token> <rank>`` pair per line.

This is the layout of tiktoken's ``.tiktoken`` files and the canonical input of
:class:`~ranktok.vocab.Vocabulary`. Tokens are written either as base64
(the tiktoken convention) or as escaped UTF-8 text, which is easier to write
by hand.
"""

import base64
import binascii
import logging
import unicodedata
from collections.abc import Iterable, Iterator
from enum import Enum

import regex as re

from ..errors import VocabLineError, VocabularyError
from ..types import Rank, TokenBytes
from ..vocab import Vocabulary

log = logging.getLogger(__name__)

# escapes accepted in the text token format; a lone backslash is an error
_TEXT_ESCAPE = re.compile(r"\\x[0-9a-fA-F]{2}|\\\\|\\")


class TokenFormat(str, Enum):
    """How token bytes are spelled on a rank-table line."""

    BASE64 = "base64"
    TEXT = "text"

    @classmethod
    def get(cls, name: "str | TokenFormat") -> "TokenFormat":
        """Get a token format by name (case-insensitive)."""
        if isinstance(name, TokenFormat):
            return name
        try:
            return cls[name.upper()]
        except KeyError:
            raise VocabularyError(
                f"Unknown token format: {name!r}. "
                f"Valid formats: {', '.join(fmt.value for fmt in cls)}"
            )


def encode_token_text(token: TokenBytes) -> str:
    """
    Spell token bytes as text for the ``text`` format.

    Printable characters are kept, backslash becomes ``\\\\`` and whitespace,
    control characters and bytes that are not valid UTF-8 become ``\\xNN``.
    """
    out: list[str] = []
    # invalid bytes survive as lone surrogates U+DC80..U+DCFF
    for c in token.decode("utf-8", errors="surrogateescape"):
        cp = ord(c)
        if 0xDC80 <= cp <= 0xDCFF:
            out.append(f"\\x{cp - 0xDC00:02x}")
        elif c == "\\":
            out.append("\\\\")
        elif c.isspace() or unicodedata.category(c)[0] == "C":
            out.extend(f"\\x{b:02x}" for b in c.encode("utf-8"))
        else:
            out.append(c)
    return "".join(out)


def decode_token_text(text: str) -> TokenBytes:
    """
    Inverse of :func:`encode_token_text`.

    :raises ValueError: On a backslash that does not start a valid escape.
    """
    out = bytearray()
    pos = 0
    for m in _TEXT_ESCAPE.finditer(text):
        out += text[pos : m.start()].encode("utf-8")
        esc = m.group(0)
        if esc == "\\\\":
            out.append(0x5C)
        elif len(esc) == 4:
            out.append(int(esc[2:], 16))
        else:
            raise ValueError(f"invalid escape at offset {m.start()}")
        pos = m.end()
    out += text[pos:].encode("utf-8")
    return bytes(out)


def _decode_token(raw: bytes, token_format: TokenFormat) -> TokenBytes:
    if token_format is TokenFormat.BASE64:
        return base64.b64decode(raw, validate=True)
    return decode_token_text(raw.decode("utf-8"))


def _encode_token(token: TokenBytes, token_format: TokenFormat) -> bytes:
    if token_format is TokenFormat.BASE64:
        return base64.b64encode(token)
    return encode_token_text(token).encode("utf-8")


def parse_rank_table(
    data: bytes | str, token_format: TokenFormat | str = TokenFormat.BASE64
) -> Iterator[tuple[TokenBytes, Rank]]:
    """
    Parse a flat rank table into ``(token_bytes, rank)`` pairs.

    Blank lines are skipped. Each remaining line is split on its last run of
    whitespace into token and rank.

    :param data: Rank table contents.
    :param token_format: Spelling of the tokens, ``base64`` or ``text``.
    :raises VocabLineError: If a line has no rank, a rank that is not a
        non-negative integer, or a token that does not decode.
    """
    fmt = TokenFormat.get(token_format)
    if isinstance(data, str):
        data = data.encode("utf-8")

    for line_no, line in enumerate(data.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue

        parts = line.rsplit(maxsplit=1)
        if len(parts) != 2:
            raise VocabLineError(
                "missing rank", line_no=line_no, line=line.decode("utf-8", "replace")
            )
        raw_token, raw_rank = parts

        if not raw_rank.isdigit():
            raise VocabLineError(
                "rank is not a non-negative integer",
                line_no=line_no,
                line=line.decode("utf-8", "replace"),
            )

        try:
            token = _decode_token(raw_token, fmt)
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise VocabLineError(
                f"invalid {fmt.value} token",
                line_no=line_no,
                line=line.decode("utf-8", "replace"),
            ) from e

        yield token, int(raw_rank)


def load_rank_table(
    data: bytes | str, token_format: TokenFormat | str = TokenFormat.BASE64
) -> Vocabulary:
    """Parse a flat rank table and build a :class:`Vocabulary` from it."""
    vocab = Vocabulary.build(parse_rank_table(data, token_format))
    log.debug(f"loaded rank table with {len(vocab)} tokens")
    return vocab


def dump_rank_table(
    source: Vocabulary | Iterable[tuple[TokenBytes, Rank]],
    token_format: TokenFormat | str = TokenFormat.BASE64,
) -> bytes:
    """
    Serialize a vocabulary or ``(token_bytes, rank)`` pairs to the flat format.

    Lines are written in ascending rank order.
    """
    fmt = TokenFormat.get(token_format)
    pairs = source if isinstance(source, Vocabulary) else sorted(source, key=lambda p: p[1])
    return b"".join(_encode_token(token, fmt) + b" %d\n" % rank for token, rank in pairs)
