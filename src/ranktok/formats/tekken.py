"""
Mistral "Tekken" vocabulary files.

A Tekken file is a JSON object with a ``config`` block (training metadata), a
``vocab`` array of ``{rank, token_bytes, token_str}`` entries with base64
token bytes, and optional ``special_tokens`` and ``multimodal`` blocks. The
vocabulary converts losslessly into the flat rank-table format.
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import IO, Any

from ..errors import TekkenFormatError
from ..types import TokenBytes

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TekkenConfig:
    """Training metadata. Passed through; the merge engine never reads it."""

    pattern: str
    num_vocab_tokens: int
    default_vocab_size: int
    default_num_special_tokens: int
    version: str


@dataclass(frozen=True)
class VocabEntry:
    """One trained token. ``rank`` becomes the token id."""

    rank: int
    token_bytes: str
    token_str: str | None = None

    @property
    def raw_bytes(self) -> TokenBytes:
        """The token as raw bytes."""
        return base64.b64decode(self.token_bytes)


@dataclass(frozen=True)
class SpecialTokenEntry:
    rank: int
    token_str: str
    is_control: bool = True


@dataclass(frozen=True)
class Multimodal:
    image_patch_size: int
    max_image_size: int


@dataclass(frozen=True)
class TekkenModel:
    """A decoded Tekken document."""

    config: TekkenConfig
    vocab: tuple[VocabEntry, ...]
    special_tokens: tuple[SpecialTokenEntry, ...] = field(default_factory=tuple)
    multimodal: Multimodal | None = None

    def to_tiktoken(self) -> bytes:
        """
        Convert the vocabulary to the flat rank-table format.

        Emits ``<token_bytes> <rank>`` per entry in array order. Nothing is
        validated here; rank contiguity and uniqueness are checked when the
        result is built into a :class:`~ranktok.vocab.Vocabulary`.
        """
        return b"".join(
            f"{entry.token_bytes} {entry.rank}\n".encode("utf-8") for entry in self.vocab
        )

    def inner_vocab_size(self, num_special: int) -> int:
        """
        Number of vocab entries in use once ``num_special`` ids are reserved.

        Files may ship more entries than ``default_vocab_size`` allows; the
        surplus is not part of the model's id space.
        """
        if self.config.default_vocab_size <= 0:
            return len(self.vocab)
        return max(0, min(len(self.vocab), self.config.default_vocab_size - num_special))


def _require(obj: dict[str, Any], key: str, kind: type, path: str) -> Any:
    """Fetch ``obj[key]`` and check its JSON type."""
    if key not in obj:
        raise TekkenFormatError(f"missing key {key!r}", path=path)
    value = obj[key]
    # bool is an int subclass but never a valid count or rank
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise TekkenFormatError(
            f"expected {kind.__name__} for {key!r}, got {type(value).__name__}",
            path=f"{path}.{key}",
        )
    return value


def _parse_config(obj: dict[str, Any]) -> TekkenConfig:
    return TekkenConfig(
        pattern=_require(obj, "pattern", str, "config"),
        num_vocab_tokens=_require(obj, "num_vocab_tokens", int, "config"),
        default_vocab_size=_require(obj, "default_vocab_size", int, "config"),
        default_num_special_tokens=_require(obj, "default_num_special_tokens", int, "config"),
        version=_require(obj, "version", str, "config"),
    )


def _parse_vocab(items: list[Any]) -> tuple[VocabEntry, ...]:
    entries: list[VocabEntry] = []
    for idx, item in enumerate(items):
        path = f"vocab[{idx}]"
        if not isinstance(item, dict):
            raise TekkenFormatError("vocab entry must be an object", path=path)
        token_bytes = _require(item, "token_bytes", str, path)
        try:
            base64.b64decode(token_bytes, validate=True)
        except binascii.Error as e:
            raise TekkenFormatError("token_bytes is not valid base64", path=path) from e
        entries.append(
            VocabEntry(
                rank=_require(item, "rank", int, path),
                token_bytes=token_bytes,
                token_str=item.get("token_str"),
            )
        )
    return tuple(entries)


def _parse_special_tokens(items: list[Any]) -> tuple[SpecialTokenEntry, ...]:
    entries: list[SpecialTokenEntry] = []
    for idx, item in enumerate(items):
        path = f"special_tokens[{idx}]"
        if not isinstance(item, dict):
            raise TekkenFormatError("special token entry must be an object", path=path)
        entries.append(
            SpecialTokenEntry(
                rank=_require(item, "rank", int, path),
                token_str=_require(item, "token_str", str, path),
                is_control=bool(item.get("is_control", True)),
            )
        )
    return tuple(entries)


def _parse_multimodal(obj: dict[str, Any]) -> Multimodal:
    return Multimodal(
        image_patch_size=_require(obj, "image_patch_size", int, "multimodal"),
        max_image_size=_require(obj, "max_image_size", int, "multimodal"),
    )


def parse_tekken(source: bytes | bytearray | str | IO[bytes] | IO[str]) -> TekkenModel:
    """
    Decode a Tekken JSON document.

    :param source: JSON text, JSON bytes or bytearray, or an open file object.
    :raises TekkenFormatError: If the document is not JSON or is missing or
        mistypes any required field.
    """
    if not isinstance(source, (bytes, bytearray, str)):
        source = source.read()

    try:
        doc = json.loads(source)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise TekkenFormatError(f"invalid JSON: {e}") from e

    if not isinstance(doc, dict):
        raise TekkenFormatError("top level must be an object", path="$")

    config = _parse_config(_require(doc, "config", dict, "$"))
    vocab = _parse_vocab(_require(doc, "vocab", list, "$"))

    special_tokens: tuple[SpecialTokenEntry, ...] = ()
    if doc.get("special_tokens") is not None:
        special_tokens = _parse_special_tokens(_require(doc, "special_tokens", list, "$"))

    multimodal = None
    if doc.get("multimodal") is not None:
        multimodal = _parse_multimodal(_require(doc, "multimodal", dict, "$"))

    log.debug(
        f"decoded tekken document: version {config.version}, {len(vocab)} vocab entries, "
        f"{len(special_tokens)} special tokens"
    )
    return TekkenModel(
        config=config,
        vocab=vocab,
        special_tokens=special_tokens,
        multimodal=multimodal,
    )
