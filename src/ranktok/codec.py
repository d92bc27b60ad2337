"""
Text <-> token id codec over a BPE vocabulary.

Encoding runs three stages in order: special-token literals are cut out of the
text, every stretch of plain text is split into chunks by the pre-tokenizer,
and each chunk's UTF-8 bytes are byte-pair merged into vocabulary ids.
"""

import logging
import os
from collections.abc import Iterator, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from math import ceil
from types import MappingProxyType

from ._bpe import byte_pair_encode, byte_pair_split
from ._sanitise import token_text
from .errors import DecodingError, EncodingError, SpecialTokenError, UnknownTokenError
from .pattern import Splitter, TokenPattern
from .special import LiteralSegment, Segment, SpecialTokenScanner
from .strategy import AllowAllStrategy, SpecialTokenStrategy
from .types import SpecialTokens, Token, TokenBytes
from .vocab import Vocabulary

log = logging.getLogger(__name__)

_ALLOW_ALL = AllowAllStrategy()
# end-of-text markers in the order they are looked up
_EOT_MARKERS = ("<|endoftext|>", "</s>")


@lru_cache(maxsize=32)
def _scanner_for(special_items: frozenset[tuple[str, Token]]) -> SpecialTokenScanner:
    """Cached scanner for a subset of special tokens picked by a strategy."""
    return SpecialTokenScanner(dict(special_items))


def _scrub_surrogates(text: str) -> str:
    """Replace lone surrogates, which have no UTF-8 encoding, with U+FFFD."""
    return text.encode("utf-16", "surrogatepass").decode("utf-16", "replace")


class Codec:
    """
    A tokenization scheme: vocabulary, split pattern and special tokens.

    All three are fixed at construction and never modified, so one codec can
    serve any number of threads and every call is independent of the others.

    :param name: Identifier of the scheme, e.g. ``"cl100k_base"``.
    :param vocabulary: Merge vocabulary; ids double as merge ranks.
    :param pattern: Pre-tokenizer pattern or a :class:`TokenPattern`.
    :param special_tokens: Literal marker -> reserved id. Ids must be unique and
        must not collide with vocabulary ids.
    :raises SpecialTokenError: If special token ids repeat or overlap the
        vocabulary.
    :raises PatternError: If ``pattern`` does not compile.
    """

    def __init__(
        self,
        name: str,
        vocabulary: Vocabulary,
        pattern: str | TokenPattern,
        special_tokens: Mapping[str, Token] | None = None,
    ) -> None:
        special: SpecialTokens = dict(special_tokens or {})
        _check_special_tokens(special, vocabulary)

        self._name = name
        self._vocab = vocabulary
        self._ranks = vocabulary.ranks
        self._splitter = Splitter(pattern)
        self._special = special
        self._special_bytes: dict[Token, TokenBytes] = {
            tok: seq.encode("utf-8") for seq, tok in special.items()
        }
        self._scanner = SpecialTokenScanner(special)

        if not vocabulary.has_all_bytes():
            log.warning(f"{name}: vocabulary does not cover all 256 bytes, some text will not encode")
        log.debug(
            f"codec {name} ready: {len(vocabulary)} tokens, {len(special)} special tokens"
        )

    @property
    def name(self) -> str:
        """Fixed identifier of the scheme."""
        return self._name

    @property
    def vocabulary(self) -> Vocabulary:
        return self._vocab

    @property
    def pattern(self) -> str:
        return self._splitter.pattern

    @property
    def special_tokens(self) -> Mapping[str, Token]:
        return MappingProxyType(self._special)

    @property
    def n_vocab(self) -> int:
        """One past the largest id, vocabulary and special tokens combined."""
        return max(self._vocab.max_id, *self._special.values(), -1) + 1

    @property
    def eot_token(self) -> Token | None:
        """Id of the end-of-text marker, if the scheme has one."""
        for marker in _EOT_MARKERS:
            if marker in self._special:
                return self._special[marker]
        return None

    # encoding
    # ---------------------------------------------------------------------------

    def encode(self, text: str, strategy: SpecialTokenStrategy | None = None) -> list[Token]:
        """
        Encode text into token ids.

        :param text: Text to encode.
        :param strategy: Which special tokens to match; all of them by default.
        :raises SpecialTokenError: If the strategy rejects the text.
        :raises EncodingError: If a chunk cannot be reduced to vocabulary tokens.
        """
        tokens: list[Token] = []
        for segment in self._segments(text, strategy):
            if isinstance(segment, LiteralSegment):
                tokens.append(segment.token)
                continue
            for chunk in self._splitter.split(segment.text):
                tokens.extend(self._encode_chunk(chunk))
        return tokens

    def encode_with_tokens(
        self, text: str, strategy: SpecialTokenStrategy | None = None
    ) -> tuple[list[Token], list[str]]:
        """
        Encode text and also return the text of every token.

        The second list is aligned index for index with the ids. Tokens that
        end inside a multi-byte character show U+FFFD for the partial bytes.
        """
        tokens: list[Token] = []
        pieces: list[str] = []
        for segment in self._segments(text, strategy):
            if isinstance(segment, LiteralSegment):
                tokens.append(segment.token)
                pieces.append(segment.text)
                continue
            for chunk in self._splitter.split(segment.text):
                for tok, part in self._split_chunk(chunk):
                    tokens.append(tok)
                    pieces.append(token_text(part))
        return tokens, pieces

    def encode_ordinary(self, text: str) -> list[Token]:
        """Encode text treating special token strings as ordinary text."""
        tokens: list[Token] = []
        for chunk in self._splitter.split(_ensure_encodable(text)):
            tokens.extend(self._encode_chunk(chunk))
        return tokens

    def encode_batch(
        self,
        texts: Sequence[str],
        strategy: SpecialTokenStrategy | None = None,
        num_workers: int | None = None,
    ) -> list[list[Token]]:
        """Encode many texts on a thread pool; results keep the input order."""
        return _map_batch(lambda text: self.encode(text, strategy), texts, num_workers)

    def _segments(
        self, text: str, strategy: SpecialTokenStrategy | None
    ) -> Iterator[Segment]:
        text = _ensure_encodable(text)
        allowed = (strategy or _ALLOW_ALL).select(text, self._special)
        if allowed is self._special or allowed == self._special:
            scanner = self._scanner
        else:
            scanner = _scanner_for(frozenset(allowed.items()))
        return scanner.scan(text)

    def _encode_chunk(self, chunk: str) -> list[Token]:
        piece = chunk.encode("utf-8")
        # a chunk that is a token in its own right is never split
        tok = self._ranks.get(piece)
        if tok is not None:
            return [tok]
        return byte_pair_encode(piece, self._ranks)

    def _split_chunk(self, chunk: str) -> Iterator[tuple[Token, TokenBytes]]:
        piece = chunk.encode("utf-8")
        tok = self._ranks.get(piece)
        if tok is not None:
            yield tok, piece
            return
        for part in byte_pair_split(piece, self._ranks):
            tok = self._ranks.get(part)
            if tok is None:
                raise EncodingError("byte sequence has no vocabulary token", chunk=part)
            yield tok, part

    # decoding
    # ---------------------------------------------------------------------------

    def token_bytes(self, tok: Token) -> TokenBytes:
        """
        Bytes of a single id.

        :raises UnknownTokenError: If the id is in neither table.
        """
        b = self._special_bytes.get(tok)
        if b is None:
            b = self._vocab.lookup_id(tok)
        if b is None:
            raise UnknownTokenError("token not found in vocabulary", invalid_tok=tok)
        return b

    def decode_bytes(self, tokens: Sequence[Token]) -> bytes:
        """Concatenate the bytes of ``tokens`` without any UTF-8 checking."""
        return b"".join(self.token_bytes(tok) for tok in tokens)

    def decode(self, tokens: Sequence[Token], errors: str = "replace") -> str:
        """
        Decode token ids back into text.

        A token sequence cut at an arbitrary point may end inside a
        multi-byte character. By default such bytes become U+FFFD;
        ``errors="strict"`` raises instead and :meth:`decode_bytes` returns the
        raw bytes.

        :param errors: ``"replace"`` (default), ``"strict"`` or any other
            error handler accepted by :meth:`bytes.decode`.
        :raises UnknownTokenError: If any id is unknown.
        :raises DecodingError: If ``errors="strict"`` and the bytes are not
            valid UTF-8, or ``errors`` names no registered error handler.
        """
        data = self.decode_bytes(tokens)
        try:
            return data.decode("utf-8", errors=errors)
        except UnicodeDecodeError as e:
            raise DecodingError("decoded bytes are not valid UTF-8", position=e.start) from e
        except LookupError as e:
            raise DecodingError(f"unknown error handler {errors!r}") from e

    def decode_batch(
        self,
        token_batch: Sequence[Sequence[Token]],
        errors: str = "replace",
        num_workers: int | None = None,
    ) -> list[str]:
        """Decode many token sequences on a thread pool; results keep the input order."""
        return _map_batch(lambda tokens: self.decode(tokens, errors), token_batch, num_workers)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self._name!r}>"


def _ensure_encodable(text: str) -> str:
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        log.debug("replacing lone surrogates before encoding")
        return _scrub_surrogates(text)
    return text


def _check_special_tokens(special: SpecialTokens, vocabulary: Vocabulary) -> None:
    """Special ids must be non-negative, unique, and absent from the vocabulary."""
    seen: dict[Token, str] = {}
    for seq, tok in special.items():
        if tok < 0:
            raise SpecialTokenError("negative special token id", found_tokens={seq})
        if tok in seen:
            raise SpecialTokenError("duplicate special token ids", found_tokens={seq, seen[tok]})
        if vocabulary.lookup_id(tok) is not None:
            raise SpecialTokenError(
                f"special token id {tok} overlaps with vocabulary", found_tokens={seq}
            )
        seen[tok] = seq


def _map_batch(func, items: Sequence, num_workers: int | None) -> list:
    """Apply ``func`` to ``items`` in parallel groups, preserving order."""
    if num_workers is None:
        workers = os.cpu_count() or 1
    else:
        workers = max(1, num_workers)  # "0" interpreted as 1 worker

    if workers == 1 or len(items) <= 1:
        return [func(item) for item in items]

    # group items to reduce task-scheduling overhead for many small inputs
    target_tasks = min(len(items), workers * 2)
    group_size = max(1, ceil(len(items) / target_tasks))
    groups = [items[idx : idx + group_size] for idx in range(0, len(items), group_size)]

    def run_group(group: Sequence) -> list:
        return [func(item) for item in group]

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(run_group, groups))
    return [out for group in results for out in group]
