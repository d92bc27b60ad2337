"""
Immutable BPE vocabulary: a bijection between token bytes and ids.

The id of every multi-byte token doubles as its merge rank, so the same table
drives both encoding (lower id merges first) and decoding.
"""

import logging
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Final

from ._sanitise import render_bytes
from .errors import VocabularyError
from .types import Rank, Token, TokenBytes

log = logging.getLogger(__name__)

N_BYTES: Final[int] = 256


class Vocabulary:
    """
    Read-only mapping between token bytes and integer ids.

    Instances are created with :meth:`build` and never change afterwards, so a
    single vocabulary can be shared by any number of codecs and threads.
    """

    __slots__ = ("_token_to_id", "_id_to_token", "_max_id")

    def __init__(
        self, token_to_id: dict[TokenBytes, Token], id_to_token: dict[Token, TokenBytes]
    ) -> None:
        self._token_to_id = token_to_id
        self._id_to_token = id_to_token
        self._max_id = max(id_to_token, default=-1)

    @classmethod
    def build(cls, pairs: Iterable[tuple[TokenBytes, Rank]]) -> "Vocabulary":
        """
        Build a vocabulary from ``(token_bytes, rank)`` pairs.

        :param pairs: Token bytes and their ranks, in any order.
        :raises VocabularyError: If a token or rank repeats, a rank is negative,
            a token is not a bytes object, or a rank is not an integer.
        """
        token_to_id: dict[TokenBytes, Token] = {}
        id_to_token: dict[Token, TokenBytes] = {}

        for token, rank in pairs:
            if not isinstance(token, bytes):
                raise VocabularyError("token must be bytes", rank=rank)
            if not isinstance(rank, int) or isinstance(rank, bool):
                raise VocabularyError(f"rank must be an integer, got {rank!r}", token=token)
            if rank < 0:
                raise VocabularyError("negative rank", token=token, rank=rank)
            if token in token_to_id:
                raise VocabularyError("duplicate token", token=token, rank=rank)
            if rank in id_to_token:
                raise VocabularyError("duplicate rank", token=token, rank=rank)
            token_to_id[token] = rank
            id_to_token[rank] = token

        log.debug(f"built vocabulary with {len(token_to_id)} tokens")
        return cls(token_to_id, id_to_token)

    @classmethod
    def from_ranks(cls, ranks: Mapping[TokenBytes, Rank]) -> "Vocabulary":
        """Build a vocabulary from a pre-parsed ``{token_bytes: rank}`` table."""
        return cls.build(ranks.items())

    def lookup(self, token: TokenBytes) -> Token | None:
        """Return the id of ``token`` or ``None`` when it is not in the vocabulary."""
        return self._token_to_id.get(token)

    def lookup_id(self, tok: Token) -> TokenBytes | None:
        """Return the bytes of id ``tok`` or ``None`` when the id is unknown."""
        return self._id_to_token.get(tok)

    @property
    def ranks(self) -> Mapping[TokenBytes, Token]:
        """Read-only ``{token_bytes: id}`` view."""
        return MappingProxyType(self._token_to_id)

    @property
    def tokens(self) -> Mapping[Token, TokenBytes]:
        """Read-only ``{id: token_bytes}`` view."""
        return MappingProxyType(self._id_to_token)

    @property
    def max_id(self) -> Token:
        """Largest id in the vocabulary, ``-1`` when empty."""
        return self._max_id

    def has_all_bytes(self) -> bool:
        """Check that every single byte is a token, so any input can be encoded."""
        return all(bytes([b]) in self._token_to_id for b in range(N_BYTES))

    def dump_listing(self) -> str:
        """Human-readable ``[id] token`` listing with control characters escaped."""
        return "".join(f"[{tok}] {render_bytes(b)}\n" for b, tok in self)

    def __len__(self) -> int:
        return len(self._token_to_id)

    def __contains__(self, token: object) -> bool:
        return token in self._token_to_id

    def __iter__(self) -> Iterator[tuple[TokenBytes, Token]]:
        """Yield ``(token_bytes, id)`` pairs in ascending id order."""
        for tok in sorted(self._id_to_token):
            yield self._id_to_token[tok], tok

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vocabulary):
            return NotImplemented
        return self._token_to_id == other._token_to_id

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(size={len(self)}, max_id={self._max_id})"


class Lazy[T]:
    """
    Build a value on first use, exactly once, even under concurrent access.

    The first caller of :meth:`get` runs ``builder`` while other callers block
    on the lock; afterwards every caller receives the same instance without
    locking. A builder that raises leaves nothing cached, so the next call
    tries again.
    """

    def __init__(self, builder: Callable[[], T]) -> None:
        self._builder = builder
        self._lock = threading.Lock()
        self._value: T | None = None

    @property
    def is_built(self) -> bool:
        return self._value is not None

    def get(self) -> T:
        """Return the value, building it if this is the first call."""
        value = self._value
        if value is not None:
            return value

        with self._lock:
            # another thread may have finished the build while we waited
            if self._value is None:
                log.debug(f"building {self._builder!r} on first use")
                self._value = self._builder()
            return self._value


class LazyVocabulary(Lazy[Vocabulary]):
    """A :class:`Vocabulary` built on first use, exactly once."""
