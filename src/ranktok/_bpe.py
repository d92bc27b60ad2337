"""
Core Byte Pair Encoding (BPE) merge operations.

Encoding a chunk starts from its individual bytes and repeatedly joins the
adjacent pair whose concatenation has the lowest rank in the vocabulary. Lower
ranks were learned earlier during training, so applying them first replays the
training-time merge order. Ties go to the leftmost pair.
"""

import sys
from collections.abc import Mapping

from typing_extensions import deprecated

from .errors import EncodingError
from .types import Rank, Token, TokenBytes

# sentinel rank for "this pair does not merge"
_NO_MERGE: int = sys.maxsize


def byte_pair_merge(piece: TokenBytes, ranks: Mapping[TokenBytes, Rank]) -> list[int]:
    """
    Greedily merge ``piece`` and return the start offsets of the final parts.

    The returned list has one offset per part plus a trailing ``len(piece)``,
    so part ``i`` is ``piece[bounds[i]:bounds[i + 1]]``.

    ``parts[i]`` holds the start of part ``i`` and the rank of merging part
    ``i`` with part ``i + 1``. After a merge only the ranks of the parts on
    either side of the merge site change, so each step costs one scan for the
    minimum instead of a lookup for every pair.

    :param piece: Chunk bytes.
    :param ranks: ``{token_bytes: rank}`` table.
    """
    n = len(piece)
    if n == 0:
        return [0]
    if n == 1:
        return [0, 1]

    parts: list[list[int]] = []
    min_rank, min_idx = _NO_MERGE, -1
    for i in range(n - 1):
        rank = ranks.get(piece[i : i + 2], _NO_MERGE)
        # strict < keeps the leftmost pair on ties
        if rank < min_rank:
            min_rank, min_idx = rank, i
        parts.append([i, rank])
    parts.append([n - 1, _NO_MERGE])
    parts.append([n, _NO_MERGE])

    def pair_rank(i: int) -> int:
        """Rank of joining part ``i`` with part ``i + 1`` once they are adjacent."""
        if i + 3 < len(parts):
            return ranks.get(piece[parts[i][0] : parts[i + 3][0]], _NO_MERGE)
        return _NO_MERGE

    while min_rank != _NO_MERGE:
        i = min_idx
        # neighbours first, while parts[i + 1] still marks the old boundary
        if i > 0:
            parts[i - 1][1] = pair_rank(i - 1)
        parts[i][1] = pair_rank(i)
        del parts[i + 1]

        min_rank, min_idx = _NO_MERGE, -1
        for j in range(len(parts) - 1):
            if parts[j][1] < min_rank:
                min_rank, min_idx = parts[j][1], j

    return [start for start, _ in parts]


def byte_pair_split(piece: TokenBytes, ranks: Mapping[TokenBytes, Rank]) -> list[TokenBytes]:
    """Merge ``piece`` and return the final parts as byte strings."""
    bounds = byte_pair_merge(piece, ranks)
    return [piece[bounds[i] : bounds[i + 1]] for i in range(len(bounds) - 1)]


def byte_pair_encode(piece: TokenBytes, ranks: Mapping[TokenBytes, Rank]) -> list[Token]:
    """
    Merge ``piece`` and map every part to its id.

    :raises EncodingError: If a part is not in the vocabulary, which only
        happens when the vocabulary lacks some single byte.
    """
    tokens: list[Token] = []
    for part in byte_pair_split(piece, ranks):
        tok = ranks.get(part)
        if tok is None:
            raise EncodingError("byte sequence has no vocabulary token", chunk=part)
        tokens.append(tok)
    return tokens


@deprecated(
    "Reference implementation for documentation and tests only. Use `byte_pair_split()`."
)
def slow_byte_pair_split(
    piece: TokenBytes, ranks: Mapping[TokenBytes, Rank]
) -> list[TokenBytes]:
    """
    Textbook greedy merge that re-ranks every adjacent pair on each pass.

    Naive algorithm: O(n^2) lookups for a chunk of n bytes. Produces the same
    parts as :func:`byte_pair_split`.
    """
    parts = [piece[i : i + 1] for i in range(len(piece))]

    while len(parts) > 1:
        best_rank, best_idx = _NO_MERGE, -1
        for i in range(len(parts) - 1):
            rank = ranks.get(parts[i] + parts[i + 1], _NO_MERGE)
            if rank < best_rank:
                best_rank, best_idx = rank, i
        if best_idx < 0:
            break
        parts[best_idx : best_idx + 2] = [parts[best_idx] + parts[best_idx + 1]]

    return parts
