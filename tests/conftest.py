"""Shared fixtures: a small hand-made rank table and the codecs built on it."""

import base64
import json

import pytest

from ranktok import Codec, TokenPattern, Vocabulary
from ranktok.formats.tekken import parse_tekken
from ranktok.schemes import mistral_tekken_codec

# merges in training order; each one joins two tokens that exist before it
MERGES = [
    b"ll",
    b"he",
    b"hell",
    b"hello",
    b" w",
    b"or",
    b" wor",
    b"ld",
    b" world",
    b"in",
    b"ing",
    b" t",
    b"th",
    b" th",
    b" the",
    b"er",
    b"es",
    b"st",
    b"est",
    b" a",
    b"an",
    b" an",
    b"at",
    b"He",
    b"Hell",
    b"  ",
    b"\n\n",
    b"12",
    b"\xc3\xa9",
]


def make_ranks(offset: int = 0) -> dict[bytes, int]:
    """Base bytes get ids 0..255, merges follow in order."""
    ranks = {bytes([b]): b + offset for b in range(256)}
    for idx, token in enumerate(MERGES):
        ranks[token] = 256 + idx + offset
    return ranks


def make_tekken_doc(**overrides) -> dict:
    """A Tekken document holding the MERGES vocabulary."""
    ranks = make_ranks()
    vocab = []
    for token, rank in sorted(ranks.items(), key=lambda item: item[1]):
        try:
            token_str = token.decode("utf-8")
        except UnicodeDecodeError:
            token_str = None
        vocab.append(
            {
                "rank": rank,
                "token_bytes": base64.b64encode(token).decode("ascii"),
                "token_str": token_str,
            }
        )
    doc = {
        "config": {
            "pattern": TokenPattern.MISTRAL_TEKKEN.value,
            "num_vocab_tokens": len(vocab),
            "default_vocab_size": len(vocab) + 14,
            "default_num_special_tokens": 14,
            "version": "v3",
        },
        "vocab": vocab,
        "multimodal": {"image_patch_size": 16, "max_image_size": 1024},
    }
    doc.update(overrides)
    return doc


# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def ranks() -> dict[bytes, int]:
    return make_ranks()


@pytest.fixture
def vocab(ranks) -> Vocabulary:
    return Vocabulary.from_ranks(ranks)


@pytest.fixture
def codec(vocab) -> Codec:
    """cl100k-style codec over the small vocabulary."""
    return Codec(
        "test_cl100k",
        vocab,
        TokenPattern.CL100K,
        {"<|endoftext|>": 1000, "<|fim_prefix|>": 1001},
    )


@pytest.fixture
def tekken_json() -> bytes:
    return json.dumps(make_tekken_doc()).encode("utf-8")


@pytest.fixture
def mistral(tekken_json) -> Codec:
    return mistral_tekken_codec(parse_tekken(tekken_json))
