"""Unit tests for the Mistral Tekken codec built from a Tekken document."""

import json
import logging
from dataclasses import replace
from types import MappingProxyType

import pytest

from ranktok import TokenPattern, parse_tekken
from ranktok.errors import SpecialTokenError
from ranktok.schemes import (
    ENCODING_SPECS,
    MISTRAL_SPECIAL_TOKENS,
    mistral_tekken_codec,
    tekken_vocabulary,
)

from conftest import MERGES, make_tekken_doc


def _codec_from(doc):
    return mistral_tekken_codec(parse_tekken(json.dumps(doc)))


# Special tokens and id layout
# ---------------------------------------------------------------------------


def test_bos_marker_then_text(mistral):
    """The BOS marker encodes to id 1 and the text after it is merged as usual."""
    vocab = mistral.vocabulary
    ids = mistral.encode("<s>Hello")
    assert ids[0] == 1
    assert ids[1:] == [vocab.lookup(b"Hell"), vocab.lookup(b"o")]
    assert ids[1:] == mistral.encode("Hello")
    assert mistral.decode(ids) == "<s>Hello"


def test_vocab_ids_follow_reserved_specials(mistral):
    """Vocabulary ids are shifted past the 14 reserved special ids."""
    vocab = mistral.vocabulary
    assert vocab.lookup(b"\x00") == 14
    assert vocab.lookup(MERGES[0]) == 256 + 14
    assert min(tok for _, tok in vocab) == 14
    assert mistral.n_vocab == 256 + len(MERGES) + 14


def test_default_special_tokens(mistral):
    assert dict(mistral.special_tokens) == dict(MISTRAL_SPECIAL_TOKENS)
    assert mistral.eot_token == 2
    assert mistral.encode("[INST]hi[/INST]")[0] == 3
    assert mistral.encode("[INST]hi[/INST]")[-1] == 4


def test_special_tokens_from_file():
    """A special_tokens array in the file replaces the default markers."""
    doc = make_tekken_doc(
        special_tokens=[
            {"rank": 0, "token_str": "<unk>", "is_control": True},
            {"rank": 1, "token_str": "<s>", "is_control": True},
            {"rank": 2, "token_str": "</s>", "is_control": True},
            {"rank": 3, "token_str": "[IMG]", "is_control": True},
        ]
    )
    codec = _codec_from(doc)
    assert codec.encode("[IMG]")[0] == 3
    assert "[INST]" not in codec.special_tokens
    assert codec.vocabulary.lookup(b"\x00") == 14


def test_scheme_special_tokens_are_the_default(tekken_json):
    """Without a special_tokens array the scheme's own markers are used."""
    markers = {"<s>": 1, "[IMG]": 10}
    scheme = replace(ENCODING_SPECS["mistral_tekken"], special_tokens=MappingProxyType(markers))
    codec = scheme.build(tekken_json)
    assert dict(codec.special_tokens) == markers
    assert codec.encode("[IMG]") == [10]
    assert codec.vocabulary.lookup(b"\x00") == 14


def test_offset_grows_with_special_ids():
    """Special ids past the declared count push the vocabulary further up."""
    doc = make_tekken_doc(
        special_tokens=[{"rank": i, "token_str": f"<SPECIAL_{i}>"} for i in range(20)]
    )
    codec = _codec_from(doc)
    assert codec.vocabulary.lookup(b"\x00") == 20


def test_specials_and_vocab_never_share_ids(mistral):
    vocab_ids = {tok for _, tok in mistral.vocabulary}
    assert vocab_ids.isdisjoint(mistral.special_tokens.values())


def test_overlapping_file_specials_are_rejected():
    """Two markers on one id are a configuration error."""
    doc = make_tekken_doc(
        special_tokens=[
            {"rank": 1, "token_str": "<s>"},
            {"rank": 1, "token_str": "<bos>"},
        ]
    )
    with pytest.raises(SpecialTokenError):
        _codec_from(doc)


# Vocabulary size and config
# ---------------------------------------------------------------------------


def test_entries_beyond_vocab_size_are_dropped():
    """Only default_vocab_size minus the special ids are used."""
    doc = make_tekken_doc()
    doc["config"]["default_vocab_size"] = 270 + 14
    tekken = parse_tekken(json.dumps(doc))
    vocab = tekken_vocabulary(tekken, dict(MISTRAL_SPECIAL_TOKENS))
    assert len(vocab) == 270
    assert vocab.lookup(b"hello") is not None
    assert vocab.lookup(b"\xc3\xa9") is None


def test_differing_pattern_logs_warning(caplog):
    doc = make_tekken_doc()
    doc["config"]["pattern"] = TokenPattern.O200K.value
    with caplog.at_level(logging.WARNING, logger="ranktok.schemes"):
        codec = _codec_from(doc)
    assert "pattern differs" in caplog.text
    assert codec.pattern == TokenPattern.MISTRAL_TEKKEN.value


def test_matching_pattern_is_silent(caplog, tekken_json):
    with caplog.at_level(logging.WARNING, logger="ranktok.schemes"):
        mistral_tekken_codec(parse_tekken(tekken_json))
    assert "pattern differs" not in caplog.text


# Splitting
# ---------------------------------------------------------------------------


def test_digits_encode_one_by_one(mistral):
    """Digits are split before merging, so the "12" merge never applies."""
    vocab = mistral.vocabulary
    assert mistral.encode("12") == [vocab.lookup(b"1"), vocab.lookup(b"2")]


def test_spaces_split_before_words(mistral):
    vocab = mistral.vocabulary
    assert mistral.encode("hello  world") == [
        vocab.lookup(b"hello"),
        vocab.lookup(b" "),
        vocab.lookup(b" world"),
    ]
