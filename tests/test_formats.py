"""Unit tests for the flat rank-table and Tekken JSON vocabulary formats."""

import io
import json

import pytest

from ranktok import Vocabulary
from ranktok.errors import TekkenFormatError, VocabLineError, VocabularyError
from ranktok.formats.tekken import parse_tekken
from ranktok.formats.tiktoken import (
    TokenFormat,
    decode_token_text,
    dump_rank_table,
    encode_token_text,
    load_rank_table,
    parse_rank_table,
)

from conftest import make_tekken_doc


# Flat rank table
# ---------------------------------------------------------------------------


def test_text_format_scenario():
    """The three-line text table builds a vocabulary where "ab" is id 5."""
    vocab = load_rank_table("ab 5\na 0\nb 1\n", token_format="text")
    assert vocab.lookup(b"ab") == 5
    assert vocab.lookup(b"a") == 0
    assert vocab.lookup(b"b") == 1


def test_base64_format():
    data = b"YQ== 0\nYg== 1\nYWI= 2\n"
    assert list(parse_rank_table(data)) == [(b"a", 0), (b"b", 1), (b"ab", 2)]


def test_blank_lines_are_skipped():
    data = "\nYQ== 0\n\n   \nYg== 1\n"
    assert list(parse_rank_table(data)) == [(b"a", 0), (b"b", 1)]


def test_missing_rank_reports_line_number():
    with pytest.raises(VocabLineError) as exc:
        list(parse_rank_table(b"YQ== 0\n\nYg==\n"))
    assert exc.value.line_no == 3
    assert "missing rank" in str(exc.value)


def test_non_integer_rank():
    with pytest.raises(VocabLineError) as exc:
        list(parse_rank_table(b"YQ== zero\n"))
    assert exc.value.line_no == 1


def test_negative_rank_is_a_line_error():
    with pytest.raises(VocabLineError):
        list(parse_rank_table(b"YQ== -1\n"))


def test_invalid_base64_token():
    with pytest.raises(VocabLineError) as exc:
        list(parse_rank_table(b"YQ== 0\n!!! 1\n"))
    assert exc.value.line_no == 2


def test_invalid_text_escape():
    with pytest.raises(VocabLineError):
        list(parse_rank_table("a\\q 0\n", token_format="text"))


def test_line_error_is_a_vocabulary_error():
    with pytest.raises(VocabularyError):
        load_rank_table(b"garbage\n")


def test_duplicate_rank_surfaces_at_build():
    with pytest.raises(VocabularyError, match="duplicate rank"):
        load_rank_table(b"YQ== 0\nYg== 0\n")


def test_unknown_token_format():
    """An unknown format name is a vocabulary error, whichever way it is used."""
    with pytest.raises(VocabularyError, match="Unknown token format"):
        list(parse_rank_table(b"YQ== 0\n", token_format="hex"))
    with pytest.raises(VocabularyError, match="Unknown token format"):
        dump_rank_table([(b"a", 0)], token_format="hex")


def test_text_token_escapes():
    """Whitespace, backslash, control and invalid UTF-8 bytes are escaped."""
    assert encode_token_text(b" a\\b\n") == "\\x20a\\\\b\\x0a"
    assert encode_token_text(b"\xff\xc3\xa9") == "\\xffé"
    assert decode_token_text("\\x20a\\\\b\\x0a") == b" a\\b\n"


@pytest.mark.parametrize("token_format", list(TokenFormat))
def test_dump_then_parse_is_lossless(vocab, token_format):
    """Odd bytes survive a dump and re-parse in both token formats."""
    data = dump_rank_table(vocab, token_format)
    assert load_rank_table(data, token_format) == vocab


def test_dump_pairs_sorted_by_rank():
    data = dump_rank_table([(b"b", 1), (b"a", 0)], "text")
    assert data == b"a 0\nb 1\n"


# Tekken JSON
# ---------------------------------------------------------------------------


def test_parse_tekken(tekken_json):
    tekken = parse_tekken(tekken_json)
    assert tekken.config.version == "v3"
    assert tekken.config.default_num_special_tokens == 14
    assert tekken.vocab[0].rank == 0
    assert tekken.vocab[0].raw_bytes == b"\x00"
    assert tekken.multimodal.image_patch_size == 16
    assert tekken.special_tokens == ()


def test_parse_tekken_from_file_object(tekken_json):
    assert parse_tekken(io.BytesIO(tekken_json)) == parse_tekken(tekken_json)
    assert parse_tekken(io.StringIO(tekken_json.decode())) == parse_tekken(tekken_json)


def test_parse_tekken_from_bytearray(tekken_json):
    assert parse_tekken(bytearray(tekken_json)) == parse_tekken(tekken_json)


def test_missing_vocab_key_fails():
    """A document without "vocab" is an error, not an empty vocabulary."""
    doc = make_tekken_doc()
    del doc["vocab"]
    with pytest.raises(TekkenFormatError, match="vocab"):
        parse_tekken(json.dumps(doc))


def test_missing_config_key_fails():
    doc = make_tekken_doc()
    del doc["config"]["version"]
    with pytest.raises(TekkenFormatError) as exc:
        parse_tekken(json.dumps(doc))
    assert exc.value.path == "config"


def test_wrong_field_type_fails():
    doc = make_tekken_doc()
    doc["vocab"][3]["rank"] = "3"
    with pytest.raises(TekkenFormatError) as exc:
        parse_tekken(json.dumps(doc))
    assert exc.value.path == "vocab[3].rank"


def test_boolean_rank_fails():
    doc = make_tekken_doc()
    doc["vocab"][0]["rank"] = True
    with pytest.raises(TekkenFormatError):
        parse_tekken(json.dumps(doc))


def test_invalid_json_fails():
    with pytest.raises(TekkenFormatError, match="invalid JSON"):
        parse_tekken(b'{"config": ')


def test_top_level_must_be_object():
    with pytest.raises(TekkenFormatError):
        parse_tekken("[]")


def test_bad_base64_token_fails():
    doc = make_tekken_doc()
    doc["vocab"][0]["token_bytes"] = "not base64!"
    with pytest.raises(TekkenFormatError, match="base64"):
        parse_tekken(json.dumps(doc))


def test_multimodal_is_optional():
    doc = make_tekken_doc()
    del doc["multimodal"]
    assert parse_tekken(json.dumps(doc)).multimodal is None


def test_special_tokens_array():
    doc = make_tekken_doc(
        special_tokens=[
            {"rank": 0, "token_str": "<unk>", "is_control": True},
            {"rank": 1, "token_str": "<s>", "is_control": True},
        ]
    )
    tekken = parse_tekken(json.dumps(doc))
    assert [(st.rank, st.token_str) for st in tekken.special_tokens] == [(0, "<unk>"), (1, "<s>")]


def test_to_tiktoken_preserves_order(tekken_json):
    tekken = parse_tekken(tekken_json)
    lines = tekken.to_tiktoken().splitlines()
    assert len(lines) == len(tekken.vocab)
    assert lines[0] == b"AA== 0"
    assert lines[-1].endswith(f" {tekken.vocab[-1].rank}".encode())


def test_to_tiktoken_feeds_vocabulary(tekken_json, vocab):
    """Both ingestion formats converge on the same vocabulary."""
    tekken = parse_tekken(tekken_json)
    assert load_rank_table(tekken.to_tiktoken()) == vocab


def test_to_tiktoken_defers_validation():
    """Duplicate ranks convert fine and only fail when built."""
    doc = make_tekken_doc()
    doc["vocab"][1]["rank"] = 0
    tekken = parse_tekken(json.dumps(doc))
    data = tekken.to_tiktoken()
    with pytest.raises(VocabularyError):
        Vocabulary.build(parse_rank_table(data))


def test_inner_vocab_size(tekken_json):
    tekken = parse_tekken(tekken_json)
    assert tekken.inner_vocab_size(14) == len(tekken.vocab)
    assert tekken.inner_vocab_size(20) == len(tekken.vocab) - 6
