"""Tests for the ``ranktok`` command line."""

import pytest

import ranktok.factory as factory
from ranktok import dump_rank_table
from ranktok.cli import main


@pytest.fixture
def vocab_dir(tmp_path, vocab, tekken_json):
    (tmp_path / "cl100k_base.tiktoken").write_bytes(dump_rank_table(vocab))
    (tmp_path / "tekken.json").write_bytes(tekken_json)
    factory.clear_cache()
    yield tmp_path
    factory.clear_cache()


def test_encode(vocab_dir, vocab, capsys):
    assert main(["encode", "--vocab", str(vocab_dir), "hello world"]) == 0
    out = capsys.readouterr().out
    assert out == f"{vocab.lookup(b'hello')} {vocab.lookup(b' world')}\n"


def test_encode_with_tokens(vocab_dir, vocab, capsys):
    assert main(["encode", "--tokens", "--vocab", str(vocab_dir), "hello world"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines == [f"{vocab.lookup(b'hello')}\t'hello'", f"{vocab.lookup(b' world')}\t' world'"]


def test_encode_by_model(vocab_dir, capsys):
    assert main(["encode", "-m", "mistral-nemo", "--vocab", str(vocab_dir), "<s>"]) == 0
    assert capsys.readouterr().out == "1\n"


def test_count(vocab_dir, capsys):
    assert main(["count", "--vocab", str(vocab_dir), "hello world"]) == 0
    assert capsys.readouterr().out == "2\n"


def test_decode(vocab_dir, vocab, capsys):
    ids = [str(vocab.lookup(b"hello")), str(vocab.lookup(b" world"))]
    assert main(["decode", "--vocab", str(vocab_dir), *ids]) == 0
    assert capsys.readouterr().out == "hello world\n"


def test_special_rejected(vocab_dir, capsys):
    """Errors are reported on stderr with exit code 1."""
    code = main(["encode", "--special", "none-raise", "--vocab", str(vocab_dir), "<|endoftext|>"])
    assert code == 1
    assert "ranktok:" in capsys.readouterr().err


def test_missing_vocab_fails(tmp_path, capsys):
    factory.clear_cache()
    assert main(["count", "--vocab", str(tmp_path), "x"]) == 1
    assert "does not exist" in capsys.readouterr().err


def test_convert_and_list(vocab_dir, capsys):
    dst = vocab_dir / "tekken.tiktoken"
    assert main(["convert", str(vocab_dir / "tekken.json"), str(dst)]) == 0
    assert "wrote" in capsys.readouterr().out
    assert main(["vocab", str(dst)]) == 0
    listing = capsys.readouterr().out
    assert listing.startswith("[0] \\u0000\n")
    assert "] hello\n" in listing


def test_vocab_text_format(tmp_path, capsys):
    path = tmp_path / "tiny.txt"
    path.write_text("ab 5\na 0\nb 1\n")
    assert main(["vocab", "--token-format", "text", str(path)]) == 0
    assert capsys.readouterr().out == "[0] a\n[1] b\n[5] ab\n"
