"""Locate and read vocabulary files from disk."""

import logging
import os
from pathlib import Path
from typing import Final

from ._decorators import measure_time
from .errors import ModelLoadError
from .formats.tekken import TekkenModel, parse_tekken
from .formats.tiktoken import TokenFormat, load_rank_table
from .vocab import Vocabulary

log = logging.getLogger(__name__)

VOCAB_DIR_ENV: Final[str] = "RANKTOK_VOCAB_DIR"


def resolve_vocab_path(vocab_file: str, vocab_path: str | os.PathLike | None = None) -> Path:
    """
    Find a vocabulary file.

    An explicit ``vocab_path`` wins; it may name the file itself or a directory
    holding ``vocab_file``. Otherwise ``$RANKTOK_VOCAB_DIR/vocab_file`` is used.

    :raises ModelLoadError: If no existing file is found.
    """
    if vocab_path is not None:
        path = Path(vocab_path)
        if path.is_dir():
            path = path / vocab_file
    else:
        vocab_dir = os.environ.get(VOCAB_DIR_ENV, "").strip()
        if not vocab_dir:
            raise ModelLoadError(
                f"no vocabulary path given and {VOCAB_DIR_ENV} is not set",
                model_path=vocab_file,
            )
        path = Path(vocab_dir) / vocab_file

    if not path.is_file():
        raise ModelLoadError("vocabulary file does not exist", model_path=str(path))
    return path


def read_vocab_bytes(path: str | os.PathLike) -> bytes:
    """Read a vocabulary file, wrapping OS errors in :class:`ModelLoadError`."""
    path = Path(path)
    log.info(f"reading vocabulary from {path}")
    try:
        return path.read_bytes()
    except OSError as e:
        raise ModelLoadError(f"cannot read vocabulary file: {e}", model_path=str(path)) from e


@measure_time
def load_tiktoken_file(
    path: str | os.PathLike, token_format: TokenFormat | str = TokenFormat.BASE64
) -> Vocabulary:
    """Read and build a flat rank-table file such as ``cl100k_base.tiktoken``."""
    return load_rank_table(read_vocab_bytes(path), token_format)


@measure_time
def load_tekken_file(path: str | os.PathLike) -> TekkenModel:
    """Read and decode a Tekken JSON file."""
    return parse_tekken(read_vocab_bytes(path))


def convert_tekken_file(src: str | os.PathLike, dst: str | os.PathLike) -> int:
    """
    Write the flat rank-table form of a Tekken file.

    :returns: Number of vocab entries written.
    """
    tekken = load_tekken_file(src)
    dst = Path(dst)
    dst.parent.mkdir(parents=True, exist_ok=True)
    dst.write_bytes(tekken.to_tiktoken())
    log.info(f"wrote {len(tekken.vocab)} entries to {dst}")
    return len(tekken.vocab)
