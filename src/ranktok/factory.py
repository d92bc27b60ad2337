"""Factory functions for looking up codecs by encoding or model name."""

import logging
import os
import threading
from typing import Final, Literal

from ._decorators import measure_time
from .codec import Codec
from .errors import EncodingNotSupportedError, ModelNotSupportedError
from .load import read_vocab_bytes, resolve_vocab_path
from .schemes import ENCODING_SPECS, EncodingSpec
from .vocab import Lazy

log = logging.getLogger(__name__)


EncodingName = Literal[
    "gpt2",
    "r50k_base",
    "p50k_base",
    "p50k_edit",
    "cl100k_base",
    "o200k_base",
    "mistral_tekken",
]

MODEL_TO_ENCODING: Final[dict[str, str]] = {
    # chat
    "o1-preview": "o200k_base",
    "o1-mini": "o200k_base",
    "gpt-4o": "o200k_base",
    "gpt-4": "cl100k_base",
    "gpt-3.5": "cl100k_base",
    "gpt-3.5-turbo": "cl100k_base",
    "gpt-35-turbo": "cl100k_base",
    # embeddings
    "text-embedding-ada-002": "cl100k_base",
    # text and code
    "text-davinci-003": "p50k_base",
    "text-davinci-002": "p50k_base",
    "code-davinci-002": "p50k_base",
    "code-davinci-001": "p50k_base",
    "code-cushman-002": "p50k_base",
    "code-cushman-001": "p50k_base",
    "davinci-codex": "p50k_base",
    "cushman-codex": "p50k_base",
    "text-davinci-001": "r50k_base",
    "text-curie-001": "r50k_base",
    "text-babbage-001": "r50k_base",
    "text-ada-001": "r50k_base",
    "davinci": "r50k_base",
    "curie": "r50k_base",
    "babbage": "r50k_base",
    "ada": "r50k_base",
    # edit
    "text-davinci-edit-001": "p50k_edit",
    "code-davinci-edit-001": "p50k_edit",
    # old embeddings
    "text-similarity-davinci-001": "r50k_base",
    "text-similarity-curie-001": "r50k_base",
    "text-similarity-babbage-001": "r50k_base",
    "text-similarity-ada-001": "r50k_base",
    "text-search-davinci-doc-001": "r50k_base",
    "text-search-curie-doc-001": "r50k_base",
    "text-search-ada-doc-001": "r50k_base",
    "text-search-babbage-doc-001": "r50k_base",
    "code-search-babbage-code-001": "r50k_base",
    "code-search-ada-code-001": "r50k_base",
    # open source
    "gpt2": "gpt2",
    # mistral
    "mistral_tekken": "mistral_tekken",
    "mistral-nemo": "mistral_tekken",
    "open-mistral-nemo": "mistral_tekken",
}

MODEL_PREFIX_TO_ENCODING: Final[dict[str, str]] = {
    "o1-": "o200k_base",
    "gpt-4o-": "o200k_base",
    "gpt-4-": "cl100k_base",
    "gpt-3.5-turbo-": "cl100k_base",
    "gpt-35-turbo-": "cl100k_base",
    "ft:gpt-4o": "o200k_base",
    "ft:gpt-4": "cl100k_base",
    "ft:gpt-3.5-turbo": "cl100k_base",
    "ft:davinci-002": "cl100k_base",
    "ft:babbage-002": "cl100k_base",
    "mistral-nemo-": "mistral_tekken",
    "open-mistral-nemo-": "mistral_tekken",
}

# (encoding name, resolved vocab path) -> codec built at most once
_codec_cache: dict[tuple[str, str], Lazy[Codec]] = {}
_codec_cache_lock = threading.Lock()


def list_encodings() -> list[str]:
    """Return names of all built-in encodings."""
    return list(ENCODING_SPECS)


def list_models() -> list[str]:
    """Return model names with an exact encoding mapping."""
    return list(MODEL_TO_ENCODING)


def get_encoding_spec(name: str) -> EncodingSpec:
    """
    Return the scheme description of a built-in encoding.

    :raises EncodingNotSupportedError: If ``name`` is not registered.
    """
    try:
        return ENCODING_SPECS[name]
    except KeyError:
        raise EncodingNotSupportedError(name=name, available=list_encodings()) from None


def encoding_name_for_model(model: str) -> str:
    """
    Map a model name to its encoding name.

    Exact names are looked up first, then the longest matching prefix, which
    covers dated snapshots and fine-tuned models.

    :raises ModelNotSupportedError: If nothing matches.
    """
    if model in MODEL_TO_ENCODING:
        return MODEL_TO_ENCODING[model]

    for prefix in sorted(MODEL_PREFIX_TO_ENCODING, key=len, reverse=True):
        if model.startswith(prefix):
            return MODEL_PREFIX_TO_ENCODING[prefix]

    raise ModelNotSupportedError(model=model)


def get_encoding(name: EncodingName | str, vocab_path: str | os.PathLike | None = None) -> Codec:
    """
    Return the codec of a built-in encoding.

    The vocabulary file is read and built on first request only; later calls
    for the same encoding and file return the same codec, also when the
    first requests race on several threads.

    :param name: Encoding name, see :func:`list_encodings`.
    :param vocab_path: Vocabulary file, or a directory containing it. Defaults
        to ``$RANKTOK_VOCAB_DIR``.
    :raises EncodingNotSupportedError: If ``name`` is not registered.
    :raises ModelLoadError: If the vocabulary file cannot be found or read.

    .. code-block:: python

        enc = get_encoding("cl100k_base", "vocab/")
        ids = enc.encode("hello world")
    """
    spec = get_encoding_spec(name)
    path = resolve_vocab_path(spec.vocab_file, vocab_path)
    key = (spec.name, str(path.resolve()))

    with _codec_cache_lock:
        lazy = _codec_cache.get(key)
        if lazy is None:
            lazy = Lazy(lambda: _build_codec(spec, path))
            _codec_cache[key] = lazy

    # built outside the registry lock so unrelated encodings load in parallel
    return lazy.get()


def encoding_for_model(model: str, vocab_path: str | os.PathLike | None = None) -> Codec:
    """Return the codec used by ``model``; see :func:`encoding_name_for_model`."""
    return get_encoding(encoding_name_for_model(model), vocab_path)


def clear_cache() -> None:
    """Forget every codec built by :func:`get_encoding`."""
    with _codec_cache_lock:
        _codec_cache.clear()


@measure_time
def _build_codec(spec: EncodingSpec, path) -> Codec:
    log.info(f"building {spec.name} from {path}")
    return spec.build(read_vocab_bytes(path))
