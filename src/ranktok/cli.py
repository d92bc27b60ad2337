"""Command line interface: ``ranktok encode|decode|count|convert|vocab``."""

import argparse
import logging
import sys

from .codec import Codec
from .errors import RankTokError
from .factory import encoding_for_model, get_encoding, list_encodings
from .load import convert_tekken_file, load_tiktoken_file
from .strategy import get_strategy, list_strategies

log = logging.getLogger(__name__)


def _read_text(args: argparse.Namespace) -> str:
    if args.text is not None:
        return args.text
    return sys.stdin.read()


def _codec(args: argparse.Namespace) -> Codec:
    if args.model:
        return encoding_for_model(args.model, args.vocab)
    return get_encoding(args.encoding, args.vocab)


def _cmd_encode(args: argparse.Namespace) -> None:
    codec = _codec(args)
    strategy = get_strategy(args.special)
    text = _read_text(args)
    if args.tokens:
        ids, pieces = codec.encode_with_tokens(text, strategy)
        for tok, piece in zip(ids, pieces, strict=True):
            print(f"{tok}\t{piece!r}")
    else:
        print(" ".join(str(tok) for tok in codec.encode(text, strategy)))


def _cmd_count(args: argparse.Namespace) -> None:
    codec = _codec(args)
    print(len(codec.encode(_read_text(args), get_strategy(args.special))))


def _cmd_decode(args: argparse.Namespace) -> None:
    codec = _codec(args)
    ids = args.ids or [int(tok) for tok in sys.stdin.read().split()]
    sys.stdout.write(codec.decode(ids, errors=args.errors))
    sys.stdout.write("\n")


def _cmd_convert(args: argparse.Namespace) -> None:
    n = convert_tekken_file(args.src, args.dst)
    print(f"wrote {n} entries to {args.dst}")


def _cmd_vocab(args: argparse.Namespace) -> None:
    vocab = load_tiktoken_file(args.path, args.token_format)
    sys.stdout.write(vocab.dump_listing())


def _add_codec_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "-e",
        "--encoding",
        default="cl100k_base",
        choices=list_encodings(),
        help="Encoding name (default: cl100k_base).",
    )
    group.add_argument("-m", "--model", default=None, help="Pick the encoding by model name.")
    parser.add_argument(
        "--vocab",
        default=None,
        help="Vocabulary file or directory (default: $RANKTOK_VOCAB_DIR).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ranktok", description="Byte pair encoding with tiktoken and Tekken vocabularies."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress at INFO level.")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, func, help_text in (
        ("encode", _cmd_encode, "Encode text to token ids."),
        ("count", _cmd_count, "Count the tokens of a text."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        _add_codec_args(cmd)
        cmd.add_argument(
            "--special",
            default="all",
            choices=[s for s in list_strategies() if s != "custom"],
            help="Special token handling (default: all).",
        )
        cmd.add_argument("text", nargs="?", default=None, help="Text (default: stdin).")
        cmd.set_defaults(func=func)
    sub.choices["encode"].add_argument(
        "--tokens", action="store_true", help="Print every id next to its token text."
    )

    decode = sub.add_parser("decode", help="Decode token ids to text.")
    _add_codec_args(decode)
    decode.add_argument(
        "--errors",
        default="replace",
        choices=["replace", "strict"],
        help="How to treat bytes that are not valid UTF-8 (default: replace).",
    )
    decode.add_argument("ids", nargs="*", type=int, help="Token ids (default: stdin).")
    decode.set_defaults(func=_cmd_decode)

    convert = sub.add_parser("convert", help="Convert a Tekken JSON file to a .tiktoken file.")
    convert.add_argument("src", help="Tekken JSON file.")
    convert.add_argument("dst", help="Output rank-table file.")
    convert.set_defaults(func=_cmd_convert)

    vocab = sub.add_parser("vocab", help="List the tokens of a rank-table file.")
    vocab.add_argument("path", help="Rank-table file.")
    vocab.add_argument(
        "--token-format",
        default="base64",
        choices=["base64", "text"],
        help="How tokens are spelled in the file (default: base64).",
    )
    vocab.set_defaults(func=_cmd_vocab)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        args.func(args)
    except RankTokError as e:
        print(f"ranktok: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
