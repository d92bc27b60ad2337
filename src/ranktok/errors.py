"""Custom exception hierarchy for ranktok tokenization errors."""

import regex as re

from .types import Token


class RankTokError(Exception):
    """Base exception for all ranktok errors."""


class SpecialTokenError(RankTokError):
    """Raised when special token handling fails."""

    def __init__(self, message: str, *, found_tokens: set[str] | None = None) -> None:
        """Initialize with optional found_tokens that get appended to the message."""
        if found_tokens:
            message = f"{message} (found: {', '.join(sorted(found_tokens))})"
        super().__init__(message)
        self.found_tokens = found_tokens


class VocabularyError(RankTokError):
    """Raised when a rank table cannot be turned into a vocabulary."""

    def __init__(
        self,
        message: str,
        *,
        token: bytes | None = None,
        rank: int | None = None,
    ) -> None:
        """Initialize with optional token and rank that get appended to the message."""
        extra = " "
        if token is not None:
            extra += f"(token: {token!r}) "
        if rank is not None:
            extra += f"(rank: {rank}) "
        super().__init__(message + extra)
        self.token = token
        self.rank = rank


class VocabLineError(VocabularyError):
    """Raised when a line of a flat rank table is malformed."""

    def __init__(self, message: str, *, line_no: int, line: str | None = None) -> None:
        extra = f"(line {line_no}"
        if line is not None:
            extra += f": {line!r}"
        super().__init__(f"{message} {extra})")
        self.line_no = line_no
        self.line = line


class TekkenFormatError(RankTokError):
    """Raised when a Tekken JSON document does not have the expected structure."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        if path:
            message = f"{message} (at: {path})"
        super().__init__(message)
        self.path = path


class EncodingError(RankTokError):
    """Raised when a chunk cannot be reduced to vocabulary tokens."""

    def __init__(self, message: str, *, chunk: bytes | None = None) -> None:
        if chunk is not None:
            message = f"{message} (chunk: {chunk!r})"
        super().__init__(message)
        self.chunk = chunk


class UnknownTokenError(RankTokError):
    """Raised when decoding an id that is neither a vocabulary nor a special token."""

    def __init__(self, message: str, *, invalid_tok: Token) -> None:
        super().__init__(f"{message} (invalid token: {invalid_tok})")
        self.invalid_tok = invalid_tok


class DecodingError(RankTokError):
    """Raised when decoded bytes cannot be turned into text."""

    def __init__(self, message: str, *, position: int | None = None) -> None:
        if position is not None:
            message = f"{message} (byte offset: {position})"
        super().__init__(message)
        self.position = position


class ModelLoadError(RankTokError):
    """Raised when a vocabulary file cannot be located or read."""

    def __init__(self, message: str, *, model_path: str | None = None) -> None:
        if model_path:
            message = f"{message} (path: {model_path})"
        super().__init__(message)
        self.model_path = model_path


class EncodingNotSupportedError(RankTokError):
    """Raised when an encoding name is not registered."""

    def __init__(
        self,
        message: str = "encoding not supported",
        *,
        name: str | None = None,
        available: list[str] | None = None,
    ) -> None:
        extra = " "
        if name:
            extra += f"(got {name}) "
        if available:
            extra += f"(available: {available}) "
        super().__init__(message + extra)
        self.name = name
        self.available = available


class ModelNotSupportedError(RankTokError):
    """Raised when a model name cannot be mapped to an encoding."""

    def __init__(self, message: str = "model not supported", *, model: str | None = None) -> None:
        if model:
            message = f"{message} (got {model})"
        super().__init__(message)
        self.model = model


class PatternError(RankTokError):
    """Raised when compiling and/or validating regex patterns."""

    def __init__(
        self,
        message: str,
        *,
        pattern: str | None = None,
        regex_err: re.error | None = None,
    ) -> None:
        """
        Initialize PatternError with pattern details.

        Args:
            message: Error message.
            pattern: The regex pattern that failed.
            regex_err: The underlying regex error from the regex library.
        """
        extra = " "
        if pattern:
            extra += f"(pattern: {pattern!r}) "
        if regex_err:
            extra += f"(reason: {regex_err}) "
        super().__init__(message + extra)
        self.pattern = pattern
        self.regex_err = regex_err


class StrategyError(RankTokError):
    """Raised when strategy operations fail."""

    def __init__(
        self,
        message: str,
        *,
        invalid_name: str | None = None,
        available_strats: list[str] | None = None,
    ) -> None:
        extra = " "
        if invalid_name:
            extra += f"(available: {available_strats}) (got {invalid_name}) "
        super().__init__(message + extra)
        self.invalid_name = invalid_name
        self.available_strats = available_strats
