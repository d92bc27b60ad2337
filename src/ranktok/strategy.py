"""
Per-call policies deciding which special tokens are recognised while encoding.

A codec carries one fixed special-token table; a strategy narrows it for a
single ``encode`` call. Markers left out of the selection are encoded as
ordinary text.
"""

from collections.abc import Iterable, Mapping
from typing import ClassVar, Final, Literal, overload, override
from abc import ABC, abstractmethod
import logging

from .types import SpecialTokens
from .errors import SpecialTokenError, StrategyError

log = logging.getLogger(__name__)


def _markers_in(text: str, special_toks: Mapping[str, int]) -> set[str]:
    return {seq for seq in special_toks if seq and seq in text}


class SpecialTokenStrategy(ABC):
    """Base class: pick the special tokens to match as literals in one text."""

    name: ClassVar[str]

    @abstractmethod
    def select(self, text: str, special_toks: SpecialTokens) -> SpecialTokens:
        """Return the subset of ``special_toks`` that is active for ``text``."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class AllowAllStrategy(SpecialTokenStrategy):
    """Every configured marker is a special token. This is the codec default."""

    name = "all"

    @override
    def select(self, text: str, special_toks: SpecialTokens) -> SpecialTokens:
        return special_toks


class AllowNoneRaiseStrategy(SpecialTokenStrategy):
    """Reject text containing any configured marker, e.g. untrusted user input."""

    name = "none-raise"

    @override
    def select(self, text: str, special_toks: SpecialTokens) -> SpecialTokens:
        found = _markers_in(text, special_toks)
        if found:
            raise SpecialTokenError(
                "special tokens found in text but not allowed", found_tokens=found
            )
        return {}


class AllowNoneStrategy(SpecialTokenStrategy):
    """Encode every marker as plain text."""

    name = "none"

    @override
    def select(self, text: str, special_toks: SpecialTokens) -> SpecialTokens:
        found = _markers_in(text, special_toks)
        if found:
            log.warning(f"special tokens found in text, encoding them as plain text: {sorted(found)}")
        return {}


class AllowCustomStrategy(SpecialTokenStrategy):
    """Only the markers named in ``allowed_subset`` are special tokens."""

    name = "custom"

    def __init__(self, allowed_subset: Iterable[str]) -> None:
        super().__init__()
        self.allowed_subset = frozenset(allowed_subset)

    @override
    def select(self, text: str, special_toks: SpecialTokens) -> SpecialTokens:
        unknown = self.allowed_subset - special_toks.keys()
        if unknown:
            log.warning(f"allowed special tokens not configured: {sorted(unknown)}")
        return {seq: tok for seq, tok in special_toks.items() if seq in self.allowed_subset}

    @override
    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({sorted(self.allowed_subset)!r})"


StrategyName = Literal["all", "none", "none-raise", "custom"]

_SPECIAL_TOKEN_STRATEGIES: Final[dict[str, type[SpecialTokenStrategy]]] = {
    cls.name: cls
    for cls in (AllowAllStrategy, AllowNoneStrategy, AllowNoneRaiseStrategy, AllowCustomStrategy)
}


def list_strategies() -> list[str]:
    """Return available special token strategy names."""
    return list(_SPECIAL_TOKEN_STRATEGIES)


@overload
def get_strategy(
    name: Literal["all", "none", "none-raise"] = "all",
) -> SpecialTokenStrategy: ...


@overload
def get_strategy(
    name: Literal["custom"], allowed_subset: Iterable[str]
) -> AllowCustomStrategy: ...


def get_strategy(
    name: StrategyName = "all", allowed_subset: Iterable[str] | None = None
) -> SpecialTokenStrategy:
    """
    Create a special token strategy by name.

    :param name: One of :func:`list_strategies`.
    :param allowed_subset: Markers to keep; required for ``"custom"``.
    :raises StrategyError: If ``name`` is unknown, or ``"custom"`` is requested
        without ``allowed_subset``.

    .. code-block:: python

        codec.encode(user_text, get_strategy("none-raise"))
        codec.encode(prompt, get_strategy("custom", allowed_subset={"[INST]", "[/INST]"}))
    """
    cls = _SPECIAL_TOKEN_STRATEGIES.get(name)
    if cls is None:
        raise StrategyError(
            "unknown strategy name",
            invalid_name=name,
            available_strats=list_strategies(),
        )

    if cls is AllowCustomStrategy:
        if allowed_subset is None:
            raise StrategyError("allowed_subset is required for custom strategy")
        return AllowCustomStrategy(allowed_subset)

    return cls()


__all__ = [
    "StrategyName",
    "SpecialTokenStrategy",
    "AllowAllStrategy",
    "AllowNoneStrategy",
    "AllowNoneRaiseStrategy",
    "AllowCustomStrategy",
    "list_strategies",
    "get_strategy",
]
