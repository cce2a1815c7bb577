from __future__ import annotations

from typing import FrozenSet, Iterable, Set


class NotifiedSet:
    """Tokens already alerted on since the stock signature last changed."""

    def __init__(self) -> None:
        self._tokens: Set[str] = set()

    def reset(self) -> None:
        self._tokens.clear()

    def contains(self, token: str) -> bool:
        return token in self._tokens

    def add(self, token: str) -> None:
        self._tokens.add(token)

    def add_all(self, tokens: Iterable[str]) -> None:
        self._tokens.update(tokens)

    def snapshot(self) -> FrozenSet[str]:
        return frozenset(self._tokens)

    def __contains__(self, token: object) -> bool:
        return token in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)


__all__ = ["NotifiedSet"]
