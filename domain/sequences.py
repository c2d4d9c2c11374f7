from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any, Callable, Iterable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

__all__ = [
    "Restartable",
    "RestartableSequence",
    "SinglePassSequenceError",
    "ensure_restartable",
    "is_single_pass",
]


class SinglePassSequenceError(TypeError):
    """Raised when a one-shot iterator is given where several traversals are needed."""


@runtime_checkable
class RestartableSequence(Protocol):
    """Anything whose ``__iter__`` hands out a fresh, independent traversal."""

    def __iter__(self) -> Iterator[Any]:
        ...  # pragma: no cover – Protocol stub


class Restartable:
    """Wrap a zero-argument factory so every traversal calls it again.

    >>> numbers = Restartable(lambda: (n * n for n in range(3)))
    >>> list(numbers), list(numbers)
    ([0, 1, 4], [0, 1, 4])
    """

    def __init__(self, factory: Callable[[], Iterable[Any]]) -> None:
        if not callable(factory):
            raise TypeError(f"Restartable expects a callable factory, got {type(factory).__name__}")
        self._factory = factory

    def __iter__(self) -> Iterator[Any]:
        traversal = self._factory()
        if is_single_pass(traversal):
            return traversal
        return iter(traversal)

    def __repr__(self) -> str:
        return f"Restartable({self._factory!r})"


def is_single_pass(source: Any) -> bool:
    """An iterator returns itself from ``iter()`` and can only be walked once."""
    return isinstance(source, Iterator)


def ensure_restartable(source: Any) -> RestartableSequence:
    """Validate that ``source`` can be traversed more than once.

    Lists, tuples, ranges, dict views, :class:`Restartable` and any other
    re-iterable container pass through unchanged. Generators, ``map``/``zip``
    objects, file handles and other iterators are rejected.
    """
    if is_single_pass(source):
        raise SinglePassSequenceError(
            f"{type(source).__name__} is a single-pass iterator; pass a list or "
            f"wrap a factory in Restartable(...) so it can be traversed once per target"
        )
    if not isinstance(source, RestartableSequence):
        raise TypeError(f"{type(source).__name__} object is not iterable")
    return source
