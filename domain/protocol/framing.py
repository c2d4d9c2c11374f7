from __future__ import annotations

import logging
import random
import secrets
import string
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

__all__ = [
    "BASE36_ALPHABET",
    "DELIMITER_LENGTH",
    "FIXED_DELIMITER",
    "FIND_PREFIX",
    "Frame",
    "Record",
    "mint_delimiter",
    "random_base36",
]

BASE36_ALPHABET: str = string.digits + string.ascii_lowercase
DELIMITER_LENGTH: int = 12
FIXED_DELIMITER: str = "#"
FIND_PREFIX: str = "find "


def random_base36(length: int, rng: Optional[random.Random] = None) -> str:
    """Return ``length`` characters drawn uniformly from ``[0-9a-z]``.

    A fresh OS-backed source is used unless ``rng`` is given (tests only).
    """
    if length < 0:
        raise ValueError(f"length must be >= 0, got {length}")
    source = rng if rng is not None else secrets.SystemRandom()
    return "".join(source.choice(BASE36_ALPHABET) for _ in range(length))


def mint_delimiter() -> str:
    return random_base36(DELIMITER_LENGTH)


@dataclass(frozen=True)
class Record:
    """One ``{position},{value}`` line of a frame."""
    position: int
    value: str

    def render(self) -> str:
        return f"{self.position},{self.value}"


@dataclass(frozen=True)
class Frame:
    """A complete delimiter-separated block sent to the oracle for one query.

    Wire layout (``\\n`` joined, trailing newline)::

        {delimiter}
        find {target}
        {delimiter}
        0,{value_0}
        {delimiter}
        1,{value_1}
        ...

    Record order is the traversal order of the source collection. Element
    text containing newlines or the delimiter is emitted as-is.
    """
    delimiter: str
    target: str
    records: Tuple[Record, ...] = field(default_factory=tuple)

    def lines(self) -> Iterator[str]:
        yield self.delimiter
        yield f"{FIND_PREFIX}{self.target}"
        for record in self.records:
            yield self.delimiter
            yield record.render()

    def render(self) -> str:
        parts: List[str] = [f"{self.delimiter}\n{FIND_PREFIX}{self.target}\n"]
        for record in self.records:
            parts.append(f"{self.delimiter}\n{record.render()}\n")
        return "".join(parts)

    def __str__(self) -> str:
        return self.render()

    def __len__(self) -> int:
        return len(self.records)
