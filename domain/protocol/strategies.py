from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .digests import serialize_base64, sha256_base64, stable_hash
from .errors import EncodingError
from .framing import FIXED_DELIMITER, Frame, Record, mint_delimiter

logger = logging.getLogger(__name__)

__all__ = [
    "DelimiterPolicy",
    "EncodingStrategy",
    "encode_element",
    "encode_frame",
    "to_prompt",
]


class EncodingStrategy(Enum):
    """The closed set of element encoders a frame can be built with."""
    LITERAL = "literal"          # str(element)
    STABLE_HASH = "hash"         # unsigned 64-bit stable digest
    CRYPTO_HASH = "sha256"       # base64(sha256(bytes))
    STRUCTURED = "serde"         # base64(msgpack(element))

    def __str__(self):
        return self.value

    @classmethod
    def parse(cls, name: Union[str, "EncodingStrategy"]) -> "EncodingStrategy":
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown encoding strategy '{name}'. Expected one of {[m.value for m in cls]}")


class DelimiterPolicy(Enum):
    DEFAULT = "default"  # whatever the strategy uses by default
    RANDOM = "random"    # fresh base-36 token per frame
    FIXED = "fixed"      # the literal '#'


@dataclass(frozen=True)
class _StrategySpec:
    encode: Callable[[Any], str]
    default_delimiter: DelimiterPolicy


def _encode_literal(value: Any) -> str:
    return str(value)


def _encode_stable_hash(value: Any) -> str:
    return str(stable_hash(value))


# Exactly one entry per EncodingStrategy member.
_STRATEGIES: Dict[EncodingStrategy, _StrategySpec] = {
    EncodingStrategy.LITERAL: _StrategySpec(_encode_literal, DelimiterPolicy.RANDOM),
    EncodingStrategy.STABLE_HASH: _StrategySpec(_encode_stable_hash, DelimiterPolicy.FIXED),
    EncodingStrategy.CRYPTO_HASH: _StrategySpec(sha256_base64, DelimiterPolicy.FIXED),
    EncodingStrategy.STRUCTURED: _StrategySpec(serialize_base64, DelimiterPolicy.RANDOM),
}


def _resolve_delimiter(spec: _StrategySpec, policy: DelimiterPolicy) -> str:
    if policy is DelimiterPolicy.DEFAULT:
        policy = spec.default_delimiter
    if policy is DelimiterPolicy.FIXED:
        return FIXED_DELIMITER
    return mint_delimiter()


def _encode_one(spec: _StrategySpec, strategy: EncodingStrategy, value: Any, position: Optional[int]) -> str:
    """Encode one value; any failure surfaces as :class:`EncodingError` tagged with ``position``."""
    try:
        return spec.encode(value)
    except EncodingError as exc:
        exc.position = position
        if position is not None:
            exc.details.setdefault("position", position)
        raise
    except Exception as exc:
        details = {"type": type(value).__name__, "strategy": strategy.value}
        if position is not None:
            details["position"] = position
        raise EncodingError(
            f"Cannot encode {type(value).__name__} with strategy {strategy.value}: {exc}",
            position=position,
            details=details,
            cause=exc,
        ) from exc


def encode_element(value: Any, strategy: EncodingStrategy = EncodingStrategy.LITERAL) -> str:
    strategy = EncodingStrategy.parse(strategy)
    return _encode_one(_STRATEGIES[strategy], strategy, value, None)


def encode_frame(
    sequence: Iterable[Any],
    target: Any,
    strategy: EncodingStrategy = EncodingStrategy.LITERAL,
    *,
    delimiter: DelimiterPolicy = DelimiterPolicy.DEFAULT,
) -> Frame:
    """Build the frame for ``target`` over one traversal of ``sequence``.

    The sequence is iterated exactly once. If any element (or the target)
    cannot be encoded, :class:`EncodingError` is raised and no frame is
    returned.
    """
    strategy = EncodingStrategy.parse(strategy)
    spec = _STRATEGIES[strategy]
    separator = _resolve_delimiter(spec, delimiter)

    encoded_target = _encode_one(spec, strategy, target, None)
    records: List[Record] = [
        Record(position, _encode_one(spec, strategy, element, position))
        for position, element in enumerate(sequence)
    ]

    logger.debug(
        "Encoded %d records with strategy=%s (delimiter=%s)",
        len(records), strategy.value, "fixed" if separator == FIXED_DELIMITER else "random",
    )
    return Frame(delimiter=separator, target=encoded_target, records=tuple(records))


def to_prompt(
    sequence: Iterable[Any],
    target: Any,
    strategy: EncodingStrategy = EncodingStrategy.LITERAL,
    *,
    delimiter: DelimiterPolicy = DelimiterPolicy.DEFAULT,
) -> str:
    return encode_frame(sequence, target, strategy, delimiter=delimiter).render()
