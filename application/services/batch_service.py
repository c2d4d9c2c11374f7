from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, List

from domain.protocol.strategies import EncodingStrategy
from domain.sequences import ensure_restartable

if TYPE_CHECKING:
    from application.services.search_service import VibeSearchClient

logger = logging.getLogger(__name__)

__all__ = ["find_batch"]


async def find_batch(
    client: "VibeSearchClient",
    sequence: Iterable[Any],
    targets: Iterable[Any],
    *,
    strategy: EncodingStrategy = EncodingStrategy.LITERAL,
) -> List[List[int]]:
    """Search for several targets, one oracle query per target.

    ``sequence`` is traversed again for every target, so it must be
    re-iterable (a list, tuple, range or :class:`~domain.sequences.Restartable`);
    a one-shot iterator raises :class:`~domain.sequences.SinglePassSequenceError`
    before any query is sent. Queries run strictly one after another and the
    result list follows the order of ``targets``. A failed query contributes
    an empty list.
    """
    source = ensure_restartable(sequence)
    strategy = EncodingStrategy.parse(strategy)
    pending = list(targets)

    results: List[List[int]] = []
    for index, target in enumerate(pending):
        positions = await client.find_with(strategy, source, target)
        logger.debug("Batch target %d/%d matched %d positions", index + 1, len(pending), len(positions))
        results.append(positions)
    return results
