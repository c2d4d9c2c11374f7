"""
Search service
──────────────
`VibeSearchClient` is the query façade: it encodes a collection into a frame,
sends the frame to the oracle in a single chat request constrained to the
``{"result": [...]}`` schema, and hands back the matching positions.

Failures never reach the caller of :meth:`VibeSearchClient.query` or the
``find*`` helpers; they are logged and reported as "no matches" (``[]``).
:meth:`VibeSearchClient.query_checked` and :meth:`VibeSearchClient.encode_checked`
expose the underlying :class:`QueryError` / :class:`EncodingError` for callers
that need to tell the two apart.
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
import pathlib
from typing import Any, Dict, Iterable, List, Optional

import httpx

from application.services import batch_service
from application.services.search_errors import QueryError, SearchErrorCode, to_query_error
from configs.search_config import VibeSearchConfig
from domain.ports.llm_port import LLMPort, LLMResponse
from domain.protocol.framing import Frame
from domain.protocol.reply import build_response_format, parse_search_reply
from domain.protocol.strategies import DelimiterPolicy, EncodingStrategy, encode_frame
from infrastructure.llm.openai_llm import OpenAILLMAdapter

logger = logging.getLogger(__name__)

__all__ = ["SYSTEM_PROMPT", "PROMPT_CACHE_KEY", "VibeSearchClient"]

SYSTEM_PROMPT: str = (
    "You are a array search tool. "
    "Find the index of given element, in given array. "
    "Data given in format: \n"
    "{elements_separator}<newline>\n"
    "find {searching_element}<newline>\n"
    "{element_separator}<newline>{index},{element}<newline>..."
)

PROMPT_CACHE_KEY: str = "vibesearch-" + hashlib.sha256(SYSTEM_PROMPT.encode("utf-8")).hexdigest()[:16]


class VibeSearchClient:
    """Finds positions of an element in a collection by asking an LLM."""

    def __init__(self, transport: LLMPort, config: Optional[VibeSearchConfig] = None) -> None:
        self.transport = transport
        self.config = config or VibeSearchConfig()
        self.response_format: Dict[str, Any] = build_response_format(strict=True)
        self.query_count: int = 0
        self.failure_count: int = 0

    # ------------------------------------------------------------------ #
    # Construction helpers
    # ------------------------------------------------------------------ #
    @classmethod
    def from_api_key(
        cls,
        api_key: str,
        config: Optional[VibeSearchConfig] = None,
        *,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "VibeSearchClient":
        config = (config or VibeSearchConfig()).with_api_key(api_key)
        return cls(OpenAILLMAdapter(config, transport=http_transport), config)

    @classmethod
    def from_env(
        cls,
        config: Optional[VibeSearchConfig] = None,
        *,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "VibeSearchClient":
        """Build a client whose key comes from ``config.api_key_env``.

        Raises :class:`~infrastructure.llm.exceptions.LLMConfigurationError`
        when the variable is unset.
        """
        config = config or VibeSearchConfig()
        return cls(OpenAILLMAdapter(config, transport=http_transport), config)

    @classmethod
    def from_config_file(
        cls,
        path: str | pathlib.Path,
        *,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "VibeSearchClient":
        return cls.from_env(VibeSearchConfig.from_yaml(path), http_transport=http_transport)

    # ------------------------------------------------------------------ #
    # Query façade
    # ------------------------------------------------------------------ #
    def _request_settings(self) -> Dict[str, Any]:
        settings = self.config.to_request_settings()
        if self.config.use_caching:
            settings["prompt_cache_key"] = PROMPT_CACHE_KEY
        return settings

    async def query_checked(self, prompt: str) -> List[int]:
        """Send one frame and return the oracle's positions, raising :class:`QueryError` on failure."""
        self.query_count += 1
        try:
            response = await self.transport.call_llm_async(
                prompt,
                system_prompt=SYSTEM_PROMPT,
                response_format=self.response_format,
                settings=self._request_settings(),
            )
        except Exception as exc:
            raise to_query_error(exc) from exc

        try:
            parsed = parse_search_reply(response.get(LLMResponse.TEXT_KEY))
        except Exception as exc:
            raise QueryError(SearchErrorCode.RESPONSE_INVALID, f"Unreadable search reply: {exc}", cause=exc) from exc
        if not parsed.is_success:
            raise QueryError(
                SearchErrorCode.RESPONSE_INVALID,
                f"Unusable search reply ({parsed.status.value}): {parsed.error_message}",
            )
        return parsed.positions

    async def query(self, prompt: str) -> List[int]:
        """Send one frame; any failure is logged and answered with ``[]``."""
        try:
            return await self.query_checked(prompt)
        except QueryError as exc:
            self._record_failure(exc)
            return []

    def query_sync(self, prompt: str) -> List[int]:
        return asyncio.run(self.query(prompt))

    # ------------------------------------------------------------------ #
    # Encoding + search
    # ------------------------------------------------------------------ #
    def encode_checked(
        self,
        sequence: Iterable[Any],
        target: Any,
        strategy: EncodingStrategy = EncodingStrategy.LITERAL,
        *,
        delimiter: DelimiterPolicy = DelimiterPolicy.DEFAULT,
    ) -> Frame:
        return encode_frame(sequence, target, strategy, delimiter=delimiter)

    async def find_with(
        self,
        strategy: EncodingStrategy,
        sequence: Iterable[Any],
        target: Any,
        *,
        delimiter: DelimiterPolicy = DelimiterPolicy.DEFAULT,
    ) -> List[int]:
        strategy = EncodingStrategy.parse(strategy)
        try:
            frame = self.encode_checked(sequence, target, strategy, delimiter=delimiter)
        except Exception as exc:
            # also covers errors raised while traversing the caller's collection
            self._record_failure(to_query_error(exc))
            return []
        return await self.query(frame.render())

    async def find(self, sequence: Iterable[Any], target: Any) -> List[int]:
        """Search by each element's ``str()`` rendering."""
        return await self.find_with(EncodingStrategy.LITERAL, sequence, target)

    async def find_hash(
        self, sequence: Iterable[Any], target: Any, *, delimiter: DelimiterPolicy = DelimiterPolicy.DEFAULT
    ) -> List[int]:
        """Search by stable 64-bit digests; raw values never reach the oracle."""
        return await self.find_with(EncodingStrategy.STABLE_HASH, sequence, target, delimiter=delimiter)

    async def find_sha256(
        self, sequence: Iterable[bytes], target: bytes, *, delimiter: DelimiterPolicy = DelimiterPolicy.DEFAULT
    ) -> List[int]:
        """Search byte strings by their base64 SHA-256 digests."""
        return await self.find_with(EncodingStrategy.CRYPTO_HASH, sequence, target, delimiter=delimiter)

    async def find_serde(self, sequence: Iterable[Any], target: Any) -> List[int]:
        """Search structured values by their base64 msgpack encoding."""
        return await self.find_with(EncodingStrategy.STRUCTURED, sequence, target)

    async def find_batch(
        self,
        sequence: Iterable[Any],
        targets: Iterable[Any],
        *,
        strategy: EncodingStrategy = EncodingStrategy.LITERAL,
    ) -> List[List[int]]:
        return await batch_service.find_batch(self, sequence, targets, strategy=strategy)

    def find_sync(
        self,
        sequence: Iterable[Any],
        target: Any,
        strategy: EncodingStrategy = EncodingStrategy.LITERAL,
    ) -> List[int]:
        return asyncio.run(self.find_with(EncodingStrategy.parse(strategy), sequence, target))

    # ------------------------------------------------------------------ #
    # Diagnostics
    # ------------------------------------------------------------------ #
    def _record_failure(self, exc: QueryError) -> None:
        self.failure_count += 1
        logger.warning(
            "Search query failed (%s %s); answering with no matches: %s",
            exc.code.value, exc.code.name, exc.message,
            exc_info=exc.cause if logger.isEnabledFor(logging.DEBUG) else None,
        )

    def get_stats(self) -> Dict[str, Any]:
        return {
            "query_count": self.query_count,
            "failure_count": self.failure_count,
            "model": self.config.model,
            "use_caching": self.config.use_caching,
        }
