from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

__all__ = [
    "LLMPort",
    "LLMResponse",
]


class LLMResponse(Dict[str, Any]):
    """Decoded chat completion as handed back by an :class:`LLMPort`.

    Adapters keep whatever the provider sent (``id``, ``usage``, ``model``...)
    and put the assistant message under :attr:`TEXT_KEY`. The search service
    only reads that key.
    """

    TEXT_KEY: str = "text"

    @property
    def text(self) -> str:
        value = self.get(self.TEXT_KEY)
        return value if isinstance(value, str) else ""

    def __repr__(self) -> str:
        return f"LLMResponse({dict.__repr__(self)})"


@runtime_checkable
class LLMPort(Protocol):
    """Transport used by the search service to reach the oracle.

    One call is one chat request. Failures are raised as
    :class:`~infrastructure.llm.exceptions.LLMError` subclasses; an
    implementation never returns a partial or error-shaped response.
    """

    async def call_llm_async(
        self,
        prompt: str,
        *,
        system_prompt: str,
        response_format: Optional[Mapping[str, Any]] = None,
        settings: Optional[Mapping[str, Any]] = None,
    ) -> LLMResponse:
        """Send ``prompt`` (the rendered frame) under ``system_prompt``.

        ``response_format`` is the provider block constraining the reply;
        ``settings`` carries request knobs such as *model*, *temperature*,
        *max_tokens* and *prompt_cache_key*.
        """
        ...  # pragma: no cover
