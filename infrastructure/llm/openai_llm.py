"""
OpenAI LLM Adapter
──────────────────
Thin wrapper around the `/chat/completions` endpoint that conforms to
`LLMPort`. Payload construction and HTTP status mapping live in module
helpers; failures are raised as typed `LLMError`s.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from configs.search_config import VibeSearchConfig
from domain.ports.llm_port import LLMPort, LLMResponse
from infrastructure.llm.exceptions import (
    LLMAuthenticationError,
    LLMConfigurationError,
    LLMError,
    LLMProviderError,
    LLMQuotaExceededError,
    LLMRateLimitError,
    LLMResponseFormatError,
    LLMTimeoutError,
    LLMTransportError,
)

logger = logging.getLogger(__name__)

__all__ = ["OpenAILLMAdapter"]


class OpenAILLMAdapter(LLMPort):
    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #
    def __init__(
        self,
        config: VibeSearchConfig | Mapping[str, Any] | None = None,
        *,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if config is None:
            config = VibeSearchConfig()
        elif not isinstance(config, VibeSearchConfig):
            config = VibeSearchConfig.from_mapping(config)
        self.config: VibeSearchConfig = config

        self.api_key: Optional[str] = api_key or config.resolve_api_key()
        if not self.api_key:
            raise LLMConfigurationError(
                f"OpenAI API key not found in environment variable '{config.api_key_env}' or config",
                details={"api_key_env": config.api_key_env, "model": config.model},
            )

        self.model: str = config.model
        self.base_url: str = config.base_url
        self.timeout: float = config.timeout
        self._transport = transport

        self.call_count: int = 0
        logger.info("OpenAI LLM Adapter ready (model=%s)", self.model)

    # ------------------------------------------------------------------ #
    # LLMPort required methods
    # ------------------------------------------------------------------ #
    async def call_llm_async(
        self,
        prompt: str,
        *,
        system_prompt: str,
        response_format: Optional[Mapping[str, Any]] = None,
        settings: Optional[Mapping[str, Any]] = None,
    ) -> LLMResponse:
        self.call_count += 1
        call_no = self.call_count
        payload = _build_payload(prompt, system_prompt, self.model, response_format, settings or {})
        url = f"{self.base_url}/chat/completions"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=_build_headers(self.api_key),
                transport=self._transport,
            ) as client:
                resp = await client.post(url, json=payload)
        except httpx.TimeoutException as exc:
            logger.error("OpenAI call #%d timed out after %ss", call_no, self.timeout)
            raise LLMTimeoutError(f"Request timed out after {self.timeout}s", cause=exc) from exc
        except httpx.HTTPError as exc:
            logger.error("OpenAI call #%d transport failure: %s", call_no, exc)
            raise LLMTransportError(f"Transport failure calling {url}: {exc}", cause=exc) from exc

        if not resp.is_success:
            raise _http_error(resp, call_no)

        response = _build_llm_response(resp, payload["model"])
        logger.debug("OpenAI call #%d successful for model %s", call_no, payload["model"])
        return response

    # Metrics
    def get_stats(self) -> Dict[str, Any]:
        return {
            "call_count": self.call_count,
            "model": self.model,
            "has_api_key": bool(self.api_key),
            "base_url": self.base_url,
        }


# --------------------------------------------------------------------------- #
# Module‑level utility functions
# --------------------------------------------------------------------------- #
def _build_headers(api_key: str | None) -> Dict[str, str]:
    return {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"} if api_key else {}


def _build_payload(
    prompt: str,
    system_prompt: str,
    model: str,
    response_format: Optional[Mapping[str, Any]],
    settings: Mapping[str, Any],
) -> Dict[str, Any]:
    cfg = {k: v for k, v in settings.items() if v is not None}
    model_name = cfg.pop("model", None) or model

    if not model_name:
        raise LLMConfigurationError("Chat request requires a model name")
    if not system_prompt:
        raise LLMConfigurationError("Chat request requires a system prompt")
    if not isinstance(prompt, str) or not prompt:
        raise LLMConfigurationError("Chat request requires a non-empty user prompt")

    payload: Dict[str, Any] = {
        "model": model_name,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ],
        **cfg,
    }
    if response_format is not None:
        if not isinstance(response_format, Mapping) or "type" not in response_format:
            raise LLMConfigurationError(
                "response_format must be a mapping with a 'type' key",
                details={"response_format": response_format},
            )
        if response_format["type"] == "json_schema":
            schema_block = response_format.get("json_schema") or {}
            if not schema_block.get("name") or not isinstance(schema_block.get("schema"), Mapping):
                raise LLMConfigurationError(
                    "json_schema response_format requires a 'name' and a 'schema' object",
                    details={"response_format": response_format},
                )
        payload["response_format"] = dict(response_format)
    return payload


def _http_error(response: httpx.Response, call_no: int) -> LLMError:
    """Convert HTTP errors to the matching LLM exception."""
    status_code = response.status_code
    try:
        error_data = response.json()
    except ValueError:
        error_data = {"error": {"message": response.text}}

    error_block = error_data.get("error") if isinstance(error_data, dict) else None
    if isinstance(error_block, dict):
        error_message = error_block.get("message", "Unknown error")
    else:
        error_message = str(error_block or "Unknown error")
    context = {"status_code": status_code, "provider_response": error_data}

    if status_code == 401:
        error: LLMError = LLMAuthenticationError(f"Authentication failed: {error_message}", **context)
    elif status_code == 402:
        error = LLMQuotaExceededError(f"Quota exceeded: {error_message}", **context)
    elif status_code == 429:
        retry_after = response.headers.get("retry-after")
        error = LLMRateLimitError(
            f"Rate limit exceeded: {error_message}",
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            **context,
        )
    else:
        kind = "Client error" if 400 <= status_code < 500 else "Server error" if 500 <= status_code < 600 else "HTTP error"
        error = LLMProviderError(f"{kind} ({status_code}): {error_message}", **context)

    logger.error("OpenAI call #%d failed: %s", call_no, error)
    return error


def _extract_content(raw: Dict[str, Any]) -> str:
    choices = raw.get("choices")
    if not isinstance(choices, list) or not choices:
        raise LLMResponseFormatError("Chat completion has no choices", details={"response": raw})
    message = (choices[0] or {}).get("message") or {}
    if message.get("refusal"):
        raise LLMResponseFormatError(f"Model refused the request: {message['refusal']}", details={"response": raw})
    content = message.get("content")
    if not isinstance(content, str):
        raise LLMResponseFormatError("Chat completion message has no text content", details={"response": raw})
    return content


def _build_llm_response(response: httpx.Response, model: str) -> LLMResponse:
    try:
        raw = response.json()
    except (json.JSONDecodeError, ValueError) as exc:
        raise LLMResponseFormatError(f"Provider returned non-JSON body: {exc}", cause=exc) from exc
    if not isinstance(raw, dict):
        raise LLMResponseFormatError("Provider returned a non-object JSON body", details={"response": raw})
    return LLMResponse({**raw, LLMResponse.TEXT_KEY: _extract_content(raw), "model": raw.get("model", model)})
