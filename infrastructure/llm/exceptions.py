# vibesearch/infrastructure/llm/exceptions.py
"""
Failures raised by LLM transports.

Everything derives from :class:`LLMError`. Errors that come from an HTTP
answer of the provider derive from :class:`LLMProviderError` and carry the
status code and decoded body.
"""
from typing import Any, Dict, Optional


class LLMError(Exception):
    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.details: Dict[str, Any] = dict(details or {})
        self.cause = cause


class LLMConfigurationError(LLMError):
    """The request could not be built (missing key, model, prompt or schema)."""


class LLMTimeoutError(LLMError):
    """No answer within the configured timeout."""


class LLMTransportError(LLMError):
    """The provider could not be reached (DNS, refused connection, TLS)."""


class LLMResponseFormatError(LLMError):
    """The provider answered 2xx with a body that holds no usable completion."""


class LLMProviderError(LLMError):
    """The provider answered with an error status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        provider_response: Any = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        merged = {"status_code": status_code, **(details or {})}
        super().__init__(message, details=merged, cause=cause)
        self.status_code = status_code
        self.provider_response = provider_response


class LLMAuthenticationError(LLMProviderError):
    """401: the API key was rejected."""


class LLMQuotaExceededError(LLMProviderError):
    """402: billing or quota limit reached."""


class LLMRateLimitError(LLMProviderError):
    """429: too many requests; ``retry_after`` is in seconds when the provider sent it."""

    def __init__(self, message: str, *, retry_after: Optional[int] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after
