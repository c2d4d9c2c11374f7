# vibesearch/application/services/search_errors.py
from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple, Type

from domain.protocol.errors import EncodingError, ProtocolError
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


class SearchErrorCode(Enum):
    UNKNOWN_ERROR = "VS_000"
    CONFIGURATION_ERROR = "VS_001"   # request could not be built
    AUTHENTICATION_FAILED = "VS_002"
    RATE_LIMITED = "VS_003"
    QUOTA_EXCEEDED = "VS_004"
    TIMEOUT = "VS_005"
    TRANSPORT_FAILED = "VS_006"      # provider unreachable
    PROVIDER_ERROR = "VS_007"        # provider answered with an error status
    RESPONSE_INVALID = "VS_008"      # reply missing, not JSON, or off-schema
    ENCODING_FAILED = "VS_009"       # an element could not be encoded into the frame

    def __str__(self):
        return self.value


class QueryError(Exception):
    """Internal failure of one search query.

    The public façade logs it and answers with an empty result instead.
    """
    def __init__(self, code: SearchErrorCode, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"[{code.value}] {message}")
        self.code = code
        self.message = message
        self.cause = cause


# Ordered most specific first; classify_error returns the first match.
ERROR_CODE_TABLE: Tuple[Tuple[Type[BaseException], SearchErrorCode], ...] = (
    (EncodingError, SearchErrorCode.ENCODING_FAILED),
    (ProtocolError, SearchErrorCode.RESPONSE_INVALID),
    (LLMConfigurationError, SearchErrorCode.CONFIGURATION_ERROR),
    (LLMAuthenticationError, SearchErrorCode.AUTHENTICATION_FAILED),
    (LLMRateLimitError, SearchErrorCode.RATE_LIMITED),
    (LLMQuotaExceededError, SearchErrorCode.QUOTA_EXCEEDED),
    (LLMTimeoutError, SearchErrorCode.TIMEOUT),
    (LLMTransportError, SearchErrorCode.TRANSPORT_FAILED),
    (LLMProviderError, SearchErrorCode.PROVIDER_ERROR),
    (LLMResponseFormatError, SearchErrorCode.RESPONSE_INVALID),
    (LLMError, SearchErrorCode.UNKNOWN_ERROR),
)


def classify_error(exc: BaseException) -> SearchErrorCode:
    if isinstance(exc, QueryError):
        return exc.code
    for exc_type, code in ERROR_CODE_TABLE:
        if isinstance(exc, exc_type):
            return code
    return SearchErrorCode.UNKNOWN_ERROR


def to_query_error(exc: BaseException) -> QueryError:
    if isinstance(exc, QueryError):
        return exc
    return QueryError(classify_error(exc), str(exc) or type(exc).__name__, cause=exc)
