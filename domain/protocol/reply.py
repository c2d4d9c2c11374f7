# vibesearch/domain/protocol/reply.py
"""
Search reply parsing

The oracle is constrained to answer with ``{"result": [<non-negative int>, ...]}``.
This module owns that schema, the ``response_format`` block that asks the
provider to enforce it, and the strict parser that turns the reply text into
positions.
"""
from __future__ import annotations

import copy
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

logger = logging.getLogger(__name__)

__all__ = [
    "RESPONSE_FORMAT_NAME",
    "SEARCH_RESPONSE_SCHEMA",
    "ParseResult",
    "ParseStatus",
    "build_response_format",
    "parse_search_reply",
]

RESPONSE_FORMAT_NAME: str = "search"

SEARCH_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "result": {
            "type": "array",
            "items": {
                "type": "integer",
                "minimum": 0,
            },
        }
    },
    "required": ["result"],
    "additionalProperties": False,
}

_VALIDATOR = Draft7Validator(SEARCH_RESPONSE_SCHEMA)
_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class ParseStatus(Enum):
    """Status of parsing attempt"""
    JSON_SUCCESS = "json_success"
    EMPTY_RESPONSE = "empty_response"
    PARSE_FAILED = "parse_failed"
    SCHEMA_VIOLATION = "schema_violation"


@dataclass
class ParseResult:
    """Result of parsing attempt"""
    positions: List[int]
    status: ParseStatus
    raw_response: str
    warnings: List[str] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.status is ParseStatus.JSON_SUCCESS

    @property
    def error_message(self) -> Optional[str]:
        if self.is_success:
            return None
        return "; ".join(self.warnings) or self.status.value


def build_response_format(strict: bool = True) -> Dict[str, Any]:
    """``response_format`` payload for an OpenAI chat-completions request."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": RESPONSE_FORMAT_NAME,
            "schema": copy.deepcopy(SEARCH_RESPONSE_SCHEMA),
            "strict": strict,
        },
    }


def _strip_fences(text: str) -> str:
    match = _FENCE_RE.match(text)
    return match.group(1) if match else text


def parse_search_reply(raw_response: Any) -> ParseResult:
    """Parse the oracle's reply into positions.

    Order and duplicates are kept exactly as the oracle returned them.
    """
    if raw_response is not None and not isinstance(raw_response, str):
        return ParseResult(
            [], ParseStatus.PARSE_FAILED, repr(raw_response),
            [f"Reply text must be a string, got {type(raw_response).__name__}"],
        )
    raw = raw_response or ""
    if not raw.strip():
        return ParseResult([], ParseStatus.EMPTY_RESPONSE, raw, ["Empty LLM response"])

    try:
        data = json.loads(_strip_fences(raw.strip()))
    except (json.JSONDecodeError, ValueError) as exc:
        return ParseResult([], ParseStatus.PARSE_FAILED, raw, [f"Invalid JSON: {exc}"])
    except RecursionError:
        return ParseResult([], ParseStatus.PARSE_FAILED, raw, ["Invalid JSON: nesting too deep"])

    violations = sorted(_VALIDATOR.iter_errors(data), key=lambda e: [str(p) for p in e.path])
    if violations:
        warnings = [
            f"{'/'.join(str(p) for p in v.path) or '<root>'}: {v.message}" for v in violations
        ]
        return ParseResult([], ParseStatus.SCHEMA_VIOLATION, raw, warnings)

    positions = [int(value) for value in data["result"]]
    logger.debug("Parsed %d positions from reply", len(positions))
    return ParseResult(positions, ParseStatus.JSON_SUCCESS, raw)
