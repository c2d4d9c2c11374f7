"""
Frame protocol
──────────────
Turns a collection plus a searched-for element into the line oriented text
frame the oracle understands, and turns the oracle's JSON reply back into
positions.
"""

from .errors import EncodingError, ProtocolError
from .framing import DELIMITER_LENGTH, FIXED_DELIMITER, Frame, Record, mint_delimiter, random_base36
from .digests import deserialize_base64, serialize_base64, sha256_base64, stable_hash
from .strategies import DelimiterPolicy, EncodingStrategy, encode_frame, to_prompt
from .reply import SEARCH_RESPONSE_SCHEMA, ParseResult, ParseStatus, build_response_format, parse_search_reply

__all__ = [
    "DELIMITER_LENGTH",
    "FIXED_DELIMITER",
    "SEARCH_RESPONSE_SCHEMA",
    "DelimiterPolicy",
    "EncodingError",
    "EncodingStrategy",
    "Frame",
    "ParseResult",
    "ParseStatus",
    "ProtocolError",
    "Record",
    "build_response_format",
    "deserialize_base64",
    "encode_frame",
    "mint_delimiter",
    "parse_search_reply",
    "random_base36",
    "serialize_base64",
    "sha256_base64",
    "stable_hash",
    "to_prompt",
]
