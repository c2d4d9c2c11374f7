# vibesearch/domain/protocol/errors.py
from typing import Any, Dict, Optional


class ProtocolError(Exception):
    """Base exception for frame construction and reply decoding."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message)
        self.details = details or {}
        self.cause = cause


class EncodingError(ProtocolError):
    """Raised when a single element cannot be encoded into a frame record."""
    def __init__(self, message: str, position: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.position = position
