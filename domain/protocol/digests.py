# vibesearch/domain/protocol/digests.py
"""
Element digests used by the frame encoders.

* ``stable_hash``       – 64-bit digest, identical across processes and runs.
* ``sha256_base64``     – base64 of the SHA-256 of a byte string.
* ``serialize_base64``  – msgpack then base64; ``deserialize_base64`` reverses it.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import struct
from collections.abc import Hashable
from enum import Enum
from typing import Any

import msgpack
from msgpack.exceptions import UnpackException

from .errors import EncodingError, ProtocolError

logger = logging.getLogger(__name__)

__all__ = [
    "STABLE_HASH_BYTES",
    "canonical_bytes",
    "deserialize_base64",
    "serialize_base64",
    "sha256_base64",
    "stable_hash",
]

STABLE_HASH_BYTES: int = 8
_STABLE_HASH_PERSON: bytes = b"vibesearch.v1"

_BYTES_TYPES = (bytes, bytearray, memoryview)


def _tagged(tag: bytes, payload: bytes) -> bytes:
    return tag + struct.pack(">Q", len(payload)) + payload


def canonical_bytes(value: Any) -> bytes:
    """Type-tagged byte form of a hashable value.

    Values that compare equal map to equal bytes, following Python's numeric
    tower: ``True``, ``1`` and ``1.0`` share the integer form. Text, bytes
    and numbers never share a form (``1``, ``"1"`` and ``b"1"`` all differ).
    """
    if value is None:
        return _tagged(b"n", b"")
    if isinstance(value, bool):
        value = int(value)
    elif isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, Enum):
        return _tagged(b"e", f"{type(value).__qualname__}.{value.name}".encode("utf-8"))
    if isinstance(value, int):
        return _tagged(b"i", str(value).encode("ascii"))
    if isinstance(value, float):
        return _tagged(b"f", value.hex().encode("ascii"))
    if isinstance(value, str):
        return _tagged(b"s", value.encode("utf-8"))
    if isinstance(value, bytes):
        return _tagged(b"y", value)
    if isinstance(value, tuple):
        return _tagged(b"t", b"".join(canonical_bytes(item) for item in value))
    if isinstance(value, frozenset):
        # Set iteration order is not stable, so members are ordered by form.
        return _tagged(b"z", b"".join(sorted(canonical_bytes(item) for item in value)))
    if not isinstance(value, Hashable):
        raise EncodingError(
            f"Value of type {type(value).__name__} is not hashable",
            details={"type": type(value).__name__},
        )
    # Arbitrary hashable objects fall back to their repr.
    return _tagged(b"o", f"{type(value).__module__}.{type(value).__qualname__}:{value!r}".encode("utf-8"))


def stable_hash(value: Any) -> int:
    """Return an unsigned 64-bit digest of ``value``.

    Unlike the builtin ``hash`` this is not salted per process, so a frame
    built today encodes equal elements exactly like one built tomorrow.
    Equal numbers hash alike across ``bool``/``int``/``float`` (``stable_hash(1)
    == stable_hash(1.0)``). Distinct values may still collide (64-bit space).
    """
    digest = hashlib.blake2b(
        canonical_bytes(value),
        digest_size=STABLE_HASH_BYTES,
        person=_STABLE_HASH_PERSON,
    ).digest()
    return int.from_bytes(digest, "big")


def sha256_base64(data: Any) -> str:
    if not isinstance(data, _BYTES_TYPES):
        raise EncodingError(
            f"SHA-256 encoding requires a byte string, got {type(data).__name__}",
            details={"type": type(data).__name__},
        )
    return base64.b64encode(hashlib.sha256(bytes(data)).digest()).decode("ascii")


def serialize_base64(value: Any) -> str:
    try:
        packed = msgpack.packb(value, use_bin_type=True)
    except (TypeError, ValueError, OverflowError) as exc:
        raise EncodingError(
            f"Cannot serialize value of type {type(value).__name__}: {exc}",
            details={"type": type(value).__name__},
            cause=exc,
        ) from exc
    return base64.b64encode(packed).decode("ascii")


def deserialize_base64(text: str) -> Any:
    """Inverse of :func:`serialize_base64`. Arrays come back as lists."""
    try:
        packed = base64.b64decode(text, validate=True)
        return msgpack.unpackb(packed, raw=False)
    except (binascii.Error, ValueError, UnpackException) as exc:
        raise ProtocolError(f"Cannot decode serialized value: {exc}", cause=exc) from exc
