"""Deterministic trace and span identifiers derived from GitHub numeric ids.

GitHub run and job ids are unsigned 64-bit integers. They are encoded as
fixed-width big-endian byte strings:

    Span ID:  8 bytes, the id itself.
    Trace ID: 16 bytes, the run id left-padded with zero bytes.

Reading the decimal digits of an id as if they were hex is NOT used: any id
with more digits than the target width would be truncated or reinterpreted
and distinct runs would collide.

Design Invariant:
    The encoding is an immutable contract. Changing it changes the ids of
    every trace emitted so far.
"""
from __future__ import annotations

from ..errors import InvalidIdentifier

SPAN_ID_BYTES = 8
TRACE_ID_BYTES = 16
MAX_ID = 2**64 - 1

__all__ = [
    "SPAN_ID_BYTES",
    "TRACE_ID_BYTES",
    "MAX_ID",
    "span_id_of",
    "trace_id_of",
    "span_id_int",
    "trace_id_int",
    "to_hex",
]


def _check(entity_id: int) -> int:
    # bool is an int subclass; True would silently encode as 1.
    if isinstance(entity_id, bool) or not isinstance(entity_id, int):
        raise InvalidIdentifier(entity_id, "not an integer")
    if entity_id == 0:
        raise InvalidIdentifier(entity_id)
    if entity_id < 0 or entity_id > MAX_ID:
        raise InvalidIdentifier(entity_id, "outside the unsigned 64-bit range")
    return entity_id


def span_id_of(entity_id: int) -> bytes:
    """Encode a job or run id as an 8-byte span id.

    Raises:
        InvalidIdentifier: For 0 (the reserved invalid span id), negative ids
            and ids wider than 64 bits.
    """
    return _check(entity_id).to_bytes(SPAN_ID_BYTES, "big")


def trace_id_of(run_id: int) -> bytes:
    """Encode a run id as a 16-byte trace id (zero-padded on the left)."""
    return _check(run_id).to_bytes(TRACE_ID_BYTES, "big")


def span_id_int(span_id: bytes) -> int:
    """Integer form of a span id, as the OpenTelemetry SDK expects it."""
    return int.from_bytes(span_id, "big")


def trace_id_int(trace_id: bytes) -> int:
    return int.from_bytes(trace_id, "big")


def to_hex(identifier: bytes) -> str:
    """Lowercase hex rendering used in logs and by trace viewers."""
    return identifier.hex()
