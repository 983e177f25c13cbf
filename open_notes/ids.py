"""
Identifier helpers.

Note ids use the ULID layout: 48-bit millisecond timestamp followed by
80 bits of randomness, Crockford base32 encoded into 26 characters, so that
ids sort lexically in creation order.
"""

from __future__ import annotations

import secrets
import threading
import time
import uuid

_CROCKFORD = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_RANDOM_BITS = 80
_MAX_TIMESTAMP = (1 << 48) - 1

_id_lock = threading.Lock()
_last_timestamp = -1
_last_random = 0


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def _encode(value: int, length: int) -> str:
    chars = []
    for _ in range(length):
        chars.append(_CROCKFORD[value & 0x1F])
        value >>= 5
    return "".join(reversed(chars))


def generate_ulid(timestamp_ms: int) -> str:
    """Generate a ULID for the given timestamp.

    Ids created within the same millisecond increment the random component
    instead of drawing a new one, so they stay strictly increasing.

    Raises:
        ValueError: If the timestamp does not fit in 48 bits.
    """
    global _last_timestamp, _last_random

    if timestamp_ms < 0 or timestamp_ms > _MAX_TIMESTAMP:
        raise ValueError(f"Timestamp out of range for ULID: {timestamp_ms}")

    with _id_lock:
        if timestamp_ms == _last_timestamp:
            _last_random = (_last_random + 1) & ((1 << _RANDOM_BITS) - 1)
        else:
            _last_timestamp = timestamp_ms
            _last_random = secrets.randbits(_RANDOM_BITS)
        randomness = _last_random

    return _encode(timestamp_ms, 10) + _encode(randomness, 16)


def short_random() -> str:
    return uuid.uuid4().hex[:9]


def temporary_note_id(timestamp_ms: int) -> str:
    return f"temp-{timestamp_ms}-{short_random()}"


def category_id(timestamp_ms: int) -> str:
    return f"cat-{timestamp_ms}-{short_random()}"


def enrichment_block_id(timestamp_ms: int) -> str:
    return f"enrich-{timestamp_ms}-{short_random()[:6]}"
