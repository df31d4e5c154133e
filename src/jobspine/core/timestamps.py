"""
ULID generation and UTC timestamp helpers.

Job ids and scheduler instance ids are ULIDs: 26 characters, Crockford
base32, sortable by creation time. All instants handled by the scheduler are
timezone-aware UTC; :func:`ensure_utc` normalises anything coming from a
caller or a store row.

STDLIB ONLY - NO PYDANTIC.
"""

import random
import threading
import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def generate_ulid() -> str:
    """
    Generate a ULID-like identifier.

    Format: 26 characters, base32 encoded, time-sortable. Ids generated in
    the same millisecond increment the random part, so they stay strictly
    increasing within a process.
    """
    global _last_ms, _last_random

    with _ulid_lock:
        # 48-bit millisecond timestamp -> 10 chars
        timestamp_ms = int(time.time() * 1000)
        if timestamp_ms <= _last_ms:
            timestamp_ms = _last_ms
            _last_random += 1
            if _last_random > _RANDOM_MAX:
                # random part exhausted, borrow the next millisecond
                timestamp_ms += 1
                _last_random = random.getrandbits(79)
        else:
            # 79 random bits leave headroom for increments -> 16 chars
            _last_random = random.getrandbits(79)
        _last_ms = timestamp_ms
        return _crockford(timestamp_ms, 10) + _crockford(_last_random, 16)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string (UTC)."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string to an aware UTC datetime."""
    if not s:
        return None
    return ensure_utc(datetime.fromisoformat(s))


_CROCKFORD = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_RANDOM_MAX = (1 << 80) - 1

_ulid_lock = threading.Lock()
_last_ms = 0
_last_random = 0


def _crockford(value: int, width: int) -> str:
    """Big-endian Crockford base32, 5 bits per character, left-padded to ``width``."""
    return "".join(_CROCKFORD[(value >> shift) & 0x1F] for shift in range(5 * (width - 1), -1, -5))
