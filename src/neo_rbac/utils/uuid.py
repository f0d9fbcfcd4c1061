"""UUID helpers for neo-rbac."""

import time
import uuid


def generate_uuid_v7() -> str:
    """Generate a time-ordered UUIDv7 string.

    Assignment rows are append-only, so time-ordered keys keep the history
    index compact.
    """
    timestamp_ms = int(time.time() * 1000)
    raw = bytearray(timestamp_ms.to_bytes(6, byteorder="big") + uuid.uuid4().bytes[6:])
    raw[6] = (raw[6] & 0x0F) | 0x70  # version 7
    raw[8] = (raw[8] & 0x3F) | 0x80  # RFC 4122 variant
    return str(uuid.UUID(bytes=bytes(raw)))
