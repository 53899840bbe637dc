"""Identifiers for account entities and key material."""

import secrets
import time
from typing import NewType
from uuid import UUID

# Opaque, assigned by the persistence layer on first insert
UserId = NewType("UserId", str)

# Key identifier, unique and time-sortable
Kid = NewType("Kid", str)


def new_kid() -> Kid:
    """Generate a key identifier in UUIDv7 layout.

    The leading 48 bits carry the Unix time in milliseconds, so kids sort
    by creation time; the remaining bits are random.
    """
    millis = time.time_ns() // 1_000_000
    value = (millis & 0xFFFF_FFFF_FFFF) << 80
    value |= int.from_bytes(secrets.token_bytes(10), "big")
    # version 7
    value = (value & ~(0xF << 76)) | (0x7 << 76)
    # RFC 4122 variant
    value = (value & ~(0x3 << 62)) | (0x2 << 62)
    return Kid(str(UUID(int=value)))
