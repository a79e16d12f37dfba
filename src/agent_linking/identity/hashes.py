"""Typed 39-byte hashes: 3-byte type prefix, 32-byte core, 4-byte location.

String form is ``"u"`` followed by the unpadded base64url encoding of all
39 bytes, so every hash type has a recognisable leading tag
(``uhCAk`` for agents, ``uhCkk`` for actions, ``uhCEk`` for entries).
"""

from __future__ import annotations

import base64
import hashlib
from enum import Enum

from agent_linking.common.exceptions import MalformedKey

CORE_SIZE = 32
LOCATION_SIZE = 4
PREFIX_SIZE = 3
RAW_SIZE = PREFIX_SIZE + CORE_SIZE + LOCATION_SIZE


class HashType(Enum):
    """Hash type prefixes."""

    AGENT = b"\x84\x20\x24"
    ENTRY = b"\x84\x21\x24"
    ACTION = b"\x84\x29\x24"


def location_bytes(core: bytes) -> bytes:
    """Fold a 16-byte blake2b digest of ``core`` into 4 bytes."""
    digest = hashlib.blake2b(core, digest_size=16).digest()
    loc = bytearray(digest[:LOCATION_SIZE])
    for i in range(LOCATION_SIZE, len(digest)):
        loc[i % LOCATION_SIZE] ^= digest[i]
    return bytes(loc)


def build_raw(hash_type: HashType, core: bytes) -> bytes:
    if len(core) != CORE_SIZE:
        raise MalformedKey(
            f"Hash core must be {CORE_SIZE} bytes, got {len(core)}",
            details={"hash_type": hash_type.name},
        )
    return hash_type.value + core + location_bytes(core)


def check_raw(hash_type: HashType, raw: bytes) -> bytes:
    """Validate a raw 39-byte hash of the given type and return it."""
    if len(raw) != RAW_SIZE:
        raise MalformedKey(
            f"{hash_type.name.lower()} hash must be {RAW_SIZE} bytes, got {len(raw)}",
        )
    if raw[:PREFIX_SIZE] != hash_type.value:
        raise MalformedKey(f"Not an {hash_type.name.lower()} hash: unexpected type prefix")
    core = raw[PREFIX_SIZE:PREFIX_SIZE + CORE_SIZE]
    if raw[PREFIX_SIZE + CORE_SIZE:] != location_bytes(core):
        raise MalformedKey(f"{hash_type.name.lower()} hash location checksum mismatch")
    return raw


def encode(raw: bytes) -> str:
    return "u" + base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode(hash_type: HashType, value: str) -> bytes:
    """Decode the ``u``-prefixed string form and validate it."""
    if not isinstance(value, str) or not value.startswith("u"):
        raise MalformedKey("Hash string must start with 'u'", details={"value": str(value)[:64]})
    body = value[1:]
    try:
        raw = base64.urlsafe_b64decode(body + "=" * (-len(body) % 4))
    except ValueError as e:
        raise MalformedKey("Hash string is not valid base64url", cause=e) from e
    return check_raw(hash_type, raw)


def action_hash(content: bytes) -> str:
    """Content-address an action."""
    return encode(build_raw(HashType.ACTION, hashlib.blake2b(content, digest_size=32).digest()))


def entry_hash(content: bytes) -> str:
    """Content-address an entry."""
    return encode(build_raw(HashType.ENTRY, hashlib.blake2b(content, digest_size=32).digest()))
