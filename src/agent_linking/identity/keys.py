"""Agent keys and Ed25519 keypairs."""

from __future__ import annotations

from functools import total_ordering
from typing import Any

import structlog
from cryptography.exceptions import InvalidSignature as CryptoInvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema

from agent_linking.common.exceptions import MalformedKey
from agent_linking.identity import hashes
from agent_linking.identity.hashes import HashType

logger = structlog.get_logger()


@total_ordering
class AgentKey:
    """
    Public identity of one agent.

    Wraps the raw 39-byte agent hash (type prefix, Ed25519 public key,
    location checksum). Keys compare lexicographically over the raw bytes,
    which is the order used to orient attestations.

    Example:
        ```python
        key = AgentKey.from_string("uhCAk...")
        assert AgentKey(key.raw) == key
        ```
    """

    __slots__ = ("_raw",)

    def __init__(self, raw: bytes) -> None:
        self._raw = hashes.check_raw(HashType.AGENT, bytes(raw))

    @classmethod
    def from_public_key(cls, public_key: Ed25519PublicKey | bytes) -> AgentKey:
        """Build an agent key from an Ed25519 public key or its 32 raw bytes."""
        if isinstance(public_key, Ed25519PublicKey):
            public_key = public_key.public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            )
        return cls(hashes.build_raw(HashType.AGENT, public_key))

    @classmethod
    def from_string(cls, value: str) -> AgentKey:
        return cls(hashes.decode(HashType.AGENT, value))

    @classmethod
    def coerce(cls, value: AgentKey | str | bytes) -> AgentKey:
        """Accept an AgentKey, its string form, or its raw bytes."""
        if isinstance(value, AgentKey):
            return value
        if isinstance(value, str):
            return cls.from_string(value)
        if isinstance(value, (bytes, bytearray)):
            return cls(bytes(value))
        raise MalformedKey(f"Cannot interpret {type(value).__name__} as an agent key")

    @property
    def raw(self) -> bytes:
        return self._raw

    @property
    def public_key_bytes(self) -> bytes:
        return self._raw[hashes.PREFIX_SIZE:hashes.PREFIX_SIZE + hashes.CORE_SIZE]

    def public_key(self) -> Ed25519PublicKey:
        return Ed25519PublicKey.from_public_bytes(self.public_key_bytes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AgentKey):
            return NotImplemented
        return self._raw == other._raw

    def __lt__(self, other: AgentKey) -> bool:
        if not isinstance(other, AgentKey):
            return NotImplemented
        return self._raw < other._raw

    def __hash__(self) -> int:
        return hash(self._raw)

    def __str__(self) -> str:
        return hashes.encode(self._raw)

    def __repr__(self) -> str:
        return f"AgentKey({self})"

    @classmethod
    def _validate(cls, value: Any) -> AgentKey:
        try:
            return cls.coerce(value)
        except MalformedKey as e:
            raise ValueError(e.message) from e

    @classmethod
    def __get_pydantic_core_schema__(
        cls,
        source_type: Any,
        handler: GetCoreSchemaHandler,
    ) -> core_schema.CoreSchema:
        from_str = core_schema.no_info_after_validator_function(
            cls._validate,
            core_schema.str_schema(),
        )
        return core_schema.json_or_python_schema(
            json_schema=from_str,
            python_schema=core_schema.no_info_plain_validator_function(cls._validate),
            serialization=core_schema.plain_serializer_function_ser_schema(
                str,
                return_schema=core_schema.str_schema(),
                when_used="json",
            ),
        )


def verify_signature(agent: AgentKey, signature: bytes, data: bytes) -> bool:
    """Verify an Ed25519 signature made by ``agent`` over ``data``."""
    try:
        agent.public_key().verify(signature, data)
        return True
    except (CryptoInvalidSignature, ValueError, TypeError):
        return False


class AgentKeyPair:
    """
    An agent's signing key.

    Example:
        ```python
        keypair = AgentKeyPair.generate()
        signature = keypair.sign(b"payload")
        assert verify_signature(keypair.agent_key, signature, b"payload")
        ```
    """

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        self.agent_key = AgentKey.from_public_key(private_key.public_key())

    @classmethod
    def generate(cls) -> AgentKeyPair:
        keypair = cls(Ed25519PrivateKey.generate())
        logger.debug("agent_key_generated", agent=str(keypair.agent_key))
        return keypair

    @classmethod
    def from_private_bytes(cls, raw: bytes) -> AgentKeyPair:
        return cls(Ed25519PrivateKey.from_private_bytes(raw))

    @classmethod
    def from_pem(cls, pem: bytes) -> AgentKeyPair:
        """Load from PEM. Raises ValueError if not an Ed25519 private key."""
        key = serialization.load_pem_private_key(pem, password=None)
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError("Key is not an Ed25519 private key")
        return cls(key)

    def to_pem(self) -> bytes:
        """PEM (PKCS#8, unencrypted)."""
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def sign(self, data: bytes) -> bytes:
        return self._private_key.sign(data)
