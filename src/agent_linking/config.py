"""Configuration for the linking protocol and its HTTP surface."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta

# Environment variable names
ENV_REQUEST_TTL_SECONDS = "AGENT_LINKING_REQUEST_TTL_SECONDS"
ENV_HOST = "AGENT_LINKING_HOST"
ENV_PORT = "AGENT_LINKING_PORT"

# 32 symbols: no 0/O or 1/I.
PAIRING_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


@dataclass(frozen=True)
class LinkingConfig:
    """Configuration for the pairing ceremony."""

    request_ttl_seconds: int = 600
    pairing_code_alphabet: str = PAIRING_CODE_ALPHABET
    pairing_code_length: int = 8
    pairing_code_group_size: int = 4

    def __post_init__(self) -> None:
        if self.request_ttl_seconds <= 0:
            raise ValueError("request_ttl_seconds must be positive")
        if len(set(self.pairing_code_alphabet)) != len(self.pairing_code_alphabet):
            raise ValueError("pairing_code_alphabet must not repeat symbols")
        if 256 % len(self.pairing_code_alphabet) != 0:
            raise ValueError("pairing_code_alphabet size must divide 256")
        if self.pairing_code_length <= 0 or self.pairing_code_group_size <= 0:
            raise ValueError("pairing code length and group size must be positive")

    @property
    def request_ttl(self) -> timedelta:
        return timedelta(seconds=self.request_ttl_seconds)

    @classmethod
    def from_env(cls) -> LinkingConfig:
        ttl = os.environ.get(ENV_REQUEST_TTL_SECONDS)
        if ttl is None:
            return cls()
        return cls(request_ttl_seconds=int(ttl))


@dataclass(frozen=True)
class ServerConfig:
    """Configuration for the HTTP surface."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"

    @classmethod
    def from_env(cls) -> ServerConfig:
        return cls(
            host=os.environ.get(ENV_HOST, cls.host),
            port=int(os.environ.get(ENV_PORT, cls.port)),
        )
