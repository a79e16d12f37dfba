"""Core type definitions for agent linking."""

from __future__ import annotations

import base64
import json
from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any, NewType

from pydantic import BeforeValidator, PlainSerializer

# Primitive Types
ActionHash = NewType("ActionHash", str)
EntryType = NewType("EntryType", str)


def _decode_base64(value: Any) -> Any:
    if isinstance(value, str):
        return base64.b64decode(value, validate=True)
    return value


def _encode_base64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


# Raw bytes in Python, base64 text in JSON.
SignatureBytes = Annotated[
    bytes,
    BeforeValidator(_decode_base64),
    PlainSerializer(_encode_base64, return_type=str, when_used="json"),
]


class LinkType(StrEnum):
    """Index pointer types."""

    AGENT_TO_ATTESTATION = "agent_to_attestation"
    PENDING_LINK_REQUEST = "pending_link_request"
    CONSUMED_LINK_REQUEST = "consumed_link_request"


class RequestState(StrEnum):
    """Link request states. A request that was never initiated has none."""

    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"
    SUPERSEDED = "superseded"


ATTESTATION_ENTRY_TYPE = EntryType("attestation")


def utcnow() -> datetime:
    return datetime.now(UTC)


def canonical_json(obj: dict[str, Any]) -> bytes:
    """Deterministic, minimal JSON."""
    return json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode("utf-8")
