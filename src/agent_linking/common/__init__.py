"""Common utilities, types, and exceptions."""

from agent_linking.common.types import (
    ActionHash,
    EntryType,
    LinkType,
    RequestState,
    SignatureBytes,
)
from agent_linking.common.exceptions import (
    LinkingError,
    ProtocolError,
    InfrastructureError,
    SubstrateUnavailableError,
)
from agent_linking.common.decorators import (
    retry_with_backoff,
    trace_span,
)

__all__ = [
    "ActionHash",
    "EntryType",
    "LinkType",
    "RequestState",
    "SignatureBytes",
    "LinkingError",
    "ProtocolError",
    "InfrastructureError",
    "SubstrateUnavailableError",
    "retry_with_backoff",
    "trace_span",
]
