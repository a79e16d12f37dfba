"""Exception hierarchy for agent linking."""

from __future__ import annotations

from typing import Any


class LinkingError(Exception):
    """Base exception for all agent linking errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        if self.details:
            return f"[{self.code}] {self.message} - Details: {self.details}"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "type": self.__class__.__name__,
            }
        }


# Protocol Errors
class ProtocolError(LinkingError):
    """Base class for terminal protocol outcomes. Never retried."""

    pass


class MalformedKey(ProtocolError):
    """Agent key encoding is invalid."""

    pass


class SelfLinkForbidden(ProtocolError):
    """An agent tried to link to itself."""

    pass


class PairingExpired(ProtocolError):
    """The matched pending link request is past its expiry."""

    pass


class NoMatchingRequest(ProtocolError):
    """No pending link request matches the pairing code and initiator."""

    pass


class InvalidSignature(ProtocolError):
    """The other party's signature does not verify over the pair payload."""

    pass


class InvalidRecord(ProtocolError):
    """A write failed structural validation."""

    def __init__(
        self,
        message: str,
        *,
        reasons: list[str] | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.reasons = list(reasons or [])
        details = {**(details or {}), "reasons": self.reasons}
        super().__init__(message, code=code, details=details, cause=cause)


class NotFound(ProtocolError):
    """Requested record not found."""

    pass


class Unauthorized(ProtocolError):
    """Caller is not allowed to perform the operation."""

    pass


# Infrastructure Errors
class InfrastructureError(LinkingError):
    """Base class for substrate and transport failures."""

    pass


class SubstrateUnavailableError(InfrastructureError):
    """The storage substrate is transiently unavailable. Safe to retry."""

    pass


class RetryExhaustedError(InfrastructureError):
    """All retry attempts exhausted."""

    pass


ERROR_TYPES: dict[str, type[LinkingError]] = {
    cls.__name__: cls
    for cls in (
        LinkingError,
        ProtocolError,
        MalformedKey,
        SelfLinkForbidden,
        PairingExpired,
        NoMatchingRequest,
        InvalidSignature,
        InvalidRecord,
        NotFound,
        Unauthorized,
        InfrastructureError,
        SubstrateUnavailableError,
        RetryExhaustedError,
    )
}
