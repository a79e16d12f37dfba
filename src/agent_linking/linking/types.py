"""Linking protocol records."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from agent_linking.common.types import ActionHash, RequestState, SignatureBytes
from agent_linking.identity.keys import AgentKey


class Attestation(BaseModel):
    """
    A pairwise "same person" attestation.

    Both agents sign the sorted pair of keys. ``agent_a`` is always the
    lower key; records that break this are rejected on write.
    """

    model_config = ConfigDict(frozen=True)

    agent_a: AgentKey
    signature_a: SignatureBytes
    agent_b: AgentKey
    signature_b: SignatureBytes
    created_at: datetime

    @classmethod
    def from_signed_pair(
        cls,
        first: tuple[AgentKey, bytes],
        second: tuple[AgentKey, bytes],
        created_at: datetime,
    ) -> Attestation:
        """Orient two (key, signature) halves canonically."""
        (agent_a, signature_a), (agent_b, signature_b) = sorted((first, second), key=lambda half: half[0])
        return cls(
            agent_a=agent_a,
            signature_a=signature_a,
            agent_b=agent_b,
            signature_b=signature_b,
            created_at=created_at,
        )

    def participants(self) -> tuple[AgentKey, AgentKey]:
        return self.agent_a, self.agent_b

    def other_party(self, agent: AgentKey) -> AgentKey:
        return self.agent_b if agent == self.agent_a else self.agent_a

    def to_content(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_content(cls, content: bytes) -> Attestation:
        return cls.model_validate_json(content)


class AttestationRecord(BaseModel):
    """A stored attestation with its address, author and revocation state."""

    address: ActionHash
    author: AgentKey
    attestation: Attestation
    revoked: bool = False


class PendingLinkTag(BaseModel):
    """Ceremony data carried in a pending link request pointer's tag."""

    model_config = ConfigDict(frozen=True)

    pairing_code: str
    signature: SignatureBytes
    initiator: AgentKey
    expires_at: datetime

    def to_tag(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_tag(cls, tag: bytes) -> PendingLinkTag:
        return cls.model_validate_json(tag)


class PendingRequest(BaseModel):
    """An incoming link request as shown to its target. Omits the pairing code."""

    address: ActionHash
    initiator: AgentKey
    expires_at: datetime
    created_at: datetime
    state: RequestState = Field(default=RequestState.PENDING)
