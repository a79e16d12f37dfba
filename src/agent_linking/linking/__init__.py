"""Pairwise identity linking protocol."""

from agent_linking.linking.payload import canonical_pair, sorted_pair_payload
from agent_linking.linking.types import (
    Attestation,
    AttestationRecord,
    PendingLinkTag,
    PendingRequest,
)
from agent_linking.linking.verification import SignatureVerifier
from agent_linking.linking.ceremony import PairingCeremony, generate_pairing_code
from agent_linking.linking.store import AttestationStore
from agent_linking.linking.revocation import RevocationManager
from agent_linking.linking.validation import (
    AuditFinding,
    audit_attestations,
    validate_attestation,
    validate_op,
)
from agent_linking.linking.service import AgentLinkingService

__all__ = [
    "canonical_pair",
    "sorted_pair_payload",
    "Attestation",
    "AttestationRecord",
    "PendingLinkTag",
    "PendingRequest",
    "SignatureVerifier",
    "PairingCeremony",
    "generate_pairing_code",
    "AttestationStore",
    "RevocationManager",
    "AuditFinding",
    "audit_attestations",
    "validate_attestation",
    "validate_op",
    "AgentLinkingService",
]
