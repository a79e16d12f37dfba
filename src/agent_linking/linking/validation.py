"""
Structural validation of linking records.

These functions are pure: they depend only on the op they are given and
on signature verification, never on coordinator state. The substrate
calls :func:`validate_op` for every write, and :func:`audit_attestations`
runs the same checks over already stored records.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from pydantic import ValidationError

from agent_linking.common.types import ATTESTATION_ENTRY_TYPE, ActionHash, LinkType
from agent_linking.identity.keys import AgentKey, verify_signature
from agent_linking.linking.payload import sorted_pair_payload
from agent_linking.linking.types import Attestation
from agent_linking.substrate.backend import (
    CreateLinkOp,
    DeleteLinkOp,
    Op,
    Record,
    StoreRecordOp,
    ValidationResult,
)

VerifyFn = Callable[[AgentKey, bytes, bytes], bool]


def validate_attestation(
    attestation: Attestation,
    author: AgentKey,
    verify: VerifyFn = verify_signature,
) -> ValidationResult:
    """
    Check an attestation written by ``author``.

    All five checks run and every failure is reported:
    1. agent_a and agent_b differ
    2. agent_a sorts before agent_b
    3. author is one of the two agents
    4. signature_a verifies against agent_a over the pair payload
    5. signature_b verifies against agent_b over the pair payload
    """
    reasons: list[str] = []
    agent_a, agent_b = attestation.agent_a, attestation.agent_b

    if agent_a == agent_b:
        reasons.append("agent_a and agent_b must be different agents")

    if not agent_a < agent_b:
        reasons.append("agent_a must be lexicographically smaller than agent_b")

    if author != agent_a and author != agent_b:
        reasons.append("Author must be one of the two agents in the entry")

    payload = sorted_pair_payload(agent_a, agent_b)

    if not verify(agent_a, attestation.signature_a, payload):
        reasons.append("signature_a does not verify against agent_a")

    if not verify(agent_b, attestation.signature_b, payload):
        reasons.append("signature_b does not verify against agent_b")

    return ValidationResult(reasons=reasons)


def validate_attestation_record(record: Record, verify: VerifyFn = verify_signature) -> ValidationResult:
    try:
        attestation = Attestation.from_content(record.content)
    except ValidationError as e:
        return ValidationResult.invalid(f"Malformed attestation content: {e.error_count()} error(s)")
    return validate_attestation(attestation, record.author, verify)


def validate_op(op: Op) -> ValidationResult:
    """
    Validation callback for the substrate.

    Deleting an attestation is a trust decision, not a structural one, so
    record deletes always pass. Only the original author may delete a
    pending link request or a consumption marker, and only the target may
    file a consumption marker, under its own key.
    """
    if isinstance(op, StoreRecordOp):
        if op.record.entry_type == ATTESTATION_ENTRY_TYPE:
            return validate_attestation_record(op.record)
        return ValidationResult.ok()

    if isinstance(op, CreateLinkOp):
        if op.link.link_type == LinkType.CONSUMED_LINK_REQUEST and op.link.author != op.link.base:
            return ValidationResult.invalid(
                "Only the target can mark its link request consumed"
            )
        return ValidationResult.ok()

    if isinstance(op, DeleteLinkOp):
        if op.link.link_type == LinkType.PENDING_LINK_REQUEST and op.author != op.link.author:
            return ValidationResult.invalid(
                "Only the original author can delete a pending link request"
            )
        if op.link.link_type == LinkType.CONSUMED_LINK_REQUEST and op.author != op.link.author:
            return ValidationResult.invalid(
                "Only the target can release a consumed link request"
            )
        return ValidationResult.ok()

    return ValidationResult.ok()


@dataclass(frozen=True)
class AuditFinding:
    """An invalid stored attestation."""

    address: ActionHash
    author: AgentKey
    reasons: list[str] = field(default_factory=list)


def audit_attestations(
    records: Iterable[Record],
    verify: VerifyFn = verify_signature,
) -> list[AuditFinding]:
    """Re-validate stored attestation records offline."""
    findings: list[AuditFinding] = []
    for record in records:
        if record.entry_type != ATTESTATION_ENTRY_TYPE:
            continue
        result = validate_attestation_record(record, verify)
        if not result.valid:
            findings.append(AuditFinding(record.address, record.author, result.reasons))
    return findings
