"""Tests for structural validation and auditing."""

from datetime import UTC, datetime

import pytest

from agent_linking.common.exceptions import InvalidRecord
from agent_linking.common.types import ATTESTATION_ENTRY_TYPE, LinkType, RequestState
from agent_linking.identity.keys import AgentKeyPair
from agent_linking.linking.payload import canonical_pair, sorted_pair_payload
from agent_linking.linking.types import Attestation
from agent_linking.linking.validation import (
    audit_attestations,
    validate_attestation,
    validate_op,
)
from agent_linking.substrate.backend import DeleteRecordOp, Record, StoreRecordOp
from agent_linking.substrate.memory import InMemoryNetwork

CREATED_AT = datetime(2026, 1, 1, tzinfo=UTC)


def make_pair():
    first, second = AgentKeyPair.generate(), AgentKeyPair.generate()
    if second.agent_key < first.agent_key:
        first, second = second, first
    return first, second


def signed_attestation(low, high, *, swap=False):
    payload = sorted_pair_payload(low.agent_key, high.agent_key)
    halves = [(low.agent_key, low.sign(payload)), (high.agent_key, high.sign(payload))]
    if swap:
        halves.reverse()
    (agent_a, signature_a), (agent_b, signature_b) = halves
    return Attestation(
        agent_a=agent_a,
        signature_a=signature_a,
        agent_b=agent_b,
        signature_b=signature_b,
        created_at=CREATED_AT,
    )


class TestValidateAttestation:
    """Test the five attestation checks."""

    def test_valid(self):
        """Test a canonical, dual-signed attestation passes."""
        low, high = make_pair()

        result = validate_attestation(signed_attestation(low, high), low.agent_key)

        assert result.valid
        assert result.reasons == []

    def test_non_canonical_order(self):
        """Test reversed agents fail even with valid signatures."""
        low, high = make_pair()

        result = validate_attestation(signed_attestation(low, high, swap=True), low.agent_key)

        assert result.reasons == ["agent_a must be lexicographically smaller than agent_b"]

    def test_author_outside_pair(self):
        """Test a third party cannot author an attestation."""
        low, high = make_pair()
        outsider = AgentKeyPair.generate()

        result = validate_attestation(signed_attestation(low, high), outsider.agent_key)

        assert result.reasons == ["Author must be one of the two agents in the entry"]

    def test_same_agent(self):
        """Test a self attestation is rejected."""
        keypair = AgentKeyPair.generate()
        signature = keypair.sign(sorted_pair_payload(keypair.agent_key, keypair.agent_key))
        attestation = Attestation(
            agent_a=keypair.agent_key,
            signature_a=signature,
            agent_b=keypair.agent_key,
            signature_b=signature,
            created_at=CREATED_AT,
        )

        result = validate_attestation(attestation, keypair.agent_key)

        assert "agent_a and agent_b must be different agents" in result.reasons

    def test_reports_every_failure(self):
        """Test all failing checks are reported together."""
        low, high = make_pair()
        outsider = AgentKeyPair.generate()
        attestation = signed_attestation(low, high, swap=True).model_copy(
            update={"signature_a": b"\x00" * 64, "signature_b": b"\x00" * 64}
        )

        result = validate_attestation(attestation, outsider.agent_key)

        assert result.reasons == [
            "agent_a must be lexicographically smaller than agent_b",
            "Author must be one of the two agents in the entry",
            "signature_a does not verify against agent_a",
            "signature_b does not verify against agent_b",
        ]

    def test_injected_verify(self):
        """Test the verify function is pluggable."""
        low, high = make_pair()
        calls = []

        def verify(agent, signature, payload):
            calls.append(agent)
            return True

        attestation = signed_attestation(low, high).model_copy(update={"signature_b": b"junk"})
        result = validate_attestation(attestation, high.agent_key, verify=verify)

        assert result.valid
        assert calls == [low.agent_key, high.agent_key]


class TestValidateOp:
    """Test the substrate validation callback."""

    def test_malformed_content(self):
        """Test undecodable attestation content is invalid."""
        author = AgentKeyPair.generate().agent_key
        record = Record(
            address="uhCkk",
            author=author,
            entry_type=ATTESTATION_ENTRY_TYPE,
            content=b"{}",
            timestamp=CREATED_AT,
        )

        result = validate_op(StoreRecordOp(record))

        assert not result.valid
        assert result.reasons[0].startswith("Malformed attestation content")

    def test_other_entry_types_pass(self):
        """Test non-attestation records are not checked."""
        author = AgentKeyPair.generate().agent_key
        record = Record("uhCkk", author, "note", b"anything", CREATED_AT)

        assert validate_op(StoreRecordOp(record)).valid

    def test_record_deletes_pass(self):
        """Test attestation deletes are a trust decision, not structural."""
        low, high = make_pair()
        outsider = AgentKeyPair.generate()
        record = Record(
            "uhCkk",
            low.agent_key,
            ATTESTATION_ENTRY_TYPE,
            signed_attestation(low, high).to_content(),
            CREATED_AT,
        )

        assert validate_op(DeleteRecordOp(record, outsider.agent_key)).valid


@pytest.mark.asyncio
class TestSubstrateValidation:
    """Test the substrate enforces validation on every write."""

    async def test_non_canonical_rejected(self, network, alice_keys, bob_keys):
        """Test a reversed attestation cannot be committed directly."""
        low, high = canonical_pair(alice_keys.agent_key, bob_keys.agent_key)
        keys = {k.agent_key: k for k in (alice_keys, bob_keys)}
        substrate = network.join(keys[low])
        attestation = signed_attestation(keys[low], keys[high], swap=True)

        with pytest.raises(InvalidRecord) as exc_info:
            await substrate.commit_record(ATTESTATION_ENTRY_TYPE, attestation.to_content())

        assert exc_info.value.reasons == ["agent_a must be lexicographically smaller than agent_b"]
        assert list(network.records(ATTESTATION_ENTRY_TYPE)) == []

    async def test_valid_committed(self, network):
        """Test a canonical attestation is accepted."""
        low, high = make_pair()
        substrate = network.join(high)

        address = await substrate.commit_record(ATTESTATION_ENTRY_TYPE, signed_attestation(low, high).to_content())

        assert network.get(address) is not None


@pytest.mark.asyncio
class TestConsumedRequestMarkers:
    """Test only the target may mark or release a consumed link request."""

    async def test_marker_under_another_agent_rejected(self, network, alice, bob, carol):
        """Test a third party cannot burn someone else's link request."""
        code = await alice.initiate(bob.agent_key)
        [request] = await bob.pending_requests()

        with pytest.raises(InvalidRecord) as exc_info:
            await carol.substrate.create_index_pointer(
                bob.agent_key, request.address, LinkType.CONSUMED_LINK_REQUEST
            )

        assert exc_info.value.reasons == ["Only the target can mark its link request consumed"]
        await bob.complete(code, alice.agent_key)
        assert await bob.are_linked(bob.agent_key, alice.agent_key)

    async def test_release_by_another_agent_rejected(self, network, alice, bob, carol):
        """Test a third party cannot reopen a completed request."""
        code = await alice.initiate(bob.agent_key)
        await bob.complete(code, alice.agent_key)
        [marker] = await bob.substrate.query_index_pointers(bob.agent_key, LinkType.CONSUMED_LINK_REQUEST)

        for other in (alice, carol):
            with pytest.raises(InvalidRecord) as exc_info:
                await other.substrate.delete_index_pointer(marker.address)
            assert exc_info.value.reasons == ["Only the target can release a consumed link request"]

        assert [r.state for r in await bob.pending_requests()] == [RequestState.COMPLETED]


class TestAudit:
    """Test offline re-validation of stored records."""

    def test_finds_invalid_records(self, clock):
        """Test auditing a network that accepted unchecked writes."""
        network = InMemoryNetwork(clock=clock)
        low, high = make_pair()
        outsider = AgentKeyPair.generate()

        good = network.commit(low.agent_key, ATTESTATION_ENTRY_TYPE, signed_attestation(low, high).to_content())
        bad = network.commit(outsider.agent_key, ATTESTATION_ENTRY_TYPE, signed_attestation(low, high).to_content())
        network.commit(outsider.agent_key, "note", b"ignored")

        findings = audit_attestations(network.records())

        assert [f.address for f in findings] == [bad]
        assert findings[0].author == outsider.agent_key
        assert findings[0].reasons == ["Author must be one of the two agents in the entry"]
        assert good not in [f.address for f in findings]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
