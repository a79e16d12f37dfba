"""Tests for agent keys, hashes and the canonical payload."""

import pytest

from agent_linking.common.exceptions import MalformedKey
from agent_linking.identity import hashes
from agent_linking.identity.hashes import HashType
from agent_linking.identity.keys import AgentKey, AgentKeyPair, verify_signature
from agent_linking.linking.payload import canonical_pair, sorted_pair_payload


class TestAgentKey:
    """Test agent key encoding and ordering."""

    def test_string_round_trip(self):
        """Test string form encodes and decodes to the same key."""
        key = AgentKeyPair.generate().agent_key

        text = str(key)
        assert text.startswith("uhCAk")
        assert len(text) == 53
        assert AgentKey.from_string(text) == key
        assert AgentKey.coerce(text) == key
        assert AgentKey.coerce(key.raw) == key

    def test_raw_layout(self):
        """Test prefix, public key and location bytes."""
        keypair = AgentKeyPair.generate()
        key = keypair.agent_key

        assert len(key.raw) == 39
        assert key.raw[:3] == HashType.AGENT.value
        assert key.public_key_bytes == key.raw[3:35]
        assert key.raw[35:] == hashes.location_bytes(key.public_key_bytes)

    def test_rejects_wrong_length(self):
        """Test truncated keys are rejected."""
        key = AgentKeyPair.generate().agent_key
        with pytest.raises(MalformedKey):
            AgentKey(key.raw[:-1])

    def test_rejects_wrong_prefix(self):
        """Test an action hash is not accepted as an agent key."""
        action = hashes.action_hash(b"some action")
        with pytest.raises(MalformedKey):
            AgentKey.from_string(action)

    def test_rejects_bad_checksum(self):
        """Test a corrupted location checksum is rejected."""
        raw = bytearray(AgentKeyPair.generate().agent_key.raw)
        raw[-1] ^= 0xFF
        with pytest.raises(MalformedKey):
            AgentKey(bytes(raw))

    @pytest.mark.parametrize("value", ["", "hCAk", "u!!!!", "not-a-key"])
    def test_rejects_garbage_strings(self, value):
        """Test undecodable strings are rejected."""
        with pytest.raises(MalformedKey):
            AgentKey.from_string(value)

    def test_rejects_unsupported_type(self):
        """Test coercion of non-key types."""
        with pytest.raises(MalformedKey):
            AgentKey.coerce(42)

    def test_total_order(self):
        """Test keys order by raw bytes and hash consistently."""
        keys = [AgentKeyPair.generate().agent_key for _ in range(5)]

        ordered = sorted(keys)
        assert [k.raw for k in ordered] == sorted(k.raw for k in keys)
        assert len(set(keys + [AgentKey(keys[0].raw)])) == 5


class TestAgentKeyPair:
    """Test signing keys."""

    def test_sign_and_verify(self):
        """Test signatures verify only for the signer and data."""
        keypair = AgentKeyPair.generate()
        other = AgentKeyPair.generate()

        signature = keypair.sign(b"payload")

        assert verify_signature(keypair.agent_key, signature, b"payload") is True
        assert verify_signature(keypair.agent_key, signature, b"other payload") is False
        assert verify_signature(other.agent_key, signature, b"payload") is False
        assert verify_signature(keypair.agent_key, b"short", b"payload") is False

    def test_pem_round_trip(self):
        """Test PEM export and import keep the identity."""
        keypair = AgentKeyPair.generate()

        restored = AgentKeyPair.from_pem(keypair.to_pem())

        assert restored.agent_key == keypair.agent_key


class TestCanonicalPayload:
    """Test the pair payload both agents sign."""

    def test_order_independent(self):
        """Test payload(A, B) == payload(B, A)."""
        a = AgentKeyPair.generate().agent_key
        b = AgentKeyPair.generate().agent_key

        assert sorted_pair_payload(a, b) == sorted_pair_payload(b, a)

    def test_layout(self):
        """Test payload is the lower key then the higher key."""
        a = AgentKeyPair.generate().agent_key
        b = AgentKeyPair.generate().agent_key
        lower, higher = canonical_pair(a, b)

        payload = sorted_pair_payload(a, b)

        assert lower < higher
        assert len(payload) == 78
        assert payload == lower.raw + higher.raw

    def test_accepts_string_keys(self):
        """Test string forms produce the same payload."""
        a = AgentKeyPair.generate().agent_key
        b = AgentKeyPair.generate().agent_key

        assert sorted_pair_payload(str(a), str(b)) == sorted_pair_payload(a, b)

    def test_malformed_key(self):
        """Test malformed encodings raise MalformedKey."""
        a = AgentKeyPair.generate().agent_key
        with pytest.raises(MalformedKey):
            sorted_pair_payload(a, "uhCAkgarbage")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
