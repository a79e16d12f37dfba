"""Agent identity keys and typed hashes."""

from agent_linking.identity.keys import AgentKey, AgentKeyPair, verify_signature
from agent_linking.identity.hashes import HashType

__all__ = [
    "AgentKey",
    "AgentKeyPair",
    "HashType",
    "verify_signature",
]
