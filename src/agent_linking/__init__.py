"""
Agent Linking

Pairwise cryptographic identity linking: two agents mutually attest, with
Ed25519 signatures, that they belong to the same person. Attestations are
discovered through per-agent index pointers and revoked by tombstoning.
"""

__version__ = "0.1.0"
__all__ = [
    "AgentKey",
    "AgentKeyPair",
    "AgentLinkingService",
    "Attestation",
    "InMemoryNetwork",
    "LinkingClient",
    "LinkingConfig",
    "LinkingServer",
    "validate_op",
]

from agent_linking.identity.keys import AgentKey, AgentKeyPair
from agent_linking.config import LinkingConfig
from agent_linking.substrate.memory import InMemoryNetwork
from agent_linking.linking.types import Attestation
from agent_linking.linking.validation import validate_op
from agent_linking.linking.service import AgentLinkingService
from agent_linking.server import LinkingServer
from agent_linking.client import LinkingClient
