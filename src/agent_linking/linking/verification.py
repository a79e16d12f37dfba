"""Signature verification over canonical pair payloads."""

from __future__ import annotations

import structlog

from agent_linking.common.exceptions import InvalidSignature
from agent_linking.identity.keys import AgentKey
from agent_linking.linking.payload import sorted_pair_payload
from agent_linking.substrate.backend import Substrate

logger = structlog.get_logger()


class SignatureVerifier:
    """Checks pair signatures through the substrate's verify primitive."""

    def __init__(self, substrate: Substrate) -> None:
        self._substrate = substrate
        self._logger = logger.bind(component="signature_verifier")

    async def verify_pair(
        self,
        signer: AgentKey,
        signature: bytes,
        agent_a: AgentKey,
        agent_b: AgentKey,
    ) -> bool:
        """True if ``signer`` signed payload(agent_a, agent_b)."""
        payload = sorted_pair_payload(agent_a, agent_b)
        return await self._substrate.verify(signer, signature, payload)

    async def require_pair_signature(
        self,
        signer: AgentKey,
        signature: bytes,
        other: AgentKey,
        message: str = "Signature does not verify over the agent pair",
    ) -> None:
        """
        Require that ``signer`` signed payload(signer, other).

        Raises:
            InvalidSignature: If verification fails
        """
        if not await self.verify_pair(signer, signature, signer, other):
            self._logger.warning("pair_signature_invalid", signer=str(signer), other=str(other))
            raise InvalidSignature(message, details={"signer": str(signer)})
