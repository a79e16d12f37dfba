"""Revocation of attestations by tombstoning their create record."""

from __future__ import annotations

import structlog

from agent_linking.common.exceptions import NotFound, Unauthorized
from agent_linking.common.types import ActionHash
from agent_linking.identity.keys import AgentKey
from agent_linking.linking.store import AttestationStore
from agent_linking.substrate.backend import Substrate

logger = structlog.get_logger()


class RevocationManager:
    """
    Withdraws trust in an attestation.

    Either participant may revoke alone. The record stays readable; only
    its tombstone state changes, and that change is permanent.
    """

    def __init__(self, substrate: Substrate, store: AttestationStore) -> None:
        self._substrate = substrate
        self._store = store
        self._logger = logger.bind(component="revocation_manager")

    async def revoke(self, address: ActionHash, caller: AgentKey) -> ActionHash:
        """
        Tombstone the attestation at ``address``.

        Raises:
            NotFound: No attestation at ``address``
            Unauthorized: ``caller`` is not one of the two agents

        Returns:
            Address of the tombstone
        """
        record = await self._store.get(address)
        if record is None:
            raise NotFound("Attestation not found", details={"address": address})

        if caller not in record.attestation.participants():
            self._logger.warning("revoke_unauthorized", address=address, caller=str(caller))
            raise Unauthorized(
                "Only one of the two linked agents can revoke this link",
                details={"address": address},
            )

        tombstone = await self._substrate.delete_record(address)
        self._logger.info(
            "attestation_revoked",
            address=address,
            tombstone=tombstone,
            caller=str(caller),
            already_revoked=record.revoked,
        )
        return tombstone
