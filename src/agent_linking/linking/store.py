"""Attestation storage and the per-agent discovery index."""

from __future__ import annotations

import structlog
from pydantic import ValidationError

from agent_linking.common.exceptions import LinkingError
from agent_linking.common.types import ATTESTATION_ENTRY_TYPE, ActionHash, LinkType
from agent_linking.identity.keys import AgentKey
from agent_linking.linking.types import Attestation, AttestationRecord
from agent_linking.substrate.backend import Substrate

logger = structlog.get_logger()


class AttestationStore:
    """
    Commits attestations and finds them again from either participant.

    An attestation is content-addressed, so the only way a participant can
    discover it is through the pointer filed under its own key. Both
    pointers are written after the record; losing one degrades
    discoverability from that side only.

    Example:
        ```python
        store = AttestationStore(substrate)
        address = await store.commit(attestation)
        assert await store.are_linked(attestation.agent_a, attestation.agent_b)
        ```
    """

    def __init__(self, substrate: Substrate) -> None:
        self._substrate = substrate
        self._logger = logger.bind(component="attestation_store")

    async def commit(self, attestation: Attestation) -> ActionHash:
        """
        Write the attestation and both index pointers.

        Returns:
            Address of the attestation record
        """
        address = await self._substrate.commit_record(ATTESTATION_ENTRY_TYPE, attestation.to_content())

        indexed = 0
        for agent in attestation.participants():
            try:
                await self._substrate.create_index_pointer(agent, address, LinkType.AGENT_TO_ATTESTATION)
                indexed += 1
            except LinkingError as e:
                self._logger.warning(
                    "index_pointer_write_failed",
                    address=address,
                    agent=str(agent),
                    error=str(e),
                )

        self._logger.info(
            "attestation_committed",
            address=address,
            agent_a=str(attestation.agent_a),
            agent_b=str(attestation.agent_b),
            pointers=indexed,
        )
        return address

    async def get(self, address: ActionHash) -> AttestationRecord | None:
        """Load an attestation with its tombstone state, or None."""
        found = await self._substrate.read_with_tombstone_state(address)
        if found is None:
            return None
        record, tombstoned = found
        if record.entry_type != ATTESTATION_ENTRY_TYPE:
            return None
        try:
            attestation = Attestation.from_content(record.content)
        except ValidationError:
            self._logger.warning("attestation_undecodable", address=address)
            return None
        return AttestationRecord(
            address=address,
            author=record.author,
            attestation=attestation,
            revoked=tombstoned,
        )

    async def attestations_for(self, agent: AgentKey) -> list[AttestationRecord]:
        """Live attestations indexed under ``agent``."""
        pointers = await self._substrate.query_index_pointers(agent, LinkType.AGENT_TO_ATTESTATION)

        records: list[AttestationRecord] = []
        seen: set[ActionHash] = set()
        for pointer in pointers:
            address = ActionHash(pointer.target)
            if address in seen:
                continue
            seen.add(address)

            record = await self.get(address)
            if record is None or record.revoked:
                continue
            if agent not in record.attestation.participants():
                continue
            records.append(record)
        return records

    async def lookup_linked(self, agent: AgentKey) -> list[AgentKey]:
        """Other parties of every live attestation under ``agent``, de-duplicated."""
        linked: list[AgentKey] = []
        for record in await self.attestations_for(agent):
            other = record.attestation.other_party(agent)
            if other not in linked:
                linked.append(other)
        return linked

    async def are_linked(self, agent_a: AgentKey, agent_b: AgentKey) -> bool:
        return agent_b in await self.lookup_linked(agent_a)
