"""Public operation surface for one agent."""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog

from agent_linking.common.decorators import trace_span
from agent_linking.common.exceptions import LinkingError, SelfLinkForbidden
from agent_linking.common.types import ActionHash, RequestState
from agent_linking.config import LinkingConfig
from agent_linking.identity.keys import AgentKey
from agent_linking.linking.ceremony import PairingCeremony
from agent_linking.linking.payload import sorted_pair_payload
from agent_linking.linking.revocation import RevocationManager
from agent_linking.linking.store import AttestationStore
from agent_linking.linking.types import Attestation, AttestationRecord, PendingRequest
from agent_linking.linking.verification import SignatureVerifier
from agent_linking.observability.metrics import MetricsCollector
from agent_linking.substrate.backend import Substrate

logger = structlog.get_logger()


class AgentLinkingService:
    """
    Links the current agent to its other identities.

    Combines:
    - Pairing ceremony (initiate / complete / cancel)
    - Direct linking with an out-of-band signature
    - Attestation lookup
    - Revocation

    Example:
        ```python
        alice = AgentLinkingService(network.join(alice_keys))
        bob = AgentLinkingService(network.join(bob_keys))

        code = await alice.initiate(bob.agent_key)
        address = await bob.complete(code, alice.agent_key)

        assert await alice.are_linked(alice.agent_key, bob.agent_key)
        await alice.revoke(address)
        ```
    """

    def __init__(
        self,
        substrate: Substrate,
        config: LinkingConfig | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.substrate = substrate
        self.config = config or LinkingConfig()
        self.metrics = metrics or MetricsCollector()

        self._verifier = SignatureVerifier(substrate)
        self._store = AttestationStore(substrate)
        self._ceremony = PairingCeremony(substrate, self._store, self._verifier, self.config)
        self._revocations = RevocationManager(substrate, self._store)

        self._logger = logger.bind(agent=str(self.agent_key))

    @property
    def agent_key(self) -> AgentKey:
        return self.substrate.current_identity()

    @asynccontextmanager
    async def _measure(self, operation: str) -> AsyncIterator[None]:
        start = time.perf_counter()
        try:
            yield
        except LinkingError as e:
            self.metrics.counter(
                "link_failures_total",
                labels={"operation": operation, "error": e.code},
            ).inc()
            raise
        finally:
            self.metrics.histogram(
                "link_operation_duration_ms",
                labels={"operation": operation},
            ).observe((time.perf_counter() - start) * 1000)

    #region Pairing Ceremony

    @trace_span("linking.initiate")
    async def initiate(self, target: AgentKey | str) -> str:
        """
        Start a pairing ceremony with ``target``.

        Returns:
            Pairing code to deliver to the target out of band
        """
        async with self._measure("initiate"):
            target = AgentKey.coerce(target)
            code = await self._ceremony.initiate(self.agent_key, target)
        self.metrics.counter("link_requests_initiated_total").inc()
        return code

    @trace_span("linking.complete")
    async def complete(self, pairing_code: str, initiator: AgentKey | str) -> ActionHash:
        """
        Complete a ceremony started by ``initiator``.

        Returns:
            Address of the new attestation
        """
        async with self._measure("complete"):
            initiator = AgentKey.coerce(initiator)
            address = await self._ceremony.complete(self.agent_key, pairing_code, initiator)
        self.metrics.counter("links_created_total", labels={"path": "ceremony"}).inc()
        return address

    async def pending_requests(self) -> list[PendingRequest]:
        """Link requests filed for this agent, in every state."""
        requests = await self._ceremony.pending_requests(self.agent_key)
        open_requests = sum(1 for r in requests if r.state == RequestState.PENDING)
        self.metrics.gauge("pending_link_requests").set(open_requests)
        return requests

    @trace_span("linking.cancel")
    async def cancel(self, target: AgentKey | str, pairing_code: str | None = None) -> int:
        """Withdraw this agent's pending request(s) toward ``target``."""
        async with self._measure("cancel"):
            return await self._ceremony.cancel(self.agent_key, AgentKey.coerce(target), pairing_code)

    #endregion

    #region Direct Linking

    @trace_span("linking.sign_pair")
    async def sign_pair(self, other: AgentKey | str) -> bytes:
        """
        This agent's signature over the pair payload, for delivery to
        ``other`` so it can call :meth:`link_direct`.
        """
        other = AgentKey.coerce(other)
        if other == self.agent_key:
            raise SelfLinkForbidden("Cannot link an agent to itself")
        return await self.substrate.sign(self.agent_key, sorted_pair_payload(self.agent_key, other))

    @trace_span("linking.link_direct")
    async def link_direct(self, other: AgentKey | str, other_signature: bytes) -> ActionHash:
        """
        Link to ``other`` using a signature obtained outside the ceremony.

        Raises:
            SelfLinkForbidden: If ``other`` is this agent
            InvalidSignature: If ``other_signature`` does not verify

        Returns:
            Address of the new attestation
        """
        async with self._measure("link_direct"):
            other = AgentKey.coerce(other)
            me = self.agent_key
            if other == me:
                raise SelfLinkForbidden("Cannot link an agent to itself")

            await self._verifier.require_pair_signature(
                other,
                other_signature,
                me,
                message="Other agent's signature is invalid",
            )

            my_signature = await self.substrate.sign(me, sorted_pair_payload(me, other))
            attestation = Attestation.from_signed_pair(
                (me, my_signature),
                (other, other_signature),
                created_at=self.substrate.current_time(),
            )
            address = await self._store.commit(attestation)

        self._logger.info("direct_link_created", other=str(other), attestation=address)
        self.metrics.counter("links_created_total", labels={"path": "direct"}).inc()
        return address

    #endregion

    #region Lookup

    @trace_span("linking.lookup_linked")
    async def lookup_linked(self, agent: AgentKey | str) -> list[AgentKey]:
        """Agents currently linked to ``agent``."""
        return await self._store.lookup_linked(AgentKey.coerce(agent))

    async def are_linked(self, agent_a: AgentKey | str, agent_b: AgentKey | str) -> bool:
        """Whether a live attestation links ``agent_a`` to ``agent_b``."""
        return await self._store.are_linked(AgentKey.coerce(agent_a), AgentKey.coerce(agent_b))

    async def get_attestation(self, address: ActionHash) -> AttestationRecord | None:
        return await self._store.get(address)

    async def attestations_for(self, agent: AgentKey | str) -> list[AttestationRecord]:
        return await self._store.attestations_for(AgentKey.coerce(agent))

    #endregion

    #region Revocation

    @trace_span("linking.revoke")
    async def revoke(self, address: ActionHash) -> ActionHash:
        """
        Revoke the attestation at ``address``. Either participant may do so.

        Returns:
            Address of the tombstone
        """
        async with self._measure("revoke"):
            tombstone = await self._revocations.revoke(address, self.agent_key)
        self.metrics.counter("links_revoked_total").inc()
        return tombstone

    #endregion
