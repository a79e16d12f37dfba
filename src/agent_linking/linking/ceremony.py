"""Pairing ceremony: asynchronous challenge/response between two agents."""

from __future__ import annotations

from collections.abc import Callable

import structlog
from pydantic import ValidationError

from agent_linking.common.exceptions import (
    InvalidRecord,
    LinkingError,
    NoMatchingRequest,
    PairingExpired,
    SelfLinkForbidden,
)
from agent_linking.common.types import ActionHash, LinkType, RequestState
from agent_linking.config import LinkingConfig
from agent_linking.identity.keys import AgentKey
from agent_linking.linking.payload import sorted_pair_payload
from agent_linking.linking.store import AttestationStore
from agent_linking.linking.types import Attestation, PendingLinkTag, PendingRequest
from agent_linking.linking.verification import SignatureVerifier
from agent_linking.substrate.backend import Link, Substrate

logger = structlog.get_logger()


def generate_pairing_code(
    random_bytes: Callable[[int], bytes],
    config: LinkingConfig | None = None,
) -> str:
    """
    Generate a pairing code such as ``XKFW-9M2R``.

    Each symbol is one random byte reduced modulo the alphabet size; the
    alphabet size divides 256 so every symbol is equally likely.
    """
    config = config or LinkingConfig()
    alphabet = config.pairing_code_alphabet
    symbols = [alphabet[byte % len(alphabet)] for byte in random_bytes(config.pairing_code_length)]
    size = config.pairing_code_group_size
    return "-".join("".join(symbols[i:i + size]) for i in range(0, len(symbols), size))


def _decode_tag(link: Link) -> PendingLinkTag | None:
    try:
        return PendingLinkTag.from_tag(link.tag)
    except ValidationError:
        return None


class PairingCeremony:
    """
    Link request lifecycle: PENDING -> COMPLETED | EXPIRED | SUPERSEDED.

    The initiator signs the pair payload and files a pending request under
    the target's key. The target completes it by presenting the pairing
    code it received out of band together with the initiator's key.

    A request is single-use. Only its author may delete it, so on
    completion the target files a consumption marker under its own key
    pointing at the request; marked requests never match again.

    Example:
        ```python
        code = await alice_ceremony.initiate(alice, bob)
        # code travels to Bob's device out of band
        address = await bob_ceremony.complete(bob, code, alice)
        ```
    """

    def __init__(
        self,
        substrate: Substrate,
        store: AttestationStore,
        verifier: SignatureVerifier,
        config: LinkingConfig | None = None,
    ) -> None:
        self._substrate = substrate
        self._store = store
        self._verifier = verifier
        self.config = config or LinkingConfig()
        self._logger = logger.bind(component="pairing_ceremony")

    async def initiate(self, initiator: AgentKey, target: AgentKey) -> str:
        """
        Start a link request toward ``target``.

        Raises:
            SelfLinkForbidden: If initiator and target are the same agent

        Returns:
            The pairing code to show the user
        """
        if initiator == target:
            raise SelfLinkForbidden("Cannot link an agent to itself")

        payload = sorted_pair_payload(initiator, target)
        signature = await self._substrate.sign(initiator, payload)

        pairing_code = generate_pairing_code(self._substrate.random_bytes, self.config)
        expires_at = self._substrate.current_time() + self.config.request_ttl

        tag = PendingLinkTag(
            pairing_code=pairing_code,
            signature=signature,
            initiator=initiator,
            expires_at=expires_at,
        )
        address = await self._substrate.create_index_pointer(
            target,
            str(initiator),
            LinkType.PENDING_LINK_REQUEST,
            tag.to_tag(),
        )

        self._logger.info(
            "link_request_initiated",
            initiator=str(initiator),
            target=str(target),
            request=address,
            expires_at=expires_at.isoformat(),
        )
        return pairing_code

    async def complete(self, me: AgentKey, pairing_code: str, initiator: AgentKey) -> ActionHash:
        """
        Complete the pending request matching ``pairing_code`` and ``initiator``.

        Raises:
            NoMatchingRequest: No pending request matches
            PairingExpired: The matching request is past its expiry
            InvalidSignature: The initiator's signature does not verify

        Returns:
            Address of the committed attestation
        """
        now = self._substrate.current_time()
        pointers = await self._substrate.query_index_pointers(me, LinkType.PENDING_LINK_REQUEST)
        consumed = await self._consumed(me)

        match: tuple[Link, PendingLinkTag] | None = None
        for pointer in pointers:
            if pointer.address in consumed:
                continue
            tag = _decode_tag(pointer)
            if tag is None:
                continue
            if tag.pairing_code == pairing_code and tag.initiator == initiator:
                if tag.expires_at < now:
                    await self._discard(pointer, reason="expired")
                    self._logger.info(
                        "link_request_expired",
                        initiator=str(initiator),
                        request=pointer.address,
                    )
                    raise PairingExpired("Pairing code has expired")
                match = (pointer, tag)
                break

        if match is None:
            raise NoMatchingRequest("No matching pending link request found")

        pointer, tag = match
        await self._verifier.require_pair_signature(
            initiator,
            tag.signature,
            me,
            message="Initiator's signature is invalid",
        )

        payload = sorted_pair_payload(me, initiator)
        my_signature = await self._substrate.sign(me, payload)

        attestation = Attestation.from_signed_pair(
            (me, my_signature),
            (initiator, tag.signature),
            created_at=now,
        )

        # Mark before committing: a request yields at most one attestation.
        marker = await self._substrate.create_index_pointer(
            me,
            pointer.address,
            LinkType.CONSUMED_LINK_REQUEST,
        )
        try:
            address = await self._store.commit(attestation)
        except LinkingError:
            await self._release(marker, request=pointer.address)
            raise

        await self._discard(pointer, reason="completed")
        self._logger.info(
            "link_request_completed",
            initiator=str(initiator),
            target=str(me),
            attestation=address,
        )
        return address

    async def pending_requests(self, me: AgentKey) -> list[PendingRequest]:
        """Incoming requests filed under ``me``, oldest first."""
        now = self._substrate.current_time()
        pointers = await self._substrate.query_index_pointers(me, LinkType.PENDING_LINK_REQUEST)
        consumed = await self._consumed(me)

        requests: list[PendingRequest] = []
        for pointer in pointers:
            tag = _decode_tag(pointer)
            if tag is None:
                continue
            requests.append(
                PendingRequest(
                    address=pointer.address,
                    initiator=tag.initiator,
                    expires_at=tag.expires_at,
                    created_at=pointer.timestamp,
                )
            )

        newest: dict[AgentKey, PendingRequest] = {}
        for request in requests:
            newest[request.initiator] = request

        for request in requests:
            if request.address in consumed:
                request.state = RequestState.COMPLETED
            elif request.expires_at < now:
                request.state = RequestState.EXPIRED
            elif newest[request.initiator] is not request:
                request.state = RequestState.SUPERSEDED
        return requests

    async def cancel(
        self,
        initiator: AgentKey,
        target: AgentKey,
        pairing_code: str | None = None,
    ) -> int:
        """
        Withdraw the initiator's own pending request(s) toward ``target``.

        Returns:
            Number of requests cancelled
        """
        pointers = await self._substrate.query_index_pointers(target, LinkType.PENDING_LINK_REQUEST)

        cancelled = 0
        for pointer in pointers:
            if pointer.author != initiator:
                continue
            tag = _decode_tag(pointer)
            if tag is None or tag.initiator != initiator:
                continue
            if pairing_code is not None and tag.pairing_code != pairing_code:
                continue
            await self._substrate.delete_index_pointer(pointer.address)
            cancelled += 1

        self._logger.info(
            "link_requests_cancelled",
            initiator=str(initiator),
            target=str(target),
            count=cancelled,
        )
        return cancelled

    async def _discard(self, pointer: Link, reason: str) -> None:
        # Pending requests are authored by the initiator, so a target's
        # delete is normally rejected; the consumption marker already
        # keeps a completed request from matching again.
        try:
            await self._substrate.delete_index_pointer(pointer.address)
        except InvalidRecord as e:
            self._logger.debug(
                "link_request_cleanup_rejected",
                request=pointer.address,
                reason=reason,
                error=e.message,
            )
        except LinkingError as e:
            self._logger.warning(
                "link_request_cleanup_failed",
                request=pointer.address,
                reason=reason,
                error=str(e),
            )

    async def _consumed(self, me: AgentKey) -> set[ActionHash]:
        markers = await self._substrate.query_index_pointers(me, LinkType.CONSUMED_LINK_REQUEST)
        return {ActionHash(marker.target) for marker in markers if marker.author == me}

    async def _release(self, marker: ActionHash, request: ActionHash) -> None:
        try:
            await self._substrate.delete_index_pointer(marker)
        except LinkingError as e:
            self._logger.warning(
                "link_request_release_failed",
                request=request,
                marker=marker,
                error=str(e),
            )
