"""In-memory substrate: per-author append-only chains plus a shared index."""

from __future__ import annotations

import secrets
from collections import defaultdict
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime

import structlog

from agent_linking.common.exceptions import (
    InvalidRecord,
    NotFound,
    SubstrateUnavailableError,
    Unauthorized,
)
from agent_linking.common.types import ActionHash, EntryType, LinkType, canonical_json, utcnow
from agent_linking.identity import hashes
from agent_linking.identity.keys import AgentKey, AgentKeyPair, verify_signature
from agent_linking.substrate.backend import (
    CreateLinkOp,
    DeleteLinkOp,
    DeleteRecordOp,
    Link,
    Op,
    Record,
    StoreRecordOp,
    Substrate,
    ValidationResult,
    Validator,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class Tombstone:
    """A delete action layered over a record or pointer."""

    address: ActionHash
    deletes: ActionHash
    author: AgentKey
    timestamp: datetime


class InMemoryNetwork:
    """
    Shared state for a set of in-process agents.

    Each agent appends only to its own chain; records, pointers and
    tombstones are addressed by the hash of the action that created them.
    Every write is passed to ``validator`` before it is accepted.

    Example:
        ```python
        network = InMemoryNetwork(validator=validate_op)
        alice = network.join(AgentKeyPair.generate())
        bob = network.join(AgentKeyPair.generate())
        ```
    """

    def __init__(
        self,
        validator: Validator | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.validator = validator
        self.clock = clock or utcnow
        self.available = True

        self._chains: dict[AgentKey, list[ActionHash]] = defaultdict(list)
        self._records: dict[ActionHash, Record] = {}
        self._links: dict[ActionHash, Link] = {}
        self._links_by_base: dict[tuple[AgentKey, LinkType], list[ActionHash]] = defaultdict(list)
        self._tombstones: dict[ActionHash, list[Tombstone]] = defaultdict(list)

        self._logger = logger.bind(network=id(self))

    def join(self, keypair: AgentKeyPair) -> InMemorySubstrate:
        """Create a substrate bound to ``keypair``'s identity."""
        return InMemorySubstrate(self, keypair)

    def records(self, entry_type: EntryType | None = None) -> Iterator[Record]:
        """Iterate stored records in commit order."""
        for record in list(self._records.values()):
            if entry_type is None or record.entry_type == entry_type:
                yield record

    def is_tombstoned(self, address: ActionHash) -> bool:
        return bool(self._tombstones.get(address))

    def _check_available(self) -> None:
        if not self.available:
            raise SubstrateUnavailableError("Substrate network is unavailable")

    def _validate(self, op: Op) -> None:
        if self.validator is None:
            return
        result: ValidationResult = self.validator(op)
        if not result.valid:
            self._logger.warning("write_rejected", op=type(op).__name__, reasons=result.reasons)
            raise InvalidRecord(
                "Write rejected by validation: " + "; ".join(result.reasons),
                reasons=result.reasons,
            )

    def _next_action(self, author: AgentKey, action_type: str, body: dict) -> tuple[ActionHash, datetime]:
        chain = self._chains[author]
        timestamp = self.clock()
        header = {
            "type": action_type,
            "author": str(author),
            "seq": len(chain),
            "prev": chain[-1] if chain else None,
            "timestamp": timestamp.isoformat(),
            **body,
        }
        return ActionHash(hashes.action_hash(canonical_json(header))), timestamp

    def _append(self, author: AgentKey, address: ActionHash) -> None:
        self._chains[author].append(address)

    def commit(self, author: AgentKey, entry_type: EntryType, content: bytes) -> ActionHash:
        self._check_available()
        address, timestamp = self._next_action(
            author,
            "create",
            {"entry_type": entry_type, "entry_hash": hashes.entry_hash(content)},
        )
        record = Record(
            address=address,
            author=author,
            entry_type=entry_type,
            content=content,
            timestamp=timestamp,
        )
        self._validate(StoreRecordOp(record))
        self._append(author, address)
        self._records[address] = record
        return address

    def get(self, address: ActionHash) -> Record | None:
        self._check_available()
        return self._records.get(address)

    def delete(self, author: AgentKey, address: ActionHash) -> ActionHash:
        self._check_available()
        record = self._records.get(address)
        if record is None:
            raise NotFound("Record not found", details={"address": address})
        self._validate(DeleteRecordOp(record, author))
        tombstone_address, timestamp = self._next_action(author, "delete", {"deletes": address})
        self._append(author, tombstone_address)
        self._tombstones[address].append(
            Tombstone(tombstone_address, address, author, timestamp)
        )
        return tombstone_address

    def create_link(
        self,
        author: AgentKey,
        base: AgentKey,
        target: str,
        link_type: LinkType,
        tag: bytes,
    ) -> ActionHash:
        self._check_available()
        address, timestamp = self._next_action(
            author,
            "create_link",
            {
                "base": str(base),
                "target": target,
                "link_type": link_type.value,
                "tag": hashes.entry_hash(tag),
            },
        )
        link = Link(
            address=address,
            base=base,
            target=target,
            link_type=link_type,
            tag=tag,
            author=author,
            timestamp=timestamp,
        )
        self._validate(CreateLinkOp(link))
        self._append(author, address)
        self._links[address] = link
        self._links_by_base[(base, link_type)].append(address)
        return address

    def get_links(self, base: AgentKey, link_type: LinkType) -> list[Link]:
        self._check_available()
        return [
            self._links[address]
            for address in self._links_by_base.get((base, link_type), [])
            if not self.is_tombstoned(address)
        ]

    def delete_link(self, author: AgentKey, address: ActionHash) -> ActionHash:
        self._check_available()
        link = self._links.get(address)
        if link is None:
            raise NotFound("Index pointer not found", details={"address": address})
        self._validate(DeleteLinkOp(link, author))
        tombstone_address, timestamp = self._next_action(author, "delete_link", {"deletes": address})
        self._append(author, tombstone_address)
        self._tombstones[address].append(
            Tombstone(tombstone_address, address, author, timestamp)
        )
        return tombstone_address


class InMemorySubstrate(Substrate):
    """One agent's view of an :class:`InMemoryNetwork`."""

    def __init__(self, network: InMemoryNetwork, keypair: AgentKeyPair) -> None:
        self.network = network
        self._keypair = keypair

    def current_identity(self) -> AgentKey:
        return self._keypair.agent_key

    def current_time(self) -> datetime:
        return self.network.clock()

    def random_bytes(self, n: int) -> bytes:
        return secrets.token_bytes(n)

    async def commit_record(self, entry_type: EntryType, content: bytes) -> ActionHash:
        return self.network.commit(self.current_identity(), entry_type, content)

    async def read_record(self, address: ActionHash) -> Record | None:
        return self.network.get(address)

    async def read_with_tombstone_state(self, address: ActionHash) -> tuple[Record, bool] | None:
        record = self.network.get(address)
        if record is None:
            return None
        return record, self.network.is_tombstoned(address)

    async def delete_record(self, address: ActionHash) -> ActionHash:
        return self.network.delete(self.current_identity(), address)

    async def create_index_pointer(
        self,
        base: AgentKey,
        target: str,
        link_type: LinkType,
        tag: bytes = b"",
    ) -> ActionHash:
        return self.network.create_link(self.current_identity(), base, target, link_type, tag)

    async def query_index_pointers(self, base: AgentKey, link_type: LinkType) -> list[Link]:
        return self.network.get_links(base, link_type)

    async def delete_index_pointer(self, address: ActionHash) -> ActionHash:
        return self.network.delete_link(self.current_identity(), address)

    async def sign(self, agent: AgentKey, payload: bytes) -> bytes:
        if agent != self._keypair.agent_key:
            raise Unauthorized("No signing key held for agent", details={"agent": str(agent)})
        return self._keypair.sign(payload)

    async def verify(self, agent: AgentKey, signature: bytes, payload: bytes) -> bool:
        return verify_signature(agent, signature, payload)
