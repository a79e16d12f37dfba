"""Substrate interface: content-addressed records, index pointers, tombstones, keys."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from agent_linking.common.types import ActionHash, EntryType, LinkType
from agent_linking.identity.keys import AgentKey


@dataclass(frozen=True)
class Record:
    """An immutable record committed to an author's chain."""

    address: ActionHash
    author: AgentKey
    entry_type: EntryType
    content: bytes
    timestamp: datetime


@dataclass(frozen=True)
class Link:
    """A one-way index pointer filed under ``base``."""

    address: ActionHash
    base: AgentKey
    target: str
    link_type: LinkType
    tag: bytes
    author: AgentKey
    timestamp: datetime


# Write operations relayed to the validation callback.
@dataclass(frozen=True)
class StoreRecordOp:
    record: Record


@dataclass(frozen=True)
class DeleteRecordOp:
    record: Record
    author: AgentKey


@dataclass(frozen=True)
class CreateLinkOp:
    link: Link


@dataclass(frozen=True)
class DeleteLinkOp:
    link: Link
    author: AgentKey


Op = StoreRecordOp | DeleteRecordOp | CreateLinkOp | DeleteLinkOp


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one op. ``reasons`` is empty when valid."""

    reasons: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.reasons

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls()

    @classmethod
    def invalid(cls, *reasons: str) -> ValidationResult:
        return cls(reasons=list(reasons))


Validator = Callable[[Op], ValidationResult]


class Substrate(ABC):
    """
    The capabilities the linking protocol consumes, bound to one agent.

    Implementations include:
    - InMemorySubstrate: single-process network for tests and demos

    Storage operations are async and raise ``SubstrateUnavailableError``
    when the backing network cannot be reached. Writes are validated
    before they are accepted and raise ``InvalidRecord`` when rejected.
    """

    @abstractmethod
    def current_identity(self) -> AgentKey:
        """The agent this substrate writes and signs as."""
        pass

    @abstractmethod
    def current_time(self) -> datetime:
        """Timezone-aware current time."""
        pass

    @abstractmethod
    def random_bytes(self, n: int) -> bytes:
        """Cryptographically secure random bytes."""
        pass

    @abstractmethod
    async def commit_record(self, entry_type: EntryType, content: bytes) -> ActionHash:
        """
        Commit an immutable record authored by the current identity.

        Args:
            entry_type: Record type tag
            content: Serialized record content

        Returns:
            Address of the create action
        """
        pass

    @abstractmethod
    async def read_record(self, address: ActionHash) -> Record | None:
        """Read a record regardless of tombstone state."""
        pass

    @abstractmethod
    async def read_with_tombstone_state(self, address: ActionHash) -> tuple[Record, bool] | None:
        """Read a record and whether it has been tombstoned."""
        pass

    @abstractmethod
    async def delete_record(self, address: ActionHash) -> ActionHash:
        """Tombstone a record. Returns the tombstone's address."""
        pass

    @abstractmethod
    async def create_index_pointer(
        self,
        base: AgentKey,
        target: str,
        link_type: LinkType,
        tag: bytes = b"",
    ) -> ActionHash:
        """File a pointer to ``target`` under ``base``."""
        pass

    @abstractmethod
    async def query_index_pointers(self, base: AgentKey, link_type: LinkType) -> list[Link]:
        """Live (non-tombstoned) pointers under ``base`` in creation order."""
        pass

    @abstractmethod
    async def delete_index_pointer(self, address: ActionHash) -> ActionHash:
        """Tombstone a pointer. Returns the tombstone's address."""
        pass

    @abstractmethod
    async def sign(self, agent: AgentKey, payload: bytes) -> bytes:
        """Sign with a key held by this substrate's keystore."""
        pass

    @abstractmethod
    async def verify(self, agent: AgentKey, signature: bytes, payload: bytes) -> bool:
        """Verify a signature against an agent key."""
        pass
