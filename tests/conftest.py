"""Shared fixtures: one in-memory network with three agents."""

from datetime import UTC, datetime, timedelta

import pytest

from agent_linking.identity.keys import AgentKeyPair
from agent_linking.linking.service import AgentLinkingService
from agent_linking.linking.validation import validate_op
from agent_linking.substrate.memory import InMemoryNetwork


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def network(clock):
    return InMemoryNetwork(validator=validate_op, clock=clock)


@pytest.fixture
def alice_keys():
    return AgentKeyPair.generate()


@pytest.fixture
def bob_keys():
    return AgentKeyPair.generate()


@pytest.fixture
def carol_keys():
    return AgentKeyPair.generate()


@pytest.fixture
def alice(network, alice_keys):
    return AgentLinkingService(network.join(alice_keys))


@pytest.fixture
def bob(network, bob_keys):
    return AgentLinkingService(network.join(bob_keys))


@pytest.fixture
def carol(network, carol_keys):
    return AgentLinkingService(network.join(carol_keys))
