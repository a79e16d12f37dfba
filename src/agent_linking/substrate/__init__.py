"""Storage and key substrate consumed by the linking protocol."""

from agent_linking.substrate.backend import (
    Link,
    Record,
    Substrate,
    ValidationResult,
)
from agent_linking.substrate.memory import InMemoryNetwork, InMemorySubstrate

__all__ = [
    "Link",
    "Record",
    "Substrate",
    "ValidationResult",
    "InMemoryNetwork",
    "InMemorySubstrate",
]
