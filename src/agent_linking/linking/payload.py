"""Canonical pair payload: the exact bytes both agents sign."""

from __future__ import annotations

from agent_linking.identity.keys import AgentKey


def canonical_pair(
    agent_a: AgentKey | str,
    agent_b: AgentKey | str,
) -> tuple[AgentKey, AgentKey]:
    """Return the two keys as (lower, higher)."""
    first, second = AgentKey.coerce(agent_a), AgentKey.coerce(agent_b)
    return (first, second) if first <= second else (second, first)


def sorted_pair_payload(agent_a: AgentKey | str, agent_b: AgentKey | str) -> bytes:
    """
    Sort two agent keys and concatenate their raw 39-byte forms.

    Order of the arguments does not matter. The payload carries only the
    keys, so a direct link and a ceremony link sign identical bytes.

    Raises:
        MalformedKey: If either key cannot be decoded
    """
    lower, higher = canonical_pair(agent_a, agent_b)
    return lower.raw + higher.raw
