"""
Example: Linking Two Agents

Demonstrates:
1. Pairing ceremony (initiate on one device, complete on the other)
2. Direct linking with an out-of-band signature
3. Revocation
4. Structural validation rejecting a non-canonical attestation
"""

import asyncio

from agent_linking import AgentKeyPair, AgentLinkingService, InMemoryNetwork, validate_op
from agent_linking.common.exceptions import InvalidRecord, PairingExpired
from agent_linking.common.types import ATTESTATION_ENTRY_TYPE
from agent_linking.linking.types import Attestation
from agent_linking.observability import configure_logging


async def ceremony_example(network: InMemoryNetwork) -> None:
    """Demonstrate the pairing ceremony."""
    print("=" * 60)
    print("Pairing Ceremony Example")
    print("=" * 60)

    laptop = AgentLinkingService(network.join(AgentKeyPair.generate()))
    phone = AgentLinkingService(network.join(AgentKeyPair.generate()))

    print("\n1. Laptop initiates a link request...")
    code = await laptop.initiate(phone.agent_key)
    print(f"   Pairing code: {code}")

    print("\n2. Phone lists incoming requests...")
    for request in await phone.pending_requests():
        print(f"   From {request.initiator} ({request.state}), expires {request.expires_at:%H:%M:%S}")

    print("\n3. Phone completes with the code typed in by the user...")
    address = await phone.complete(code, laptop.agent_key)
    print(f"   Attestation: {address}")
    print(f"   Linked: {await laptop.are_linked(laptop.agent_key, phone.agent_key)}")

    print("\n4. Reusing a code after expiry fails...")
    stale = await laptop.initiate(phone.agent_key)
    original_clock = network.clock
    network.clock = lambda: original_clock() + laptop.config.request_ttl * 2
    try:
        await phone.complete(stale, laptop.agent_key)
    except PairingExpired as e:
        print(f"   Rejected: {e}")
    finally:
        network.clock = original_clock

    print("\n5. Laptop revokes the link...")
    tombstone = await laptop.revoke(address)
    print(f"   Tombstone: {tombstone}")
    print(f"   Linked: {await phone.are_linked(phone.agent_key, laptop.agent_key)}")
    print()


async def direct_link_example(network: InMemoryNetwork) -> None:
    """Demonstrate linking with a signature delivered out of band."""
    print("=" * 60)
    print("Direct Link Example")
    print("=" * 60)

    work = AgentLinkingService(network.join(AgentKeyPair.generate()))
    personal = AgentLinkingService(network.join(AgentKeyPair.generate()))

    print("\n1. Personal agent signs the pair...")
    signature = await personal.sign_pair(work.agent_key)
    print(f"   Signature: {signature.hex()[:32]}...")

    print("\n2. Work agent links directly...")
    address = await work.link_direct(personal.agent_key, signature)
    print(f"   Attestation: {address}")
    print(f"   Linked agents of work: {[str(k) for k in await work.lookup_linked(work.agent_key)]}")
    print()


async def validation_example(network: InMemoryNetwork) -> None:
    """Demonstrate the substrate rejecting a reversed attestation."""
    print("=" * 60)
    print("Validation Example")
    print("=" * 60)

    first, second = AgentKeyPair.generate(), AgentKeyPair.generate()
    low, high = sorted((first, second), key=lambda k: k.agent_key)
    payload = low.agent_key.raw + high.agent_key.raw

    reversed_attestation = Attestation(
        agent_a=high.agent_key,
        signature_a=high.sign(payload),
        agent_b=low.agent_key,
        signature_b=low.sign(payload),
        created_at=network.clock(),
    )

    print("\n1. Committing a non-canonical attestation...")
    try:
        await network.join(low).commit_record(ATTESTATION_ENTRY_TYPE, reversed_attestation.to_content())
    except InvalidRecord as e:
        print(f"   Rejected: {e.reasons}")
    print()


async def main():
    """Run all examples."""
    configure_logging(log_level="warning")

    print("\n" + "=" * 60)
    print("Agent Linking - Demo")
    print("=" * 60)
    print()

    network = InMemoryNetwork(validator=validate_op)

    await ceremony_example(network)
    await direct_link_example(network)
    await validation_example(network)

    print("=" * 60)
    print("Demo completed!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
