"""HTTP client for a remote agent's linking server."""

from __future__ import annotations

import base64
from typing import Any

import httpx
import structlog

from agent_linking.common.decorators import retry_with_backoff
from agent_linking.common.exceptions import (
    ERROR_TYPES,
    InvalidRecord,
    LinkingError,
    ProtocolError,
    SubstrateUnavailableError,
)
from agent_linking.common.types import ActionHash
from agent_linking.identity.keys import AgentKey
from agent_linking.linking.types import AttestationRecord, PendingRequest

logger = structlog.get_logger()


def error_from_response(response: httpx.Response) -> LinkingError:
    """Rebuild the server-side exception from an error response."""
    try:
        body = response.json()
    except ValueError:
        body = {}

    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        return ProtocolError(
            f"Request rejected with HTTP {response.status_code}",
            details={"status": response.status_code, "body": body},
        )

    error_type = ERROR_TYPES.get(error.get("type", ""), LinkingError)
    message = error.get("message", "")
    details = error.get("details") or {}
    if error_type is InvalidRecord:
        return InvalidRecord(message, reasons=details.get("reasons"), code=error.get("code"))
    return error_type(message, code=error.get("code"), details=details)


class LinkingClient:
    """
    Calls one agent's :class:`~agent_linking.server.LinkingServer`.

    Protocol errors are raised as the same exception classes the server
    raised and are never retried. Substrate unavailability is retried with
    exponential backoff, as are transport failures on reads. Writes are
    retried on transport failures only if the connection was never made.

    Example:
        ```python
        async with LinkingClient("http://127.0.0.1:8000") as bob:
            address = await bob.complete(code, alice_key)
        ```
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
        max_attempts: int = 3,
        base_delay: float = 0.5,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)
        self._send_read = retry_with_backoff(
            max_attempts=max_attempts,
            base_delay=base_delay,
            exceptions=(SubstrateUnavailableError, httpx.TransportError),
        )(self._send_once)
        # A write whose response was lost may already have been applied, so
        # only failures before the request left are retried.
        self._send_write = retry_with_backoff(
            max_attempts=max_attempts,
            base_delay=base_delay,
            exceptions=(SubstrateUnavailableError, httpx.ConnectError, httpx.ConnectTimeout),
        )(self._send_once)
        self._logger = logger.bind(base_url=base_url)

    async def __aenter__(self) -> LinkingClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _send_once(self, method: str, path: str, json: dict[str, Any] | None = None) -> httpx.Response:
        response = await self._client.request(method, path, json=json)
        if response.is_error:
            error = error_from_response(response)
            self._logger.debug("request_failed", method=method, path=path, status=response.status_code, error=error.code)
            raise error
        return response

    async def _send(self, method: str, path: str, json: dict[str, Any] | None = None) -> httpx.Response:
        if method == "GET":
            return await self._send_read(method, path, json)
        return await self._send_write(method, path, json)

    async def _json(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        response = await self._send(method, path, json)
        return response.json()

    async def agent_key(self) -> AgentKey:
        data = await self._json("GET", "/agent")
        return AgentKey.from_string(data["agent"])

    async def initiate(self, target: AgentKey | str) -> str:
        data = await self._json("POST", "/links/requests", {"target": str(target)})
        return data["pairing_code"]

    async def pending_requests(self) -> list[PendingRequest]:
        data = await self._json("GET", "/links/requests")
        return [PendingRequest.model_validate(item) for item in data["requests"]]

    async def complete(self, pairing_code: str, initiator: AgentKey | str) -> ActionHash:
        data = await self._json(
            "POST",
            "/links/requests/complete",
            {"pairing_code": pairing_code, "initiator": str(initiator)},
        )
        return ActionHash(data["address"])

    async def cancel(self, target: AgentKey | str, pairing_code: str | None = None) -> int:
        data = await self._json(
            "POST",
            "/links/requests/cancel",
            {"target": str(target), "pairing_code": pairing_code},
        )
        return data["cancelled"]

    async def sign_pair(self, other: AgentKey | str) -> bytes:
        data = await self._json("POST", "/links/signatures", {"other_agent": str(other)})
        return base64.b64decode(data["signature"])

    async def link_direct(self, other: AgentKey | str, other_signature: bytes) -> ActionHash:
        data = await self._json(
            "POST",
            "/links/direct",
            {
                "other_agent": str(other),
                "other_signature": base64.b64encode(other_signature).decode("ascii"),
            },
        )
        return ActionHash(data["address"])

    async def lookup_linked(self, agent: AgentKey | str) -> list[AgentKey]:
        data = await self._json("GET", f"/links/agents/{agent}")
        return [AgentKey.from_string(key) for key in data["linked_agents"]]

    async def are_linked(self, agent_a: AgentKey | str, agent_b: AgentKey | str) -> bool:
        data = await self._json("GET", f"/links/agents/{agent_a}/{agent_b}")
        return data["linked"]

    async def get_attestation(self, address: ActionHash) -> AttestationRecord:
        data = await self._json("GET", f"/links/entries/{address}")
        return AttestationRecord.model_validate(data)

    async def revoke(self, address: ActionHash) -> ActionHash:
        data = await self._json("DELETE", f"/links/entries/{address}")
        return ActionHash(data["tombstone"])

    async def metrics(self) -> str:
        response = await self._send("GET", "/metrics")
        return response.text
