"""HTTP surface for one agent's linking service."""

from __future__ import annotations

import base64
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from agent_linking import __version__
from agent_linking.common.exceptions import (
    InvalidRecord,
    InvalidSignature,
    LinkingError,
    MalformedKey,
    NoMatchingRequest,
    NotFound,
    PairingExpired,
    SelfLinkForbidden,
    SubstrateUnavailableError,
    Unauthorized,
)
from agent_linking.common.types import ActionHash, SignatureBytes
from agent_linking.config import ServerConfig
from agent_linking.linking.service import AgentLinkingService
from agent_linking.observability.logging import configure_logging

logger = structlog.get_logger()

STATUS_CODES: list[tuple[type[LinkingError], int]] = [
    (SelfLinkForbidden, 400),
    (MalformedKey, 400),
    (Unauthorized, 403),
    (NoMatchingRequest, 404),
    (NotFound, 404),
    (PairingExpired, 410),
    (InvalidSignature, 422),
    (InvalidRecord, 422),
    (SubstrateUnavailableError, 503),
]


def status_for(error: LinkingError) -> int:
    for error_type, status in STATUS_CODES:
        if isinstance(error, error_type):
            return status
    return 500


class InitiateRequest(BaseModel):
    target: str


class CompleteRequest(BaseModel):
    pairing_code: str
    initiator: str


class CancelRequest(BaseModel):
    target: str
    pairing_code: str | None = None


class SignPairRequest(BaseModel):
    other_agent: str


class DirectLinkRequest(BaseModel):
    other_agent: str
    other_signature: SignatureBytes


class LinkingServer:
    """
    Serves one agent's :class:`AgentLinkingService` over HTTP.

    Example:
        ```python
        server = LinkingServer(AgentLinkingService(substrate))
        await server.start()
        ```
    """

    def __init__(
        self,
        service: AgentLinkingService,
        config: ServerConfig | None = None,
    ) -> None:
        self.service = service
        self.config = config or ServerConfig()

        self._app = FastAPI(title="agent-linking", version=__version__)
        self._setup_routes()

        self._logger = logger.bind(agent=str(service.agent_key))

    def _setup_routes(self) -> None:
        """Set up FastAPI routes."""
        service = self.service

        @self._app.exception_handler(LinkingError)
        async def linking_error_handler(request: Request, error: LinkingError) -> JSONResponse:
            status = status_for(error)
            self._logger.info(
                "request_failed",
                path=request.url.path,
                status=status,
                error=error.code,
            )
            return JSONResponse(status_code=status, content=error.to_dict())

        @self._app.get("/agent")
        async def get_agent() -> dict[str, Any]:
            return {"agent": str(service.agent_key)}

        @self._app.post("/links/requests")
        async def initiate(body: InitiateRequest) -> dict[str, Any]:
            return {"pairing_code": await service.initiate(body.target)}

        @self._app.get("/links/requests")
        async def pending_requests() -> dict[str, Any]:
            requests = await service.pending_requests()
            return {"requests": [r.model_dump(mode="json") for r in requests]}

        @self._app.post("/links/requests/complete")
        async def complete(body: CompleteRequest) -> dict[str, Any]:
            address = await service.complete(body.pairing_code, body.initiator)
            return {"address": address}

        @self._app.post("/links/requests/cancel")
        async def cancel(body: CancelRequest) -> dict[str, Any]:
            return {"cancelled": await service.cancel(body.target, body.pairing_code)}

        @self._app.post("/links/signatures")
        async def sign_pair(body: SignPairRequest) -> dict[str, Any]:
            signature = await service.sign_pair(body.other_agent)
            return {
                "agent": str(service.agent_key),
                "signature": base64.b64encode(signature).decode("ascii"),
            }

        @self._app.post("/links/direct")
        async def link_direct(body: DirectLinkRequest) -> dict[str, Any]:
            address = await service.link_direct(body.other_agent, body.other_signature)
            return {"address": address}

        @self._app.get("/links/agents/{agent}")
        async def lookup_linked(agent: str) -> dict[str, Any]:
            linked = await service.lookup_linked(agent)
            return {"agent": agent, "linked_agents": [str(key) for key in linked]}

        @self._app.get("/links/agents/{agent_a}/{agent_b}")
        async def are_linked(agent_a: str, agent_b: str) -> dict[str, Any]:
            return {"linked": await service.are_linked(agent_a, agent_b)}

        @self._app.get("/links/entries/{address}")
        async def get_attestation(address: str) -> dict[str, Any]:
            record = await service.get_attestation(ActionHash(address))
            if record is None:
                raise NotFound("Attestation not found", details={"address": address})
            return record.model_dump(mode="json")

        @self._app.delete("/links/entries/{address}")
        async def revoke(address: str) -> dict[str, Any]:
            return {"tombstone": await service.revoke(ActionHash(address))}

        @self._app.get("/metrics", response_class=PlainTextResponse)
        async def metrics() -> str:
            return service.metrics.export_prometheus()

    async def start(self) -> None:
        """Start serving with uvicorn."""
        import uvicorn

        configure_logging()
        self._logger.info("linking_server_starting", host=self.config.host, port=self.config.port)

        config = uvicorn.Config(
            self._app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level,
        )
        server = uvicorn.Server(config)
        await server.serve()

    def get_app(self) -> FastAPI:
        """Get the FastAPI application for external serving."""
        return self._app
