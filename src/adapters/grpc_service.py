"""gRPC adapter exposing GetChatMessages.

The service is registered through a generic handler with a JSON codec, so no
protobuf code generation step is needed. Payloads are UTF-8 JSON objects:
request ``{"userId": "..."}`` and response ``{"messages": [...]}``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Optional

import grpc

from core.delivery import MessageDeliveryCoordinator
from core.errors import INTERNAL, INVALID_ARGUMENT, NOT_FOUND, DeliveryError
from core.models import ChatResponse

LOGGER = logging.getLogger(__name__)

SERVICE_NAME = "chat.ChatService"
METHOD_GET_CHAT_MESSAGES = "GetChatMessages"

_STATUS_CODES = {
    NOT_FOUND: grpc.StatusCode.NOT_FOUND,
    INTERNAL: grpc.StatusCode.INTERNAL,
    INVALID_ARGUMENT: grpc.StatusCode.INVALID_ARGUMENT,
}


@dataclass(frozen=True)
class ChatRequest:
    user_id: str


def decode_request(payload: bytes) -> ChatRequest:
    """Parse a request body; malformed bodies yield an empty user id."""

    try:
        body = json.loads(payload.decode("utf-8")) if payload else {}
    except (UnicodeDecodeError, json.JSONDecodeError):
        LOGGER.warning("Malformed GetChatMessages request body")
        return ChatRequest(user_id="")
    if not isinstance(body, dict):
        return ChatRequest(user_id="")
    user_id = body.get("userId", body.get("user_id", ""))
    return ChatRequest(user_id=user_id if isinstance(user_id, str) else "")


def encode_response(response: ChatResponse) -> bytes:
    return json.dumps({"messages": response.messages}, ensure_ascii=False).encode("utf-8")


class ChatService:
    """Implements the ChatService contract on top of the delivery coordinator."""

    def __init__(self, coordinator: Optional[MessageDeliveryCoordinator]) -> None:
        self._coordinator = coordinator

    async def GetChatMessages(
        self, request: ChatRequest, context: grpc.aio.ServicerContext
    ) -> ChatResponse:
        if self._coordinator is None:
            await context.abort(grpc.StatusCode.INTERNAL, "Document store client is not initialized")

        timeout = context.time_remaining()
        try:
            return await asyncio.wait_for(
                self._coordinator.get_chat_messages(request.user_id),
                timeout=timeout,
            )
        except DeliveryError as exc:
            await context.abort(_STATUS_CODES.get(exc.code, grpc.StatusCode.INTERNAL), exc.detail)
        except asyncio.TimeoutError:
            LOGGER.warning("GetChatMessages for %s exceeded its deadline", request.user_id)
            await context.abort(grpc.StatusCode.DEADLINE_EXCEEDED, "Deadline exceeded")

    def handler(self) -> grpc.GenericRpcHandler:
        return grpc.method_handlers_generic_handler(
            SERVICE_NAME,
            {
                METHOD_GET_CHAT_MESSAGES: grpc.unary_unary_rpc_method_handler(
                    self.GetChatMessages,
                    request_deserializer=decode_request,
                    response_serializer=encode_response,
                )
            },
        )


class GRPCServer:
    """Async gRPC server hosting the ChatService."""

    def __init__(
        self,
        coordinator: Optional[MessageDeliveryCoordinator],
        host: str = "0.0.0.0",
        port: int = 8080,
    ) -> None:
        self._coordinator = coordinator
        self._host = host
        self._port = port
        self._server: Optional[grpc.aio.Server] = None

    @property
    def address(self) -> str:
        return f"{self._host}:{self._port}"

    async def start(self) -> None:
        LOGGER.info("Starting gRPC server on %s", self.address)
        self._server = grpc.aio.server()
        self._server.add_generic_rpc_handlers((ChatService(self._coordinator).handler(),))
        self._server.add_insecure_port(self.address)
        await self._server.start()
        LOGGER.info("gRPC server listening on %s", self.address)

    async def stop(self, grace_period: float = 5.0) -> None:
        if self._server is None:
            return
        LOGGER.info("Stopping gRPC server (grace %ss)", grace_period)
        await self._server.stop(grace_period)
        if self._coordinator is not None:
            await self._coordinator.close()

    async def wait_for_termination(self) -> None:
        if self._server is None:
            return
        await self._server.wait_for_termination()


async def serve(
    coordinator: Optional[MessageDeliveryCoordinator],
    host: str = "0.0.0.0",
    port: int = 8080,
    grace_period: float = 5.0,
) -> None:
    """Start the server and block until it terminates."""

    server = GRPCServer(coordinator, host=host, port=port)
    await server.start()
    try:
        await server.wait_for_termination()
    finally:
        await server.stop(grace_period)
