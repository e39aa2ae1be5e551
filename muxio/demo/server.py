"""WebSocket server that answers RPC calls with registered handlers."""

from __future__ import annotations

import logging
import socket
from collections.abc import Callable
from http import HTTPStatus

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed
from websockets.http11 import Request, Response

from muxio.frame import FrameDecodeError
from muxio.rpc.dispatcher import RpcDispatcher
from muxio.rpc.types import RpcResponse, RpcResultStatus

logger = logging.getLogger(__name__)

RpcHandler = Callable[[bytes], bytes]

_WS_PATH = "/ws"
_MAX_CHUNK_SIZE = 1024


class RpcServer:
    """Serves RPC calls over WebSocket connections at the ``/ws`` path."""

    def __init__(self) -> None:
        self._handlers: dict[int, RpcHandler] = {}

    def register(self, method_id: int, handler: RpcHandler) -> None:
        """Register ``handler`` for ``method_id``, replacing any earlier one."""
        self._handlers[method_id] = handler

    async def serve(self, address: str) -> tuple[str, int]:
        """Bind to ``host:port`` and serve until cancelled."""
        host, sep, port = address.rpartition(":")
        if not sep:
            raise ValueError(f"address must be host:port, got {address!r}")
        listener = socket.create_server((host.strip("[]"), int(port)))
        return await self.serve_with_listener(listener)

    async def serve_with_listener(self, sock: socket.socket) -> tuple[str, int]:
        """Serve on an already bound socket until cancelled."""
        host, port = sock.getsockname()[:2]
        try:
            sock.listen()
        except OSError:
            pass
        logger.info("Server running on %s:%s", host, port)
        async with serve(self._handle_socket, sock=sock, process_request=self._route) as server:
            await server.serve_forever()
        return host, port

    @staticmethod
    def _route(connection: ServerConnection, request: Request) -> Response | None:
        if request.path != _WS_PATH:
            return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")
        logger.info("Client connected: %s", connection.remote_address)
        return None

    async def _handle_socket(self, connection: ServerConnection) -> None:
        dispatcher = RpcDispatcher()
        try:
            async for message in connection:
                if not isinstance(message, bytes):
                    break
                outbox: list[bytes] = []
                self._process(dispatcher, message, outbox.append)
                for chunk in outbox:
                    await connection.send(chunk)
        except ConnectionClosed:
            pass

    def _process(
        self,
        dispatcher: RpcDispatcher,
        message: bytes,
        emit: Callable[[bytes], object],
    ) -> None:
        try:
            request_ids = dispatcher.receive_bytes(message)
        except FrameDecodeError as exc:
            logger.warning("Failed to decode incoming bytes: %r", exc)
            return

        for request_id in request_ids:
            if not dispatcher.is_rpc_request_finalized(request_id):
                continue
            request = dispatcher.delete_rpc_request(request_id)
            if request is None or request.param_bytes is None:
                continue

            handler = self._handlers.get(request.method_id)
            if handler is not None:
                response = RpcResponse(
                    request_header_id=request_id,
                    method_id=request.method_id,
                    result_status=RpcResultStatus.SUCCESS.value,
                    pre_buffered_payload_bytes=handler(request.param_bytes),
                    is_finalized=True,
                )
            else:
                response = RpcResponse(
                    request_header_id=request_id,
                    method_id=request.method_id,
                    result_status=RpcResultStatus.SYSTEM_ERROR.value,
                    pre_buffered_payload_bytes=None,
                    is_finalized=True,
                )
            dispatcher.respond(response, _MAX_CHUNK_SIZE, emit)