"""WebSocket RPC client and the typed call helpers built on it."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import TypeVar

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from muxio.demo.service import Add
from muxio.frame import FrameDecodeError
from muxio.rpc.dispatcher import RpcDispatcher
from muxio.rpc.types import PayloadChunkEvent, RpcRequest, RpcStreamEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MAX_CHUNK_SIZE = 1024


class RpcClient:
    """A connection to an RpcServer over which calls are multiplexed."""

    def __init__(self, connection: ClientConnection) -> None:
        self._ws = connection
        self.dispatcher = RpcDispatcher()
        self._outbox: asyncio.Queue[bytes] = asyncio.Queue()
        self._pending: set[asyncio.Future] = set()
        self._closed = False
        self._receiver = asyncio.create_task(self._receive_loop())
        self._sender = asyncio.create_task(self._send_loop())

    @classmethod
    async def connect(cls, websocket_address: str) -> RpcClient:
        """Open a connection to ``websocket_address``."""
        return cls(await connect(websocket_address))

    async def __aenter__(self) -> RpcClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _receive_loop(self) -> None:
        try:
            async for message in self._ws:
                if not isinstance(message, bytes):
                    break
                try:
                    self.dispatcher.receive_bytes(message)
                except FrameDecodeError as exc:
                    logger.warning("Failed to decode incoming bytes: %r", exc)
        except ConnectionClosed:
            pass
        finally:
            self._closed = True
            self._fail_pending()

    async def _send_loop(self) -> None:
        try:
            while True:
                chunk = await self._outbox.get()
                await self._ws.send(chunk)
        except ConnectionClosed:
            pass

    def _fail_pending(self) -> None:
        for future in self._pending:
            if not future.done():
                future.set_exception(ConnectionError("connection closed"))

    async def call_rpc(
        self,
        method_id: int,
        payload: bytes,
        response_handler: Callable[[bytes], T],
        is_finalized: bool = True,
    ) -> T:
        """Call ``method_id`` and return ``response_handler`` applied to the reply.

        Exceptions raised by ``response_handler`` propagate to the caller;
        ConnectionError is raised if the connection is or becomes closed.
        """
        if self._closed:
            raise ConnectionError("connection closed")

        future: asyncio.Future = asyncio.get_running_loop().create_future()

        def on_response(event: RpcStreamEvent) -> None:
            if not isinstance(event, PayloadChunkEvent) or future.done():
                return
            try:
                result = response_handler(event.payload)
            except Exception as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)

        self._pending.add(future)
        try:
            self.dispatcher.call(
                RpcRequest(
                    method_id=method_id,
                    param_bytes=bytes(payload),
                    pre_buffered_payload_bytes=None,
                    is_finalized=is_finalized,
                ),
                _MAX_CHUNK_SIZE,
                self._outbox.put_nowait,
                on_response,
                True,
            )
            return await future
        finally:
            self._pending.discard(future)

    async def close(self) -> None:
        """Close the connection and fail any calls still waiting."""
        self._closed = True
        await self._ws.close()
        for task in (self._sender, self._receiver):
            task.cancel()
        for task in (self._sender, self._receiver):
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._fail_pending()


async def add(rpc_client: RpcClient, numbers: list[float]) -> float:
    """Ask the server for the sum of ``numbers``."""
    return await rpc_client.call_rpc(
        Add.METHOD_ID,
        Add.encode_request(numbers),
        Add.decode_response,
        True,
    )