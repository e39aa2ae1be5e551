"""RPC session that routes inbound response streams to per-request handlers."""

from __future__ import annotations

from collections.abc import Callable

from muxio.rpc.session import RpcSession
from muxio.rpc.stream_codec import RpcStreamEncoder
from muxio.rpc.types import (
    EndEvent,
    ErrorEvent,
    HeaderEvent,
    PayloadChunkEvent,
    RpcHeader,
    RpcStreamEvent,
)

ResponseHandler = Callable[[RpcStreamEvent], object]
Emitter = Callable[[bytes], object]


class RpcRespondableSession:
    """Wraps an RpcSession and tracks a response handler per outbound request.

    Events for a request with a registered handler go to that handler. All
    other events, and every event of a pre-buffered response, also go to the
    optional catch-all handler.
    """

    def __init__(self) -> None:
        self._session = RpcSession()
        self._response_handlers: dict[int, ResponseHandler] = {}
        self._catch_all_response_handler: ResponseHandler | None = None
        self._pre_buffered_responses: dict[int, bytearray] = {}
        self._pre_buffering_flags: dict[int, bool] = {}

    @property
    def remaining_response_handlers(self) -> int:
        """Number of per-request response handlers still waiting for their stream to end."""
        return len(self._response_handlers)

    def init_respondable_request(
        self,
        header: RpcHeader,
        max_chunk_size: int,
        on_emit: Emitter,
        on_response: ResponseHandler | None = None,
        pre_buffer_response: bool = False,
    ) -> RpcStreamEncoder:
        """Open an outbound stream and register a handler for its response.

        With ``pre_buffer_response`` the whole response payload is delivered
        to the handler as a single PayloadChunkEvent just before the EndEvent.
        """
        self._pre_buffering_flags[header.id] = pre_buffer_response
        if on_response is not None:
            self._response_handlers[header.id] = on_response
        return self._session.init_request(header, max_chunk_size, on_emit)

    def start_reply_stream(
        self,
        header: RpcHeader,
        max_chunk_size: int,
        on_emit: Emitter,
    ) -> RpcStreamEncoder:
        """Open an outbound stream that answers a received request."""
        return self._session.init_request(header, max_chunk_size, on_emit)

    def set_catch_all_response_handler(self, handler: ResponseHandler) -> None:
        """Install the handler that receives events no request handler consumed."""
        self._catch_all_response_handler = handler

    def receive_bytes(self, data: bytes | bytearray | memoryview) -> None:
        """Decode incoming bytes and route the resulting events.

        Decoding errors raised by the underlying session propagate.
        """
        self._session.receive_bytes(data, self._route_event)

    def _route_event(self, event: RpcStreamEvent) -> None:
        rpc_id = event.rpc_header_id
        handled = False

        if rpc_id is not None:
            handler = self._response_handlers.get(rpc_id)
            if self._pre_buffering_flags.get(rpc_id, False):
                buffer = self._pre_buffered_responses.setdefault(rpc_id, bytearray())
                if isinstance(event, HeaderEvent):
                    if handler is not None:
                        handler(event)
                elif isinstance(event, PayloadChunkEvent):
                    buffer.extend(event.payload)
                elif isinstance(event, EndEvent):
                    if handler is not None:
                        handler(PayloadChunkEvent(rpc_id, event.rpc_method_id, bytes(buffer)))
                        handler(event)
                        self._pre_buffered_responses.pop(rpc_id, None)
            elif handler is not None:
                handler(event)
                handled = True

            if isinstance(event, (EndEvent, ErrorEvent)):
                self._response_handlers.pop(rpc_id, None)

        if not handled and self._catch_all_response_handler is not None:
            self._catch_all_response_handler(event)