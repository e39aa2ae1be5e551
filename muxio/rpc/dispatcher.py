"""Request/response dispatching over a framed, multiplexed transport."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from muxio.rpc.respondable_session import Emitter, ResponseHandler, RpcRespondableSession
from muxio.rpc.stream_codec import RpcStreamEncoder
from muxio.rpc.types import (
    EndEvent,
    ErrorEvent,
    HeaderEvent,
    PayloadChunkEvent,
    RpcHeader,
    RpcMessageType,
    RpcRequest,
    RpcResponse,
    RpcStreamEvent,
)
from muxio.utils import increment_u32_id

logger = logging.getLogger(__name__)


class RpcDispatcher:
    """Coordinates outbound calls, replies, and the queue of inbound requests.

    Every inbound stream that is not claimed by a response handler is
    collected into a request queue keyed by its header id, where it can be
    inspected and removed once finalized.
    """

    def __init__(self) -> None:
        self._session = RpcRespondableSession()
        self._next_header_id = increment_u32_id()
        self._queue: list[tuple[int, RpcRequest]] = []
        self._lock = threading.Lock()
        self._session.set_catch_all_response_handler(self._on_event)

    def _find(self, header_id: int) -> RpcRequest | None:
        return next((req for rid, req in self._queue if rid == header_id), None)

    def _on_event(self, event: RpcStreamEvent) -> None:
        if isinstance(event, ErrorEvent):
            logger.warning(
                "Error in stream. Method: %r %r: %r",
                event.rpc_method_id,
                event.rpc_header_id,
                event.frame_decode_error,
            )
            return

        with self._lock:
            if isinstance(event, HeaderEvent):
                metadata = event.rpc_header.metadata_bytes
                request = RpcRequest(
                    method_id=event.rpc_header.method_id,
                    param_bytes=bytes(metadata) if metadata else None,
                    pre_buffered_payload_bytes=None,
                    is_finalized=False,
                )
                self._queue.append((event.rpc_header_id, request))
            elif isinstance(event, PayloadChunkEvent):
                request = self._find(event.rpc_header_id)
                if request is not None:
                    request.pre_buffered_payload_bytes = (
                        request.pre_buffered_payload_bytes or b""
                    ) + bytes(event.payload)
            elif isinstance(event, EndEvent):
                request = self._find(event.rpc_header_id)
                if request is not None:
                    request.is_finalized = True

    def call(
        self,
        rpc_request: RpcRequest,
        max_chunk_size: int,
        on_emit: Emitter,
        on_response: ResponseHandler | None = None,
        pre_buffer_response: bool = False,
    ) -> RpcStreamEncoder:
        """Start an outbound call and return the encoder of its stream.

        The request's pre-buffered payload is sent right after the header;
        a finalized request has its stream flushed and ended at once.
        """
        header_id = self._next_header_id
        self._next_header_id = increment_u32_id()

        header = RpcHeader(
            msg_type=RpcMessageType.CALL,
            id=header_id,
            method_id=rpc_request.method_id,
            metadata_bytes=bytes(rpc_request.param_bytes or b""),
        )
        encoder = self._session.init_respondable_request(
            header, max_chunk_size, on_emit, on_response, pre_buffer_response
        )

        if rpc_request.pre_buffered_payload_bytes is not None:
            encoder.push_bytes(rpc_request.pre_buffered_payload_bytes)

        if rpc_request.is_finalized:
            encoder.flush()
            encoder.end_stream()

        return encoder

    def respond(
        self,
        rpc_response: RpcResponse,
        max_chunk_size: int,
        on_emit: Callable[[bytes], object],
    ) -> RpcStreamEncoder:
        """Start the reply stream for a received request.

        The result status, if any, travels as the single metadata byte.
        """
        status = rpc_response.result_status
        header = RpcHeader(
            msg_type=RpcMessageType.RESPONSE,
            id=rpc_response.request_header_id,
            method_id=rpc_response.method_id,
            metadata_bytes=bytes([status]) if status is not None else b"",
        )
        encoder = self._session.start_reply_stream(header, max_chunk_size, on_emit)

        if rpc_response.pre_buffered_payload_bytes is not None:
            encoder.push_bytes(rpc_response.pre_buffered_payload_bytes)

        if rpc_response.is_finalized:
            encoder.flush()
            encoder.end_stream()

        return encoder

    def receive_bytes(self, data: bytes | bytearray | memoryview) -> list[int]:
        """Feed transport bytes in and return the header ids now queued."""
        self._session.receive_bytes(data)
        with self._lock:
            return [header_id for header_id, _ in self._queue]

    def get_rpc_request(self, header_id: int) -> RpcRequest | None:
        """Return the queued request with ``header_id``, or None."""
        with self._lock:
            return self._find(header_id)

    def is_rpc_request_finalized(self, header_id: int) -> bool | None:
        """Whether the queued request has ended; None if it is not queued."""
        with self._lock:
            request = self._find(header_id)
            return None if request is None else request.is_finalized

    def delete_rpc_request(self, header_id: int) -> RpcRequest | None:
        """Remove the queued request with ``header_id`` and return it."""
        with self._lock:
            for entry in self._queue:
                if entry[0] == header_id:
                    self._queue.remove(entry)
                    return entry[1]
            return None