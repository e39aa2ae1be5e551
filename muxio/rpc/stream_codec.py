"""Encoding and decoding of a single RPC stream on top of frames."""

from __future__ import annotations

import enum
import struct
from collections.abc import Callable

from muxio.constants import RPC_FRAME_FRAME_HEADER_SIZE
from muxio.frame import (
    CorruptFrameError,
    DecodedFrame,
    FrameKind,
    ReadAfterCancelError,
)
from muxio.rpc.types import (
    EndEvent,
    HeaderEvent,
    PayloadChunkEvent,
    RpcHeader,
    RpcMessageType,
    RpcStreamEvent,
)
from muxio.stream_encoder import FrameStreamEncoder

# msg type (u8) | id (u32) | method id (u64) | metadata length (u16)
_PREFIX = struct.Struct("<BIQH")
_MAX_METADATA = 0xFFFF


def _encode_header(header: RpcHeader) -> bytes:
    metadata = bytes(header.metadata_bytes)
    if len(metadata) > _MAX_METADATA:
        raise CorruptFrameError(f"metadata of {len(metadata)} bytes exceeds {_MAX_METADATA}")
    try:
        prefix = _PREFIX.pack(int(header.msg_type), header.id, header.method_id, len(metadata))
    except struct.error as exc:
        raise CorruptFrameError(f"header field out of range: {exc}") from exc
    return prefix + metadata


class RpcStreamEncoder:
    """Writes an RPC header followed by payload bytes onto one frame stream."""

    def __init__(
        self,
        stream_id: int,
        max_chunk_size: int,
        header: RpcHeader,
        on_emit: Callable[[bytes], object],
    ) -> None:
        self._encoder = FrameStreamEncoder(stream_id, max_chunk_size, on_emit)
        self._encoder.push_bytes(_encode_header(header))

    @property
    def stream_id(self) -> int:
        """The frame stream this encoder writes to."""
        return self._encoder.stream_id

    def push_bytes(self, data: bytes | bytearray | memoryview) -> int:
        """Buffer payload bytes, emitting full frames."""
        return self._encoder.push_bytes(data)

    def flush(self) -> int:
        """Emit any buffered bytes."""
        return self._encoder.flush()

    def cancel_stream(self) -> int:
        """Abort the stream with a Cancel frame."""
        return self._encoder.cancel_stream()

    def end_stream(self) -> int:
        """Close the stream with an End frame."""
        return self._encoder.end_stream()


class RpcDecoderState(enum.Enum):
    """Where a stream decoder is in reading its stream."""

    AWAIT_HEADER = enum.auto()
    AWAIT_PAYLOAD = enum.auto()
    DONE = enum.auto()


class RpcStreamDecoder:
    """Turns the ordered frames of one stream into RPC stream events."""

    def __init__(self) -> None:
        self._state = RpcDecoderState.AWAIT_HEADER
        self._header: RpcHeader | None = None
        self._rpc_header_id: int | None = None
        self._rpc_method_id: int | None = None
        self._buffer = bytearray()

    @property
    def state(self) -> RpcDecoderState:
        return self._state

    @property
    def header(self) -> RpcHeader | None:
        return self._header

    @property
    def rpc_header_id(self) -> int | None:
        return self._rpc_header_id

    @property
    def rpc_method_id(self) -> int | None:
        return self._rpc_method_id

    def decode_rpc_frame(self, frame: DecodedFrame) -> list[RpcStreamEvent]:
        """Consume one frame and return the events it produced.

        Raises CorruptFrameError for an unknown message type and
        ReadAfterCancelError when the stream is canceled after its header.
        """
        inner = frame.inner
        if self._state is RpcDecoderState.AWAIT_HEADER:
            return self._read_header(inner.payload)
        if self._state is RpcDecoderState.AWAIT_PAYLOAD:
            if inner.kind is FrameKind.END:
                self._state = RpcDecoderState.DONE
                return [EndEvent(self._rpc_header_id, self._rpc_method_id)]
            if inner.kind is FrameKind.CANCEL:
                raise ReadAfterCancelError()
            return [PayloadChunkEvent(self._rpc_header_id, self._rpc_method_id, bytes(inner.payload))]
        return []

    def _read_header(self, payload: bytes) -> list[RpcStreamEvent]:
        self._buffer.extend(payload)
        if len(self._buffer) < RPC_FRAME_FRAME_HEADER_SIZE:
            return []

        raw_type, header_id, method_id, meta_len = _PREFIX.unpack_from(self._buffer)
        try:
            msg_type = RpcMessageType(raw_type)
        except ValueError as exc:
            raise CorruptFrameError(f"unknown RPC message type {raw_type}") from exc
        self._rpc_method_id = method_id

        end = RPC_FRAME_FRAME_HEADER_SIZE + meta_len
        if len(self._buffer) < end:
            return []

        header = RpcHeader(
            msg_type=msg_type,
            id=header_id,
            method_id=method_id,
            metadata_bytes=bytes(self._buffer[RPC_FRAME_FRAME_HEADER_SIZE:end]),
        )
        self._header = header
        self._rpc_header_id = header_id
        self._state = RpcDecoderState.AWAIT_PAYLOAD
        del self._buffer[:end]

        events: list[RpcStreamEvent] = [HeaderEvent(header_id, method_id, header)]
        if self._buffer:
            events.append(PayloadChunkEvent(header_id, method_id, bytes(self._buffer)))
            self._buffer.clear()
        return events