"""RPC message types, headers, stream events, requests and responses."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Union

from muxio.frame import FrameDecodeError


class RpcMessageType(enum.IntEnum):
    """The kind of RPC message a stream carries."""

    CALL = 0
    RESPONSE = 1
    EVENT = 2


class RpcResultStatus(enum.IntEnum):
    """Conventional single-byte result codes carried in response metadata."""

    SUCCESS = 0
    FAIL = 1
    SYSTEM_ERROR = 2


@dataclass(frozen=True)
class RpcHeader:
    """Header that opens every RPC stream.

    ``id`` correlates a call with its response; ``metadata_bytes`` is an
    application-defined, schema-less blob.
    """

    msg_type: RpcMessageType
    id: int
    method_id: int
    metadata_bytes: bytes = b""


@dataclass(frozen=True)
class HeaderEvent:
    """The header of a stream has been fully received."""

    rpc_header_id: int
    rpc_method_id: int
    rpc_header: RpcHeader


@dataclass(frozen=True)
class PayloadChunkEvent:
    """A piece of a stream's payload has been received."""

    rpc_header_id: int
    rpc_method_id: int
    payload: bytes


@dataclass(frozen=True)
class EndEvent:
    """A stream has been ended by its sender."""

    rpc_header_id: int
    rpc_method_id: int


@dataclass(frozen=True)
class ErrorEvent:
    """A stream could not be decoded."""

    rpc_header_id: int | None
    rpc_method_id: int | None
    frame_decode_error: FrameDecodeError


RpcStreamEvent = Union[HeaderEvent, PayloadChunkEvent, EndEvent, ErrorEvent]


@dataclass
class RpcRequest:
    """An outbound call, or an inbound call being collected.

    ``param_bytes`` travels as header metadata; ``pre_buffered_payload_bytes``
    is sent right after the header; ``is_finalized`` ends the stream at once.
    """

    method_id: int
    param_bytes: bytes | None = None
    pre_buffered_payload_bytes: bytes | None = None
    is_finalized: bool = False


@dataclass
class RpcResponse:
    """A reply to an earlier request, matched by ``request_header_id``."""

    request_header_id: int
    method_id: int
    result_status: int | None = None
    pre_buffered_payload_bytes: bytes | None = None
    is_finalized: bool = False

    @classmethod
    def from_rpc_header(cls, rpc_header: RpcHeader) -> RpcResponse:
        """Build a response from a received header.

        The first metadata byte, if any, is taken as the result status.
        """
        metadata = rpc_header.metadata_bytes
        return cls(
            request_header_id=rpc_header.id,
            method_id=rpc_header.method_id,
            result_status=metadata[0] if metadata else None,
            pre_buffered_payload_bytes=None,
            is_finalized=False,
        )