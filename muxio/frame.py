"""Frame model, frame errors and the single-frame binary codec."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field

from muxio.constants import FRAME_HEADER_SIZE

_HEADER = struct.Struct("<IIIBQ")


class FrameKind(enum.IntEnum):
    """The role a frame plays in its stream."""

    OPEN = 0
    DATA = 1
    END = 2
    CANCEL = 3
    PONG = 4
    PING = 5


class FrameError(Exception):
    """Base class for all frame errors."""

    default_message = "frame error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class FrameEncodeError(FrameError):
    """Raised when a frame cannot be written."""

    default_message = "frame encode error"


class FrameDecodeError(FrameError):
    """Raised (or reported) when a frame cannot be read."""

    default_message = "frame decode error"


class CorruptFrameError(FrameEncodeError, FrameDecodeError):
    """The frame is malformed."""

    default_message = "corrupt frame"


class WriteAfterEndError(FrameEncodeError):
    """Attempted to write to a stream that has already ended."""

    default_message = "write after end of stream"


class WriteAfterCancelError(FrameEncodeError):
    """Attempted to write to a stream that was canceled."""

    default_message = "write after stream cancel"


class ReadAfterEndError(FrameDecodeError):
    """A frame arrived for a stream that has already ended."""

    default_message = "read after end of stream"


class ReadAfterCancelError(FrameDecodeError):
    """A frame arrived for, or terminated, a canceled stream."""

    default_message = "read after stream cancel"


class IncompleteHeaderError(FrameDecodeError):
    """The buffer does not hold a whole frame."""

    default_message = "incomplete frame"


@dataclass
class Frame:
    """A single unit of data within a logical stream."""

    stream_id: int
    seq_id: int
    kind: FrameKind
    timestamp_micros: int
    payload: bytes = b""


@dataclass
class DecodedFrame:
    """A frame read from the wire, with any stream-level error attached."""

    inner: Frame
    decode_error: FrameDecodeError | None = field(default=None)


def encode_frame(frame: Frame) -> bytes:
    """Serialize a frame into its wire representation."""
    payload = bytes(frame.payload)
    try:
        header = _HEADER.pack(
            len(payload),
            frame.stream_id,
            frame.seq_id,
            int(frame.kind),
            frame.timestamp_micros,
        )
    except struct.error as exc:
        raise CorruptFrameError(f"frame field out of range: {exc}") from exc
    return header + payload


def decode_frame(buf: bytes | bytearray | memoryview) -> DecodedFrame:
    """Parse one frame from the start of ``buf``.

    Raises IncompleteHeaderError if the buffer is too short and
    CorruptFrameError if the frame kind is unknown.
    """
    data = bytes(buf)
    if len(data) < FRAME_HEADER_SIZE:
        raise IncompleteHeaderError()

    length, stream_id, seq_id, raw_kind, timestamp = _HEADER.unpack_from(data)
    if len(data) < FRAME_HEADER_SIZE + length:
        raise IncompleteHeaderError()

    try:
        kind = FrameKind(raw_kind)
    except ValueError as exc:
        raise CorruptFrameError(f"unknown frame kind {raw_kind}") from exc

    payload = b"" if kind is FrameKind.CANCEL else data[FRAME_HEADER_SIZE : FRAME_HEADER_SIZE + length]

    return DecodedFrame(
        inner=Frame(
            stream_id=stream_id,
            seq_id=seq_id,
            kind=kind,
            timestamp_micros=timestamp,
            payload=payload,
        )
    )