"""Decoder for byte streams carrying interleaved frames of many streams."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Union

from muxio.constants import FRAME_HEADER_SIZE, FRAME_LENGTH_FIELD_SIZE
from muxio.frame import (
    DecodedFrame,
    FrameDecodeError,
    FrameKind,
    ReadAfterCancelError,
    decode_frame,
)

_LENGTH = struct.Struct("<I")

DecodeResult = Union[DecodedFrame, FrameDecodeError]


@dataclass
class _StreamReassembly:
    next_expected: int = 0
    pending: dict[int, DecodedFrame] = field(default_factory=dict)
    is_ended: bool = False


class FrameMuxStreamDecoder:
    """Reassembles in-order frames for every stream found in a byte stream.

    Partial frames are buffered across calls. Out-of-order frames are held
    until all earlier frames of their stream have arrived. A Cancel frame
    drops its stream at once; an End frame drops it once it has been flushed.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._streams: dict[int, _StreamReassembly] = {}

    def pull_bytes(self, data: bytes | bytearray | memoryview) -> Iterator[DecodeResult]:
        """Consume ``data`` and return the results it made ready.

        Each item is either a DecodedFrame or a FrameDecodeError instance
        describing a frame that could not be decoded.
        """
        self._buffer.extend(data)
        results: list[DecodeResult] = []

        while len(self._buffer) >= FRAME_LENGTH_FIELD_SIZE:
            (length,) = _LENGTH.unpack_from(self._buffer)
            total = FRAME_HEADER_SIZE + length
            if len(self._buffer) < total:
                break

            chunk = bytes(self._buffer[:total])
            del self._buffer[:total]

            try:
                decoded = decode_frame(chunk)
            except FrameDecodeError as exc:
                results.append(exc)
                continue

            results.extend(self._route(decoded))

        return iter(results)

    def _route(self, decoded: DecodedFrame) -> list[DecodedFrame]:
        stream_id = decoded.inner.stream_id

        if decoded.inner.kind is FrameKind.CANCEL:
            decoded.decode_error = ReadAfterCancelError()
            self._streams.pop(stream_id, None)
            return [decoded]

        stream = self._streams.setdefault(stream_id, _StreamReassembly())
        if decoded.inner.kind is FrameKind.END:
            stream.is_ended = True

        stream.pending[decoded.inner.seq_id] = decoded

        ready = []
        while stream.next_expected in stream.pending:
            ready.append(stream.pending.pop(stream.next_expected))
            stream.next_expected += 1

        if stream.is_ended and not stream.pending:
            del self._streams[stream_id]

        return ready