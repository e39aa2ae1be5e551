"""Encoder that splits one stream of bytes into numbered frames."""

from __future__ import annotations

from collections.abc import Callable

from muxio.frame import (
    Frame,
    FrameKind,
    WriteAfterCancelError,
    WriteAfterEndError,
    encode_frame,
)
from muxio.utils import now


class FrameStreamEncoder:
    """Turns bytes written to one stream into frames passed to ``on_emit``.

    Frames are emitted whenever ``max_chunk_size`` bytes are buffered, or on
    ``flush``. Every writing method returns the number of encoded bytes it
    emitted and raises once the stream has been ended or canceled.
    """

    def __init__(self, stream_id: int, max_chunk_size: int, on_emit: Callable[[bytes], object]) -> None:
        if max_chunk_size < 1:
            raise ValueError("max_chunk_size must be at least 1")
        self.stream_id = stream_id
        self.max_chunk_size = max_chunk_size
        self._on_emit = on_emit
        self._next_seq_id = 0
        self._next_kind = FrameKind.OPEN
        self._buffer = bytearray()
        self._is_canceled = False
        self._is_ended = False

    def _ensure_writable(self) -> None:
        if self._is_canceled:
            raise WriteAfterCancelError()
        if self._is_ended:
            raise WriteAfterEndError()

    def _emit(self, kind: FrameKind, payload: bytes) -> int:
        self._ensure_writable()
        encoded = encode_frame(
            Frame(
                stream_id=self.stream_id,
                seq_id=self._next_seq_id,
                kind=kind,
                timestamp_micros=now(),
                payload=payload,
            )
        )
        self._on_emit(encoded)
        return len(encoded)

    def _emit_chunk(self, payload: bytes) -> int:
        written = self._emit(self._next_kind, payload)
        self._next_seq_id += 1
        self._next_kind = FrameKind.DATA
        return written

    def push_bytes(self, data: bytes | bytearray | memoryview) -> int:
        """Buffer ``data`` and emit every full chunk."""
        self._ensure_writable()
        self._buffer.extend(data)
        written = 0
        while len(self._buffer) >= self.max_chunk_size:
            chunk = bytes(self._buffer[: self.max_chunk_size])
            del self._buffer[: self.max_chunk_size]
            written += self._emit_chunk(chunk)
        return written

    def flush(self) -> int:
        """Emit any buffered bytes as a final, possibly short, frame."""
        self._ensure_writable()
        if not self._buffer:
            return 0
        chunk = bytes(self._buffer)
        self._buffer.clear()
        return self._emit_chunk(chunk)

    def end_stream(self) -> int:
        """Emit an End frame carrying whatever is still buffered."""
        self._ensure_writable()
        chunk = bytes(self._buffer)
        self._buffer.clear()
        written = self._emit(FrameKind.END, chunk)
        self._is_ended = True
        return written

    def cancel_stream(self) -> int:
        """Emit a Cancel frame for this stream."""
        written = self._emit(FrameKind.CANCEL, b"")
        self._is_canceled = True
        return written