"""Low-level RPC session: stream id allocation and inbound stream decoding."""

from __future__ import annotations

from collections.abc import Callable

from muxio.frame import FrameDecodeError, FrameKind
from muxio.mux_decoder import FrameMuxStreamDecoder
from muxio.rpc.stream_codec import RpcStreamDecoder, RpcStreamEncoder
from muxio.rpc.types import EndEvent, ErrorEvent, RpcHeader, RpcStreamEvent
from muxio.utils import increment_u32_id

EventHandler = Callable[[RpcStreamEvent], object]


class RpcSession:
    """Multiplexes RPC streams over one transport without routing them."""

    def __init__(self) -> None:
        self._next_stream_id = increment_u32_id()
        self._frame_decoder = FrameMuxStreamDecoder()
        self._stream_decoders: dict[int, RpcStreamDecoder] = {}

    def init_request(
        self,
        header: RpcHeader,
        max_chunk_size: int,
        on_emit: Callable[[bytes], object],
    ) -> RpcStreamEncoder:
        """Open a new outbound stream that starts with ``header``."""
        stream_id = self._next_stream_id
        self._next_stream_id = increment_u32_id()
        return RpcStreamEncoder(stream_id, max_chunk_size, header, on_emit)

    def receive_bytes(self, data: bytes | bytearray | memoryview, on_event: EventHandler) -> None:
        """Decode incoming bytes and pass every resulting event to ``on_event``.

        Frames that cannot be decoded are reported as ErrorEvent. A stream
        that fails to decode is reported, dropped, and its error re-raised.
        """
        for result in self._frame_decoder.pull_bytes(data):
            if isinstance(result, FrameDecodeError):
                on_event(ErrorEvent(None, None, result))
                continue

            stream_id = result.inner.stream_id
            decoder = self._stream_decoders.get(stream_id)
            if decoder is None:
                decoder = self._stream_decoders[stream_id] = RpcStreamDecoder()

            try:
                events = decoder.decode_rpc_frame(result)
            except FrameDecodeError as exc:
                self._stream_decoders.pop(stream_id, None)
                on_event(ErrorEvent(None, None, exc))
                raise

            for event in events:
                if isinstance(event, EndEvent):
                    self._stream_decoders.pop(stream_id, None)
                on_event(event)

            if result.inner.kind in (FrameKind.CANCEL, FrameKind.END):
                self._stream_decoders.pop(stream_id, None)