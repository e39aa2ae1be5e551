import itertools

from muxio.constants import FRAME_KIND_OFFSET
from muxio.frame import (
    CorruptFrameError,
    DecodedFrame,
    Frame,
    FrameKind,
    ReadAfterCancelError,
    encode_frame,
)
from muxio.mux_decoder import FrameMuxStreamDecoder
from muxio.stream_encoder import FrameStreamEncoder


def _decoded(decoder, data):
    items = list(decoder.pull_bytes(data))
    for item in items:
        assert isinstance(item, DecodedFrame), item
    return items


def _encode_chunks(stream_id, max_chunk_size, data):
    chunks = []
    encoder = FrameStreamEncoder(stream_id, max_chunk_size, chunks.append)
    encoder.push_bytes(data)
    encoder.flush()
    encoder.end_stream()
    return chunks


def test_encoder_chunks_and_decoder_recovers():
    chunks = _encode_chunks(1, 5, b"abcdefghijk")
    decoder = FrameMuxStreamDecoder()
    frames = [frame for chunk in chunks for frame in _decoded(decoder, chunk)]

    assert len(frames) == 4
    assert [f.inner.seq_id for f in frames] == [0, 1, 2, 3]
    assert b"".join(f.inner.payload for f in frames[:3]) == b"abcdefghijk"


def test_decoder_handles_incomplete_input():
    full = encode_frame(Frame(2, 0, FrameKind.PING, 0, b"xyz"))
    half = len(full) // 2
    decoder = FrameMuxStreamDecoder()

    assert list(decoder.pull_bytes(full[:half])) == []

    frames = _decoded(decoder, full[half:])
    assert len(frames) == 1
    assert frames[0].inner.payload == b"xyz"
    assert frames[0].inner.kind is FrameKind.PING


def test_decoder_handles_interleaved_input_order():
    first = _encode_chunks(100, 8, b"stream-one-data")
    second = _encode_chunks(200, 8, b"stream-two-data")
    interleaved = [
        chunk
        for pair in itertools.zip_longest(first, second)
        for chunk in pair
        if chunk is not None
    ]

    decoder = FrameMuxStreamDecoder()
    frames = [frame for chunk in interleaved for frame in _decoded(decoder, chunk)]

    assert len(frames) == 6
    assert sorted(f.inner.stream_id for f in frames) == [100, 100, 100, 200, 200, 200]
    assert b"".join(f.inner.payload for f in frames if f.inner.stream_id == 100) == b"stream-one-data"
    assert b"".join(f.inner.payload for f in frames if f.inner.stream_id == 200) == b"stream-two-data"


def test_decoder_reorders_out_of_order_frames():
    chunks = _encode_chunks(123, 3, b"abcdefghi")
    assert len(chunks) == 4

    for order in itertools.permutations(chunks):
        decoder = FrameMuxStreamDecoder()
        frames = [frame for chunk in order for frame in _decoded(decoder, chunk)]

        assert len(frames) == 4
        assert [f.inner.seq_id for f in frames] == [0, 1, 2, 3]
        assert b"".join(f.inner.payload for f in frames[:3]) == b"abcdefghi"


def test_encoder_emits_small_final_frame_on_end_stream():
    outgoing = b"".join(_encode_chunks(999, 1_000_000, b"tiny"))
    frames = _decoded(FrameMuxStreamDecoder(), outgoing)

    assert len(frames) == 2
    assert frames[0].inner.stream_id == 999
    assert frames[0].inner.kind is FrameKind.OPEN
    assert frames[0].inner.payload == b"tiny"
    assert frames[1].inner.stream_id == 999
    assert frames[1].inner.kind is FrameKind.END
    assert frames[1].inner.payload == b""


def test_cancel_stream_marks_read_after_cancel():
    outgoing = bytearray()
    encoder = FrameStreamEncoder(42, 10, outgoing.extend)
    encoder.push_bytes(b"some regular data")
    encoder.cancel_stream()

    frames = _decoded(FrameMuxStreamDecoder(), bytes(outgoing))
    assert any(isinstance(f.decode_error, ReadAfterCancelError) for f in frames)
    assert frames[-1].inner.kind is FrameKind.CANCEL


def test_end_stream_auto_flushes_buffer():
    outgoing = bytearray()
    encoder = FrameStreamEncoder(42, 10, outgoing.extend)
    encoder.push_bytes(b"some regular data")
    encoder.end_stream()

    frames = _decoded(FrameMuxStreamDecoder(), bytes(outgoing))
    payload = b"".join(f.inner.payload for f in frames if f.inner.payload)
    assert payload == b"some regular data"


def test_corrupt_frame_is_reported_and_decoding_continues():
    bad = bytearray(encode_frame(Frame(5, 0, FrameKind.DATA, 0, b"abc")))
    bad[FRAME_KIND_OFFSET] = 200
    good = encode_frame(Frame(6, 0, FrameKind.OPEN, 0, b"ok"))

    items = list(FrameMuxStreamDecoder().pull_bytes(bytes(bad) + good))
    assert len(items) == 2
    assert isinstance(items[0], CorruptFrameError)
    assert isinstance(items[1], DecodedFrame)
    assert items[1].inner.payload == b"ok"


def test_ended_stream_state_is_released():
    decoder = FrameMuxStreamDecoder()
    _decoded(decoder, b"".join(_encode_chunks(7, 4, b"abcd")))

    again = _decoded(decoder, encode_frame(Frame(7, 0, FrameKind.OPEN, 0, b"new")))
    assert len(again) == 1
    assert again[0].inner.payload == b"new"


def test_frame_beyond_gap_is_held_back():
    decoder = FrameMuxStreamDecoder()
    assert _decoded(decoder, encode_frame(Frame(9, 1, FrameKind.DATA, 0, b"second"))) == []

    frames = _decoded(decoder, encode_frame(Frame(9, 0, FrameKind.OPEN, 0, b"first")))
    assert [f.inner.payload for f in frames] == [b"first", b"second"]