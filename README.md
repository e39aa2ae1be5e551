# muxio

Layered stream multiplexing and schema-less RPC over any byte transport.

muxio is built in layers. Each layer can be used on its own.

- **Frames** (`muxio.frame`, `muxio.stream_encoder`, `muxio.mux_decoder`)
  - The binary frame format is a 21-byte little-endian header followed by a payload. The header holds the payload length, stream id, sequence id, `FrameKind` and a timestamp in microseconds.
  - `encode_frame` and `decode_frame` convert a single frame to and from bytes.
  - `FrameStreamEncoder` cuts one logical stream into frames of at most `max_chunk_size` payload bytes.
  - `FrameMuxStreamDecoder` reads a byte stream that holds many streams interleaved. It returns each stream's frames in sequence order, even when they arrive out of order.
- **RPC streams** (`muxio.rpc.types`, `muxio.rpc.stream_codec`, `muxio.rpc.session`)
  - Each RPC stream starts with an `RpcHeader`: message type, id, method id and up to 65535 metadata bytes. Payload bytes follow the header.
  - `RpcSession.receive_bytes` reports what it decodes as events: `HeaderEvent`, `PayloadChunkEvent`, `EndEvent` and `ErrorEvent`.
- **Request/response** (`muxio.rpc.respondable_session`, `muxio.rpc.dispatcher`)
  - `RpcRespondableSession` routes response events to a handler registered for each request.
  - `RpcDispatcher` builds on it. It sends `RpcRequest`s, keeps a queue of incoming requests, and answers them with `RpcResponse`s.

The core layers do no I/O. You pass them bytes as they arrive, and they give you the bytes to send through an `on_emit` callback. This lets them run over WebSockets, TCP, in-process buffers, or anything else that moves bytes.

## Installation

```
pip install .
```

To install the test dependencies and run the test suite:

```
pip install ".[test]"
pytest
```

## Framing a stream

```python
from muxio.stream_encoder import FrameStreamEncoder
from muxio.mux_decoder import FrameMuxStreamDecoder

wire = bytearray()
encoder = FrameStreamEncoder(1, 5, wire.extend)
encoder.push_bytes(b"abcdefghijk")
encoder.flush()
encoder.end_stream()

decoder = FrameMuxStreamDecoder()
frames = list(decoder.pull_bytes(bytes(wire)))
payload = b"".join(f.inner.payload for f in frames)
assert payload == b"abcdefghijk"
```

`pull_bytes` returns an iterator. Each item it yields is one of two things:

- a `DecodedFrame`;
- a `FrameDecodeError` instance, for a frame that could not be decoded. For example, `CorruptFrameError` is yielded when the frame kind is unknown.

Incomplete frames are buffered until the rest of their bytes arrive.

Each writing method of `FrameStreamEncoder` returns the number of encoded bytes it emitted. Once a stream has been ended or cancelled, any further write raises `WriteAfterEndError` or `WriteAfterCancelError`.

When a Cancel frame is decoded, the decoder yields it with `decode_error` set to a `ReadAfterCancelError`. It then drops that stream.

## Calling through the dispatcher

```python
from muxio.rpc.dispatcher import RpcDispatcher
from muxio.rpc.types import RpcRequest

client = RpcDispatcher()
outgoing = bytearray()

client.call(
    RpcRequest(
        method_id=0x01,
        param_bytes=b"encoded params",
        pre_buffered_payload_bytes=None,
        is_finalized=True,
    ),
    1024,
    outgoing.extend,
    lambda event: print("response event:", event),
    True,
)
# Send `outgoing` to the peer. Pass the bytes that come back
# to client.receive_bytes(...).
```

When `pre_buffer_response` is true, the handler sees the events of the response in this order:

1. the `HeaderEvent`;
2. a single `PayloadChunkEvent` holding the whole response payload;
3. the `EndEvent`.

On the server side, follow these steps:

1. Pass incoming bytes to `RpcDispatcher.receive_bytes`. It returns the header ids of the requests that are queued.
2. Check whether a request is complete with `is_rpc_request_finalized`.
3. Take the request out of the queue with `delete_rpc_request`.
4. Answer it with `respond`. Set `result_status` from `RpcResultStatus` or to any other byte.

## WebSocket demo

The `muxio.demo` package contains the following parts:

- an `Add` service (`muxio.demo.service`), which sums a list of floats;
- an `RpcServer` (`muxio.demo.server`), which serves registered handlers at the `/ws` path;
- an `RpcClient` (`muxio.demo.client`), which multiplexes calls over one connection;
- an `add` helper.

To run the demo:

```
muxio-demo
```

This starts a server on a free local port, makes two `add` calls at the same time, and prints both results.

## Limits

- The demo server handles only complete (finalized) requests that carry parameter bytes. Each one is answered with a single response. Streaming handlers are not supported.
- A call to a method that has no registered handler is answered with status `SYSTEM_ERROR` and an empty payload.
- The demo server has no TLS and no authentication.
- The `Add` service uses its own small binary layout for requests and responses: a u32 count followed by f64 values. It uses no general serialization format.
- `RpcClient.call_rpc` raises `ConnectionError` when the connection is closed, or when it closes while the call is waiting.