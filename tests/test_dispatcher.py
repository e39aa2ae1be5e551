import math
import struct

import pytest

from muxio.frame import ReadAfterCancelError
from muxio.rpc.dispatcher import RpcDispatcher
from muxio.rpc.types import HeaderEvent, PayloadChunkEvent, RpcRequest, RpcResponse

ADD_METHOD_ID = 0x01
MULT_METHOD_ID = 0x02


def _encode_numbers(numbers):
    return struct.pack(f"<{len(numbers)}d", *numbers)


def _decode_numbers(data):
    return list(struct.unpack(f"<{len(data) // 8}d", data))


def _serve(server, client, chunk):
    for header_id in server.receive_bytes(chunk):
        if not server.is_rpc_request_finalized(header_id):
            continue
        request = server.delete_rpc_request(header_id)
        if request is None:
            continue
        numbers = _decode_numbers(request.param_bytes)
        if request.method_id == ADD_METHOD_ID:
            result = sum(numbers)
        elif request.method_id == MULT_METHOD_ID:
            result = math.prod(numbers)
        else:
            continue
        server.respond(
            RpcResponse(
                request_header_id=header_id,
                method_id=request.method_id,
                result_status=0,
                pre_buffered_payload_bytes=struct.pack("<d", result),
                is_finalized=True,
            ),
            4,
            client.receive_bytes,
        )


def _call_prebuffered(client, server, method_id, numbers):
    outgoing = bytearray()
    result = bytearray()

    def on_response(event):
        if isinstance(event, PayloadChunkEvent):
            result.extend(event.payload)

    client.call(
        RpcRequest(method_id, _encode_numbers(numbers), None, True),
        4,
        outgoing.extend,
        on_response,
        True,
    )
    for start in range(0, len(outgoing), 4):
        _serve(server, client, bytes(outgoing[start : start + 4]))
    (value,) = struct.unpack("<d", bytes(result))
    return value


def test_prebuffered_calls():
    client = RpcDispatcher()
    server = RpcDispatcher()
    assert _call_prebuffered(client, server, ADD_METHOD_ID, [1.0, 2.0, 3.0]) == 6.0
    assert _call_prebuffered(client, server, MULT_METHOD_ID, [4.0, 5.0, 6.0, 3.14]) == pytest.approx(
        376.8, abs=0.01
    )
    assert _call_prebuffered(client, server, MULT_METHOD_ID, [10.0, 5.0, 6.0, 3.14]) == pytest.approx(
        942.0, abs=0.1
    )


def test_call_and_echo_response_for_batched_requests():
    client = RpcDispatcher()
    server = RpcDispatcher()
    outgoing = bytearray()
    results = {}
    header_methods = []

    requests = [
        (ADD_METHOD_ID, [1.0, 2.0, 3.0]),
        (MULT_METHOD_ID, [4.0, 5.0, 6.0, 3.14]),
        (MULT_METHOD_ID, [10.0, 5.0, 6.0, 3.14]),
    ]

    for index, (method_id, numbers) in enumerate(requests):

        def on_response(event, index=index, method_id=method_id):
            if isinstance(event, HeaderEvent):
                assert event.rpc_header.method_id == method_id
                header_methods.append(event.rpc_method_id)
            elif isinstance(event, PayloadChunkEvent):
                results[index] = struct.unpack("<d", event.payload)[0]

        client.call(
            RpcRequest(method_id, _encode_numbers(numbers), None, True),
            4,
            outgoing.extend,
            on_response,
            True,
        )

    for start in range(0, len(outgoing), 4):
        _serve(server, client, bytes(outgoing[start : start + 4]))

    assert results[0] == 6.0
    assert results[1] == pytest.approx(376.8, abs=0.01)
    assert results[2] == pytest.approx(942.0, abs=0.1)
    assert sorted(header_methods) == [ADD_METHOD_ID, MULT_METHOD_ID, MULT_METHOD_ID]


def test_request_queue_tracks_payload_and_finalization():
    client = RpcDispatcher()
    server = RpcDispatcher()
    outgoing = []

    encoder = client.call(RpcRequest(9, b"params", b"body", False), 4, outgoing.append)
    encoder.flush()
    for chunk in outgoing:
        ids = server.receive_bytes(chunk)
    assert len(ids) == 1
    header_id = ids[0]
    assert server.is_rpc_request_finalized(header_id) is False

    outgoing.clear()
    encoder.push_bytes(b"-more")
    encoder.flush()
    encoder.end_stream()
    for chunk in outgoing:
        server.receive_bytes(chunk)

    assert server.is_rpc_request_finalized(header_id) is True
    assert server.get_rpc_request(header_id) == RpcRequest(9, b"params", b"body-more", True)
    assert server.delete_rpc_request(header_id) == RpcRequest(9, b"params", b"body-more", True)
    assert server.get_rpc_request(header_id) is None
    assert server.receive_bytes(b"") == []


def test_missing_request_lookups_return_none():
    dispatcher = RpcDispatcher()
    assert dispatcher.get_rpc_request(123456) is None
    assert dispatcher.is_rpc_request_finalized(123456) is None
    assert dispatcher.delete_rpc_request(123456) is None


def test_empty_params_become_none():
    client = RpcDispatcher()
    server = RpcDispatcher()
    outgoing = bytearray()
    client.call(RpcRequest(3, None, None, True), 8, outgoing.extend)
    (header_id,) = server.receive_bytes(bytes(outgoing))
    assert server.get_rpc_request(header_id) == RpcRequest(3, None, None, True)


def test_respond_encodes_result_status_as_metadata():
    client = RpcDispatcher()
    server = RpcDispatcher()
    call_bytes = bytearray()
    headers = []
    client.call(RpcRequest(5, b"p", None, True), 16, call_bytes.extend, headers.append, False)
    (header_id,) = server.receive_bytes(bytes(call_bytes))
    server.delete_rpc_request(header_id)

    server.respond(RpcResponse(header_id, 5, 2, b"out", True), 16, client.receive_bytes)

    header_events = [e for e in headers if isinstance(e, HeaderEvent)]
    assert len(header_events) == 1
    assert header_events[0].rpc_header.metadata_bytes == bytes([2])
    assert RpcResponse.from_rpc_header(header_events[0].rpc_header).result_status == 2
    assert [e.payload for e in headers if isinstance(e, PayloadChunkEvent)] == [b"out"]


def test_header_ids_are_unique_per_call():
    client = RpcDispatcher()
    server = RpcDispatcher()
    outgoing = bytearray()
    for _ in range(3):
        client.call(RpcRequest(1, b"x", None, True), 32, outgoing.extend)
    ids = server.receive_bytes(bytes(outgoing))
    assert len(ids) == 3
    assert len(set(ids)) == 3


def test_receive_bytes_raises_on_cancel_after_header():
    client = RpcDispatcher()
    server = RpcDispatcher()
    outgoing = []
    encoder = client.call(RpcRequest(1, None, None, False), 4, outgoing.append)
    encoder.flush()
    encoder.cancel_stream()
    with pytest.raises(ReadAfterCancelError):
        for chunk in outgoing:
            server.receive_bytes(chunk)