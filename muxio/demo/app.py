"""Demo: start an RPC server and call it from a client in the same process."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import socket

from muxio.demo.client import RpcClient, add
from muxio.demo.server import RpcServer
from muxio.demo.service import Add


def _add_handler(data: bytes) -> bytes:
    request = Add.decode_request(data)
    return Add.encode_response(sum(request.numbers))


async def run() -> tuple[float, float]:
    """Serve Add on a free local port, make two concurrent calls and print them."""
    server = RpcServer()
    server.register(Add.METHOD_ID, _add_handler)

    listener = socket.create_server(("127.0.0.1", 0))
    host, port = listener.getsockname()[:2]
    server_task = asyncio.create_task(server.serve_with_listener(listener))

    try:
        client = await RpcClient.connect(f"ws://{host}:{port}/ws")
        try:
            res1, res2 = await asyncio.gather(
                add(client, [1.0, 2.0, 3.0]),
                add(client, [8.0, 3.0, 7.0]),
            )
        finally:
            await client.close()
    finally:
        server_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await server_task

    print(f"Result from first add(): {res1}")
    print(f"Result from second add(): {res2}")
    return res1, res2


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(
        prog="muxio-demo",
        description="Run an RPC server and client over WebSocket in one process.",
    )
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())