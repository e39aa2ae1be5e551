"""WebSocket RPC demo: an Add service, a server, a client and a runner."""