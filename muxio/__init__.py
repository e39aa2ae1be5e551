"""Layered stream multiplexing and schema-less RPC: frames, RPC streams and a request dispatcher."""

__version__ = "0.3.0a0"