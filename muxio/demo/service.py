"""Service definitions: how each RPC method encodes its requests and responses."""

from __future__ import annotations

import abc
import struct
from dataclasses import dataclass, field
from typing import Any, ClassVar

_COUNT = struct.Struct("<I")
_FLOAT = struct.Struct("<d")


class RpcApi(abc.ABC):
    """Contract for one RPC method: its id and its payload codecs."""

    METHOD_ID: ClassVar[int]

    @classmethod
    @abc.abstractmethod
    def encode_request(cls, input: Any) -> bytes:
        """Encode the caller's input into request bytes."""

    @classmethod
    @abc.abstractmethod
    def decode_request(cls, data: bytes) -> Any:
        """Decode request bytes into the request parameters."""

    @classmethod
    @abc.abstractmethod
    def encode_response(cls, output: Any) -> bytes:
        """Encode the handler's output into response bytes."""

    @classmethod
    @abc.abstractmethod
    def decode_response(cls, data: bytes) -> Any:
        """Decode response bytes into the value returned to the caller."""


@dataclass
class AddRequestParams:
    """Parameters of an Add call."""

    numbers: list[float] = field(default_factory=list)


@dataclass
class AddResponseParams:
    """Result of an Add call."""

    result: float


class Add(RpcApi):
    """Sums a list of floats.

    A request is a little-endian u32 count followed by that many f64 values;
    a response is a single little-endian f64.
    """

    METHOD_ID: ClassVar[int] = 0x01

    @classmethod
    def encode_request(cls, numbers: list[float]) -> bytes:
        values = [float(n) for n in numbers]
        return _COUNT.pack(len(values)) + struct.pack(f"<{len(values)}d", *values)

    @classmethod
    def decode_request(cls, data: bytes) -> AddRequestParams:
        data = bytes(data)
        if len(data) < _COUNT.size:
            raise ValueError("Add request is too short to hold its count")
        (count,) = _COUNT.unpack_from(data)
        expected = _COUNT.size + count * _FLOAT.size
        if len(data) != expected:
            raise ValueError(f"Add request should be {expected} bytes, got {len(data)}")
        numbers = [value for (value,) in _FLOAT.iter_unpack(data[_COUNT.size :])]
        return AddRequestParams(numbers=numbers)

    @classmethod
    def encode_response(cls, result: float) -> bytes:
        return _FLOAT.pack(float(result))

    @classmethod
    def decode_response(cls, data: bytes) -> float:
        data = bytes(data)
        if len(data) != _FLOAT.size:
            raise ValueError(f"Add response should be {_FLOAT.size} bytes, got {len(data)}")
        (result,) = _FLOAT.unpack(data)
        return AddResponseParams(result=result).result