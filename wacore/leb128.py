"""Unsigned LEB128 encoding and decoding of 32-bit values."""

from __future__ import annotations

_U32_MAX = 0xFFFFFFFF
_MAX_SHIFT = 35


class DecodeError(ValueError):
    """Raised when binary input is malformed or truncated."""


def encode_u32(value: int) -> bytes:
    """Encode an unsigned 32-bit integer as LEB128."""
    if not 0 <= value <= _U32_MAX:
        raise ValueError(f"value out of u32 range: {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_u32(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode a LEB128 value starting at ``offset``.

    Returns the value and the number of bytes it occupied.
    """
    result = 0
    shift = 0
    for count, byte in enumerate(memoryview(data)[offset:], start=1):
        result |= ((byte & 0x7F) << shift) & _U32_MAX
        if not byte & 0x80:
            return result, count
        shift += 7
        if shift >= _MAX_SHIFT:
            raise DecodeError("LEB128 value too large")
    raise DecodeError("unexpected end of LEB128 data")