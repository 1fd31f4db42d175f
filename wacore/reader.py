"""Low-level decoding of WebAssembly binary structures."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from .builder import MAGIC, VERSION, GlobalType, Limits, MemoryType, TableType, ValType
from .leb128 import DecodeError, decode_u32, encode_u32

_HEADER_SIZE = len(MAGIC) + len(VERSION)

_END = 0x0B
_REF_NULL = 0xD0
_VECTOR_PREFIX = 0xFD
_V128_CONST = 0x0C
_LEB_IMMEDIATE = {
    0x41: "i32.const value",
    0x42: "i64.const value",
    0x23: "global.get index",
    0xD2: "ref.func index",
}
_FIXED_IMMEDIATE = {0x43: ("f32.const", 4), 0x44: ("f64.const", 8)}
_NO_IMMEDIATE = frozenset({0x6A, 0x6B, 0x6C, 0x7C, 0x7D, 0x7E})


@contextmanager
def _context(message: str) -> Iterator[None]:
    try:
        yield
    except DecodeError as exc:
        raise DecodeError(f"{message}: {exc}") from exc


class ByteReader:
    """Sequential reader over an immutable byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self.offset = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self.offset

    @property
    def at_end(self) -> bool:
        return self.offset >= len(self._data)

    def read_byte(self) -> int:
        if self.at_end:
            raise DecodeError("unexpected end of data")
        byte = self._data[self.offset]
        self.offset += 1
        return byte

    def read_bytes(self, n: int) -> bytes:
        if n > self.remaining:
            raise DecodeError(
                f"unexpected end of data: wanted {n} bytes, {self.remaining} left"
            )
        chunk = self._data[self.offset:self.offset + n]
        self.offset += n
        return chunk

    def read_u32(self) -> int:
        value, count = decode_u32(self._data, self.offset)
        self.offset += count
        return value

    def copy_leb128(self) -> bytes:
        """Return the raw bytes of one LEB128 value, of any length."""
        start = self.offset
        while self.read_byte() & 0x80:
            pass
        return self._data[start:self.offset]

    def read_name(self) -> str:
        with _context("failed to read name length"):
            length = self.read_u32()
        with _context("failed to read name byte"):
            raw = self.read_bytes(length)
        return raw.decode("utf-8", errors="surrogateescape")


def encode_name(name: str) -> bytes:
    """Encode a length-prefixed name."""
    raw = name.encode("utf-8", errors="surrogateescape")
    return encode_u32(len(raw)) + raw


def read_module_header(module_bytes: bytes) -> bytes:
    """Check the magic number and version; return the bytes after them."""
    if len(module_bytes) < _HEADER_SIZE:
        raise DecodeError(f"module too short: {len(module_bytes)} bytes")
    if module_bytes[:len(MAGIC)] != MAGIC:
        raise DecodeError("invalid magic number")
    if module_bytes[len(MAGIC):_HEADER_SIZE] != VERSION:
        raise DecodeError("invalid version")
    return module_bytes[_HEADER_SIZE:]


def read_type(reader: ByteReader) -> tuple[bytes, ValType]:
    byte = reader.read_byte()
    try:
        vt = ValType(byte)
    except ValueError:
        raise DecodeError(f"unknown type byte: 0x{byte:02x}") from None
    return vt.encode(), vt


def read_limits(reader: ByteReader) -> tuple[bytes, Limits]:
    """Read limits; the raw bytes keep the flag and re-encode the numbers."""
    with _context("failed to read limits flag"):
        flag = reader.read_byte()
    with _context("failed to read min"):
        minimum = reader.read_u32()
    raw = bytes([flag]) + encode_u32(minimum)
    maximum = None
    if flag == 0x01:
        with _context("failed to read max"):
            maximum = reader.read_u32()
        raw += encode_u32(maximum)
    return raw, Limits(minimum, maximum)


def read_table_type(reader: ByteReader) -> tuple[bytes, TableType]:
    with _context("failed to read reftype"):
        type_raw, elem_type = read_type(reader)
    if not elem_type.is_ref:
        raise DecodeError(f"table element type is not a reference type: {elem_type.name}")
    with _context("failed to read limits"):
        limits_raw, limits = read_limits(reader)
    return type_raw + limits_raw, TableType(elem_type, limits)


def read_memory_type(reader: ByteReader) -> tuple[bytes, MemoryType]:
    with _context("failed to read memory type"):
        raw, limits = read_limits(reader)
    return raw, MemoryType(limits.minimum, limits.maximum)


def read_global_type(reader: ByteReader) -> tuple[bytes, GlobalType]:
    with _context("failed to read global valtype"):
        type_raw, val_type = read_type(reader)
    with _context("failed to read global mutability"):
        mut = reader.read_byte()
    return type_raw + bytes([mut]), GlobalType(val_type, mut == 0x01)


def read_const_expression(reader: ByteReader) -> bytes:
    """Read a constant expression up to and including its end opcode."""
    expr = bytearray()
    while True:
        with _context("failed to read const expression opcode"):
            opcode = reader.read_byte()
        expr.append(opcode)
        if opcode == _END:
            return bytes(expr)
        if opcode in _NO_IMMEDIATE:
            continue
        if opcode in _LEB_IMMEDIATE:
            with _context(f"failed to read {_LEB_IMMEDIATE[opcode]}"):
                expr += reader.copy_leb128()
        elif opcode in _FIXED_IMMEDIATE:
            name, size = _FIXED_IMMEDIATE[opcode]
            with _context(f"failed to read {name} byte"):
                expr += reader.read_bytes(size)
        elif opcode == _REF_NULL:
            with _context("failed to read ref.null type"):
                expr.append(reader.read_byte())
        elif opcode == _VECTOR_PREFIX:
            with _context("failed to read vector opcode"):
                vec_opcode = reader.read_byte()
            expr.append(vec_opcode)
            if vec_opcode != _V128_CONST:
                raise DecodeError(
                    f"unexpected vector opcode in const expression: 0x{vec_opcode:02x}"
                )
            with _context("failed to read v128.const byte"):
                expr += reader.read_bytes(16)
        else:
            raise DecodeError(f"unexpected opcode in const expression: 0x{opcode:02x}")