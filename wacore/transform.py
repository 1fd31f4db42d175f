"""Rewriting of import sections so that blank module names become non-empty."""

from __future__ import annotations

from .leb128 import DecodeError, encode_u32
from .parser import _iter_sections
from .reader import (
    ByteReader,
    _context,
    encode_name,
    read_global_type,
    read_limits,
    read_module_header,
    read_table_type,
)

BLANK_MODULE_NAME = "$$BLANK$$"

_IMPORT_SECTION = 2


def _read_import_desc(kind: int, reader: ByteReader) -> bytes:
    if kind == 0x00:
        with _context("failed to read type index"):
            return encode_u32(reader.read_u32())
    if kind == 0x01:
        with _context("failed to read table type"):
            return read_table_type(reader)[0]
    if kind == 0x02:
        with _context("failed to read memory type"):
            return read_limits(reader)[0]
    if kind == 0x03:
        with _context("failed to read global type"):
            return read_global_type(reader)[0]
    raise DecodeError(f"unknown import descriptor type: 0x{kind:02x}")


def _transform_import_section(data: bytes) -> bytes:
    reader = ByteReader(data)
    with _context("failed to read import count"):
        count = reader.read_u32()
    out = bytearray(encode_u32(count))
    for i in range(count):
        with _context(f"failed to read module name for import {i}"):
            module = reader.read_name()
        with _context(f"failed to read field name for import {i}"):
            name = reader.read_name()
        with _context(f"failed to read descriptor type for import {i}"):
            kind = reader.read_byte()
        desc = _read_import_desc(kind, reader)
        out += encode_name(module or BLANK_MODULE_NAME)
        out += encode_name(name)
        out.append(kind)
        out += desc
    return bytes(out)


def transform_blank_import_names(module_bytes: bytes) -> bytes:
    """Return the module with every blank import module name replaced by ``$$BLANK$$``."""
    body = read_module_header(module_bytes)
    out = bytearray(module_bytes[:len(module_bytes) - len(body)])
    for section_id, data in _iter_sections(body):
        if section_id == _IMPORT_SECTION:
            with _context("failed to transform import section"):
                data = _transform_import_section(data)
        out.append(section_id)
        out += encode_u32(len(data))
        out += data
    return bytes(out)