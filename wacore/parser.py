"""Extraction of table, memory and global types from a module's imports and exports."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Tuple

from .builder import GlobalType, MemoryType, TableType
from .leb128 import DecodeError, decode_u32
from .reader import (
    ByteReader,
    _context,
    read_const_expression,
    read_global_type,
    read_memory_type,
    read_module_header,
    read_table_type,
)

_IMPORT_SECTION = 2
_TABLE_SECTION = 4
_MEMORY_SECTION = 5
_GLOBAL_SECTION = 6
_EXPORT_SECTION = 7

_FUNC_KIND = 0x00
_TABLE_KIND = 0x01
_MEMORY_KIND = 0x02
_GLOBAL_KIND = 0x03

_KIND_NAMES = {_TABLE_KIND: "table", _MEMORY_KIND: "memory", _GLOBAL_KIND: "global"}
_TYPE_READERS: Dict[int, Callable[[ByteReader], tuple]] = {
    _TABLE_KIND: read_table_type,
    _MEMORY_KIND: read_memory_type,
    _GLOBAL_KIND: read_global_type,
}
_DEFINITION_SECTIONS = {
    _TABLE_SECTION: _TABLE_KIND,
    _MEMORY_SECTION: _MEMORY_KIND,
    _GLOBAL_SECTION: _GLOBAL_KIND,
}


@dataclass(frozen=True)
class ModuleName:
    """The two-level name of an import."""

    module: str
    name: str


@dataclass
class Imports:
    """Imported tables, globals and memories keyed by their import name."""

    tables: Dict[ModuleName, TableType] = field(default_factory=dict)
    globals: Dict[ModuleName, GlobalType] = field(default_factory=dict)
    memories: Dict[ModuleName, MemoryType] = field(default_factory=dict)


@dataclass
class Exports:
    """Exported tables, globals and memories keyed by export name."""

    tables: Dict[str, TableType] = field(default_factory=dict)
    globals: Dict[str, GlobalType] = field(default_factory=dict)
    memories: Dict[str, MemoryType] = field(default_factory=dict)


@dataclass
class Externs:
    """The externally visible non-function items of a module."""

    imports: Imports
    exports: Exports


def _iter_sections(body: bytes) -> Iterator[Tuple[int, bytes]]:
    """Yield ``(section_id, contents)`` for every section after the header."""
    pos = 0
    while pos < len(body):
        section_id = body[pos]
        pos += 1
        with _context("failed to read section size"):
            size, count = decode_u32(body, pos)
        pos += count
        if pos + size > len(body):
            raise DecodeError("section size exceeds module bounds")
        yield section_id, body[pos:pos + size]
        pos += size


@dataclass
class _Collector:
    types: Dict[int, list] = field(
        default_factory=lambda: {kind: [] for kind in _KIND_NAMES}
    )
    imported: Dict[int, Dict[ModuleName, int]] = field(
        default_factory=lambda: {kind: {} for kind in _KIND_NAMES}
    )
    exported: Dict[int, Dict[str, int]] = field(
        default_factory=lambda: {kind: {} for kind in _KIND_NAMES}
    )

    def _add_type(self, kind: int, typ) -> int:
        entries: List = self.types[kind]
        entries.append(typ)
        return len(entries) - 1

    def read_imports(self, reader: ByteReader) -> None:
        with _context("failed to read import count"):
            count = reader.read_u32()
        for _ in range(count):
            with _context("failed to read import module name"):
                module = reader.read_name()
            with _context("failed to read import name"):
                name = reader.read_name()
            with _context("failed to read import kind"):
                kind = reader.read_byte()
            if kind == _FUNC_KIND:
                with _context("failed to skip imported function type index"):
                    reader.read_u32()
            elif kind in _KIND_NAMES:
                with _context(f"failed to read imported {_KIND_NAMES[kind]} type"):
                    _, typ = _TYPE_READERS[kind](reader)
                self.imported[kind][ModuleName(module, name)] = self._add_type(kind, typ)
            else:
                raise DecodeError(f"unknown import kind: {kind}")

    def read_definitions(self, kind: int, reader: ByteReader) -> None:
        label = _KIND_NAMES[kind]
        with _context(f"failed to read {label} count"):
            count = reader.read_u32()
        for _ in range(count):
            with _context(f"failed to read {label} type"):
                _, typ = _TYPE_READERS[kind](reader)
            self._add_type(kind, typ)
            if kind == _GLOBAL_KIND:
                with _context("failed to skip global init expr"):
                    read_const_expression(reader)

    def read_exports(self, reader: ByteReader) -> None:
        with _context("failed to read export count"):
            count = reader.read_u32()
        for _ in range(count):
            with _context("failed to read export name"):
                name = reader.read_name()
            with _context("failed to read export kind"):
                kind = reader.read_byte()
            if kind == _FUNC_KIND:
                with _context("failed to skip function export index"):
                    reader.read_u32()
            elif kind in _KIND_NAMES:
                with _context(f"failed to read {_KIND_NAMES[kind]} index"):
                    self.exported[kind][name] = reader.read_u32()
            else:
                raise DecodeError(f"unknown export kind: {kind}")

    def resolve(self, kind: int, mapping: dict) -> dict:
        types = self.types[kind]
        resolved = {}
        for key, idx in mapping.items():
            if idx >= len(types):
                raise DecodeError(f"{_KIND_NAMES[kind]} type for index {idx} not found")
            resolved[key] = types[idx]
        return resolved


def read_externs(module_bytes: bytes) -> Externs:
    """Read the types of a module's imported and exported tables, memories and globals."""
    body = read_module_header(module_bytes)
    collector = _Collector()

    for section_id, data in _iter_sections(body):
        reader = ByteReader(data)
        if section_id == _IMPORT_SECTION:
            collector.read_imports(reader)
        elif section_id in _DEFINITION_SECTIONS:
            collector.read_definitions(_DEFINITION_SECTIONS[section_id], reader)
        elif section_id == _EXPORT_SECTION:
            collector.read_exports(reader)

    imports = Imports(
        tables=collector.resolve(_TABLE_KIND, collector.imported[_TABLE_KIND]),
        memories=collector.resolve(_MEMORY_KIND, collector.imported[_MEMORY_KIND]),
        globals=collector.resolve(_GLOBAL_KIND, collector.imported[_GLOBAL_KIND]),
    )
    exports = Exports(
        tables=collector.resolve(_TABLE_KIND, collector.exported[_TABLE_KIND]),
        memories=collector.resolve(_MEMORY_KIND, collector.exported[_MEMORY_KIND]),
        globals=collector.resolve(_GLOBAL_KIND, collector.exported[_GLOBAL_KIND]),
    )
    return Externs(imports=imports, exports=exports)