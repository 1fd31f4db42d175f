"""Assembly of WebAssembly core modules from sections."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Protocol, Union

from .leb128 import encode_u32

MAGIC = b"\x00asm"
VERSION = b"\x01\x00\x00\x00"

_TYPE_SECTION_ID = 1
_IMPORT_SECTION_ID = 2
_FUNC_SECTION_ID = 3
_EXPORT_SECTION_ID = 7
_FUNC_TYPE_FORM = 0x60


class ValType(enum.IntEnum):
    """Value and reference types with their binary encoding."""

    I32 = 0x7F
    I64 = 0x7E
    F32 = 0x7D
    F64 = 0x7C
    V128 = 0x7B
    FUNCREF = 0x70
    EXTERNREF = 0x6F

    @property
    def is_ref(self) -> bool:
        return self in (ValType.FUNCREF, ValType.EXTERNREF)

    def encode(self) -> bytes:
        return bytes([self])


_HOST_VALUE_TYPES = frozenset(
    {ValType.I32, ValType.I64, ValType.F32, ValType.F64, ValType.EXTERNREF}
)


def _encode_name(name: str) -> bytes:
    raw = name.encode("utf-8", errors="surrogateescape")
    return encode_u32(len(raw)) + raw


def _section(section_id: int, entries: List[bytes]) -> bytes:
    contents = encode_u32(len(entries)) + b"".join(entries)
    return bytes([section_id]) + encode_u32(len(contents)) + contents


@dataclass(frozen=True)
class Limits:
    """Size limits of a table or memory; ``maximum`` is None when unbounded."""

    minimum: int
    maximum: int | None = None

    def encode(self) -> bytes:
        if self.maximum is None:
            return b"\x00" + encode_u32(self.minimum)
        return b"\x01" + encode_u32(self.minimum) + encode_u32(self.maximum)


@dataclass(frozen=True)
class FuncImport:
    """An imported function referring to a type index."""

    type_idx: int

    def encode(self) -> bytes:
        return b"\x00" + encode_u32(self.type_idx)


@dataclass(frozen=True)
class TableType:
    """A table of references with limits."""

    elem_type: ValType
    limits: Limits

    def __post_init__(self) -> None:
        if not ValType(self.elem_type).is_ref:
            raise ValueError(f"table element type must be a reference type: {self.elem_type!r}")

    def encode(self) -> bytes:
        return b"\x01" + ValType(self.elem_type).encode() + self.limits.encode()


@dataclass(frozen=True)
class MemoryType:
    """A linear memory with page limits."""

    minimum: int
    maximum: int | None = None

    @property
    def limits(self) -> Limits:
        return Limits(self.minimum, self.maximum)

    def encode(self) -> bytes:
        return b"\x02" + self.limits.encode()


@dataclass(frozen=True)
class GlobalType:
    """A global variable's value type and mutability."""

    val_type: ValType
    mutable: bool = False

    def encode(self) -> bytes:
        return b"\x03" + ValType(self.val_type).encode() + bytes([1 if self.mutable else 0])


ImportDesc = Union[FuncImport, TableType, MemoryType, GlobalType]


@dataclass(frozen=True)
class Import:
    """A single import entry."""

    module: str
    name: str
    desc: ImportDesc


@dataclass
class ImportSection:
    """The import section of a module."""

    imports: List[Import] = field(default_factory=list)

    def encode(self) -> bytes:
        return _section(
            _IMPORT_SECTION_ID,
            [
                _encode_name(imp.module) + _encode_name(imp.name) + imp.desc.encode()
                for imp in self.imports
            ],
        )


@dataclass(frozen=True)
class FuncExport:
    """An exported function index."""

    idx: int

    def encode(self) -> bytes:
        return b"\x00" + encode_u32(self.idx)


@dataclass(frozen=True)
class TableExport:
    """An exported table index."""

    idx: int

    def encode(self) -> bytes:
        return b"\x01" + encode_u32(self.idx)


@dataclass(frozen=True)
class MemoryExport:
    """An exported memory index."""

    idx: int

    def encode(self) -> bytes:
        return b"\x02" + encode_u32(self.idx)


@dataclass(frozen=True)
class GlobalExport:
    """An exported global index."""

    idx: int

    def encode(self) -> bytes:
        return b"\x03" + encode_u32(self.idx)


ExportDesc = Union[FuncExport, TableExport, MemoryExport, GlobalExport]


@dataclass(frozen=True)
class Export:
    """A single export entry."""

    name: str
    desc: ExportDesc


@dataclass
class ExportSection:
    """The export section of a module."""

    exports: List[Export] = field(default_factory=list)

    def encode(self) -> bytes:
        return _section(
            _EXPORT_SECTION_ID,
            [_encode_name(exp.name) + exp.desc.encode() for exp in self.exports],
        )


@dataclass
class FuncTypeDef:
    """A function signature."""

    param_types: List[ValType] = field(default_factory=list)
    result_types: List[ValType] = field(default_factory=list)

    def encode(self) -> bytes:
        parts = [bytes([_FUNC_TYPE_FORM]), encode_u32(len(self.param_types))]
        parts.extend(ValType(t).encode() for t in self.param_types)
        parts.append(encode_u32(len(self.result_types)))
        parts.extend(ValType(t).encode() for t in self.result_types)
        return b"".join(parts)


def _host_value_type(value) -> ValType:
    vt = ValType(value)
    if vt not in _HOST_VALUE_TYPES:
        raise ValueError(f"unsupported value type: {vt.name}")
    return vt


@dataclass
class TypeSection:
    """The type section of a module."""

    types: List[FuncTypeDef] = field(default_factory=list)

    def add_func_def(self, param_types, result_types) -> int:
        """Append a signature and return its type index."""
        params = [_host_value_type(t) for t in param_types]
        results = [_host_value_type(t) for t in result_types]
        self.types.append(FuncTypeDef(params, results))
        return len(self.types) - 1

    def encode(self) -> bytes:
        return _section(_TYPE_SECTION_ID, [t.encode() for t in self.types])


@dataclass
class FuncSection:
    """The function section: one type index per defined function."""

    func_type_indices: List[int] = field(default_factory=list)

    def encode(self) -> bytes:
        return _section(_FUNC_SECTION_ID, [encode_u32(i) for i in self.func_type_indices])


class _Section(Protocol):
    def encode(self) -> bytes: ...


@dataclass
class Builder:
    """Collects sections and produces a binary module."""

    sections: List[_Section] = field(default_factory=list)

    def add_section(self, section: _Section) -> None:
        self.sections.append(section)

    def build(self) -> bytes:
        return MAGIC + VERSION + b"".join(s.encode() for s in self.sections)