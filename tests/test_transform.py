import pytest

from wacore.builder import (
    MAGIC,
    VERSION,
    Builder,
    Export,
    ExportSection,
    FuncExport,
    FuncImport,
    FuncSection,
    GlobalType,
    Import,
    ImportSection,
    Limits,
    MemoryType,
    TableType,
    TypeSection,
    ValType,
)
from wacore.leb128 import DecodeError, encode_u32
from wacore.parser import ModuleName, read_externs
from wacore.reader import encode_name
from wacore.transform import BLANK_MODULE_NAME, transform_blank_import_names


def build(*sections):
    b = Builder()
    for s in sections:
        b.add_section(s)
    return b.build()


def raw_section(section_id, contents):
    return bytes([section_id]) + encode_u32(len(contents)) + contents


def test_header_only_module_is_unchanged():
    assert transform_blank_import_names(MAGIC + VERSION) == MAGIC + VERSION


def test_module_without_blank_names_is_unchanged():
    types = TypeSection()
    types.add_func_def([ValType.I32], [ValType.I64])
    data = build(
        types,
        ImportSection(
            [
                Import("env", "f", FuncImport(0)),
                Import("env", "t", TableType(ValType.FUNCREF, Limits(1, 4))),
                Import("env", "m", MemoryType(1)),
                Import("env", "g", GlobalType(ValType.F32, mutable=True)),
            ]
        ),
        FuncSection([0]),
        ExportSection([Export("run", FuncExport(1))]),
    )
    assert transform_blank_import_names(data) == data


def test_blank_module_name_is_replaced():
    data = build(
        ImportSection(
            [
                Import("", "x", GlobalType(ValType.I32)),
                Import("env", "", MemoryType(1)),
            ]
        )
    )
    expected = build(
        ImportSection(
            [
                Import(BLANK_MODULE_NAME, "x", GlobalType(ValType.I32)),
                Import("env", "", MemoryType(1)),
            ]
        )
    )
    out = transform_blank_import_names(data)
    assert out == expected
    externs = read_externs(out)
    assert externs.imports.globals == {ModuleName("$$BLANK$$", "x"): GlobalType(ValType.I32)}
    assert externs.imports.memories == {ModuleName("env", ""): MemoryType(1)}


def test_non_canonical_section_size_is_reencoded():
    data = MAGIC + VERSION + b"\x00\x83\x00abc"
    assert transform_blank_import_names(data) == MAGIC + VERSION + b"\x00\x03abc"


def test_non_canonical_limits_are_reencoded():
    entry = encode_name("m") + encode_name("n") + b"\x02\x00\x81\x00"
    data = MAGIC + VERSION + raw_section(2, encode_u32(1) + entry)
    expected = build(ImportSection([Import("m", "n", MemoryType(1))]))
    assert transform_blank_import_names(data) == expected


def test_trailing_bytes_in_import_section_are_dropped():
    entry = ImportSection([Import("m", "f", FuncImport(3))]).encode()
    contents = entry[2:] + b"\xff"
    data = MAGIC + VERSION + raw_section(2, contents)
    expected = build(ImportSection([Import("m", "f", FuncImport(3))]))
    assert transform_blank_import_names(data) == expected


def test_invalid_header_fails():
    with pytest.raises(DecodeError, match="invalid magic number"):
        transform_blank_import_names(b"\x01asm\x01\x00\x00\x00")


def test_unknown_descriptor_fails():
    entry = encode_name("m") + encode_name("n") + b"\x04"
    data = MAGIC + VERSION + raw_section(2, encode_u32(1) + entry)
    with pytest.raises(DecodeError, match="unknown import descriptor type: 0x04"):
        transform_blank_import_names(data)


def test_truncated_import_fails_with_context():
    entry = encode_name("m") + b"\x04n"
    data = MAGIC + VERSION + raw_section(2, encode_u32(1) + entry)
    with pytest.raises(DecodeError, match="failed to transform import section"):
        transform_blank_import_names(data)


def test_section_exceeding_module_fails():
    with pytest.raises(DecodeError, match="section size exceeds module bounds"):
        transform_blank_import_names(MAGIC + VERSION + b"\x01\x09\x00")