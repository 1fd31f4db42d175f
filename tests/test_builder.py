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
    FuncTypeDef,
    GlobalExport,
    GlobalType,
    Import,
    ImportSection,
    Limits,
    MemoryExport,
    MemoryType,
    TableExport,
    TableType,
    TypeSection,
    ValType,
)
from wacore.reader import (
    ByteReader,
    read_global_type,
    read_limits,
    read_memory_type,
    read_table_type,
    read_type,
)


def _split_section(data):
    reader = ByteReader(data)
    section_id = reader.read_byte()
    size = reader.read_u32()
    return section_id, size, reader


def _read_desc(reader, desc):
    if isinstance(desc, FuncImport):
        return FuncImport(reader.read_u32())
    if isinstance(desc, TableType):
        return read_table_type(reader)[1]
    if isinstance(desc, MemoryType):
        return read_memory_type(reader)[1]
    return read_global_type(reader)[1]


def test_empty_module_is_header_only():
    assert Builder().build() == b"\x00asm\x01\x00\x00\x00"


def test_i32_type_byte():
    assert ValType.I32.encode() == b"\x7f"


@pytest.mark.parametrize("vt", list(ValType))
def test_valtype_round_trip(vt):
    raw, parsed = read_type(ByteReader(vt.encode()))
    assert parsed is vt
    assert raw == vt.encode()


@pytest.mark.parametrize(
    "elem_type, expected",
    [
        (ValType.FUNCREF, b"\x01\x70\x00\x01"),
        (ValType.EXTERNREF, b"\x01\x6f\x00\x01"),
    ],
)
def test_reference_types_encode_as_table_elements(elem_type, expected):
    assert TableType(elem_type, Limits(1)).encode() == expected


@pytest.mark.parametrize("limits", [Limits(0), Limits(3), Limits(1, 10), Limits(2**20, 2**32 - 1)])
def test_limits_round_trip(limits):
    encoded = limits.encode()
    raw, parsed = read_limits(ByteReader(encoded))
    assert parsed == limits
    assert raw == encoded


def test_import_descriptor_kinds_are_distinct():
    descs = [
        FuncImport(0),
        TableType(ValType.FUNCREF, Limits(1)),
        MemoryType(1),
        GlobalType(ValType.I32),
    ]
    assert len({d.encode()[0] for d in descs}) == len(descs)


def test_table_type_rejects_value_type():
    with pytest.raises(ValueError, match="reference type"):
        TableType(ValType.I32, Limits(1))


@pytest.mark.parametrize("mutable", [True, False])
def test_global_type_round_trip(mutable):
    gt = GlobalType(ValType.I64, mutable)
    assert read_global_type(ByteReader(gt.encode()[1:]))[1] == gt


@pytest.mark.parametrize("mt", [MemoryType(1), MemoryType(2, 16)])
def test_memory_type_round_trip(mt):
    assert read_memory_type(ByteReader(mt.encode()[1:]))[1] == mt
    assert mt.limits == Limits(mt.minimum, mt.maximum)


def test_import_section_round_trip():
    imports = [
        Import("env", "f", FuncImport(7)),
        Import("env", "table", TableType(ValType.EXTERNREF, Limits(1, 8))),
        Import("", "mem", MemoryType(1, 2)),
        Import("modülé", "g", GlobalType(ValType.F32, True)),
    ]
    section_id, size, reader = _split_section(ImportSection(imports).encode())
    assert section_id == 2
    assert size == reader.remaining
    assert reader.read_u32() == len(imports)
    for imp in imports:
        assert reader.read_name() == imp.module
        assert reader.read_name() == imp.name
        assert reader.read_byte() == imp.desc.encode()[0]
        assert _read_desc(reader, imp.desc) == imp.desc
    assert reader.at_end


def test_export_section_round_trip():
    exports = [
        Export("run", FuncExport(3)),
        Export("tbl", TableExport(0)),
        Export("memory", MemoryExport(0)),
        Export("counter", GlobalExport(300)),
    ]
    section_id, size, reader = _split_section(ExportSection(exports).encode())
    assert section_id != ImportSection().encode()[0]
    assert size == reader.remaining
    assert reader.read_u32() == len(exports)
    for exp in exports:
        assert reader.read_name() == exp.name
        assert reader.read_byte() == exp.desc.encode()[0]
        assert reader.read_u32() == exp.desc.idx
    assert reader.at_end


def test_export_kinds_are_distinct():
    kinds = {cls(0).encode()[0] for cls in (FuncExport, TableExport, MemoryExport, GlobalExport)}
    assert len(kinds) == 4


def test_add_func_def_appends_signature():
    ts = TypeSection()
    idx = ts.add_func_def([ValType.I32, ValType.I64], [ValType.F64])
    other = ts.add_func_def([], [ValType.EXTERNREF])
    assert ts.types[idx] == FuncTypeDef([ValType.I32, ValType.I64], [ValType.F64])
    assert ts.types[other] == FuncTypeDef([], [ValType.EXTERNREF])
    assert other == idx + 1


@pytest.mark.parametrize("bad", [ValType.V128, ValType.FUNCREF])
def test_add_func_def_rejects_unsupported(bad):
    ts = TypeSection()
    with pytest.raises(ValueError, match="unsupported value type"):
        ts.add_func_def([bad], [])
    assert ts.types == []


def test_type_section_round_trip():
    ts = TypeSection()
    ts.add_func_def([ValType.I32, ValType.F32], [ValType.I64])
    ts.add_func_def([], [])
    _, size, reader = _split_section(ts.encode())
    assert size == reader.remaining
    assert reader.read_u32() == len(ts.types)
    for td in ts.types:
        assert reader.read_byte() == td.encode()[0]
        params = [read_type(reader)[1] for _ in range(reader.read_u32())]
        results = [read_type(reader)[1] for _ in range(reader.read_u32())]
        assert params == td.param_types
        assert results == td.result_types
    assert reader.at_end


def test_func_section_round_trip():
    indices = [0, 1, 200, 0]
    _, size, reader = _split_section(FuncSection(indices).encode())
    assert size == reader.remaining
    count = reader.read_u32()
    assert [reader.read_u32() for _ in range(count)] == indices
    assert reader.at_end


def test_build_appends_sections_in_order():
    types = TypeSection()
    types.add_func_def([ValType.I32], [])
    funcs = FuncSection([0])
    builder = Builder()
    builder.add_section(types)
    builder.add_section(funcs)
    out = builder.build()
    assert out.startswith(MAGIC + VERSION)
    assert out[len(MAGIC + VERSION):] == types.encode() + funcs.encode()