# wacore

Tools for working with WebAssembly core modules in their binary form, and
buffered byte streams of the kind a WASI host hands to a guest.

## Modules

- `wacore.leb128`: `encode_u32(value)` and `decode_u32(data, offset=0)` handle
  unsigned 32-bit LEB128. `decode_u32` returns the value together with the
  number of bytes it used. Malformed or truncated input raises `DecodeError`,
  a subclass of `ValueError`.
- `wacore.builder`: assembles a module from sections. `Builder.add_section`
  collects `TypeSection`, `FuncSection`, `ImportSection` and `ExportSection`
  objects, and `Builder.build()` returns the bytes, magic number and version
  first. Types are described with `ValType`, `Limits`, `FuncImport`,
  `TableType`, `MemoryType`, `GlobalType` and `FuncTypeDef`. Exports are
  described with `FuncExport`, `TableExport`, `MemoryExport` and
  `GlobalExport`. `TypeSection.add_func_def(param_types, result_types)`
  accepts only `I32`, `I64`, `F32`, `F64` and `EXTERNREF`, raises
  `ValueError` for any other type, and returns the new type index.
- `wacore.reader`: `ByteReader` reads bytes, LEB128 values and
  length-prefixed names in order. The module also has `read_module_header`,
  `read_type`, `read_limits`, `read_table_type`, `read_memory_type`,
  `read_global_type`, `read_const_expression` and `encode_name`. Each
  `read_*` helper returns the raw bytes it read along with the decoded value.
  Errors raise `DecodeError`.
- `wacore.parser`: `read_externs(module_bytes)` returns an `Externs` with
  `imports` and `exports`. Each holds `tables`, `memories` and `globals`
  dictionaries. Imports are keyed by `ModuleName(module, name)` and exports
  by their export name. Function imports and exports are skipped.
- `wacore.transform`: `transform_blank_import_names(module_bytes)` renames
  every import whose module name is empty to `$$BLANK$$` and copies all other
  sections unchanged.
- `wacore.poll`: the `Pollable` base class, `AlwaysReadyPollable`, and
  `EventPollable`, which becomes ready when `fire()` is called.
  `poll(pollables)` returns the indices of the pollables that are ready now.
- `wacore.inputstream`: `ReaderInputStream(reader, max_read_size=32768,
  buffer_size=1024, n_buffers=32)` wraps any object that has a `read(size)`
  method. A background thread fills a fixed pool of buffers.
  - `read` and `skip` return only the data that is available at the moment.
  - `blocking_read` and `blocking_skip` first wait for data.
  - `subscribe(callback)` calls the callback once data or an error is
    available.
  - An empty read from the wrapped object ends the stream, and the consumer
    then gets `EOFError`. Errors from the wrapped object are raised to the
    consumer.
  - `close()` stops the stream and also closes the wrapped object if it has a
    `close` method.
- `wacore.outputstream`: `WriterOutputStream(writer)` wraps any object that
  has a `write(data)` method. A background thread drains a single buffer of
  `MAX_WRITE_SIZE` (4096) bytes.
  - `check_write()` returns how many bytes may be written now, or 0 while the
    buffer is busy.
  - `write` must follow a successful `check_write`. Otherwise it raises
    `RuntimeError`. It raises `ValueError` if the data is too large.
  - The blocking variants `blocking_write_and_flush`, `blocking_flush` and
    `blocking_write_zeroes_and_flush` wait until the data has been handed to
    the writer.
  - `splice` and `blocking_splice` move bytes from an `InputStream`.
  - `close_on_error(error)` puts the stream into a failed state, after which
    operations raise that error. `close()` does the same with `EOFError` and
    closes the wrapped object if it can be closed.

Both stream classes can also be used as context managers.

## Installation

```
pip install .
```

## Examples

Build a module that imports a memory and exports it again, then inspect it:

```python
from wacore.builder import (
    Builder, Export, ExportSection, Import, ImportSection,
    MemoryExport, MemoryType,
)
from wacore.parser import read_externs

builder = Builder()
builder.add_section(ImportSection([Import("env", "memory", MemoryType(1))]))
builder.add_section(ExportSection([Export("memory", MemoryExport(0))]))
module = builder.build()

externs = read_externs(module)
print(externs.exports.memories["memory"])  # MemoryType(minimum=1, maximum=None)
```

Stream bytes between file-like objects:

```python
import io
from wacore.inputstream import ReaderInputStream
from wacore.outputstream import WriterOutputStream

sink = io.BytesIO()
with ReaderInputStream(io.BytesIO(b"hello world"), 1024, 512, 2) as src, \
        WriterOutputStream(sink) as dst:
    moved = dst.blocking_splice(src, 5)
print(moved, sink.getvalue())  # 5 b'hello'
```

## What it does not do

The package does not run WebAssembly code and does not validate modules
beyond the structures it reads. The only sections it understands are type,
function, import, export, table, memory and global. It provides streams and
pollables, but it is not a WASI host: it has no environment, clock, random,
filesystem or socket interfaces.

## Running the tests

```
pip install .[test]
pytest
```