"""WebAssembly core module encoding, inspection and rewriting, with buffered byte streams."""

__version__ = "0.1.0"

__all__ = [
    "builder",
    "inputstream",
    "leb128",
    "outputstream",
    "parser",
    "poll",
    "reader",
    "transform",
]