[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wacore"
version = "0.1.0"
description = "WebAssembly core module encoding, inspection and rewriting, with buffered byte streams"
requires-python = ">=3.10"
dependencies = []
keywords = ["webassembly", "wasm", "wasi", "binary", "leb128", "streams"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["wacore"]

[tool.pytest.ini_options]
addopts = "-ra"
