"""Shared fixtures: the stand-in runtime library and a tiny PHP-to-Python compiler."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from phptest import create_integration_tools
from phptest.runtime_library import load_runtime_library

FAKECORE_PATH = str(Path(__file__).parent / "fixtures" / "fakecore")

_BASE64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"

# Top-level children of a tree-sitter PHP program that are not statements
_NON_STATEMENTS = frozenset({"php_tag", "text_interpolation", "text", "comment"})


def _vlq(value: int) -> str:
    """Encode one source map VLQ field."""
    remaining = (-value << 1) | 1 if value < 0 else value << 1
    encoded = ""
    while True:
        digit = remaining & 31
        remaining >>= 5
        if remaining:
            digit |= 32
        encoded += _BASE64[digit]
        if not remaining:
            return encoded


def _statement_line(node, source: bytes) -> str:
    text = source[node.start_byte:node.end_byte].decode("utf-8")
    if text.startswith("throw"):
        return f"    raise RuntimeError({text!r})"
    return "    pass"


class FakeCompiler:
    """Compiles each top-level PHP statement to one line of a ``main`` function.

    ``throw ...;`` statements become ``raise RuntimeError(...)``; anything
    else becomes ``pass``. With ``map_statements=False`` the source map it
    returns covers nothing.
    """

    def __init__(self, map_statements: bool = True):
        self.map_statements = map_statements
        self.calls: list[tuple[Any, dict, Any]] = []

    def transpile(self, ast, options: dict, transpiler_options: Any = None):
        self.calls.append((ast, options, transpiler_options))
        source = ast.source.encode("utf-8")
        statements = [
            node for node in ast.root_node.named_children if node.type not in _NON_STATEMENTS
        ]

        lines = ["def main(engine):"]
        lines.extend(_statement_line(node, source) for node in statements)
        if not statements:
            lines.append("    pass")
        lines.append(f"{options['prefix']}require('fakecore').compile(main)")
        code = "\n".join(lines) + "\n"

        source_map_options = options.get("source_map")
        if not source_map_options:
            return code

        mappings = [""]
        previous_line = previous_column = 0
        for node in statements:
            row, column = node.start_point
            if self.map_statements:
                mappings.append(
                    _vlq(4) + _vlq(0) + _vlq(row - previous_line) + _vlq(column - previous_column)
                )
                previous_line, previous_column = row, column
            else:
                mappings.append("")
        source_map = {
            "version": 3,
            "sources": [options["path"] or "unknown.php"],
            "sourcesContent": [source_map_options["source_content"]],
            "names": [],
            "mappings": ";".join(mappings),
        }
        return {"code": code, "map": source_map}


@pytest.fixture
def fakecore_path() -> str:
    return FAKECORE_PATH


@pytest.fixture
def library():
    return load_runtime_library(FAKECORE_PATH)


@pytest.fixture
def fakecore(library):
    return library.package


@pytest.fixture
def compiler() -> FakeCompiler:
    return FakeCompiler()


@pytest.fixture
def tools(compiler):
    return create_integration_tools(FAKECORE_PATH, compiler=compiler)
