"""Tree-Sitter PHP Parsing Layer."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


class PhpSyntaxError(SyntaxError):
    """Raised by the tree-sitter parser when the PHP source does not parse cleanly."""

    pass


@dataclass
class ParserState:
    """Mutable state shared with the compiler (currently just the logical path)."""

    path: str | None = None

    def set_path(self, path: str) -> None:
        self.path = path


@dataclass(frozen=True)
class ParsedSource:
    """A parsed PHP program: the syntax tree plus what produced it."""

    tree: Any
    source: str
    path: str | None = None

    @property
    def root_node(self):
        return self.tree.root_node


class PhpParser(ABC):
    """Parses PHP source text into an AST."""

    def __init__(self, options: dict[str, Any] | None = None):
        self.options = dict(options or {})
        self._state = ParserState()

    @property
    def state(self) -> ParserState:
        return self._state

    @abstractmethod
    def parse(self, source: str) -> Any: ...


class PhpParserFactory(ABC):
    """Abstract factory for obtaining a PHP parser."""

    @abstractmethod
    def create(self, options: dict[str, Any] | None = None) -> PhpParser: ...


def _first_error_node(node):
    """Depth-first search for the first ERROR or MISSING node."""
    stack = [node]
    while stack:
        current = stack.pop()
        if current.is_error or current.is_missing:
            return current
        if current.has_error:
            stack.extend(reversed(current.children))
    return None


class TreeSitterPhpParser(PhpParser):
    """PHP parser backed by tree-sitter-language-pack.

    Tree-sitter records start/end points on every node, so the
    ``capture_all_bounds`` option is always satisfied.
    """

    LANGUAGE = "php"

    def __init__(self, ts_parser, options: dict[str, Any] | None = None):
        super().__init__(options)
        self._ts_parser = ts_parser

    def parse(self, source: str) -> ParsedSource:
        tree = self._ts_parser.parse(source.encode("utf-8"))
        path = self.state.path
        error_node = _first_error_node(tree.root_node) if tree.root_node.has_error else None
        if error_node is not None:
            row, column = error_node.start_point
            lines = source.splitlines()
            text = lines[row] if row < len(lines) else ""
            raise PhpSyntaxError(
                f"PHP Parse error: syntax error near '{error_node.type}'",
                (path or "<php>", row + 1, column + 1, text),
            )
        logger.debug("Parsed %d bytes of PHP (path=%s)", len(source), path)
        return ParsedSource(tree=tree, source=source, path=path)


class TreeSitterParserFactory(PhpParserFactory):
    """Concrete factory that delegates to tree-sitter-language-pack."""

    def create(self, options: dict[str, Any] | None = None) -> TreeSitterPhpParser:
        import tree_sitter_language_pack as tslp

        return TreeSitterPhpParser(
            tslp.get_parser(TreeSitterPhpParser.LANGUAGE), options
        )
