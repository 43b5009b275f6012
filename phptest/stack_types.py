"""Structured traceback data types (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass
class StackFrame:
    """One ``File "...", line N, in name`` frame plus its indented detail lines.

    Every rendered line keeps its own line ending so that a normalised
    traceback differs from the raw one only where it was rewritten.
    """

    filename: str
    lineno: int | str
    name: str
    colno: int | None = None
    details: list[str] = field(default_factory=list)
    indent: str = "  "
    line_ending: str = "\n"
    show_column: bool = False

    @property
    def trailing_line_ending(self) -> str:
        if self.details:
            last = self.details[-1]
            return last[len(last.rstrip("\r\n")):]
        return self.line_ending

    def render(self) -> str:
        position = f"line {self.lineno}"
        if self.show_column:
            position += f", column {self.colno}"
        header = f'{self.indent}File "{self.filename}", {position}, in {self.name}'
        return header + self.line_ending + "".join(self.details)


@dataclass
class StackText:
    """Any traceback line that is not part of a frame (headers, the error message)."""

    text: str

    def render(self) -> str:
        return self.text


StackEntry = Union[StackFrame, StackText]


def render_stack(entries: list[StackEntry]) -> str:
    return "".join(entry.render() for entry in entries)
