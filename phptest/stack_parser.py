"""Turns traceback text or a live exception into structured stack entries."""

from __future__ import annotations

import re
import traceback

from .stack_types import StackEntry, StackFrame, StackText

_FRAME_LINE = re.compile(
    r'^(?P<indent>[ \t]*)File "(?P<filename>[^"]*)", line (?P<lineno>\d+|\?\?)'
    r"(?:, column (?P<colno>\d+))?, in (?P<name>.*)$"
)
_TRACEBACK_HEADER = "Traceback (most recent call last):\n"


def _split_line_ending(line: str) -> tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body):]


def _indent_width(text: str) -> int:
    return len(text) - len(text.lstrip(" \t"))


def parse_traceback(text: str) -> list[StackEntry]:
    """Parse formatted traceback text (e.g. from ``traceback.format_exc()``).

    Lines indented deeper than the frame line that precedes them (source
    lines, caret markers) are attached to that frame; everything else is
    kept verbatim as StackText.
    """
    entries: list[StackEntry] = []
    current: StackFrame | None = None

    for line in text.splitlines(keepends=True):
        body, ending = _split_line_ending(line)
        match = _FRAME_LINE.match(body)
        if match:
            lineno = match.group("lineno")
            colno = match.group("colno")
            current = StackFrame(
                filename=match.group("filename"),
                lineno=int(lineno) if lineno.isdigit() else lineno,
                name=match.group("name"),
                colno=int(colno) if colno is not None else None,
                indent=match.group("indent"),
                line_ending=ending,
                show_column=colno is not None,
            )
            entries.append(current)
            continue
        if current is not None and body.strip() and _indent_width(body) > len(current.indent):
            current.details.append(line)
            continue
        current = None
        entries.append(StackText(line))

    return entries


def entries_from_exception(error: BaseException) -> list[StackEntry]:
    """Build entries straight from *error*'s traceback, keeping exact columns.

    Chained causes and contexts are not included.
    """
    summary = traceback.TracebackException.from_exception(error)
    entries: list[StackEntry] = []
    if summary.stack:
        entries.append(StackText(_TRACEBACK_HEADER))
    for frame in summary.stack:
        source_line = (frame.line or "").strip()
        entries.append(
            StackFrame(
                filename=frame.filename,
                lineno=frame.lineno,
                name=frame.name,
                colno=getattr(frame, "colno", None),
                details=[f"    {source_line}\n"] if source_line else [],
            )
        )
    entries.extend(StackText(text) for text in summary.format_exception_only())
    return entries
