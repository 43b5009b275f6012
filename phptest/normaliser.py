"""Stack normalisation: source-maps transpiled frames and scrubs environment noise.

Tests assert on whole tracebacks, so everything outside the test's control
(pytest's call depth, standard library frames, where the runtime library is
installed) is replaced with stable placeholders, and frames from the
generated Python are mapped back to the PHP they came from.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from . import constants
from .errors import MappingError
from .frame_rules import InternalFrameRule, default_rules
from .registry import ModuleData, ModuleDataRegistry
from .source_map import SourceMapConsumer, SourceMapDecoder, SourcemapDecoder
from .stack_parser import entries_from_exception, parse_traceback
from .stack_types import StackEntry, StackFrame, render_stack
from .transpiler import error_line_offset

logger = logging.getLogger(__name__)

_TRANSPILED_FILENAME = re.compile(constants.TRANSPILED_FILENAME_PATTERN)


def _first_code_column(line: str) -> int:
    return len(line) - len(line.lstrip())


def _character_column(line: str, byte_offset: int) -> int:
    """CPython reports columns as UTF-8 byte offsets; source maps count characters."""
    return len(line.encode("utf-8")[:byte_offset].decode("utf-8", errors="ignore"))


class StackNormaliser:
    """Produces stable, source-mapped traceback text for assertions."""

    def __init__(
        self,
        registry: ModuleDataRegistry,
        runtime_library_path: str,
        decoder: SourceMapDecoder | None = None,
        rules: list[InternalFrameRule] | None = None,
        line_offset: int | None = None,
    ):
        self._registry = registry
        self._runtime_library_path = runtime_library_path
        self._decoder = decoder or SourcemapDecoder()
        self._rules = rules if rules is not None else default_rules()
        self._line_offset = line_offset

    @property
    def line_offset(self) -> int:
        if self._line_offset is None:
            self._line_offset = error_line_offset()
        return self._line_offset

    async def normalise(self, stack: str | BaseException, module: Any) -> str:
        """Normalise *stack*, raised by code from *module*.

        Raises ``ConfigurationError`` if *module* was transpiled without
        source maps and ``MappingError`` if a transpiled frame cannot be
        mapped back to PHP. Nothing is returned on failure.

        Mapped frames are rendered as ``File "<php path>", line <L>, column
        <C>, in <name>``.
        """
        module_data = self._registry.lookup(module)
        consumer = await self._decoder.consume(module_data.source_map)

        if isinstance(stack, BaseException):
            entries = entries_from_exception(stack)
        else:
            entries = parse_traceback(stack)

        entries = self._map_transpiled_frames(entries, module_data, consumer)
        for rule in self._rules:
            entries = rule.apply(entries)

        return render_stack(entries).replace(
            self._runtime_library_path, constants.PHPCORE_PLACEHOLDER
        )

    def _map_transpiled_frames(
        self,
        entries: list[StackEntry],
        module_data: ModuleData,
        consumer: SourceMapConsumer,
    ) -> list[StackEntry]:
        for entry in entries:
            if not isinstance(entry, StackFrame) or not _TRANSPILED_FILENAME.match(entry.filename):
                continue

            line = int(entry.lineno) - self.line_offset
            generated = module_data.generated_line(line)
            if entry.colno is None:
                column = _first_code_column(generated)
            else:
                column = _character_column(generated, entry.colno)

            position = consumer.original_position_for(line, column)
            if position is None:
                # Source maps must cover all generated code reachable from PHP
                raise MappingError(
                    f"{constants.UNMAPPABLE_FRAME_MESSAGE} "
                    f"({entry.filename}, line {line}, column {column})"
                )
            logger.debug(
                "Mapped %s:%d:%d to %s:%d:%d",
                entry.filename, line, column, position.source, position.line, position.column,
            )

            entry.filename = position.source
            entry.lineno = position.line
            entry.colno = position.column
            entry.show_column = True
            entry.details = []
        return entries
