"""Source map consumption, behind a small interface with a `sourcemap`-backed default."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OriginalPosition:
    """A position in the original source: 1-based line, 0-based column."""

    source: str
    line: int
    column: int


class SourceMapConsumer(ABC):
    """Answers original-position queries against one decoded source map."""

    @abstractmethod
    def original_position_for(self, line: int, column: int) -> OriginalPosition | None:
        """Map a generated position (1-based line, 0-based column); None if unmapped."""
        ...


class SourceMapDecoder(ABC):
    """Decodes raw source map data into a consumer."""

    @abstractmethod
    async def consume(self, map_data: Any) -> SourceMapConsumer: ...


class _SourcemapIndexConsumer(SourceMapConsumer):
    def __init__(self, index):
        self._index = index

    def original_position_for(self, line: int, column: int) -> OriginalPosition | None:
        try:
            token = self._index.lookup(line - 1, column)
        except (IndexError, KeyError):
            return None
        if token.src is None or token.src_line is None:
            return None
        return OriginalPosition(
            source=token.src, line=token.src_line + 1, column=token.src_col
        )


class SourcemapDecoder(SourceMapDecoder):
    """Decoder backed by the ``sourcemap`` package (lazily imported)."""

    async def consume(self, map_data: Any) -> SourceMapConsumer:
        import sourcemap

        if isinstance(map_data, bytes):
            map_data = map_data.decode("utf-8")
        elif not isinstance(map_data, str):
            map_data = json.dumps(map_data)
        index = sourcemap.loads(map_data)
        logger.debug("Decoded source map (%d bytes)", len(map_data))
        return _SourcemapIndexConsumer(index)
