"""Weakly-keyed side table from module handles to their source-map data."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from weakref import WeakKeyDictionary

from . import constants
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleData:
    """What .normalise_stack(...) needs to map a module's frames back to PHP."""

    source_map: Any
    path: str | None
    code: str
    filename: str

    def generated_line(self, lineno: int) -> str:
        lines = self.code.splitlines()
        if 1 <= lineno <= len(lines):
            return lines[lineno - 1]
        return ""


class ModuleDataRegistry:
    """Associates module handles with ModuleData without keeping them alive."""

    def __init__(self):
        self._entries: WeakKeyDictionary[Any, ModuleData] = WeakKeyDictionary()

    def register(self, module: Any, data: ModuleData) -> None:
        logger.debug("Registering source map data for %s", data.filename)
        self._entries[module] = data

    def __contains__(self, module: Any) -> bool:
        try:
            return module in self._entries
        except TypeError:
            # Not weak-referenceable, so it can never have been registered
            return False

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, module: Any) -> ModuleData:
        if module not in self:
            raise ConfigurationError(constants.MISSING_MODULE_DATA_MESSAGE)
        return self._entries[module]
