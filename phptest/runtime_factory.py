"""Per-mode runtime creation and memoisation."""

from __future__ import annotations

import logging
from typing import Any, Callable

from . import constants
from .runtime_library import RuntimeLibrary

logger = logging.getLogger(__name__)

RuntimeHook = Callable[[Any], Any]


class RuntimeFactory:
    """Creates runtimes of each mode, memoising one shared runtime per mode.

    ``init_runtime`` sees every runtime created (shared or isolated) and
    returns the runtime to use. ``on_create`` runs only for the shared
    runtime of each mode, once, right after it is created.
    """

    def __init__(
        self,
        library: RuntimeLibrary,
        init_runtime: RuntimeHook | None = None,
        on_create: dict[str, Callable[[Any], None]] | None = None,
    ):
        self._library = library
        self._init_runtime = init_runtime
        self._on_create = dict(on_create or {})
        self._shared: dict[str, Any] = {}

    def create(self, mode: str) -> Any:
        """Create an isolated runtime, separate from the shared one for *mode*."""
        if mode not in constants.RUNTIME_MODES:
            raise ValueError(
                f"Unknown runtime mode '{mode}'. Available: {list(constants.RUNTIME_MODES)}"
            )
        runtime = self._library.runtime_factory.create(mode)
        logger.info("Created %s runtime", mode)
        return self._init_runtime(runtime) if self._init_runtime else runtime

    def get(self, mode: str) -> Any:
        """Return the shared runtime for *mode*, creating it on first use."""
        if mode not in self._shared:
            runtime = self.create(mode)
            hook = self._on_create.get(mode)
            if hook is not None:
                hook(runtime)
            self._shared[mode] = runtime
        return self._shared[mode]
