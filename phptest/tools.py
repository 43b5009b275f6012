"""The integration test tools object handed to test suites."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from . import constants
from .normaliser import StackNormaliser
from .opcode_hook import install_forced_async_opcode_hook
from .options import ToolsConfig, TranspileOptions
from .parser import PhpParserFactory
from .registry import ModuleDataRegistry
from .runtime_factory import RuntimeFactory, RuntimeHook
from .runtime_library import RuntimeLibrary, load_runtime_library
from .source_map import SourceMapDecoder
from .transpiler import resolve_compiler, transpile

logger = logging.getLogger(__name__)

Options = TranspileOptions | Mapping[str, Any] | None


class IntegrationTools:
    """Runtimes, transpilation and stack normalisation for PHP runtime integration tests.

    The shared runtime of each mode is created on first access and reused by
    every test that does not create its own with ``create_*_runtime()``.
    """

    def __init__(
        self,
        config: ToolsConfig,
        library: RuntimeLibrary,
        init_runtime: RuntimeHook | None = None,
        compiler: Any = None,
        parser_factory: PhpParserFactory | None = None,
        source_map_decoder: SourceMapDecoder | None = None,
    ):
        self.config = config
        self.library = library
        # Allows looking up the source map data for a module later on
        self.registry = ModuleDataRegistry()
        self._compiler = compiler
        self._parser_factory = parser_factory
        on_create = {}
        if config.force_opcodes_async:
            # Force all opcodes to be async for all async mode tests, to help ensure async handling is in place
            on_create[constants.MODE_ASYNC] = self.install_forced_async_opcode_hook
        self._runtimes = RuntimeFactory(library, init_runtime, on_create)
        self._normaliser = StackNormaliser(
            self.registry, library.path, decoder=source_map_decoder
        )

    # ── Runtimes ─────────────────────────────────────────────────

    @property
    def async_runtime(self) -> Any:
        return self._runtimes.get(constants.MODE_ASYNC)

    @property
    def psync_runtime(self) -> Any:
        return self._runtimes.get(constants.MODE_PSYNC)

    @property
    def sync_runtime(self) -> Any:
        return self._runtimes.get(constants.MODE_SYNC)

    # Isolated runtimes can have builtins installed without affecting the shared ones

    def create_async_runtime(self) -> Any:
        return self._runtimes.create(constants.MODE_ASYNC)

    def create_psync_runtime(self) -> Any:
        return self._runtimes.create(constants.MODE_PSYNC)

    def create_sync_runtime(self) -> Any:
        return self._runtimes.create(constants.MODE_SYNC)

    def create_async_environment(self, options: dict | None = None, addons: list | None = None):
        return self.async_runtime.create_environment(options, addons)

    def create_psync_environment(self, options: dict | None = None, addons: list | None = None):
        return self.psync_runtime.create_environment(options, addons)

    def create_sync_environment(self, options: dict | None = None, addons: list | None = None):
        return self.sync_runtime.create_environment(options, addons)

    def install_forced_async_opcode_hook(self, runtime: Any) -> None:
        install_forced_async_opcode_hook(runtime, self.library)

    # ── Transpilation ────────────────────────────────────────────

    def transpile(self, runtime: Any, path: str | None, php: str, options: Options = None) -> Any:
        return transpile(
            path,
            php,
            runtime,
            options,
            compiler=resolve_compiler(self._compiler),
            registry=self.registry,
            parser_factory=self._parser_factory,
        )

    def async_transpile(self, path: str | None, php: str, options: Options = None) -> Any:
        return self.transpile(self.async_runtime, path, php, options)

    def psync_transpile(self, path: str | None, php: str, options: Options = None) -> Any:
        return self.transpile(self.psync_runtime, path, php, options)

    def sync_transpile(self, path: str | None, php: str, options: Options = None) -> Any:
        return self.transpile(self.sync_runtime, path, php, options)

    # ── Stacks ───────────────────────────────────────────────────

    async def normalise_stack(self, stack: str | BaseException, module: Any) -> str:
        """Make a traceback assertion less brittle.

        Scrubs out things that are outside the test's control and likely to
        change (such as line numbers of frames inside pytest) and maps frames
        of the transpiled code back to their PHP source positions. A mapped
        frame keeps Python's traceback layout, so the PHP position
        (path:line:column) reads as
        ``File "/my/script.php", line 1, column 6, in main``.
        """
        return await self._normaliser.normalise(stack, module)


def create_integration_tools(
    runtime_library_path: str,
    init_runtime: RuntimeHook | None = None,
    force_opcodes_async: bool = True,
    *,
    compiler: Any = None,
    parser_factory: PhpParserFactory | None = None,
    source_map_decoder: SourceMapDecoder | None = None,
) -> IntegrationTools:
    """Create an integration test tools object.

    Args:
        runtime_library_path: Directory (or importable name) of the PHP runtime library.
        init_runtime: Called with each new runtime; returns the runtime to use.
        force_opcodes_async: Install the forced-async opcode hook on the shared async runtime.
        compiler: PHP-to-Python compiler; defaults to the one named by $PHPTEST_COMPILER.
        parser_factory: PHP parser factory; defaults to tree-sitter.
        source_map_decoder: Defaults to the ``sourcemap`` package.

    Returns:
        An IntegrationTools instance.
    """
    config = ToolsConfig(
        runtime_library_path=runtime_library_path,
        force_opcodes_async=force_opcodes_async,
    )
    return IntegrationTools(
        config,
        load_runtime_library(runtime_library_path),
        init_runtime=init_runtime,
        compiler=compiler,
        parser_factory=parser_factory,
        source_map_decoder=source_map_decoder,
    )
