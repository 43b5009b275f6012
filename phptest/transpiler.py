"""Transpile-and-load: PHP source -> parsed AST -> generated Python -> module handle."""

from __future__ import annotations

import functools
import importlib
import logging
import os
import traceback
from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping

from . import constants
from .errors import ConfigurationError
from .options import TranspileOptions
from .parser import PhpParserFactory, TreeSitterParserFactory
from .registry import ModuleData, ModuleDataRegistry

logger = logging.getLogger(__name__)


class Compiler(ABC):
    """The PHP-to-Python compiler the harness drives.

    ``transpile`` returns the generated code, or (when
    ``options["source_map"]["return_map"]`` is set) an object or mapping
    carrying ``code`` and ``map``.
    """

    @abstractmethod
    def transpile(
        self, ast: Any, options: dict[str, Any], transpiler_options: Any = None
    ) -> Any: ...


def load_compiler(spec: str) -> Any:
    """Import a compiler from a ``package.module[:attribute]`` spec.

    A bare module name is used as the compiler itself, so a module exposing a
    module-level ``transpile`` function works as well as a Compiler instance.
    """
    module_name, _, attribute = spec.partition(":")
    if not module_name:
        raise ConfigurationError(f"Malformed compiler spec: {spec!r}")
    module = importlib.import_module(module_name)
    compiler = getattr(module, attribute) if attribute else module
    if not callable(getattr(compiler, "transpile", None)):
        raise ConfigurationError(f"Compiler {spec!r} has no transpile() method")
    return compiler


def resolve_compiler(compiler: Any = None) -> Any:
    """Return *compiler*, falling back to the one named by $PHPTEST_COMPILER."""
    if compiler is not None:
        return compiler
    spec = os.environ.get(constants.COMPILER_ENV_VAR, "")
    if not spec:
        raise ConfigurationError(
            "No PHP compiler configured: pass compiler=... to "
            f"create_integration_tools() or set ${constants.COMPILER_ENV_VAR}"
        )
    logger.info("Loading PHP compiler from $%s=%s", constants.COMPILER_ENV_VAR, spec)
    return load_compiler(spec)


def transpiled_filename(path: str | None) -> str:
    if path is None:
        return constants.TRANSPILED_FILENAME
    return constants.TRANSPILED_FILENAME_TEMPLATE.format(path=path)


def _execute(code: str, filename: str, namespace: dict[str, Any]) -> dict[str, Any]:
    exec(compile(code, filename, "exec"), namespace)
    return namespace


def evaluate(code: str, filename: str, require: Callable[..., Any]) -> Any:
    """Execute generated code, exposing nothing but ``require`` to it."""
    namespace = _execute(code, filename, {constants.REQUIRE_NAME: require})
    if constants.MODULE_NAME not in namespace:
        raise ConfigurationError(
            f"Generated code did not bind '{constants.MODULE_NAME}' - "
            f"was the compiler given the {constants.MODULE_PREFIX!r} prefix?"
        )
    return namespace[constants.MODULE_NAME]


class _OffsetProbe(Exception):
    pass


@functools.cache
def error_line_offset() -> int:
    """Number of synthetic lines the evaluation wrapper adds above generated code.

    Measured once by raising an error on the first line of evaluated code
    and reading back the line its own traceback reports.
    """
    try:
        _execute(
            "raise probe()\n",
            constants.TRANSPILED_FILENAME,
            {constants.REQUIRE_NAME: None, "probe": _OffsetProbe},
        )
    except _OffsetProbe as probe:
        return traceback.extract_tb(probe.__traceback__)[-1].lineno - 1
    raise AssertionError("Offset probe did not raise")


def _unpack_result(result: Any, with_map: bool) -> tuple[str, Any]:
    if not with_map:
        return result, None
    if isinstance(result, Mapping):
        return result["code"], result["map"]
    return result.code, result.map


def transpile(
    path: str | None,
    php: str,
    runtime: Any,
    options: TranspileOptions | Mapping[str, Any] | None = None,
    *,
    compiler: Any,
    registry: ModuleDataRegistry,
    parser_factory: PhpParserFactory | None = None,
) -> Any:
    """Transpile PHP source to a module handle bound to *runtime*.

    Parser and compiler errors propagate unchanged.

    Args:
        path: Logical path of the PHP script, or None.
        php: The PHP source text.
        runtime: Runtime handed to the generated code via ``require``.
        options: A TranspileOptions or a mapping of its fields.
        compiler: The PHP-to-Python compiler.
        registry: Where source map data is recorded.
        parser_factory: Defaults to the tree-sitter parser.

    Returns:
        The module handle produced by the generated code.
    """
    options = TranspileOptions.coerce(options)
    path = path or None

    php_parser = (parser_factory or TreeSitterParserFactory()).create(
        # Capture offsets of all nodes for line tracking
        {"capture_all_bounds": True, **options.parser}
    )
    if path:
        php_parser.state.set_path(path)

    compiler_options: dict[str, Any] = {
        # Record line numbers for statements/expressions
        "line_numbers": True,
        "path": path,
        "prefix": constants.MODULE_PREFIX,
    }
    if options.source_map:
        compiler_options["source_map"] = {"source_content": php, "return_map": True}
    compiler_options.update(options.compiler)

    logger.info("Transpiling PHP (path=%s, source_map=%s)", path, options.source_map)
    code, source_map = _unpack_result(
        compiler.transpile(php_parser.parse(php), compiler_options, options.transpiler),
        options.source_map,
    )

    filename = transpiled_filename(path)
    module = evaluate(code, filename, lambda *_args: runtime)

    # Module-level options other than the path are deprecated in favour of environment-level ones
    if path is not None:
        module = module.using({"path": path})

    if options.source_map:
        registry.register(
            module,
            ModuleData(source_map=source_map, path=path, code=code, filename=filename),
        )

    return module
