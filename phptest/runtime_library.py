"""Locates the embedded PHP runtime library and the classes the harness needs from it."""

from __future__ import annotations

import importlib
import importlib.util
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any

from .errors import RuntimeLibraryError

logger = logging.getLogger(__name__)

# attribute -> (submodule, member or None for the module itself)
_LIBRARY_MEMBERS: dict[str, tuple[str, str | None]] = {
    "runtime_factory": ("shared.runtime_factory", None),
    "OpcodeExecutor": ("core.opcode.handler.opcode_executor", "OpcodeExecutor"),
    "Reference": ("reference.reference", "Reference"),
    "Value": ("value", "Value"),
    "Variable": ("variable", "Variable"),
}


@dataclass(frozen=True)
class RuntimeLibrary:
    """The pieces of the runtime library used by the harness."""

    path: str
    package: ModuleType
    runtime_factory: Any
    OpcodeExecutor: type
    Reference: type
    Value: type
    Variable: type


def _import_package_from_directory(directory: Path) -> ModuleType:
    name = directory.name
    existing = sys.modules.get(name)
    if existing is not None and Path(existing.__file__ or "").resolve().parent == directory:
        return existing
    init_file = directory / "__init__.py"
    if not init_file.is_file():
        raise RuntimeLibraryError(f"{directory} is not a Python package (no __init__.py)")
    spec = importlib.util.spec_from_file_location(
        name, init_file, submodule_search_locations=[str(directory)]
    )
    package = importlib.util.module_from_spec(spec)
    sys.modules[name] = package
    try:
        spec.loader.exec_module(package)
    except BaseException:
        del sys.modules[name]
        raise
    return package


def _import_package(path_or_name: str) -> ModuleType:
    directory = Path(path_or_name)
    if directory.is_dir():
        return _import_package_from_directory(directory.resolve())
    return importlib.import_module(path_or_name)


def _names_part_of(missing: str | None, module_name: str) -> bool:
    """Whether *missing* is *module_name* or one of its parent packages."""
    if not missing:
        return False
    return module_name == missing or module_name.startswith(missing + ".")


def load_runtime_library(path_or_name: str) -> RuntimeLibrary:
    """Import the runtime library from a package directory or an importable name.

    Raises ``RuntimeLibraryError`` if any expected module or class is missing.
    """
    package = _import_package(path_or_name)
    members: dict[str, Any] = {}
    for attribute, (submodule, member) in _LIBRARY_MEMBERS.items():
        module_name = f"{package.__name__}.{submodule}"
        try:
            module = importlib.import_module(module_name)
        except ModuleNotFoundError as error:
            if not _names_part_of(error.name, module_name):
                raise
            raise RuntimeLibraryError(
                f"Runtime library {path_or_name!r} has no module {module_name}"
            ) from error
        if member is None:
            members[attribute] = module
        elif hasattr(module, member):
            members[attribute] = getattr(module, member)
        else:
            raise RuntimeLibraryError(f"{module_name} does not define {member}")

    path = str(Path(package.__file__).resolve().parent)
    logger.info("Loaded PHP runtime library %s from %s", package.__name__, path)
    return RuntimeLibrary(path=path, package=package, **members)
