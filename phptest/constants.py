"""Named constants shared across the harness."""

from __future__ import annotations

MODE_ASYNC = "async"
MODE_PSYNC = "psync"
MODE_SYNC = "sync"

RUNTIME_MODES: tuple[str, ...] = (MODE_ASYNC, MODE_PSYNC, MODE_SYNC)

# The compiler emits `<MODULE_PREFIX><module expression>`; evaluating the
# generated code binds the module handle to MODULE_NAME.
MODULE_NAME = "module"
MODULE_PREFIX = f"{MODULE_NAME} = "
REQUIRE_NAME = "require"

TRANSPILED_FILENAME = "<transpiled>"
TRANSPILED_FILENAME_TEMPLATE = "<transpiled {path}>"
TRANSPILED_FILENAME_PATTERN = r"^<transpiled(?: .*)?>$"

PHPCORE_PLACEHOLDER = "/path/to/phpcore"
PYTEST_PLACEHOLDER = "/path/to/pytest"
PYTHON_PLACEHOLDER = "/path/to/python"

PYTEST_MARKER = "[pytest internals]"
PYTHON_MARKER = "[Python internals]"

UNKNOWN_POSITION = "??"

# Packages whose frames belong to the test runner. Plugin packages registered
# under PYTEST_PLUGIN_GROUP by a pytest-* distribution are added at runtime.
TEST_RUNNER_PACKAGES: tuple[str, ...] = ("_pytest", "pytest", "pluggy", "pytest_asyncio")
PYTEST_PLUGIN_GROUP = "pytest11"

COMPILER_ENV_VAR = "PHPTEST_COMPILER"

MISSING_MODULE_DATA_MESSAGE = (
    "Test harness error: module data map does not contain data for this module - "
    "did you forget to set options.source_map?"
)
UNMAPPABLE_FRAME_MESSAGE = (
    "Stack line in evaluated PHP code could not be mapped back to PHP source"
)
