"""Exception taxonomy for the test harness."""

from __future__ import annotations


class PHPTestError(Exception):
    """Base class for errors raised by the harness itself."""

    pass


class ConfigurationError(PHPTestError):
    """Raised when the harness was asked for something it was not set up for."""

    pass


class MappingError(PHPTestError):
    """Raised when a transpiled stack frame has no original PHP position."""

    pass


class RuntimeLibraryError(PHPTestError):
    """Raised when the runtime library does not expose the expected modules."""

    pass
