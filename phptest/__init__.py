"""Test helper library for PHP core runtime components."""

from .tools import IntegrationTools, create_integration_tools  # noqa: F401
from .errors import (  # noqa: F401
    PHPTestError,
    ConfigurationError,
    MappingError,
    RuntimeLibraryError,
)
from .options import TranspileOptions  # noqa: F401
