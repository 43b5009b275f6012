"""A small stand-in for the PHP core runtime library, used by the harness tests.

It provides just enough of the runtime's service container, futures,
values and references for the forced-async hook and the transpile helpers
to be exercised end to end.
"""

from .future import ControlBridge, Future, FutureFactory  # noqa: F401
from .opcode import Opcode  # noqa: F401
from .reference.reference import AccessorReference, Reference, ReferenceFactory  # noqa: F401
from .runtime import Environment, Module, Runtime, ServiceOverrideError  # noqa: F401
from .value import Value, ValueFactory  # noqa: F401
from .variable import Variable  # noqa: F401
