"""Forced-async opcode interception.

Async-mode tests can pass by accident when an opcode happens to complete
synchronously. Installing this hook replaces the runtime's
``opcode_executor`` service with one that pushes every traced opcode's
result onto a later tick, so the async code paths are always taken.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from .runtime_library import RuntimeLibrary

logger = logging.getLogger(__name__)

OPCODE_EXECUTOR_SERVICE = "opcode_executor"


def _deferring_accessor(result, future_factory, reference_factory, value_factory):
    """Wrap a Reference or Variable so reads and writes complete asynchronously.

    The reference-structure operations (get/set/clear reference, is-reference)
    stay synchronous; callers rely on those being immediately consistent.
    """

    def get_value():
        return value_factory.create_async_present(result.get_value())

    def set_value(value):
        # Defer assignment in a microtask to test for async handling
        return value_factory.create_async_microtask_future(
            lambda resolve, reject: result.set_value(value).next(resolve, reject)
        )

    def unset():
        return future_factory.create_async_present(result.unset())

    def is_empty():
        return future_factory.create_async_present(result.is_empty())

    def is_set():
        return future_factory.create_async_present(result.is_set())

    def raise_undefined():
        return future_factory.create_async_present(result.raise_undefined())

    return reference_factory.create_accessor(
        value_getter=get_value,
        value_setter=set_value,
        unsetter=unset,
        reference_getter=result.get_reference,
        reference_setter=result.set_reference,
        reference_clearer=result.clear_reference,
        definedness_getter=result.is_defined,
        readability_getter=result.is_readable,
        emptiness_getter=is_empty,
        set_getter=is_set,
        reference_checker=result.is_reference,
        undefined_raiser=raise_undefined,
    )


def create_async_opcode_executor_class(library: RuntimeLibrary) -> type:
    """Build an OpcodeExecutor subclass for the given runtime library."""
    Reference = library.Reference
    Value = library.Value
    Variable = library.Variable

    class AsyncOpcodeExecutor(library.OpcodeExecutor):
        """Executes opcodes, forcing traced ones to complete asynchronously."""

        def __init__(self, control_bridge, future_factory, reference_factory, value_factory):
            super().__init__()
            self._control_bridge = control_bridge
            self._future_factory = future_factory
            self._reference_factory = reference_factory
            self._value_factory = value_factory

        def execute(self, opcode):
            result = opcode.handle()

            if not opcode.is_traced():
                # Resuming from inside an untraced opcode is not possible, so never pause one
                return result

            if self._control_bridge.is_future(result) and result.is_settled():
                # Wrap settled Futures in a deferring one to force a pause
                return self._future_factory.create_async_present(result)

            if isinstance(result, Value):
                return self._value_factory.create_async_present(result)

            if isinstance(result, (Reference, Variable)):
                return _deferring_accessor(
                    result,
                    self._future_factory,
                    self._reference_factory,
                    self._value_factory,
                )

            return result

    return AsyncOpcodeExecutor


def install_forced_async_opcode_hook(runtime: Any, library: RuntimeLibrary) -> None:
    """Force all traced opcodes of *runtime* to be async.

    Must be called at most once per runtime, before it is used concurrently.
    """
    executor_class = create_async_opcode_executor_class(library)

    def service_group(internals) -> dict[str, Callable[[], Any]]:
        get = internals.get_service_fetcher()

        # As we'll be overriding the "opcode_executor" service
        internals.allow_service_override()

        def create_opcode_executor():
            return executor_class(
                get("control_bridge"),
                get("future_factory"),
                get("reference_factory"),
                get("value_factory"),
            )

        return {OPCODE_EXECUTOR_SERVICE: create_opcode_executor}

    logger.info("Installing forced-async opcode hook")
    runtime.install({"service_groups": [service_group]})
