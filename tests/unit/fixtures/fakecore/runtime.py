"""Runtime, service container, environments and compiled modules."""

from __future__ import annotations

from typing import Any, Callable

from .core.opcode.handler.opcode_executor import OpcodeExecutor
from .future import ControlBridge, FutureFactory
from .reference.reference import ReferenceFactory
from .value import ValueFactory


class ServiceOverrideError(Exception):
    pass


class ServiceContainer:
    def __init__(self):
        self._factories: dict[str, Callable[[], Any]] = {}
        self._instances: dict[str, Any] = {}
        self.override_allowed = False

    def define(self, name: str, factory: Callable[[], Any]) -> None:
        if name in self._factories and not self.override_allowed:
            raise ServiceOverrideError(f'Service "{name}" is already defined')
        self._factories[name] = factory
        self._instances.pop(name, None)

    def get(self, name: str) -> Any:
        if name not in self._instances:
            self._instances[name] = self._factories[name]()
        return self._instances[name]


class Internals:
    """What a service group is given to work with."""

    def __init__(self, container: ServiceContainer):
        self._container = container

    def get_service_fetcher(self) -> Callable[[str], Any]:
        return self._container.get

    def allow_service_override(self) -> None:
        self._container.override_allowed = True


class Environment:
    def __init__(self, runtime: Runtime, container: ServiceContainer, options, addons):
        self.runtime = runtime
        self.options = options or {}
        self.addons = addons or []
        self._container = container

    def get_service(self, name: str) -> Any:
        return self._container.get(name)

    def execute(self, opcode) -> Any:
        return self.get_service("opcode_executor").execute(opcode)


class Engine:
    def __init__(self, module: Module, environment: Environment):
        self.module = module
        self.environment = environment

    def execute(self) -> Any:
        return self.module.wrapper(self)


class Module:
    def __init__(self, runtime: Runtime, wrapper: Callable[[Engine], Any], options=None):
        self.runtime = runtime
        self.wrapper = wrapper
        self.options = dict(options or {})

    def using(self, options: dict) -> Module:
        return Module(self.runtime, self.wrapper, {**self.options, **options})

    def __call__(self, environment: Environment | None = None) -> Engine:
        return Engine(self, environment or self.runtime.create_environment())


def _define_defaults(container: ServiceContainer) -> None:
    future_factory = FutureFactory()
    container.define("control_bridge", ControlBridge)
    container.define("future_factory", lambda: future_factory)
    container.define("reference_factory", ReferenceFactory)
    container.define("value_factory", lambda: ValueFactory(future_factory))
    container.define("opcode_executor", OpcodeExecutor)


class Runtime:
    def __init__(self, mode: str):
        self.mode = mode
        self._service_groups: list[Callable[[Internals], dict]] = []

    def install(self, components: dict) -> None:
        self._service_groups.extend(components.get("service_groups", []))

    def create_environment(self, options=None, addons=None) -> Environment:
        container = ServiceContainer()
        _define_defaults(container)
        for group in self._service_groups:
            services = group(Internals(container))
            for name, factory in services.items():
                container.define(name, factory)
            container.override_allowed = False
        return Environment(self, container, options, addons)

    def compile(self, wrapper: Callable[[Engine], Any]) -> Module:
        return Module(self, wrapper)
