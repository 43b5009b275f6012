"""Tests for shared and isolated runtime creation."""

from __future__ import annotations

import pytest

from phptest import create_integration_tools
from phptest.runtime_factory import RuntimeFactory


class TestSharedRuntimes:
    def test_same_mode_returns_same_instance(self, tools):
        first = tools.async_runtime
        second = tools.async_runtime
        third = tools.async_runtime

        assert first is second is third

    def test_each_mode_has_its_own_runtime(self, tools):
        runtimes = [tools.async_runtime, tools.psync_runtime, tools.sync_runtime]

        assert [runtime.mode for runtime in runtimes] == ["async", "psync", "sync"]
        assert len({id(runtime) for runtime in runtimes}) == 3

    def test_runtimes_are_created_lazily(self, fakecore_path, compiler):
        created = []

        create_integration_tools(fakecore_path, created.append, compiler=compiler)

        assert created == []


class TestIsolatedRuntimes:
    @pytest.mark.parametrize("mode", ["async", "psync", "sync"])
    def test_create_returns_a_distinct_instance(self, tools, mode):
        create = getattr(tools, f"create_{mode}_runtime")
        shared = getattr(tools, f"{mode}_runtime")

        first = create()
        second = create()

        assert first.mode == mode
        assert first is not second
        assert first is not shared

    def test_isolated_async_runtime_has_no_forced_async_hook(self, tools, library, fakecore):
        environment = tools.create_async_runtime().create_environment()

        assert type(environment.get_service("opcode_executor")) is library.OpcodeExecutor


class TestInitHook:
    def test_hook_sees_every_created_runtime(self, fakecore_path, compiler):
        seen = []

        def init_runtime(runtime):
            seen.append(runtime)
            return runtime

        tools = create_integration_tools(fakecore_path, init_runtime, compiler=compiler)
        shared = tools.sync_runtime
        isolated = tools.create_sync_runtime()

        assert seen == [shared, isolated]

    def test_hook_result_replaces_the_runtime(self, library):
        replacement = object()
        factory = RuntimeFactory(library, init_runtime=lambda runtime: replacement)

        assert factory.get("psync") is replacement


class TestRuntimeFactory:
    def test_unknown_mode_is_rejected(self, library):
        with pytest.raises(ValueError, match="Unknown runtime mode 'turbo'"):
            RuntimeFactory(library).create("turbo")

    def test_on_create_runs_once_for_the_shared_runtime(self, library):
        calls = []
        factory = RuntimeFactory(library, on_create={"sync": calls.append})

        shared = factory.get("sync")
        factory.get("sync")
        factory.create("sync")

        assert calls == [shared]


class TestEnvironments:
    @pytest.mark.parametrize("mode", ["async", "psync", "sync"])
    def test_environment_comes_from_the_shared_runtime(self, tools, mode):
        options = {"include_path": ["/my/includes"]}
        addons = ["my_addon"]

        environment = getattr(tools, f"create_{mode}_environment")(options, addons)

        assert environment.runtime is getattr(tools, f"{mode}_runtime")
        assert environment.options == options
        assert environment.addons == addons
