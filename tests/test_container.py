"""
Container lifecycle: register, start, clear, independent instances.
"""

import asyncio

import pytest

import stagedi
from stagedi import Container, Settings, create_instance
from stagedi.diagnostics import DIEventType
from stagedi.testing import MockFactory
from stagedi.errors import (
    AlreadyActivatedError,
    CircularDependencyError,
    DuplicateRegistrationError,
    MultiParameterFactoryError,
    PostActivationRegistrationError,
    StrictModeAfterActivationError,
    UnregisteredDependencyError,
)


class TestRegistration:

    def test_register_forms(self, container):
        container.register_module("a", ["b"], lambda deps: deps["b"])
        container.register_value("b", 42)
        name = container.register_side_effect(["a"], lambda deps: None)

        assert container.registry.names() == ["a", "b", name]
        assert name.startswith(stagedi.SIDE_EFFECT_PREFIX)

    def test_duplicate(self, container):
        container.register_value("a", 1)
        with pytest.raises(DuplicateRegistrationError):
            container.register_module("a", factory=lambda deps: 2)

    def test_multi_parameter_factory(self, container):
        with pytest.raises(MultiParameterFactoryError):
            container.register_module("1", [], lambda a, b: [a, b])

    def test_provides_decorator(self, container):
        @container.provides(deps=["config"])
        def make_db(deps):
            return deps["config"]

        @container.provides(name="settings")
        def build():
            return {}

        assert "db" in container.registry
        assert "settings" in container.registry
        assert container.registry["db"].deps == ("config",)

    def test_registration_event(self, container, recorder):
        container.register_value("a", 1)
        events = recorder.of_type(DIEventType.REGISTRATION)
        assert [e.module for e in events] == ["a"]

    def test_duplicate_checked_before_arity(self, container):
        container.register_value("a", 1)
        with pytest.raises(DuplicateRegistrationError):
            container.register_module("a", [], lambda x, y: None)


class TestStart:

    @pytest.mark.asyncio
    async def test_resolves_final_map(self, container):
        container.register_module("2", factory=lambda: "bar")
        container.register_module("1", ["2"], lambda deps: deps["2"])

        modules = await container.start()
        assert modules == {"2": "bar", "1": "bar"}
        assert dict(container.modules) == modules

    @pytest.mark.asyncio
    async def test_calls_each_factory_once(self, container):
        fn1 = MockFactory()
        fn2 = MockFactory()
        container.register_module("1", ["2"], fn1)
        container.register_module("2", factory=fn2)

        await container.start()
        assert fn1.call_count == 1
        assert fn2.call_count == 1

    @pytest.mark.asyncio
    async def test_calls_factory_with_deps(self, container):
        foo, foo2 = object(), object()
        fn1 = MockFactory()
        container.register_module("1", ["2", "3"], fn1)
        container.register_module("2", factory=MockFactory(foo))
        container.register_module("3", factory=MockFactory(foo2))

        await container.start()
        assert fn1.called_with({"2": foo, "3": foo2})

    @pytest.mark.asyncio
    async def test_dependency_registered_later(self, container):
        container.register_module("app", ["config"], lambda deps: deps["config"]["name"])
        container.register_value("config", {"name": "demo"})

        modules = await container.start()
        assert modules["app"] == "demo"

    @pytest.mark.asyncio
    async def test_side_effects_run_but_are_not_returned(self, container):
        hits = []
        container.register_value("a", 1)
        name = container.register_side_effect(["a"], lambda deps: hits.append(deps["a"]))

        modules = await container.start()
        assert hits == [1]
        assert name not in modules
        assert modules == {"a": 1}

    @pytest.mark.asyncio
    async def test_result_is_a_copy(self, container):
        container.register_value("a", 1)
        modules = await container.start()
        modules["a"] = 2
        assert container.modules["a"] == 1

    def test_resolution_errors_raise_before_any_factory(self, container):
        called = []
        container.register_module("ok", factory=lambda: called.append(True))
        container.register_module("1", ["2"], lambda deps: None)
        container.register_module("2", ["1"], lambda deps: None)

        with pytest.raises(CircularDependencyError):
            container.start()
        assert called == []

    def test_unregistered_dependency(self, container):
        container.register_module("1", ["2"], lambda deps: None)
        container.register_module("2", ["3"], lambda deps: None)

        with pytest.raises(UnregisteredDependencyError) as exc_info:
            container.start()
        assert exc_info.value.dependency == "3"

    @pytest.mark.asyncio
    async def test_factory_error_rejects_start(self, container, recorder):
        boom = ValueError("boom")

        def failing(deps):
            raise boom

        container.register_module("failing", factory=failing)
        with pytest.raises(ValueError) as exc_info:
            await container.start()
        assert exc_info.value is boom
        assert len(recorder.of_type(DIEventType.ACTIVATION_FAILED)) == 1
        assert dict(container.modules) == {}


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_can_only_activate_once(self, container):
        await container.start()
        with pytest.raises(AlreadyActivatedError, match="(?i)already activated"):
            container.start()

    @pytest.mark.asyncio
    async def test_second_start_fails_after_failed_activation(self, container):
        def failing(deps):
            raise ValueError("x")

        container.register_module("failing", factory=failing)
        with pytest.raises(ValueError):
            await container.start()
        with pytest.raises(AlreadyActivatedError):
            container.start()

    def test_second_start_fails_after_resolution_error(self, container):
        container.register_module("1", ["missing"], lambda deps: None)
        with pytest.raises(UnregisteredDependencyError):
            container.start()
        with pytest.raises(AlreadyActivatedError):
            container.start()

    @pytest.mark.asyncio
    async def test_register_after_start(self, container):
        container.register_value("a", 1)
        await container.start()

        with pytest.raises(PostActivationRegistrationError):
            container.register_value("something", 2)
        with pytest.raises(PostActivationRegistrationError):
            container.register_side_effect([], lambda deps: None)

    @pytest.mark.asyncio
    async def test_strict_after_start(self, container):
        await container.start()
        with pytest.raises(StrictModeAfterActivationError):
            container.enable_strict_mode()

    @pytest.mark.asyncio
    async def test_clear_resets_everything(self, container):
        container.register_value("a", 1)
        container.enable_strict_mode()
        await container.start()

        container.clear()
        assert container.is_activated is False
        assert container.strict_mode is False
        assert len(container.registry) == 0
        assert dict(container.modules) == {}

        container.register_value("a", 2)
        modules = await container.start()
        assert modules == {"a": 2}

    @pytest.mark.asyncio
    async def test_clear_during_activation(self, container):
        release = asyncio.Event()

        async def slow(deps):
            await release.wait()
            return "old"

        container.register_module("slow", factory=slow)
        container.register_side_effect(["slow"], lambda deps: None)
        pending = asyncio.ensure_future(container.start())
        await asyncio.sleep(0)

        container.clear()
        release.set()

        # The in-flight activation still completes with its own results
        assert await pending == {"slow": "old"}
        assert container.is_activated is False
        assert dict(container.modules) == {}

        container.register_value("fresh", 1)
        assert await container.start() == {"fresh": 1}
        assert dict(container.modules) == {"fresh": 1}

    def test_stages_does_not_activate(self, container):
        container.register_value("a", 1)
        container.register_module("b", ["a"], lambda deps: deps["a"])

        stages = container.stages()
        assert [s.names for s in stages] == [["a"], ["b"]]
        assert container.is_activated is False


class TestInstances:

    @pytest.mark.asyncio
    async def test_instances_share_nothing(self):
        first = create_instance()
        second = create_instance()

        first.register_value("a", 1)
        second.register_value("a", 2)
        first.enable_strict_mode()

        assert second.strict_mode is False
        assert await first.start() == {"a": 1}
        assert second.is_activated is False
        assert await second.start() == {"a": 2}

    def test_default_instance(self):
        assert isinstance(stagedi.default, Container)

    def test_strict_from_settings(self):
        container = Container(settings=Settings(strict=True))
        assert container.strict_mode is True
        container.clear()
        assert container.strict_mode is True

    @pytest.mark.asyncio
    async def test_trace_attaches_logging_listener(self, caplog):
        container = Container(settings=Settings(trace=True))
        container.register_value("a", 1)
        container.register_module("b", ["a"], lambda deps: deps["a"])

        with caplog.at_level("DEBUG", logger="stagedi"):
            await container.start()

        assert "Initialising a" in caplog.text
        assert "Activation complete" in caplog.text

    @pytest.mark.asyncio
    async def test_concurrent_instances(self):
        async def slow(deps):
            await asyncio.sleep(0.01)
            return "done"

        containers = [create_instance() for _ in range(3)]
        for c in containers:
            c.register_module("slow", factory=slow)

        results = await asyncio.gather(*(c.start() for c in containers))
        assert results == [{"slow": "done"}] * 3
