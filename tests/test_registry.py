"""
Module registry: normalization, uniqueness and arity checks.
"""

import pytest

from stagedi.registry import (
    ModuleRegistry,
    SIDE_EFFECT_PREFIX,
    factory_arity,
    make_descriptor,
)
from stagedi.errors import (
    DuplicateRegistrationError,
    MultiParameterFactoryError,
    PostActivationRegistrationError,
)


class TestRegisterModule:

    def test_register_with_deps(self):
        registry = ModuleRegistry()

        def fn(deps):
            return None

        registry.register_module("NAME", ["a", "b"], fn)
        descriptor = registry["NAME"]
        assert descriptor.name == "NAME"
        assert descriptor.factory is fn
        assert descriptor.deps == ("a", "b")
        assert descriptor.accepts_deps is True
        assert descriptor.side_effect is False

    def test_register_without_deps(self):
        registry = ModuleRegistry()
        registry.register_module("NAME", factory=lambda deps: 1)
        assert registry["NAME"].deps == ()

    def test_zero_argument_factory(self):
        registry = ModuleRegistry()
        registry.register_module("NAME", factory=lambda: 1)
        assert registry["NAME"].accepts_deps is False

    def test_duplicate_raises(self):
        registry = ModuleRegistry()
        registry.register_module("NAME", factory=lambda deps: 1)
        with pytest.raises(DuplicateRegistrationError) as exc_info:
            registry.register_module("NAME", factory=lambda deps: 2)
        assert exc_info.value.name == "NAME"

    def test_duplicate_value_raises(self):
        registry = ModuleRegistry()
        registry.register_value("NAME", 1)
        with pytest.raises(DuplicateRegistrationError):
            registry.register_value("NAME", 2)

    def test_duplicate_reported_before_arity(self):
        registry = ModuleRegistry()
        registry.register_module("NAME", factory=lambda deps: 1)
        with pytest.raises(DuplicateRegistrationError):
            registry.register_module("NAME", [], lambda a, b: None)

    def test_two_positional_parameters_rejected(self):
        registry = ModuleRegistry()
        with pytest.raises(MultiParameterFactoryError, match="at most one positional"):
            registry.register_module("1", [], lambda a, b: [a, b])
        assert "1" not in registry

    def test_defaulted_second_parameter_allowed(self):
        registry = ModuleRegistry()
        registry.register_module("1", [], lambda deps, extra=None: deps)
        assert "1" in registry

    def test_non_callable_factory_rejected(self):
        registry = ModuleRegistry()
        with pytest.raises(TypeError):
            registry.register_module("1", [], "not callable")

    def test_string_deps_rejected(self):
        with pytest.raises(TypeError):
            make_descriptor("1", "abc", lambda deps: None)


class TestShorthands:

    def test_value_wrapped_in_factory(self):
        registry = ModuleRegistry()
        value = object()
        registry.register_value("config", value)
        descriptor = registry["config"]
        assert descriptor.deps == ()
        assert descriptor.factory() is value
        assert descriptor.factory() is value

    def test_side_effect_names_are_generated(self):
        registry = ModuleRegistry()
        first = registry.register_side_effect(["a"], lambda deps: None)
        second = registry.register_side_effect([], lambda deps: None)
        assert first.name == f"{SIDE_EFFECT_PREFIX}1"
        assert second.name == f"{SIDE_EFFECT_PREFIX}2"
        assert first.side_effect and second.side_effect
        assert first.deps == ("a",)

    def test_side_effect_arity_checked(self):
        registry = ModuleRegistry()
        with pytest.raises(MultiParameterFactoryError):
            registry.register_side_effect([], lambda a, b: None)


class TestFreeze:

    def test_frozen_registry_rejects_all_forms(self):
        registry = ModuleRegistry()
        registry.freeze()
        with pytest.raises(PostActivationRegistrationError):
            registry.register_module("a", factory=lambda deps: 1)
        with pytest.raises(PostActivationRegistrationError):
            registry.register_value("b", 1)
        with pytest.raises(PostActivationRegistrationError):
            registry.register_side_effect([], lambda deps: None)

    def test_clear_unfreezes(self):
        registry = ModuleRegistry()
        registry.register_value("a", 1)
        registry.freeze()
        registry.clear()
        assert len(registry) == 0
        assert registry.frozen is False
        registry.register_value("a", 2)

    def test_replace_keeps_position(self):
        registry = ModuleRegistry()
        registry.register_value("a", 1)
        registry.register_value("b", 2)
        registry.replace(make_descriptor("a", (), lambda: 3))
        assert registry.names() == ["a", "b"]
        assert registry["a"].factory() == 3

    def test_replace_unknown_raises(self):
        registry = ModuleRegistry()
        with pytest.raises(KeyError):
            registry.replace(make_descriptor("a", (), lambda: 3))


class TestFactoryArity:

    def test_counts_required_positional(self):
        assert factory_arity(lambda: None) == (0, False)
        assert factory_arity(lambda deps: None) == (1, True)
        assert factory_arity(lambda a, b: None) == (2, True)
        assert factory_arity(lambda *args: None) == (0, True)
        assert factory_arity(lambda *, key=None: None) == (0, False)

    def test_bound_method(self):
        class Service:
            def build(self, deps):
                return deps

        assert factory_arity(Service().build) == (1, True)

