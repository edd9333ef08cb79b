"""
Testing utilities.
"""

from typing import Any, Callable, Dict, List, Optional

from .container import Container
from .registry import ModuleDescriptor, make_descriptor, constant_factory


class MockFactory:
    """
    Factory stand-in for tests.

    Records every call together with a plain-dict copy of the dependency
    view it received. ``reads`` selects which names to read from the view
    (all declared names by default), which matters in strict mode.
    """

    def __init__(
        self,
        return_value: Any = None,
        *,
        side_effect: Optional[BaseException] = None,
        reads: Optional[List[str]] = None,
    ):
        self.return_value = return_value
        self.side_effect = side_effect
        self.reads = reads
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, deps):
        names = list(deps.keys()) if self.reads is None else self.reads
        received = {name: deps[name] for name in names}
        self.calls.append(received)
        if self.side_effect is not None:
            raise self.side_effect
        return self.return_value

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def called(self) -> bool:
        return bool(self.calls)

    def called_with(self, deps: Dict[str, Any]) -> bool:
        return any(call == deps for call in self.calls)

    def reset(self) -> None:
        self.calls.clear()


class TestContainer(Container):
    """
    Container with testing support.

    Allows replacing registered modules with fixed values before start().
    """

    __test__ = False

    def override(self, name: str, value: Any) -> ModuleDescriptor:
        """
        Replace module ``name`` with a constant, dropping its dependencies.

        Registers the value if ``name`` is unknown.
        """
        descriptor = make_descriptor(name, (), constant_factory(value))
        if name in self._registry:
            self._registry.replace(descriptor)
        else:
            self._registry.add(descriptor)
        return self._registered(descriptor)

    def override_factory(self, name: str, factory: Callable, deps=None) -> ModuleDescriptor:
        """Replace the factory of ``name``, keeping its deps unless given."""
        current = self._registry[name]
        descriptor = make_descriptor(name, current.deps if deps is None else deps, factory)
        self._registry.replace(descriptor)
        return self._registered(descriptor)
