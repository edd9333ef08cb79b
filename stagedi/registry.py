"""
Module registry - named descriptors and registration-time checks.
"""

from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field
import inspect
import logging

from .errors import (
    DuplicateRegistrationError,
    MultiParameterFactoryError,
    PostActivationRegistrationError,
)

logger = logging.getLogger("stagedi.registry")

# Prefix for auto-generated side-effect module names
SIDE_EFFECT_PREFIX = "__stagedi_side_effect_"

_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


@dataclass(frozen=True, slots=True)
class ModuleDescriptor:
    """
    A registered module.

    Attributes:
        name: Unique module name
        deps: Names of the modules this one requires (order preserved)
        factory: Callable producing the module value, sync or async
        accepts_deps: Whether the factory takes the dependency view
        side_effect: True for anonymous side-effect modules
    """
    name: str
    deps: Tuple[str, ...]
    factory: Callable[..., Any]
    accepts_deps: bool = True
    side_effect: bool = field(default=False, compare=False)


def factory_arity(factory: Callable) -> Optional[Tuple[int, bool]]:
    """
    Inspect a factory signature.

    Returns:
        (required positional parameter count, accepts any positional argument),
        or None if the signature cannot be introspected.
    """
    try:
        sig = inspect.signature(factory)
    except (TypeError, ValueError):
        return None

    required = 0
    accepts = False
    for param in sig.parameters.values():
        if param.kind in _POSITIONAL:
            accepts = True
            if param.default is inspect.Parameter.empty:
                required += 1
        elif param.kind == inspect.Parameter.VAR_POSITIONAL:
            accepts = True
    return required, accepts


def make_descriptor(
    name: str,
    deps: Sequence[str],
    factory: Callable,
    *,
    side_effect: bool = False,
) -> ModuleDescriptor:
    """Normalize a registration into a descriptor, validating factory arity."""
    if isinstance(deps, str):
        raise TypeError(f"deps for '{name}' must be a sequence of names, not a string")

    arity = factory_arity(factory)
    if arity is None:
        accepts_deps = True
    else:
        required, accepts_deps = arity
        if required > 1:
            raise MultiParameterFactoryError(name, required)

    return ModuleDescriptor(
        name=name,
        deps=tuple(deps),
        factory=factory,
        accepts_deps=accepts_deps,
        side_effect=side_effect,
    )


def constant_factory(value: Any) -> Callable[[], Any]:
    def factory():
        return value
    return factory


class ModuleRegistry:
    """
    Mapping of module name to descriptor.

    Registration order is preserved. Once frozen (activation started)
    the registry rejects further registrations.
    """

    __slots__ = ("_descriptors", "_frozen", "_side_effect_idx")

    def __init__(self):
        self._descriptors: Dict[str, ModuleDescriptor] = {}
        self._frozen = False
        self._side_effect_idx = 0

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add(self, descriptor: ModuleDescriptor) -> ModuleDescriptor:
        """
        Store a normalized descriptor.

        Raises:
            PostActivationRegistrationError: If the registry is frozen
            DuplicateRegistrationError: If the name is already taken
        """
        if self._frozen:
            raise PostActivationRegistrationError(descriptor.name)
        if descriptor.name in self._descriptors:
            raise DuplicateRegistrationError(descriptor.name)

        self._descriptors[descriptor.name] = descriptor
        logger.debug("Registered %s (deps=%s)", descriptor.name, list(descriptor.deps))
        return descriptor

    def register_module(
        self,
        name: str,
        deps: Sequence[str] = (),
        factory: Optional[Callable] = None,
    ) -> ModuleDescriptor:
        """
        Register a module built by ``factory`` from its declared ``deps``.

        Args:
            name: Unique module name
            deps: Dependency names
            factory: Callable taking the dependency view (or nothing)
        """
        if self._frozen:
            raise PostActivationRegistrationError(name)
        if factory is None or not callable(factory):
            raise TypeError(f"factory for '{name}' must be callable; use register_value for constants")
        if name in self._descriptors:
            raise DuplicateRegistrationError(name)
        return self.add(make_descriptor(name, deps, factory))

    def register_value(self, name: str, value: Any) -> ModuleDescriptor:
        """Register a constant value with no dependencies."""
        if self._frozen:
            raise PostActivationRegistrationError(name)
        if name in self._descriptors:
            raise DuplicateRegistrationError(name)
        return self.add(make_descriptor(name, (), constant_factory(value)))

    def register_side_effect(
        self,
        deps: Sequence[str],
        factory: Callable,
    ) -> ModuleDescriptor:
        """
        Register an anonymous module run only for its side effects.

        The generated name uses SIDE_EFFECT_PREFIX and is not meant to be
        depended upon.
        """
        if self._frozen:
            raise PostActivationRegistrationError(f"{SIDE_EFFECT_PREFIX}{self._side_effect_idx + 1}")
        if not callable(factory):
            raise TypeError("side-effect factory must be callable")

        self._side_effect_idx += 1
        name = f"{SIDE_EFFECT_PREFIX}{self._side_effect_idx}"
        return self.add(make_descriptor(name, deps, factory, side_effect=True))

    def replace(self, descriptor: ModuleDescriptor) -> ModuleDescriptor:
        """
        Swap the descriptor stored under an existing name, keeping its position.

        Raises:
            PostActivationRegistrationError: If the registry is frozen
            KeyError: If the name is not registered
        """
        if self._frozen:
            raise PostActivationRegistrationError(descriptor.name)
        if descriptor.name not in self._descriptors:
            raise KeyError(descriptor.name)
        self._descriptors[descriptor.name] = descriptor
        return descriptor

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def freeze(self) -> None:
        """Make the registry immutable."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def clear(self) -> None:
        """Drop every descriptor and unfreeze."""
        self._descriptors.clear()
        self._frozen = False
        self._side_effect_idx = 0

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __getitem__(self, name: str) -> ModuleDescriptor:
        return self._descriptors[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def get(self, name: str) -> Optional[ModuleDescriptor]:
        return self._descriptors.get(name)

    def names(self) -> List[str]:
        return list(self._descriptors)

    def descriptors(self) -> List[ModuleDescriptor]:
        """Descriptors in registration order."""
        return list(self._descriptors.values())

    def snapshot(self) -> Dict[str, ModuleDescriptor]:
        """Shallow copy of the name -> descriptor mapping."""
        return dict(self._descriptors)
