"""
Container - registration, strict-mode toggle and one-shot activation.

Ties the registry, graph resolver and activation engine together behind
the public lifecycle: register → start → (clear).
"""

from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional, Sequence
from types import MappingProxyType
import logging
import time

from .config import Settings
from .diagnostics import DIDiagnostics, DIEventType, LoggingDiagnosticListener
from .engine import ActivationEngine
from .errors import AlreadyActivatedError, StrictModeAfterActivationError
from .graph import DependencyGraph, Stage
from .registry import ModuleDescriptor, ModuleRegistry

logger = logging.getLogger("stagedi.container")


class Container:
    """
    Independent registry/engine pair.

    Example:
        container = Container()
        container.register_value("url", "postgres://localhost/db")
        container.register_module("db", ["url"], lambda deps: connect(deps["url"]))
        modules = await container.start()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        diagnostics: Optional[DIDiagnostics] = None,
    ):
        self._settings = settings or Settings()
        self._diagnostics = diagnostics or DIDiagnostics()
        if self._settings.trace:
            self._diagnostics.add_listener(LoggingDiagnosticListener())

        self._registry = ModuleRegistry()
        self._engine = ActivationEngine(self._diagnostics)
        self._modules: Dict[str, Any] = {}
        self._activated = False
        self._strict = self._settings.strict
        # Bumped by clear(); activations started under an older value are stale
        self._generation = 0

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_module(
        self,
        name: str,
        deps: Sequence[str] = (),
        factory: Optional[Callable] = None,
    ) -> ModuleDescriptor:
        """
        Register a module.

        Args:
            name: Unique module name
            deps: Names of modules whose values the factory receives
            factory: ``factory(deps)`` or ``factory()``, sync or async

        Raises:
            DuplicateRegistrationError, MultiParameterFactoryError,
            PostActivationRegistrationError
        """
        return self._registered(self._registry.register_module(name, deps, factory))

    def register_value(self, name: str, value: Any) -> ModuleDescriptor:
        """Register a constant value."""
        return self._registered(self._registry.register_value(name, value))

    def register_side_effect(self, deps: Sequence[str], factory: Callable) -> str:
        """
        Register an anonymous module run for its side effects.

        Returns:
            The generated internal name
        """
        return self._registered(self._registry.register_side_effect(deps, factory)).name

    def provides(self, name: Optional[str] = None, deps: Sequence[str] = ()) -> Callable:
        """
        Decorator to register a function as a module factory.

        The module name defaults to the function name with a leading
        ``make_`` removed.

        Example:
            @container.provides(deps=["config"])
            async def make_db(deps):
                return await connect(deps["config"].url)
        """
        def decorator(func: Callable) -> Callable:
            self.register_module(name or _infer_name_from(func.__name__), deps, func)
            return func

        return decorator

    def _registered(self, descriptor: ModuleDescriptor) -> ModuleDescriptor:
        self._diagnostics.emit(
            DIEventType.REGISTRATION,
            module=descriptor.name,
            metadata={"deps": list(descriptor.deps), "side_effect": descriptor.side_effect},
        )
        return descriptor

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def enable_strict_mode(self) -> None:
        """
        Require every factory to read exactly its declared dependencies.

        Raises:
            StrictModeAfterActivationError: If start() was already called
        """
        if self._activated:
            raise StrictModeAfterActivationError()
        self._strict = True

    def stages(self) -> List[Stage]:
        """Resolve the current registry into stages without activating."""
        return DependencyGraph.from_registry(self._registry).stages()

    def graph(self) -> DependencyGraph:
        return DependencyGraph.from_registry(self._registry)

    def start(self) -> Awaitable[Dict[str, Any]]:
        """
        Resolve and activate every registered module.

        Lifecycle and resolution errors are raised by this call itself,
        before any factory runs; the returned awaitable raises the first
        activation-time error.

        Returns:
            Awaitable resolving to {name: value}

        Raises:
            AlreadyActivatedError: On any second call
            UnregisteredDependencyError, CircularDependencyError
        """
        if self._activated:
            raise AlreadyActivatedError()
        self._activated = True
        self._registry.freeze()

        stages = self.stages()
        self._diagnostics.emit(
            DIEventType.RESOLUTION,
            modules=self._registry.names(),
            metadata={"stages": len(stages)},
        )
        side_effects = frozenset(
            d.name for stage in stages for d in stage.descriptors if d.side_effect
        )
        return self._activate(stages, self._strict, side_effects, self._generation)

    async def _activate(
        self,
        stages: List[Stage],
        strict: bool,
        side_effects: FrozenSet[str],
        generation: int,
    ) -> Dict[str, Any]:
        logger.debug("Activation started (%d stages, strict=%s)", len(stages), strict)
        self._diagnostics.emit(DIEventType.ACTIVATION_START, metadata={"strict": strict})
        start = time.perf_counter()

        try:
            memo = await self._engine.activate(stages, strict=strict)
        except Exception as e:
            self._diagnostics.emit(
                DIEventType.ACTIVATION_FAILED,
                duration=time.perf_counter() - start,
                error=e,
            )
            raise

        modules = {
            name: value
            for name, value in memo.items()
            if name not in side_effects
        }
        elapsed = time.perf_counter() - start
        logger.debug("Activation complete in %.4fs", elapsed)
        self._diagnostics.emit(DIEventType.ACTIVATION_COMPLETE, duration=elapsed)

        if generation == self._generation:
            self._modules = modules
        else:
            logger.debug("Container cleared during activation; results not stored")
        return dict(modules)

    def clear(self) -> None:
        """Reset registry, modules, activation and strict flags."""
        self._generation += 1
        self._registry.clear()
        self._modules = {}
        self._engine = ActivationEngine(self._diagnostics)
        self._activated = False
        self._strict = self._settings.strict

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def registry(self) -> ModuleRegistry:
        return self._registry

    @property
    def diagnostics(self) -> DIDiagnostics:
        return self._diagnostics

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def modules(self) -> MappingProxyType:
        """Values produced by the last successful activation."""
        return MappingProxyType(self._modules)

    @property
    def is_activated(self) -> bool:
        return self._activated

    @property
    def strict_mode(self) -> bool:
        return self._strict

    def __repr__(self) -> str:
        return (
            f"Container(modules={len(self._registry)}, "
            f"activated={self._activated}, strict={self._strict})"
        )


def create_instance(
    settings: Optional[Settings] = None,
    diagnostics: Optional[DIDiagnostics] = None,
) -> Container:
    """Create a container that shares no state with any other."""
    return Container(settings=settings, diagnostics=diagnostics)


def _infer_name_from(name: str) -> str:
    if name.startswith("make_"):
        return name[5:]
    return name
