"""
Error types for registration, resolution and activation.
"""

from typing import Iterable, List, Optional


class DIError(Exception):
    """Base exception for stagedi errors."""
    pass


# ============================================================================
# Registration-time
# ============================================================================


class DuplicateRegistrationError(DIError):
    """A module name was registered more than once."""

    def __init__(self, name: str):
        self.name = name

        msg = (
            f"Attempted to register module '{name}' multiple times"
            f"\n\nSuggested fixes:"
            f"\n  - Remove the duplicate registration of '{name}'"
            f"\n  - Call clear() before registering a fresh module set"
        )
        super().__init__(msg)


class MultiParameterFactoryError(DIError):
    """Factory expects more than one positional argument."""

    def __init__(self, name: str, arity: int):
        self.name = name
        self.arity = arity

        msg = (
            f"Attempted to register '{name}' with a factory taking {arity} "
            f"positional arguments.\n\n"
            f"Dependencies are passed as a single mapping so factories can pick "
            f"what they need by name. Factories must accept at most one "
            f"positional argument."
            f"\n\nSuggested fixes:"
            f"\n  - Change the factory to `def factory(deps): ...`"
            f"\n  - Read each dependency with deps['name']"
        )
        super().__init__(msg)


class PostActivationRegistrationError(DIError):
    """Registration attempted after activation started."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"DI already activated - can't register: {name}")


# ============================================================================
# Resolution-time
# ============================================================================


class UnregisteredDependencyError(DIError):
    """A declared dependency is not present in the registry."""

    def __init__(
        self,
        module: str,
        dependency: str,
        required_by: Optional[str] = None,
    ):
        self.module = module
        self.dependency = dependency
        self.required_by = required_by or module

        msg = f"{module} depends on {dependency} which hasn't been registered"
        if self.required_by != module:
            msg += f"\nDeclared by: {self.required_by}"

        msg += "\n\nSuggested fixes:"
        msg += f"\n  - Register '{dependency}' before calling start()"
        msg += f"\n  - Check for typos in the dependency list of '{self.required_by}'"

        super().__init__(msg)


class CircularDependencyError(DIError):
    """A dependency cycle was found while computing closures."""

    def __init__(
        self,
        module: str,
        within: str,
        cycle: Optional[List[str]] = None,
    ):
        self.module = module
        self.within = within
        self.cycle = cycle or [module, within]

        msg = f"Circular dependency for {module} within {within}"
        msg += "\n  " + " -> ".join(self.cycle + [self.cycle[0]])

        msg += "\n\nSuggested fixes:"
        msg += "\n  - Restructure dependencies to remove the cycle"
        msg += "\n  - Extract the shared part into a separate module"

        super().__init__(msg)


class ResolutionStalledError(DIError):
    """No remaining descriptor could be placed in a stage."""

    def __init__(self, remaining: Iterable[str]):
        self.remaining = sorted(remaining)
        super().__init__(
            "Dependency resolution made no progress; unplaced modules: "
            + ", ".join(self.remaining)
        )


# ============================================================================
# Lifecycle-time
# ============================================================================


class AlreadyActivatedError(DIError):
    """start() was called more than once."""

    def __init__(self):
        super().__init__(
            "DI already activated"
            "\n\nSuggested fixes:"
            "\n  - Call clear() to reset the container"
            "\n  - Use create_instance() for an independent container"
        )


class StrictModeAfterActivationError(DIError):
    """Strict mode was enabled after activation started."""

    def __init__(self):
        super().__init__("Can't set strict mode after activation")


# ============================================================================
# Activation-time (strict mode)
# ============================================================================


class InvalidPropertyAccessError(DIError):
    """A factory read a dependency it did not declare."""

    def __init__(self, key: str, module: str):
        self.key = key
        self.module = module

        msg = (
            f"Invalid property access: {key} (module '{module}')"
            f"\n\nSuggested fixes:"
            f"\n  - Add '{key}' to the dependency list of '{module}'"
        )
        super().__init__(msg)


class DependedButNotAccessedError(DIError):
    """A factory declared dependencies it never read."""

    def __init__(self, missing: Iterable[str], module: str):
        self.missing = list(missing)
        self.module = module

        msg = (
            f"Depended on property not accessed: {','.join(self.missing)} "
            f"(module '{module}')"
            f"\n\nSuggested fixes:"
            f"\n  - Remove unused names from the dependency list of '{module}'"
        )
        super().__init__(msg)
