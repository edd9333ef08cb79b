"""
stagedi - staged asynchronous dependency activation.

Modules are registered by name with the names of the modules they require.
On start() the dependency graph is checked (missing modules, cycles) and
partitioned into stages; stages run one after another while the modules of
a stage are created concurrently, each factory receiving only its declared
dependencies.

Key Features:
- Closure-based stage partitioning with fail-fast cycle detection
- Async-first activation with a barrier between stages
- Optional strict mode: declared dependencies must equal the ones read
- Diagnostics events rendered through logging
- Inspection CLI (stages, tree, DOT graph, JSON manifest)
"""

__version__ = "2.0.0"

from .registry import (
    ModuleDescriptor,
    ModuleRegistry,
    SIDE_EFFECT_PREFIX,
)

from .graph import (
    DependencyGraph,
    Stage,
    resolve,
)

from .engine import ActivationEngine

from .strict import (
    StrictDeps,
    guard,
)

from .container import (
    Container,
    create_instance,
)

from .config import (
    Settings,
    ConfigError,
)

from .diagnostics import (
    DIDiagnostics,
    DIEvent,
    DIEventType,
    LoggingDiagnosticListener,
)

from .errors import (
    DIError,
    DuplicateRegistrationError,
    MultiParameterFactoryError,
    PostActivationRegistrationError,
    UnregisteredDependencyError,
    CircularDependencyError,
    ResolutionStalledError,
    AlreadyActivatedError,
    StrictModeAfterActivationError,
    InvalidPropertyAccessError,
    DependedButNotAccessedError,
)

# Pre-constructed instance for applications that want a single container
default = Container()

__all__ = [
    # Registry
    "ModuleDescriptor",
    "ModuleRegistry",
    "SIDE_EFFECT_PREFIX",

    # Graph
    "DependencyGraph",
    "Stage",
    "resolve",

    # Activation
    "ActivationEngine",
    "StrictDeps",
    "guard",

    # Container
    "Container",
    "create_instance",
    "default",

    # Config
    "Settings",
    "ConfigError",

    # Diagnostics
    "DIDiagnostics",
    "DIEvent",
    "DIEventType",
    "LoggingDiagnosticListener",

    # Errors
    "DIError",
    "DuplicateRegistrationError",
    "MultiParameterFactoryError",
    "PostActivationRegistrationError",
    "UnregisteredDependencyError",
    "CircularDependencyError",
    "ResolutionStalledError",
    "AlreadyActivatedError",
    "StrictModeAfterActivationError",
    "InvalidPropertyAccessError",
    "DependedButNotAccessedError",
]
