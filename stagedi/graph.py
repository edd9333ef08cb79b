"""
Graph analysis, closure computation and stage partitioning.
"""

from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Set, Tuple
from dataclasses import dataclass
import logging

from .errors import (
    CircularDependencyError,
    ResolutionStalledError,
    UnregisteredDependencyError,
)
from .registry import ModuleDescriptor, ModuleRegistry

logger = logging.getLogger("stagedi.graph")


@dataclass(frozen=True)
class Stage:
    """
    A batch of descriptors whose closures are satisfied by earlier stages.

    Descriptors are kept in registration order, but members of one stage
    run concurrently and callers must not rely on their relative order.
    """
    index: int
    descriptors: Tuple[ModuleDescriptor, ...]

    @property
    def names(self) -> List[str]:
        return [d.name for d in self.descriptors]

    def __len__(self) -> int:
        return len(self.descriptors)

    def __iter__(self):
        return iter(self.descriptors)


class DependencyGraph:
    """
    Dependency graph over a registry snapshot.

    Closures are memoized for the lifetime of the graph, so each
    descriptor is expanded once even in diamond-shaped graphs.
    """

    def __init__(self, descriptors: Mapping[str, ModuleDescriptor]):
        self.descriptors: Dict[str, ModuleDescriptor] = dict(descriptors)
        self._closures: Dict[str, FrozenSet[str]] = {}

    @classmethod
    def from_registry(cls, registry: ModuleRegistry) -> "DependencyGraph":
        return cls(registry.snapshot())

    # ------------------------------------------------------------------
    # Closures
    # ------------------------------------------------------------------

    def closure(self, name: str) -> FrozenSet[str]:
        """
        Transitive dependency names of ``name``.

        Raises:
            UnregisteredDependencyError: If any reachable dependency is missing
            CircularDependencyError: If a cycle is reachable from ``name``
        """
        if name not in self.descriptors:
            raise KeyError(name)
        return self._expand(name, name, [])

    def _expand(self, root: str, name: str, stack: List[str]) -> FrozenSet[str]:
        cached = self._closures.get(name)
        if cached is not None:
            return cached

        stack.append(name)
        result: Set[str] = set()

        for dep in self.descriptors[name].deps:
            if dep not in self.descriptors:
                raise UnregisteredDependencyError(root, dep, required_by=name)

            if dep in stack:
                # dep's descendants lead back to it; `name` closes the loop
                cycle = stack[stack.index(dep):]
                raise CircularDependencyError(dep, name, cycle=cycle)

            result.add(dep)
            result.update(self._expand(root, dep, stack))

        stack.pop()
        closure = frozenset(result)
        self._closures[name] = closure
        return closure

    def closures(self) -> Dict[str, FrozenSet[str]]:
        """Closure of every descriptor, failing on the first error found."""
        return {name: self.closure(name) for name in self.descriptors}

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def stages(self) -> List[Stage]:
        """
        Partition descriptors into ordered stages.

        Returns:
            Stages in execution order

        Raises:
            UnregisteredDependencyError, CircularDependencyError: fail-fast,
                before any stage is returned
        """
        closures = self.closures()

        placed: Set[str] = set()
        remaining = list(self.descriptors.values())
        stages: List[Stage] = []

        while remaining:
            ready = [d for d in remaining if closures[d.name] <= placed]
            if not ready:
                raise ResolutionStalledError(d.name for d in remaining)

            stages.append(Stage(index=len(stages), descriptors=tuple(ready)))
            placed.update(d.name for d in ready)
            remaining = [d for d in remaining if d.name not in placed]

        logger.debug(
            "Resolved %d modules into %d stages", len(self.descriptors), len(stages)
        )
        return stages

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def detect_cycles(self) -> List[List[str]]:
        """
        Detect every cycle using Tarjan's algorithm.

        Unlike closure computation this does not stop at the first cycle.

        Returns:
            List of strongly connected components that form cycles
        """
        index_counter = 0
        stack: List[str] = []
        lowlinks: Dict[str, int] = {}
        index: Dict[str, int] = {}
        on_stack: Set[str] = set()
        sccs: List[List[str]] = []

        def strongconnect(name: str) -> None:
            nonlocal index_counter
            index[name] = index_counter
            lowlinks[name] = index_counter
            index_counter += 1
            stack.append(name)
            on_stack.add(name)

            for dep in self.descriptors[name].deps:
                if dep not in self.descriptors:
                    continue
                if dep not in index:
                    strongconnect(dep)
                    lowlinks[name] = min(lowlinks[name], lowlinks[dep])
                elif dep in on_stack:
                    lowlinks[name] = min(lowlinks[name], index[dep])

            if lowlinks[name] == index[name]:
                scc = []
                while True:
                    w = stack.pop()
                    on_stack.remove(w)
                    scc.append(w)
                    if w == name:
                        break
                sccs.append(scc)

        for name in self.descriptors:
            if name not in index:
                strongconnect(name)

        # Drop trivial SCCs (single node without a self-loop)
        return [
            list(reversed(scc)) for scc in sccs
            if len(scc) > 1 or scc[0] in self.descriptors[scc[0]].deps
        ]

    def missing_dependencies(self) -> List[Tuple[str, str]]:
        """All (module, dependency) pairs naming unregistered modules."""
        return [
            (d.name, dep)
            for d in self.descriptors.values()
            for dep in d.deps
            if dep not in self.descriptors
        ]

    def export_dot(self) -> str:
        """
        Export graph as Graphviz DOT format.

        Returns:
            DOT string
        """
        lines = ["digraph DependencyGraph {"]
        lines.append("  rankdir=LR;")
        lines.append("  node [shape=box];")

        for name, descriptor in self.descriptors.items():
            color = "lightgray" if descriptor.side_effect else "lightblue"
            lines.append(f'  "{name}" [fillcolor="{color}" style=filled];')

        for name, descriptor in self.descriptors.items():
            for dep in descriptor.deps:
                style = "" if dep in self.descriptors else " [style=dashed color=red]"
                lines.append(f'  "{name}" -> "{dep}"{style};')

        lines.append("}")
        return "\n".join(lines)

    def get_tree_view(self, root: Optional[str] = None) -> str:
        """
        Get tree view of dependencies.

        Args:
            root: Optional root module (if None, show all roots)

        Returns:
            Tree view as string
        """
        if root:
            return self._tree_view_recursive(root, "", set())

        depended_on: Set[str] = set()
        for descriptor in self.descriptors.values():
            depended_on.update(descriptor.deps)

        roots = [name for name in self.descriptors if name not in depended_on]

        # Modules only reachable through a cycle have no root above them
        reached: Set[str] = set()
        for name in roots:
            self._mark_reachable(name, reached)
        for name in self.descriptors:
            if name not in reached:
                roots.append(name)
                self._mark_reachable(name, reached)

        return "\n".join(
            self._tree_view_recursive(name, "", set()) for name in roots
        )

    def _mark_reachable(self, start: str, reached: Set[str]) -> None:
        pending = [start]
        while pending:
            name = pending.pop()
            if name in reached or name not in self.descriptors:
                continue
            reached.add(name)
            pending.extend(self.descriptors[name].deps)

    def _tree_view_recursive(self, name: str, prefix: str, visited: Set[str]) -> str:
        if name in visited:
            return f"{prefix}├── {name} (circular)"

        descriptor = self.descriptors.get(name)
        if descriptor is None:
            return f"{prefix}├── {name} (missing)"

        visited.add(name)
        lines = [f"{prefix}├── {name}"]

        deps = descriptor.deps
        for i, dep in enumerate(deps):
            is_last = i == len(deps) - 1
            new_prefix = prefix + ("    " if is_last else "│   ")
            lines.append(self._tree_view_recursive(dep, new_prefix, visited.copy()))

        return "\n".join(lines)

    def to_manifest(self) -> Dict[str, Any]:
        """Serializable description of the graph and its stages."""
        return {
            "version": "1.0",
            "modules": [
                {
                    "name": d.name,
                    "deps": list(d.deps),
                    "side_effect": d.side_effect,
                }
                for d in self.descriptors.values()
            ],
            "stages": [stage.names for stage in self.stages()],
        }


def resolve(registry: ModuleRegistry) -> List[Stage]:
    """Compute the stage sequence for a registry snapshot."""
    return DependencyGraph.from_registry(registry).stages()
