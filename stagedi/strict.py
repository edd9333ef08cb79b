"""
Strict dependency access - declared dependencies must equal the ones read.
"""

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Set

from .errors import DependedButNotAccessedError, InvalidPropertyAccessError


class StrictDeps:
    """
    Dependency view that records which declared names a factory reads.

    Reading a name that was not declared (or is not available) raises
    InvalidPropertyAccessError immediately. ``verify()`` raises
    DependedButNotAccessedError for declared names never read; the engine
    calls it once the factory has fully settled.
    """

    __slots__ = ("_module", "_declared", "_values", "_accessed")

    def __init__(self, module: str, declared: Iterable[str], values: Mapping[str, Any]):
        self._module = module
        self._declared: List[str] = list(dict.fromkeys(declared))
        self._values: Dict[str, Any] = dict(values)
        self._accessed: Set[str] = set()

    @property
    def module(self) -> str:
        return self._module

    @property
    def accessed(self) -> frozenset:
        return frozenset(self._accessed)

    def __getitem__(self, key: str) -> Any:
        if key not in self._declared or key not in self._values:
            raise InvalidPropertyAccessError(key, self._module)
        self._accessed.add(key)
        return self._values[key]

    # Same check as indexing; no default is offered for undeclared names
    get = __getitem__

    def __contains__(self, key: object) -> bool:
        return key in self._declared and key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._declared)

    def __len__(self) -> int:
        return len(self._declared)

    def keys(self) -> List[str]:
        return list(self._declared)

    def not_accessed(self) -> List[str]:
        """Declared names that were never read, in declaration order."""
        return [key for key in self._declared if key not in self._accessed]

    def verify(self) -> None:
        missing = self.not_accessed()
        if missing:
            raise DependedButNotAccessedError(missing, self._module)

    def __repr__(self) -> str:
        return f"StrictDeps(module={self._module!r}, declared={self._declared!r})"


def guard(module: str, declared: Iterable[str], values: Mapping[str, Any]) -> StrictDeps:
    """Wrap ``values`` in a StrictDeps view for ``module``."""
    return StrictDeps(module, declared, values)
