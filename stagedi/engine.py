"""
Activation engine - runs stages in order, modules within a stage concurrently.
"""

from typing import Any, Dict, List, Optional, Sequence
from types import MappingProxyType
import asyncio
import inspect
import logging
import time

from .diagnostics import DIDiagnostics, DIEventType
from .graph import Stage
from .registry import ModuleDescriptor
from .strict import StrictDeps

logger = logging.getLogger("stagedi.engine")


def _drain(task: "asyncio.Task") -> None:
    """Consume a finished task's exception; orphaned failures are only logged."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Module task %s finished with %r", task.get_name(), exc)


class ActivationEngine:
    """
    Drives factories stage by stage.

    The memo (name -> value) is written only between stages, after every
    factory of the finished stage has settled. A failing factory fails the
    whole activation with its own exception; siblings already running are
    left to finish and their results are dropped.
    """

    __slots__ = ("_diagnostics", "_memo")

    def __init__(self, diagnostics: Optional[DIDiagnostics] = None):
        self._diagnostics = diagnostics or DIDiagnostics()
        self._memo: Dict[str, Any] = {}

    @property
    def memo(self) -> MappingProxyType:
        """Read-only view of values merged so far."""
        return MappingProxyType(self._memo)

    async def activate(
        self,
        stages: Sequence[Stage],
        *,
        strict: bool = False,
    ) -> Dict[str, Any]:
        """
        Activate every stage in sequence.

        Args:
            stages: Output of graph resolution
            strict: Wrap each dependency view in StrictDeps

        Returns:
            Mapping of module name to value

        Raises:
            Whatever the first failing factory raised (or a strict-mode error)
        """
        self._memo = {}

        for stage in stages:
            results = await self._run_stage(stage, strict)
            # Barrier: the only place the memo is mutated
            self._memo.update(results)

        return dict(self._memo)

    async def _run_stage(self, stage: Stage, strict: bool) -> Dict[str, Any]:
        names = stage.names
        logger.debug("Initialising %s", ", ".join(names))
        self._diagnostics.emit(DIEventType.STAGE_START, stage=stage.index, modules=names)
        start = time.perf_counter()

        tasks: List[asyncio.Task] = []
        for descriptor in stage:
            task = asyncio.create_task(
                self._invoke(descriptor, strict), name=f"stagedi:{descriptor.name}"
            )
            task.add_done_callback(_drain)
            tasks.append(task)

        # First exception propagates; remaining tasks keep running
        values = await asyncio.gather(*tasks)

        self._diagnostics.emit(
            DIEventType.STAGE_COMPLETE,
            stage=stage.index,
            modules=names,
            duration=time.perf_counter() - start,
        )
        return dict(zip(names, values))

    def _project(self, descriptor: ModuleDescriptor) -> Dict[str, Any]:
        return {name: self._memo[name] for name in descriptor.deps if name in self._memo}

    async def _invoke(self, descriptor: ModuleDescriptor, strict: bool) -> Any:
        values = self._project(descriptor)
        start = time.perf_counter()

        try:
            if strict:
                view = StrictDeps(descriptor.name, descriptor.deps, values)
                result = await self._call(descriptor, view)
                # Checked after settling so deferred reads are counted
                view.verify()
            else:
                result = await self._call(descriptor, MappingProxyType(values))
        except Exception as e:
            self._diagnostics.emit(
                DIEventType.MODULE_FAILED,
                module=descriptor.name,
                duration=time.perf_counter() - start,
                error=e,
            )
            raise

        self._diagnostics.emit(
            DIEventType.MODULE_ACTIVATED,
            module=descriptor.name,
            duration=time.perf_counter() - start,
        )
        return result

    @staticmethod
    async def _call(descriptor: ModuleDescriptor, view: Any) -> Any:
        if descriptor.accepts_deps:
            result = descriptor.factory(view)
        else:
            result = descriptor.factory()

        if inspect.isawaitable(result):
            result = await result
        return result
