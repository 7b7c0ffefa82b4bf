"""Ordered start and stop of a populated graph.

Only components exposing at least one lifecycle hook (``open``, ``start``,
``stop`` or ``close``) take part. They are partitioned into levels by the number
of other lifecycle components they transitively depend on: components with
fewer such dependencies start first, and stop last.
"""

import logging
from collections import defaultdict
from enum import Enum
from typing import Callable, Iterable, Optional, Protocol, runtime_checkable

from trellis.component_set import ComponentSet
from trellis.domain import Component
from trellis.errors import CycleError, LifecycleError, StartError, StopError

__all__ = [
    "Openable",
    "Startable",
    "Stoppable",
    "Closeable",
    "LifecycleState",
    "LifecycleOrchestrator",
    "hook",
    "is_eligible",
    "levels",
]

logger = logging.getLogger(__name__)

PathStep = tuple[str, Component]


@runtime_checkable
class Openable(Protocol):
    """Components with an ``open`` hook are opened by start."""

    def open(self) -> None: ...


@runtime_checkable
class Startable(Protocol):
    """Components with a ``start`` hook are started by start."""

    def start(self) -> None: ...


@runtime_checkable
class Stoppable(Protocol):
    """Components with a ``stop`` hook are stopped by stop."""

    def stop(self) -> None: ...


@runtime_checkable
class Closeable(Protocol):
    """Components with a ``close`` hook are closed by stop."""

    def close(self) -> None: ...


class LifecycleState(Enum):
    IDLE = "idle"
    STARTED = "started"
    STOPPED = "stopped"


_HOOKS = ("open", "start", "stop", "close")


def hook(value, name: str) -> Optional[Callable[[], None]]:
    """The lifecycle method ``name`` of ``value``, or None if it has no such method.

    A non-callable attribute of the same name is not a hook.
    """
    method = getattr(value, name, None)
    return method if callable(method) else None


def is_eligible(component: Component) -> bool:
    return any(hook(component.value, name) is not None for name in _HOOKS)


def levels(components: Iterable[Component]) -> list[list[Component]]:
    """Partition the lifecycle components among ``components`` into levels.

    The level key of a component is the number of distinct lifecycle components
    reachable through its dependencies. Levels are returned with the highest key
    first.

    Raises:
        CycleError: If a component depends on itself directly, or a cycle passes
            through more than one lifecycle component. A cycle through a single
            lifecycle component imposes no ordering and is allowed.
    """
    levels_by_key: dict[int, list[Component]] = defaultdict(list)

    for component in components:
        if not is_eligible(component):
            continue

        reachable: set[Component] = set()
        for path in all_paths(component, component, reachable):
            if len(path) == 1:
                raise CycleError(path)
            if sum(1 for _, step in path if is_eligible(step)) > 1:
                raise CycleError(path)

        key = sum(1 for dependency in reachable if is_eligible(dependency))
        levels_by_key[key].append(component)

    return [levels_by_key[key] for key in sorted(levels_by_key, reverse=True)]


def all_paths(
    source: Component, target: Component, seen: set[Component]
) -> list[list[PathStep]]:
    """Enumerate dependency paths from ``source`` back to ``target``.

    Every component visited on the way (other than ``target``) is added to ``seen``,
    which also bounds the search: a component is expanded at most once.
    """
    if source is not target:
        if source in seen:
            return []
        seen.add(source)

    paths = []
    for dependence in source.dependencies:
        immediate = [(dependence.slot_name, source)]
        if dependence.target is target:
            paths.append(immediate)
        else:
            for path in all_paths(dependence.target, target, seen):
                paths.append(immediate + path)
    return paths


class LifecycleOrchestrator:
    """Start and stop the lifecycle components of a :class:`ComponentSet` in order."""

    def __init__(self, components: ComponentSet, log=None):
        self._components = components
        self._log = log or logger
        self._state = LifecycleState.IDLE
        self._started: list[Component] = []

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def started(self) -> list[Component]:
        """Components fully started by the last call to :meth:`start`."""
        return list(self._started)

    def start(self):
        """Open and start every lifecycle component, dependencies first.

        Levels are computed before any hook runs, so a cycle leaves the graph untouched.
        A component counts as started once its ``open`` and ``start`` hooks (whichever it
        has) both return. The started list is recorded even when a hook fails, so that
        :meth:`stop` can shut down what was brought up.

        Raises:
            LifecycleError: If the graph is already started.
            CycleError: If lifecycle components depend on each other cyclically.
            StartError: On the first failing hook. Remaining components are not started.
        """
        if self._state is LifecycleState.STARTED:
            raise LifecycleError("graph is already started")

        ordered = levels(self._components.components())

        self._started = []
        self._state = LifecycleState.STARTED
        for level in reversed(ordered):
            for component in level:
                self._start_component(component)
                self._started.append(component)

    def _start_component(self, component: Component):
        value = component.value
        try:
            open_hook = hook(value, "open")
            if open_hook is not None:
                self._log.debug("opening %s", component)
                open_hook()
            start_hook = hook(value, "start")
            if start_hook is not None:
                self._log.debug("starting %s", component)
                start_hook()
        except Exception as e:
            self._log.error("error starting %s: %s", component, e)
            raise StartError(
                f"error starting {component}: {e}", component, self._started
            ) from e

    def stop(self):
        """Stop and close the previously started components, dependents first.

        Stopping is fail-fast: components after the failing one are left running.
        Components stopped before the failure are dropped from :attr:`started`, so a
        retried stop only visits those still running.

        Raises:
            CycleError: Should the started components have been rewired into a cycle.
            StopError: On the first failing hook.
        """
        if not self._started:
            self._log.debug("no started components to stop")
            if self._state is LifecycleState.STARTED:
                self._state = LifecycleState.STOPPED
            return

        for level in levels(self._started):
            for component in level:
                self._stop_component(component)
                self._started.remove(component)

        self._state = LifecycleState.STOPPED

    def _stop_component(self, component: Component):
        value = component.value
        stop_hook = hook(value, "stop")
        if stop_hook is not None:
            self._log.debug("stopping %s", component)
            self._invoke(component, stop_hook, "stopping")
        close_hook = hook(value, "close")
        if close_hook is not None:
            self._log.debug("closing %s", component)
            self._invoke(component, close_hook, "closing")

    def _invoke(self, component: Component, method, action: str):
        try:
            method()
        except Exception as e:
            self._log.error("error %s %s: %s", action, component, e)
            raise StopError(f"error {action} {component}: {e}", component) from e
