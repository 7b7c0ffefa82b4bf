"""The object graph: registration, population and lifecycle in one place."""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Union

from trellis.component_set import ComponentSet
from trellis.domain import Component
from trellis.errors import StartError
from trellis.lifecycle import LifecycleOrchestrator, LifecycleState
from trellis.resolver import DependencyResolver
from trellis.slots import CapabilityIndex

__all__ = ["Graph", "ComponentKey"]

_default_logger = logging.getLogger(__name__)


ComponentKey = Union[str, type]
"""Type alias for keys used to look up component values in a Graph.

Values can be retrieved either by component name or by type. A type lookup
matches unnamed components only, and must match exactly one of them.

Example:
    >>> graph["database"]     # Lookup by name
    >>> graph[Database]       # Lookup by type
"""


class Graph:
    """A graph of components whose slots are wired to one another.

    Components are registered, then populated, after which the graph may be
    started and stopped. All calls on a graph must be serialised by the caller.

    Args:
        logger: Receives debug messages for each wiring and lifecycle decision, and
            error messages for failing hooks. Anything with logging-style ``debug``
            and ``error`` methods will do. Defaults to this module's logger.

    Example:
        >>> graph = Graph()
        >>> graph.register(Component(Service(), slot_specs={"db": SlotSpec()}))
        >>> graph.populate()
        >>> with graph.running():
        ...     graph[Service].handle()
    """

    def __init__(self, logger: Optional[Any] = None):
        log = logger or _default_logger
        self._components = ComponentSet(log)
        self._capabilities = CapabilityIndex()
        self._resolver = DependencyResolver(self._components, self._capabilities, log)
        self._lifecycle = LifecycleOrchestrator(self._components, log)

    def register(self, *components: Component):
        """Provide components to the graph. See :class:`~trellis.domain.Component`."""
        self._resolver.register(*components)

    def populate(self):
        """Populate the incomplete components."""
        self._resolver.populate()

    def lookup_named(self, name: str) -> Optional[Component]:
        return self._components.lookup_named(name)

    def objects(self) -> list[Component]:
        """All known components, named as well as unnamed, in no stable order."""
        return self._components.objects()

    def start(self):
        """Start the graph in dependency order. See :meth:`LifecycleOrchestrator.start`."""
        self._lifecycle.start()

    def stop(self):
        """Stop whatever the last start brought up, dependents first."""
        self._lifecycle.stop()

    @contextmanager
    def running(self) -> Iterator["Graph"]:
        """Start the graph for the duration of a ``with`` block.

        The graph is stopped on exit, including when the block raises. If a hook fails
        during start, whatever was started is stopped before the error propagates.
        """
        try:
            self.start()
        except StartError:
            self.stop()
            raise
        try:
            yield self
        finally:
            self.stop()

    @property
    def state(self) -> LifecycleState:
        return self._lifecycle.state

    @property
    def started(self) -> list[Component]:
        return self._lifecycle.started

    def __getitem__(self, key: ComponentKey) -> Any:
        if isinstance(key, str):
            return self._components[key].value
        candidates = [
            component
            for component in self._components.unnamed
            if not component.private
            and self._capabilities.is_assignable(component.value, key)
        ]
        if len(candidates) == 0:
            raise KeyError(key)
        if len(candidates) > 1:
            raise KeyError(f"No unique component found for type {key}")
        return candidates[0].value

    def __contains__(self, name: str) -> bool:
        return name in self._components

    def __len__(self) -> int:
        return len(self._components)
