"""Trellis object-graph wiring.

Trellis wires together component instances that have already been
constructed. Each component declares slots through ordinary class annotations;
trellis fills the slots that are still empty, either with an explicitly named
component, with the unique component satisfying a capability, or with an
existing (or newly created) instance of the slot's type. Once wired, the graph
can be started and stopped, with every component that has ``open``, ``start``,
``stop`` or ``close`` hooks brought up after its dependencies and shut down
before them.

Key Features:
    - Named, by-type and capability (``Protocol`` or abstract class) wiring
    - Ordered list and keyed map slots assembled from named components
    - Ambiguity detection for capability slots
    - Dependency-ordered start and stop with cycle detection
    - XML configuration with environment overrides

Basic Usage:
    >>> from trellis import Component, Graph, SlotSpec
    >>>
    >>> graph = Graph()
    >>> graph.register(
    ...     Component(Database(), name="db"),
    ...     Component(Service(), slot_specs={"db": SlotSpec("db")}),
    ... )
    >>> graph.populate()
    >>> with graph.running():
    ...     graph[Service].handle()

The framework consists of several core modules:
    - component_set: The registry of named and unnamed components
    - resolver: Slot population
    - lifecycle: Level computation and ordered start/stop
    - graph: The facade tying these together
    - slots: Slot introspection and capability matching
    - config, registry, coerce: XML configuration support
    - builders: High-level graph construction functions
    - errors: Framework-specific exceptions
"""

import logging

from trellis.builders import graph_from_xml, graph_from_xml_file, make_graph
from trellis.domain import CollectionElement, Component, Dependence, SlotSpec, wire
from trellis.errors import (
    ConfigurationError,
    CoercionError,
    CycleError,
    DependencyError,
    LifecycleError,
    RegistrationError,
    ResolutionError,
    StartError,
    StopError,
)
from trellis.graph import Graph
from trellis.lifecycle import Closeable, LifecycleState, Openable, Startable, Stoppable
from trellis.registry import ClassRegistry

__all__ = [
    "ClassRegistry",
    "Closeable",
    "CoercionError",
    "CollectionElement",
    "Component",
    "ConfigurationError",
    "CycleError",
    "Dependence",
    "DependencyError",
    "Graph",
    "LifecycleError",
    "LifecycleState",
    "Openable",
    "RegistrationError",
    "ResolutionError",
    "SlotSpec",
    "StartError",
    "Startable",
    "StopError",
    "Stoppable",
    "graph_from_xml",
    "graph_from_xml_file",
    "make_graph",
    "wire",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
