"""High level entry points for constructing graphs."""

from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

from dotenv import find_dotenv, load_dotenv

from trellis.config import load_components
from trellis.domain import Component
from trellis.graph import Graph
from trellis.registry import ClassRegistry

__all__ = ["make_graph", "graph_from_xml", "graph_from_xml_file"]


def make_graph(components: Iterable[Component], logger: Optional[Any] = None) -> Graph:
    """Register ``components`` with a new :class:`Graph` and populate it.

    Args:
        components: The components to wire.
        logger: Optional logger passed on to the graph.

    Returns:
        The populated graph, ready to be started.

    Raises:
        RegistrationError: If the components cannot all be registered.
        ResolutionError: If a slot cannot be populated.
    """
    graph = Graph(logger)
    graph.register(*components)
    graph.populate()
    return graph


def graph_from_xml(
    data: Union[str, bytes],
    classes: ClassRegistry,
    logger: Optional[Any] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Graph:
    """Build and populate a graph from an XML configuration document.

    When no ``environ`` mapping is given, variables from the nearest ``.env`` file
    (searching upwards from the working directory) are loaded into the process
    environment first, and constant values may then be overridden
    by ``<class>.<slot>`` environment variables.

    Args:
        data: The XML document. See :mod:`trellis.config` for the format.
        classes: Registry resolving the component classes named in the document.
        logger: Optional logger passed on to the graph.
        environ: Explicit source of overrides, used instead of the process environment.

    Returns:
        The populated graph.

    Raises:
        DependencyError: If the document cannot be loaded or the graph cannot be wired.

    Example:
        >>> graph = graph_from_xml(document, classes)
        >>> with graph.running():
        ...     graph["service"].handle()
    """
    if environ is None:
        load_dotenv(find_dotenv(usecwd=True))
    return make_graph(load_components(data, classes, environ), logger)


def graph_from_xml_file(
    path: Union[str, Path],
    classes: ClassRegistry,
    logger: Optional[Any] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Graph:
    """Like :func:`graph_from_xml`, reading the document from ``path``."""
    return graph_from_xml(Path(path).read_bytes(), classes, logger, environ)
